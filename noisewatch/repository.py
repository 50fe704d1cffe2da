"""
Repository pattern for recording history persistence.

Single Responsibility: Handle the recording history and noise record CSV files.
"""
import csv
import datetime
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from logger import get_logger, log_event
from .errors import StorageFailure

log = get_logger(__name__)

HISTORY_COLUMNS = [
    "timestamp",
    "threshold",
    "warning_count",
    "classroom_id",
    "duration_sec",
    "audio_file",
    "audio_size",
    "video_file",
    "video_size",
    "note",
    "noise_types",
]

NOISE_RECORD_COLUMNS = [
    "recording_timestamp",
    "classroom_id",
    "timestamp",
    "loudness",
    "noise_type",
    "confidence",
]


@dataclass
class HistoricalRecordingSummary:
    """One finished recording session, as seen by the analytics."""
    timestamp: datetime.datetime
    threshold: float
    warning_count: int
    classroom_id: Optional[str] = None
    duration_sec: float = 0.0
    noise_types: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "threshold": self.threshold,
            "warning_count": self.warning_count,
            "classroom_id": self.classroom_id,
            "duration_sec": self.duration_sec,
            "noise_types": [dict(n) for n in self.noise_types],
        }


@dataclass
class NoiseRecord:
    """One classified loudness sample taken during a recording."""
    recording_timestamp: datetime.datetime
    timestamp: datetime.datetime
    loudness: float
    noise_type: Optional[str] = None
    confidence: float = 0.0
    classroom_id: Optional[str] = None


def _parse_noise_types(value: Any) -> List[Dict[str, Any]]:
    """Decode the noise_types JSON column; malformed entries are dropped."""
    if not isinstance(value, str) or not value.strip():
        return []
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []

    entries = []
    for item in parsed:
        if isinstance(item, str):
            entries.append({"type": item, "confidence": 0.0})
        elif isinstance(item, dict) and item.get("type"):
            entries.append({"type": str(item["type"]), "confidence": float(item.get("confidence") or 0.0)})
    return entries


def filter_recent(
    summaries: List[HistoricalRecordingSummary],
    days: Optional[int],
    now: Optional[datetime.datetime] = None
) -> List[HistoricalRecordingSummary]:
    """
    Keep summaries within the last `days` days.

    Args:
        summaries: Summaries to filter
        days: Look-back window in days (None keeps everything)
        now: Reference time (default: now)

    Returns:
        Filtered list, original order preserved
    """
    if days is None:
        return list(summaries)
    now = now or datetime.datetime.now()
    cutoff = now - datetime.timedelta(days=days)
    return [s for s in summaries if s.timestamp >= cutoff]


class RecordingRepository:
    """
    Repository for recording history.

    Single Responsibility: Recording history CSV file operations.
    """

    def __init__(self, config: dict):
        """
        Initialize recording repository.

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.history_file = Path(config["history"]["history_file"])
        noise_records_file = config["history"].get("noise_records_file")
        if noise_records_file:
            self.noise_records_file = Path(noise_records_file)
        else:
            self.noise_records_file = self.history_file.with_name("noise_records.csv")

    @staticmethod
    def _ensure_header(path: Path, columns: List[str]) -> None:
        """Ensure CSV file has header row."""
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(columns)

    def save(self, record: Dict[str, Any]) -> None:
        """
        Append one recording to the history file.

        Args:
            record: Recording dictionary (timestamp, threshold, warning_count, ...)

        Raises:
            StorageFailure: If the history file cannot be written
        """
        timestamp = record["timestamp"]
        if isinstance(timestamp, datetime.datetime):
            timestamp = timestamp.isoformat(timespec="seconds")

        try:
            self._ensure_header(self.history_file, HISTORY_COLUMNS)
            with self.history_file.open("a", newline="") as f:
                writer = csv.writer(f)
                writer.writerow([
                    timestamp,
                    record["threshold"],
                    record["warning_count"],
                    record.get("classroom_id") or "",
                    f"{record.get('duration_sec', 0.0):.2f}",
                    str(record.get("audio_file") or ""),
                    record.get("audio_size", 0),
                    str(record.get("video_file") or ""),
                    record.get("video_size", 0),
                    record.get("note", ""),
                    json.dumps(list(record.get("noise_types", [])), ensure_ascii=False),
                ])
        except OSError as e:
            raise StorageFailure(f"Failed to write history file {self.history_file}: {e}") from e

        if record.get("noise_records"):
            self.save_noise_records(timestamp, record.get("classroom_id"), record["noise_records"])

        log_event(
            log, "recording_saved",
            timestamp=timestamp,
            threshold=record["threshold"],
            warnings=record["warning_count"],
            classroom=record.get("classroom_id"),
        )

    def save_noise_records(
        self,
        recording_timestamp: str,
        classroom_id: Optional[str],
        samples: List[Dict[str, Any]]
    ) -> None:
        """
        Append the noise samples of one recording.

        Rows are linked to their recording by its start timestamp.

        Raises:
            StorageFailure: If the noise records file cannot be written
        """
        try:
            self._ensure_header(self.noise_records_file, NOISE_RECORD_COLUMNS)
            with self.noise_records_file.open("a", newline="") as f:
                writer = csv.writer(f)
                for sample in samples:
                    timestamp = sample["timestamp"]
                    if isinstance(timestamp, datetime.datetime):
                        timestamp = timestamp.isoformat(timespec="milliseconds")
                    writer.writerow([
                        recording_timestamp,
                        classroom_id or "",
                        timestamp,
                        sample["loudness"],
                        sample.get("noise_type") or "",
                        sample.get("confidence", 0.0),
                    ])
        except OSError as e:
            raise StorageFailure(f"Failed to write noise records file {self.noise_records_file}: {e}") from e

        log.debug(f"Saved {len(samples)} noise samples for recording {recording_timestamp}")

    def load_dataframe(self) -> pd.DataFrame:
        """
        Load the history file.

        Returns:
            DataFrame with history data, or empty DataFrame if file doesn't exist

        Raises:
            StorageFailure: If the file exists but cannot be read
        """
        if not self.history_file.exists():
            return pd.DataFrame(columns=HISTORY_COLUMNS)

        try:
            df = pd.read_csv(self.history_file, dtype={"classroom_id": str, "noise_types": str})
        except pd.errors.EmptyDataError:
            return pd.DataFrame(columns=HISTORY_COLUMNS)
        except (OSError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise StorageFailure(f"Failed to read history file {self.history_file}: {e}") from e

        df.columns = [c.strip() for c in df.columns]
        return df

    def load_summaries(
        self,
        classroom_id: Optional[str] = None,
        days: Optional[int] = None,
        now: Optional[datetime.datetime] = None
    ) -> List[HistoricalRecordingSummary]:
        """
        Load recording summaries, newest first.

        Rows without a parseable timestamp, threshold or warning count are skipped.

        Args:
            classroom_id: Only this classroom (None for all)
            days: Look-back window in days (None for all)
            now: Reference time for the window

        Returns:
            List of HistoricalRecordingSummary ordered by timestamp descending
        """
        df = self.load_dataframe()
        if df.empty:
            return []

        missing = {"timestamp", "threshold", "warning_count"} - set(df.columns)
        if missing:
            raise StorageFailure(
                f"History file {self.history_file} lacks column(s): {', '.join(sorted(missing))}"
            )

        df = df.copy()
        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
        df["threshold"] = pd.to_numeric(df["threshold"], errors="coerce")
        df["warning_count"] = pd.to_numeric(df["warning_count"], errors="coerce")
        df = df.dropna(subset=["timestamp", "threshold", "warning_count"])

        if "classroom_id" not in df.columns:
            df["classroom_id"] = None
        if classroom_id is not None:
            df = df[df["classroom_id"] == classroom_id].copy()

        if "duration_sec" in df.columns:
            df["duration_sec"] = pd.to_numeric(df["duration_sec"], errors="coerce").fillna(0.0)
        else:
            df["duration_sec"] = 0.0
        if "noise_types" not in df.columns:
            df["noise_types"] = None

        df = df.sort_values("timestamp", ascending=False, kind="mergesort")

        summaries = []
        for row in df.itertuples(index=False):
            room = row.classroom_id if isinstance(row.classroom_id, str) and row.classroom_id else None
            summaries.append(HistoricalRecordingSummary(
                timestamp=row.timestamp.to_pydatetime(),
                threshold=float(row.threshold),
                warning_count=int(row.warning_count),
                classroom_id=room,
                duration_sec=float(row.duration_sec),
                noise_types=_parse_noise_types(row.noise_types),
            ))

        return filter_recent(summaries, days, now)

    def load_noise_records(
        self,
        classroom_id: Optional[str] = None,
        days: Optional[int] = None,
        now: Optional[datetime.datetime] = None
    ) -> List[NoiseRecord]:
        """
        Load the noise samples of past recordings.

        Samples without a loudness or timestamps are skipped. The look-back
        window applies to the start of the recording.

        Args:
            classroom_id: Only this classroom (None for all)
            days: Look-back window in days (None for all)
            now: Reference time for the window

        Returns:
            List of NoiseRecord ordered by recording start, then sample time

        Raises:
            StorageFailure: If the file exists but cannot be read
        """
        if not self.noise_records_file.exists():
            return []

        try:
            df = pd.read_csv(self.noise_records_file, dtype={"classroom_id": str, "noise_type": str})
        except pd.errors.EmptyDataError:
            return []
        except (OSError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise StorageFailure(f"Failed to read noise records file {self.noise_records_file}: {e}") from e

        df.columns = [c.strip() for c in df.columns]
        missing = {"recording_timestamp", "timestamp", "loudness"} - set(df.columns)
        if missing:
            raise StorageFailure(
                f"Noise records file {self.noise_records_file} lacks column(s): {', '.join(sorted(missing))}"
            )
        for column in ("classroom_id", "noise_type", "confidence"):
            if column not in df.columns:
                df[column] = None

        df = df.copy()
        df["recording_timestamp"] = pd.to_datetime(df["recording_timestamp"], errors="coerce")
        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
        df["loudness"] = pd.to_numeric(df["loudness"], errors="coerce")
        df["confidence"] = pd.to_numeric(df["confidence"], errors="coerce").fillna(0.0)
        df = df.dropna(subset=["recording_timestamp", "timestamp", "loudness"])

        if classroom_id is not None:
            df = df[df["classroom_id"] == classroom_id].copy()
        if days is not None:
            now = now or datetime.datetime.now()
            df = df[df["recording_timestamp"] >= now - datetime.timedelta(days=days)]

        df = df.sort_values(["recording_timestamp", "timestamp"], kind="mergesort")

        records = []
        for row in df.itertuples(index=False):
            records.append(NoiseRecord(
                recording_timestamp=row.recording_timestamp.to_pydatetime(),
                timestamp=row.timestamp.to_pydatetime(),
                loudness=float(row.loudness),
                noise_type=row.noise_type if isinstance(row.noise_type, str) and row.noise_type else None,
                confidence=float(row.confidence),
                classroom_id=row.classroom_id if isinstance(row.classroom_id, str) and row.classroom_id else None,
            ))
        return records
