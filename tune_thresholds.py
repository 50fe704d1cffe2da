#!/usr/bin/env python3
"""
Threshold tuning from recording history.

Reads the recording history and prints the threshold recommendation together
with the efficiency, discipline and noise pattern analyses as JSON. With
--write the recommended threshold is written to config.recommended.json.
"""
import argparse
import copy
import datetime
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import config_loader
from logger import get_logger, setup_logging_from_config
from noisewatch import (
    AnalyticsSettings,
    HistoricalRecordingSummary,
    RecordingRepository,
    StorageFailure,
    analyze_efficiency,
    discipline_report,
    noise_patterns,
    recommend_threshold,
)

log = get_logger(__name__)

RECOMMENDED_CONFIG_FILE = Path("config.recommended.json")


def load_history(
    config: Dict[str, Any],
    classroom_id: Optional[str] = None,
    days: Optional[int] = None
) -> List[HistoricalRecordingSummary]:
    """
    Load recording summaries for analysis.

    Returns:
        Summaries newest first; an empty list if the history cannot be read
    """
    repo = RecordingRepository(config)
    try:
        return repo.load_summaries(classroom_id=classroom_id, days=days)
    except StorageFailure as e:
        log.error(f"Failed to load recording history: {e}")
        return []


def recommend(config: Dict[str, Any], classroom_id: Optional[str] = None) -> Dict[str, Any]:
    """Threshold recommendation over the configured look-back window."""
    settings = AnalyticsSettings.from_config(config)
    # All classrooms are loaded; the recommender falls back to them if this one has no history
    summaries = load_history(config, days=settings.days)
    return recommend_threshold(
        summaries,
        current_threshold=config["monitoring"]["threshold_db"],
        classroom_id=classroom_id or config["history"].get("classroom_id"),
        settings=settings,
    )


def efficiency(config: Dict[str, Any], classroom_id: Optional[str] = None) -> Dict[str, Any]:
    """Efficiency analysis over the configured look-back window."""
    settings = AnalyticsSettings.from_config(config)
    summaries = load_history(
        config,
        classroom_id=classroom_id or config["history"].get("classroom_id"),
        days=settings.days,
    )
    return analyze_efficiency(summaries, settings)


def discipline(
    config: Dict[str, Any],
    classroom_id: Optional[str] = None,
    start_date: Optional[datetime.date] = None,
    end_date: Optional[datetime.date] = None
) -> Dict[str, Any]:
    """Discipline report over the whole history, optionally for one classroom and period."""
    summaries = load_history(config, classroom_id=classroom_id)
    return discipline_report(summaries, start_date=start_date, end_date=end_date)


def patterns(config: Dict[str, Any], classroom_id: Optional[str] = None) -> Dict[str, Any]:
    """Noise pattern analysis over the noise samples of the last `pattern_days` days."""
    settings = AnalyticsSettings.from_config(config)
    repo = RecordingRepository(config)
    try:
        records = repo.load_noise_records(
            classroom_id=classroom_id or config["history"].get("classroom_id"),
            days=settings.pattern_days,
        )
    except StorageFailure as e:
        log.error(f"Failed to load noise records: {e}")
        records = []
    return noise_patterns(records, days=settings.pattern_days)


def write_recommended_config(
    config: Dict[str, Any],
    recommendation: Dict[str, Any],
    output_path: Path = RECOMMENDED_CONFIG_FILE
) -> Path:
    """
    Write a copy of the configuration with the recommended threshold.

    Returns:
        Path of the written file
    """
    recommended = copy.deepcopy(config)
    recommended["monitoring"]["threshold_db"] = recommendation["recommended"]

    with output_path.open("w") as f:
        json.dump(recommended, f, indent=2, ensure_ascii=False)

    log.info(
        f"Recommended configuration written to {output_path} "
        f"(threshold_db={recommendation['recommended']}, confidence={recommendation['confidence']})"
    )
    return output_path


def run_tuning(
    config_path: Optional[Path] = None,
    classroom_id: Optional[str] = None,
    write: bool = False,
    debug: bool = False,
    start_date: Optional[datetime.date] = None,
    end_date: Optional[datetime.date] = None
) -> Dict[str, Any]:
    """
    Run every history analysis and print the results as JSON.

    Returns:
        {"recommendation": ..., "efficiency": ..., "discipline": ..., "patterns": ...}
    """
    config = config_loader.load_config(config_path)
    setup_logging_from_config(config, debug)

    report = {
        "recommendation": recommend(config, classroom_id),
        "efficiency": efficiency(config, classroom_id),
        "discipline": discipline(config, classroom_id, start_date, end_date),
        "patterns": patterns(config, classroom_id),
    }
    json.dump(report, sys.stdout, indent=2, ensure_ascii=False)
    print()

    if write:
        write_recommended_config(config, report["recommendation"])

    return report


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Recommend a warning threshold from recording history")
    parser.add_argument("--config", type=Path, help="Path to base config.json")
    parser.add_argument("--classroom", help="Classroom id to analyze")
    parser.add_argument("--start", type=datetime.date.fromisoformat, help="First day of the discipline report (YYYY-MM-DD)")
    parser.add_argument("--end", type=datetime.date.fromisoformat, help="Last day of the discipline report (YYYY-MM-DD)")
    parser.add_argument("--write", action="store_true", help=f"Write {RECOMMENDED_CONFIG_FILE}")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode (verbose logging)")

    args = parser.parse_args()

    run_tuning(
        args.config,
        args.classroom,
        write=args.write,
        debug=args.debug,
        start_date=args.start,
        end_date=args.end,
    )
