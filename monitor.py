#!/usr/bin/env python3
"""
Live classroom noise monitor.

Runs the monitoring loop: one tick per captured audio chunk, printing the
loudness line and logging warnings and recordings.

Operator actions while running (applied at the next frame boundary):
    kill -USR1 <pid>   reset the warning counter
    kill -USR2 <pid>   stop the active recording
"""
import datetime
import signal
from pathlib import Path
from typing import Optional

import config_loader
from logger import get_logger, setup_logging_from_config
from noisewatch import (
    ArecordAudioSource,
    CaptureUnavailable,
    MonitoringSession,
    MonitorSettings,
    NoiseClassifier,
    TickResult,
    display_level,
    estimate_loudness,
    monotonic_clock,
)
from noisewatch.errors import InvalidFrame

log = get_logger(__name__)


class OperatorRequests:
    """Flags set from signal handlers and consumed by the loop."""

    def __init__(self):
        self.reset_warnings = False
        self.stop_recording = False

    def install(self) -> None:
        if hasattr(signal, "SIGUSR1"):
            signal.signal(signal.SIGUSR1, self._on_reset)
            signal.signal(signal.SIGUSR2, self._on_stop)

    def _on_reset(self, signum, frame) -> None:
        self.reset_warnings = True

    def _on_stop(self, signum, frame) -> None:
        self.stop_recording = True

    def apply(self, session: MonitoringSession, now: float) -> None:
        if self.reset_warnings:
            self.reset_warnings = False
            session.reset_warnings()
        if self.stop_recording:
            self.stop_recording = False
            session.stop_recording(now)


def run_monitor(
    config_path: Optional[Path] = None,
    debug: bool = False,
    classroom_id: Optional[str] = None
) -> None:
    """
    Run the noise monitor - main loop.

    Args:
        config_path: Optional path to config.json (defaults to ./config.json)
        debug: If True, enable verbose debug output
        classroom_id: Classroom stamped on saved recordings (overrides config)
    """
    try:
        config = config_loader.load_config(config_path)
    except Exception as e:
        log.error(f"Failed to load configuration: {e}")
        log.error("Check that config.json exists and is valid JSON")
        raise

    setup_logging_from_config(config, debug)
    if classroom_id:
        config["history"]["classroom_id"] = classroom_id

    session = MonitoringSession.from_config(config)
    _print_startup_info(config, session.settings)

    try:
        session.start()
    except CaptureUnavailable as e:
        log.error(f"Failed to start audio capture: {e}")
        log.error("Troubleshooting:")
        log.error("  1. Check audio device: arecord -l")
        log.error("  2. Verify device in config.json matches hardware")
        log.error("  3. Check permissions: groups (should include 'audio')")
        log.error("  4. Stop other processes using audio: pkill arecord")
        raise

    requests = OperatorRequests()
    requests.install()

    try:
        while session.source.is_running():
            now = monotonic_clock()
            requests.apply(session, now)

            result = session.tick(now)
            if result is None:
                log.info("Audio stream ended")
                break

            _print_metrics(result)

    except KeyboardInterrupt:
        log.info("Stopping monitor (Ctrl+C received)...")
    except Exception as e:
        log.error(f"Unexpected error in monitor loop: {e}", exc_info=debug)
        raise
    finally:
        stopped = session.stop(monotonic_clock())
        if stopped is not None and not stopped.saved:
            log.warning(f"Last recording was not saved to history: {stopped.error}")
        log.info("Monitor stopped and cleaned up.")


def live_sample(config_path: Optional[Path] = None, debug: bool = False) -> None:
    """
    Print live loudness and noise type without warnings or recording.

    Useful for picking a threshold for a room.
    """
    config = config_loader.load_config(config_path)
    setup_logging_from_config(config, debug)
    settings = MonitorSettings.from_config(config)
    classifier = NoiseClassifier(settings.classification_interval_sec)

    print("\nLive sampling (Ctrl+C to stop)...")
    with ArecordAudioSource(config) as source:
        try:
            while source.read_chunk() is not None:
                try:
                    loudness = estimate_loudness(source.next_magnitude_frame())
                except InvalidFrame:
                    continue
                classifier.classify_frame(source.next_time_domain_frame(), monotonic_clock())
                noise = classifier.last_result
                noise_str = f"{noise.label_en} ({noise.confidence:.2f})" if noise else "-"
                print(
                    f"loudness: {loudness:3d} dB | "
                    f"{display_level(loudness, settings.threshold_db, settings.warning_band_db):7s} | "
                    f"{noise_str}",
                    flush=True
                )
        except KeyboardInterrupt:
            print("\nStopped.\n")


def _print_startup_info(config: dict, settings: MonitorSettings) -> None:
    """Print startup information."""
    audio = config["audio"]
    recording = config["recording"]
    history = config["history"]

    print("=" * 60)
    print("CLASSROOM NOISE MONITOR - Starting")
    print("=" * 60)
    print(f"Audio Device: {audio['device']}")
    print(f"Sample Rate: {audio['sample_rate']} Hz (fft_size {audio['fft_size']})")
    print(f"Video Device: {recording.get('video_device') or 'disabled'}")
    print(f"Output Directory: {Path(recording['output_dir']).resolve()}")
    print(f"History File: {Path(history['history_file']).resolve()}")
    print(f"Classroom: {history.get('classroom_id') or '-'}")
    print(f"Threshold: {settings.threshold_db} dB, max warnings: {settings.max_warnings}")
    print(f"Cooldown: {settings.cooldown_sec:.1f}s, auto-stop after {settings.stop_delay_sec:.1f}s "
          f"below {settings.release_level} dB")
    print("=" * 60)
    print("Press Ctrl+C to stop.\n")


def _print_metrics(result: TickResult) -> None:
    """Print live monitoring metrics."""
    if result.skipped:
        return

    timestamp_str = datetime.datetime.now().strftime("%Y-%m-%dT%H:%M:%S")
    noise_str = ""
    if result.classification is not None:
        noise_str = f" | {result.classification.label_en} ({result.classification.confidence:.2f})"

    print(
        f"{timestamp_str} | loudness: {result.loudness:3d} dB | "
        f"{result.level:7s} | "
        f"warnings: {result.warning_count} | "
        f"{result.state.value.upper()}{noise_str}",
        flush=True
    )


if __name__ == "__main__":
    run_monitor()
