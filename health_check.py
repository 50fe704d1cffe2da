#!/usr/bin/env python3
"""
System health check - verifies the monitor can run on this machine.

Run this before a lesson to catch missing devices, tools or permissions.
"""
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import config_loader


def check_writable_dir(path: Path) -> Tuple[bool, str]:
    """Check that a directory exists (or can be created) and is writable."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return False, f"Cannot create directory {path}: {e}"

    test_file = path / ".health_check_test"
    try:
        test_file.touch()
        test_file.unlink()
    except PermissionError:
        return False, f"No write permission in directory: {path}"
    except OSError as e:
        return False, f"Error accessing {path}: {e}"
    return True, "OK"


def check_disk_space(path: Path, min_gb: float = 0.5) -> Tuple[bool, str]:
    """Check if there's enough disk space for recordings."""
    stat = shutil.disk_usage(path)
    free_gb = stat.free / (1024 ** 3)

    if free_gb < min_gb:
        return False, f"Low disk space: {free_gb:.2f} GB free (need {min_gb} GB)"

    return True, f"{free_gb:.2f} GB free"


def check_audio_system() -> Tuple[bool, str]:
    """Check that ALSA capture devices are listed."""
    try:
        result = subprocess.run(
            ["arecord", "-l"],
            capture_output=True,
            text=True,
            timeout=5
        )
    except FileNotFoundError:
        return False, "arecord not found - install alsa-utils"
    except subprocess.TimeoutExpired:
        return False, "arecord command timed out"

    if result.returncode != 0:
        return False, f"arecord -l failed: {result.stderr.strip()}"
    if "card" not in result.stdout:
        return False, "No capture devices found"
    return True, "Audio capture devices available"


def check_video(video_device: Optional[str]) -> Tuple[bool, str]:
    """Check the camera and ffmpeg; recordings fall back to audio only without them."""
    if not video_device:
        return True, "Video disabled in config (audio-only recordings)"
    if shutil.which("ffmpeg") is None:
        return False, "ffmpeg not found - recordings will be audio only"
    if not Path(video_device).exists():
        return False, f"{video_device} not found - recordings will be audio only"
    return True, f"{video_device} available"


def run_health_check(config_path: Path = None) -> bool:
    """
    Run the health check.

    Returns:
        True if all checks pass, False otherwise
    """
    print("=" * 60)
    print("CLASSROOM NOISE MONITOR HEALTH CHECK")
    print("=" * 60)
    print()

    checks: List[Tuple[str, bool, str]] = []

    try:
        config = config_loader.load_config(config_path)
        checks.append(("Configuration", True, "Configuration valid"))
    except Exception as e:
        checks.append(("Configuration", False, f"Config error: {e}"))
        config = config_loader.get_default_config()

    output_dir = Path(config["recording"]["output_dir"])
    checks.append(("Recordings Directory", *check_writable_dir(output_dir)))
    checks.append(("Disk Space", *check_disk_space(output_dir)))

    history_dir = Path(config["history"]["history_file"]).parent
    checks.append(("History Directory", *check_writable_dir(history_dir)))

    checks.append(("Audio System", *check_audio_system()))
    checks.append(("Video", *check_video(config["recording"].get("video_device"))))

    for name, ok, msg in checks:
        status = "✓" if ok else "✗"
        print(f"{status} {name}: {msg}")

    all_ok = all(ok for _, ok, _ in checks)

    print()
    print("=" * 60)
    if all_ok:
        print("✓ All checks passed - system ready")
    else:
        print("✗ Some checks failed - review issues above")
        print()
        print("Common fixes:")
        print("  - Audio issues: arecord -l, and add user to the audio group")
        print("  - Video issues: sudo apt-get install ffmpeg, check /dev/video*")
        print("  - Permission issues: check file/directory permissions")
    print("=" * 60)

    return all_ok


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="System health check")
    parser.add_argument("--config", type=Path, help="Path to config.json")

    args = parser.parse_args()
    success = run_health_check(args.config)
    sys.exit(0 if success else 1)
