#!/usr/bin/env python3

import sys
import json
import argparse
from pathlib import Path

import config_loader
import monitor
import tune_thresholds
from logger import setup_logging_from_config

MENU = """
Classroom Noise Monitor – Main Menu
1) Run noise monitor
2) Take a sample (live loudness only)
3) Recommend a threshold
4) Analyze noise by time of day
5) Classroom discipline report
6) Noise patterns by hour and type
7) Exit
"""


def _print_json(data) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    print()


def _analysis(mode: str, config_path, classroom_id, debug: bool) -> None:
    config = config_loader.load_config(config_path)
    setup_logging_from_config(config, debug)
    if mode == "recommend":
        _print_json(tune_thresholds.recommend(config, classroom_id))
    elif mode == "report":
        _print_json(tune_thresholds.discipline(config, classroom_id))
    elif mode == "patterns":
        _print_json(tune_thresholds.patterns(config, classroom_id))
    else:
        _print_json(tune_thresholds.efficiency(config, classroom_id))


def main():
    parser = argparse.ArgumentParser(
        description="Classroom Noise Monitor - loudness warnings, recording and history analysis",
        epilog="""
Examples:
  python3 noise_detector.py monitor                 # Start monitoring
  python3 noise_detector.py monitor --debug         # Start with debug logging
  python3 noise_detector.py monitor --classroom 3A  # Tag recordings with a classroom
  python3 noise_detector.py sample                  # Live loudness only
  python3 noise_detector.py recommend               # Threshold recommendation (JSON)
  python3 noise_detector.py efficiency              # Time-of-day analysis (JSON)
  python3 noise_detector.py report                  # Classroom discipline report (JSON)
  python3 noise_detector.py patterns                # Hourly noise patterns (JSON)
  python3 noise_detector.py                         # Interactive menu
        """
    )
    parser.add_argument("mode", nargs="?", help="Mode: monitor, sample, recommend, efficiency, report, patterns")
    parser.add_argument("--config", type=Path, help="Path to config.json file")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode (verbose logging)")
    parser.add_argument("--classroom", help="Classroom id (recordings and analysis)")

    args = parser.parse_args()

    # If an argument is given, skip the menu and run directly
    if args.mode:
        mode = args.mode.lower()

        if mode == "monitor":
            monitor.run_monitor(args.config, debug=args.debug, classroom_id=args.classroom)
            return
        elif mode == "sample":
            monitor.live_sample(args.config, debug=args.debug)
            return
        elif mode in ("recommend", "efficiency", "report", "patterns"):
            _analysis(mode, args.config, args.classroom, args.debug)
            return
        else:
            print(f"Unknown mode: {mode}")
            sys.exit(2)

    # Interactive menu mode
    while True:
        print(MENU)
        choice = input("Choose an option: ").strip()

        if choice == "1":
            monitor.run_monitor(args.config, debug=args.debug, classroom_id=args.classroom)
        elif choice == "2":
            monitor.live_sample(args.config, debug=args.debug)
        elif choice == "3":
            _analysis("recommend", args.config, args.classroom, args.debug)
        elif choice == "4":
            _analysis("efficiency", args.config, args.classroom, args.debug)
        elif choice == "5":
            _analysis("report", args.config, args.classroom, args.debug)
        elif choice == "6":
            _analysis("patterns", args.config, args.classroom, args.debug)
        elif choice == "7":
            print("Goodbye.")
            break
        else:
            print("Invalid choice.")


if __name__ == "__main__":
    main()
