#!/usr/bin/env python3
"""Offline report of a recorded session CSV.

Runs the same report engine the API uses and prints the feedback line and
one block per body part / angle. ``--json`` prints the raw report instead.

Usage:
  python scripts/analyze_session_file.py embedded/asymmetry/data/recordings/keypoints_..._SQUAT_pixel.csv
  python scripts/analyze_session_file.py record.csv --exercise PLANK --json
"""
from __future__ import annotations

import argparse
import json
import re
import sys
from pathlib import Path

# Ensure 'embedded' is on sys.path so that 'asymmetry.*' imports resolve even when running from repo root
REPO_ROOT = Path(__file__).resolve().parent.parent
EMBEDDED_DIR = REPO_ROOT / "embedded"
if str(EMBEDDED_DIR) not in sys.path:
    sys.path.insert(0, str(EMBEDDED_DIR))

from asymmetry.core.config import get_settings  # noqa: E402
from asymmetry.reports.generator import ReportParseError, generate_report  # noqa: E402
from asymmetry.vision.keypoints import ExerciseType  # noqa: E402

_FILE_EXERCISE = re.compile(r"keypoints_\d+_(?P<exercise>[A-Z_]+?)_[a-z]+\.csv$")


def exercise_from_filename(path: Path) -> str | None:
    match = _FILE_EXERCISE.search(path.name)
    return match.group("exercise") if match else None


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Report of a recorded session file")
    parser.add_argument("path", type=Path, help="Session CSV produced by the recorder")
    parser.add_argument(
        "--exercise",
        choices=[e.value for e in ExerciseType],
        default=None,
        help="Exercise type (default: taken from the file name)",
    )
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    exercise = args.exercise or exercise_from_filename(args.path)
    if not exercise:
        raise SystemExit("Could not infer the exercise from the file name; pass --exercise")
    try:
        report = generate_report(args.path, exercise, get_settings().report_thresholds())
    except ReportParseError as exc:
        raise SystemExit(f"Cannot analyze {args.path}: {exc}")

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return

    print(f"{report.exercise.display_name} ({report.kind})")
    print(report.feedback)
    print()
    for block in report.blocks:
        print(
            f"{block.title:<22} {block.severity.value:<10} "
            f"mean={block.mean:.1f}{block.unit} max={block.max:.1f} min={block.min:.1f} "
            f"std={block.std_dev:.2f} n={block.sample_count}"
        )
    if not report.blocks:
        print("No data for this exercise.")


if __name__ == "__main__":
    main()
