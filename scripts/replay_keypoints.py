#!/usr/bin/env python3
"""Replay a JSON-lines keypoint capture against POST /pose/frame.

Each line is either a list of keypoints ``[{"name", "x", "y", "score"}, ...]``
or a full frame object ``{"keypoints": [...], "frame_width": ..., ...}``.
Optionally starts a session first so the replay ends up recorded.

Usage:
  python scripts/replay_keypoints.py capture.jsonl --fps 15 --start SQUAT
"""
from __future__ import annotations

import argparse
import json
import time
from pathlib import Path
from typing import Any, Dict, Iterator

import requests


def iter_frames(path: Path) -> Iterator[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            item = json.loads(line)
            if isinstance(item, list):
                item = {"keypoints": item}
            yield item


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay recorded keypoints to the backend")
    parser.add_argument("path", type=Path, help="JSON-lines keypoint file")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000", help="Backend URL (default: %(default)s)")
    parser.add_argument("--fps", type=float, default=15.0, help="Frames per second (default: %(default)s)")
    parser.add_argument("--start", metavar="EXERCISE", default=None, help="Start a session before replaying")
    parser.add_argument("--loop", action="store_true", help="Repeat the file until interrupted")
    parser.add_argument("--token", help="X-API-Key if required", default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    base = args.base_url.rstrip("/")
    headers = {"Content-Type": "application/json"}
    if args.token:
        headers["X-API-Key"] = args.token
    http = requests.Session()
    http.headers.update(headers)

    if args.start:
        resp = http.post(f"{base}/session/start", data=json.dumps({"exercise": args.start}), timeout=10)
        resp.raise_for_status()
        data = resp.json()
        if not data.get("success", False):
            raise SystemExit(f"Backend error: {data}")
        print(f"Session started: {data['data']['state']}")

    period = 1.0 / max(args.fps, 0.1)
    sent = usable = 0
    try:
        while True:
            for frame in iter_frames(args.path):
                t0 = time.monotonic()
                frame.setdefault("timestamp_ms", int(time.time() * 1000))
                resp = http.post(f"{base}/pose/frame", data=json.dumps(frame), timeout=5)
                resp.raise_for_status()
                sent += 1
                usable += int(bool(resp.json().get("data", {}).get("usable")))
                time.sleep(max(0.0, period - (time.monotonic() - t0)))
            if not args.loop:
                break
    except KeyboardInterrupt:
        pass
    print(f"Frames sent={sent} usable={usable}")


if __name__ == "__main__":
    main()
