"""SessionRecorder: writes one CSV row of metrics per accepted frame.

- Fixed header shared by every exercise type
- ``NaN`` for any value that is not applicable or not visible
- Flushes after every row; closing is idempotent
"""
from __future__ import annotations

import csv
import math
import threading
from pathlib import Path
from typing import IO, List, Optional

from loguru import logger

from asymmetry.vision.keypoints import BODY_PARTS, ExerciseType
from asymmetry.vision.metrics import MetricRow

NAN_TOKEN = "NaN"
TIMESTAMP_COLUMN = "timestamp"
EXERCISE_COLUMN = "exercise_type"
SQUAT_ANGLE_COLUMN = "squat_angle"
PLANK_ANGLE_COLUMN = "plank_angle"


class AnalysisError(Exception):
    """Base class for recording and report failures."""


class RecordingError(AnalysisError):
    """Raised when the session record cannot be opened or written."""


def height_diff_column(part: str) -> str:
    return f"{part}_height_diff"


def coordinate_columns(part: str) -> List[str]:
    return [f"left_{part}_x", f"left_{part}_y", f"right_{part}_x", f"right_{part}_y"]


def record_header() -> List[str]:
    header = [TIMESTAMP_COLUMN, EXERCISE_COLUMN]
    header.extend(height_diff_column(p) for p in BODY_PARTS)
    header.extend([SQUAT_ANGLE_COLUMN, PLANK_ANGLE_COLUMN])
    for part in BODY_PARTS:
        header.extend(coordinate_columns(part))
    return header


def format_value(value: Optional[float]) -> str:
    if value is None or math.isnan(value):
        return NAN_TOKEN
    return repr(float(value))


def serialize_row(row: MetricRow) -> List[str]:
    cells = [str(int(row.timestamp_ms)), row.exercise.value]
    cells.extend(format_value(row.asymmetry.get(p)) for p in BODY_PARTS)
    cells.extend([format_value(row.squat_angle), format_value(row.plank_angle)])
    for part in BODY_PARTS:
        coords = row.coordinates.get(part) or (None, None, None, None)
        cells.extend(format_value(v) for v in coords)
    return cells


class SessionRecorder:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fh: Optional[IO[str]] = None
        self._writer = None
        self._path: Optional[Path] = None
        self._exercise: Optional[ExerciseType] = None
        self._last_ts: Optional[int] = None
        self.rows_written: int = 0

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def open(self, path: Path, exercise: ExerciseType) -> None:
        """Create or truncate ``path`` and write the header row."""
        with self._lock:
            if self._fh is not None:
                raise RecordingError(f"Recorder already open on {self._path}")
            path = Path(path)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fh = path.open("w", newline="", encoding="utf-8")
            except OSError as exc:
                raise RecordingError(f"Could not create session record {path}: {exc}") from exc
            self._fh = fh
            self._writer = csv.writer(fh, lineterminator="\n")
            self._path = path
            self._exercise = exercise
            self._last_ts = None
            self.rows_written = 0
            try:
                self._write(record_header())
            except RecordingError:
                self._fh = None
                self._writer = None
                fh.close()
                raise
        logger.info("Recording {} to {}", exercise.value, path)

    def append_row(self, row: MetricRow) -> int:
        """Write one metric row and flush. Returns the timestamp written."""
        with self._lock:
            if self._fh is None:
                raise RecordingError("Recorder is not open")
            if row.exercise is not self._exercise:
                raise RecordingError(
                    f"Row for {row.exercise.value} does not belong to {self._exercise.value if self._exercise else None} session"
                )
            ts = int(row.timestamp_ms)
            if self._last_ts is not None and ts <= self._last_ts:
                if ts < self._last_ts:
                    raise RecordingError(f"Out of order row: {ts} < {self._last_ts}")
                ts = self._last_ts + 1
            cells = serialize_row(row)
            cells[0] = str(ts)
            self._write(cells)
            self._last_ts = ts
            self.rows_written += 1
            return ts

    def close(self) -> None:
        with self._lock:
            fh = self._fh
            if fh is None:
                return
            self._fh = None
            self._writer = None
            try:
                fh.flush()
                fh.close()
            except OSError as exc:
                raise RecordingError(f"Failed closing session record {self._path}: {exc}") from exc
        logger.info("Closed session record {} rows={}", self._path, self.rows_written)

    def _write(self, cells: List[str]) -> None:
        assert self._fh is not None and self._writer is not None
        try:
            self._writer.writerow(cells)
            self._fh.flush()
        except OSError as exc:
            raise RecordingError(f"Failed writing session record {self._path}: {exc}") from exc
