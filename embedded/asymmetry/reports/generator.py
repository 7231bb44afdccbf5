"""Report engine: aggregate a session record and classify session quality.

Front-view exercises are summarized per body part (asymmetry percentages),
side-view exercises per angle column. Thresholds come from
``ReportThresholds`` so every cut point is a named configuration value.
"""
from __future__ import annotations

import csv
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
from loguru import logger

from asymmetry.core.config import ReportThresholds
from asymmetry.core.session_recorder import (
    EXERCISE_COLUMN,
    NAN_TOKEN,
    PLANK_ANGLE_COLUMN,
    SQUAT_ANGLE_COLUMN,
    TIMESTAMP_COLUMN,
    AnalysisError,
    height_diff_column,
)
from asymmetry.vision.keypoints import BODY_PARTS, ExerciseType


class ReportParseError(AnalysisError):
    """Raised when a session record is missing, too short or malformed."""


class Severity(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_WORK = "needs_work"


@dataclass(frozen=True)
class AsymmetryStat:
    body_part: str
    mean: float
    max: float
    min: float
    std_dev: float
    sample_count: int


@dataclass(frozen=True)
class AngleStat:
    angle_type: str
    mean: float
    max: float
    min: float
    std_dev: float
    sample_count: int


@dataclass(frozen=True)
class AsymmetryResult:
    stats: Dict[str, AsymmetryStat] = field(default_factory=dict)


@dataclass(frozen=True)
class AngleResult:
    stats: Dict[str, AngleStat] = field(default_factory=dict)


AnalysisResult = Union[AsymmetryResult, AngleResult]

ANGLE_COLUMNS: Dict[ExerciseType, str] = {
    ExerciseType.SIDE_SQUAT: SQUAT_ANGLE_COLUMN,
    ExerciseType.PLANK: PLANK_ANGLE_COLUMN,
}

ANGLE_DISPLAY_NAMES = {
    SQUAT_ANGLE_COLUMN: "Squat Angle (Knee)",
    PLANK_ANGLE_COLUMN: "Plank Angle (Hip)",
}

# Reference angle used by the history list
IDEAL_ANGLES: Dict[ExerciseType, float] = {
    ExerciseType.SQUAT: 90.0,
    ExerciseType.SIDE_SQUAT: 90.0,
    ExerciseType.PLANK: 180.0,
}


def population_std(values: Sequence[float], mean: float) -> float:
    """Population standard deviation; 0 when fewer than two samples exist."""
    if len(values) < 2:
        return 0.0
    arr = np.asarray(values, dtype=float)
    return float(np.sqrt(np.mean((arr - mean) ** 2)))


def _describe(values: List[float]) -> Optional[tuple[float, float, float, float, int]]:
    if not values:
        return None
    mean = float(np.mean(values))
    return mean, float(max(values)), float(min(values)), population_std(values, mean), len(values)


# --- Parsing --------------------------------------------------------------


def _read_rows(path: Path) -> tuple[List[str], List[List[str]]]:
    path = Path(path)
    if not path.is_file():
        raise ReportParseError(f"Session record not found: {path}")
    try:
        with path.open("r", newline="", encoding="utf-8") as f:
            rows = [row for row in csv.reader(f) if row]
    except OSError as exc:
        raise ReportParseError(f"Could not read session record {path}: {exc}") from exc
    if len(rows) < 2:
        raise ReportParseError(f"Session record {path} is empty or has no data rows")
    header = [h.strip() for h in rows[0]]
    for required in (TIMESTAMP_COLUMN, EXERCISE_COLUMN):
        if required not in header:
            raise ReportParseError(f"Session record {path} is missing column '{required}'")
    return header, rows[1:]


def _column_values(header: List[str], rows: List[List[str]], column: str) -> List[float]:
    try:
        idx = header.index(column)
    except ValueError:
        raise ReportParseError(f"Session record is missing column '{column}'") from None
    values: List[float] = []
    for line_no, row in enumerate(rows, start=2):
        if idx >= len(row):
            continue
        cell = row[idx].strip()
        if not cell or cell == NAN_TOKEN:
            continue
        try:
            value = float(cell)
        except ValueError:
            raise ReportParseError(f"Invalid value '{cell}' in column '{column}' at line {line_no}") from None
        if not math.isnan(value):
            values.append(value)
    return values


def parse(path: Path, exercise: Union[ExerciseType, str]) -> AnalysisResult:
    """Read a session record and aggregate the columns relevant to ``exercise``.

    Columns with no numeric samples are omitted from the result.

    Raises:
        ReportParseError: missing file, fewer than two lines, a missing
            referenced column or a non-numeric cell.
    """
    exercise = ExerciseType.parse(exercise)
    header, rows = _read_rows(Path(path))

    if exercise.is_front:
        asym: Dict[str, AsymmetryStat] = {}
        for part in BODY_PARTS:
            desc = _describe(_column_values(header, rows, height_diff_column(part)))
            if desc is None:
                continue
            mean, mx, mn, std, count = desc
            asym[part] = AsymmetryStat(part, mean, mx, mn, std, count)
        return AsymmetryResult(asym)

    column = ANGLE_COLUMNS[exercise]
    angles: Dict[str, AngleStat] = {}
    desc = _describe(_column_values(header, rows, column))
    if desc is not None:
        mean, mx, mn, std, count = desc
        angles[column] = AngleStat(column, mean, mx, mn, std, count)
    return AngleResult(angles)


# --- Classification -------------------------------------------------------


def _tier(value: float, excellent_below: float, good_below: float) -> Severity:
    if value < excellent_below:
        return Severity.EXCELLENT
    if value < good_below:
        return Severity.GOOD
    return Severity.NEEDS_WORK


def classify_asymmetry(mean: float, th: ReportThresholds) -> Severity:
    """Severity of one body part card from its mean asymmetry."""
    return _tier(mean, th.asymmetry_excellent_pct, th.asymmetry_good_pct)


def classify_session_asymmetry(max_mean: float, th: ReportThresholds) -> Severity:
    """Whole-session tier from the largest per-part mean asymmetry."""
    return _tier(max_mean, th.feedback_asymmetry_excellent_pct, th.feedback_asymmetry_good_pct)


def classify_plank(stat: AngleStat, th: ReportThresholds) -> Severity:
    if stat.mean >= th.plank_excellent_deg:
        return Severity.EXCELLENT
    if stat.mean >= th.plank_good_deg:
        return Severity.GOOD
    return Severity.NEEDS_WORK


def classify_squat(stat: AngleStat, th: ReportThresholds) -> Severity:
    """Range-of-motion rule on the observed min/max knee angle."""
    if stat.min < th.squat_excellent_min_deg or stat.max > th.squat_excellent_max_deg:
        return Severity.EXCELLENT
    if stat.min <= th.squat_good_min_deg or stat.max >= th.squat_good_max_deg:
        return Severity.GOOD
    return Severity.NEEDS_WORK


def classify_angle(stat: AngleStat, th: ReportThresholds) -> Severity:
    if stat.angle_type == PLANK_ANGLE_COLUMN:
        return classify_plank(stat, th)
    return classify_squat(stat, th)


_ASYMMETRY_FEEDBACK = {
    Severity.EXCELLENT: "Excellent! Your body shows good overall symmetry with minimal imbalances.",
    Severity.GOOD: "Good work! Some minor asymmetries detected, which is normal.",
    Severity.NEEDS_WORK: "Noticeable asymmetries detected. Consider focusing on balanced exercises.",
}

_ANGLE_FEEDBACK = {
    SQUAT_ANGLE_COLUMN: {
        Severity.EXCELLENT: "Very good! Excellent squat form.",
        Severity.GOOD: "Good form! Some room for improvement.",
        Severity.NEEDS_WORK: "Bad form detected. Try improving your squat depth and stability.",
    },
    PLANK_ANGLE_COLUMN: {
        Severity.EXCELLENT: "Excellent! Your body alignment is very straight.",
        Severity.GOOD: "Good form! Keep your core engaged.",
        Severity.NEEDS_WORK: "Try to straighten your body more for better alignment.",
    },
}


def asymmetry_feedback(stats: Dict[str, AsymmetryStat], th: ReportThresholds) -> str:
    if not stats:
        return "No significant asymmetries detected. Good job!"
    worst = max(stats.values(), key=lambda s: s.mean)
    text = _ASYMMETRY_FEEDBACK[classify_session_asymmetry(worst.mean, th)]
    return f"{text}\n\nHighest asymmetry: {worst.body_part} ({worst.mean:.1f}% average difference)"


def angle_feedback(stats: Dict[str, AngleStat], th: ReportThresholds) -> str:
    if not stats:
        return "No angle data available."
    lines = []
    for angle_type, stat in stats.items():
        label = "Squat" if angle_type == SQUAT_ANGLE_COLUMN else "Plank"
        lines.append(f"{label}: {_ANGLE_FEEDBACK[angle_type][classify_angle(stat, th)]}")
    return "\n".join(lines)


# --- Report ---------------------------------------------------------------


@dataclass(frozen=True)
class ReportBlock:
    key: str
    title: str
    unit: str
    severity: Severity
    mean: float
    max: float
    min: float
    std_dev: float
    sample_count: int


@dataclass(frozen=True)
class SessionReport:
    exercise: ExerciseType
    kind: str
    feedback: str
    blocks: List[ReportBlock] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "exercise": self.exercise.value,
            "exercise_name": self.exercise.display_name,
            "kind": self.kind,
            "feedback": self.feedback,
            "blocks": [{**asdict(b), "severity": b.severity.value} for b in self.blocks],
        }


def build_report(result: AnalysisResult, exercise: ExerciseType, th: ReportThresholds) -> SessionReport:
    if isinstance(result, AsymmetryResult):
        blocks = [
            ReportBlock(
                key=part,
                title=part.capitalize(),
                unit="%",
                severity=classify_asymmetry(stat.mean, th),
                mean=stat.mean,
                max=stat.max,
                min=stat.min,
                std_dev=stat.std_dev,
                sample_count=stat.sample_count,
            )
            for part, stat in sorted(result.stats.items(), key=lambda kv: kv[1].mean, reverse=True)
        ]
        return SessionReport(exercise, "asymmetry", asymmetry_feedback(result.stats, th), blocks)

    blocks = [
        ReportBlock(
            key=angle_type,
            title=ANGLE_DISPLAY_NAMES.get(angle_type, angle_type.replace("_", " ").capitalize()),
            unit="deg",
            severity=classify_angle(stat, th),
            mean=stat.mean,
            max=stat.max,
            min=stat.min,
            std_dev=stat.std_dev,
            sample_count=stat.sample_count,
        )
        for angle_type, stat in result.stats.items()
    ]
    return SessionReport(exercise, "angle", angle_feedback(result.stats, th), blocks)


def generate_report(path: Path, exercise: Union[ExerciseType, str], th: Optional[ReportThresholds] = None) -> SessionReport:
    """Parse ``path`` and return the classified report."""
    exercise = ExerciseType.parse(exercise)
    th = th or ReportThresholds()
    result = parse(path, exercise)
    report = build_report(result, exercise, th)
    logger.info("Report generated exercise={} kind={} blocks={}", exercise.value, report.kind, len(report.blocks))
    return report


# --- Session summary ------------------------------------------------------


@dataclass(frozen=True)
class SummaryRecord:
    """Aggregated values persisted once per completed session.

    ``max_asymmetry`` is the largest per-part mean; ``avg_angle`` is the mean
    angle over the session and ``min_angle``/``max_angle`` the observed
    extremes.
    """

    exercise_type: ExerciseType
    file_path: str
    timestamp: datetime
    avg_asymmetry: Optional[float] = None
    max_asymmetry: Optional[float] = None
    avg_angle: Optional[float] = None
    min_angle: Optional[float] = None
    max_angle: Optional[float] = None


def summarize(
    result: Optional[AnalysisResult],
    exercise: ExerciseType,
    file_path: Path,
    timestamp: Optional[datetime] = None,
) -> SummaryRecord:
    ts = timestamp or datetime.now(timezone.utc)
    base = dict(exercise_type=exercise, file_path=str(file_path), timestamp=ts)
    if isinstance(result, AsymmetryResult) and result.stats:
        means = [s.mean for s in result.stats.values()]
        return SummaryRecord(**base, avg_asymmetry=float(np.mean(means)), max_asymmetry=max(means))
    if isinstance(result, AngleResult) and result.stats:
        stat = next(iter(result.stats.values()))
        return SummaryRecord(**base, avg_angle=stat.mean, min_angle=stat.min, max_angle=stat.max)
    return SummaryRecord(**base)


def classify_history(
    exercise: Union[ExerciseType, str],
    avg_asymmetry: Optional[float],
    max_asymmetry: Optional[float],
    avg_angle: Optional[float],
    th: ReportThresholds,
) -> str:
    """Quality label shown in the session history list."""
    if avg_asymmetry is not None:
        worst = max_asymmetry if max_asymmetry is not None else avg_asymmetry
        return _tier(worst, th.history_asymmetry_excellent_pct, th.history_asymmetry_good_pct).value
    if avg_angle is not None:
        try:
            ideal = IDEAL_ANGLES.get(ExerciseType.parse(exercise), 90.0)
        except ValueError:
            ideal = 90.0
        deviation = abs(avg_angle - ideal)
        return _tier(deviation, th.history_angle_excellent_dev, th.history_angle_good_dev).value
    return "unknown"
