from __future__ import annotations

from datetime import datetime, timezone

import pytest

from asymmetry.core.config import ReportThresholds
from asymmetry.core.session_recorder import SessionRecorder, record_header
from asymmetry.reports.generator import (
    AngleResult,
    AngleStat,
    AsymmetryResult,
    ReportParseError,
    Severity,
    classify_angle,
    classify_asymmetry,
    classify_history,
    generate_report,
    parse,
    summarize,
)
from asymmetry.vision.keypoints import ExerciseType
from asymmetry.vision.metrics import MetricRow

TH = ReportThresholds()


def write_rows(path, exercise, rows):
    rec = SessionRecorder()
    rec.open(path, exercise)
    for row in rows:
        rec.append_row(row)
    rec.close()
    return path


def asym_row(ts, **parts):
    return MetricRow(timestamp_ms=ts, exercise=ExerciseType.SQUAT, asymmetry=parts)


def angle_stat(column, mean, mn, mx):
    return AngleStat(column, mean, mx, mn, 0.0, 3)


def test_missing_file(tmp_path):
    with pytest.raises(ReportParseError):
        parse(tmp_path / "nope.csv", ExerciseType.SQUAT)


def test_header_only_file(tmp_path):
    path = tmp_path / "rec.csv"
    path.write_text(",".join(record_header()) + "\n")
    with pytest.raises(ReportParseError):
        parse(path, ExerciseType.SQUAT)


def test_non_numeric_cell(tmp_path):
    path = tmp_path / "rec.csv"
    header = record_header()
    row = ["1", "SQUAT", "abc"] + ["NaN"] * (len(header) - 3)
    path.write_text(",".join(header) + "\n" + ",".join(row) + "\n")
    with pytest.raises(ReportParseError):
        parse(path, ExerciseType.SQUAT)


def test_missing_referenced_column(tmp_path):
    path = tmp_path / "rec.csv"
    path.write_text("timestamp,exercise_type,shoulder_height_diff\n1,SQUAT,2.0\n")
    with pytest.raises(ReportParseError):
        parse(path, ExerciseType.SQUAT)


def test_single_sample_and_empty_groups(tmp_path):
    path = write_rows(tmp_path / "rec.csv", ExerciseType.SQUAT, [asym_row(1, shoulder=3.5)])
    result = parse(path, ExerciseType.SQUAT)
    assert isinstance(result, AsymmetryResult)
    assert set(result.stats) == {"shoulder"}
    stat = result.stats["shoulder"]
    assert stat.std_dev == 0.0
    assert stat.mean == stat.max == stat.min == 3.5
    assert stat.sample_count == 1


def test_population_std(tmp_path):
    rows = [asym_row(i, hip=v) for i, v in enumerate((2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0))]
    result = parse(write_rows(tmp_path / "rec.csv", ExerciseType.SQUAT, rows), ExerciseType.SQUAT)
    assert result.stats["hip"].mean == pytest.approx(5.0)
    assert result.stats["hip"].std_dev == pytest.approx(2.0)


def test_plank_ignores_squat_angle(tmp_path):
    path = tmp_path / "rec.csv"
    header = record_header()
    values = {"timestamp": "1", "exercise_type": "PLANK", "squat_angle": "120.0"}
    row = [values.get(col, "NaN") for col in header]
    path.write_text(",".join(header) + "\n" + ",".join(row) + "\n")
    result = parse(path, ExerciseType.PLANK)
    assert isinstance(result, AngleResult)
    assert "plank_angle" not in result.stats
    report = generate_report(path, ExerciseType.PLANK)
    assert report.blocks == []
    assert report.feedback == "No angle data available."


def test_asymmetry_tiers():
    assert classify_asymmetry(1.9, TH) is Severity.EXCELLENT
    assert classify_asymmetry(2.0, TH) is Severity.GOOD
    assert classify_asymmetry(4.99, TH) is Severity.GOOD
    assert classify_asymmetry(5.0, TH) is Severity.NEEDS_WORK


def test_plank_tiers():
    assert classify_angle(angle_stat("plank_angle", 171.0, 165, 178), TH) is Severity.EXCELLENT
    assert classify_angle(angle_stat("plank_angle", 165.0, 160, 170), TH) is Severity.GOOD
    assert classify_angle(angle_stat("plank_angle", 150.0, 140, 158), TH) is Severity.NEEDS_WORK


def test_squat_range_of_motion_tiers():
    assert classify_angle(angle_stat("squat_angle", 100.0, 55.0, 170.0), TH) is Severity.EXCELLENT
    assert classify_angle(angle_stat("squat_angle", 120.0, 90.0, 150.0), TH) is Severity.GOOD
    assert classify_angle(angle_stat("squat_angle", 120.0, 100.0, 160.0), TH) is Severity.GOOD
    assert classify_angle(angle_stat("squat_angle", 125.0, 100.0, 150.0), TH) is Severity.NEEDS_WORK


def test_report_blocks_sorted_and_feedback(tmp_path):
    rows = [
        asym_row(1, shoulder=1.0, knee=7.0, hip=3.0),
        asym_row(2, shoulder=1.0, knee=7.0, hip=3.0),
    ]
    report = generate_report(write_rows(tmp_path / "rec.csv", ExerciseType.SQUAT, rows), "SQUAT")
    assert report.kind == "asymmetry"
    assert [b.key for b in report.blocks] == ["knee", "hip", "shoulder"]
    assert [b.severity for b in report.blocks] == [Severity.NEEDS_WORK, Severity.GOOD, Severity.EXCELLENT]
    assert report.feedback.startswith("Noticeable asymmetries detected.")
    assert report.feedback.endswith("Highest asymmetry: knee (7.0% average difference)")
    data = report.to_dict()
    assert data["exercise_name"] == "Squat"
    assert data["blocks"][0]["severity"] == "needs_work"


def test_front_report_without_samples(tmp_path):
    rows = [asym_row(1), asym_row(2)]
    report = generate_report(write_rows(tmp_path / "rec.csv", ExerciseType.SQUAT, rows), ExerciseType.SQUAT)
    assert report.blocks == []
    assert report.feedback == "No significant asymmetries detected. Good job!"


def test_side_squat_report(tmp_path):
    rows = [
        MetricRow(timestamp_ms=i, exercise=ExerciseType.SIDE_SQUAT, squat_angle=v)
        for i, v in enumerate((170.0, 120.0, 85.0))
    ]
    path = write_rows(tmp_path / "rec.csv", ExerciseType.SIDE_SQUAT, rows)
    report = generate_report(path, ExerciseType.SIDE_SQUAT)
    assert report.kind == "angle"
    assert len(report.blocks) == 1
    block = report.blocks[0]
    assert block.key == "squat_angle"
    assert block.min == pytest.approx(85.0)
    assert block.severity is Severity.GOOD
    assert report.feedback == "Squat: Good form! Some room for improvement."


def test_summary_of_angles_keeps_mean():
    stat = AngleStat("squat_angle", 120.0, 170.0, 80.0, 30.0, 4)
    record = summarize(AngleResult({"squat_angle": stat}), ExerciseType.SIDE_SQUAT, "rec.csv")
    assert record.avg_angle == 120.0
    assert record.min_angle == 80.0
    assert record.max_angle == 170.0
    assert record.avg_asymmetry is None


def test_summary_of_asymmetry(tmp_path):
    rows = [asym_row(1, shoulder=2.0, knee=6.0)]
    result = parse(write_rows(tmp_path / "rec.csv", ExerciseType.SQUAT, rows), ExerciseType.SQUAT)
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    record = summarize(result, ExerciseType.SQUAT, tmp_path / "rec.csv", ts)
    assert record.avg_asymmetry == pytest.approx(4.0)
    assert record.max_asymmetry == pytest.approx(6.0)
    assert record.timestamp == ts
    assert record.avg_angle is None


def test_summary_without_result():
    record = summarize(None, ExerciseType.PLANK, "rec.csv")
    assert record.avg_angle is None and record.avg_asymmetry is None


def test_history_labels():
    assert classify_history("SQUAT", 2.0, 4.0, None, TH) == "excellent"
    assert classify_history("SQUAT", 3.0, 7.0, None, TH) == "good"
    assert classify_history("SQUAT", 5.0, 12.0, None, TH) == "needs_work"
    assert classify_history("PLANK", None, None, 175.0, TH) == "excellent"
    assert classify_history("SIDE_SQUAT", None, None, 105.0, TH) == "good"
    assert classify_history("SIDE_SQUAT", None, None, 130.0, TH) == "needs_work"
    assert classify_history("POSE", None, None, None, TH) == "unknown"
