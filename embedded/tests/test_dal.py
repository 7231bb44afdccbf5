from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from asymmetry.core.dal import (
    SqlSummaryStore,
    add_summary_record,
    get_last_session_summary,
    get_session_history,
    get_session_summary,
)
from asymmetry.core.db import Base, make_engine
from asymmetry.reports.generator import SummaryRecord
from asymmetry.vision.keypoints import ExerciseType


@pytest.fixture
def db_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def record(exercise, minutes, **values):
    ts = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    return SummaryRecord(exercise_type=exercise, file_path=f"/tmp/{exercise.value}_{minutes}.csv", timestamp=ts, **values)


def test_add_and_get(db_factory):
    db = db_factory()
    try:
        row = add_summary_record(db, record(ExerciseType.PLANK, 0, avg_angle=168.0, min_angle=150.0, max_angle=179.0))
        assert row.id is not None
        fetched = get_session_summary(db, row.id)
        assert fetched.exercise_type == "PLANK"
        assert fetched.avg_angle == pytest.approx(168.0)
        assert fetched.avg_asymmetry is None
        assert fetched.created_at_utc == datetime(2024, 5, 1, 12, 0)
        assert get_session_summary(db, row.id + 100) is None
    finally:
        db.close()


def test_history_is_newest_first(db_factory):
    db = db_factory()
    try:
        assert get_last_session_summary(db) is None
        for minutes in (5, 0, 10):
            add_summary_record(db, record(ExerciseType.SQUAT, minutes, avg_asymmetry=1.0, max_asymmetry=2.0))
        history = get_session_history(db, limit=2)
        assert [r.file_path for r in history] == ["/tmp/SQUAT_10.csv", "/tmp/SQUAT_5.csv"]
        assert get_last_session_summary(db).file_path == "/tmp/SQUAT_10.csv"
    finally:
        db.close()


def test_sql_store(db_factory):
    store = SqlSummaryStore(db_factory)
    saved = store.add(record(ExerciseType.POSE, 1))
    assert saved.id is not None
    store.add(record(ExerciseType.SIDE_SQUAT, 2, avg_angle=95.0, min_angle=70.0, max_angle=170.0))
    rows = store.list(limit=10)
    assert [r.exercise_type for r in rows] == ["SIDE_SQUAT", "POSE"]
    assert rows[1].avg_asymmetry is None and rows[1].avg_angle is None
