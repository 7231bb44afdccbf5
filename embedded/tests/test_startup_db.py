from sqlalchemy import inspect


def test_summary_table_created_on_import():
    # Importing the app creates the tables through the session router
    from asymmetry.api.main import app  # noqa: F401
    from asymmetry.core.db import DB_PATH, engine

    assert DB_PATH.parent.exists()
    inspector = inspect(engine)
    assert "session_summary" in inspector.get_table_names()
    columns = {col["name"] for col in inspector.get_columns("session_summary")}
    assert {"exercise_type", "file_path", "created_at_utc", "avg_angle", "min_angle", "max_angle"} <= columns
