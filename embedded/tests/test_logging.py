from __future__ import annotations

from loguru import logger

from asymmetry.core.logging_config import setup_logging


def test_file_sink_receives_records(tmp_path):
    log_file = tmp_path / "logs" / "app.log"
    sink_id = setup_logging("DEBUG", log_file)
    try:
        logger.info("Recording started exercise={}", "SQUAT")
        logger.complete()
    finally:
        logger.remove(sink_id)
        setup_logging("INFO")
    text = log_file.read_text()
    assert "INFO" in text
    assert "Recording started exercise=SQUAT" in text


def test_console_only():
    assert setup_logging("WARNING") is None
    setup_logging("INFO")
