import json
import logging

import pytest
import structlog

from api.logging_setup import REDACTED, configure_logging
from config import Settings


@pytest.fixture(autouse=True)
def _close_log_handlers():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def _read_events(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_errors_are_written_to_error_and_combined_files(tmp_path):
    configure_logging(Settings(jwt_secret="s", log_dir=str(tmp_path)))
    log = structlog.get_logger("tasks.test")

    log.info("task_created", task_id="t1")
    log.error("database_error", path="/api/tasks", password="secret1")

    errors = _read_events(tmp_path / "error.log")
    combined = _read_events(tmp_path / "combined.log")

    assert [e["event"] for e in errors] == ["database_error"]
    assert errors[0]["level"] == "error"
    assert errors[0]["password"] == REDACTED
    assert [e["event"] for e in combined] == ["task_created", "database_error"]


def test_exceptions_are_rendered_into_error_file(tmp_path):
    configure_logging(Settings(jwt_secret="s", log_dir=str(tmp_path)))
    log = structlog.get_logger("tasks.test")

    try:
        raise RuntimeError("disk on fire")
    except RuntimeError as e:
        log.error("unhandled_error", exc_info=e)

    (event,) = _read_events(tmp_path / "error.log")
    assert "RuntimeError: disk on fire" in event["exception"]


def test_no_files_without_log_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    configure_logging(Settings(jwt_secret="s"))

    structlog.get_logger("tasks.test").error("database_error")

    assert list(tmp_path.iterdir()) == []
    assert len(logging.getLogger().handlers) == 1
