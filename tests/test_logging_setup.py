import json
import logging

from commerce_sync.logging_setup import JsonFormatter, MergeExtraAdapter, TruncatingFileHandler, setup_logging


class CaptureHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _record(message="draft_created"):
    return logging.LogRecord("commerce_sync", logging.INFO, __file__, 10, message, args=(), exc_info=None)


def test_json_formatter_includes_extras():
    record = _record()
    record.draftKey = "shoes"
    record.kind = "categories"

    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "draft_created"
    assert payload["logger"] == "commerce_sync"
    assert payload["draftKey"] == "shoes"
    assert payload["kind"] == "categories"
    assert "lineno" not in payload


def test_json_formatter_serializes_sets_sorted():
    record = _record("draft_deferred")
    record.missingKeys = {"b", "a"}

    payload = json.loads(JsonFormatter().format(record))
    assert payload["missingKeys"] == ["a", "b"]


def test_merge_extra_adapter_merges_extras():
    logger = logging.getLogger("test_merge_extra")
    logger.handlers.clear()
    logger.setLevel(logging.INFO)
    handler = CaptureHandler()
    logger.addHandler(handler)

    adapter = MergeExtraAdapter(logger, {"runId": "run-1"})
    adapter.info("sync_started", extra={"event": "sync_started"})

    payload = json.loads(JsonFormatter().format(handler.records[0]))
    assert payload["runId"] == "run-1"
    assert payload["event"] == "sync_started"


def test_truncating_file_handler_limits_size(tmp_path):
    log_path = tmp_path / "sync.log"
    handler = TruncatingFileHandler(log_path, max_bytes=400)
    handler.setFormatter(JsonFormatter())

    logger = logging.getLogger("test_truncate")
    logger.handlers.clear()
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)

    for _ in range(100):
        logger.info("x" * 50)

    handler.flush()
    handler.close()
    assert log_path.stat().st_size <= 400
    for line in log_path.read_text(encoding="utf-8").splitlines():
        assert json.loads(line)["message"] == "x" * 50


class RecordingFileHandler(TruncatingFileHandler):
    def __init__(self, filename, max_bytes):
        super().__init__(filename, max_bytes)
        self.handled_errors = []

    def handleError(self, record):
        self.handled_errors.append(record)


def test_truncating_file_handler_survives_a_removed_log_file(tmp_path):
    log_path = tmp_path / "sync.log"
    handler = RecordingFileHandler(log_path, max_bytes=400)
    handler.setFormatter(JsonFormatter())

    for _ in range(3):
        handler.emit(_record("x" * 50))
    log_path.unlink()
    for _ in range(10):
        handler.emit(_record("x" * 50))

    handler.close()
    assert handler.handled_errors == []
    assert not log_path.exists()


def test_setup_logging_writes_json_lines(tmp_path):
    log_file = tmp_path / "logs" / "sync.log"

    logger = setup_logging(str(log_file), "INFO", "run-7")
    logger.info("sync_finished", extra={"event": "sync_finished"})
    logger.debug("hidden", extra={"event": "hidden"})
    for handler in logger.logger.handlers:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["runId"] == "run-7"
    assert payload["event"] == "sync_finished"

    for handler in list(logger.logger.handlers):
        handler.close()
        logger.logger.removeHandler(handler)
