from __future__ import annotations

import json
import logging
import sys

from statebook.utils.logging import _json_formatter, configure_logging, get_logger

EXPECTED_STATUS = 404
EXPECTED_DURATION_MS = 1.5


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.status = EXPECTED_STATUS
    record.function = "readPicture"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["status"] == EXPECTED_STATUS
    assert payload["function"] == "readPicture"
    assert "lineno" not in payload


def test_json_formatter_includes_exception_text() -> None:
    try:
        raise ValueError("bad value")
    except ValueError:
        record = logging.LogRecord(
            name="test.logger",
            level=logging.ERROR,
            pathname=__file__,
            lineno=1,
            msg="failed",
            args=(),
            exc_info=sys.exc_info(),
        )
    record.duration_ms = EXPECTED_DURATION_MS

    payload = json.loads(_json_formatter(record))

    assert payload["duration_ms"] == EXPECTED_DURATION_MS
    assert "ValueError: bad value" in payload["exc_info"]


def test_json_formatter_stringifies_unserializable_values() -> None:
    record = _record()
    record.value = b"\x00raw"

    payload = json.loads(_json_formatter(record))

    assert payload["value"] == str(b"\x00raw")


def test_configure_logging_json_output(capsys) -> None:
    configure_logging(level="INFO", json_logs=True)
    get_logger("statebook.test").info("invoke succeeded", extra={"function": "initPicture"})

    line = capsys.readouterr().err.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["message"] == "invoke succeeded"
    assert payload["function"] == "initPicture"
