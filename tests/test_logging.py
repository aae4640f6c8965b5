from __future__ import annotations

import json
import logging

from estatehub.logging_config import JsonFormatter


def test_json_formatter_includes_known_extras_only():
    record = logging.LogRecord("estatehub.test", logging.WARNING, __file__, 1, "reuse for %s", ("u1",), None)
    record.user_id = 7
    record.error_kind = "reuse_detected"
    record.password = "never"

    out = json.loads(JsonFormatter().format(record))

    assert out["level"] == "WARNING"
    assert out["message"] == "reuse for u1"
    assert out["user_id"] == 7
    assert out["error_kind"] == "reuse_detected"
    assert "password" not in out
