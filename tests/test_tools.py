"""Tests for the built-in tools and the JSON log formatter."""

import datetime
import json
import logging

from mcp_gateway.registry import ToolRegistry
from mcp_gateway.server import JSONLogFormatter
from mcp_gateway.tools import GET_CURRENT_TIME, TIME_FORMAT, get_current_time, register_builtin_tools


class TestGetCurrentTime:
    def test_format(self):
        value = get_current_time({})

        parsed = datetime.datetime.strptime(value, TIME_FORMAT)
        assert abs((datetime.datetime.now() - parsed).total_seconds()) < 5

    def test_ignores_arguments(self):
        assert len(get_current_time({"timezone": "UTC", "junk": [1, 2]})) == 19

    def test_definition(self):
        assert GET_CURRENT_TIME.name == "get_current_time"
        assert GET_CURRENT_TIME.handler is get_current_time
        assert GET_CURRENT_TIME.parameters.properties == {}


def test_register_builtin_tools():
    registry = ToolRegistry()

    register_builtin_tools(registry)

    assert registry.get("get_current_time") is GET_CURRENT_TIME


class TestJSONLogFormatter:
    def make_record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord(
            name="mcp-gateway",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Tool call %s",
            args=("authorized",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_single_line_json(self):
        line = JSONLogFormatter().format(self.make_record())

        assert "\n" not in line
        entry = json.loads(line)
        assert entry["level"] == "INFO"
        assert entry["logger"] == "mcp-gateway"
        assert entry["message"] == "Tool call authorized"
        assert "timestamp" in entry

    def test_structured_fields_are_merged(self):
        record = self.make_record(log_data={"agent_id": "alice", "decision": "allowed"})

        entry = json.loads(JSONLogFormatter().format(record))

        assert entry["agent_id"] == "alice"
        assert entry["decision"] == "allowed"
