"""Tests for conversation models."""

from datetime import datetime, timezone

import pytest

from nanogate.models import ChatMessage, Role, ToolArguments, ToolCall, ToolResult


class TestToolArguments:
    def test_missing_keys_use_defaults(self):
        args = ToolArguments.parse('{"path": "a.txt"}')
        assert args.get_str("path") == "a.txt"
        assert args.get_str("missing") == ""
        assert args.get_int("missing") == 0
        assert args.get_float("missing") == 0.0
        assert args.get_bool("missing") is False
        assert args.get("missing") is None

    def test_malformed_json_is_empty(self):
        assert len(ToolArguments.parse("{not json")) == 0
        assert len(ToolArguments.parse("[1, 2]")) == 0
        assert len(ToolArguments.parse(None)) == 0

    def test_typed_accessors_coerce(self):
        args = ToolArguments({"n": "42", "f": 1, "flag": "yes", "off": "false", "b": True})
        assert args.get_int("n") == 42
        assert args.get_float("f") == 1.0
        assert args.get_bool("flag") is True
        assert args.get_bool("off") is False
        # bool 不当作整数
        assert args.get_int("b") == 0

    def test_dict_input(self):
        args = ToolArguments.parse({"command": "ls"})
        assert "command" in args
        assert args.to_dict() == {"command": "ls"}


class TestToolCall:
    def test_create_generates_id_and_serializes_dict(self):
        call = ToolCall.create("exec", {"command": "ls -la"})
        assert call.id.startswith("call_")
        assert call.args.get_str("command") == "ls -la"

    def test_create_keeps_given_id(self):
        assert ToolCall.create("exec", "{}", id="call_1").id == "call_1"

    def test_from_dict_openai_format(self):
        call = ToolCall.from_dict({
            "id": "c1",
            "type": "function",
            "function": {"name": "read_file", "arguments": '{"path": "x"}'},
        })
        assert call.function_name == "read_file"
        assert call.args.get_str("path") == "x"

    def test_from_dict_flat_format(self):
        call = ToolCall.from_dict({"id": "c2", "functionName": "exec", "arguments": {"command": "pwd"}})
        assert call.function_name == "exec"
        assert call.args.get_str("command") == "pwd"

    def test_to_dict_round_trip(self):
        call = ToolCall.create("exec", {"command": "ls"}, id="c3")
        assert ToolCall.from_dict(call.to_dict()) == call


class TestChatMessage:
    def test_to_dict_omits_empty_fields(self):
        data = ChatMessage.user("hi").to_dict()
        assert set(data) == {"role", "content", "timestamp"}
        assert data["role"] == "user"

    def test_assistant_with_tool_calls(self):
        call = ToolCall.create("exec", {"command": "ls"}, id="c1")
        msg = ChatMessage.assistant(None, [call])
        assert msg.content == ""
        restored = ChatMessage.from_dict(msg.to_dict())
        assert restored.role is Role.ASSISTANT
        assert restored.tool_calls[0].id == "c1"

    def test_tool_turn_to_llm_dict(self):
        data = ChatMessage.tool("c1", "output").to_llm_dict()
        assert data == {"role": "tool", "content": "output", "tool_call_id": "c1"}

    def test_iso_timestamp_accepted(self):
        msg = ChatMessage.from_dict({"role": "user", "content": "x", "timestamp": "2024-01-01T00:00:00+00:00"})
        expected = int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
        assert msg.timestamp == expected

    def test_invalid_timestamp_raises(self):
        with pytest.raises(ValueError):
            ChatMessage.from_dict({"role": "user", "content": "x", "timestamp": "yesterday"})

    def test_unknown_role_is_user(self):
        assert Role.parse("narrator") is Role.USER


class TestToolResult:
    def test_success_message(self):
        msg = ToolResult.ok("c1", "done").to_message()
        assert msg.role is Role.TOOL
        assert msg.tool_call_id == "c1"
        assert msg.content == "done"

    def test_failure_message(self):
        msg = ToolResult.fail("c1", "boom").to_message()
        assert msg.content == "Error: boom"

    def test_from_exception_without_message(self):
        result = ToolResult.from_exception("c1", RuntimeError())
        assert result.success is False
        assert result.error == "RuntimeError"
