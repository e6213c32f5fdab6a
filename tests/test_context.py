"""Tests for the context builder."""

import pytest

from nanogate.agent.context import ContextBuilder
from nanogate.agent.tools.registry import ToolRegistry
from nanogate.bus.events import Message
from nanogate.models import ChatMessage, Role, ToolCall, ToolResult

from conftest import EchoTool


def _builder(workspace, sessions, max_history=50, system_prompt=None) -> ContextBuilder:
    tools = ToolRegistry()
    tools.register(EchoTool("exec"))
    tools.freeze()
    return ContextBuilder(workspace, sessions, tools, max_history=max_history, system_prompt=system_prompt)


def _inbound(content: str = "hello") -> Message:
    return Message.create(content=content, channel_type="api", user_id="u1", channel_id="default")


class TestBuild:
    @pytest.mark.asyncio
    async def test_new_session(self, workspace, sessions):
        conversation = await _builder(workspace, sessions).build(_inbound())
        assert [m.role for m in conversation] == [Role.SYSTEM, Role.USER]
        assert conversation[-1].content == "hello"

    @pytest.mark.asyncio
    async def test_history_between_system_and_user(self, workspace, sessions):
        sessions.append_message("api:u1", ChatMessage(role=Role.USER, content="before", timestamp=1000))
        sessions.append_message("api:u1", ChatMessage(role=Role.ASSISTANT, content="reply", timestamp=1001))

        conversation = await _builder(workspace, sessions).build(_inbound("now"))

        assert [m.content for m in conversation[1:]] == ["before", "reply", "now"]

    @pytest.mark.asyncio
    async def test_history_window(self, workspace, sessions):
        for i in range(10):
            sessions.append_message("api:u1", ChatMessage(role=Role.USER, content=f"m{i}", timestamp=1000 + i))

        conversation = await _builder(workspace, sessions, max_history=4).build(_inbound())

        assert len(conversation) == 6
        assert conversation[1].content == "m6"


class TestSystemPrompt:
    def test_sections(self, workspace, sessions):
        (workspace / "AGENTS.md").write_text("Always answer in haiku.", encoding="utf-8")
        prompt = _builder(workspace, sessions, system_prompt="Be brief.").build_system_prompt(_inbound())

        assert "You are nanogate" in prompt
        assert str(workspace.resolve()) in prompt
        assert "- exec: Fake exec tool" in prompt
        assert "# Instructions\n\nBe brief." in prompt
        assert "## AGENTS.md\n\nAlways answer in haiku." in prompt
        assert "Channel: api (default)" in prompt
        assert "User: u1" in prompt

    def test_missing_bootstrap_files_are_skipped(self, workspace, sessions):
        prompt = _builder(workspace, sessions).build_system_prompt()
        assert "SOUL.md" not in prompt
        assert "Current Session" not in prompt


class TestConversationUpdates:
    def test_tool_round(self, workspace, sessions):
        builder = _builder(workspace, sessions)
        conversation = [ChatMessage.system("s"), ChatMessage.user("u")]
        call = ToolCall.create("exec", {"command": "ls"}, id="c1")

        builder.add_assistant_message(conversation, None, [call])
        builder.add_tool_results(conversation, [ToolResult.fail("c1", "denied")])

        assert conversation[2].tool_calls[0].id == "c1"
        assert conversation[3].role is Role.TOOL
        assert conversation[3].tool_call_id == "c1"
        assert conversation[3].content == "Error: denied"
