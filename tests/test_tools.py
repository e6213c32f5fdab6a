"""Tests for the tool registry, executor and built-in tools."""

import asyncio
import sys
from typing import Any

import pytest

from nanogate.agent.tools.base import Tool
from nanogate.agent.tools.executor import ToolExecutor
from nanogate.agent.tools.filesystem import EditFileTool, ListDirTool, ReadFileTool, WriteFileTool
from nanogate.agent.tools.message import MessageTool
from nanogate.agent.tools.registry import ToolRegistry
from nanogate.agent.tools.shell import ExecTool
from nanogate.bus.events import Message
from nanogate.errors import SecurityError, ToolExecutionError, ToolTimeoutError
from nanogate.models import ToolArguments, ToolCall

from conftest import EchoTool, FailingTool, SlowTool

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")


class BarrierTool(Tool):
    """Completes only once `parties` invocations are running at the same time."""

    def __init__(self, name: str, barrier: dict[str, Any]):
        self._name = name
        self.barrier = barrier

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "waits for its siblings"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def invoke(self, args: ToolArguments) -> str:
        self.barrier["arrived"] += 1
        if self.barrier["arrived"] == self.barrier["parties"]:
            self.barrier["event"].set()
        await self.barrier["event"].wait()
        return self._name


class TestToolRegistry:
    def test_register_and_definitions(self):
        registry = ToolRegistry()
        assert registry.register(EchoTool("exec")) is True
        assert "exec" in registry
        [definition] = registry.get_definitions()
        assert definition["type"] == "function"
        assert definition["function"]["name"] == "exec"

    def test_disabled_tool_skipped(self):
        registry = ToolRegistry()
        assert registry.register(EchoTool("exec", enabled=False)) is False
        assert len(registry) == 0

    def test_frozen_registry(self):
        registry = ToolRegistry()
        registry.register(EchoTool("exec"))
        registry.freeze()
        with pytest.raises(RuntimeError):
            registry.register(EchoTool("other"))
        with pytest.raises(RuntimeError):
            registry.unregister("exec")
        assert registry.tool_names == ["exec"]


class TestToolExecutor:
    def _executor(self, *tools: Tool, timeout: float | None = None) -> ToolExecutor:
        registry = ToolRegistry()
        for tool in tools:
            registry.register(tool)
        return ToolExecutor(registry, timeout=timeout)

    @pytest.mark.asyncio
    async def test_success(self):
        executor = self._executor(EchoTool("exec", output="ok"))
        result = await executor.execute(ToolCall.create("exec", {"command": "ls"}, id="c1"))
        assert result.success
        assert result.content == "ok"
        assert result.tool_call_id == "c1"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        result = await self._executor().execute(ToolCall.create("nope", id="c1"))
        assert result.success is False
        assert result.error == "Tool not found: nope"
        assert result.tool_call_id == "c1"

    @pytest.mark.asyncio
    async def test_raising_tool(self):
        result = await self._executor(FailingTool("exec")).execute(ToolCall.create("exec", id="c1"))
        assert result.success is False
        assert "disk on fire" in result.error

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        executor = self._executor(EchoTool("exec"))
        result = await executor.execute(ToolCall.create("exec", {"command": 42}, id="c1"))
        assert result.success is False
        assert "command should be string" in result.error

    @pytest.mark.asyncio
    async def test_timeout(self):
        executor = self._executor(SlowTool("slow"), timeout=0.1)
        result = await executor.execute(ToolCall.create("slow", id="c1"))
        assert result.success is False
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_batch_runs_concurrently_and_keeps_order(self):
        barrier = {"arrived": 0, "parties": 3, "event": asyncio.Event()}
        executor = self._executor(*(BarrierTool(name, barrier) for name in ("a", "b", "c")))
        calls = [ToolCall.create(name, id=f"id-{name}") for name in ("c", "a", "b")]

        results = await asyncio.wait_for(executor.execute_batch(calls), timeout=2)

        assert [r.tool_call_id for r in results] == ["id-c", "id-a", "id-b"]
        assert [r.content for r in results] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        assert await self._executor().execute_batch([]) == []


class TestExecTool:
    @posix_only
    @pytest.mark.asyncio
    async def test_echo(self, workspace):
        tool = ExecTool(working_dir=str(workspace))
        output = await tool.invoke(ToolArguments({"command": "echo hello"}))
        assert "hello" in output
        assert output.endswith("Exit code: 0")

    @posix_only
    @pytest.mark.asyncio
    async def test_stderr_and_exit_code(self, workspace):
        tool = ExecTool(working_dir=str(workspace))
        output = await tool.invoke(ToolArguments({"command": "echo oops 1>&2; exit 3"}))
        assert "STDERR:" in output
        assert output.endswith("Exit code: 3")

    @pytest.mark.asyncio
    async def test_dangerous_pattern_blocked(self, workspace):
        tool = ExecTool(working_dir=str(workspace))
        with pytest.raises(SecurityError):
            await tool.invoke(ToolArguments({"command": "rm -rf /"}))

    def test_blocked_commands_match_whole_words(self, workspace):
        tool = ExecTool(working_dir=str(workspace), blocked_commands=["dd"], deny_patterns=[])
        tool._guard_command("git add notes.md")
        with pytest.raises(SecurityError, match="blocked command: dd"):
            tool._guard_command("dd of=/tmp/x")

    def test_allowlist(self, workspace):
        tool = ExecTool(working_dir=str(workspace), allow_patterns=[r"^ls\b"])
        tool._guard_command("ls -la")
        with pytest.raises(SecurityError, match="allowlist"):
            tool._guard_command("cat secrets")

    def test_workspace_restriction(self, workspace):
        tool = ExecTool(working_dir=str(workspace), restrict_to_workspace=True)
        with pytest.raises(SecurityError):
            tool._guard_command("cat ../secret")
        with pytest.raises(SecurityError):
            tool._guard_command("cat /etc/passwd")
        tool._guard_command(f"cat {workspace}/notes.md")

    @pytest.mark.asyncio
    async def test_working_dir_cannot_widen_sandbox(self, workspace):
        registry = ToolRegistry()
        registry.register(ExecTool(working_dir=str(workspace), restrict_to_workspace=True))
        executor = ToolExecutor(registry)

        for working_dir in ("/", "..", str(workspace.parent)):
            call = ToolCall.create("exec", {"command": "cat /etc/hostname", "working_dir": working_dir}, id="c1")
            result = await executor.execute(call)
            assert result.success is False
            assert "outside workspace" in result.error

    @posix_only
    @pytest.mark.asyncio
    async def test_working_dir_inside_workspace(self, workspace):
        (workspace / "sub").mkdir()
        tool = ExecTool(working_dir=str(workspace), restrict_to_workspace=True)
        output = await tool.invoke(ToolArguments({"command": "pwd", "working_dir": "sub"}))
        assert output.startswith(str((workspace / "sub").resolve()))

    @pytest.mark.asyncio
    async def test_empty_command(self, workspace):
        tool = ExecTool(working_dir=str(workspace))
        with pytest.raises(SecurityError):
            await tool.invoke(ToolArguments({"command": "  "}))

    @posix_only
    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, workspace):
        tool = ExecTool(working_dir=str(workspace), timeout=1)
        with pytest.raises(ToolTimeoutError):
            await tool.invoke(ToolArguments({"command": "sleep 5"}))

    @posix_only
    @pytest.mark.asyncio
    async def test_timeout_kills_child_processes(self, workspace):
        tool = ExecTool(working_dir=str(workspace), timeout=1)
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(ToolTimeoutError):
            await tool.invoke(ToolArguments({"command": "sleep 8; echo done"}))
        assert loop.time() - started < 3


class TestFileTools:
    @pytest.mark.asyncio
    async def test_write_then_read_relative(self, workspace):
        write = WriteFileTool(workspace)
        read = ReadFileTool(workspace)
        result = await write.invoke(ToolArguments({"path": "notes/a.txt", "content": "hello"}))
        assert result == "Successfully wrote 5 characters to notes/a.txt"
        assert (workspace / "notes" / "a.txt").read_text(encoding="utf-8") == "hello"
        assert await read.invoke(ToolArguments({"path": "notes/a.txt"})) == "hello"

    @pytest.mark.asyncio
    async def test_escape_blocked(self, workspace):
        read = ReadFileTool(workspace)
        with pytest.raises(SecurityError):
            await read.invoke(ToolArguments({"path": "../outside.txt"}))

    @pytest.mark.asyncio
    async def test_escape_allowed_when_unrestricted(self, workspace):
        outside = workspace.parent / "outside.txt"
        outside.write_text("free", encoding="utf-8")
        read = ReadFileTool(workspace, restrict_to_workspace=False)
        assert await read.invoke(ToolArguments({"path": "../outside.txt"})) == "free"

    @pytest.mark.asyncio
    async def test_read_missing_and_too_large(self, workspace):
        read = ReadFileTool(workspace, max_file_size=4)
        with pytest.raises(FileNotFoundError):
            await read.invoke(ToolArguments({"path": "missing.txt"}))
        (workspace / "big.txt").write_text("0123456789", encoding="utf-8")
        with pytest.raises(ToolExecutionError, match="too large"):
            await read.invoke(ToolArguments({"path": "big.txt"}))

    @pytest.mark.asyncio
    async def test_edit_unique_match(self, workspace):
        (workspace / "a.txt").write_text("hello world", encoding="utf-8")
        edit = EditFileTool(workspace)
        result = await edit.invoke(ToolArguments({"path": "a.txt", "old_text": "world", "new_text": "there"}))
        assert result == "Successfully edited a.txt"
        assert (workspace / "a.txt").read_text(encoding="utf-8") == "hello there"

    @pytest.mark.asyncio
    async def test_edit_ambiguous_or_missing(self, workspace):
        (workspace / "a.txt").write_text("x x", encoding="utf-8")
        edit = EditFileTool(workspace)
        with pytest.raises(ToolExecutionError, match="2 times"):
            await edit.invoke(ToolArguments({"path": "a.txt", "old_text": "x", "new_text": "y"}))
        with pytest.raises(ToolExecutionError, match="not found"):
            await edit.invoke(ToolArguments({"path": "a.txt", "old_text": "z", "new_text": "y"}))

    @pytest.mark.asyncio
    async def test_list_dir(self, workspace):
        (workspace / "sub").mkdir()
        (workspace / "b.txt").write_text("", encoding="utf-8")
        listing = await ListDirTool(workspace).invoke(ToolArguments({}))
        assert listing.splitlines() == ["📄 b.txt", "📁 sub"]
        assert await ListDirTool(workspace).invoke(ToolArguments({"path": "sub"})) == "Directory sub is empty"


class TestMessageTool:
    @pytest.mark.asyncio
    async def test_uses_bound_target(self):
        sent: list[Message] = []

        async def send(msg: Message) -> None:
            sent.append(msg)

        tool = MessageTool(send)
        inbound = Message.create(content="hi", channel_type="feishu", user_id="ou_1", channel_id="room")
        token = tool.set_context(inbound)
        try:
            result = await tool.invoke(ToolArguments({"content": "progress update"}))
        finally:
            tool.reset_context(token)

        assert result == "Message sent to feishu:room"
        assert sent[0].channel_type == "feishu"
        assert sent[0].user_id == "ou_1"
        assert sent[0].metadata["source"] == "message_tool"
        assert tool.current_target is None

    @pytest.mark.asyncio
    async def test_explicit_target_without_context(self):
        sent: list[Message] = []

        async def send(msg: Message) -> None:
            sent.append(msg)

        tool = MessageTool(send)
        result = await tool.invoke(ToolArguments({"content": "ping", "channel_type": "qq"}))
        assert result == "Message sent to qq:-"
        assert sent[0].channel_type == "qq"

    @pytest.mark.asyncio
    async def test_missing_target_or_callback(self):
        with pytest.raises(ToolExecutionError, match="not configured"):
            await MessageTool().invoke(ToolArguments({"content": "x"}))

        async def send(msg: Message) -> None:
            pass

        with pytest.raises(ToolExecutionError, match="No target"):
            await MessageTool(send).invoke(ToolArguments({"content": "x"}))
