"""Shared fixtures: scripted LLM provider, fake tools and a recording channel."""

import asyncio
from pathlib import Path
from typing import Any

import pytest

from nanogate.agent.context import ContextBuilder
from nanogate.agent.loop import AgentLoop
from nanogate.agent.tools.base import Tool
from nanogate.agent.tools.executor import ToolExecutor
from nanogate.agent.tools.registry import ToolRegistry
from nanogate.bus.events import Message
from nanogate.bus.queue import MessageBus
from nanogate.channels.base import BaseChannel
from nanogate.config.schema import ChannelConfig
from nanogate.models import ChatMessage, ToolArguments, ToolCall
from nanogate.providers.base import ChatProvider, ChatResponse
from nanogate.providers.registry import ProviderRegistry
from nanogate.session.manager import SessionManager


# ============================================================================
# Mock Classes
# ============================================================================

class ScriptedProvider(ChatProvider):
    """Returns queued responses in order; the last one repeats once the script runs out."""

    def __init__(self, responses: list[ChatResponse | Exception], model: str = "glm-4-flash"):
        self.responses = list(responses)
        self.model = model
        self.calls: list[dict[str, Any]] = []

    async def chat(self, messages: list[ChatMessage], tools: list[dict[str, Any]] | None = None) -> ChatResponse:
        self.calls.append({"messages": list(messages), "tools": tools})
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response

    def get_default_model(self) -> str:
        return self.model


class EchoTool(Tool):
    """Records calls and returns a fixed output."""

    def __init__(self, name: str = "exec", output: str = "file_a.txt\nfile_b.txt", enabled: bool = True):
        self._name = name
        self.output = output
        self.enabled = enabled
        self.calls: list[ToolArguments] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Fake {self._name} tool"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"command": {"type": "string"}},
        }

    def is_enabled(self) -> bool:
        return self.enabled

    async def invoke(self, args: ToolArguments) -> str:
        self.calls.append(args)
        return self.output


class FailingTool(EchoTool):
    async def invoke(self, args: ToolArguments) -> str:
        raise RuntimeError("disk on fire")


class SlowTool(EchoTool):
    async def invoke(self, args: ToolArguments) -> str:
        await asyncio.sleep(5)
        return "too late"


class RecordingChannel(BaseChannel):
    channel_type = "fake"

    def __init__(self, bus: MessageBus, channel_id: str | None = None, enabled: bool = True,
                 allow_from: list[str] | None = None, fail_on_send: bool = False):
        super().__init__(ChannelConfig(enabled=enabled, allow_from=allow_from or []), bus, channel_id)
        self.sent: list[Message] = []
        self.fail_on_send = fail_on_send
        self.delivered = asyncio.Event()

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    async def send_message(self, msg: Message) -> None:
        if self.fail_on_send:
            raise ConnectionError("platform unreachable")
        self.sent.append(msg)
        self.delivered.set()

    async def receive(self, user_id: str, content: str) -> Message | None:
        return await self._handle_message(user_id=user_id, content=content)


def tool_call_response(name: str, arguments: dict[str, Any] | str | None = None,
                       call_id: str | None = None) -> ChatResponse:
    return ChatResponse(content=None, tool_calls=[ToolCall.create(name, arguments, id=call_id)],
                        finish_reason="tool_calls")


def text_response(content: str) -> ChatResponse:
    return ChatResponse(content=content)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def sessions(workspace: Path) -> SessionManager:
    return SessionManager(workspace)


@pytest.fixture
def bus() -> MessageBus:
    return MessageBus(buffer_size=16)


@pytest.fixture
def make_agent(workspace: Path, sessions: SessionManager):
    """Build an AgentLoop around a scripted provider and the given tools."""

    def _make(provider: ChatProvider | None, tools: list[Tool] | None = None,
              max_iterations: int = 10, bus: MessageBus | None = None) -> AgentLoop:
        registry = ToolRegistry()
        for tool in tools or []:
            registry.register(tool)
        registry.freeze()
        context = ContextBuilder(workspace, sessions, registry, max_history=50)
        return AgentLoop(
            context=context,
            provider=provider,
            tools=registry,
            executor=ToolExecutor(registry),
            sessions=sessions,
            provider_registry=ProviderRegistry(),
            max_iterations=max_iterations,
            bus=bus,
        )

    return _make
