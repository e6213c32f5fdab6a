"""End-to-end tests: channel → bus → agent → bus → channel."""

import asyncio

import pytest

from nanogate.config.schema import Config
from nanogate.gateway import Gateway

from conftest import RecordingChannel, ScriptedProvider, text_response, tool_call_response


@pytest.fixture
def config(tmp_path):
    return Config(
        agents={"defaults": {"workspace": str(tmp_path / "workspace")}},
        tools={"message": {"enabled": False}},
    )


class TestGatewayWiring:
    def test_default_tools(self, tmp_path):
        gateway = Gateway(Config(agents={"defaults": {"workspace": str(tmp_path / "ws")}}),
                          provider=ScriptedProvider([text_response("x")]))
        assert gateway.tools.tool_names == ["read_file", "write_file", "edit_file", "list_dir", "exec", "message"]
        assert gateway.tools.frozen
        assert gateway.provider_registry.frozen
        assert (tmp_path / "ws" / "sessions").is_dir()

    def test_disabled_tools_not_registered(self, config):
        gateway = Gateway(config, provider=ScriptedProvider([text_response("x")]))
        assert "message" not in gateway.tools

    def test_builds_litellm_provider(self, config):
        gateway = Gateway(config)
        assert gateway.provider.get_default_model() == "glm-4-flash"


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_channel_message_gets_reply(self, config):
        gateway = Gateway(config, provider=ScriptedProvider([text_response("pong")]))
        channel = RecordingChannel(gateway.bus, channel_id="room-1")
        gateway.register_channel(channel)

        await gateway.start()
        try:
            inbound = await channel.receive("u1", "ping")
            await asyncio.wait_for(channel.delivered.wait(), timeout=2)
        finally:
            await gateway.stop()

        [reply] = channel.sent
        assert reply.content == "pong"
        assert reply.channel_id == "room-1"
        assert reply.metadata["reply_to"] == inbound.id
        assert len(gateway.sessions.get_history("fake:u1")) == 2

    @pytest.mark.asyncio
    async def test_tool_writes_into_workspace(self, config):
        provider = ScriptedProvider([
            tool_call_response("write_file", {"path": "todo.md", "content": "- buy milk"}),
            text_response("Saved."),
        ])
        gateway = Gateway(config, provider=provider)
        channel = RecordingChannel(gateway.bus)
        gateway.register_channel(channel)

        await gateway.start()
        try:
            await channel.receive("u1", "remember to buy milk")
            await asyncio.wait_for(channel.delivered.wait(), timeout=2)
        finally:
            await gateway.stop()

        assert channel.sent[0].content == "Saved."
        assert (gateway.workspace / "todo.md").read_text(encoding="utf-8") == "- buy milk"
