# -*- coding: utf-8 -*-
"""
================================================================================
Gateway Runtime - 网关运行时模块
================================================================================

功能描述:
    根据 Config 构造并连接所有组件，管理它们的启动和停止。

组件装配顺序:
    1. 导出提供者 API 密钥到环境变量（已有的环境变量优先）
    2. MessageBus
    3. ProviderRegistry（构造后冻结）
    4. SessionManager
    5. ToolRegistry + 内置工具（注册后冻结）+ ToolExecutor
    6. ContextBuilder
    7. ChatProvider（LiteLLMProvider，可注入替换）
    8. AgentLoop
    9. ChannelManager

运行时任务:
    - Agent 消费者：AgentLoop.run()，消费入站流
    - 出站分发器：ChannelManager 的后台任务
    - 各频道的 start()

使用示例:
    gateway = Gateway(load_config())
    gateway.register_channel(MyChannel(config.channels["my"], gateway.bus))
    await gateway.start()
    ...
    await gateway.stop()

================================================================================
"""

import asyncio
import os

from loguru import logger

from nanogate.agent.context import ContextBuilder
from nanogate.agent.loop import AgentLoop
from nanogate.agent.tools import (
    EditFileTool,
    ExecTool,
    ListDirTool,
    MessageTool,
    ReadFileTool,
    ToolExecutor,
    ToolRegistry,
    WriteFileTool,
)
from nanogate.bus.queue import MessageBus
from nanogate.channels.base import BaseChannel
from nanogate.channels.manager import ChannelManager
from nanogate.config.schema import Config
from nanogate.providers.base import ChatProvider
from nanogate.providers.litellm_provider import LiteLLMProvider
from nanogate.providers.registry import ProviderRegistry
from nanogate.session.manager import SessionManager
from nanogate.utils.helpers import ensure_dir


class Gateway:
    """
    ========================================================================
    Gateway - 网关运行时类
    ========================================================================

    属性说明:
        - bus / provider_registry / sessions / tools / executor
        - context / provider / agent / channels

    ========================================================================
    """

    def __init__(self, config: Config, provider: ChatProvider | None = None):
        """
        参数说明:
            config: Config，根配置
            provider: ChatProvider | None，注入的 LLM 提供者（None 时按配置创建 LiteLLMProvider）
        """
        self.config = config
        defaults = config.agents.defaults

        self.bus = MessageBus(buffer_size=config.bus.buffer_size, overflow=config.bus.overflow)

        self.provider_registry = ProviderRegistry()
        self.provider_registry.freeze()
        self._export_provider_keys()

        self.workspace = ensure_dir(config.workspace_path)
        self.sessions = SessionManager(self.workspace)

        self.tools = ToolRegistry()
        self._register_default_tools()
        self.tools.freeze()
        self.executor = ToolExecutor(self.tools, timeout=config.tools.timeout)

        self.context = ContextBuilder(
            workspace=self.workspace,
            sessions=self.sessions,
            tools=self.tools,
            max_history=defaults.max_history,
            system_prompt=defaults.system_prompt,
        )

        self.provider = provider or self._build_provider()

        self.agent = AgentLoop(
            context=self.context,
            provider=self.provider,
            tools=self.tools,
            executor=self.executor,
            sessions=self.sessions,
            provider_registry=self.provider_registry,
            model=defaults.model,
            max_iterations=defaults.max_iterations,
            bus=self.bus,
        )

        self.channels = ChannelManager(self.bus)
        self._agent_task: asyncio.Task | None = None

    def _export_provider_keys(self) -> None:
        for spec in self.provider_registry.all_providers():
            provider_config = self.config.get_provider(spec.name)
            if provider_config and provider_config.api_key:
                os.environ.setdefault(spec.env_key, provider_config.api_key)

    def _register_default_tools(self) -> None:
        tools_config = self.config.tools
        restrict = tools_config.restrict_to_workspace
        file_enabled = tools_config.file.enabled

        self.tools.register(ReadFileTool(
            self.workspace,
            restrict_to_workspace=restrict,
            max_file_size=tools_config.file.max_file_size,
            enabled=file_enabled,
        ))
        self.tools.register(WriteFileTool(self.workspace, restrict, enabled=file_enabled))
        self.tools.register(EditFileTool(self.workspace, restrict, enabled=file_enabled))
        self.tools.register(ListDirTool(self.workspace, restrict, enabled=file_enabled))
        self.tools.register(ExecTool(
            working_dir=str(self.workspace),
            timeout=tools_config.exec.timeout,
            blocked_commands=tools_config.exec.blocked_commands,
            allow_patterns=tools_config.exec.allow_patterns,
            restrict_to_workspace=restrict,
            enabled=tools_config.exec.enabled,
        ))
        self.tools.register(MessageTool(
            send_callback=self.bus.publish_outbound,
            enabled=tools_config.message.enabled,
        ))
        logger.info(f"Registered tools: {', '.join(self.tools.tool_names)}")

    def _build_provider(self) -> ChatProvider:
        defaults = self.config.agents.defaults
        spec = self.provider_registry.match_by_model(defaults.model)
        provider_config = self.config.get_provider(spec.name) if spec else None
        return LiteLLMProvider(
            registry=self.provider_registry,
            model=defaults.model,
            api_key=(provider_config.api_key or None) if provider_config else None,
            api_base=provider_config.api_base if provider_config else None,
            temperature=defaults.temperature,
            max_tokens=defaults.max_tokens,
        )

    def register_channel(self, channel: BaseChannel) -> bool:
        return self.channels.register(channel)

    async def start(self) -> None:
        """启动频道、出站分发器和 Agent 消费者"""
        await self.channels.start_all()
        if self._agent_task is None:
            self.agent.subscribe()
            self._agent_task = asyncio.create_task(self.agent.run())
        logger.info("Gateway started")

    async def stop(self, timeout: float = 10.0) -> None:
        """停止 Agent 消费者（等待进行中的消息最多 timeout 秒）和所有频道"""
        self.agent.stop()
        if self._agent_task is not None:
            try:
                await asyncio.wait_for(self._agent_task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Agent loop did not finish in time, cancelled")
            self._agent_task = None
        await self.channels.stop_all()
        logger.info("Gateway stopped")
