"""
================================================================================
nanogate Agent Loop - Agent 循环模块
================================================================================

功能描述:
    核心处理引擎：把一条入站消息变成一条最终回复。
    构建上下文 → 调用 LLM → 执行工具 → 再次调用 LLM ...，直到 LLM
    给出不含工具调用的回复，或达到最大迭代次数。

状态机:
    conversation = ContextBuilder.build(message)     # [system, *history, user]
    counter = 0
    while counter < max_iterations:
        response = provider.chat(conversation, tools)
        无工具调用 → 保存 (user, assistant) 两个轮次，返回内容
        有工具调用 → 追加 assistant 轮次 → 并发执行 → 每个结果追加 tool 轮次
                   → counter += 1
    达到上限 → 返回 MAX_ITERATIONS_REPLY，不保存

错误处理:
    任何失败（包括未配置提供者）都转换为 ERROR_REPLY_PREFIX + 错误信息，
    不保存任何内容，不向调用方抛出。

持久化:
    每轮对话只保存 (用户消息, 最终回复) 两个轮次，中间的工具调用轮次
    不写入会话。

与系统其他组件的交互:
    - MessageBus: run() 消费入站流，回复发布到出站流
    - ChatProvider: LLM 调用
    - ToolExecutor: 工具执行
    - SessionManager: 会话历史
    - ProviderRegistry: 记录每轮使用的提供者

使用示例:
    agent = AgentLoop(context, provider, tools, executor, sessions, bus=bus)
    reply = await agent.process(message)
    await agent.run()

================================================================================
"""

import asyncio

from loguru import logger

from nanogate.agent.context import ContextBuilder
from nanogate.agent.tools.executor import ToolExecutor
from nanogate.agent.tools.message import MessageTool
from nanogate.agent.tools.registry import ToolRegistry
from nanogate.bus.events import Message
from nanogate.bus.queue import MessageBus, Subscription
from nanogate.errors import ProviderError
from nanogate.models import ChatMessage
from nanogate.providers.base import ChatProvider
from nanogate.providers.registry import ProviderRegistry
from nanogate.session.manager import SessionManager
from nanogate.utils.helpers import truncate

MAX_ITERATIONS_REPLY = "Reached the maximum number of tool iterations without a final answer."
ERROR_REPLY_PREFIX = "Sorry, I encountered an error: "


class AgentLoop:
    """
    ========================================================================
    AgentLoop - Agent 循环核心类
    ========================================================================

    生命周期:
        1. __init__: 注入各组件
        2. run: 消费入站流，每条消息一个任务，不同会话并发处理
        3. stop: 关闭入站订阅，run 在已开始的任务完成后返回

    属性说明:
        - context: 上下文构建器
        - provider: LLM 提供者（None 时每轮都返回错误回复）
        - tools / executor: 工具注册表和执行器
        - sessions: 会话存储
        - model: 模型名称
        - max_iterations: 单条消息允许的最大 LLM 调用次数

    ========================================================================
    """

    def __init__(
        self,
        context: ContextBuilder,
        provider: ChatProvider | None,
        tools: ToolRegistry,
        executor: ToolExecutor,
        sessions: SessionManager,
        provider_registry: ProviderRegistry | None = None,
        model: str | None = None,
        max_iterations: int = 10,
        bus: MessageBus | None = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self.context = context
        self.provider = provider
        self.tools = tools
        self.executor = executor
        self.sessions = sessions
        self.provider_registry = provider_registry
        self.model = model or (provider.get_default_model() if provider else "")
        self.max_iterations = max_iterations
        self.bus = bus

        self._running = False
        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task] = set()

    async def process(self, message: Message, max_iterations: int | None = None) -> str:
        """
        处理一条入站消息，返回最终回复文本

        参数:
            message: Message，入站信封
            max_iterations: int | None，覆盖默认的最大迭代次数
        """
        limit = max_iterations if max_iterations is not None else self.max_iterations
        if limit < 1:
            raise ValueError("max_iterations must be >= 1")

        logger.info(f"Processing message from {message.session_id}: {truncate(message.content)}")
        self._log_provider()

        message_tool = self.tools.get_tool("message")
        token = message_tool.set_context(message) if isinstance(message_tool, MessageTool) else None

        try:
            conversation = await self.context.build(message)
            tool_definitions = self.tools.get_definitions() or None

            counter = 0
            while counter < limit:
                if self.provider is None:
                    raise ProviderError("No LLM provider configured")

                response = await self.provider.chat(conversation, tool_definitions)

                if not response.has_tool_calls:
                    content = response.text()
                    await self._save_turn(message, content)
                    logger.info(f"Response to {message.session_id}: {truncate(content)}")
                    return content

                self.context.add_assistant_message(conversation, response.content, response.tool_calls)
                results = await self.executor.execute_batch(response.tool_calls)
                self.context.add_tool_results(conversation, results)
                counter += 1
                logger.debug(f"Iteration {counter}/{limit}: executed {len(results)} tool call(s)")

            logger.warning(f"Max iterations ({limit}) reached for {message.session_id}")
            return MAX_ITERATIONS_REPLY
        except Exception as e:
            logger.error(f"Error processing message {message.id}: {e}")
            return f"{ERROR_REPLY_PREFIX}{e}"
        finally:
            if token is not None:
                message_tool.reset_context(token)

    async def process_direct(self, content: str, channel_type: str = "cli", user_id: str = "user") -> str:
        """直接处理一段文本（CLI 和 HTTP 接口使用）"""
        message = Message.create(content=content, channel_type=channel_type, user_id=user_id)
        return await self.process(message)

    async def _save_turn(self, message: Message, content: str) -> None:
        session_id = message.session_id
        await asyncio.to_thread(self.sessions.append_message, session_id, ChatMessage.user(message.content))
        await asyncio.to_thread(self.sessions.append_message, session_id, ChatMessage.assistant(content))

    def _log_provider(self) -> None:
        if self.provider_registry is None or not self.model:
            return
        spec = self.provider_registry.match_by_model(self.model)
        logger.debug(f"Model {self.model} served by provider {spec.name if spec else 'unknown'}")

    def subscribe(self) -> Subscription:
        """订阅入站流；在启动 run() 任务之前调用可避免漏掉最早的消息"""
        if self.bus is None:
            raise RuntimeError("AgentLoop requires a message bus to consume inbound messages")
        if self._subscription is None:
            self._subscription = self.bus.subscribe_inbound()
        return self._subscription

    async def run(self) -> None:
        """
        消费入站流

        每条消息在独立任务中处理，回复通过 message.reply() 发布到出站流。
        """
        subscription = self._subscription or self.subscribe()
        self._running = True
        logger.info("Agent loop started")

        async for msg in subscription:
            task = asyncio.create_task(self._handle(msg))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._running = False
        self._subscription = None
        logger.info("Agent loop stopped")

    async def _handle(self, msg: Message) -> None:
        content = await self.process(msg)
        await self.bus.publish_outbound(msg.reply(content))

    def stop(self) -> None:
        self._running = False
        if self._subscription is not None:
            self._subscription.close()
        logger.info("Agent loop stopping")

    @property
    def running(self) -> bool:
        return self._running
