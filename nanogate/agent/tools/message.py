# -*- coding: utf-8 -*-
"""
================================================================================
Message Tool - 消息工具模块
================================================================================

功能描述:
    让 Agent 在对话过程中主动向用户发送消息：在消息总线上发布一条出站信封。

上下文管理:
    - AgentLoop 处理每条入站消息前调用 set_context()，绑定当前会话的目标
    - 目标保存在 ContextVar 中，每个处理任务互不干扰
    - 调用时可以显式指定 channel_id / channel_type 覆盖默认目标

================================================================================
"""

from contextvars import ContextVar, Token
from typing import Any, Awaitable, Callable

from nanogate.agent.tools.base import Tool
from nanogate.bus.events import Message
from nanogate.errors import ToolExecutionError
from nanogate.models import ToolArguments

_current_target: ContextVar[Message | None] = ContextVar("message_tool_target", default=None)


class MessageTool(Tool):
    """
    ========================================================================
    MessageTool - 消息发送工具类
    ========================================================================

    使用示例:
        tool = MessageTool(bus.publish_outbound)
        token = tool.set_context(inbound)
        try:
            ...
        finally:
            tool.reset_context(token)

    ========================================================================
    """

    def __init__(
        self,
        send_callback: Callable[[Message], Awaitable[None]] | None = None,
        enabled: bool = True,
    ):
        """
        参数说明:
            send_callback: 发布出站消息的回调（通常为 MessageBus.publish_outbound）
            enabled: 是否启用
        """
        self._send_callback = send_callback
        self.enabled = enabled

    def set_send_callback(self, callback: Callable[[Message], Awaitable[None]]) -> None:
        self._send_callback = callback

    def set_context(self, message: Message) -> Token:
        """绑定当前会话的默认目标，返回用于恢复的 token"""
        return _current_target.set(message)

    def reset_context(self, token: Token) -> None:
        _current_target.reset(token)

    @property
    def current_target(self) -> Message | None:
        return _current_target.get()

    @property
    def name(self) -> str:
        return "message"

    @property
    def description(self) -> str:
        return "Send a message to the user. Use this when you want to communicate something."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The message content to send"
                },
                "channel_id": {
                    "type": "string",
                    "description": "Optional: target channel instance ID"
                },
                "channel_type": {
                    "type": "string",
                    "description": "Optional: target channel type (feishu, wecom, qq, api, etc.)"
                }
            },
            "required": ["content"]
        }

    def is_enabled(self) -> bool:
        return self.enabled

    async def invoke(self, args: ToolArguments) -> str:
        if not self._send_callback:
            raise ToolExecutionError("Message sending not configured")

        target = _current_target.get()
        channel_type = args.get_str("channel_type") or (target.channel_type if target else "")
        channel_id = args.get_str("channel_id") or (target.channel_id if target else None)
        if not channel_type:
            raise ToolExecutionError("No target channel specified")

        msg = Message.create(
            content=args.get_str("content"),
            channel_type=channel_type,
            user_id=target.user_id if target else "",
            channel_id=channel_id,
            metadata={"source": "message_tool"},
        )
        await self._send_callback(msg)
        return f"Message sent to {channel_type}:{channel_id or '-'}"
