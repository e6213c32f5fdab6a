# -*- coding: utf-8 -*-
"""
================================================================================
LLM Provider Base - LLM 提供者基类模块
================================================================================

功能描述:
    定义 LLM 提供者的抽象基类和响应数据结构。
    所有具体的 LLM 提供者都需要实现这些接口。

核心概念:
    1. ChatProvider: 抽象基类，定义 LLM 交互的通用接口
    2. ChatResponse: LLM 响应（文本内容和/或工具调用）

已实现的提供者:
    - LiteLLMProvider: 通过 LiteLLM 调用 OpenAI 兼容接口

================================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator

from nanogate.models import ChatMessage, ToolCall


@dataclass
class ChatResponse:
    """
    ========================================================================
    ChatResponse - LLM 响应类
    ========================================================================

    属性说明:
        - content: LLM 生成的文本内容
        - tool_calls: 需要执行的工具调用列表
        - finish_reason: 结束原因（stop、tool_calls 等）
        - usage: 令牌使用统计

    ========================================================================
    """

    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0

    def text(self) -> str:
        return self.content or ""

    def with_tool_calls(self, tool_calls: list[ToolCall]) -> "ChatResponse":
        return replace(self, tool_calls=list(tool_calls), finish_reason="tool_calls")


class ChatProvider(ABC):
    """
    ========================================================================
    ChatProvider - LLM 提供者抽象基类
    ========================================================================

    实现要求:
        - chat(): 一次聊天补全请求，失败时抛出 ProviderError
        - get_default_model(): 返回默认模型名称
        - chat_stream(): 可选，默认实现将 chat() 的结果作为单个片段返回

    ========================================================================
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> ChatResponse:
        """
        发送聊天补全请求

        参数说明:
            messages: list[ChatMessage]，对话轮次
            tools: list[dict] | None，工具定义（OpenAI function 格式）

        返回值:
            ChatResponse，包含内容或工具调用
        """
        pass

    async def chat_stream(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[str]:
        """流式返回内容片段"""
        response = await self.chat(messages, tools)
        if response.content:
            yield response.content

    @abstractmethod
    def get_default_model(self) -> str:
        pass
