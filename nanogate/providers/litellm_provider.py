# -*- coding: utf-8 -*-
"""
================================================================================
LiteLLM Provider - LiteLLM 提供者模块
================================================================================

功能描述:
    使用 LiteLLM 库调用各家 LLM。国内提供者（GLM、DeepSeek、Qwen、Moonshot）
    都提供 OpenAI 兼容接口，统一以 "openai/<model>" 加描述符的 base_url 调用；
    网关（OpenRouter）使用 LiteLLM 原生的前缀路由。

模型解析:
    - 网关模式: "deepseek-chat" → "openrouter/deepseek-chat"
    - 兼容模式: "glm-4-flash" → "openai/glm-4-flash" + api_base

API 密钥来源（按优先级）:
    1. 构造参数 api_key
    2. 描述符 env_key 对应的环境变量

================================================================================
"""

import json
import os
from typing import Any, AsyncIterator

import litellm
from litellm import acompletion
from loguru import logger

from nanogate.errors import ProviderError
from nanogate.models import ChatMessage, ToolCall
from nanogate.providers.base import ChatProvider, ChatResponse
from nanogate.providers.registry import ProviderRegistry, ProviderSpec


class LiteLLMProvider(ChatProvider):
    """
    ========================================================================
    LiteLLMProvider - LiteLLM 提供者类
    ========================================================================

    功能特点:
        1. 通过注册表解析模型对应的提供者描述符
        2. 统一 OpenAI 兼容调用
        3. 工具调用解析（缺失 id 时本地生成）
        4. 任何失败都转换为 ProviderError

    ========================================================================
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        model: str = "glm-4-flash",
        api_key: str | None = None,
        api_base: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ):
        """
        参数说明:
            registry: ProviderRegistry，提供者注册表
            model: str，默认模型名称
            api_key: str | None，API 密钥（覆盖环境变量）
            api_base: str | None，API 地址（覆盖描述符 base_url）
            temperature: float，采样温度
            max_tokens: int，最大生成令牌数
        """
        self.registry = registry
        self.default_model = model
        self.api_key = api_key
        self.api_base = api_base
        self.temperature = temperature
        self.max_tokens = max_tokens

        # 禁用 LiteLLM 日志噪声
        litellm.suppress_debug_info = True
        # 对于不支持某些参数的提供者，删除这些参数
        litellm.drop_params = True

    def resolve_spec(self, model: str) -> ProviderSpec | None:
        # 带网关前缀的模型名或网关密钥（如 sk-or-）优先于关键词匹配
        for spec in self.registry.all_providers():
            if not spec.is_gateway:
                continue
            if spec.model_prefix and model.startswith(spec.model_prefix):
                return spec
            if self.api_key and spec.matches_api_key(self.api_key):
                return spec
        return self.registry.match_by_model(model)

    def _resolve_model(self, model: str) -> tuple[str, ProviderSpec | None]:
        """返回 LiteLLM 模型名与对应描述符"""
        spec = self.resolve_spec(model)
        if spec is None:
            return model, None
        if spec.is_gateway:
            prefix = spec.model_prefix
            if prefix and not model.startswith(prefix):
                model = f"{prefix}{model}"
            return model, spec
        return f"openai/{model}", spec

    def _build_kwargs(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None,
        model: str | None = None,
    ) -> dict[str, Any]:
        resolved, spec = self._resolve_model(model or self.default_model)

        kwargs: dict[str, Any] = {
            "model": resolved,
            "messages": [m.to_llm_dict() for m in messages],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

        api_key = self.api_key or (os.environ.get(spec.env_key) if spec else None)
        if api_key:
            kwargs["api_key"] = api_key

        api_base = self.api_base or (spec.base_url if spec and not spec.is_gateway else None)
        if api_base:
            kwargs["api_base"] = api_base

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        return kwargs

    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> ChatResponse:
        kwargs = self._build_kwargs(messages, tools)
        logger.debug(f"LLM request: model={kwargs['model']}, messages={len(messages)}, tools={len(tools or [])}")
        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            raise ProviderError(f"Error calling LLM: {e}", details={"model": kwargs["model"]}) from e
        try:
            return self._parse_response(response)
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise ProviderError(f"Malformed LLM response: {e}") from e

    async def chat_stream(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[str]:
        kwargs = self._build_kwargs(messages, tools)
        kwargs["stream"] = True
        try:
            stream = await acompletion(**kwargs)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = getattr(chunk.choices[0].delta, "content", None)
                if delta:
                    yield delta
        except Exception as e:
            raise ProviderError(f"Error streaming from LLM: {e}", details={"model": kwargs["model"]}) from e

    def _parse_response(self, response: Any) -> ChatResponse:
        """
        解析 LiteLLM 响应为 ChatResponse

        参数是 JSON 字符串时原样保留；是字典时序列化为字符串。
        """
        choice = response.choices[0]
        message = choice.message

        tool_calls: list[ToolCall] = []
        for tc in getattr(message, "tool_calls", None) or []:
            args = tc.function.arguments
            if isinstance(args, dict):
                args = json.dumps(args, ensure_ascii=False)
            tool_calls.append(ToolCall.create(tc.function.name, args, id=getattr(tc, "id", None)))

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return ChatResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        return self.default_model
