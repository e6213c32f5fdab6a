# -*- coding: utf-8 -*-
"""
================================================================================
Conversation Models - 对话模型模块
================================================================================

功能描述:
    定义与 LLM 交互时使用的数据结构：对话轮次、工具调用、工具参数和工具结果。
    这些类型在 Agent 循环、工具执行器、会话存储和 LLM 提供者之间传递。

主要组件:
    - Role: 对话角色（system/user/assistant/tool）
    - ChatMessage: 对话中的一轮
    - ToolCall: LLM 请求的一次工具调用
    - ToolArguments: 工具参数（结构化的键值对）
    - ToolResult: 工具执行结果

不变量:
    - tool 角色的 tool_call_id 必须对应同一对话中前面某个 assistant 轮次
      的 tool_calls[i].id
    - ToolResult 的 content / error 由 success 区分，只有一个有意义

================================================================================
"""

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from nanogate.utils.helpers import now_ms


class Role(str, Enum):
    """对话角色"""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """解析角色字符串，未知值按 user 处理"""
        for role in cls:
            if str(value).lower() == role.value:
                return role
        return cls.USER


class ToolArguments:
    """
    ========================================================================
    ToolArguments - 工具参数
    ========================================================================

    LLM 以 JSON 字符串的形式给出工具参数。这里将其解析为键值对，
    并提供带类型的访问方法。

    缺失键的行为:
        - get_str → 默认空字符串
        - get_int / get_float → 默认 0
        - get_bool → 默认 False
        - get → 默认 None

    解析失败的 JSON（或非对象 JSON）视为空参数。

    ========================================================================
    """

    def __init__(self, values: dict[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    @classmethod
    def parse(cls, raw: str | dict[str, Any] | None) -> "ToolArguments":
        if isinstance(raw, dict):
            return cls(raw)
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return cls()
        return cls(data if isinstance(data, dict) else {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_str(self, key: str, default: str = "") -> str:
        value = self._values.get(key)
        if value is None:
            return default
        return value if isinstance(value, str) else str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key)
        if value is None or isinstance(value, bool):
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self._values.get(key)
        if value is None or isinstance(value, bool):
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ToolArguments({self._values!r})"


@dataclass
class ToolCall:
    """
    工具调用请求

    属性说明:
        - id: 调用标识（由提供者给出，或在本地生成）
        - function_name: 要调用的工具名称
        - arguments: 序列化后的 JSON 参数
        - type: 类型标识，默认为 function
    """

    id: str
    function_name: str
    arguments: str = "{}"
    type: str = "function"

    @classmethod
    def create(cls, function_name: str, arguments: dict[str, Any] | str | None = None,
               id: str | None = None) -> "ToolCall":
        """创建工具调用，dict 参数会被序列化，缺失的 id 在本地生成"""
        if isinstance(arguments, dict):
            arguments = json.dumps(arguments, ensure_ascii=False)
        return cls(
            id=id or f"call_{uuid.uuid4().hex[:24]}",
            function_name=function_name,
            arguments=arguments or "{}",
        )

    @property
    def args(self) -> ToolArguments:
        return ToolArguments.parse(self.arguments)

    def to_dict(self) -> dict[str, Any]:
        """OpenAI 格式的工具调用"""
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function_name,
                "arguments": self.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        """
        从字典解析工具调用

        兼容两种格式:
            - 标准格式: {"id", "type", "function": {"name", "arguments"}}
            - 简化格式: {"id", "functionName", "arguments"}
        """
        if isinstance(data.get("function"), dict):
            fn = data["function"]
            name = fn.get("name")
            arguments = fn.get("arguments")
        else:
            name = data.get("functionName") or data.get("function_name") or data.get("name")
            arguments = data.get("arguments")
        if isinstance(arguments, dict):
            arguments = json.dumps(arguments, ensure_ascii=False)
        return cls(
            id=str(data.get("id") or ""),
            function_name=str(name or ""),
            arguments=arguments if isinstance(arguments, str) else "{}",
            type=str(data.get("type") or "function"),
        )


@dataclass
class ChatMessage:
    """
    ========================================================================
    ChatMessage - 对话轮次
    ========================================================================

    属性说明:
        - role: 角色
        - content: 文本内容
        - tool_calls: 工具调用列表（仅 assistant 角色）
        - tool_call_id: 所回答的工具调用 ID（仅 tool 角色）
        - timestamp: 毫秒级时间戳

    ========================================================================
    """

    role: Role
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    timestamp: int = field(default_factory=now_ms)

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: list[ToolCall] | None = None) -> "ChatMessage":
        return cls(role=Role.ASSISTANT, content=content or "", tool_calls=tool_calls or None)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "ChatMessage":
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id)

    def to_dict(self) -> dict[str, Any]:
        """会话文件中的一行记录"""
        data: dict[str, Any] = {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        tool_calls = None
        raw_calls = data.get("tool_calls")
        if isinstance(raw_calls, list) and raw_calls:
            tool_calls = [ToolCall.from_dict(tc) for tc in raw_calls if isinstance(tc, dict)]
        tool_call_id = data.get("tool_call_id")
        content = data.get("content")
        return cls(
            role=Role.parse(data.get("role", "user")),
            content="" if content is None else str(content),
            tool_calls=tool_calls or None,
            tool_call_id=str(tool_call_id) if tool_call_id is not None else None,
            timestamp=_parse_timestamp(data.get("timestamp")),
        )

    def to_llm_dict(self) -> dict[str, Any]:
        """转换为发送给 LLM 的消息格式（不含时间戳）"""
        msg: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            msg["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            msg["tool_call_id"] = self.tool_call_id
        return msg


@dataclass
class ToolResult:
    """
    工具执行结果

    success 为 True 时 content 有意义，否则 error 有意义。
    """

    tool_call_id: str
    success: bool
    content: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, tool_call_id: str, content: str) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, success=True, content=content)

    @classmethod
    def fail(cls, tool_call_id: str, error: str) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, success=False, error=error)

    @classmethod
    def from_exception(cls, tool_call_id: str, exc: BaseException) -> "ToolResult":
        return cls.fail(tool_call_id, str(exc) or exc.__class__.__name__)

    def to_message(self) -> ChatMessage:
        """转换为 tool 角色的对话轮次"""
        if self.success:
            return ChatMessage.tool(self.tool_call_id, self.content or "")
        return ChatMessage.tool(self.tool_call_id, f"Error: {self.error}")


def _parse_timestamp(value: Any) -> int:
    # 兼容毫秒整数与 ISO 字符串两种历史格式
    if isinstance(value, bool) or value is None:
        return now_ms()
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except OverflowError:
            raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, str):
        if value.isdigit():
            return int(value)
        from datetime import datetime
        try:
            return int(datetime.fromisoformat(value).timestamp() * 1000)
        except ValueError:
            pass
    raise ValueError(f"Invalid timestamp: {value!r}")
