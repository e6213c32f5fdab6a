"""
nanogate error types.

失败在最小的边界内被恢复（单个工具、单次迭代、单轮对话），
并转换为数据（ToolResult 或终止回复），而不是作为进程级异常向外传播。
"""

from typing import Any


class NanogateError(Exception):
    """Base error carrying a machine-readable code."""

    code = "nanogate_error"

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code or self.code
        self.details = details


class RoutingError(NanogateError):
    """No channel or provider found for a type/model."""
    code = "routing_error"


class ToolNotFoundError(NanogateError):
    code = "tool_not_found"

    def __init__(self, name: str):
        super().__init__(f"Tool not found: {name}", details={"tool": name})
        self.name = name


class ToolExecutionError(NanogateError):
    code = "tool_execution_error"


class ToolTimeoutError(ToolExecutionError):
    code = "tool_timeout"


class ProviderError(NanogateError):
    """Network, auth or format failure calling the LLM backend."""
    code = "provider_error"


class PersistenceError(NanogateError):
    code = "persistence_error"


class SecurityError(NanogateError):
    """Blocked command pattern or a path escaping the sandboxed workspace."""
    code = "security_error"
