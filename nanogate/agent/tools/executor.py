# -*- coding: utf-8 -*-
"""
================================================================================
Tool Executor - 工具执行器模块
================================================================================

功能描述:
    根据工具调用请求查找并执行工具，把所有失败转换为 ToolResult。
    execute() 从不抛出异常：未知工具、参数错误、执行异常、超时都会
    变成 success=False 的结果，交给 LLM 在下一轮自行处理。

批量执行:
    execute_batch() 并发执行一组调用（asyncio.gather），全部完成后返回。
    结果顺序与调用顺序一致，并通过 tool_call_id 与调用一一对应。

================================================================================
"""

import asyncio

from loguru import logger

from nanogate.agent.tools.registry import ToolRegistry
from nanogate.errors import ToolNotFoundError, ToolTimeoutError
from nanogate.models import ToolCall, ToolResult
from nanogate.utils.helpers import truncate


class ToolExecutor:
    """
    ========================================================================
    ToolExecutor - 工具执行器类
    ========================================================================

    使用示例:
        executor = ToolExecutor(registry, timeout=120)
        result = await executor.execute(call)
        results = await executor.execute_batch(calls)

    ========================================================================
    """

    def __init__(self, registry: ToolRegistry, timeout: float | None = None):
        """
        参数说明:
            registry: ToolRegistry，工具注册表
            timeout: float | None，单个工具的执行超时（秒），None 表示不限制
        """
        self.registry = registry
        self.timeout = timeout

    async def execute(self, call: ToolCall) -> ToolResult:
        tool = self.registry.get_tool(call.function_name)
        if tool is None:
            err = ToolNotFoundError(call.function_name)
            logger.warning(str(err))
            return ToolResult.from_exception(call.id, err)

        logger.info(f"Tool call: {call.function_name}({truncate(call.arguments, 200)})")
        try:
            if self.timeout:
                result = await asyncio.wait_for(tool.execute(call), timeout=self.timeout)
            else:
                result = await tool.execute(call)
        except asyncio.TimeoutError:
            err = ToolTimeoutError(f"Tool {call.function_name} timed out after {self.timeout} seconds")
            logger.error(str(err))
            return ToolResult.from_exception(call.id, err)
        except Exception as e:
            logger.error(f"Tool {call.function_name} failed: {e}")
            return ToolResult.from_exception(call.id, e)

        if result.tool_call_id != call.id:
            result.tool_call_id = call.id
        return result

    async def execute_batch(self, calls: list[ToolCall]) -> list[ToolResult]:
        """
        并发执行一组工具调用

        返回值:
            list[ToolResult]，每个调用恰好一个结果，顺序与 calls 一致
        """
        if not calls:
            return []
        return list(await asyncio.gather(*(self.execute(call) for call in calls)))
