# -*- coding: utf-8 -*-
"""
================================================================================
工具注册表模块（Tool Registry Module）
================================================================================

模块功能描述：
    按名称保存工具实例，并导出 OpenAI 格式的工具定义供 LLM 使用。
    注册表在启动时构造，完成注册后调用 freeze()，之后只读。

注册规则：
    1. 被禁用的工具（is_enabled() 为 False）在注册时被跳过
    2. 同名工具后注册者替换先注册者
    3. 冻结后 register / unregister 抛出 RuntimeError

使用示例：
```python
registry = ToolRegistry()
registry.register(ReadFileTool(workspace))
registry.register(ExecTool(working_dir=str(workspace)))
registry.freeze()

tools = registry.get_definitions()
```
================================================================================
"""

from typing import Any

from loguru import logger

from nanogate.agent.tools.base import Tool


class ToolRegistry:
    """
    代理工具注册表（Agent Tool Registry）

    工具的执行由 ToolExecutor 负责，注册表只负责查找和导出定义。
    """

    def __init__(self):
        self._tools: dict[str, Tool] = {}
        self._frozen = False

    def register(self, tool: Tool) -> bool:
        """
        注册工具实例

        返回值：
        - bool：是否注册成功（被禁用的工具返回 False）
        """
        if self._frozen:
            raise RuntimeError("Tool registry is frozen")
        if not tool.is_enabled():
            logger.info(f"Tool disabled, skipping: {tool.name}")
            return False
        if tool.name in self._tools:
            logger.warning(f"Replacing registered tool: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")
        return True

    def unregister(self, name: str) -> None:
        if self._frozen:
            raise RuntimeError("Tool registry is frozen")
        self._tools.pop(name, None)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_all_tools(self) -> list[Tool]:
        """按注册顺序返回所有工具"""
        return list(self._tools.values())

    def get_definitions(self) -> list[dict[str, Any]]:
        """
        获取所有工具定义

        返回值：
        - list[dict]：OpenAI 函数调用格式，可直接作为 LLM 的 tools 参数
        """
        return [tool.to_schema() for tool in self._tools.values()]

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
