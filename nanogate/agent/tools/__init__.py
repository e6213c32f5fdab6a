"""Agent tools: base class, registry, executor and built-in tools."""

from nanogate.agent.tools.base import Tool
from nanogate.agent.tools.executor import ToolExecutor
from nanogate.agent.tools.filesystem import EditFileTool, ListDirTool, ReadFileTool, WriteFileTool
from nanogate.agent.tools.message import MessageTool
from nanogate.agent.tools.registry import ToolRegistry
from nanogate.agent.tools.shell import ExecTool

__all__ = [
    "Tool",
    "ToolRegistry",
    "ToolExecutor",
    "ExecTool",
    "ReadFileTool",
    "WriteFileTool",
    "EditFileTool",
    "ListDirTool",
    "MessageTool",
]
