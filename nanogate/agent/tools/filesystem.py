# -*- coding: utf-8 -*-
"""
================================================================================
文件系统工具模块（File System Tools Module）
================================================================================

模块功能描述：
    提供文件的读取、写入、编辑以及目录列出等工具，让代理可以在工作空间
    内读写数据。

路径规则：
    1. 相对路径相对于工作空间解析
    2. 支持 "~" 用户目录扩展
    3. restrict_to_workspace=True 时，解析后（含符号链接）位于工作空间之外的
       路径抛出 SecurityError

主要组件：
    - ReadFileTool：文件读取（超过 max_file_size 的文件拒绝读取）
    - WriteFileTool：文件写入（自动创建父目录）
    - EditFileTool：文本替换（old_text 必须唯一匹配）
    - ListDirTool：目录列表

错误处理：
    所有失败以异常形式抛出（FileNotFoundError、SecurityError、
    ToolExecutionError），由 ToolExecutor 转换为失败结果。

================================================================================
"""

from pathlib import Path
from typing import Any

from loguru import logger

from nanogate.agent.tools.base import Tool
from nanogate.errors import SecurityError, ToolExecutionError
from nanogate.models import ToolArguments

DEFAULT_MAX_FILE_SIZE = 1024 * 1024


def _resolve_path(path: str, workspace: Path, restrict: bool = True) -> Path:
    """
    路径解析与安全检查

    参数说明：
    - path：str，用户提供的路径（相对路径相对于 workspace）
    - workspace：Path，工作空间根目录
    - restrict：bool，是否禁止访问工作空间之外的路径
    """
    if not path:
        raise ToolExecutionError("Path must not be empty")
    root = workspace.expanduser().resolve()
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()
    if restrict and resolved != root and root not in resolved.parents:
        raise SecurityError(f"Path {path} is outside workspace {root}")
    return resolved


class _FileTool(Tool):
    """文件工具的公共配置：工作空间、访问限制和启用状态"""

    def __init__(self, workspace: Path, restrict_to_workspace: bool = True, enabled: bool = True):
        self.workspace = Path(workspace)
        self.restrict_to_workspace = restrict_to_workspace
        self.enabled = enabled

    def is_enabled(self) -> bool:
        return self.enabled

    def _resolve(self, path: str) -> Path:
        return _resolve_path(path, self.workspace, self.restrict_to_workspace)


class ReadFileTool(_FileTool):
    """
    文件读取工具（Read File Tool）

    读取 UTF-8 文本文件的全部内容。
    """

    def __init__(
        self,
        workspace: Path,
        restrict_to_workspace: bool = True,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        enabled: bool = True,
    ):
        super().__init__(workspace, restrict_to_workspace, enabled)
        self.max_file_size = max_file_size

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Read the contents of a file at the given path."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The file path to read (relative to the workspace)"
                }
            },
            "required": ["path"]
        }

    async def invoke(self, args: ToolArguments) -> str:
        path = args.get_str("path")
        file_path = self._resolve(path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if not file_path.is_file():
            raise ToolExecutionError(f"Not a file: {path}")
        size = file_path.stat().st_size
        if size > self.max_file_size:
            raise ToolExecutionError(f"File too large: {path} ({size} bytes, limit {self.max_file_size})")
        return file_path.read_text(encoding="utf-8")


class WriteFileTool(_FileTool):
    """
    文件写入工具（Write File Tool）

    覆盖写入整个文件，自动创建父目录。
    """

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Write content to a file at the given path. Creates parent directories if needed."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The file path to write to (relative to the workspace)"
                },
                "content": {
                    "type": "string",
                    "description": "The content to write"
                }
            },
            "required": ["path", "content"]
        }

    async def invoke(self, args: ToolArguments) -> str:
        path = args.get_str("path")
        content = args.get_str("content")
        file_path = self._resolve(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
        logger.debug(f"Wrote {len(content)} chars to {file_path}")
        return f"Successfully wrote {len(content)} characters to {path}"


class EditFileTool(_FileTool):
    """
    文件编辑工具（Edit File Tool）

    将 old_text 替换为 new_text。old_text 必须在文件中恰好出现一次。
    """

    @property
    def name(self) -> str:
        return "edit_file"

    @property
    def description(self) -> str:
        return "Edit a file by replacing old_text with new_text. The old_text must exist exactly once in the file."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The file path to edit"
                },
                "old_text": {
                    "type": "string",
                    "description": "The exact text to find and replace"
                },
                "new_text": {
                    "type": "string",
                    "description": "The text to replace with"
                }
            },
            "required": ["path", "old_text", "new_text"]
        }

    async def invoke(self, args: ToolArguments) -> str:
        path = args.get_str("path")
        old_text = args.get_str("old_text")
        new_text = args.get_str("new_text")
        file_path = self._resolve(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        content = file_path.read_text(encoding="utf-8")
        count = content.count(old_text) if old_text else 0
        if count == 0:
            raise ToolExecutionError("old_text not found in file. Make sure it matches exactly.")
        if count > 1:
            raise ToolExecutionError(
                f"old_text appears {count} times. Please provide more context to make it unique."
            )

        file_path.write_text(content.replace(old_text, new_text, 1), encoding="utf-8")
        return f"Successfully edited {path}"


class ListDirTool(_FileTool):
    """目录列表工具（List Directory Tool）"""

    @property
    def name(self) -> str:
        return "list_dir"

    @property
    def description(self) -> str:
        return "List the contents of a directory."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The directory path to list (defaults to the workspace)"
                }
            },
        }

    async def invoke(self, args: ToolArguments) -> str:
        path = args.get_str("path", ".") or "."
        dir_path = self._resolve(path)
        if not dir_path.exists():
            raise FileNotFoundError(f"Directory not found: {path}")
        if not dir_path.is_dir():
            raise ToolExecutionError(f"Not a directory: {path}")

        items = []
        for item in sorted(dir_path.iterdir()):
            prefix = "📁 " if item.is_dir() else "📄 "
            items.append(f"{prefix}{item.name}")

        if not items:
            return f"Directory {path} is empty"
        return "\n".join(items)
