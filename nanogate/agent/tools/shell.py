# -*- coding: utf-8 -*-
"""
================================================================================
Exec Tool - 命令执行工具模块
================================================================================

功能描述:
    在工作空间中执行 Shell 命令，返回输出和退出码。
    命令在启动前经过分层检查，不安全的命令以 SecurityError 拒绝，
    从不执行。

检查顺序:
    1. 空命令
    2. 危险模式（正则，DEFAULT_DENY_PATTERNS）：强制删除、格式化、
       磁盘写入、关机、fork bomb
    3. 禁用命令（配置项 blocked_commands，整词匹配，不区分大小写，
       因此 "dd" 不会误伤 "git add"）
    4. 白名单（allow_patterns，配置后命令必须匹配其中之一）
    5. 工作目录限制（restrict_to_workspace）：../ 遍历、工作目录外的绝对路径，
       以及指向工作目录之外的 working_dir 参数

超时:
    超过 timeout 秒后杀死整个进程组并回收，以 ToolTimeoutError 报告。

输出格式:
    stdout + "STDERR:" 段，超过 MAX_OUTPUT_CHARS 截断，末尾 "Exit code: N"

================================================================================
"""

import asyncio
import os
import re
import signal
from pathlib import Path
from typing import Any

from loguru import logger

from nanogate.agent.tools.base import Tool
from nanogate.errors import SecurityError, ToolTimeoutError
from nanogate.models import ToolArguments

DEFAULT_DENY_PATTERNS = [
    r"\brm\s+-[rf]{1,2}\b",
    r"\bdel\s+/[fq]\b",
    r"\brmdir\s+/s\b",
    r"\b(format|mkfs|diskpart)\b",
    r"\bdd\s+if=",
    r">\s*/dev/sd",
    r"\b(shutdown|reboot|poweroff)\b",
    r":\(\)\s*\{.*\};\s*:",
]

MAX_OUTPUT_CHARS = 10000

_WINDOWS_PATH = re.compile(r"[A-Za-z]:\\[^\\\"']+")
# 以 / 开头、位于行首或空白 / 管道 / 重定向之后的绝对路径
_POSIX_PATH = re.compile(r"(?:^|[\s|>])(/[^\s\"'>]+)")


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def _kill_tree(proc: asyncio.subprocess.Process) -> None:
    """杀死 shell 及其派生的整个进程组"""
    if os.name != "posix":
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def format_output(stdout: bytes | None, stderr: bytes | None, returncode: int | None) -> str:
    """合并 stdout / stderr，截断过长输出并附加退出码"""
    sections = []
    out = _decode(stdout)
    if out:
        sections.append(out)
    err = _decode(stderr)
    if err.strip():
        sections.append(f"STDERR:\n{err}")

    text = "\n".join(sections) or "(no output)"
    overflow = len(text) - MAX_OUTPUT_CHARS
    if overflow > 0:
        text = f"{text[:MAX_OUTPUT_CHARS]}\n... (truncated, {overflow} more chars)"
    return f"{text}\nExit code: {returncode}"


class ExecTool(Tool):
    """
    ========================================================================
    ExecTool - 命令执行工具类
    ========================================================================

    使用示例:
        tool = ExecTool(working_dir=str(workspace), blocked_commands=["dd"])
        output = await tool.invoke(ToolArguments({"command": "ls -la"}))

    ========================================================================
    """

    def __init__(
        self,
        working_dir: str | None = None,
        timeout: int = 60,
        deny_patterns: list[str] | None = None,
        blocked_commands: list[str] | None = None,
        allow_patterns: list[str] | None = None,
        restrict_to_workspace: bool = False,
        enabled: bool = True,
    ):
        """
        参数说明:
            working_dir: 默认工作目录（通常为 workspace）
            timeout: 超时秒数
            deny_patterns: 危险命令正则，None 使用 DEFAULT_DENY_PATTERNS
            blocked_commands: 禁用命令（整词）
            allow_patterns: 白名单正则，为空表示不限制
            restrict_to_workspace: 是否禁止访问工作目录之外的路径
            enabled: 是否启用
        """
        self.working_dir = working_dir
        self.timeout = timeout
        self.deny_patterns = list(DEFAULT_DENY_PATTERNS if deny_patterns is None else deny_patterns)
        self.blocked_commands = list(blocked_commands or [])
        self.allow_patterns = list(allow_patterns or [])
        self.restrict_to_workspace = restrict_to_workspace
        self.enabled = enabled

    @property
    def name(self) -> str:
        return "exec"

    @property
    def description(self) -> str:
        return "Run a shell command in the workspace and return its output and exit code."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "Shell command to run"},
                "working_dir": {"type": "string", "description": "Directory to run in (defaults to the workspace)"},
            },
            "required": ["command"],
        }

    def is_enabled(self) -> bool:
        return self.enabled

    @property
    def workspace_root(self) -> Path:
        return Path(self.working_dir or os.getcwd()).resolve()

    async def invoke(self, args: ToolArguments) -> str:
        command = args.get_str("command")
        cwd = self._resolve_cwd(args.get_str("working_dir"))

        self._guard_command(command)
        logger.info(f"exec: {command} (cwd={cwd})")

        # 独立进程组，超时时连同子进程一起杀死
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=os.name == "posix",
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            _kill_tree(proc)
            await proc.wait()
            raise ToolTimeoutError(f"Command timed out after {self.timeout} seconds", details={"command": command})

        return format_output(stdout, stderr, proc.returncode)

    def _resolve_cwd(self, requested: str) -> Path:
        """相对路径基于工作目录解析；限制模式下不允许离开工作目录"""
        root = self.workspace_root
        if not requested:
            return root
        cwd = Path(requested)
        if not cwd.is_absolute():
            cwd = root / cwd
        cwd = cwd.resolve()
        if self.restrict_to_workspace and cwd != root and root not in cwd.parents:
            raise SecurityError(
                "Command blocked by safety guard (working_dir outside workspace)",
                details={"working_dir": requested},
            )
        return cwd

    def _guard_command(self, command: str) -> None:
        """按顺序执行各层检查，任一层失败抛出 SecurityError"""
        stripped = command.strip()
        if not stripped:
            raise SecurityError("Empty command")
        lowered = stripped.lower()

        self._check_deny_patterns(lowered)
        self._check_blocked_commands(lowered)
        self._check_allowlist(lowered)
        if self.restrict_to_workspace:
            self._check_paths(stripped, self.workspace_root)

    def _check_deny_patterns(self, lowered: str) -> None:
        if any(re.search(pattern, lowered) for pattern in self.deny_patterns):
            raise SecurityError("Command blocked by safety guard (dangerous pattern detected)")

    def _check_blocked_commands(self, lowered: str) -> None:
        for blocked in self.blocked_commands:
            word = re.escape(blocked.lower())
            if re.search(rf"(?<![\w-]){word}(?![\w-])", lowered):
                raise SecurityError(f"Command blocked by safety guard (blocked command: {blocked})")

    def _check_allowlist(self, lowered: str) -> None:
        if self.allow_patterns and not any(re.search(p, lowered) for p in self.allow_patterns):
            raise SecurityError("Command blocked by safety guard (not in allowlist)")

    @staticmethod
    def _check_paths(command: str, root: Path) -> None:
        if "../" in command or "..\\" in command:
            raise SecurityError("Command blocked by safety guard (path traversal detected)")

        candidates = _WINDOWS_PATH.findall(command) + _POSIX_PATH.findall(command)
        for raw in candidates:
            try:
                target = Path(raw.strip()).resolve()
            except (OSError, ValueError):
                continue
            if target.is_absolute() and target != root and root not in target.parents:
                raise SecurityError("Command blocked by safety guard (path outside working dir)")
