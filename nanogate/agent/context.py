"""
================================================================================
nanogate Context Builder - 上下文构建器模块
================================================================================

功能描述:
    为 LLM 构建一轮对话的初始上下文：系统提示词 + 会话历史 + 当前用户消息。

上下文组成:
    1. 系统提示词（一个 system 轮次）：
       - 核心身份信息（nanogate）、当前时间、运行环境
       - 工作空间路径
       - 可用工具列表（名称和描述）
       - 配置的自定义系统提示词
       - 引导文件（AGENTS.md, SOUL.md 等，存在时才加载）
       - 当前会话信息（频道、用户）
    2. 对话历史：会话存储中最近 max_history 条
    3. 当前消息：用户的新请求

相关模块:
    - SessionManager: 会话存储
    - ToolRegistry: 工具注册表

================================================================================
"""

import asyncio
import platform
from datetime import datetime
from pathlib import Path

from nanogate.agent.tools.registry import ToolRegistry
from nanogate.bus.events import Message
from nanogate.models import ChatMessage, ToolCall, ToolResult
from nanogate.session.manager import SessionManager


class ContextBuilder:
    """
    ========================================================================
    ContextBuilder - 上下文构建器类
    ========================================================================

    引导文件（Bootstrap Files）:
        - AGENTS.md: Agent 的配置和指令
        - SOUL.md: Agent 的灵魂和性格
        - USER.md: 用户的信息和偏好
        - TOOLS.md: 可用工具的说明
        - IDENTITY.md: Agent 的身份标识

    ========================================================================
    """

    BOOTSTRAP_FILES = ["AGENTS.md", "SOUL.md", "USER.md", "TOOLS.md", "IDENTITY.md"]

    def __init__(
        self,
        workspace: Path,
        sessions: SessionManager,
        tools: ToolRegistry,
        max_history: int = 50,
        system_prompt: str | None = None,
    ):
        """
        参数:
            workspace: Path，工作空间目录
            sessions: SessionManager，会话存储
            tools: ToolRegistry，工具注册表
            max_history: int，加载的历史消息上限
            system_prompt: str | None，附加的自定义系统提示词
        """
        self.workspace = Path(workspace)
        self.sessions = sessions
        self.tools = tools
        self.max_history = max_history
        self.system_prompt = system_prompt

    async def build(self, message: Message) -> list[ChatMessage]:
        """
        构建初始对话

        返回:
            list[ChatMessage]，[system, *history, user]
        """
        history = await asyncio.to_thread(
            self.sessions.get_history, message.session_id, self.max_history
        )
        return self.build_messages(history, message)

    def build_messages(self, history: list[ChatMessage], message: Message) -> list[ChatMessage]:
        messages = [ChatMessage.system(self.build_system_prompt(message))]
        messages.extend(history)
        messages.append(ChatMessage.user(message.content))
        return messages

    def build_system_prompt(self, message: Message | None = None) -> str:
        """
        构建系统提示词

        各部分之间用 "---" 分隔。
        """
        parts = [self._get_identity()]

        tools_section = self._get_tools_section()
        if tools_section:
            parts.append(tools_section)

        if self.system_prompt:
            parts.append(f"# Instructions\n\n{self.system_prompt}")

        bootstrap = self._load_bootstrap_files()
        if bootstrap:
            parts.append(bootstrap)

        if message is not None:
            session = f"## Current Session\nChannel: {message.channel_type}"
            if message.channel_id:
                session += f" ({message.channel_id})"
            session += f"\nUser: {message.user_name or message.user_id}"
            parts.append(session)

        return "\n\n---\n\n".join(parts)

    def _get_identity(self) -> str:
        now = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M %Z (%A)")
        root = self.workspace.expanduser().resolve()
        os_name = {"Darwin": "macOS"}.get(platform.system(), platform.system())
        runtime = f"{os_name} {platform.machine()}, Python {platform.python_version()}"

        return f"""# nanogate

You are nanogate, a helpful AI assistant reachable from several chat platforms.

## Current Time
{now}

## Runtime
{runtime}

## Workspace
{root}
File tools resolve relative paths against this directory.

Your final text reply is delivered to the user automatically. Call the `message`
tool only for an extra message, such as a progress note during a long task.
Keep answers accurate and concise, and say briefly which tools you used."""

    def _get_tools_section(self) -> str:
        tools = self.tools.get_all_tools()
        if not tools:
            return ""
        lines = [f"- {tool.name}: {tool.description}" for tool in tools]
        return "# Tools\n\nYou can call the following tools:\n" + "\n".join(lines)

    def _load_bootstrap_files(self) -> str:
        present = [name for name in self.BOOTSTRAP_FILES if (self.workspace / name).is_file()]
        return "\n\n".join(
            f"## {name}\n\n{(self.workspace / name).read_text(encoding='utf-8')}" for name in present
        )

    def add_assistant_message(
        self,
        messages: list[ChatMessage],
        content: str | None,
        tool_calls: list[ToolCall] | None = None,
    ) -> list[ChatMessage]:
        """添加助手消息（可带工具调用）"""
        messages.append(ChatMessage.assistant(content, tool_calls))
        return messages

    def add_tool_results(self, messages: list[ChatMessage], results: list[ToolResult]) -> list[ChatMessage]:
        """每个工具结果追加一个 tool 轮次"""
        messages.extend(result.to_message() for result in results)
        return messages
