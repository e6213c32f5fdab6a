# -*- coding: utf-8 -*-
"""
================================================================================
Session Manager - 会话管理器模块
================================================================================

功能描述:
    管理对话会话的持久化存储和读取。对话历史以 JSONL 格式追加写入，
    支持获取历史消息、追加消息、清除会话、列出会话等功能。
    纯存储，不包含业务逻辑。

核心概念:
    1. Session ID: 会话唯一标识（格式: channel_type:user_id）
    2. Safe Key: 用作文件名的会话标识，非 [A-Za-z0-9_-] 字符替换为 "_"
    3. 只追加：每次 append_message 写入一行，从不改写已有内容

存储格式:
    - 目录: <workspace>/sessions/
    - 文件: {safe_key}.jsonl
    - 每行一条 JSON 记录:
        {"role": ..., "content": ..., "timestamp": 毫秒,
         "tool_calls": [...]?, "tool_call_id": ...?}

已知限制:
    - Safe Key 不保证无冲突："api:u1" 和 "api_u1" 会写入同一个文件
    - 同一会话的并发写入在进程内按会话加锁串行化；跨进程的写入者
      只依赖文件系统的追加原子性，没有额外的锁或日志

================================================================================
"""

import json
import threading
from pathlib import Path
from typing import Any

from loguru import logger

from nanogate.errors import PersistenceError
from nanogate.models import ChatMessage
from nanogate.utils.helpers import ensure_dir, safe_filename


class SessionManager:
    """
    ========================================================================
    SessionManager - 会话管理器类
    ========================================================================

    功能特点:
        1. 只追加：每条消息一行，一次写入完成
        2. 容错读取：损坏的行单独跳过，不影响整个会话
        3. 有界窗口：get_history 只返回最近 N 条
        4. 线程安全：同一会话的写入按会话加锁

    使用流程:
        sessions = SessionManager(workspace)
        sessions.append_message("api:u1", ChatMessage.user("hi"))
        history = sessions.get_history("api:u1", 50)

    ========================================================================
    """

    def __init__(self, workspace: Path, sessions_dir: Path | None = None):
        """
        初始化会话管理器

        参数说明:
            workspace: Path，工作空间路径（sessions 目录位于其下）
            sessions_dir: Path | None，自定义会话目录
        """
        self.workspace = workspace
        self.sessions_dir = ensure_dir(sessions_dir or Path(workspace).expanduser() / "sessions")
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        logger.debug(f"Session manager initialized with directory: {self.sessions_dir}")

    @staticmethod
    def session_key(channel_type: str, user_id: str) -> str:
        return f"{channel_type}:{user_id}"

    @staticmethod
    def safe_key(session_id: str) -> str:
        return safe_filename(session_id)

    def _get_session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{self.safe_key(session_id)}.jsonl"

    def _lock_for(self, session_id: str) -> threading.Lock:
        key = self.safe_key(session_id)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def get_history(self, session_id: str, max_messages: int = 50) -> list[ChatMessage]:
        """
        获取会话历史

        参数说明:
            session_id: str，会话 ID
            max_messages: int，最大返回消息数

        返回值:
            list[ChatMessage]，按时间戳升序排列的最近 max_messages 条消息。
            会话不存在或读取失败时返回空列表。
        """
        path = self._get_session_path(session_id)
        if not path.exists():
            logger.debug(f"Session file not found: {path}")
            return []

        messages: list[ChatMessage] = []
        try:
            with open(path, encoding="utf-8") as f:
                for lineno, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                        if not isinstance(data, dict):
                            raise ValueError("record is not an object")
                        messages.append(ChatMessage.from_dict(data))
                    except (ValueError, TypeError, OverflowError) as e:
                        logger.warning(f"Skipping malformed line {lineno} in session {session_id}: {e}")
        except OSError as e:
            err = PersistenceError(f"Failed to read session {session_id}: {e}")
            logger.error(str(err))
            return []

        # sorted 是稳定排序，时间戳相同的消息保持写入顺序
        messages = sorted(messages, key=lambda m: m.timestamp)

        if max_messages <= 0:
            return []
        if len(messages) > max_messages:
            return messages[-max_messages:]
        return messages

    def append_message(self, session_id: str, message: ChatMessage) -> None:
        """
        追加消息到会话

        一条消息对应一行，在会话锁内一次写入。序列化失败时降级为
        兜底格式；I/O 失败只记录日志，不向调用方抛出。
        """
        path = self._get_session_path(session_id)
        line = self._format_message(message) + "\n"

        try:
            with self._lock_for(session_id):
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line)
            logger.debug(f"Appended {message.role.value} message to session: {session_id}")
        except OSError as e:
            err = PersistenceError(f"Failed to write session {session_id}: {e}")
            logger.error(str(err))

    def clear_history(self, session_id: str) -> bool:
        """
        清除会话历史

        返回值:
            bool，是否删除了会话文件
        """
        path = self._get_session_path(session_id)
        try:
            with self._lock_for(session_id):
                if not path.exists():
                    return False
                path.unlink()
            logger.info(f"Cleared session history: {session_id}")
            return True
        except OSError as e:
            logger.error(f"Failed to delete session file {path}: {e}")
            return False

    def list_sessions(self) -> set[str]:
        """
        列出所有会话

        返回值:
            set[str]，会话文件名（即 safe key，不含 .jsonl 后缀）
        """
        if not self.sessions_dir.exists():
            return set()
        return {p.stem for p in self.sessions_dir.glob("*.jsonl")}

    def session_exists(self, session_id: str) -> bool:
        return self._get_session_path(session_id).exists()

    def _format_message(self, message: ChatMessage) -> str:
        """
        序列化为单行 JSON

        降级顺序:
            1. 标准序列化
            2. 无法序列化的值转为字符串
            3. 只保留 role / content / timestamp
        """
        data = message.to_dict()
        try:
            return json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize message, using fallback format: {e}")
        try:
            return json.dumps(data, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return json.dumps(_minimal_record(message), ensure_ascii=False)


def _minimal_record(message: ChatMessage) -> dict[str, Any]:
    return {
        "role": message.role.value,
        "content": str(message.content),
        "timestamp": message.timestamp,
    }
