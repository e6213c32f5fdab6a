# -*- coding: utf-8 -*-
"""
================================================================================
nanogate Session - 会话存储模块
================================================================================

功能描述:
    按会话持久化对话历史（只追加的 JSONL 日志），并以有界窗口读回。

会话生命周期:
    1. 首次 append_message 时隐式创建
    2. Agent 每轮完成后追加 (用户消息, 最终回复)
    3. 只有 clear_history 会删除会话

================================================================================
"""

from nanogate.session.manager import SessionManager

__all__ = ["SessionManager"]
