# -*- coding: utf-8 -*-
"""
================================================================================
nanogate Message Bus - 消息总线模块
================================================================================

功能描述:
    实现频道与 Agent 之间的解耦通信。频道负责消息的收发，Agent 负责消息的处理。

主要组件:
    - MessageBus: 进程内发布/订阅中心
    - Subscription: 单个订阅者（有界缓冲）
    - Message: 消息信封

模块关系:
    channels/ → bus (inbound) → agent/loop → bus (outbound) → channels/

================================================================================
"""

from nanogate.bus.events import Message, MessageType
from nanogate.bus.queue import MessageBus, OverflowPolicy, Subscription

__all__ = ["MessageBus", "Message", "MessageType", "OverflowPolicy", "Subscription"]
