# -*- coding: utf-8 -*-
"""
================================================================================
Message Bus Events - 消息总线事件类型模块
================================================================================

功能描述:
    定义在消息总线上流转的消息信封 (Message)。
    入站消息（用户 → 频道 → 总线 → Agent）和出站消息（Agent → 总线 → 频道 → 用户）
    使用同一种信封类型。

核心概念:
    1. Channel Type: 消息平台类型（feishu、wecom、qq、api 等），用于路由到对应适配器
    2. Channel ID: 某个频道实例的标识
    3. User ID: 发送者的唯一标识
    4. Session ID: 用于识别会话的唯一键（格式: channel_type:user_id）

不变量:
    - id 只在创建时分配一次，由创建信封的组件（频道适配器或工具）负责

================================================================================
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MessageType(str, Enum):
    """消息类型"""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    COMMAND = "command"
    SYSTEM = "system"


def new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Message:
    """
    ========================================================================
    Message - 消息信封
    ========================================================================

    属性说明:
        - id: 消息唯一标识（创建时生成）
        - channel_id: 频道实例 ID
        - channel_type: 频道类型（路由依据）
        - user_id: 用户标识
        - content: 消息文本内容
        - user_name: 用户名（可选）
        - type: 消息类型
        - metadata: 频道特定数据
        - timestamp: 创建时间

    使用场景:
        - 频道适配器收到用户消息后调用 Message.create() 创建并发布入站
        - Agent 处理完成后调用 reply() 创建出站消息

    ========================================================================
    """

    id: str
    channel_type: str
    user_id: str
    content: str
    channel_id: str | None = None
    user_name: str | None = None
    type: MessageType = MessageType.TEXT
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        content: str,
        channel_type: str,
        user_id: str,
        channel_id: str | None = None,
        user_name: str | None = None,
        type: MessageType = MessageType.TEXT,
        metadata: dict[str, Any] | None = None,
    ) -> "Message":
        """创建新信封并分配 ID"""
        return cls(
            id=new_message_id(),
            channel_type=channel_type,
            user_id=user_id,
            content=content,
            channel_id=channel_id,
            user_name=user_name,
            type=type,
            metadata=dict(metadata or {}),
        )

    @property
    def session_id(self) -> str:
        """
        获取会话唯一键

        返回值:
            str，格式为 "channel_type:user_id"
        """
        return f"{self.channel_type}:{self.user_id}"

    def reply(self, content: str, type: MessageType = MessageType.TEXT) -> "Message":
        """
        创建回复消息

        回复发往同一频道和用户，拥有新的 ID，并在 metadata 中记录 reply_to。
        """
        return replace(
            self,
            id=new_message_id(),
            content=content,
            type=type,
            metadata={**self.metadata, "reply_to": self.id},
            timestamp=datetime.now(timezone.utc),
        )
