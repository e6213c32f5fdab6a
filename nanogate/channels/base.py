# -*- coding: utf-8 -*-
"""
================================================================================
Base Channel Interface - 基础频道接口模块
================================================================================

功能描述:
    定义所有聊天频道适配器需要遵循的抽象基类。
    每个具体的频道（飞书、企业微信、QQ 等）都需要继承此类并实现抽象方法。

核心概念:
    1. channel_type: 频道类型，出站消息按此路由
    2. channel_id: 频道实例标识（同一类型可有多个实例）
    3. 入站: 平台消息 → _handle_message() → MessageBus.publish_inbound()
    4. 出站: ChannelManager → send_message() → 平台

子类实现要求:
    - start(): 启动频道并开始监听消息
    - stop(): 停止频道并清理资源
    - send_message(): 发送消息到平台

================================================================================
"""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from nanogate.bus.events import Message, MessageType
from nanogate.bus.queue import MessageBus
from nanogate.config.schema import ChannelConfig


class BaseChannel(ABC):
    """
    ========================================================================
    BaseChannel - 聊天频道抽象基类
    ========================================================================

    属性说明:
        - channel_type: 频道类型（子类覆盖）
        - channel_id: 频道实例 ID（默认等于 channel_type）
        - config: 频道配置（enabled、allow_from）
        - bus: 消息总线

    ========================================================================
    """

    channel_type: str = "base"
    """频道类型（子类应覆盖此值）"""

    def __init__(self, config: ChannelConfig, bus: MessageBus, channel_id: str | None = None):
        self.config = config
        self.bus = bus
        self.channel_id = channel_id or self.channel_type
        self._running = False

    @property
    def key(self) -> str:
        """ChannelManager 中的注册键: type:id"""
        return f"{self.channel_type}:{self.channel_id}"

    def is_enabled(self) -> bool:
        return self.config.enabled

    @abstractmethod
    async def start(self) -> None:
        """连接到聊天平台并开始监听传入消息，应设置 _running = True"""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """断开连接并释放资源，应设置 _running = False"""
        pass

    @abstractmethod
    async def send_message(self, msg: Message) -> None:
        """将出站消息发送到聊天平台"""
        pass

    def is_allowed(self, user_id: str) -> bool:
        """
        检查发送者是否被允许使用此机器人

        权限检查逻辑:
            1. 如果没有配置 allow_from，允许所有人
            2. 如果 user_id 在列表中，允许
            3. 如果 user_id 包含 "|"（多值），检查每个部分
        """
        allow_list = self.config.allow_from
        if not allow_list:
            return True

        user_str = str(user_id)
        if user_str in allow_list:
            return True

        if "|" in user_str:
            for part in user_str.split("|"):
                if part and part in allow_list:
                    return True
        return False

    async def _handle_message(
        self,
        user_id: str,
        content: str,
        user_name: str | None = None,
        type: MessageType = MessageType.TEXT,
        metadata: dict[str, Any] | None = None,
    ) -> Message | None:
        """
        处理来自聊天平台的传入消息

        检查权限后创建入站信封（分配新 ID）并发布到消息总线。

        返回值:
            Message | None，被拒绝时返回 None
        """
        if not self.is_allowed(user_id):
            logger.warning(
                f"Access denied for user {user_id} on channel {self.key}. "
                f"Add them to allowFrom list in config to grant access."
            )
            return None

        msg = Message.create(
            content=content,
            channel_type=self.channel_type,
            user_id=str(user_id),
            channel_id=self.channel_id,
            user_name=user_name,
            type=type,
            metadata=metadata,
        )
        await self.bus.publish_inbound(msg)
        return msg

    @property
    def is_running(self) -> bool:
        return self._running
