"""Channel manager for coordinating chat channels."""
# 频道管理器模块
# 用于协调和管理多个聊天频道，并把出站消息路由到对应频道

import asyncio
from typing import Any

from loguru import logger

from nanogate.bus.events import Message
from nanogate.bus.queue import MessageBus, Subscription
from nanogate.channels.base import BaseChannel
from nanogate.errors import RoutingError


class ChannelManager:
    """
    Manages chat channels and routes outbound messages.
    # 管理聊天频道并协调消息路由

    Channels are registered explicitly at startup, keyed "type:id".
    # 频道在启动时显式注册，注册键为 "type:id"
    """

    def __init__(self, bus: MessageBus):
        self.bus = bus
        self.channels: dict[str, BaseChannel] = {}
        self._subscription: Subscription | None = None
        self._dispatch_task: asyncio.Task | None = None
        self._start_tasks: list[asyncio.Task] = []

    def register(self, channel: BaseChannel) -> bool:
        """Register a channel; disabled channels are skipped."""
        # 注册频道，被禁用的频道跳过
        if not channel.is_enabled():
            logger.info(f"Channel disabled, skipping: {channel.key}")
            return False
        self.channels[channel.key] = channel
        logger.info(f"Channel registered: {channel.key}")
        return True

    async def _start_channel(self, key: str, channel: BaseChannel) -> None:
        try:
            await channel.start()
        except Exception as e:
            logger.error(f"Failed to start channel {key}: {e}")

    async def start_all(self) -> None:
        """Start the outbound dispatcher and all channels."""
        # 启动出站分发器和所有频道（频道 start() 可能长期运行，作为后台任务）
        if self._dispatch_task is None:
            self._subscription = self.bus.subscribe_outbound()
            self._dispatch_task = asyncio.create_task(self._dispatch_loop(self._subscription))

        if not self.channels:
            logger.warning("No channels enabled")
            return

        for key, channel in self.channels.items():
            logger.info(f"Starting {key} channel...")
            self._start_tasks.append(asyncio.create_task(self._start_channel(key, channel)))

    async def stop_all(self) -> None:
        """Stop all channels and the dispatcher."""
        logger.info("Stopping all channels...")

        if self._subscription is not None:
            self._subscription.close()
        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None
            self._subscription = None

        for task in self._start_tasks:
            task.cancel()
        if self._start_tasks:
            await asyncio.gather(*self._start_tasks, return_exceptions=True)
        self._start_tasks.clear()

        for key, channel in self.channels.items():
            try:
                await channel.stop()
                logger.info(f"Stopped {key} channel")
            except Exception as e:
                logger.error(f"Error stopping {key}: {e}")

    async def _dispatch_loop(self, subscription: Subscription) -> None:
        # 将出站消息分发到对应频道
        logger.info("Outbound dispatcher started")
        async for msg in subscription:
            await self.dispatch_outbound(msg)

    async def dispatch_outbound(self, msg: Message) -> bool:
        """
        Deliver one outbound message to its channel.
        # 按 channel_type 查找频道（有 channel_id 时优先精确匹配）
        # 找不到频道只记录警告；发送失败记录错误，都不向外抛出

        Returns whether a channel accepted the message.
        """
        channel = self._find_channel(msg)
        if channel is None:
            err = RoutingError(f"No channel found for type: {msg.channel_type}", details={"message_id": msg.id})
            logger.warning(str(err))
            return False
        try:
            await channel.send_message(msg)
            return True
        except Exception as e:
            logger.error(f"Error sending to {channel.key}: {e}")
            return False

    def _find_channel(self, msg: Message) -> BaseChannel | None:
        if msg.channel_id:
            exact = self.channels.get(f"{msg.channel_type}:{msg.channel_id}")
            if exact is not None:
                return exact
        return self.get_channel(msg.channel_type)

    def get_channel(self, channel_type: str) -> BaseChannel | None:
        """Get the first registered channel of a type."""
        for channel in self.channels.values():
            if channel.channel_type == channel_type:
                return channel
        return None

    def all_channels(self) -> list[BaseChannel]:
        return list(self.channels.values())

    def get_status(self) -> dict[str, Any]:
        """Get status of all channels."""
        return {
            key: {
                "type": channel.channel_type,
                "id": channel.channel_id,
                "running": channel.is_running,
            }
            for key, channel in self.channels.items()
        }

    @property
    def enabled_channels(self) -> list[str]:
        return list(self.channels.keys())
