# -*- coding: utf-8 -*-
"""
================================================================================
Message Bus Queue - 消息总线模块
================================================================================

功能描述:
    进程内的发布/订阅中心，在频道适配器与 Agent 之间传递消息信封。
    频道负责消息的收发，Agent 负责消息的处理，二者互不直接依赖。

消息流:
    用户 → 频道 → 入站流 → AgentLoop → 出站流 → 频道 → 用户

投递语义:
    1. 多播：一条流的每个当前订阅者都会收到之后发布的每条消息
    2. 无回放：晚订阅的订阅者收不到之前的消息
    3. 尽力而为：每个订阅者有自己的有界缓冲区。缓冲区满时按溢出策略处理，
       记录投递失败日志，但绝不阻塞或让发布者失败
    4. 频道流在首次订阅或发布时惰性创建，在进程生命周期内一直存在

溢出策略 (OverflowPolicy):
    - DROP_NEW: 丢弃新到达的消息（默认）
    - DROP_OLDEST: 丢弃缓冲区中最旧的消息，再放入新消息

注意:
    - publish 不会抛出异常，也不返回投递结果。需要投递确认的调用方
      不能依赖此总线
    - 只在事件循环线程内使用

================================================================================
"""

import asyncio
from enum import Enum
from typing import Callable

from loguru import logger

from nanogate.bus.events import Message

_CLOSED = object()


class OverflowPolicy(str, Enum):
    DROP_NEW = "drop_new"
    DROP_OLDEST = "drop_oldest"


class Subscription:
    """
    ========================================================================
    Subscription - 订阅者
    ========================================================================

    每个订阅者持有一个有界的 asyncio.Queue。

    使用示例:
        sub = bus.subscribe_inbound()
        async for msg in sub:
            ...

        # 或者
        msg = await sub.get()

    关闭后 get() 返回 None，async for 循环结束。

    ========================================================================
    """

    def __init__(
        self,
        topic: "_Topic",
        maxsize: int,
        policy: OverflowPolicy,
        predicate: Callable[[Message], bool] | None = None,
    ):
        self._topic = topic
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._policy = policy
        self._predicate = predicate
        self._closed = False
        self.dropped = 0
        """因缓冲区满而丢弃的消息数"""

    @property
    def topic(self) -> str:
        return self._topic.name

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """缓冲区中待消费的消息数"""
        return self._queue.qsize()

    def accepts(self, msg: Message) -> bool:
        return self._predicate is None or self._predicate(msg)

    def offer(self, msg: Message) -> bool:
        """
        非阻塞投递

        返回值:
            bool，是否投递成功（DROP_OLDEST 策略下，新消息总会被放入）
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(msg)
            return True
        except asyncio.QueueFull:
            pass

        self.dropped += 1
        if self._policy == OverflowPolicy.DROP_OLDEST:
            self._queue.get_nowait()
            self._queue.put_nowait(msg)
            return True
        return False

    async def get(self) -> Message | None:
        """等待下一条消息，订阅关闭时返回 None"""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def get_nowait(self) -> Message | None:
        """立即获取一条消息，没有可用消息时返回 None"""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return None if item is _CLOSED else item

    def close(self) -> None:
        """取消订阅，只影响当前订阅者"""
        if self._closed:
            return
        self._closed = True
        self._topic.remove(self)
        # 唤醒正在等待的消费者；缓冲区满时腾出最旧的一条给结束标记
        if self._queue.full():
            evicted = self._queue.get_nowait()
            self.dropped += 1
            self._topic.dropped += 1
            logger.warning(f"Subscription on {self.topic} closed with full buffer, dropped {evicted.id}")
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Message:
        msg = await self.get()
        if msg is None:
            raise StopAsyncIteration
        return msg


class _Topic:
    """一条多播流"""

    def __init__(self, name: str):
        self.name = name
        self.subscribers: list[Subscription] = []
        self.published = 0
        self.dropped = 0

    def remove(self, sub: Subscription) -> None:
        if sub in self.subscribers:
            self.subscribers.remove(sub)

    def publish(self, msg: Message) -> int:
        """投递给所有订阅者，返回成功投递的数量"""
        self.published += 1
        delivered = 0
        for sub in list(self.subscribers):
            try:
                if not sub.accepts(msg):
                    continue
                if sub.offer(msg):
                    delivered += 1
                else:
                    self.dropped += 1
                    logger.warning(f"Delivery failed on {self.name}: subscriber buffer full, dropped {msg.id}")
            except Exception as e:
                self.dropped += 1
                logger.error(f"Delivery failed on {self.name} for {msg.id}: {e}")
        return delivered


class MessageBus:
    """
    ========================================================================
    MessageBus - 消息总线类
    ========================================================================

    功能特点:
        1. 入站流 / 出站流：多播，每个订阅者独立缓冲
        2. 频道流：按 channel_id 划分，出站消息同时投递到对应频道流
        3. 频道类型订阅：出站流上按 channel_type 过滤的视图
        4. 统计：发布数、丢弃数、订阅者数

    ========================================================================
    """

    def __init__(self, buffer_size: int = 256, overflow: OverflowPolicy | str = OverflowPolicy.DROP_NEW):
        if buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")
        self.buffer_size = buffer_size
        self.overflow = OverflowPolicy(overflow)
        self._inbound = _Topic("inbound")
        self._outbound = _Topic("outbound")
        self._channels: dict[str, _Topic] = {}

    def _subscribe(self, topic: _Topic, predicate: Callable[[Message], bool] | None = None) -> Subscription:
        sub = Subscription(topic, self.buffer_size, self.overflow, predicate)
        topic.subscribers.append(sub)
        logger.debug(f"New subscriber on {topic.name} ({len(topic.subscribers)} total)")
        return sub

    def _channel_topic(self, channel_id: str) -> _Topic:
        topic = self._channels.get(channel_id)
        if topic is None:
            topic = self._channels[channel_id] = _Topic(f"channel:{channel_id}")
        return topic

    async def publish_inbound(self, msg: Message) -> None:
        """
        发布入站消息

        使用场景:
            - 频道适配器收到用户消息后调用
            - HTTP publish 接口调用
        """
        self._inbound.publish(msg)
        logger.debug(f"Published inbound message: {msg.id}")

    async def publish_outbound(self, msg: Message) -> None:
        """
        发布出站消息

        如果消息带有 channel_id，同时投递到该频道流。
        """
        self._outbound.publish(msg)
        if msg.channel_id:
            self._channel_topic(msg.channel_id).publish(msg)
        logger.debug(f"Published outbound message: {msg.id}")

    def subscribe_inbound(self) -> Subscription:
        return self._subscribe(self._inbound)

    def subscribe_outbound(self) -> Subscription:
        return self._subscribe(self._outbound)

    def subscribe_channel(self, channel_id: str) -> Subscription:
        """订阅某个频道实例的出站消息"""
        return self._subscribe(self._channel_topic(channel_id))

    def subscribe_channel_type(self, channel_type: str) -> Subscription:
        """订阅某一类频道的出站消息"""
        return self._subscribe(self._outbound, lambda m: m.channel_type == channel_type)

    @property
    def channel_ids(self) -> list[str]:
        return list(self._channels.keys())

    def stats(self) -> dict[str, dict[str, int]]:
        """
        获取各条流的统计信息

        返回值:
            dict，key 为流名称，value 包含 published / dropped / subscribers
        """
        topics = [self._inbound, self._outbound, *self._channels.values()]
        return {
            t.name: {
                "published": t.published,
                "dropped": t.dropped,
                "subscribers": len(t.subscribers),
            }
            for t in topics
        }
