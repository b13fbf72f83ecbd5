"""
File: identity_bridge/events/channel.py
Description: 变更事件通道 (发布即返回，稍后消费)

1. EventChannel: 通道协议 (publish / fetch / acknowledge / release)
2. MemoryEventChannel: 进程内通道 (单进程部署与自动化测试)
3. RedisStreamChannel: Redis Streams 通道 (消费者组，Web 与 Worker 分离部署)
4. get_event_channel: 按配置构造全局通道

投递语义：
- publish 只保证事件已交给通道，不保证已持久化为业务数据
- fetch 取出的批次在 acknowledge 之前处于"在途"状态
- release 把失败批次交还通道以待重投 (进程内放回队首，Redis 下重新追加到流尾)

Created: 2026-10-18
"""

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from itertools import count
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError
from redis.asyncio import Redis
from redis.exceptions import ResponseError

from identity_bridge.core.config import settings
from identity_bridge.core.logging import logger
from identity_bridge.core.redis import get_redis_client
from identity_bridge.events.schemas import ChangeEvent, ChangeEventBase, decode_event, encode_event

PAYLOAD_FIELD = "payload"


@dataclass(frozen=True)
class Delivery:
    """通道中的一次投递 (delivery_id 由传输层分配)"""

    delivery_id: str
    event: ChangeEvent


class EventChannel(Protocol):
    async def publish(self, event: ChangeEventBase) -> None: ...

    async def fetch(self, max_batch: int) -> list[Delivery]: ...

    async def acknowledge(self, deliveries: Sequence[Delivery]) -> None: ...

    async def release(self, deliveries: Sequence[Delivery]) -> None: ...


# ==============================================================================
# 1. 进程内通道
# ==============================================================================


class MemoryEventChannel:
    """
    进程内通道。

    事件以编码后的 JSON 存放，与 Redis 通道保持相同的序列化边界，
    发布方持有的对象与消费方拿到的对象互不共享。
    """

    def __init__(self) -> None:
        self._queue: deque[tuple[str, str]] = deque()
        self._in_flight: dict[str, str] = {}
        self._ids = count(1)

    async def publish(self, event: ChangeEventBase) -> None:
        self._queue.append((str(next(self._ids)), encode_event(event)))

    async def fetch(self, max_batch: int) -> list[Delivery]:
        deliveries: list[Delivery] = []
        while self._queue and len(deliveries) < max_batch:
            delivery_id, raw = self._queue.popleft()
            self._in_flight[delivery_id] = raw
            deliveries.append(Delivery(delivery_id, decode_event(raw)))
        return deliveries

    async def acknowledge(self, deliveries: Sequence[Delivery]) -> None:
        for delivery in deliveries:
            self._in_flight.pop(delivery.delivery_id, None)

    async def release(self, deliveries: Sequence[Delivery]) -> None:
        # 失败批次按原顺序放回队首
        for delivery in reversed(deliveries):
            raw = self._in_flight.pop(delivery.delivery_id, None)
            if raw is not None:
                self._queue.appendleft((delivery.delivery_id, raw))

    def pending(self) -> int:
        """尚未被取出的事件数"""
        return len(self._queue)

    def in_flight(self) -> int:
        return len(self._in_flight)


# ==============================================================================
# 2. Redis Streams 通道
# ==============================================================================


class RedisStreamChannel:
    """
    基于 Redis Streams 消费者组的通道。

    - fetch 每次都读取新条目 (">")；同时用 XAUTOCLAIM 回收空闲超过 claim_min_idle_ms
      的未确认条目 (消费者在 acknowledge 之前崩溃遗留在 PEL 中的批次)
    - release 把失败条目重新追加到流尾并确认原条目 (同一 MULTI 事务)，
      失败批次不会挡住之后发布的事件
    """

    def __init__(
        self,
        redis: Redis,
        stream_key: str,
        group: str,
        consumer: str,
        claim_min_idle_ms: int = 60_000,
    ):
        self.redis = redis
        self.stream_key = stream_key
        self.group = group
        self.consumer = consumer
        self.claim_min_idle_ms = claim_min_idle_ms
        self._group_ready = False

    async def ensure_group(self) -> None:
        if self._group_ready:
            return
        try:
            await self.redis.xgroup_create(self.stream_key, self.group, id="0", mkstream=True)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
        self._group_ready = True

    async def publish(self, event: ChangeEventBase) -> None:
        await self.redis.xadd(self.stream_key, {PAYLOAD_FIELD: encode_event(event)})

    async def fetch(self, max_batch: int) -> list[Delivery]:
        await self.ensure_group()

        entries = await self._claim_stale(max_batch)
        if len(entries) < max_batch:
            entries.extend(await self._read_new(max_batch - len(entries)))

        deliveries: list[Delivery] = []
        malformed: list[str] = []
        for entry_id, fields in entries:
            raw = (fields or {}).get(PAYLOAD_FIELD)
            if raw is None:
                malformed.append(entry_id)
                continue
            try:
                deliveries.append(Delivery(entry_id, decode_event(raw)))
            except (PydanticValidationError, ValueError):
                malformed.append(entry_id)

        if malformed:
            # 无法解码的条目永远无法成功消费，确认后丢弃
            logger.bind(stream=self.stream_key, entry_ids=malformed).error(
                "Dropping malformed change events"
            )
            await self.redis.xack(self.stream_key, self.group, *malformed)

        return deliveries

    async def _claim_stale(self, max_batch: int) -> list[tuple[str, dict[str, str] | None]]:
        result = await self.redis.xautoclaim(
            self.stream_key,
            self.group,
            self.consumer,
            min_idle_time=self.claim_min_idle_ms,
            start_id="0-0",
            count=max_batch,
        )
        # Redis 6.2 对已删除的条目返回空占位
        claimed = [
            (entry_id, fields) for entry_id, fields in (result[1] if result else []) if entry_id
        ]
        if claimed:
            logger.bind(stream=self.stream_key, claimed=len(claimed)).warning(
                "Reclaimed idle pending change events"
            )
        return claimed

    async def _read_new(self, max_batch: int) -> list[tuple[str, dict[str, str] | None]]:
        response = await self.redis.xreadgroup(
            self.group,
            self.consumer,
            {self.stream_key: ">"},
            count=max_batch,
        )
        if not response:
            return []
        _, entries = response[0]
        return list(entries)

    async def acknowledge(self, deliveries: Sequence[Delivery]) -> None:
        if deliveries:
            await self.redis.xack(
                self.stream_key, self.group, *(d.delivery_id for d in deliveries)
            )

    async def release(self, deliveries: Sequence[Delivery]) -> None:
        if not deliveries:
            return
        async with self.redis.pipeline(transaction=True) as pipe:
            for delivery in deliveries:
                pipe.xadd(self.stream_key, {PAYLOAD_FIELD: encode_event(delivery.event)})
            pipe.xack(self.stream_key, self.group, *(d.delivery_id for d in deliveries))
            await pipe.execute()


# ==============================================================================
# 3. 通道工厂
# ==============================================================================

_channel: EventChannel | None = None


def build_event_channel() -> EventChannel:
    if settings.EVENT_CHANNEL == "redis":
        return RedisStreamChannel(
            redis=get_redis_client(),
            stream_key=settings.EVENT_STREAM_KEY,
            group=settings.EVENT_CONSUMER_GROUP,
            consumer=settings.EVENT_CONSUMER_NAME,
            claim_min_idle_ms=settings.EVENT_CLAIM_MIN_IDLE_MS,
        )
    return MemoryEventChannel()


def get_event_channel() -> EventChannel:
    """进程级通道实例 (依赖注入入口，测试可 override)"""
    global _channel
    if _channel is None:
        _channel = build_event_channel()
    return _channel
