"""
File: identity_bridge/events/dispatcher.py
Description: 事件投递调度器

从通道取出一批事件，按类型分组交给 ChangeEventConsumer：
- 成功的类型: acknowledge
- 失败的类型: release (等待重投)，失败原因写入 DeliveryReport

运行方式：
1. run(): 后台循环 (应用 lifespan 或独立 Worker)
2. force_delivery(): 同步排空通道 (测试与管理接口的 "立即投递")

Created: 2026-10-18
"""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_bridge.core.config import settings
from identity_bridge.core.context import RequestContext
from identity_bridge.core.logging import logger
from identity_bridge.events.channel import Delivery, EventChannel
from identity_bridge.events.consumer import ChangeEventConsumer
from identity_bridge.events.schemas import ChangeEventKind


@dataclass
class DeliveryReport:
    fetched: int = 0
    applied: int = 0
    failures: dict[str, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: "DeliveryReport") -> None:
        self.fetched += other.fetched
        self.applied += other.applied
        self.failures.update(other.failures)


class EventDispatcher:
    """
    通道 → 消费者 的调度器。
    每个批次使用新的数据库会话与消费者身份的上下文。
    """

    def __init__(
        self,
        channel: EventChannel,
        session_factory: async_sessionmaker[AsyncSession],
        context_factory: Callable[[], RequestContext] = RequestContext.consumer,
        batch_size: int | None = None,
        poll_interval: float | None = None,
    ):
        self.channel = channel
        self.session_factory = session_factory
        self.context_factory = context_factory
        self.batch_size = batch_size or settings.EVENT_BATCH_SIZE
        self.poll_interval = poll_interval or settings.EVENT_POLL_INTERVAL

        self._running = False
        self._stop_event = asyncio.Event()
        self._background_task: asyncio.Task[None] | None = None

    # --------------------------------------------------------------------------
    # 单批次投递
    # --------------------------------------------------------------------------

    async def deliver_batch(self) -> DeliveryReport:
        deliveries = await self.channel.fetch(self.batch_size)
        report = DeliveryReport(fetched=len(deliveries))
        if not deliveries:
            return report

        grouped: dict[str, list[Delivery]] = defaultdict(list)
        for delivery in deliveries:
            grouped[delivery.event.kind].append(delivery)

        async with self.session_factory() as session:
            consumer = ChangeEventConsumer(session, self.context_factory())
            handlers: dict[str, Callable[[list[Any]], Any]] = {
                ChangeEventKind.LOG_CREATE: consumer.consume_log_create,
                ChangeEventKind.LOGIN_HISTORY_CREATE: consumer.consume_login_history_create,
                ChangeEventKind.MAPPING_TOUCH: consumer.consume_mapping_touch,
            }

            for kind in ChangeEventKind:
                batch = grouped.get(kind)
                if not batch:
                    continue
                try:
                    await handlers[kind]([d.event for d in batch])
                except Exception as exc:
                    await self.channel.release(batch)
                    report.failures[kind] = exc
                    logger.opt(exception=exc).bind(
                        event_kind=kind, batch_size=len(batch)
                    ).error("Change event batch aborted")
                    continue

                await self.channel.acknowledge(batch)
                report.applied += len(batch)

        return report

    async def force_delivery(self, raise_on_error: bool = True) -> DeliveryReport:
        """
        排空通道中所有待投递事件。
        遇到第一个失败批次即停止 (被 release 的事件仍在通道中)。

        Raises:
            Exception: raise_on_error 为 True 时，抛出第一个失败批次的原始异常
        """
        total = DeliveryReport()
        while True:
            report = await self.deliver_batch()
            total.merge(report)
            if not report.ok:
                if raise_on_error:
                    raise next(iter(report.failures.values()))
                break
            if report.fetched == 0:
                break
        return total

    # --------------------------------------------------------------------------
    # 后台循环
    # --------------------------------------------------------------------------

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """
        持续投递直到 stop_event 被设置 (或任务被取消)。
        批次为空或失败时等待 poll_interval 再重试。
        """
        stop_event = stop_event or asyncio.Event()
        logger.bind(batch_size=self.batch_size).info("Event dispatcher started")

        while not stop_event.is_set():
            try:
                report = await self.deliver_batch()
            except Exception:
                logger.exception("Event delivery loop error")
                report = DeliveryReport()

            if report.fetched and report.ok:
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except TimeoutError:
                pass

        logger.info("Event dispatcher stopped")

    async def start(self) -> None:
        if not self._running:
            self._running = True
            self._stop_event.clear()
            self._background_task = asyncio.create_task(self.run(self._stop_event))

    async def stop(self) -> None:
        self._running = False
        if self._background_task:
            self._stop_event.set()
            self._background_task.cancel()
            try:
                await self._background_task
            except asyncio.CancelledError:
                pass
            self._background_task = None
