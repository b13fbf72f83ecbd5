"""
File: identity_bridge/worker.py
Description: 独立事件消费进程

Web 与写入方分离部署时使用 (EVENT_CHANNEL=redis, EVENT_CONSUMER_IN_PROCESS=false)：

    python -m identity_bridge.worker

以消费者主体 (CONSUMER_PRINCIPAL_ID / CONSUMER_PERMISSION_SETS) 的身份持续投递事件，
收到 SIGINT / SIGTERM 后完成当前批次再退出。

Created: 2026-10-18
"""

import asyncio
import signal
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_bridge.core.config import settings
from identity_bridge.core.logging import logger, setup_logging
from identity_bridge.core.redis import close_redis
from identity_bridge.db.session import AsyncSessionLocal, close_engine
from identity_bridge.events.channel import EventChannel, get_event_channel
from identity_bridge.events.dispatcher import EventDispatcher


async def run_worker(
    channel: EventChannel | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    dispatcher = EventDispatcher(
        channel or get_event_channel(), session_factory or AsyncSessionLocal
    )

    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for s in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(s, stop_event.set)
            installed.append(s)
        except (NotImplementedError, RuntimeError):
            # Windows / 非主线程
            pass

    logger.bind(
        channel=settings.EVENT_CHANNEL,
        principal_id=settings.CONSUMER_PRINCIPAL_ID,
    ).info("Event worker started")
    try:
        await dispatcher.run(stop_event)
    finally:
        for s in installed:
            loop.remove_signal_handler(s)
        await close_redis()
        await close_engine()
        logger.info("Event worker exited")


def main() -> int:
    setup_logging("worker")
    if settings.EVENT_CHANNEL == "memory":
        # 进程内通道无法跨进程共享
        logger.error("EVENT_CHANNEL=memory cannot be consumed by a separate worker")
        return 2
    try:
        asyncio.run(run_worker())
    except Exception:
        logger.exception("Event worker crashed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
