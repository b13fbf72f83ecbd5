"""
File: tests/unit/test_worker.py
Description: 独立事件 Worker 单元测试

1. 进程内通道无法被独立进程消费，main() 直接以退出码 2 返回
2. run_worker 从 Redis 通道取出事件写入数据库，stop_event 置位后退出

Created: 2026-10-18
"""

import asyncio

import fakeredis
from fakeredis.aioredis import FakeRedis
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import PROVIDER, USER_PRINCIPAL
from identity_bridge import worker
from identity_bridge.core.config import settings
from identity_bridge.db.models import MappingLog
from identity_bridge.events.channel import RedisStreamChannel
from identity_bridge.events.schemas import LogCreateEvent


def test_main_refuses_memory_channel() -> None:
    assert settings.EVENT_CHANNEL == "memory"
    assert worker.main() == 2


async def test_run_worker_delivers_until_stopped(
    session_factory: async_sessionmaker[AsyncSession],
    db_session: AsyncSession,
) -> None:
    redis = FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    channel = RedisStreamChannel(redis, "identity_bridge:worker_events", "workers", "worker-1")
    await channel.publish(
        LogCreateEvent(
            provider_name=PROVIDER,
            principal_id=USER_PRINCIPAL,
            log_id="9f86d081884c7d659a2feaa0c55ad015",
            message="from worker",
        )
    )

    stop_event = asyncio.Event()
    task = asyncio.create_task(
        worker.run_worker(channel=channel, session_factory=session_factory, stop_event=stop_event)
    )

    persisted = 0
    for _ in range(100):
        result = await db_session.execute(select(func.count()).select_from(MappingLog))
        persisted = result.scalar_one()
        if persisted:
            break
        await asyncio.sleep(0.02)

    stop_event.set()
    await asyncio.wait_for(task, timeout=5)
    await redis.aclose()

    assert persisted == 1
    assert task.exception() is None
