"""
File: tests/unit/test_repository.py
Description: 通用仓储基类 (BaseRepository) 单元测试

Created: 2026-10-18
"""

from sqlalchemy.ext.asyncio import AsyncSession

from conftest import PROVIDER
from identity_bridge.db.models import MappingLog
from identity_bridge.db.repositories.base import BaseRepository
from identity_bridge.domains.bridge.repository import MappingLogRepository


def _entry(i: int) -> MappingLog:
    return MappingLog(provider_name=PROVIDER, principal_id=f"005P{i}", log_id=f"log-{i}", message="m")


async def test_add_all_flushes_without_commit(db_session: AsyncSession) -> None:
    repo = MappingLogRepository(MappingLog, db_session)

    entries = await repo.add_all([_entry(i) for i in range(3)])

    assert all(e.id is not None for e in entries)
    assert await repo.count() == 3

    await db_session.rollback()
    assert await repo.count() == 0


async def test_list_and_get(db_session: AsyncSession) -> None:
    repo: BaseRepository[MappingLog] = BaseRepository(MappingLog, db_session)
    [entry] = await repo.add_all([_entry(1)])
    await db_session.commit()

    assert [e.id for e in await repo.list(limit=10)] == [entry.id]
    assert await repo.get(entry.id) is entry
    assert await repo.exists(entry.id)
