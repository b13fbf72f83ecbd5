"""
File: identity_bridge/events/consumer.py
Description: 变更事件消费者 (特权写入方)

按事件类型处理一个投递批次，每种类型一个事务：
1. LogCreate: 写入 MappingLog，再回写映射的 last_log_reference (映射不存在时静默跳过)
2. LoginHistoryCreate: 批量写入 LoginHistory
3. MappingTouch: 映射存在时 login_count + 1，last_login_at = 当前时间

任一 Access Gate 失败都会中止该类型的整个批次 (回滚，不做部分提交)。

Created: 2026-10-18
"""

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from identity_bridge.core.access import Operation
from identity_bridge.core.context import RequestContext
from identity_bridge.core.logging import logger
from identity_bridge.db.models import LoginHistory, MappingLog, UserMapping
from identity_bridge.db.models.base import utcnow
from identity_bridge.domains.bridge.constants import (
    LOGIN_HISTORY_CREATE,
    MAPPING_LOG_CREATE,
    MAPPING_LOG_REFERENCE_UPDATE,
    MAPPING_LOGIN_UPDATE,
)
from identity_bridge.domains.bridge.repository import (
    LoginHistoryRepository,
    MappingLogRepository,
    UserMappingRepository,
)
from identity_bridge.events.schemas import (
    LogCreateEvent,
    LoginHistoryCreateEvent,
    MappingTouchEvent,
)


class ChangeEventConsumer:
    """
    事件消费者。
    每个 consume_* 方法自行管理事务：成功 commit，失败 rollback 后继续抛出。
    """

    def __init__(self, session: AsyncSession, context: RequestContext):
        self.session = session
        self.context = context
        self.mapping_repo = UserMappingRepository(UserMapping, session)
        self.log_repo = MappingLogRepository(MappingLog, session)
        self.login_history_repo = LoginHistoryRepository(LoginHistory, session)

    async def consume_log_create(self, events: Sequence[LogCreateEvent]) -> list[MappingLog]:
        if not events:
            return []
        try:
            self.context.policy.ensure_access(Operation.CREATE, MAPPING_LOG_CREATE)
            self.context.policy.ensure_access(Operation.UPDATE, MAPPING_LOG_REFERENCE_UPDATE)

            entries = await self.log_repo.add_all(
                [
                    MappingLog(
                        provider_name=e.provider_name,
                        principal_id=e.principal_id,
                        log_id=e.log_id,
                        message=e.message,
                    )
                    for e in events
                ]
            )
            await self.touch_mapping_log_reference(entries)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.bind(event_kind="LogCreate", batch_size=len(events)).info(
            "Mapping logs persisted"
        )
        return list(entries)

    async def touch_mapping_log_reference(self, entries: Sequence[MappingLog]) -> int:
        """
        把每个映射的 last_log_reference 指向本批次中属于它的最后一条日志。
        没有映射的 (provider, principal) 静默跳过。

        Returns:
            int: 被更新的映射数
        """
        keys = [(e.provider_name, e.principal_id) for e in entries]
        mappings = await self.mapping_repo.get_by_pairs(keys)
        if not mappings:
            return 0

        touched: set[tuple[str, str]] = set()
        for key, entry in zip(keys, entries):
            mapping = mappings.get(key)
            if mapping is None:
                continue
            mapping.last_log_reference = entry.id
            touched.add(key)

        await self.session.flush()
        return len(touched)

    async def consume_login_history_create(
        self, events: Sequence[LoginHistoryCreateEvent]
    ) -> list[LoginHistory]:
        if not events:
            return []
        try:
            self.context.policy.ensure_access(Operation.CREATE, LOGIN_HISTORY_CREATE)

            rows = await self.login_history_repo.add_all(
                [
                    LoginHistory(
                        provider_name=e.provider_name,
                        principal_id=e.principal_id,
                        flow_type=e.flow_type,
                        login_at=e.login_at,
                        success=e.success,
                        provider_type=e.provider_type,
                        login_info=e.login_info,
                    )
                    for e in events
                ]
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.bind(event_kind="LoginHistoryCreate", batch_size=len(events)).info(
            "Login histories persisted"
        )
        return list(rows)

    async def consume_mapping_touch(self, events: Sequence[MappingTouchEvent]) -> int:
        """
        Returns:
            int: 实际被更新的映射次数 (映射不存在的事件不计入)
        """
        if not events:
            return 0
        try:
            self.context.policy.ensure_access(Operation.UPDATE, MAPPING_LOGIN_UPDATE)

            mappings = await self.mapping_repo.get_by_pairs(
                (e.provider_name, e.principal_id) for e in events
            )
            applied = 0
            for event in events:
                mapping = mappings.get((event.provider_name, event.principal_id))
                if mapping is None:
                    continue
                mapping.login_count = (mapping.login_count or 0) + 1
                mapping.last_login_at = utcnow()
                applied += 1

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.bind(event_kind="MappingTouch", batch_size=len(events), applied=applied).info(
            "Mapping login details updated"
        )
        return applied
