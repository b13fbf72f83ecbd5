"""
File: identity_bridge/domains/bridge/repository.py
Description: 映射桥领域仓储层 (Repository)

1. UserMappingRepository: 按 (provider, principal) / 组合键查询映射
2. ExternalAuthProviderRepository: 按名称批量解析已配置的提供方 (大小写不敏感)
3. MappingLogRepository / LoginHistoryRepository: 不可变遥测记录

Created: 2026-10-18
"""

from collections.abc import Iterable

from sqlalchemy import and_, func, or_, select

from identity_bridge.db.models import (
    ExternalAuthProvider,
    LoginHistory,
    MappingLog,
    UserMapping,
)
from identity_bridge.db.repositories.base import BaseRepository


class UserMappingRepository(BaseRepository[UserMapping]):
    """
    用户映射仓储类。
    """

    async def get_by_pair(
        self, provider_name: str, principal_id: str, owner_id: str | None = None
    ) -> UserMapping | None:
        """
        查询 (provider, principal) 对应的映射。
        owner_id 不为空时只返回该主体拥有的记录 (读取隔离)。
        """
        stmt = select(UserMapping).where(
            UserMapping.provider_name == provider_name,
            UserMapping.principal_id == principal_id,
        )
        if owner_id is not None:
            stmt = stmt.where(UserMapping.owner_id == owner_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def get_by_pairs(
        self, pairs: Iterable[tuple[str, str]]
    ) -> dict[tuple[str, str], UserMapping]:
        """
        按 (provider_name, principal_id) 批量查询，返回 {(provider, principal): mapping}。
        组合键 mapping_key 不可逆 (两段都可能含 "_")，消费者定位映射必须按原始二元组匹配。
        """
        unique_pairs = set(pairs)
        if not unique_pairs:
            return {}
        stmt = select(UserMapping).where(
            or_(
                *(
                    and_(UserMapping.provider_name == p, UserMapping.principal_id == q)
                    for p, q in unique_pairs
                )
            )
        )
        result = await self.session.execute(stmt)
        return {(m.provider_name, m.principal_id): m for m in result.scalars().all()}

    async def get_by_mapping_keys(self, keys: Iterable[str]) -> dict[str, UserMapping]:
        """
        按组合键批量查询，返回 {mapping_key: mapping}。仅用于唯一性校验。
        """
        unique_keys = set(keys)
        if not unique_keys:
            return {}
        stmt = select(UserMapping).where(UserMapping.mapping_key.in_(unique_keys))
        result = await self.session.execute(stmt)
        return {m.mapping_key: m for m in result.scalars().all()}


class ExternalAuthProviderRepository(BaseRepository[ExternalAuthProvider]):
    """
    外部认证提供方仓储类。
    """

    async def find_existing_names(self, names: Iterable[str]) -> set[str]:
        """
        单次查询解析一批提供方名称。

        Returns:
            set[str]: 已存在的名称 (统一小写)
        """
        lowered = {n.lower() for n in names}
        if not lowered:
            return set()
        stmt = select(func.lower(ExternalAuthProvider.developer_name)).where(
            func.lower(ExternalAuthProvider.developer_name).in_(lowered)
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())


class MappingLogRepository(BaseRepository[MappingLog]):
    """
    映射日志仓储类 (只追加)。
    """


class LoginHistoryRepository(BaseRepository[LoginHistory]):
    """
    登录历史仓储类 (只追加)。
    """
