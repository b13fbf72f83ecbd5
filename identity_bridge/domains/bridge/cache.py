"""
File: identity_bridge/domains/bridge/cache.py
Description: 映射缓存 (Mapping Cache)

在一次逻辑调用内按 (provider_name, principal_id) 缓存映射查询结果，
避免同一工作单元中的连续操作 (如先写日志再更新登录信息) 重复查询。

- 缓存以键区分，同一上下文中处理多个 (provider, principal) 组合也不会串值
- "不存在" 同样被缓存
- 每次读取都执行字段级 read 校验；结果遵循 owner 隔离 (持有 view_all 时除外)

Created: 2026-10-18
"""

from identity_bridge.core.access import Operation
from identity_bridge.core.context import RequestContext
from identity_bridge.core.logging import logger
from identity_bridge.db.models import UserMapping
from identity_bridge.domains.bridge.constants import MAPPING_READ
from identity_bridge.domains.bridge.repository import UserMappingRepository

_MISSING = object()


class MappingCache:
    def __init__(self, repo: UserMappingRepository, context: RequestContext):
        self.repo = repo
        self.context = context
        self._entries: dict[tuple[str, str], UserMapping | None] = {}

    async def get_mapping(self, provider_name: str, principal_id: str) -> UserMapping | None:
        self.context.policy.ensure_access(Operation.READ, MAPPING_READ)

        key = (provider_name, principal_id)
        cached = self._entries.get(key, _MISSING)
        if cached is not _MISSING:
            return cached  # type: ignore[return-value]

        owner_id = None
        if not self.context.policy.allows(MAPPING_READ.name, Operation.VIEW_ALL):
            owner_id = self.context.principal_id

        mapping = await self.repo.get_by_pair(provider_name, principal_id, owner_id=owner_id)
        self._entries[key] = mapping
        logger.bind(
            provider_name=provider_name, principal_id=principal_id, found=mapping is not None
        ).debug("Mapping lookup")
        return mapping

    async def mapping_exists(self, provider_name: str, principal_id: str) -> bool:
        return await self.get_mapping(provider_name, principal_id) is not None

    async def get_target_identifier(self, provider_name: str, principal_id: str) -> str | None:
        mapping = await self.get_mapping(provider_name, principal_id)
        return mapping.target_identifier if mapping else None

    def invalidate(self, provider_name: str, principal_id: str) -> None:
        self._entries.pop((provider_name, principal_id), None)

    def clear(self) -> None:
        self._entries.clear()
