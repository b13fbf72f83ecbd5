"""
File: identity_bridge/domains/bridge/service.py
Description: 映射桥领域服务 (业务逻辑层)

1. IdentityBridgeService: 对外公开的六个操作
   - 写操作 (日志/登录历史/登录信息) 只发布变更事件，不直接写库
   - 读操作 (映射是否存在/目标标识) 走请求级 MappingCache
   - 身份数据获取委托给 IdentityClient
2. MappingAdminService: 映射批量创建 (管理员)
   - 逐条校验并返回与输入对齐的结果，单条失败不影响其他记录

注意：
- 公开写操作先过 Access Gate，再过 Validation Gate
- 事务提交 (Commit) 只发生在 MappingAdminService；事件写入由消费者提交

Created: 2026-10-18
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from identity_bridge.core.access import Operation
from identity_bridge.core.context import RequestContext
from identity_bridge.core.logging import logger
from identity_bridge.db.models import ExternalAuthProvider, UserMapping
from identity_bridge.domains.bridge.cache import MappingCache
from identity_bridge.domains.bridge.constants import MAPPING_CREATE
from identity_bridge.domains.bridge.repository import (
    ExternalAuthProviderRepository,
    UserMappingRepository,
)
from identity_bridge.domains.bridge.schemas import MappingCreate, MappingCreateResult
from identity_bridge.domains.bridge.validation import (
    derive_composite_key,
    is_blank,
    validate_provider_exists,
)
from identity_bridge.domains.identity.schemas import UserProfile
from identity_bridge.domains.identity.service import IdentityClient, extract_session_token
from identity_bridge.events.channel import EventChannel
from identity_bridge.events.publisher import ChangeEventPublisher


class IdentityBridgeService:
    """
    映射桥公开操作。
    一个实例对应一次逻辑调用 (一个 RequestContext)，缓存随实例释放。
    """

    def __init__(
        self,
        session: AsyncSession,
        context: RequestContext,
        channel: EventChannel,
        identity_client: IdentityClient,
    ):
        self.context = context
        self.publisher = ChangeEventPublisher(channel, context)
        self.cache = MappingCache(UserMappingRepository(UserMapping, session), context)
        self.identity_client = identity_client

    # --------------------------------------------------------------------------
    # 写操作 (发布变更事件)
    # --------------------------------------------------------------------------

    async def insert_log(
        self,
        provider_name: str | None,
        principal_id: str | None,
        log_id: str | None,
        message: str | None,
    ) -> None:
        await self.publisher.publish_log_create(provider_name, principal_id, log_id, message)

    async def insert_login_history_record(
        self,
        provider_name: str | None,
        principal_id: str | None,
        flow_type: str | None,
        login_at: datetime | None,
        success: bool | None = False,
        provider_type: str | None = None,
        login_info: str | None = None,
    ) -> None:
        await self.publisher.publish_login_history_create(
            provider_name,
            principal_id,
            flow_type,
            login_at,
            success=success,
            provider_type=provider_type,
            login_info=login_info,
        )

    async def update_mapping_login_details(
        self, provider_name: str | None, principal_id: str | None
    ) -> None:
        """
        不检查映射是否存在：映射缺失时由消费者静默跳过，
        因此重复调用不会失败。
        """
        await self.publisher.publish_mapping_touch(provider_name, principal_id)

    # --------------------------------------------------------------------------
    # 读操作
    # --------------------------------------------------------------------------

    async def check_user_mapping_exists(self, provider_name: str, principal_id: str) -> bool:
        return await self.cache.mapping_exists(provider_name, principal_id)

    async def get_subject_from_user_mapping(
        self, provider_name: str, principal_id: str
    ) -> str | None:
        return await self.cache.get_target_identifier(provider_name, principal_id)

    async def get_auth_user_data_from_cookie_header(self, cookie_header: str | None) -> UserProfile:
        token = extract_session_token(cookie_header)
        return await self.identity_client.fetch_user_profile(token)


class MappingAdminService:
    """
    映射维护 (管理员)。

    写入前依次执行 "触发器" 逻辑：
    1. 必填字段与列长度
    2. 派生 mapping_key
    3. provider 存在性 (批量，一次查询)
    4. mapping_key 唯一性 (批次内 + 已有数据)
    通过的记录在同一事务中写入，未通过的记录附带错误返回。
    """

    REQUIRED_FIELDS = ("provider_name", "principal_id", "target_identifier")

    def __init__(self, session: AsyncSession, context: RequestContext):
        self.session = session
        self.context = context
        self.mapping_repo = UserMappingRepository(UserMapping, session)
        self.provider_repo = ExternalAuthProviderRepository(ExternalAuthProvider, session)

    async def create_mappings(self, items: list[MappingCreate]) -> list[MappingCreateResult]:
        self.context.policy.ensure_access(Operation.CREATE, MAPPING_CREATE)

        drafts = [
            UserMapping(
                provider_name=(item.provider_name or "").strip(),
                principal_id=(item.principal_id or "").strip(),
                target_identifier=(item.target_identifier or "").strip(),
                owner_id=(item.owner_id or item.principal_id or "").strip(),
            )
            for item in items
        ]
        errors: list[list[str]] = [self._check_fields(d) for d in drafts]

        derive_composite_key(drafts, "provider_name", "principal_id", "mapping_key")

        provider_errors = await validate_provider_exists("provider_name", drafts, self.provider_repo)
        for record_errors, provider_error in zip(errors, provider_errors):
            if provider_error:
                record_errors.append(provider_error)

        existing = await self.mapping_repo.get_by_mapping_keys(d.mapping_key for d in drafts)
        seen: set[str] = set()
        for draft, record_errors in zip(drafts, errors):
            if draft.mapping_key in existing or draft.mapping_key in seen:
                record_errors.append(f"Duplicate mapping: {draft.mapping_key}")
            elif not record_errors:
                seen.add(draft.mapping_key)

        valid = [d for d, e in zip(drafts, errors) if not e]
        if valid:
            await self.mapping_repo.add_all(valid)
            await self.session.commit()

        logger.bind(
            principal_id=self.context.principal_id,
            batch_size=len(drafts),
            created=len(valid),
        ).info("User mappings processed")

        return [
            MappingCreateResult(
                index=index,
                success=not record_errors,
                id=draft.id if not record_errors else None,
                mapping_key=draft.mapping_key,
                errors=record_errors,
            )
            for index, (draft, record_errors) in enumerate(zip(drafts, errors))
        ]

    def _check_fields(self, draft: UserMapping) -> list[str]:
        problems: list[str] = []
        for field in (*self.REQUIRED_FIELDS, "owner_id"):
            value = getattr(draft, field)
            if is_blank(value):
                if field in self.REQUIRED_FIELDS:
                    problems.append(f"{field} is required")
                continue
            limit = UserMapping.max_length(field)
            if limit is not None and len(value) > limit:
                problems.append(f"{field} exceeds {limit} characters")
        return problems
