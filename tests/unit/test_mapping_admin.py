"""
File: tests/unit/test_mapping_admin.py
Description: 映射批量创建 (MappingAdminService) 单元测试

写入前逻辑：必填/长度 → 组合键 → provider 存在性 → 唯一性。
每条记录独立评估，结果与输入按位置对齐。

Created: 2026-10-18
"""

from collections.abc import Awaitable, Callable

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import OTHER_PRINCIPAL, PROVIDER, USER_PRINCIPAL
from identity_bridge.core.context import RequestContext
from identity_bridge.core.exceptions import AccessDenied
from identity_bridge.db.models import ExternalAuthProvider, UserMapping
from identity_bridge.domains.bridge import validation
from identity_bridge.domains.bridge.schemas import MappingCreate
from identity_bridge.domains.bridge.service import MappingAdminService


@pytest.fixture
def admin_service(db_session: AsyncSession, admin_context: RequestContext) -> MappingAdminService:
    return MappingAdminService(db_session, admin_context)


@pytest.fixture
def enforce_provider_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(validation, "ENFORCE_PROVIDER_CHECK_UNDER_TEST", True)


async def _mapping_keys(session: AsyncSession) -> list[str]:
    result = await session.execute(select(UserMapping.mapping_key).order_by(UserMapping.mapping_key))
    return list(result.scalars().all())


async def test_create_single_mapping(
    admin_service: MappingAdminService, db_session: AsyncSession
) -> None:
    [result] = await admin_service.create_mappings(
        [MappingCreate(provider_name=PROVIDER, principal_id=USER_PRINCIPAL, target_identifier="U2")]
    )

    assert result.success
    assert result.errors == []
    assert result.mapping_key == f"{PROVIDER}_{USER_PRINCIPAL}"

    mapping = await db_session.get(UserMapping, result.id)
    assert mapping is not None
    assert mapping.owner_id == USER_PRINCIPAL
    assert mapping.login_count == 0
    assert mapping.last_login_at is None


async def test_values_are_trimmed_before_key_derivation(
    admin_service: MappingAdminService,
) -> None:
    [result] = await admin_service.create_mappings(
        [
            MappingCreate(
                provider_name=f"  {PROVIDER} ",
                principal_id=f"{USER_PRINCIPAL}  ",
                target_identifier=" U2 ",
            )
        ]
    )

    assert result.mapping_key == f"{PROVIDER}_{USER_PRINCIPAL}"


@pytest.mark.usefixtures("enforce_provider_check")
async def test_unknown_provider_flags_only_that_record(
    admin_service: MappingAdminService,
    registered_provider: ExternalAuthProvider,
    db_session: AsyncSession,
) -> None:
    results = await admin_service.create_mappings(
        [
            MappingCreate(provider_name=PROVIDER, principal_id="005A", target_identifier="U1"),
            MappingCreate(provider_name="Unknown_IdP", principal_id="005B", target_identifier="U2"),
            MappingCreate(provider_name=PROVIDER.lower(), principal_id="005C", target_identifier="U3"),
        ]
    )

    assert [r.success for r in results] == [True, False, True]
    assert results[1].errors == ["Unknown auth provider: Unknown_IdP"]
    assert await _mapping_keys(db_session) == [f"{PROVIDER}_005A", f"{PROVIDER.lower()}_005C"]


async def test_provider_check_skipped_under_test_by_default(
    admin_service: MappingAdminService,
) -> None:
    [result] = await admin_service.create_mappings(
        [MappingCreate(provider_name="Unregistered", principal_id="005A", target_identifier="U1")]
    )

    assert result.success


async def test_duplicate_of_existing_mapping_is_flagged(
    admin_service: MappingAdminService,
    make_mapping: Callable[..., Awaitable[UserMapping]],
    db_session: AsyncSession,
) -> None:
    await make_mapping()

    [result] = await admin_service.create_mappings(
        [MappingCreate(provider_name=PROVIDER, principal_id=USER_PRINCIPAL, target_identifier="U9")]
    )

    assert not result.success
    assert result.id is None
    assert result.errors == [f"Duplicate mapping: {PROVIDER}_{USER_PRINCIPAL}"]
    assert await _mapping_keys(db_session) == [f"{PROVIDER}_{USER_PRINCIPAL}"]


async def test_duplicate_within_batch_keeps_first(
    admin_service: MappingAdminService, db_session: AsyncSession
) -> None:
    item = MappingCreate(provider_name=PROVIDER, principal_id=OTHER_PRINCIPAL, target_identifier="U2")

    first, second = await admin_service.create_mappings([item, item])

    assert first.success
    assert not second.success
    assert await _mapping_keys(db_session) == [f"{PROVIDER}_{OTHER_PRINCIPAL}"]


async def test_blank_and_oversized_fields_are_reported(
    admin_service: MappingAdminService, db_session: AsyncSession
) -> None:
    results = await admin_service.create_mappings(
        [
            MappingCreate(provider_name=PROVIDER, principal_id="   ", target_identifier="U1"),
            MappingCreate(provider_name=PROVIDER, principal_id="005A"),
            MappingCreate(provider_name=PROVIDER, principal_id="005B", target_identifier="U" * 256),
        ]
    )

    assert results[0].errors == ["principal_id is required"]
    assert results[1].errors == ["target_identifier is required"]
    assert results[2].errors == ["target_identifier exceeds 255 characters"]
    assert [r.index for r in results] == [0, 1, 2]

    count = await db_session.execute(select(func.count()).select_from(UserMapping))
    assert count.scalar_one() == 0


async def test_create_requires_mapping_create_access(
    db_session: AsyncSession, user_context: RequestContext
) -> None:
    service = MappingAdminService(db_session, user_context)

    with pytest.raises(AccessDenied) as exc_info:
        await service.create_mappings(
            [MappingCreate(provider_name=PROVIDER, principal_id=USER_PRINCIPAL, target_identifier="U2")]
        )

    assert exc_info.value.object_name == "UserMapping"


async def test_blank_provider_reported_once_with_provider_check(
    admin_service: MappingAdminService,
    registered_provider: ExternalAuthProvider,
    enforce_provider_check: None,
) -> None:
    blank, known = await admin_service.create_mappings(
        [
            MappingCreate(provider_name="   ", principal_id=USER_PRINCIPAL, target_identifier="U1"),
            MappingCreate(provider_name=PROVIDER, principal_id=USER_PRINCIPAL, target_identifier="U2"),
        ]
    )

    assert blank.errors == ["provider_name is required"]
    assert known.success
