"""
File: tests/unit/test_facade.py
Description: 动态分发门面 (BridgeFacade) 单元测试

Created: 2026-10-18
"""

from collections.abc import Awaitable, Callable

import pytest

from conftest import OTHER_PRINCIPAL, PROVIDER, USER_PRINCIPAL
from identity_bridge.db.models import UserMapping
from identity_bridge.domains.bridge.constants import BridgeError, BridgeOperation
from identity_bridge.domains.bridge.exceptions import UnsupportedOperation, ValidationError
from identity_bridge.domains.bridge.facade import BridgeFacade
from identity_bridge.domains.bridge.service import IdentityBridgeService
from identity_bridge.domains.identity.schemas import UserProfile
from identity_bridge.events.channel import MemoryEventChannel
from identity_bridge.events.schemas import LoginHistoryCreateEvent


@pytest.fixture
def facade(bridge_service: IdentityBridgeService) -> BridgeFacade:
    return BridgeFacade(bridge_service)


def test_registry_exposes_every_operation(facade: BridgeFacade) -> None:
    assert sorted(facade.operations) == sorted(op.value for op in BridgeOperation)


async def test_unknown_operation_is_rejected(facade: BridgeFacade) -> None:
    with pytest.raises(UnsupportedOperation) as exc_info:
        await facade.invoke("invalidMethodName", {})

    assert exc_info.value.operation_name == "invalidMethodName"
    assert exc_info.value.code == BridgeError.UNSUPPORTED_OPERATION.code


async def test_operation_names_are_case_sensitive(facade: BridgeFacade) -> None:
    with pytest.raises(UnsupportedOperation):
        await facade.invoke("InsertLog", {})


async def test_insert_log_publishes_and_returns_none(
    facade: BridgeFacade, channel: MemoryEventChannel
) -> None:
    result = await facade.invoke(
        "insertLog",
        {
            "providerName": PROVIDER,
            "principalId": USER_PRINCIPAL,
            "logId": "log-1",
            "message": "callback started",
        },
    )

    assert result is None
    assert channel.pending() == 1


async def test_snake_case_arguments_are_accepted(
    facade: BridgeFacade, channel: MemoryEventChannel
) -> None:
    await facade.invoke(
        "updateMappingLoginDetails",
        {"provider_name": PROVIDER, "principal_id": USER_PRINCIPAL},
    )

    assert channel.pending() == 1


async def test_missing_arguments_reach_validation_gate(
    facade: BridgeFacade, channel: MemoryEventChannel
) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await facade.invoke("insertLog", {"providerName": PROVIDER})

    assert exc_info.value.error_kind == BridgeError.LOG_FIELDS_REQUIRED
    assert channel.pending() == 0


@pytest.mark.parametrize(
    "operation, arguments",
    [
        ("insertLog", {"providerName": ["not", "a", "string"]}),
        ("checkUserMappingExists", {"providerName": PROVIDER, "unexpected": 1}),
        ("insertLoginHistoryRecord", {"loginAt": "not-a-date"}),
        ("insertLoginHistoryRecord", {"success": "maybe"}),
    ],
)
async def test_malformed_arguments_are_rejected(
    facade: BridgeFacade, operation: str, arguments: dict
) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await facade.invoke(operation, arguments)

    assert exc_info.value.error_kind == BridgeError.INVALID_ARGUMENTS
    assert exc_info.value.data["operation"] == operation


async def test_mapping_lookups_through_facade(
    facade: BridgeFacade,
    make_mapping: Callable[..., Awaitable[UserMapping]],
) -> None:
    await make_mapping(target_identifier="U2")
    pair = {"providerName": PROVIDER, "principalId": USER_PRINCIPAL}

    assert await facade.invoke("checkUserMappingExists", pair) is True
    assert await facade.invoke("getSubjectFromUserMapping", pair) == "U2"


async def test_mapping_lookups_without_mapping(facade: BridgeFacade) -> None:
    pair = {"providerName": PROVIDER, "principalId": OTHER_PRINCIPAL}

    assert await facade.invoke("checkUserMappingExists", pair) is False
    assert await facade.invoke("getSubjectFromUserMapping", pair) is None


async def test_login_history_accepts_timestamp_alias(
    facade: BridgeFacade, channel: MemoryEventChannel
) -> None:
    await facade.invoke(
        "insertLoginHistoryRecord",
        {
            "providerName": PROVIDER,
            "principalId": USER_PRINCIPAL,
            "flowType": "Refresh",
            "timestamp": "2026-10-18T08:30:00Z",
            "success": True,
        },
    )

    [delivery] = await channel.fetch(1)
    assert isinstance(delivery.event, LoginHistoryCreateEvent)
    assert delivery.event.flow_type == "Refresh"
    assert delivery.event.success is True


async def test_cookie_operation_returns_profile(facade: BridgeFacade) -> None:
    profile = await facade.invoke(
        "getAuthUserDataFromCookieHeader",
        {"cookieHeader": "lang=en; sid=ABC123; theme=dark"},
    )

    assert isinstance(profile, UserProfile)
    assert profile.identifier == "0051x000004ABCD"
    assert profile.email == "jane.doe@example.com"
