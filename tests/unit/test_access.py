"""
File: tests/unit/test_access.py
Description: Access Gate 单元测试

1. 授权字符串解析与通配符
2. 先对象、后字段 (按声明顺序) 的校验顺序与错误文案
3. 权限集组装

Created: 2026-10-18
"""

import pytest

from identity_bridge.core.access import AccessPolicy, Grant, ObjectDescriptor, Operation
from identity_bridge.core.config import settings
from identity_bridge.core.context import RequestContext
from identity_bridge.core.exceptions import AccessDenied

LOG_OBJECT = ObjectDescriptor("MappingLogEvent", ("provider_name", "principal_id", "message"))


def test_grant_parse_object_and_field() -> None:
    assert Grant.parse("MappingLog:create") == Grant("MappingLog", None, "create")
    assert Grant.parse("MappingLog.message:create") == Grant("MappingLog", "message", "create")


@pytest.mark.parametrize("raw", ["MappingLog", ":create", "MappingLog.:create", "MappingLog:"])
def test_grant_parse_rejects_malformed(raw: str) -> None:
    with pytest.raises(ValueError):
        Grant.parse(raw)


def test_object_grant_does_not_cover_fields() -> None:
    policy = AccessPolicy(["MappingLogEvent:create"])

    assert policy.allows("MappingLogEvent", Operation.CREATE)
    assert not policy.allows("MappingLogEvent", Operation.CREATE, "message")


def test_wildcards() -> None:
    policy = AccessPolicy(["*:read", "UserMapping.*:read"])

    assert policy.allows("Anything", Operation.READ)
    assert policy.allows("UserMapping", Operation.READ, "login_count")
    assert not policy.allows("UserMapping", Operation.UPDATE, "login_count")
    assert not policy.allows("MappingLog", Operation.READ, "message")


def test_ensure_access_checks_object_first() -> None:
    policy = AccessPolicy(["MappingLogEvent.*:create"])

    with pytest.raises(AccessDenied) as exc_info:
        policy.ensure_access(Operation.CREATE, LOG_OBJECT)

    assert exc_info.value.message == "Insufficient access to create MappingLogEvent"
    assert exc_info.value.field is None
    assert exc_info.value.http_status == 403


def test_ensure_access_fails_on_first_missing_field() -> None:
    policy = AccessPolicy(
        ["MappingLogEvent:create", "MappingLogEvent.provider_name:create"]
    )

    with pytest.raises(AccessDenied) as exc_info:
        policy.ensure_access(Operation.CREATE, LOG_OBJECT)

    assert exc_info.value.field == "principal_id"
    assert exc_info.value.message == (
        "Insufficient access to create field 'principal_id' on MappingLogEvent"
    )
    assert exc_info.value.data == {"object": "MappingLogEvent", "field": "principal_id"}


def test_ensure_access_passes_with_all_fields() -> None:
    policy = AccessPolicy(["MappingLogEvent:create", "MappingLogEvent.*:create"])

    policy.ensure_access(Operation.CREATE, LOG_OBJECT)


def test_messages_differ_per_operation() -> None:
    policy = AccessPolicy()
    descriptor = ObjectDescriptor("UserMapping")

    messages = set()
    for kind in (Operation.CREATE, Operation.UPDATE, Operation.READ):
        with pytest.raises(AccessDenied) as exc_info:
            policy.ensure_access(kind, descriptor)
        messages.add(exc_info.value.message)

    assert len(messages) == 3


def test_from_permission_sets_ignores_unknown_names() -> None:
    policy = AccessPolicy.from_permission_sets(
        ["bridge_user", "does_not_exist"], settings.PERMISSION_SETS
    )

    assert policy.allows("MappingTouchEvent", Operation.CREATE)
    assert not policy.allows("MappingLog", Operation.CREATE)


def test_consumer_context_can_write_persisted_objects() -> None:
    context = RequestContext.consumer()

    assert context.principal_id == settings.CONSUMER_PRINCIPAL_ID
    assert context.policy.allows("MappingLog", Operation.CREATE, "message")
    assert context.policy.allows("UserMapping", Operation.UPDATE, "login_count")
    assert not context.policy.allows("MappingLogEvent", Operation.CREATE)


def test_full_access_policy() -> None:
    policy = AccessPolicy.full_access()

    policy.ensure_access(Operation.VIEW_ALL, ObjectDescriptor("UserMapping", ("owner_id",)))
