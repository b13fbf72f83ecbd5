"""
File: identity_bridge/core/access.py
Description: 访问控制闸门 (Access Gate)

在任何写入 (以及发布需要下游特权的变更事件) 之前，
校验当前主体是否具备目标对象及其必需字段的 create/update/read 能力。

授权字符串:
- "MappingLog:create"          对象级
- "MappingLog.message:create"  字段级
- "*" 可用于对象、字段或操作位

校验顺序固定：先对象级，再按声明顺序逐个字段，遇到第一个缺失即失败。

Created: 2026-10-18
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum

from identity_bridge.core.exceptions import AccessDenied
from identity_bridge.core.logging import logger

WILDCARD = "*"


class Operation(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    READ = "read"
    # 读取其他主体拥有的记录 (绕过 owner 隔离)
    VIEW_ALL = "view_all"


@dataclass(frozen=True)
class ObjectDescriptor:
    """目标对象及一次操作所需的字段列表"""

    name: str
    fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class Grant:
    object_name: str
    field: str | None
    operation: str

    @classmethod
    def parse(cls, raw: str) -> "Grant":
        target, sep, operation = raw.strip().rpartition(":")
        if not sep or not target or not operation:
            raise ValueError(f"Malformed grant: {raw!r}")
        object_name, dot, field = target.partition(".")
        if dot and not field:
            raise ValueError(f"Malformed grant: {raw!r}")
        return cls(object_name=object_name, field=field if dot else None, operation=operation)

    def covers(self, object_name: str, field: str | None, operation: str) -> bool:
        if (self.field is None) != (field is None):
            return False
        return (
            self.object_name in (WILDCARD, object_name)
            and self.operation in (WILDCARD, operation)
            and (field is None or self.field in (WILDCARD, field))
        )


class AccessPolicy:
    """
    主体的有效权限 (其所有权限集的并集)。
    """

    def __init__(self, grants: Iterable[str | Grant] = ()):
        self.grants: tuple[Grant, ...] = tuple(
            g if isinstance(g, Grant) else Grant.parse(g) for g in grants
        )

    @classmethod
    def from_permission_sets(
        cls, names: Iterable[str], registry: Mapping[str, list[str]]
    ) -> "AccessPolicy":
        """按权限集名称组装策略，未知的权限集名称会被忽略并记录告警"""
        grants: list[str] = []
        for name in names:
            if name not in registry:
                logger.bind(permission_set=name).warning("Unknown permission set ignored")
                continue
            grants.extend(registry[name])
        return cls(grants)

    @classmethod
    def full_access(cls) -> "AccessPolicy":
        return cls(["*:*", "*.*:*"])

    def allows(self, object_name: str, operation: str, field: str | None = None) -> bool:
        return any(g.covers(object_name, field, operation) for g in self.grants)

    def ensure_access(self, kind: Operation, descriptor: ObjectDescriptor) -> None:
        """
        校验对象级能力后逐个校验字段级能力。

        Raises:
            AccessDenied: 第一个缺失的能力 (对象或字段)
        """
        verb = kind.value.replace("_", " ")
        if not self.allows(descriptor.name, kind):
            raise AccessDenied(
                f"Insufficient access to {verb} {descriptor.name}",
                object_name=descriptor.name,
            )

        for field in descriptor.fields:
            if not self.allows(descriptor.name, kind, field):
                raise AccessDenied(
                    f"Insufficient access to {verb} field '{field}' on {descriptor.name}",
                    object_name=descriptor.name,
                    field=field,
                )
