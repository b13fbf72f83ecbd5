"""
File: identity_bridge/core/context.py
Description: 调用上下文 (Request Context)

一次逻辑调用 (一个 HTTP 请求、一次 Facade 调用或一个事件批次) 的执行身份：
主体 ID + 其有效权限策略。
上下文显式传递给 Service / Publisher / Consumer，不使用进程级静态状态。

Created: 2026-10-18
"""

from dataclasses import dataclass

from identity_bridge.core.access import AccessPolicy
from identity_bridge.core.config import settings


@dataclass(frozen=True)
class RequestContext:
    principal_id: str
    policy: AccessPolicy
    request_id: str | None = None

    @classmethod
    def for_permission_sets(
        cls, principal_id: str, permission_sets: list[str] | tuple[str, ...], request_id: str | None = None
    ) -> "RequestContext":
        return cls(
            principal_id=principal_id,
            policy=AccessPolicy.from_permission_sets(permission_sets, settings.PERMISSION_SETS),
            request_id=request_id,
        )

    @classmethod
    def consumer(cls) -> "RequestContext":
        """事件消费者 (特权写入方) 的执行身份"""
        return cls.for_permission_sets(
            settings.CONSUMER_PRINCIPAL_ID, settings.CONSUMER_PERMISSION_SETS
        )
