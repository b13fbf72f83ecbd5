"""
File: identity_bridge/events/publisher.py
Description: 变更事件发布方

调用方所处的上下文不允许直接持久化写入，因此每个写操作被翻译为一条变更事件：
1. Access Gate: 校验发布主体对事件对象及其字段的 create 能力
2. Validation Gate: 必填字段非空
3. 按目标列长度截断字段 (超长输入静默截断，保留前缀)
4. 交给通道后立即返回，不等待持久化

Created: 2026-10-18
"""

from datetime import datetime
from typing import cast

from identity_bridge.core.access import Operation
from identity_bridge.core.context import RequestContext
from identity_bridge.core.logging import logger
from identity_bridge.db.models import LoginHistory, MappingLog, UserMapping
from identity_bridge.db.models.base import UUIDBase
from identity_bridge.domains.bridge.constants import (
    LOG_EVENT,
    LOGIN_HISTORY_EVENT,
    MAPPING_TOUCH_EVENT,
    BridgeError,
    LoginFlow,
)
from identity_bridge.domains.bridge.exceptions import ValidationError
from identity_bridge.domains.bridge.validation import is_blank, validate_non_blank
from identity_bridge.events.channel import EventChannel
from identity_bridge.events.schemas import (
    ChangeEventBase,
    LogCreateEvent,
    LoginHistoryCreateEvent,
    MappingTouchEvent,
)


def truncate(value: str | None, max_length: int | None) -> str | None:
    """超过 max_length 时保留前缀；max_length 为 None 时原样返回"""
    if value is None or max_length is None or len(value) <= max_length:
        return value
    return value[:max_length]


def truncate_to_column(model: type[UUIDBase], field: str, value: str | None) -> str:
    """按目标列长度截断 (调用前已通过非空校验)"""
    return cast(str, truncate(value, model.max_length(field)))


def normalize_flow_type(flow_type: str) -> str:
    """大小写不敏感地匹配 Initial / Refresh"""
    for flow in LoginFlow:
        if flow.value.lower() == flow_type.strip().lower():
            return flow.value
    raise ValidationError(BridgeError.INVALID_FLOW_TYPE, data={"flow_type": flow_type})


class ChangeEventPublisher:
    """
    发布方 (运行在调用方上下文中)。
    """

    def __init__(self, channel: EventChannel, context: RequestContext):
        self.channel = channel
        self.context = context

    async def publish(self, event: ChangeEventBase) -> None:
        await self.channel.publish(event)
        logger.bind(
            event_kind=getattr(event, "kind", None),
            provider_name=event.provider_name,
            principal_id=event.principal_id,
        ).debug("Change event published")

    def _stamp(self) -> dict[str, str | None]:
        return {
            "published_by": self.context.principal_id,
            "request_id": self.context.request_id,
        }

    async def publish_log_create(
        self,
        provider_name: str | None,
        principal_id: str | None,
        log_id: str | None,
        message: str | None,
    ) -> None:
        self.context.policy.ensure_access(Operation.CREATE, LOG_EVENT)
        validate_non_blank(
            [provider_name, principal_id, log_id, message], BridgeError.LOG_FIELDS_REQUIRED
        )

        event = LogCreateEvent(
            provider_name=truncate_to_column(MappingLog, "provider_name", provider_name),
            principal_id=truncate_to_column(MappingLog, "principal_id", principal_id),
            log_id=truncate_to_column(MappingLog, "log_id", log_id),
            message=truncate_to_column(MappingLog, "message", message),
            **self._stamp(),
        )
        await self.publish(event)

    async def publish_login_history_create(
        self,
        provider_name: str | None,
        principal_id: str | None,
        flow_type: str | None,
        login_at: datetime | None,
        success: bool | None = False,
        provider_type: str | None = None,
        login_info: str | None = None,
    ) -> None:
        self.context.policy.ensure_access(Operation.CREATE, LOGIN_HISTORY_EVENT)
        validate_non_blank(
            [provider_name, principal_id, flow_type, login_at],
            BridgeError.LOGIN_HISTORY_FIELDS_REQUIRED,
        )

        event = LoginHistoryCreateEvent(
            provider_name=truncate_to_column(LoginHistory, "provider_name", provider_name),
            principal_id=truncate_to_column(LoginHistory, "principal_id", principal_id),
            flow_type=normalize_flow_type(cast(str, flow_type)),
            login_at=cast(datetime, login_at),
            success=bool(success),
            # 可选字段为空时保持 None，而不是截断成空串
            provider_type=None
            if is_blank(provider_type)
            else truncate(provider_type, LoginHistory.max_length("provider_type")),
            login_info=None
            if is_blank(login_info)
            else truncate(login_info, LoginHistory.max_length("login_info")),
            **self._stamp(),
        )
        await self.publish(event)

    async def publish_mapping_touch(
        self, provider_name: str | None, principal_id: str | None
    ) -> None:
        """
        只携带两个标识字段；login_count / last_login_at 由消费者计算，
        避免多个并发发布方之间的先读后写竞争。
        """
        self.context.policy.ensure_access(Operation.CREATE, MAPPING_TOUCH_EVENT)
        validate_non_blank([provider_name, principal_id], BridgeError.MAPPING_FIELDS_REQUIRED)

        event = MappingTouchEvent(
            provider_name=truncate_to_column(UserMapping, "provider_name", provider_name),
            principal_id=truncate_to_column(UserMapping, "principal_id", principal_id),
            **self._stamp(),
        )
        await self.publish(event)
