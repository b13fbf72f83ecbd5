"""
File: identity_bridge/events/schemas.py
Description: 变更事件 (ChangeEvent) 模型与编解码

变更事件描述一次"期望的写入"，仅用于跨越禁止写入的执行边界：
- LogCreate: 新增映射日志
- LoginHistoryCreate: 新增登录历史
- MappingTouch: 更新映射的登录遥测 (计数与时间由消费者计算)

事件本身没有身份，不被持久化；通道投递使用的 delivery_id 属于传输层。
字段在发布时已按目标列长度截断。

Created: 2026-10-18
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal

import orjson
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ChangeEventKind(StrEnum):
    LOG_CREATE = "LogCreate"
    LOGIN_HISTORY_CREATE = "LoginHistoryCreate"
    MAPPING_TOUCH = "MappingTouch"


class ChangeEventBase(BaseModel):
    """所有变更事件的公共部分"""

    model_config = ConfigDict(frozen=True)

    provider_name: str = Field(..., description="外部认证提供方名称")
    principal_id: str = Field(..., description="宿主应用主体 ID")
    published_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="发布时间 (UTC)"
    )
    # 发布方上下文，仅用于日志串联
    published_by: str | None = Field(default=None, description="发布主体")
    request_id: str | None = Field(default=None, description="发布时的请求 ID")


class LogCreateEvent(ChangeEventBase):
    kind: Literal["LogCreate"] = "LogCreate"
    log_id: str
    message: str


class LoginHistoryCreateEvent(ChangeEventBase):
    kind: Literal["LoginHistoryCreate"] = "LoginHistoryCreate"
    flow_type: str
    login_at: datetime
    success: bool = False
    provider_type: str | None = None
    login_info: str | None = None


class MappingTouchEvent(ChangeEventBase):
    kind: Literal["MappingTouch"] = "MappingTouch"


ChangeEvent = Annotated[
    LogCreateEvent | LoginHistoryCreateEvent | MappingTouchEvent,
    Field(discriminator="kind"),
]

_change_event_adapter: TypeAdapter[ChangeEvent] = TypeAdapter(ChangeEvent)


def encode_event(event: ChangeEventBase) -> str:
    """事件 → JSON 字符串 (orjson)"""
    return orjson.dumps(event.model_dump(mode="json")).decode("utf-8")


def decode_event(raw: str | bytes) -> ChangeEvent:
    """
    JSON → 事件。

    Raises:
        pydantic.ValidationError / orjson.JSONDecodeError: 负载损坏
    """
    return _change_event_adapter.validate_python(orjson.loads(raw))
