"""
File: identity_bridge/domains/bridge/schemas.py
Description: 映射桥领域 Pydantic 模型 (Schema)

1. InvokeRequest: Facade 调用请求 (operation + arguments)
2. *Args: 各 Facade 操作的参数模型
   - 同时接受 camelCase 与 snake_case 键名
   - 业务字段均为可选：缺失/空白由 Validation Gate 给出对应的错误类别，
     类型错误与未知参数才由参数解析拒绝
3. MappingCreate / MappingBatchCreate / MappingCreateResult: 映射批量创建 (管理接口)
4. DeliveryResult: 强制投递结果

Created: 2026-10-18
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ------------------------------------------------------------------------------
# Facade
# ------------------------------------------------------------------------------


class InvokeRequest(BaseModel):
    operation: str = Field(..., min_length=1, description="操作名", examples=["insertLog"])
    arguments: dict[str, Any] = Field(default_factory=dict, description="命名参数")


class OperationArgs(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class MappingPairArgs(OperationArgs):
    provider_name: str | None = None
    principal_id: str | None = None


class InsertLogArgs(MappingPairArgs):
    log_id: str | None = None
    message: str | None = None


class InsertLoginHistoryArgs(MappingPairArgs):
    flow_type: str | None = None
    login_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("login_at", "loginAt", "timestamp"),
    )
    success: bool | None = False
    provider_type: str | None = None
    login_info: str | None = None


class CookieHeaderArgs(OperationArgs):
    cookie_header: str | None = None


# ------------------------------------------------------------------------------
# Mapping Administration
# ------------------------------------------------------------------------------


class MappingCreate(BaseModel):
    """
    映射创建参数。
    owner_id 缺省为 principal_id；mapping_key 由服务端派生，不接受输入。
    """

    provider_name: str | None = Field(default=None, description="外部认证提供方名称")
    principal_id: str | None = Field(default=None, description="宿主应用主体 ID")
    target_identifier: str | None = Field(default=None, description="外部身份标识")
    owner_id: str | None = Field(default=None, description="记录所有者")


class MappingBatchCreate(BaseModel):
    items: list[MappingCreate] = Field(..., min_length=1, max_length=500)


class MappingCreateResult(BaseModel):
    """逐条结果，与请求中的 items 按位置对齐"""

    index: int
    success: bool
    id: UUID | None = None
    mapping_key: str | None = None
    errors: list[str] = Field(default_factory=list)


# ------------------------------------------------------------------------------
# Event Delivery
# ------------------------------------------------------------------------------


class DeliveryResult(BaseModel):
    fetched: int
    applied: int
    failed_kinds: list[str] = Field(default_factory=list)
