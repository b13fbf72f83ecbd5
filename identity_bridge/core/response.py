"""
File: identity_bridge/core/response.py
Description: 统一响应信封 (Unified Response Envelope)

所有业务接口 (/api/v1/*) 都以此信封返回；/health 例外。
- code: "success" 或命名空间化的错误码 (system.* / bridge.* / identity.*)
- data: Facade 调用结果 (bool / str / UserProfile / None)、逐条结果列表等

Created: 2026-10-18
"""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

SUCCESS_CODE = "success"


def _jsonable(data: Any) -> Any:
    """把 Pydantic 模型 (或模型列表) 转成 JSON 安全的结构，其余原样返回"""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list | tuple):
        return [_jsonable(item) for item in data]
    return data


class ResponseModel(BaseModel, Generic[T]):
    code: str = Field(default=SUCCESS_CODE, description="业务状态码")
    message: str = Field(default="Success", description="响应消息")
    data: T | None = Field(default=None, description="业务数据")
    request_id: str | None = Field(default=None, description="请求追踪ID")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="响应生成时间",
    )

    @classmethod
    def success(
        cls,
        data: Any = None,
        message: str = "Success",
        request_id: str | None = None,
    ) -> "ResponseModel[T]":
        return cls(code=SUCCESS_CODE, message=message, data=_jsonable(data), request_id=request_id)

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        data: Any = None,
        request_id: str | None = None,
    ) -> "ResponseModel[Any]":
        return cls(code=code, message=message, data=_jsonable(data), request_id=request_id)
