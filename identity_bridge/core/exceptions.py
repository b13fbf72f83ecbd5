"""
File: identity_bridge/core/exceptions.py
Description: 业务异常类与全局异常处理器

1. 业务异常基类（AppException）接受 BaseErrorCode 枚举
2. AccessDenied / UnauthorizedException: 核心层共用的访问类异常
3. 全局异常处理器自动将异常映射为：语义化 HTTP 状态码 + 字符串业务码
4. 使用 ResponseModel.fail() 构造统一的失败响应信封

Created: 2026-10-18
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from identity_bridge.core.error_code import BaseErrorCode, SystemErrorCode
from identity_bridge.core.logging import logger
from identity_bridge.core.response import ResponseModel

# ------------------------------------------------------------------------------
# 1. 自定义业务异常类
# ------------------------------------------------------------------------------


class AppException(Exception):
    """
    应用基础异常类。

    用法示例:
        raise AppException(BridgeError.UNSUPPORTED_OPERATION)
        raise AppException(SystemErrorCode.UNAUTHORIZED, message="Invalid Token")
    """

    def __init__(
        self,
        error: BaseErrorCode,
        message: str = "",
        data: Any = None,
    ):
        # 自动从枚举中解构: (HTTP状态, 业务码, 默认文案)
        self.error = error
        self.http_status = error.http_status
        self.code = error.code
        self.message = message or error.msg
        self.data = data
        super().__init__(self.message)


class UnauthorizedException(AppException):
    """调用方身份无法识别 (缺失/非法的 Bearer Token)"""

    def __init__(self, message: str = ""):
        super().__init__(SystemErrorCode.UNAUTHORIZED, message=message)


class AccessDenied(AppException):
    """
    当前主体缺少对象级或字段级的 create/update/read 能力。
    message 针对具体的 对象 + 操作 (+ 字段) 组合生成。
    """

    def __init__(self, message: str, object_name: str, field: str | None = None):
        self.object_name = object_name
        self.field = field
        super().__init__(
            SystemErrorCode.ACCESS_DENIED,
            message=message,
            data={"object": object_name, "field": field},
        )


# ------------------------------------------------------------------------------
# 2. 辅助函数
# ------------------------------------------------------------------------------



def _get_request_id(request: Request) -> str:
    return str(getattr(request.state, "request_id", "unknown"))


def _envelope(
    request_id: str, http_status: int, code: str, message: str, data: Any = None
) -> ORJSONResponse:
    response_model = ResponseModel.fail(
        code=code, message=message, data=data, request_id=request_id
    )
    return ORJSONResponse(status_code=http_status, content=response_model.model_dump(mode="json"))


# ------------------------------------------------------------------------------
# 3. 全局异常处理器 (Handlers)
# ------------------------------------------------------------------------------


async def app_exception_handler(request: Request, exc: AppException) -> ORJSONResponse:
    """
    业务异常 → 枚举中定义的 HTTP 状态码与业务码。
    4xx 记为 warning；上游身份端点异常 (5xx) 记为 error。
    """
    request_id = _get_request_id(request)

    log = logger.bind(request_id=request_id, code=exc.code, http_status=exc.http_status)
    if exc.http_status >= 500:
        log.error(exc.message)
    else:
        log.warning(exc.message)

    return _envelope(request_id, exc.http_status, exc.code, exc.message, exc.data)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """
    请求体校验失败 (FastAPI 默认 422) → 400 system.invalid_params。
    message 取第一条错误，data 保留全部错误位置。
    """
    request_id = _get_request_id(request)
    errors = exc.errors()

    first_error = errors[0] if errors else {}
    loc = first_error.get("loc", [])
    field_name = str(loc[-1]) if loc else "unknown"
    readable_message = f"{field_name}: {first_error.get('msg', 'Invalid parameter')}"

    logger.bind(request_id=request_id, detail=readable_message).warning(
        "Request validation failed"
    )

    return _envelope(
        request_id,
        SystemErrorCode.INVALID_PARAMS.http_status,
        SystemErrorCode.INVALID_PARAMS.code,
        readable_message,
        {"errors": [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in errors]},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> ORJSONResponse:
    """框架层 HTTP 异常 (404 / 405 等)"""
    request_id = _get_request_id(request)
    code = "system.not_found" if exc.status_code == 404 else "system.http_error"

    logger.bind(request_id=request_id, status_code=exc.status_code).warning(str(exc.detail))

    return _envelope(request_id, exc.status_code, code, str(exc.detail))


async def general_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """
    未捕获异常 → 500。
    身份端点的网络异常 (httpx.TransportError) 也落在这里，不暴露细节。
    """
    request_id = _get_request_id(request)

    logger.opt(exception=exc).bind(request_id=request_id).error(
        "Unhandled system exception occurred"
    )

    return _envelope(
        request_id,
        SystemErrorCode.INTERNAL_ERROR.http_status,
        SystemErrorCode.INTERNAL_ERROR.code,
        SystemErrorCode.INTERNAL_ERROR.msg,
    )


# ------------------------------------------------------------------------------
# 4. 异常处理器注册函数
# ------------------------------------------------------------------------------


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore
    app.add_exception_handler(Exception, general_exception_handler)
