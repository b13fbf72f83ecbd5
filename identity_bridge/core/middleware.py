"""
File: identity_bridge/core/middleware.py
Description: 中间件配置与实现

1. RequestLogMiddleware：
   - 生成 UUID v7 request_id，或沿用上游传入的 X-Request-ID
   - 绑定 Loguru 上下文
   - 记录访问日志 (Access Log)
   - 添加 X-Request-ID 响应头
2. register_middlewares：统一注册 CORS、RequestLogMiddleware

Created: 2026-10-18
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from uuid6 import uuid7

from identity_bridge.core.config import settings
from identity_bridge.core.logging import logger

# 跳过详细日志的路径（健康检查等高频低价值请求）
SKIP_LOG_PATHS: set[str] = {"/health", "/health/", "/favicon.ico"}

REQUEST_ID_HEADER = "X-Request-ID"
MAX_UPSTREAM_REQUEST_ID = 64


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    全局请求日志中间件

    外部认证回调通常经过网关转发，已有的 X-Request-ID 会被沿用，
    便于把一次登录流程中的多次调用串联起来。
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        upstream_id = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if upstream_id and len(upstream_id) <= MAX_UPSTREAM_REQUEST_ID:
            request_id = upstream_id
        else:
            request_id = str(uuid7())

        request.state.request_id = request_id
        skip_log = request.url.path in SKIP_LOG_PATHS

        with logger.contextualize(request_id=request_id):
            start_time = time.perf_counter()

            try:
                response = await call_next(request)
                response.headers[REQUEST_ID_HEADER] = request_id

                if not skip_log:
                    process_time = (time.perf_counter() - start_time) * 1000
                    logger.bind(
                        method=request.method,
                        path=request.url.path,
                        status_code=response.status_code,
                        duration_ms=round(process_time, 2),
                        client_ip=request.client.host if request.client else "unknown",
                    ).info("Request finished")

                return response

            except Exception as exc:
                process_time = (time.perf_counter() - start_time) * 1000
                logger.bind(
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round(process_time, 2),
                ).opt(exception=exc).error("Request failed with unhandled exception")
                raise


def register_middlewares(app: FastAPI) -> None:
    """
    统一注册所有中间件。
    后注册的中间件先执行 (对于请求进入方向)。
    """
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(RequestLogMiddleware)
