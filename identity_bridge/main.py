"""
File: identity_bridge/main.py
Description: FastAPI 应用入口与工厂函数

本模块负责：
1. 创建 FastAPI 应用实例 (设置默认响应类为 ORJSONResponse)
2. 管理应用生命周期 (lifespan): 启动日志与进程内事件调度器，
   关闭时停止调度器并释放 Redis / 数据库连接
3. 组装全局组件：中间件、异常处理器、路由
4. 提供健康检查接口 (/health)

Created: 2026-10-18
"""

import asyncio
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

# ------------------------------------------------------------------------------
# [Fix for Windows] asyncpg 在 Windows 下必须使用 SelectorEventLoop
# 必须在任何 asyncio 循环启动前执行 (放在顶部)
# ------------------------------------------------------------------------------
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from identity_bridge.api_router import api_router
from identity_bridge.core.config import settings
from identity_bridge.core.exceptions import register_exception_handlers
from identity_bridge.core.logging import setup_logging
from identity_bridge.core.middleware import register_middlewares
from identity_bridge.core.redis import close_redis
from identity_bridge.db.session import AsyncSessionLocal, close_engine
from identity_bridge.events.channel import get_event_channel
from identity_bridge.events.dispatcher import EventDispatcher


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    应用生命周期管理器。
    """
    # 1. 启动时：初始化日志系统
    setup_logging()

    # 2. 单进程部署时在应用内运行事件消费者；分离部署时由 Worker 负责
    dispatcher: EventDispatcher | None = None
    if settings.EVENT_CONSUMER_IN_PROCESS:
        dispatcher = EventDispatcher(get_event_channel(), AsyncSessionLocal)
        await dispatcher.start()

    yield

    # 3. 关闭时：优雅释放资源
    if dispatcher is not None:
        await dispatcher.stop()
    await close_redis()
    await close_engine()


def create_app() -> FastAPI:
    """应用工厂函数"""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        # 强制默认响应类为 ORJSONResponse (高性能)
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # 1. 注册中间件 (CORS, RequestID, Logging)
    register_middlewares(app)

    # 2. 注册异常处理器
    register_exception_handlers(app)

    # 3. 挂载 API 路由
    app.include_router(api_router, prefix=settings.API_V1_STR)

    # 4. 挂载健康检查
    @app.get("/health", tags=["health"], summary="健康检查")
    async def health_check() -> dict[str, str]:
        """
        健康检查接口。
        用于 K8s Liveness/Readiness Probe，返回原始 JSON (不使用统一信封)。
        """
        return {"status": "ok"}

    return app


# 暴露给 Uvicorn 运行的应用实例
app = create_app()

if __name__ == "__main__":
    # 本地调试入口
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
