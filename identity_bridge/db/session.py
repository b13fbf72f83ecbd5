"""
File: identity_bridge/db/session.py
Description: 数据库会话管理 (Async SQLAlchemy)

本模块负责：
1. 创建全局唯一的 AsyncEngine (生产为 postgresql+asyncpg)
2. 配置连接池参数 (pool_pre_ping, pool_size 等)，从 Settings 读取；
   SQLite (本地/测试) 不接受这些参数，按方言跳过
3. 创建 AsyncSession 工厂 (AsyncSessionLocal)
4. 集成 orjson 用于 JSON 字段序列化
5. 提供引擎关闭函数用于优雅退出

Created: 2026-10-18
"""

from typing import Any

import orjson
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from identity_bridge.core.config import settings


def _orjson_serializer(obj: Any) -> str:
    """orjson 返回 bytes，SQLAlchemy 需要 str，因此需 decode。"""
    return orjson.dumps(obj).decode("utf-8")


def _orjson_deserializer(obj: str | bytes) -> Any:
    return orjson.loads(obj)


def build_engine_options(database_uri: str) -> dict[str, Any]:
    """按方言组装 create_async_engine 参数"""
    options: dict[str, Any] = {
        "echo": settings.DEBUG,
        "json_serializer": _orjson_serializer,
        "json_deserializer": _orjson_deserializer,
    }

    backend = make_url(database_uri).get_backend_name()
    if backend == "postgresql":
        options.update(
            pool_pre_ping=settings.DB_POOL_PRE_PING,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    return options


# 1. 创建异步引擎 (惰性连接，首次使用时才真正建立连接)
engine: AsyncEngine = create_async_engine(
    str(settings.SQLALCHEMY_DATABASE_URI),
    **build_engine_options(str(settings.SQLALCHEMY_DATABASE_URI)),
)

# 2. 创建异步会话工厂
# expire_on_commit=False：避免 commit 后访问属性触发隐式 IO (Async 模式下不支持)
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def close_engine() -> None:
    """
    关闭数据库引擎，释放连接池资源。
    应在应用 shutdown 事件或 Worker 退出时调用。
    """
    await engine.dispose()
