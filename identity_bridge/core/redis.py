"""
File: identity_bridge/core/redis.py
Description: Redis 客户端管理 (Async)

本模块负责：
1. 懒加载全局 Redis 客户端 (redis-py asyncio 扩展，内部维护连接池)
2. 管理连接生命周期

Redis 仅在 EVENT_CHANNEL=redis 时被使用 (Streams 作为异步写通道)，
因此客户端延迟到首次使用时才创建。

Created: 2026-10-18
"""

from redis.asyncio import Redis, from_url

from identity_bridge.core.config import settings

_redis_client: Redis | None = None


def get_redis_client() -> Redis:
    """获取 (必要时创建) 全局 Redis 客户端"""
    global _redis_client
    if _redis_client is None:
        _redis_client = from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


async def close_redis() -> None:
    """
    关闭 Redis 连接池。
    应在 lifespan shutdown 或 Worker 退出时调用。
    """
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
