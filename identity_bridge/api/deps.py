"""
File: identity_bridge/api/deps.py
Description: 全局依赖注入定义 (DB Session + 调用方身份)

本模块负责：
1. 数据库会话管理 (get_db / DBSession)
2. 会话工厂 (get_session_factory)，供强制投递等需要独立事务的场景使用
3. JWT 鉴权与调用上下文组装 (get_current_context / CurrentContext)

Created: 2026-10-18
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_bridge.core.context import RequestContext
from identity_bridge.core.exceptions import UnauthorizedException
from identity_bridge.core.security import decode_access_token
from identity_bridge.db.session import AsyncSessionLocal

# ------------------------------------------------------------------------------
# 1. Database Dependencies
# ------------------------------------------------------------------------------


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取异步数据库会话依赖。
    使用 async with 确保请求结束时自动关闭 session。
    """
    async with AsyncSessionLocal() as session:
        yield session


# 数据库会话依赖类型别名
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """事件消费者使用的会话工厂 (测试中 override 为测试引擎)"""
    return AsyncSessionLocal


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


# ------------------------------------------------------------------------------
# 2. Authentication Dependencies (JWT 鉴权)
# ------------------------------------------------------------------------------


async def get_token_from_header(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """
    从 Authorization Header 提取 Bearer Token。
    格式要求: Authorization: Bearer <token>
    """
    if not authorization:
        raise UnauthorizedException(message="Missing Authorization Header")

    scheme, _, param = authorization.partition(" ")
    if scheme.lower() != "bearer" or not param:
        raise UnauthorizedException(message="Invalid Authentication Scheme")

    return param


async def get_current_context(
    request: Request,
    token: Annotated[str, Depends(get_token_from_header)],
) -> RequestContext:
    """
    解析 JWT 并组装本次请求的执行身份。
    主体不落库：能力完全由令牌中的权限集决定。
    """
    claims = decode_access_token(token)
    return RequestContext.for_permission_sets(
        claims.principal_id,
        claims.permission_sets,
        request_id=getattr(request.state, "request_id", None),
    )


# 已鉴权调用方依赖
# 用法: async def endpoint(context: CurrentContext): ...
CurrentContext = Annotated[RequestContext, Depends(get_current_context)]
