"""
File: tests/conftest.py
Description: Pytest 全局 Fixtures 配置 (Async + 内存 SQLite)

1. 在导入 identity_bridge 之前写入测试环境变量 (Settings 在导入时校验)
2. 每个测试使用独立的内存 SQLite 引擎 (StaticPool 共享单连接)
3. 进程内事件通道 + 强制投递调度器
4. 身份端点使用 httpx.MockTransport
5. ASGI 客户端通过 dependency_overrides 接入上述组件

依赖 pyproject.toml 中的 asyncio_mode = "auto" 与 session 级事件循环。

Created: 2026-10-18
"""

import asyncio
import os
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

# ------------------------------------------------------------------------------
# Windows 平台特定修复 (必须在任何 async 操作之前)
# ------------------------------------------------------------------------------
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# ------------------------------------------------------------------------------
# 1. 环境配置覆写 (必须先于 identity_bridge 的任何导入)
# ------------------------------------------------------------------------------
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-for-identity-bridge"
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite+aiosqlite:///:memory:"
os.environ["EVENT_CHANNEL"] = "memory"
os.environ["EVENT_CONSUMER_IN_PROCESS"] = "false"
os.environ["IDENTITY_BASE_URL"] = "https://id.example.test"

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from identity_bridge.api.deps import get_db, get_session_factory
from identity_bridge.core.context import RequestContext
from identity_bridge.core.security import create_access_token
from identity_bridge.db.models import Base, ExternalAuthProvider, UserMapping
from identity_bridge.domains.bridge.dependencies import get_identity_client
from identity_bridge.domains.bridge.service import IdentityBridgeService
from identity_bridge.domains.identity.service import IdentityClient
from identity_bridge.events.channel import MemoryEventChannel, get_event_channel
from identity_bridge.events.dispatcher import EventDispatcher
from identity_bridge.main import app

USER_PRINCIPAL = "005USER0000001"
OTHER_PRINCIPAL = "005USER0000002"
ADMIN_PRINCIPAL = "005ADMIN000001"
PROVIDER = "Acme_OIDC"
USERINFO_URL = "https://id.example.test/services/oauth2/userinfo"

DEFAULT_USERINFO: dict[str, Any] = {
    "user_id": "0051x000004ABCD",
    "given_name": "Jane",
    "family_name": "Doe",
    "name": "Jane Doe",
    "email": "jane.doe@example.com",
    "profile": "https://id.example.test/0051x000004ABCD",
    "preferred_username": "jane.doe@example.com",
    "locale": "en_US",
}


# ------------------------------------------------------------------------------
# 2. 数据库 Fixtures
# ------------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    测试专用引擎：内存库随引擎释放而销毁，每个测试拿到全新的 Schema。
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_mapping(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[UserMapping]]:
    """直接写库创建映射 (绕过管理接口)"""

    async def _make(
        provider_name: str = PROVIDER,
        principal_id: str = USER_PRINCIPAL,
        target_identifier: str = "U2",
        owner_id: str | None = None,
    ) -> UserMapping:
        mapping = UserMapping(
            provider_name=provider_name,
            principal_id=principal_id,
            target_identifier=target_identifier,
            mapping_key=f"{provider_name}_{principal_id}",
            owner_id=owner_id or principal_id,
        )
        db_session.add(mapping)
        await db_session.commit()
        return mapping

    return _make


@pytest_asyncio.fixture
async def registered_provider(db_session: AsyncSession) -> ExternalAuthProvider:
    provider = ExternalAuthProvider(
        developer_name=PROVIDER, friendly_name="Acme", provider_type="OpenIdConnect"
    )
    db_session.add(provider)
    await db_session.commit()
    return provider


# ------------------------------------------------------------------------------
# 3. 事件通道 Fixtures
# ------------------------------------------------------------------------------


@pytest.fixture
def channel() -> MemoryEventChannel:
    return MemoryEventChannel()


@pytest.fixture
def dispatcher(
    channel: MemoryEventChannel, session_factory: async_sessionmaker[AsyncSession]
) -> EventDispatcher:
    return EventDispatcher(channel, session_factory, batch_size=50, poll_interval=0.01)


# ------------------------------------------------------------------------------
# 4. 调用上下文 Fixtures
# ------------------------------------------------------------------------------


@pytest.fixture
def user_context() -> RequestContext:
    return RequestContext.for_permission_sets(USER_PRINCIPAL, ["bridge_user"])


@pytest.fixture
def admin_context() -> RequestContext:
    return RequestContext.for_permission_sets(ADMIN_PRINCIPAL, ["bridge_admin"])


# ------------------------------------------------------------------------------
# 5. 身份端点 Fixtures
# ------------------------------------------------------------------------------


class FakeIdentityEndpoint:
    """MockTransport 处理函数；测试可替换 responder 以模拟各种响应"""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: (
            httpx.Response(200, json=DEFAULT_USERINFO, request=request)
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


@pytest.fixture
def identity_endpoint() -> FakeIdentityEndpoint:
    return FakeIdentityEndpoint()


@pytest_asyncio.fixture
async def identity_client(
    identity_endpoint: FakeIdentityEndpoint,
) -> AsyncGenerator[IdentityClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(identity_endpoint)) as http:
        yield IdentityClient(http_client=http, userinfo_url=USERINFO_URL)


@pytest.fixture
def bridge_service(
    db_session: AsyncSession,
    user_context: RequestContext,
    channel: MemoryEventChannel,
    identity_client: IdentityClient,
) -> IdentityBridgeService:
    return IdentityBridgeService(db_session, user_context, channel, identity_client)


# ------------------------------------------------------------------------------
# 6. HTTP 客户端 Fixtures
# ------------------------------------------------------------------------------


def bearer(principal_id: str, *permission_sets: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(principal_id, permission_sets)}"}


@pytest.fixture
def user_headers() -> dict[str, str]:
    return bearer(USER_PRINCIPAL, "bridge_user")


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return bearer(ADMIN_PRINCIPAL, "bridge_admin")


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    channel: MemoryEventChannel,
    identity_client: IdentityClient,
) -> AsyncGenerator[AsyncClient, None]:
    """
    获取异步 HTTP 客户端。
    ASGITransport 不触发 lifespan，事件只在显式投递时写库。
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_event_channel] = lambda: channel
    app.dependency_overrides[get_identity_client] = lambda: identity_client

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"  # type: ignore
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
