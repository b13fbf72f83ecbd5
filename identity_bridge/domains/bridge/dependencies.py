"""
File: identity_bridge/domains/bridge/dependencies.py
Description: 映射桥领域依赖注入 (DI)

依赖链：
CurrentContext + DBSession + EventChannel + IdentityClient
    → IdentityBridgeService → BridgeFacade → BridgeFacadeDep
CurrentContext + DBSession → MappingAdminService → MappingAdminServiceDep
EventChannel + SessionFactory → EventDispatcher → EventDispatcherDep

Router 层直接使用 *Dep 别名，无需关心底层细节。

Created: 2026-10-18
"""

from typing import Annotated

from fastapi import Depends

from identity_bridge.api.deps import CurrentContext, DBSession, SessionFactory
from identity_bridge.domains.bridge.facade import BridgeFacade
from identity_bridge.domains.bridge.service import IdentityBridgeService, MappingAdminService
from identity_bridge.domains.identity.service import IdentityClient
from identity_bridge.events.channel import EventChannel, get_event_channel
from identity_bridge.events.dispatcher import EventDispatcher

EventChannelDep = Annotated[EventChannel, Depends(get_event_channel)]


def get_identity_client() -> IdentityClient:
    """身份端点客户端 (测试中 override 为 MockTransport 客户端)"""
    return IdentityClient()


IdentityClientDep = Annotated[IdentityClient, Depends(get_identity_client)]


async def get_bridge_service(
    context: CurrentContext,
    session: DBSession,
    channel: EventChannelDep,
    identity_client: IdentityClientDep,
) -> IdentityBridgeService:
    return IdentityBridgeService(session, context, channel, identity_client)


BridgeServiceDep = Annotated[IdentityBridgeService, Depends(get_bridge_service)]


async def get_bridge_facade(service: BridgeServiceDep) -> BridgeFacade:
    return BridgeFacade(service)


async def get_mapping_admin_service(
    context: CurrentContext, session: DBSession
) -> MappingAdminService:
    return MappingAdminService(session, context)


async def get_event_dispatcher(
    channel: EventChannelDep, session_factory: SessionFactory
) -> EventDispatcher:
    return EventDispatcher(channel, session_factory)


# ==============================================================================
# 导出类型别名，供 Router 层使用
# ==============================================================================

BridgeFacadeDep = Annotated[BridgeFacade, Depends(get_bridge_facade)]
MappingAdminServiceDep = Annotated[MappingAdminService, Depends(get_mapping_admin_service)]
EventDispatcherDep = Annotated[EventDispatcher, Depends(get_event_dispatcher)]
