"""
File: identity_bridge/domains/bridge/router.py
Description: 映射桥领域 HTTP 路由层

1. POST /bridge/invoke: Facade 调用 (按操作名分发)
2. POST /mappings: 映射批量创建 (管理员，逐条结果)
3. POST /events/deliver: 立即投递通道中的待处理事件 (管理员)

所有接口均需 Bearer Token；对象/字段级能力由各操作内部的 Access Gate 校验。

Created: 2026-10-18
"""

from typing import Any

from fastapi import APIRouter, Request

from identity_bridge.api.deps import CurrentContext
from identity_bridge.core.access import Operation
from identity_bridge.core.response import ResponseModel
from identity_bridge.domains.bridge.constants import EVENT_DELIVERY, BridgeMsg
from identity_bridge.domains.bridge.dependencies import (
    BridgeFacadeDep,
    EventDispatcherDep,
    MappingAdminServiceDep,
)
from identity_bridge.domains.bridge.schemas import (
    DeliveryResult,
    InvokeRequest,
    MappingBatchCreate,
    MappingCreateResult,
)

router = APIRouter()


@router.post(
    "/bridge/invoke",
    response_model=ResponseModel[Any],
    summary="按操作名调用",
    description="Dynamic Dispatch Facade。写操作只发布变更事件，返回时尚未持久化。",
)
async def invoke_operation(
    request: Request,
    body: InvokeRequest,
    facade: BridgeFacadeDep,
) -> ResponseModel[Any]:
    result = await facade.invoke(body.operation, body.arguments)

    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=result,
        request_id=req_id,
        message=BridgeMsg.INVOKE_SUCCESS,
    )


@router.post(
    "/mappings",
    response_model=ResponseModel[list[MappingCreateResult]],
    summary="批量创建映射",
    description="逐条校验 provider 与唯一性，失败记录附带错误返回，不影响其他记录。",
)
async def create_mappings(
    request: Request,
    body: MappingBatchCreate,
    service: MappingAdminServiceDep,
) -> ResponseModel[list[MappingCreateResult]]:
    results = await service.create_mappings(body.items)

    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=results,
        request_id=req_id,
        message=BridgeMsg.MAPPINGS_PROCESSED,
    )


@router.post(
    "/events/deliver",
    response_model=ResponseModel[DeliveryResult],
    summary="立即投递待处理事件",
    description="同步排空事件通道。失败的事件类型保留在通道中等待重投。",
)
async def deliver_events(
    request: Request,
    context: CurrentContext,
    dispatcher: EventDispatcherDep,
) -> ResponseModel[DeliveryResult]:
    context.policy.ensure_access(Operation.UPDATE, EVENT_DELIVERY)

    report = await dispatcher.force_delivery(raise_on_error=False)

    req_id = getattr(request.state, "request_id", None)
    return ResponseModel.success(
        data=DeliveryResult(
            fetched=report.fetched,
            applied=report.applied,
            failed_kinds=sorted(report.failures),
        ),
        request_id=req_id,
        message=BridgeMsg.EVENTS_DELIVERED,
    )
