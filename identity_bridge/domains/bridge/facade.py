"""
File: identity_bridge/domains/bridge/facade.py
Description: 动态分发门面 (Dynamic Dispatch Facade)

按字符串操作名调用 IdentityBridgeService，调用方无需依赖本包的具体类型。
操作表在构造时显式注册 (操作名 → 参数模型 + 处理函数)，不做运行期反射。

- 未注册的操作名: UnsupportedOperation
- 参数类型错误或出现未知参数: ValidationError(INVALID_ARGUMENTS)
- 无返回值的操作返回 None

Created: 2026-10-18
"""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from identity_bridge.core.logging import logger
from identity_bridge.domains.bridge.constants import BridgeError, BridgeOperation
from identity_bridge.domains.bridge.exceptions import UnsupportedOperation, ValidationError
from identity_bridge.domains.bridge.schemas import (
    CookieHeaderArgs,
    InsertLoginHistoryArgs,
    InsertLogArgs,
    MappingPairArgs,
)
from identity_bridge.domains.bridge.service import IdentityBridgeService
from identity_bridge.utils.masking import mask_sensitive_data

Handler = Callable[[Any], Awaitable[Any]]


class BridgeFacade:
    def __init__(self, service: IdentityBridgeService):
        self.service = service
        self._registry: dict[str, tuple[type[BaseModel], Handler]] = {
            BridgeOperation.INSERT_LOG: (InsertLogArgs, self._insert_log),
            BridgeOperation.CHECK_USER_MAPPING_EXISTS: (
                MappingPairArgs,
                self._check_user_mapping_exists,
            ),
            BridgeOperation.UPDATE_MAPPING_LOGIN_DETAILS: (
                MappingPairArgs,
                self._update_mapping_login_details,
            ),
            BridgeOperation.GET_SUBJECT_FROM_USER_MAPPING: (
                MappingPairArgs,
                self._get_subject_from_user_mapping,
            ),
            BridgeOperation.GET_AUTH_USER_DATA_FROM_COOKIE_HEADER: (
                CookieHeaderArgs,
                self._get_auth_user_data_from_cookie_header,
            ),
            BridgeOperation.INSERT_LOGIN_HISTORY_RECORD: (
                InsertLoginHistoryArgs,
                self._insert_login_history_record,
            ),
        }

    @property
    def operations(self) -> list[str]:
        return list(self._registry)

    async def invoke(self, operation_name: str, arguments: Mapping[str, Any] | None = None) -> Any:
        """
        Raises:
            UnsupportedOperation: 操作名未注册
            ValidationError: 参数无法解析
        """
        entry = self._registry.get(operation_name)
        if entry is None:
            raise UnsupportedOperation(operation_name)

        args_model, handler = entry
        try:
            args = args_model.model_validate(dict(arguments or {}))
        except PydanticValidationError as exc:
            raise ValidationError(
                BridgeError.INVALID_ARGUMENTS,
                message=f"Invalid arguments for {operation_name}",
                data={
                    "operation": operation_name,
                    "errors": [
                        {"loc": list(e.get("loc", [])), "msg": e.get("msg")}
                        for e in exc.errors()
                    ],
                },
            ) from None

        logger.bind(
            operation=operation_name,
            arguments=mask_sensitive_data(dict(arguments or {})),
            principal_id=self.service.context.principal_id,
        ).debug("Facade invoke")
        return await handler(args)

    # --------------------------------------------------------------------------
    # 处理函数 (参数模型 → 服务方法)
    # --------------------------------------------------------------------------

    async def _insert_log(self, args: InsertLogArgs) -> None:
        await self.service.insert_log(args.provider_name, args.principal_id, args.log_id, args.message)

    async def _check_user_mapping_exists(self, args: MappingPairArgs) -> bool:
        return await self.service.check_user_mapping_exists(
            args.provider_name or "", args.principal_id or ""
        )

    async def _update_mapping_login_details(self, args: MappingPairArgs) -> None:
        await self.service.update_mapping_login_details(args.provider_name, args.principal_id)

    async def _get_subject_from_user_mapping(self, args: MappingPairArgs) -> str | None:
        return await self.service.get_subject_from_user_mapping(
            args.provider_name or "", args.principal_id or ""
        )

    async def _get_auth_user_data_from_cookie_header(self, args: CookieHeaderArgs) -> Any:
        return await self.service.get_auth_user_data_from_cookie_header(args.cookie_header)

    async def _insert_login_history_record(self, args: InsertLoginHistoryArgs) -> None:
        await self.service.insert_login_history_record(
            args.provider_name,
            args.principal_id,
            args.flow_type,
            args.login_at,
            success=args.success,
            provider_type=args.provider_type,
            login_info=args.login_info,
        )
