"""
File: identity_bridge/domains/bridge/exceptions.py
Description: 映射桥领域异常

- ValidationError: 必填输入为空 (携带具体的错误类别)
- UnsupportedOperation: Facade 收到未注册的操作名

Created: 2026-10-18
"""

from typing import Any

from identity_bridge.core.exceptions import AppException
from identity_bridge.domains.bridge.constants import BridgeError


class ValidationError(AppException):
    """
    输入校验失败。调用方必须修正输入后再重试。
    """

    def __init__(self, error_kind: BridgeError, message: str = "", data: Any = None):
        self.error_kind = error_kind
        super().__init__(error_kind, message=message, data=data)


class UnsupportedOperation(AppException):
    """Facade 无法识别的操作名"""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        super().__init__(
            BridgeError.UNSUPPORTED_OPERATION,
            message=f"Unsupported operation: {operation_name}",
            data={"operation": operation_name},
        )
