"""
File: identity_bridge/domains/identity/exceptions.py
Description: 身份数据领域异常

Created: 2026-10-18
"""

from typing import Any

from identity_bridge.core.exceptions import AppException
from identity_bridge.domains.identity.constants import IdentityError


class InvalidSession(AppException):
    """会话令牌为空，无法向身份端点发起请求"""

    def __init__(self, message: str = ""):
        super().__init__(IdentityError.INVALID_SESSION, message=message)


class UnexpectedResponse(AppException):
    """身份端点返回非 2xx、无法解析的响应体或缺少标识字段"""

    def __init__(self, message: str = "", data: Any = None):
        super().__init__(IdentityError.UNEXPECTED_RESPONSE, message=message, data=data)
