"""
File: identity_bridge/domains/identity/constants.py
Description: 身份数据领域常量定义
Namespace: identity.*

Created: 2026-10-18
"""

from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_502_BAD_GATEWAY

from identity_bridge.core.error_code import BaseErrorCode


class IdentityError(BaseErrorCode):
    """
    身份数据领域错误定义
    Tuple Structure: (HTTP_Status, Code_String, Default_Message)
    """

    INVALID_SESSION = (
        HTTP_401_UNAUTHORIZED,
        "identity.invalid_session",
        "Session token is missing or blank",
    )
    UNEXPECTED_RESPONSE = (
        HTTP_502_BAD_GATEWAY,
        "identity.unexpected_response",
        "Unexpected response from identity endpoint",
    )
