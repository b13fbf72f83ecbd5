"""
File: identity_bridge/domains/identity/service.py
Description: 身份数据获取 (Identity-Data Retrieval)

1. extract_session_token: 从原始 Cookie 头中取出会话令牌
2. IdentityClient.fetch_user_profile: 以令牌为 Bearer 凭证调用一次 user-info 端点，
   并把响应规范化为 UserProfile

不做重试；网络层异常 (httpx.TransportError) 原样抛给调用方。
除客户端配置的超时 (默认 None) 外不设内部超时。

Created: 2026-10-18
"""

from typing import Any

import httpx

from identity_bridge.core.config import settings
from identity_bridge.core.logging import logger
from identity_bridge.domains.identity.exceptions import InvalidSession, UnexpectedResponse
from identity_bridge.domains.identity.schemas import UserProfile
from identity_bridge.utils.masking import mask_email, mask_token

# user-info 响应字段 → UserProfile 字段 (标识字段另行配置)
PROFILE_FIELD_MAP = {
    "given_name": "first_name",
    "family_name": "last_name",
    "name": "full_name",
    "email": "email",
    "profile": "profile_uri",
    "preferred_username": "preferred_username",
    "locale": "locale",
}


def extract_session_token(
    cookie_header: str | None, cookie_name: str | None = None
) -> str | None:
    """
    按 ";" 拆分 Cookie 头，Key 精确匹配 (区分大小写)。

    示例: "lang=en; sid=ABC123; theme=dark" -> "ABC123"

    Returns:
        str | None: 令牌；Cookie 不存在或值为空时返回 None
    """
    if not cookie_header:
        return None
    name = cookie_name or settings.SESSION_COOKIE_NAME

    for pair in cookie_header.split(";"):
        key, sep, value = pair.partition("=")
        if not sep or key.strip() != name:
            continue
        value = value.strip()
        return value or None
    return None


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, dict | list):
        return None
    text = str(value)
    return text or None


class IdentityClient:
    """
    外部身份端点客户端。

    传入 http_client 时复用该客户端 (测试中注入 MockTransport)，
    否则每次调用创建并关闭一个短生命周期的 AsyncClient。
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        userinfo_url: str | None = None,
        id_field: str | None = None,
    ):
        self.http_client = http_client
        self.userinfo_url = userinfo_url or settings.userinfo_url
        self.id_field = id_field or settings.IDENTITY_ID_FIELD

    async def fetch_user_profile(self, session_token: str | None) -> UserProfile:
        """
        Raises:
            InvalidSession: 令牌为空
            UnexpectedResponse: 非 2xx、响应体无法解析或缺少标识字段
            httpx.TransportError: 网络异常 (不做处理)
        """
        if session_token is None or not session_token.strip():
            raise InvalidSession()

        response = await self._get(session_token)
        log = logger.bind(
            url=self.userinfo_url,
            status_code=response.status_code,
            session_token=mask_token(session_token),
        )

        if not response.is_success:
            log.warning("Identity endpoint returned an error status")
            raise UnexpectedResponse(
                f"Identity endpoint returned HTTP {response.status_code}",
                data={"status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError:
            log.warning("Identity endpoint returned an undecodable body")
            raise UnexpectedResponse("Identity endpoint returned an undecodable body") from None

        if not isinstance(payload, dict):
            raise UnexpectedResponse("Identity endpoint returned a non-object body")

        identifier = _text(payload.get(self.id_field))
        if identifier is None or not identifier.strip():
            log.warning("Identity response missing identifier field")
            raise UnexpectedResponse(
                f"Identity response missing '{self.id_field}'",
                data={"field": self.id_field},
            )

        profile = UserProfile(
            identifier=identifier,
            attributes=payload,
            **{target: _text(payload.get(source)) for source, target in PROFILE_FIELD_MAP.items()},
        )
        log.bind(identifier=identifier, email=mask_email(profile.email)).info(
            "User profile retrieved"
        )
        return profile

    async def _get(self, session_token: str) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {session_token}",
            "Accept": "application/json",
        }
        if self.http_client is not None:
            return await self.http_client.get(self.userinfo_url, headers=headers)

        async with httpx.AsyncClient(timeout=settings.IDENTITY_HTTP_TIMEOUT) as client:
            return await client.get(self.userinfo_url, headers=headers)
