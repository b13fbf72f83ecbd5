"""
File: tests/unit/test_identity.py
Description: 身份数据获取单元测试 (Cookie 解析 + user-info 调用)

Created: 2026-10-18
"""

import httpx
import pytest

from conftest import DEFAULT_USERINFO, USERINFO_URL, FakeIdentityEndpoint
from identity_bridge.domains.identity.constants import IdentityError
from identity_bridge.domains.identity.exceptions import InvalidSession, UnexpectedResponse
from identity_bridge.domains.identity.service import IdentityClient, extract_session_token


@pytest.mark.parametrize(
    "header, expected",
    [
        ("lang=en; sid=ABC123; theme=dark", "ABC123"),
        ("sid=ABC123", "ABC123"),
        ("  sid =  ABC123  ", "ABC123"),
        ("lang=en; theme=dark", None),
        ("lang=en; sid=; theme=dark", None),
        ("lang=en; SID=ABC123", None),
        ("lang=en; xsid=ABC123", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_session_token(header: str | None, expected: str | None) -> None:
    assert extract_session_token(header) == expected


def test_extract_session_token_custom_cookie_name() -> None:
    assert extract_session_token("sid=A; session=B", cookie_name="session") == "B"


def test_extract_session_token_keeps_value_padding_characters() -> None:
    assert extract_session_token("sid=00D!AQ4=x.y==") == "00D!AQ4=x.y=="


@pytest.mark.parametrize("token", [None, "", "   "])
async def test_blank_token_is_invalid_session(
    identity_client: IdentityClient, identity_endpoint: FakeIdentityEndpoint, token: str | None
) -> None:
    with pytest.raises(InvalidSession) as exc_info:
        await identity_client.fetch_user_profile(token)

    assert exc_info.value.code == IdentityError.INVALID_SESSION.code
    assert identity_endpoint.requests == []


async def test_fetch_user_profile_success(
    identity_client: IdentityClient, identity_endpoint: FakeIdentityEndpoint
) -> None:
    profile = await identity_client.fetch_user_profile("ABC123")

    [request] = identity_endpoint.requests
    assert str(request.url) == USERINFO_URL
    assert request.method == "GET"
    assert request.headers["Authorization"] == "Bearer ABC123"

    assert profile.identifier == DEFAULT_USERINFO["user_id"]
    assert (profile.first_name, profile.last_name, profile.full_name) == ("Jane", "Doe", "Jane Doe")
    assert profile.preferred_username == "jane.doe@example.com"
    assert profile.locale == "en_US"
    assert profile.attributes == DEFAULT_USERINFO


async def test_fetch_user_profile_tolerates_missing_optional_fields(
    identity_client: IdentityClient, identity_endpoint: FakeIdentityEndpoint
) -> None:
    identity_endpoint.responder = lambda request: httpx.Response(
        200, json={"user_id": "005X"}, request=request
    )

    profile = await identity_client.fetch_user_profile("ABC123")

    assert profile.identifier == "005X"
    assert profile.email is None
    assert profile.first_name is None


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"email": "jane.doe@example.com"}),
        httpx.Response(200, json={"user_id": ""}),
        httpx.Response(200, json=["user_id"]),
        httpx.Response(200, content=b"<html>login</html>"),
        httpx.Response(401, json={"error": "invalid_token"}),
        httpx.Response(500, text="upstream failure"),
    ],
    ids=["missing-id", "blank-id", "array-body", "non-json", "unauthorized", "server-error"],
)
async def test_unexpected_responses(
    identity_client: IdentityClient,
    identity_endpoint: FakeIdentityEndpoint,
    response: httpx.Response,
) -> None:
    identity_endpoint.responder = lambda request: response

    with pytest.raises(UnexpectedResponse) as exc_info:
        await identity_client.fetch_user_profile("ABC123")

    assert exc_info.value.code == IdentityError.UNEXPECTED_RESPONSE.code


async def test_error_status_is_reported(
    identity_client: IdentityClient, identity_endpoint: FakeIdentityEndpoint
) -> None:
    identity_endpoint.responder = lambda request: httpx.Response(503, request=request)

    with pytest.raises(UnexpectedResponse) as exc_info:
        await identity_client.fetch_user_profile("ABC123")

    assert exc_info.value.data == {"status_code": 503}


async def test_transport_errors_propagate(identity_endpoint: FakeIdentityEndpoint) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    identity_endpoint.responder = refuse
    async with httpx.AsyncClient(transport=httpx.MockTransport(identity_endpoint)) as http:
        client = IdentityClient(http_client=http, userinfo_url=USERINFO_URL)

        with pytest.raises(httpx.ConnectError):
            await client.fetch_user_profile("ABC123")
