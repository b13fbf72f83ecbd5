"""
File: identity_bridge/core/security.py
Description: 调用方令牌工具 (JWT)

本模块负责：
1. 签发调用方令牌: sub = 主体 ID, permission_sets = 权限集名称列表
2. 解析调用方令牌: 校验签名与有效期，返回 PrincipalClaims

外部认证集成 (调用方) 持有由本系统签发的短效令牌，
Access Gate 依据其中的权限集计算对象/字段级能力。

Created: 2026-10-18
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from identity_bridge.core.config import settings
from identity_bridge.core.exceptions import UnauthorizedException


@dataclass(frozen=True)
class PrincipalClaims:
    """解析后的调用方身份"""

    principal_id: str
    permission_sets: tuple[str, ...] = field(default_factory=tuple)


def _secret_key() -> str:
    # 静态检查器据此得知 secret_key 必定是 str 类型
    secret_key = settings.SECRET_KEY
    if secret_key is None:
        raise ValueError("SECRET_KEY configuration is missing.")
    return secret_key


def create_access_token(
    principal_id: str,
    permission_sets: list[str] | tuple[str, ...] = (),
    expires_delta: timedelta | None = None,
) -> str:
    """
    生成调用方 JWT (短效, 无状态)。

    Args:
        principal_id: 主体标识 (宿主应用中的用户 ID)
        permission_sets: 该主体被分配的权限集名称
        expires_delta: 自定义过期时间差 (可选)
    """
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "exp": expire,
        "sub": str(principal_id),
        "permission_sets": list(permission_sets),
        "type": "access",
    }
    return jwt.encode(to_encode, _secret_key(), algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> PrincipalClaims:
    """
    解析并校验调用方 JWT。

    Raises:
        UnauthorizedException: 签名错误、过期或缺少 sub
    """
    try:
        payload = jwt.decode(token, _secret_key(), algorithms=[settings.ALGORITHM])
    except JWTError:
        # 使用 from None 截断异常链，避免暴露底层 jose 异常细节
        raise UnauthorizedException(message="Invalid Token or Expired") from None

    principal_id = payload.get("sub")
    if not principal_id:
        raise UnauthorizedException(message="Invalid Token: missing sub")

    sets = payload.get("permission_sets") or []
    if not isinstance(sets, list):
        raise UnauthorizedException(message="Invalid Token: malformed permission_sets")

    return PrincipalClaims(
        principal_id=str(principal_id),
        permission_sets=tuple(str(s) for s in sets),
    )
