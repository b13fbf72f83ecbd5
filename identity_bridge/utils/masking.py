"""
File: identity_bridge/utils/masking.py
Description: 日志脱敏工具

会话令牌、Cookie 与邮箱不得以明文进入日志：
1. mask_token: 保留前 4 位用于排查，其余掩盖
2. mask_email: 保留用户名首位与域名
3. mask_sensitive_data: 递归处理字典/列表，按 Key 黑名单掩盖

Created: 2026-10-18
"""

from typing import Any

# 敏感字段黑名单 (大小写不敏感，同时匹配 snake_case 与 camelCase 形式)
SENSITIVE_KEYS = {
    "authorization",
    "cookie",
    "cookie_header",
    "cookieheader",
    "session_token",
    "sessiontoken",
    "sid",
    "token",
    "access_token",
    "secret",
}


def mask_token(token: str | None) -> str:
    """
    示例: 00Dxx0000001gPL!AR8A... -> 00Dx******
    """
    if not token:
        return ""
    if len(token) <= 8:
        return "******"
    return f"{token[:4]}******"


def mask_email(email: str | None) -> str:
    """
    示例: jane.doe@example.com -> j***@example.com
    """
    if not email or "@" not in email:
        return "******"
    user_part, domain_part = email.split("@", 1)
    masked_user = "****" if len(user_part) <= 1 else f"{user_part[0]}***"
    return f"{masked_user}@{domain_part}"


def mask_sensitive_data(data: Any) -> Any:
    """
    返回浅拷贝副本，不修改原数据。
    """
    if isinstance(data, dict):
        return {
            k: (
                mask_token(v if isinstance(v, str) else None)
                if isinstance(k, str) and k.lower() in SENSITIVE_KEYS
                else mask_sensitive_data(v)
            )
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    return data
