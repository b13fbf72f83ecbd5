"""
File: identity_bridge/domains/identity/schemas.py
Description: 规范化的外部用户资料 (UserProfile)

由身份端点的 user-info 响应派生，不持久化。
attributes 保留原始响应，便于调用方读取未规范化的字段。

Created: 2026-10-18
"""

from typing import Any

from pydantic import BaseModel, Field


class UserProfile(BaseModel):
    identifier: str = Field(..., description="外部系统中的用户标识")
    first_name: str | None = Field(default=None, description="名")
    last_name: str | None = Field(default=None, description="姓")
    full_name: str | None = Field(default=None, description="显示名")
    email: str | None = Field(default=None, description="邮箱")
    profile_uri: str | None = Field(default=None, description="个人主页 URI")
    preferred_username: str | None = Field(default=None, description="首选用户名")
    locale: str | None = Field(default=None, description="区域设置")
    attributes: dict[str, Any] = Field(default_factory=dict, description="原始响应")
