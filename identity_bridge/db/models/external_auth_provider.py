"""
File: identity_bridge/db/models/external_auth_provider.py
Description: 外部认证提供方注册表

记录宿主应用中已配置的外部认证提供方 (Auth Provider)。
UserMapping 写入前的触发器校验 (provider 是否存在) 以本表为准，
developer_name 按大小写不敏感方式匹配。

Created: 2026-10-18
"""

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from identity_bridge.db.models.base import UUIDModel


class ExternalAuthProvider(UUIDModel):
    """
    外部认证提供方
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "external_auth_providers"

    __table_args__ = (
        CheckConstraint(
            "length(trim(developer_name)) > 0", name="developer_name_not_empty"
        ),
    )

    # 提供方唯一名称 (调用方在所有接口中传入的 provider_name)
    developer_name: Mapped[str] = mapped_column(
        String(80), unique=True, nullable=False, comment="提供方唯一名称"
    )

    friendly_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="展示名称"
    )

    # 例如 OpenIdConnect / Custom / Saml
    provider_type: Mapped[str | None] = mapped_column(
        String(40), nullable=True, comment="提供方类型"
    )
