"""
File: identity_bridge/db/models/login_history.py
Description: 登录历史模型

不可变记录：仅通过 LoginHistoryCreate 变更事件的消费者创建。
flow_type 取值见 LoginFlow (Initial / Refresh)。

Created: 2026-10-18
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from identity_bridge.db.models.base import UUIDModel


class LoginHistory(UUIDModel):
    """
    登录历史表
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "login_histories"

    __table_args__ = (
        Index("ix_login_histories_provider_principal", "provider_name", "principal_id"),
    )

    provider_name: Mapped[str] = mapped_column(
        String(80), nullable=False, comment="外部认证提供方名称"
    )

    principal_id: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="宿主应用主体 ID"
    )

    flow_type: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="认证流程类型 (Initial / Refresh)"
    )

    login_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, comment="登录时间 (UTC)"
    )

    success: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=text("false"),
        nullable=False,
        comment="是否成功",
    )

    provider_type: Mapped[str | None] = mapped_column(
        String(40), nullable=True, comment="提供方类型"
    )

    login_info: Mapped[str | None] = mapped_column(
        String(1000), nullable=True, comment="附加信息"
    )
