"""
File: identity_bridge/db/models/user_mapping.py
Description: 主体 ↔ 外部身份映射模型

一条映射记录把宿主应用中的主体 (principal_id) 关联到外部系统中的身份
(target_identifier)，并承载登录遥测字段。

约束：
- (provider_name, principal_id) 至多一条：通过 mapping_key 唯一约束保证，
  mapping_key 由写入前的触发器逻辑派生 (provider_name + "_" + principal_id)
- owner_id 为主体本身，用于读取隔离
- 登录遥测字段 (last_log_reference / last_login_at / login_count)
  只允许由变更事件消费者修改

Created: 2026-10-18
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from identity_bridge.db.models.base import UUIDModel


class UserMapping(UUIDModel):
    """
    用户映射表 (1:1 per provider + principal)
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "user_mappings"

    __table_args__ = (
        CheckConstraint(
            "length(trim(provider_name)) > 0", name="provider_name_not_empty"
        ),
        CheckConstraint(
            "length(trim(principal_id)) > 0", name="principal_id_not_empty"
        ),
        Index("ix_user_mappings_provider_principal", "provider_name", "principal_id"),
    )

    # --------------------------------------------------------------------------
    # 身份关联
    # --------------------------------------------------------------------------

    provider_name: Mapped[str] = mapped_column(
        String(80), nullable=False, comment="外部认证提供方名称"
    )

    principal_id: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="宿主应用主体 ID"
    )

    target_identifier: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="外部系统身份标识 (Subject)"
    )

    # 唯一性组合键，由触发器逻辑派生，禁止调用方直接赋值
    mapping_key: Mapped[str] = mapped_column(
        String(150), unique=True, nullable=False, comment="provider_name_principal_id"
    )

    owner_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True, comment="记录所有者 (读取隔离)"
    )

    # --------------------------------------------------------------------------
    # 登录遥测 (仅事件消费者写入)
    # --------------------------------------------------------------------------

    # 指向最近一条 MappingLog.id；不声明外键以免日志归档受阻
    last_log_reference: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, nullable=True, comment="最近一条映射日志"
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="最近登录时间 (UTC)"
    )

    login_count: Mapped[int | None] = mapped_column(
        Integer, nullable=True, default=0, comment="累计登录次数"
    )
