"""
File: identity_bridge/db/models/mapping_log.py
Description: 映射审计日志模型

不可变记录：仅通过 LogCreate 变更事件的消费者创建，创建后不再修改。
log_id 的唯一性由调用方负责 (通常为随机 128 位十六进制串)，存储层不做约束。

Created: 2026-10-18
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from identity_bridge.db.models.base import UUIDModel


class MappingLog(UUIDModel):
    """
    映射日志表 (N:1 UserMapping，按 provider_name + principal_id 逻辑关联)
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "mapping_logs"

    __table_args__ = (
        Index("ix_mapping_logs_provider_principal", "provider_name", "principal_id"),
    )

    provider_name: Mapped[str] = mapped_column(
        String(80), nullable=False, comment="外部认证提供方名称"
    )

    principal_id: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="宿主应用主体 ID"
    )

    log_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True, comment="调用方关联 ID"
    )

    message: Mapped[str] = mapped_column(
        String(32768), nullable=False, comment="日志内容"
    )
