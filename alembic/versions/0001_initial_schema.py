"""initial schema: auth providers, user mappings, mapping logs, login histories

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="创建时间 (UTC)",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="更新时间 (UTC)",
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "external_auth_providers",
        sa.Column("id", sa.Uuid(), nullable=False, comment="主键 (UUID v7)"),
        sa.Column("developer_name", sa.String(length=80), nullable=False, comment="提供方唯一名称"),
        sa.Column("friendly_name", sa.String(length=255), nullable=True, comment="展示名称"),
        sa.Column("provider_type", sa.String(length=40), nullable=True, comment="提供方类型"),
        *_timestamps(),
        sa.CheckConstraint(
            "length(trim(developer_name)) > 0",
            name="ck_external_auth_providers_developer_name_not_empty",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_external_auth_providers"),
        sa.UniqueConstraint("developer_name", name="uq_external_auth_providers_developer_name"),
    )

    op.create_table(
        "user_mappings",
        sa.Column("id", sa.Uuid(), nullable=False, comment="主键 (UUID v7)"),
        sa.Column("provider_name", sa.String(length=80), nullable=False, comment="外部认证提供方名称"),
        sa.Column("principal_id", sa.String(length=64), nullable=False, comment="宿主应用主体 ID"),
        sa.Column(
            "target_identifier", sa.String(length=255), nullable=False, comment="外部系统身份标识 (Subject)"
        ),
        sa.Column(
            "mapping_key", sa.String(length=150), nullable=False, comment="provider_name_principal_id"
        ),
        sa.Column("owner_id", sa.String(length=64), nullable=False, comment="记录所有者 (读取隔离)"),
        sa.Column("last_log_reference", sa.Uuid(), nullable=True, comment="最近一条映射日志"),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True, comment="最近登录时间 (UTC)"),
        sa.Column("login_count", sa.Integer(), nullable=True, comment="累计登录次数"),
        *_timestamps(),
        sa.CheckConstraint(
            "length(trim(provider_name)) > 0", name="ck_user_mappings_provider_name_not_empty"
        ),
        sa.CheckConstraint(
            "length(trim(principal_id)) > 0", name="ck_user_mappings_principal_id_not_empty"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_mappings"),
        sa.UniqueConstraint("mapping_key", name="uq_user_mappings_mapping_key"),
    )
    op.create_index("ix_user_mappings_owner_id", "user_mappings", ["owner_id"])
    op.create_index(
        "ix_user_mappings_provider_principal", "user_mappings", ["provider_name", "principal_id"]
    )

    op.create_table(
        "mapping_logs",
        sa.Column("id", sa.Uuid(), nullable=False, comment="主键 (UUID v7)"),
        sa.Column("provider_name", sa.String(length=80), nullable=False, comment="外部认证提供方名称"),
        sa.Column("principal_id", sa.String(length=64), nullable=False, comment="宿主应用主体 ID"),
        sa.Column("log_id", sa.String(length=64), nullable=False, comment="调用方关联 ID"),
        sa.Column("message", sa.String(length=32768), nullable=False, comment="日志内容"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_mapping_logs"),
    )
    op.create_index("ix_mapping_logs_log_id", "mapping_logs", ["log_id"])
    op.create_index(
        "ix_mapping_logs_provider_principal", "mapping_logs", ["provider_name", "principal_id"]
    )

    op.create_table(
        "login_histories",
        sa.Column("id", sa.Uuid(), nullable=False, comment="主键 (UUID v7)"),
        sa.Column("provider_name", sa.String(length=80), nullable=False, comment="外部认证提供方名称"),
        sa.Column("principal_id", sa.String(length=64), nullable=False, comment="宿主应用主体 ID"),
        sa.Column("flow_type", sa.String(length=20), nullable=False, comment="认证流程类型 (Initial / Refresh)"),
        sa.Column("login_at", sa.DateTime(timezone=True), nullable=False, comment="登录时间 (UTC)"),
        sa.Column(
            "success", sa.Boolean(), server_default=sa.text("false"), nullable=False, comment="是否成功"
        ),
        sa.Column("provider_type", sa.String(length=40), nullable=True, comment="提供方类型"),
        sa.Column("login_info", sa.String(length=1000), nullable=True, comment="附加信息"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_login_histories"),
    )
    op.create_index(
        "ix_login_histories_provider_principal",
        "login_histories",
        ["provider_name", "principal_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_login_histories_provider_principal", table_name="login_histories")
    op.drop_table("login_histories")
    op.drop_index("ix_mapping_logs_provider_principal", table_name="mapping_logs")
    op.drop_index("ix_mapping_logs_log_id", table_name="mapping_logs")
    op.drop_table("mapping_logs")
    op.drop_index("ix_user_mappings_provider_principal", table_name="user_mappings")
    op.drop_index("ix_user_mappings_owner_id", table_name="user_mappings")
    op.drop_table("user_mappings")
    op.drop_table("external_auth_providers")
