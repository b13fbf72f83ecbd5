"""
File: identity_bridge/db/models/__init__.py
Description: ORM 模型注册表

导入所有业务模型与基类，供 Alembic (env.py) 自动发现 metadata。
每当新增一个 Model 文件，必须在此处导入，否则 Alembic autogenerate 无法检测到新表。

Created: 2026-10-18
"""

from identity_bridge.db.models.base import (
    Base,
    TimestampMixin,
    UUIDBase,
    UUIDModel,
)
from identity_bridge.db.models.external_auth_provider import ExternalAuthProvider
from identity_bridge.db.models.login_history import LoginHistory
from identity_bridge.db.models.mapping_log import MappingLog
from identity_bridge.db.models.user_mapping import UserMapping

__all__ = [
    # 基类
    "Base",
    "UUIDBase",
    "UUIDModel",
    "TimestampMixin",
    # 业务模型
    "ExternalAuthProvider",
    "LoginHistory",
    "MappingLog",
    "UserMapping",
]
