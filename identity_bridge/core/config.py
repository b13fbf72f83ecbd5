"""
File: identity_bridge/core/config.py
Description: 全局应用配置管理（使用 pydantic-settings）

所有配置值通过 .env 文件或环境变量加载。
本模块负责：
1. 校验环境变量类型
2. 组装数据库 DSN（默认 postgresql+asyncpg，允许整串覆盖）
3. 定义 Redis 连接、事件通道与身份端点参数
4. 定义权限集 (Permission Set) 与事件消费者的权限
5. 运行时强制校验必填项，确保应用在配置缺失时快速失败

Created: 2026-10-18
"""

from typing import Literal

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

# 默认权限集
# 授权字符串格式: "Object:operation" 或 "Object.field:operation"，支持 * 通配
DEFAULT_PERMISSION_SETS: dict[str, list[str]] = {
    # 外部认证回调 (发布事件 + 只读查询自己的映射)
    "bridge_user": [
        "MappingLogEvent:create",
        "MappingLogEvent.*:create",
        "LoginHistoryEvent:create",
        "LoginHistoryEvent.*:create",
        "MappingTouchEvent:create",
        "MappingTouchEvent.*:create",
        "UserMapping:read",
        "UserMapping.*:read",
    ],
    # 事件消费者 (特权写入方)
    "bridge_writer": [
        "MappingLog:create",
        "MappingLog.*:create",
        "LoginHistory:create",
        "LoginHistory.*:create",
        "UserMapping:read",
        "UserMapping.*:read",
        "UserMapping:update",
        "UserMapping.*:update",
        "UserMapping:view_all",
    ],
    # 管理员 (映射维护 + 强制投递)
    "bridge_admin": ["*:*", "*.*:*"],
}


class Settings(BaseSettings):
    """全局配置对象（唯一真实来源）"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=True,
    )

    # --------------------------------------------------------------------------
    # 1. General (通用)
    # --------------------------------------------------------------------------
    PROJECT_NAME: str = "Identity Bridge"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "dev", "test", "prod"] = "local"
    DEBUG: bool = False

    # 密钥 (生产环境强制要求高强度随机串)
    # 用于校验调用方 JWT
    SECRET_KEY: str | None = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # CORS 配置（Pydantic 会自动解析 JSON 字符串列表）
    BACKEND_CORS_ORIGINS: list[AnyHttpUrl] = []

    # --------------------------------------------------------------------------
    # 2. Database (PostgreSQL)
    # --------------------------------------------------------------------------
    POSTGRES_SERVER: str | None = None
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str | None = None
    POSTGRES_PASSWORD: str | None = None
    POSTGRES_DB: str | None = None

    # 连接池配置 (Pool Settings)
    DB_POOL_SIZE: int = 20  # 连接池基准大小
    DB_MAX_OVERFLOW: int = 10  # 允许超出基准的额外连接数
    DB_POOL_PRE_PING: bool = True  # 每次获取连接前是否自动 ping
    DB_POOL_TIMEOUT: int = 30  # 连接获取超时（秒）
    DB_POOL_RECYCLE: int = 1800  # 连接回收时间（秒），防止连接过期

    # 完整 DSN 覆盖（可选）
    SQLALCHEMY_DATABASE_URI: str | None = None

    # --------------------------------------------------------------------------
    # 3. Logging (Loguru)
    # --------------------------------------------------------------------------
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_JSON_FORMAT: bool = False  # 是否输出 JSON 格式
    LOG_FILE_ENABLED: bool = False  # 是否启用文件日志
    LOG_DIR: str = "logs"  # 日志文件目录
    LOG_ROTATION: str = "1 hour"  # 轮转策略
    LOG_RETENTION: str = "7 days"  # 保留时间
    LOG_COMPRESSION: str = "zip"  # 压缩格式
    LOG_DIAGNOSE: bool = True  # 是否启用诊断信息（生产环境建议 False）

    # --------------------------------------------------------------------------
    # 4. Redis Settings (事件流)
    # --------------------------------------------------------------------------
    REDIS_URL: str = "redis://localhost:6379/0"

    # --------------------------------------------------------------------------
    # 5. Change Events (异步写通道)
    # --------------------------------------------------------------------------
    # memory: 进程内通道 (单进程/测试)；redis: Redis Streams (Web 与 Worker 分离部署)
    EVENT_CHANNEL: Literal["memory", "redis"] = "memory"
    EVENT_STREAM_KEY: str = "identity_bridge:change_events"
    EVENT_CONSUMER_GROUP: str = "identity_bridge_writers"
    EVENT_CONSUMER_NAME: str = "writer-1"
    EVENT_BATCH_SIZE: int = Field(default=200, ge=1)
    EVENT_POLL_INTERVAL: float = Field(default=1.0, gt=0)  # 空闲轮询间隔（秒）
    # 未确认条目空闲超过该时长 (毫秒) 后由其他消费者回收
    EVENT_CLAIM_MIN_IDLE_MS: int = Field(default=60_000, ge=0)
    # Web 进程内是否自动启动消费循环 (Worker 独立部署时关闭)
    EVENT_CONSUMER_IN_PROCESS: bool = True

    # --------------------------------------------------------------------------
    # 6. Identity Endpoint (外部系统 user-info)
    # --------------------------------------------------------------------------
    IDENTITY_BASE_URL: str = "https://login.example.com"
    IDENTITY_USERINFO_PATH: str = "/services/oauth2/userinfo"
    IDENTITY_ID_FIELD: str = "user_id"
    SESSION_COOKIE_NAME: str = "sid"
    # None 表示不设内部超时，由调用方的整体时间预算约束
    IDENTITY_HTTP_TIMEOUT: float | None = None

    # --------------------------------------------------------------------------
    # 7. Access (权限集)
    # --------------------------------------------------------------------------
    PERMISSION_SETS: dict[str, list[str]] = Field(
        default_factory=lambda: dict(DEFAULT_PERMISSION_SETS)
    )
    # 事件消费者以此身份执行写入
    CONSUMER_PRINCIPAL_ID: str = "identity-bridge-writer"
    CONSUMER_PERMISSION_SETS: list[str] = ["bridge_writer"]

    # --------------------------------------------------------------------------
    # Properties (便捷属性)
    # --------------------------------------------------------------------------
    @property
    def is_production(self) -> bool:
        """是否为生产环境"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_testing(self) -> bool:
        """是否运行在自动化测试中"""
        return self.ENVIRONMENT == "test"

    @property
    def userinfo_url(self) -> str:
        return self.IDENTITY_BASE_URL.rstrip("/") + self.IDENTITY_USERINFO_PATH

    # --------------------------------------------------------------------------
    # Validators
    # --------------------------------------------------------------------------
    @model_validator(mode="after")
    def _validate_and_build_db_uri(self) -> "Settings":
        """验证必填项并构建数据库连接串。"""
        # 1. 校验 SECRET_KEY
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY must be set in .env")

        # 生产环境强制校验密钥强度
        if self.is_production and len(self.SECRET_KEY) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters in prod")

        # 2. 消费者权限集必须已定义
        unknown = [s for s in self.CONSUMER_PERMISSION_SETS if s not in self.PERMISSION_SETS]
        if unknown:
            raise ValueError(f"Unknown consumer permission sets: {', '.join(unknown)}")

        # 3. 如果 env 直接提供了 DSN，则优先使用
        if self.SQLALCHEMY_DATABASE_URI:
            return self

        # 4. 否则检查 POSTGRES_* 字段是否齐全
        missing_fields: list[str] = []
        required_pg_fields = [
            "POSTGRES_SERVER",
            "POSTGRES_USER",
            "POSTGRES_PASSWORD",
            "POSTGRES_DB",
        ]

        for field in required_pg_fields:
            if not getattr(self, field):
                missing_fields.append(field)

        if missing_fields:
            raise ValueError(
                f"Missing database settings, cannot build DSN: {', '.join(missing_fields)}"
            )

        # 5. 自动组装 DSN
        self.SQLALCHEMY_DATABASE_URI = str(
            MultiHostUrl.build(
                scheme="postgresql+asyncpg",
                username=self.POSTGRES_USER,  # type: ignore[arg-type]
                password=self.POSTGRES_PASSWORD,  # type: ignore[arg-type]
                host=self.POSTGRES_SERVER,  # type: ignore[arg-type]
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,  # type: ignore[arg-type]
            )
        )

        return self


# 单例配置对象
# 配置加载失败时，Pydantic 会抛出 ValidationError，包含详细错误信息
settings = Settings()
