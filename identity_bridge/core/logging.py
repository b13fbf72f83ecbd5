"""
File: identity_bridge/core/logging.py
Description: 日志配置 (Loguru)

Web 进程与事件 Worker 共用同一套 Sink：
- 标准库 logging (uvicorn / sqlalchemy / httpx) 统一转发到 Loguru
- 文本格式在行尾附带关联字段：请求 (request_id)、事件类型 (event_kind)、
  调用主体 (principal_id)、事件流 (stream)
- LOG_JSON_FORMAT 为真时改为 JSON 序列化，关联字段保留在 extra 中
- 文件 Sink 按进程角色分文件 (identity_bridge_api_* / identity_bridge_worker_*)

Created: 2026-10-18
"""

import logging
import sys
from pathlib import Path
from typing import Any, Literal

from loguru import logger

from identity_bridge.core.config import settings

Component = Literal["api", "worker"]

INTERCEPTED_PREFIXES = ("uvicorn.", "fastapi.", "sqlalchemy.", "httpx")

# extra 键 -> 行尾标签
CORRELATION_FIELDS: tuple[tuple[str, str], ...] = (
    ("request_id", "req_id"),
    ("event_kind", "event"),
    ("principal_id", "principal"),
    ("stream", "stream"),
)

_LINE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """标准库 LogRecord -> Loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # 跳过 logging 模块自身的栈帧，行号指向真正的调用方
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def format_record(record: dict[str, Any]) -> str:
    extra = record["extra"]
    tail = "".join(
        f" | <magenta>{label}={{extra[{key}]}}</magenta>"
        for key, label in CORRELATION_FIELDS
        if extra.get(key)
    )
    return _LINE_FORMAT + tail + "\n{exception}"


def log_file_path(component: Component) -> Path:
    return Path(settings.LOG_DIR) / f"identity_bridge_{component}_{{time:YYYY-MM-DD_HH}}.log"


def _sink_config(colorize: bool) -> dict[str, Any]:
    config: dict[str, Any] = {
        "level": settings.LOG_LEVEL,
        # pytest 捕获 stdout 时不能有后台写线程
        "enqueue": not settings.is_testing,
        "backtrace": True,
        "diagnose": settings.LOG_DIAGNOSE,
    }
    if settings.LOG_JSON_FORMAT:
        config["serialize"] = True
    else:
        config["format"] = format_record
        config["colorize"] = colorize
    return config


def _intercept_stdlib() -> None:
    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(settings.LOG_LEVEL)

    for name in list(logging.root.manager.loggerDict):
        if name.startswith(INTERCEPTED_PREFIXES):
            stdlib_logger = logging.getLogger(name)
            stdlib_logger.handlers = []
            stdlib_logger.propagate = True


def setup_logging(component: Component = "api") -> None:
    """
    初始化日志。
    Web 进程在 lifespan 中调用，Worker 在 main() 中以 component="worker" 调用。
    """
    _intercept_stdlib()

    logger.remove()
    logger.add(sys.stdout, **_sink_config(colorize=True))

    if settings.LOG_FILE_ENABLED:
        path = log_file_path(component)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(path),
            rotation=settings.LOG_ROTATION,
            retention=settings.LOG_RETENTION,
            compression=settings.LOG_COMPRESSION,
            **_sink_config(colorize=False),
        )

    logger.bind(component=component).info("Logging configured")
