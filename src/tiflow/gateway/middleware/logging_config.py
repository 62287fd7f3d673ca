"""structlog 配置

渲染模式与级别来自 tiflow.core.config（TIFLOW_LOG_FORMAT / TIFLOW_LOG_LEVEL）。
关闭文档凭据（docPw）不得出现在日志中，由 mask_secrets 统一遮蔽。
"""

import logging
from typing import Any

import structlog
from tiflow.core.config import get_log_format, get_log_level

# 需要遮蔽的事件字段
SECRET_KEYS = frozenset({"doc_pw", "docPw", "password"})
MASK = "***"

# aiosqlite 在 DEBUG 级别逐条记录连接操作
_NOISY_LOGGERS = ("aiosqlite",)


def mask_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """遮蔽事件字段及一层嵌套 dict 中的凭据"""
    for key, value in event_dict.items():
        if key in SECRET_KEYS:
            event_dict[key] = MASK
        elif isinstance(value, dict) and SECRET_KEYS.intersection(value):
            event_dict[key] = {k: MASK if k in SECRET_KEYS else v for k, v in value.items()}
    return event_dict


def setup_logging() -> None:
    """初始化 structlog 与标准库 logging

    - "json": 结构化 JSON 输出（生产环境）
    - "dev" (默认): pretty print 可读输出
    """
    level = getattr(logging, get_log_level(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        mask_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if get_log_format() == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
