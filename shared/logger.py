"""
通知中心日志系统

模块内部使用标准logging，服务层使用structlog事件日志，两者经由同一个
ProcessorFormatter输出为 key=value 行。
"""

import os
import sys
import logging
import logging.handlers
from typing import List, Optional

import structlog

from shared.config import LoggingConfig


KEY_ORDER = ["timestamp", "level", "logger", "event"]


def _pre_chain() -> list:
    """标准logging记录进入格式化器前补齐的字段"""
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def build_formatter() -> structlog.stdlib.ProcessorFormatter:
    """创建处理器共用的格式化器"""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.KeyValueRenderer(key_order=KEY_ORDER),
        ],
    )


def setup_logger(
    name: str = "notification_center",
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    console_output: bool = True
) -> logging.Logger:
    """
    为指定日志器挂载控制台和轮转文件处理器

    Args:
        name: 日志器名称
        level: 日志级别
        log_file: 日志文件路径，为空时不写文件
        max_bytes: 单个日志文件最大字节数
        backup_count: 备份文件数量
        console_output: 是否输出到控制台

    Returns:
        配置好的日志器，已配置过的日志器原样返回
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    handlers: List[logging.Handler] = []
    if console_output:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        ))

    formatter = build_formatter()
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if log_file:
        logger.info(f"日志系统已初始化，日志文件: {log_file}")
    return logger


def configure_structlog():
    """让structlog事件经由标准logging处理器输出"""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_logging(config: LoggingConfig, name: str = "notification_center") -> logging.Logger:
    """根据配置初始化日志"""
    logger = setup_logger(
        name=name,
        level=config.level,
        log_file=config.log_file,
        max_bytes=config.max_bytes,
        backup_count=config.backup_count,
        console_output=config.console_output,
    )
    configure_structlog()
    return logger
