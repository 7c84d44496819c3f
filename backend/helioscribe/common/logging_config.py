"""
日志配置 - 控制台 + 按天滚动的文件日志
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# 第三方库日志过于冗长
_NOISY_LOGGERS = ("httpx", "httpcore", "passlib", "aiosqlite", "sqlalchemy.engine")


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = "./logs",
    log_file_prefix: str = "helioscribe",
    backup_count: int = 30,
) -> None:
    """
    配置根日志

    Args:
        log_level: DEBUG / INFO / WARNING / ERROR
        log_dir: 日志目录，None 时只输出到控制台
        log_file_prefix: 日志文件名前缀 (helioscribe.log, helioscribe.log.2026-02-01)
        backup_count: 保留的历史日志天数
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            path / f"{log_file_prefix}.log",
            when="midnight",
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).info(f"Logging initialized with level {log_level}")
