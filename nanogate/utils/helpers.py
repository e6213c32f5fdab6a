"""Utility functions for nanogate."""
# 通用工具函数

from __future__ import annotations

import re
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from nanogate.config.schema import LoggingConfig


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    # 确保目录存在
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(name: str) -> str:
    """
    Replace every character outside [A-Za-z0-9_-] with '_'.

    Not collision-free: "api:u1" and "api_u1" map to the same name.
    """
    return _UNSAFE_CHARS.sub("_", name)


def truncate(text: str, max_len: int = 80) -> str:
    """Shorten text for log previews."""
    # 截断日志预览
    return text[:max_len] + "..." if len(text) > max_len else text


def setup_logging(config: "LoggingConfig") -> None:
    """Install loguru sinks from config."""
    # 移除默认 sink，按配置重新安装
    logger.remove()
    logger.add(sys.stderr, level=config.level.upper())
    if config.file:
        ensure_dir(Path(config.file).expanduser().parent)
        logger.add(
            Path(config.file).expanduser(),
            level=config.level.upper(),
            rotation=config.rotation,
            retention=config.retention,
            encoding="utf-8",
            enqueue=True,
        )
