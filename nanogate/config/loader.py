"""Configuration loading utilities."""
# 配置加载
# 路径优先级: 显式参数 > 环境变量 NANOGATE_CONFIG > ~/.nanogate/config.json

import json
import os
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from nanogate.config.schema import Config

CONFIG_ENV_VAR = "NANOGATE_CONFIG"


def get_config_path() -> Path:
    """Get the configuration file path."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".nanogate" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    A missing file yields defaults; an unreadable or invalid file is
    logged and also yields defaults.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return Config.model_validate(data)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Save configuration to file with camelCase keys."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json", by_alias=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path
