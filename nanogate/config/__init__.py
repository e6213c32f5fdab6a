"""Configuration module for nanogate."""

from nanogate.config.loader import get_config_path, load_config, save_config
from nanogate.config.schema import ChannelConfig, Config

__all__ = ["Config", "ChannelConfig", "load_config", "save_config", "get_config_path"]
