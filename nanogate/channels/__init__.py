"""Chat channels module with adapter base class and manager."""

from nanogate.channels.base import BaseChannel
from nanogate.channels.manager import ChannelManager

__all__ = ["BaseChannel", "ChannelManager"]
