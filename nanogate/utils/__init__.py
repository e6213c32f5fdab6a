"""Utility functions for nanogate."""

from nanogate.utils.helpers import ensure_dir, now_ms, safe_filename, truncate

__all__ = ["ensure_dir", "now_ms", "safe_filename", "truncate"]
