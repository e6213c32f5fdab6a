"""HTTP API for the gateway."""

from nanogate.api.app import create_app

__all__ = ["create_app"]
