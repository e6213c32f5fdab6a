"""Shared dependencies for API routes."""

from fastapi import Request

from nanogate.gateway import Gateway


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway
