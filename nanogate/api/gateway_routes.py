"""
Gateway API Routes - health check and channel listing
"""
"""
网关状态API路由

API端点：
- GET /api/health: 健康检查（状态、时间戳、频道数量）
- GET /api/channels: 已注册频道列表
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from nanogate.api.deps import get_gateway
from nanogate.gateway import Gateway

router = APIRouter(prefix="/api", tags=["gateway"])


class HealthOut(BaseModel):
    status: str
    timestamp: datetime
    channels: int


class ChannelOut(BaseModel):
    type: str
    id: str
    running: bool


@router.get("/health", response_model=HealthOut)
async def health(gateway: Gateway = Depends(get_gateway)):
    """Liveness check"""
    return HealthOut(
        status="UP",
        timestamp=datetime.now(timezone.utc),
        channels=len(gateway.channels.all_channels()),
    )


@router.get("/channels", response_model=list[ChannelOut])
async def list_channels(gateway: Gateway = Depends(get_gateway)):
    """List registered channels"""
    return [
        ChannelOut(type=channel.channel_type, id=channel.channel_id, running=channel.is_running)
        for channel in gateway.channels.all_channels()
    ]
