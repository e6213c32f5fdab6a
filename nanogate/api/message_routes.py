"""
Message API Routes - run the agent synchronously or publish to the bus
"""
"""
消息API路由

API端点：
- POST /api/messages/send: 同步处理一条消息，返回 Agent 的回复
- POST /api/messages/publish: 把消息发布到入站流，由 Agent 异步处理

请求体使用 camelCase 字段（content、userId、channelType、channelId）。
"""

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from nanogate.api.deps import get_gateway
from nanogate.bus.events import Message
from nanogate.gateway import Gateway

router = APIRouter(prefix="/api/messages", tags=["messages"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessageRequest(_CamelModel):
    content: str = Field(min_length=1)
    user_id: str = "api-user"
    channel_type: str = "api"


class PublishMessageRequest(_CamelModel):
    content: str = Field(min_length=1)
    user_id: str = "api-user"
    channel_type: str = "api"
    channel_id: str = "default"


@router.post("/send")
async def send_message(payload: SendMessageRequest, gateway: Gateway = Depends(get_gateway)):
    """Process a message and return the agent's reply"""
    message = Message.create(
        content=payload.content,
        channel_type=payload.channel_type,
        user_id=payload.user_id,
    )
    logger.info(f"API send from {message.session_id}")
    response = await gateway.agent.process(message)
    return {"response": response, "messageId": message.id}


@router.post("/publish")
async def publish_message(payload: PublishMessageRequest, gateway: Gateway = Depends(get_gateway)):
    """Publish a message to the inbound stream"""
    message = Message.create(
        content=payload.content,
        channel_type=payload.channel_type,
        user_id=payload.user_id,
        channel_id=payload.channel_id,
    )
    await gateway.bus.publish_inbound(message)
    logger.info(f"API published message {message.id} from {message.session_id}")
    return {"status": "published", "messageId": message.id}
