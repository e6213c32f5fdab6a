"""
HTTP API application factory
"""
"""
HTTP 接口应用 - 创建 FastAPI 应用并挂载路由

网关实例保存在 app.state.gateway，应用的 lifespan 负责启动和停止网关
（频道、出站分发器、Agent 消费者）。
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from nanogate import __version__
from nanogate.api.gateway_routes import router as gateway_router
from nanogate.api.message_routes import router as message_router
from nanogate.errors import NanogateError
from nanogate.gateway import Gateway


def create_app(gateway: Gateway) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await gateway.start()
        try:
            yield
        finally:
            await gateway.stop()

    app = FastAPI(title="nanogate", version=__version__, lifespan=lifespan)
    app.state.gateway = gateway

    @app.exception_handler(NanogateError)
    async def nanogate_error_handler(request: Request, exc: NanogateError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": exc.code, "detail": str(exc), "details": exc.details},
        )

    app.include_router(gateway_router)
    app.include_router(message_router)
    return app
