"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import media as media_routes
from api.routes import messages as messages_routes
from api.routes import profiles as profiles_routes
from api.routes import ws as ws_routes
from application.services.delivery_router import DeliveryRouter
from application.services.message_store import MessageStore
from application.services.realtime_service import RealtimeService
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.database import AsyncSessionLocal, create_tables, engine
from infrastructure.external.media import build_media_host_client
from infrastructure.realtime.presence import PresenceRegistry
from infrastructure.unit_of_work import uow_factory_for


# 初始化日志：在入口处显式配置
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 开发环境自动建表；生产使用 Alembic 迁移
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)"
        )

    uow_factory = uow_factory_for(AsyncSessionLocal)
    presence = PresenceRegistry()
    store = MessageStore(uow_factory, timeout=settings.MESSAGE_STORE_TIMEOUT_S)
    app.state.uow_factory = uow_factory
    app.state.presence = presence
    app.state.message_store = store
    app.state.realtime_service = RealtimeService(
        presence=presence,
        router=DeliveryRouter(presence=presence),
        store=store,
    )

    media_host = build_media_host_client()
    app.state.media_host = media_host
    if media_host is None:
        logger.info("media_host_disabled", message="MEDIA__BASE_URL not set; video uploads return 503")
    else:
        logger.info("media_host_initialized", base_url=media_host.base_url)

    logger.info("application_startup", message="Application started", environment=settings.ENVIRONMENT)

    yield

    if media_host is not None:
        await media_host.close()
    await engine.dispose()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="交友应用实时聊天后端：在线状态、消息投递与持久化",
)

# 添加中间件（注意顺序：后添加的先执行）
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(messages_routes.router, prefix="/api/v1")
app.include_router(profiles_routes.router, prefix="/api/v1")
app.include_router(media_routes.router, prefix="/api/v1")
app.include_router(ws_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "websocket": "/api/v1/ws",
        },
        message="Welcome",
    )


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """健康检查端点：附带当前在线人数"""
    presence = getattr(request.app.state, "presence", None)
    return success_response(
        data={
            "status": "healthy",
            "online_users": len(presence.online_users()) if presence is not None else 0,
            "connections": presence.connection_count() if presence is not None else 0,
        },
        message="OK",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
