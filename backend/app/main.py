from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from contextlib import asynccontextmanager

from app.api import auth, users, posts, comments, notifications, chat, health
from app.db.database import create_tables
from app.core.config import settings
from app.core.logging import configure_logging, api_logger
from app.core.middleware import RequestContextMiddleware, global_exception_handler
from app.realtime.server import RealtimeHub


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if not settings.TESTING:
        await create_tables()
    api_logger.info(f"{settings.APP_NAME} started")
    yield
    # Shutdown
    await app.state.realtime.shutdown()


def create_app(realtime: Optional[RealtimeHub] = None) -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Social Blog API",
        description="Posts, comments, likes, notifications and direct messages",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.realtime = realtime or RealtimeHub()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(health.router, prefix="", tags=["Health"])
    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(posts.router, prefix="/api/posts", tags=["Posts"])
    app.include_router(comments.router, prefix="/api/comments", tags=["Comments"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
    app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Social Blog API running"

    return app


app = create_app()

# ASGI entrypoint serving both the REST API and /socket.io
asgi_app = app.state.realtime.asgi_app(app)
