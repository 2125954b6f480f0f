# samvaad/main.py

from __future__ import annotations

import asyncio

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from samvaad.core import state
from samvaad.core.config import settings
from samvaad.core.logging import setup_logging, get_logger
from samvaad.services.auth_service import router as auth_router
from samvaad.services.redis_pub_sub import AsyncRedisPubSubService
from samvaad.api.routes import root, health, metrics, rooms, messages, volunteers
from samvaad.api import websocket as websocket_module

# Configure logging first
setup_logging()
logger = get_logger(__name__)

# FastAPI app
app = FastAPI(title="Samvaad - Consultation Chat")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(rooms.router)
app.include_router(messages.router)
app.include_router(volunteers.router)
app.include_router(auth_router)

# WebSocket routes
app.include_router(websocket_module.router)

_listener_task: asyncio.Task | None = None


@app.on_event("startup")
async def startup_event():
    global _listener_task
    logger.info("🚀 Application starting (store=%s, pubsub=%s)", settings.MESSAGE_STORE, settings.PUB_SUB_SERVICE)

    await state.message_store.connect()

    if settings.PUB_SUB_SERVICE == "redis":
        redis_service = AsyncRedisPubSubService(state.connection_manager)
        await redis_service.connect()

        # Store globally and route chat fan-out through Redis
        state.redis_service = redis_service
        state.chat_service.publisher = redis_service

        # Start subscriber in background
        _listener_task = asyncio.create_task(redis_service.listen())
        _listener_task.add_done_callback(_log_listener_exit)


def _log_listener_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("✗ Redis listener crashed: %r", error)


@app.on_event("shutdown")
async def on_shutdown():
    try:
        if _listener_task is not None:
            _listener_task.cancel()
            try:
                await _listener_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error("Redis listener ended with an error: %r", e)
        if state.redis_service is not None:
            await state.redis_service.close()
    finally:
        await state.message_store.close()
        logger.info("👋 Application stopped")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("samvaad.main:app", host="0.0.0.0", port=8000)
