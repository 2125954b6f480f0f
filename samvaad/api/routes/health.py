# samvaad/api/routes/health.py

from fastapi import APIRouter

from samvaad.core import state
from samvaad.core.config import settings

router = APIRouter()


async def _pub_sub_status() -> dict:
    if settings.PUB_SUB_SERVICE != "redis":
        return {"backend": "local", "ok": True}
    service = state.redis_service
    if service is None:
        return {"backend": "redis", "ok": False, "listening": False}
    return {
        "backend": "redis",
        "ok": await service.ping() and service.listening,
        "listening": service.listening,
    }


@router.get("/health")
async def health():
    """
    Health check endpoint.

    Pings the message store and, in Redis mode, the pub/sub connection. A
    dead Redis listener counts as degraded even if Redis itself answers,
    because cross-process delivery has stopped.

    Returns:
        dict: status ("healthy" or "degraded"), backend checks, connection
        and active room counts
    """
    store_ok = await state.message_store.ping()
    pub_sub = await _pub_sub_status()

    return {
        "status": "healthy" if store_ok and pub_sub["ok"] else "degraded",
        "message_store": {"backend": settings.MESSAGE_STORE, "ok": store_ok},
        "pub_sub": pub_sub,
        "connections": len(state.connection_manager.connection_rooms),
        "active_rooms_with_members": len(state.connection_manager.rooms),
    }
