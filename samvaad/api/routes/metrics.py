# samvaad/api/routes/metrics.py
from fastapi import APIRouter
from datetime import datetime, timezone

from samvaad.core import state
from samvaad.core.config import settings

router = APIRouter()

@router.get("/metrics")
async def get_metrics():
    """
    Usage metrics.

    Example Response:
        {
            "total_messages": 120,
            "uptime_hours": 1.5,
            "messages_per_second": 0.02,
            "concurrent_connections": 4,
            "active_rooms_with_members": 2,
            "rooms": {"alice_bob": {"member_count": 2, "members": ["alice", "bob"]}},
            "pub_sub_service": "local",
            "message_store": "memory"
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    total = state.chat_service.message_count

    if uptime_seconds > 0:
        messages_per_second = total / uptime_seconds
    else:
        messages_per_second = 0

    return {
        "total_messages": total,
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "messages_per_second": round(messages_per_second, 2),
        "concurrent_connections": len(state.connection_manager.connection_rooms),
        "active_rooms_with_members": len(state.connection_manager.rooms),
        "rooms": state.connection_manager.get_rooms_info(),
        "pub_sub_service": settings.PUB_SUB_SERVICE,
        "message_store": settings.MESSAGE_STORE,
    }
