# samvaad/api/routes/root.py

from fastapi import APIRouter

from samvaad import __version__

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "message": "Samvaad - consultation chat",
        "version": __version__,
        "features": ["one_to_one_rooms", "message_history", "accounts", "volunteer_directory"],
        "endpoints": {
            "websocket": "/ws",
            "messages": "/messages/{room_id}",
            "rooms": "/rooms/{room_id}",
            "auth": "/api/auth",
            "volunteers": "/api/volunteers",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
