# samvaad/core/state.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from samvaad.core.config import settings
from samvaad.services.chat_service import ChatService
from samvaad.services.connection_manager import ConnectionManager
from samvaad.services.message_store import MessageStore, create_message_store
from samvaad.services.redis_pub_sub import AsyncRedisPubSubService
from samvaad.services.user_manager import UserManager
from samvaad.services.volunteer_manager import VolunteerManager

# Global singletons for app state
connection_manager = ConnectionManager()
message_store: MessageStore = create_message_store()
chat_service = ChatService(store=message_store, publisher=connection_manager)
user_manager = UserManager(settings.USERS_FILE)
volunteer_manager = VolunteerManager(settings.VOLUNTEERS_FILE)

# Set on startup when PUB_SUB_SERVICE=redis
redis_service: Optional[AsyncRedisPubSubService] = None

# Metrics
app_start_time: datetime = datetime.now(timezone.utc)
