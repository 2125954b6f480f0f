# samvaad/services/user_manager.py

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from samvaad.core.logging import get_logger
from samvaad.models.models import User
from samvaad.services.json_file_manager import JsonFileManager

logger = get_logger(__name__)


class UserManager(JsonFileManager[User]):
    """Registered accounts, keyed by user id and looked up by email."""

    model = User

    def find_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        return next((u for u in self.items.values() if u.email == email), None)

    def create_user(self, username: str, email: str, password_hash: Optional[str]) -> User:
        """
        Create and persist a user.

        Note:
            Caller checks email uniqueness first.
        """
        user = User(
            id=uuid.uuid4().hex,
            username=username,
            email=email.strip().lower(),
            password=password_hash,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self.put(user.id, user)
        logger.info("✓ Created user %s", user.id)
        return user
