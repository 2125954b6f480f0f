# samvaad/services/volunteer_manager.py

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from samvaad.core.errors import DuplicateApplication
from samvaad.core.logging import get_logger
from samvaad.models.models import Volunteer, VolunteerApplication, VolunteerApplicationRequest
from samvaad.services.json_file_manager import JsonFileManager

logger = get_logger(__name__)


class VolunteerManager(JsonFileManager[VolunteerApplication]):
    """
    Volunteer applications and the chat directory derived from them.

    Reviewing applications is done outside this service; every application
    starts "Pending" and stays listed in the directory unless "Rejected".
    """

    model = VolunteerApplication

    def find_active_by_email(self, email: str) -> Optional[VolunteerApplication]:
        """An application with this email that is not Rejected, if any."""
        email = email.strip().lower()
        return next(
            (a for a in self.items.values() if a.email == email and a.status != "Rejected"),
            None,
        )

    def submit(self, request: VolunteerApplicationRequest) -> VolunteerApplication:
        """
        Store a new application.

        Raises:
            DuplicateApplication: a pending/accepted application uses this email
        """
        if self.find_active_by_email(request.email):
            logger.info("Duplicate application attempt for email: %s", request.email)
            raise DuplicateApplication(
                "An application with this email address already exists and is pending or accepted."
            )

        application = VolunteerApplication(
            **request.model_dump(),
            id=uuid.uuid4().hex,
            status="Pending",
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self.put(application.id, application)
        logger.info("Volunteer application saved for %s (%s)", application.full_name, application.email)
        return application

    def list_newest_first(self) -> List[VolunteerApplication]:
        return sorted(self.items.values(), key=lambda a: a.created_at, reverse=True)

    def directory(self) -> List[Volunteer]:
        """Counterparts a user may open a chat room with."""
        return [
            Volunteer(id=a.id, name=a.full_name, interest=a.interest)
            for a in sorted(self.items.values(), key=lambda a: a.full_name.lower())
            if a.status != "Rejected"
        ]
