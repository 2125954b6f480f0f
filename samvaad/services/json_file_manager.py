# samvaad/services/json_file_manager.py

from __future__ import annotations

import json
import os
from typing import Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel

from samvaad.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


# ============================================================================
# JSON FILE PERSISTENCE
# ============================================================================
class JsonFileManager(Generic[T]):
    """
    Keeps a dict of pydantic records in memory and mirrors it to a JSON file.

    Records survive restarts. For multi-instance deployments the file has to
    be replaced by a shared database.

    Storage Format:
        {
            "<id>": {...record fields...},
            ...
        }
    """

    model: Type[T]

    def __init__(self, path: str):
        self.path = path
        self.items: Dict[str, T] = {}
        self.load()

    def load(self) -> None:
        """
        Load records from disk.

        A missing file means a fresh install; an unreadable one is logged and
        the manager starts empty.
        """
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            self.items = {k: self.model(**v) for k, v in data.items()}
            logger.info("✓ Loaded %d records from %s", len(self.items), self.path)
        except (OSError, ValueError) as e:
            logger.error("Load error for %s: %s", self.path, e)
            self.items = {}

    def save(self) -> None:
        """Persist every record. Called after each write."""
        data = {k: v.model_dump() for k, v in self.items.items()}
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)

    def get(self, item_id: str) -> Optional[T]:
        return self.items.get(item_id)

    def list(self) -> List[T]:
        return list(self.items.values())

    def put(self, item_id: str, item: T) -> T:
        self.items[item_id] = item
        self.save()
        return item
