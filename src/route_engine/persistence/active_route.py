"""Durable storage port for the single active route."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Protocol

from ..config import settings
from ..services.outputs.route_formatter import snapshot_from_json, snapshot_to_json
from ..services.routing.models import TrackerSnapshot
from .filesystem import FileStorage

logger = logging.getLogger(__name__)


class RouteStore(Protocol):
    def load(self) -> TrackerSnapshot | None: ...

    def save(self, snapshot: TrackerSnapshot) -> None: ...

    def clear(self) -> None: ...


class JsonRouteStore:
    """Keeps the active route as one JSON record under a well-known key.

    Every save overwrites the record; there is no merge. A record that cannot
    be read back is treated as absent so the tracker can still start.
    """

    def __init__(self, root: Path | None = None, key: str | None = None) -> None:
        self.storage = FileStorage(root=root)
        self.key = key or settings.active_route_key
        self.path = self.storage.path_for(self.key)
        self._lock = threading.Lock()

    def load(self) -> TrackerSnapshot | None:
        with self._lock:
            try:
                data = self.storage.read_json(self.path)
                if data is None:
                    return None
                return snapshot_from_json(data)
            except (ValueError, KeyError, TypeError) as exc:
                logger.error(f"Ignoring unreadable route record {self.path}: {exc!r}")
                return None

    def save(self, snapshot: TrackerSnapshot) -> None:
        with self._lock:
            self.storage.write_json(self.path, snapshot_to_json(snapshot))

    def clear(self) -> None:
        with self._lock:
            removed = self.storage.delete(self.path)
        if removed:
            logger.info(f"Removed persisted route record {self.path}")
