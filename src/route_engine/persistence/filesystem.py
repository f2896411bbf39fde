"""File-based persistence helpers for client-local state."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from ..config import settings


class FileStorage:
    """Thin wrapper around the data root for storing JSON payloads."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.state_root = self.root / "state"
        self.state_root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str, suffix: str = ".json") -> Path:
        return self.state_root / f"{key}{suffix}"

    def write_json(self, path: Path, data: Any, *, indent: int = 2) -> None:
        """Replace ``path`` wholesale; readers never observe a half-written file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent)
        try:
            os.replace(handle.name, path)
        except OSError:
            Path(handle.name).unlink(missing_ok=True)
            raise

    def read_json(self, path: Path) -> Any | None:
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def delete(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
