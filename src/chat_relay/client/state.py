"""Small per-user state file that survives client restarts."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class ClientState:
    """JSON object on disk. A missing or unreadable file reads as empty."""

    def __init__(self, path: Path | None) -> None:
        self._path = path

    @property
    def username(self) -> str:
        value = self._read().get("username")
        return value.strip() if isinstance(value, str) else ""

    @username.setter
    def username(self, name: str) -> None:
        data = self._read()
        data["username"] = name
        self._write(data)

    def _read(self) -> dict[str, Any]:
        if self._path is None or not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            logger.warning("Could not save state to %s: %s", self._path, exc)
