from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Session:
    """Server-side record of one live connection, independent of any user."""

    connection_id: str
    connected_at: datetime
