"""In-process registry of live connections (sessions)."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from chat_relay.application.ports.channel import SessionChannel
from chat_relay.application.ports.clock import Clock, SystemClock
from chat_relay.domain.entities.session import Session
from chat_relay.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Entry:
    session: Session
    channel: SessionChannel


class SessionRegistry:
    """Maps connection ids to sessions and fans frames out to them.

    Map mutations are plain synchronous dict operations, so they are atomic
    on the event loop. Send paths snapshot the recipients before the first
    await, so a register/unregister from another handler can never change
    the map under an iteration.

    Sends are best effort: a failed write to one session is logged and
    dropped, never raised to the caller. Fan-out writes to all targets
    concurrently and gives each write at most ``send_timeout`` seconds, so a
    stalled peer cannot hold up the others or the caller.
    """

    def __init__(self, clock: Clock | None = None, *, send_timeout: float = 5.0) -> None:
        self._clock = clock or SystemClock()
        self._send_timeout = send_timeout
        self._entries: dict[str, _Entry] = {}

    def register(self, connection_id: str, channel: SessionChannel) -> Session:
        existing = self._entries.get(connection_id)
        if existing is not None:
            return existing.session
        session = Session(connection_id=connection_id, connected_at=self._clock.now())
        self._entries[connection_id] = _Entry(session=session, channel=channel)
        logger.info("Session registered: %s (total=%d)", connection_id, len(self._entries))
        return session

    def unregister(self, connection_id: str) -> None:
        if self._entries.pop(connection_id, None) is not None:
            logger.info("Session unregistered: %s (total=%d)", connection_id, len(self._entries))

    def get(self, connection_id: str) -> Session | None:
        entry = self._entries.get(connection_id)
        return entry.session if entry else None

    def count(self) -> int:
        return len(self._entries)

    def list_ids(self) -> list[str]:
        return list(self._entries)

    async def send_to(
        self,
        connection_id: str,
        event: str,
        payload: dict[str, Any],
        *,
        ack_id: str | None = None,
    ) -> bool:
        """Send to one session. Returns False only when it is not registered."""
        entry = self._entries.get(connection_id)
        if entry is None:
            return False
        raw = WsOutbound(type=event, data=payload, ack_id=ack_id).dump()
        await self._deliver(connection_id, entry.channel, raw)
        return True

    async def broadcast_all(self, event: str, payload: dict[str, Any]) -> int:
        targets = list(self._entries.items())
        return await self._fan_out(targets, event, payload)

    async def broadcast_except(
        self,
        origin_id: str,
        event: str,
        payload: dict[str, Any],
    ) -> int:
        """Send to every session but ``origin_id``.

        An unknown origin sends nothing at all.
        """
        if origin_id not in self._entries:
            logger.debug("broadcast_except: origin %s not registered, skipping", origin_id)
            return 0
        targets = [(cid, e) for cid, e in self._entries.items() if cid != origin_id]
        return await self._fan_out(targets, event, payload)

    async def _fan_out(
        self,
        targets: list[tuple[str, _Entry]],
        event: str,
        payload: dict[str, Any],
    ) -> int:
        raw = WsOutbound(type=event, data=payload).dump()
        await asyncio.gather(
            *(self._deliver(cid, entry.channel, raw) for cid, entry in targets)
        )
        return len(targets)

    async def _deliver(self, connection_id: str, channel: SessionChannel, raw: str) -> None:
        try:
            await asyncio.wait_for(channel.send_text(raw), self._send_timeout)
        except TimeoutError:
            logger.warning(
                "Send to %s timed out after %.1fs, dropping frame", connection_id, self._send_timeout,
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Send to %s failed: %s", connection_id, exc)
