"""Client outbox: optimistic sends matched to their acknowledgements."""
from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as PayloadError

from chat_relay.client.views import ChatView, DeliveryStatus, MessageView
from chat_relay.domain.value_objects.enums import AckCode, AckStatus
from chat_relay.infrastructure.ws.protocol import Acknowledgement, WsEvent

logger = logging.getLogger(__name__)

# (event, data, ack_id) -> whether the frame was written
Emitter = Callable[[str, dict[str, Any], str | None], Awaitable[bool]]


class AttemptState(StrEnum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class PendingSend:
    """A message sent but not yet confirmed.

    ``sender`` and ``text`` are the values of the original send and are what
    every retry resends.
    """

    temp_id: str
    sender: str
    text: str
    view: MessageView
    attempt_state: AttemptState = AttemptState.PENDING
    attempt: int = 0
    ack: asyncio.Future[Acknowledgement] | None = field(default=None, repr=False)
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def correlation_id(self) -> str:
        return f"{self.temp_id}#{self.attempt}"


def _error(message: str, code: AckCode) -> Acknowledgement:
    return Acknowledgement(status=AckStatus.ERROR, message=message, code=code)


def parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class ClientOutbox:
    """Tracks pending sends and resolves each attempt exactly once.

    Each attempt registers one future under ``<temp_id>#<attempt>`` and a
    timer that fails it after ``ack_timeout`` seconds. A retry bumps the
    attempt number, which retires the previous registration, so a late
    acknowledgement for an old attempt is ignored.
    """

    def __init__(
        self,
        view: ChatView,
        emit: Emitter,
        *,
        ack_timeout: float = 10.0,
        retry_validation_failures: bool = False,
    ) -> None:
        self._view = view
        self._emit = emit
        self._ack_timeout = ack_timeout
        self._retry_validation_failures = retry_validation_failures
        self._pending: dict[str, PendingSend] = {}
        self._ids = itertools.count(1)

    @property
    def pending(self) -> list[PendingSend]:
        return list(self._pending.values())

    def get(self, temp_id: str) -> PendingSend | None:
        return self._pending.get(temp_id)

    async def send(self, sender: str, text: str) -> PendingSend | None:
        body = text.strip()
        if not body:
            self._view.notify("Please enter a message", is_error=True)
            return None

        temp_id = f"temp-{next(self._ids)}"
        entry = self._view.append(
            MessageView(
                id=temp_id,
                sender=sender,
                text=body,
                created_at=datetime.now(timezone.utc),
                status=DeliveryStatus.PENDING,
                is_mine=True,
            )
        )
        pending = PendingSend(temp_id=temp_id, sender=sender, text=body, view=entry)
        self._pending[temp_id] = pending
        await self._issue(pending)
        return pending

    async def retry(self, temp_id: str) -> bool:
        """Resend a failed entry in place. Refused while an attempt is in flight."""
        pending = self._pending.get(temp_id)
        if pending is None or pending.attempt_state != AttemptState.FAILED:
            return False
        if not pending.view.can_retry:
            return False
        await self._issue(pending)
        return True

    def discard(self, temp_id: str) -> bool:
        pending = self._pending.get(temp_id)
        if pending is None or pending.attempt_state != AttemptState.FAILED:
            return False
        del self._pending[temp_id]
        self._view.remove(pending.view)
        return True

    async def wait(self, pending: PendingSend) -> Acknowledgement:
        """Wait for the current attempt of ``pending`` to resolve."""
        assert pending.ack is not None
        return await asyncio.shield(pending.ack)

    def handle_ack(self, correlation_id: str, payload: dict[str, Any] | Acknowledgement) -> bool:
        """Resolve the attempt registered under ``correlation_id``.

        Returns False for unknown, stale or already-resolved ids.
        """
        temp_id, _, _ = correlation_id.rpartition("#")
        pending = self._pending.get(temp_id)
        if (
            pending is None
            or pending.correlation_id != correlation_id
            or pending.ack is None
            or pending.ack.done()
        ):
            logger.debug("Ignoring acknowledgement for %s", correlation_id)
            return False

        if isinstance(payload, Acknowledgement):
            ack = payload
        else:
            try:
                ack = Acknowledgement.model_validate(payload)
            except PayloadError:
                logger.warning("Malformed acknowledgement for %s: %r", correlation_id, payload)
                ack = _error("Malformed acknowledgement", AckCode.INTERNAL_ERROR)

        if pending.timer is not None:
            pending.timer.cancel()
            pending.timer = None
        pending.ack.set_result(ack)

        if ack.ok:
            self._deliver(pending, ack)
        else:
            self._fail(pending, ack)
        return True

    def receive(self, payload: dict[str, Any]) -> MessageView | None:
        """Render a message pushed by the server.

        The point-to-point echo of our own send is skipped because the
        acknowledgement already rendered it, and ids already on screen are
        skipped so a replay after reconnect does not duplicate entries.
        """
        if payload.get("isOwnMessage"):
            logger.debug("Skipping own echo for message %s", payload.get("id"))
            return None

        message_id = str(payload.get("id") or "")
        if message_id and self._view.find(message_id) is not None:
            logger.debug("Skipping duplicate message %s", message_id)
            return None

        sender = str(payload.get("sender") or "")
        identity = self._view.identity
        return self._view.append(
            MessageView(
                id=message_id,
                sender=sender,
                text=str(payload.get("text") or ""),
                created_at=parse_time(payload.get("createdAt")) or datetime.now(timezone.utc),
                status=DeliveryStatus.RECEIVED,
                is_mine=bool(identity) and sender == identity,
            )
        )

    # -- Internal -------------------------------------------------------------

    async def _issue(self, pending: PendingSend) -> None:
        if pending.timer is not None:
            pending.timer.cancel()
        pending.attempt += 1
        pending.attempt_state = AttemptState.PENDING

        entry = pending.view
        entry.status = DeliveryStatus.PENDING
        entry.error = None
        entry.error_code = None
        entry.can_retry = False
        self._view.changed(entry)

        loop = asyncio.get_running_loop()
        correlation_id = pending.correlation_id
        pending.ack = loop.create_future()
        pending.timer = loop.call_later(self._ack_timeout, self._expire, correlation_id)

        sent = await self._emit(
            WsEvent.CHAT_MESSAGE,
            {"username": pending.sender, "text": pending.text},
            correlation_id,
        )
        if not sent:
            self.handle_ack(
                correlation_id, _error("Not connected to server", AckCode.TRANSPORT_ERROR),
            )

    def _expire(self, correlation_id: str) -> None:
        if self.handle_ack(
            correlation_id, _error("No acknowledgement from server", AckCode.ACK_TIMEOUT),
        ):
            logger.warning("Acknowledgement timed out for %s", correlation_id)

    def _deliver(self, pending: PendingSend, ack: Acknowledgement) -> None:
        entry = pending.view
        entry.id = ack.message_id or entry.id
        entry.sender = ack.sender or pending.sender
        entry.text = ack.text or pending.text
        entry.created_at = parse_time(ack.timestamp) or entry.created_at
        entry.server_time = parse_time(ack.server_time)
        entry.status = DeliveryStatus.DELIVERED
        entry.is_mine = True

        pending.attempt_state = AttemptState.DELIVERED
        del self._pending[pending.temp_id]
        self._view.changed(entry)

        sent_at = entry.server_time or datetime.now(timezone.utc)
        self._view.notify(f"Message sent at {sent_at.astimezone():%H:%M:%S}")

    def _fail(self, pending: PendingSend, ack: Acknowledgement) -> None:
        entry = pending.view
        entry.status = DeliveryStatus.FAILED
        entry.error = ack.message or "Unknown error"
        entry.error_code = ack.code
        entry.can_retry = (
            ack.code != AckCode.VALIDATION_ERROR or self._retry_validation_failures
        )

        pending.attempt_state = AttemptState.FAILED
        self._view.changed(entry)
        self._view.notify(f"Failed to send: {entry.error}", is_error=True)
