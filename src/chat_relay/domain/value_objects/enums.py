from __future__ import annotations

from enum import StrEnum


class AckStatus(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


class AckCode(StrEnum):
    MESSAGE_SENT = "MESSAGE_SENT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    # Produced client-side only
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    ACK_TIMEOUT = "ACK_TIMEOUT"
