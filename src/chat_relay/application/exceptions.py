from __future__ import annotations

from chat_relay.domain.value_objects.enums import AckCode


class AppError(Exception):
    """Base application error.

    ``code`` is what ends up in the acknowledgement, so the client can tell
    retry-worthy failures from the rest.
    """

    code: AckCode = AckCode.INTERNAL_ERROR

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationError(AppError):
    code = AckCode.VALIDATION_ERROR


class PersistenceError(AppError):
    code = AckCode.PERSISTENCE_ERROR


class InternalError(AppError):
    code = AckCode.INTERNAL_ERROR


class TransportError(AppError):
    code = AckCode.TRANSPORT_ERROR
