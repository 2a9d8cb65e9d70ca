"""Import all models so Base.metadata knows every table before create_all."""
from chat_relay.infrastructure.db.models.message import MessageModel

__all__ = [
    "MessageModel",
]
