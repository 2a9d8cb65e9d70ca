"""Real-time chat relay: acknowledged delivery, typing presence, reconnecting clients."""

__version__ = "0.1.0"
