from chat_relay.client.client import ChatClient
from chat_relay.client.config import ClientSettings
from chat_relay.client.views import ChatView, DeliveryStatus, MessageView

__all__ = ["ChatClient", "ChatView", "ClientSettings", "DeliveryStatus", "MessageView"]
