from samvaad.client.channel import ChannelState, DeliveryChannel, get_channel, shutdown_channel
from samvaad.client.session import ChatEntry, ChatSession, ErrorCause, SessionState

__all__ = [
    "ChannelState",
    "ChatEntry",
    "ChatSession",
    "DeliveryChannel",
    "ErrorCause",
    "SessionState",
    "get_channel",
    "shutdown_channel",
]
