"""Push channel transports."""

from .hub import ChannelHub, HubConnection
from .transport import ChannelClosedError, ChannelConnection, ChannelTransport

__all__ = [
    "ChannelClosedError",
    "ChannelConnection",
    "ChannelHub",
    "ChannelTransport",
    "HubConnection",
]
