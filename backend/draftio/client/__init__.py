"""
Client side of the realtime chat: one relay connection per session and the
local state it drives.
"""
from draftio.client.relay import ConnectionState, RelayClient
from draftio.client.service import ChatRealtimeService

__all__ = ["ChatRealtimeService", "ConnectionState", "RelayClient"]
