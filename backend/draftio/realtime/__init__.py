"""
Real-time relay for one-to-one chat (Socket.IO).
"""
from draftio.realtime.socket import sio

__all__ = ["sio"]
