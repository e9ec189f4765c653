"""Table domain services: the authoritative blackjack room engine.

Everything here is plain Python operating on in-memory rooms; the Socket.IO
handlers and HTTP routes only translate requests into ``RoomManager`` calls,
keeping transport concerns separated from the game rules.
"""
from .manager import RoomManager

__all__ = ['RoomManager']
