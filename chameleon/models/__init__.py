# Database models
from .room import GameRoom
from .player import RoomPlayer

__all__ = [
    "GameRoom",
    "RoomPlayer"
]
