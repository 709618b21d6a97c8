"""
Room change notification
房间变更通知 - 状态机的通知协作者

通知只告诉客户端“房间变了”，客户端收到后重新拉取完整快照。
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from redis.exceptions import RedisError

from chameleon.core.config import settings
from chameleon.core.exceptions import CollaboratorError
from chameleon.core.redis_client import RedisManager, redis_manager
from chameleon.schemas.game import GamePhase

logger = logging.getLogger(__name__)


def room_changed_message(room_id: str, phase: Optional[GamePhase] = None) -> dict:
    return {
        "type": "room_updated",
        "data": {
            "room_id": room_id,
            "phase": phase.value if phase else None,
        },
    }


class RoomNotifier(ABC):
    """通知接口"""

    @abstractmethod
    async def notify_room_changed(self, room_id: str, phase: Optional[GamePhase] = None) -> None:
        """通知订阅者房间已变更"""


class RedisRoomNotifier(RoomNotifier):
    """通过 Redis 频道 <prefix>:<room_id> 发布变更，供其他进程转发"""

    def __init__(self, manager: Optional[RedisManager] = None, prefix: Optional[str] = None):
        self.manager = manager or redis_manager
        self.prefix = prefix or settings.ROOM_CHANNEL_PREFIX

    def channel_for(self, room_id: str) -> str:
        return f"{self.prefix}:{room_id}"

    async def notify_room_changed(self, room_id: str, phase: Optional[GamePhase] = None) -> None:
        try:
            receivers = await self.manager.publish_message(
                self.channel_for(room_id), room_changed_message(room_id, phase)
            )
            logger.debug(f"Room {room_id} change published to {receivers} subscribers")
        except (RedisError, RuntimeError) as e:
            logger.error(f"Failed to publish change for room {room_id}: {e}")
            raise CollaboratorError("房间变更通知失败，请稍后重试") from e


class BroadcastNotifier(RoomNotifier):
    """依次通知多个下游"""

    def __init__(self, notifiers: Sequence[RoomNotifier]):
        self.notifiers = list(notifiers)

    async def notify_room_changed(self, room_id: str, phase: Optional[GamePhase] = None) -> None:
        for notifier in self.notifiers:
            await notifier.notify_room_changed(room_id, phase)
