"""
Room storage
房间存储 - 状态机的持久化协作者

RoomStore 定义状态机依赖的最小接口：读取完整快照、写入部分房间字段、
写入部分玩家字段，以及在一个事务中写入一次转换的全部字段。
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from chameleon.core.database import DatabaseManager, db_manager
from chameleon.core.exceptions import CollaboratorError, RoomNotFoundError
from chameleon.models.room import GameRoom
from chameleon.models.player import RoomPlayer
from chameleon.schemas.game import RoomSnapshot, RoomUpdate, RoomSettings, PlayerState

logger = logging.getLogger(__name__)


class RoomStore(ABC):
    """房间存储接口"""

    @abstractmethod
    async def load_room(self, room_id: str) -> Optional[RoomSnapshot]:
        """读取房间及其全部玩家，不存在时返回 None"""

    @abstractmethod
    async def save_room(self, room_id: str, fields: Dict[str, Any]) -> None:
        """写入部分房间字段"""

    @abstractmethod
    async def save_player(self, room_id: str, player_id: str, fields: Dict[str, Any]) -> None:
        """写入部分玩家字段"""

    @abstractmethod
    async def apply_update(self, room_id: str, room_update: RoomUpdate) -> None:
        """在一个事务中写入一次转换的所有字段"""

    @abstractmethod
    async def create_room(self, snapshot: RoomSnapshot) -> None:
        """写入初始房间（用于初始化和测试）"""


class InMemoryRoomStore(RoomStore):
    """内存存储，读写都做深拷贝，避免调用方修改内部状态"""

    def __init__(self):
        self._rooms: Dict[str, RoomSnapshot] = {}

    def _get(self, room_id: str) -> RoomSnapshot:
        snapshot = self._rooms.get(room_id)
        if snapshot is None:
            raise RoomNotFoundError(f"房间 {room_id} 不存在")
        return snapshot

    async def load_room(self, room_id: str) -> Optional[RoomSnapshot]:
        snapshot = self._rooms.get(room_id)
        return snapshot.model_copy(deep=True) if snapshot else None

    async def save_room(self, room_id: str, fields: Dict[str, Any]) -> None:
        await self.apply_update(room_id, RoomUpdate(room=dict(fields)))

    async def save_player(self, room_id: str, player_id: str, fields: Dict[str, Any]) -> None:
        await self.apply_update(room_id, RoomUpdate(players={player_id: dict(fields)}))

    async def apply_update(self, room_id: str, room_update: RoomUpdate) -> None:
        self._rooms[room_id] = room_update.apply_to(self._get(room_id))

    async def create_room(self, snapshot: RoomSnapshot) -> None:
        self._rooms[snapshot.id] = snapshot.model_copy(deep=True)


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    """pydantic 对象转换为 JSON 列可存储的结构"""
    values = {}
    for key, value in fields.items():
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        values[key] = value
    return values


class SqlAlchemyRoomStore(RoomStore):
    """基于 game_rooms / room_players 表的异步存储"""

    def __init__(self, database: Optional[DatabaseManager] = None):
        self.db = database or db_manager

    @staticmethod
    def _to_snapshot(room: GameRoom) -> RoomSnapshot:
        return RoomSnapshot(
            id=room.id,
            state=room.state,
            round=room.round,
            max_rounds=room.max_rounds,
            category=room.category,
            secret_word=room.secret_word,
            turn_order=list(room.turn_order or []),
            current_turn=room.current_turn,
            timer=room.timer,
            votes_tally=dict(room.votes_tally or {}),
            revealed_player_id=room.revealed_player_id,
            revealed_role=room.revealed_role,
            round_outcome=room.round_outcome,
            chameleon_guess=room.chameleon_guess,
            chameleon_guess_correct=room.chameleon_guess_correct,
            settings=RoomSettings.model_validate(room.settings or {}),
            players=[PlayerState.model_validate(p) for p in room.players],
        )

    async def load_room(self, room_id: str) -> Optional[RoomSnapshot]:
        try:
            async with self.db.get_session() as session:
                result = await session.execute(select(GameRoom).where(GameRoom.id == room_id))
                room = result.scalar_one_or_none()
                return self._to_snapshot(room) if room else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load room {room_id}: {e}")
            raise CollaboratorError("读取房间失败，请稍后重试") from e

    async def save_room(self, room_id: str, fields: Dict[str, Any]) -> None:
        await self.apply_update(room_id, RoomUpdate(room=dict(fields)))

    async def save_player(self, room_id: str, player_id: str, fields: Dict[str, Any]) -> None:
        await self.apply_update(room_id, RoomUpdate(players={player_id: dict(fields)}))

    async def apply_update(self, room_id: str, room_update: RoomUpdate) -> None:
        if room_update.is_empty:
            return
        try:
            async with self.db.get_session() as session:
                if room_update.room:
                    result = await session.execute(
                        update(GameRoom)
                        .where(GameRoom.id == room_id)
                        .values(**_column_values(room_update.room))
                    )
                    if result.rowcount == 0:
                        raise RoomNotFoundError(f"房间 {room_id} 不存在")

                for player_id, fields in room_update.players.items():
                    if not fields:
                        continue
                    await session.execute(
                        update(RoomPlayer)
                        .where(RoomPlayer.id == player_id, RoomPlayer.room_id == room_id)
                        .values(**_column_values(fields))
                    )
        except SQLAlchemyError as e:
            logger.error(f"Failed to write update for room {room_id}: {e}")
            raise CollaboratorError("保存房间状态失败，请稍后重试") from e

    async def create_room(self, snapshot: RoomSnapshot) -> None:
        try:
            async with self.db.get_session() as session:
                room = GameRoom(
                    id=snapshot.id,
                    state=snapshot.state,
                    round=snapshot.round,
                    max_rounds=snapshot.max_rounds,
                    category=snapshot.category,
                    secret_word=snapshot.secret_word,
                    turn_order=list(snapshot.turn_order),
                    current_turn=snapshot.current_turn,
                    timer=snapshot.timer,
                    votes_tally=dict(snapshot.votes_tally),
                    revealed_player_id=snapshot.revealed_player_id,
                    revealed_role=snapshot.revealed_role,
                    round_outcome=snapshot.round_outcome,
                    chameleon_guess=snapshot.chameleon_guess,
                    chameleon_guess_correct=snapshot.chameleon_guess_correct,
                    settings=snapshot.settings.model_dump(mode="json"),
                )
                room.players = [
                    RoomPlayer(room_id=snapshot.id, seat=seat, **player.model_dump())
                    for seat, player in enumerate(snapshot.players)
                ]
                session.add(room)
            logger.info(f"Room {snapshot.id} created with {len(snapshot.players)} players")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create room {snapshot.id}: {e}")
            raise CollaboratorError("创建房间失败，请稍后重试") from e
