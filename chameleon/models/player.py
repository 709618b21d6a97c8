"""
Player model
房间玩家数据模型
"""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from chameleon.core.database import Base
from chameleon.schemas.game import PlayerRole


class RoomPlayer(Base):
    """Player row owned by a room, holding the round-scoped fields"""

    __tablename__ = "room_players"

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(12), ForeignKey("game_rooms.id"), nullable=False, index=True)
    seat = Column(Integer, default=0, nullable=False)  # 加入顺序

    name = Column(String(50), nullable=False)
    is_host = Column(Boolean, default=False, nullable=False)
    is_ready = Column(Boolean, default=False, nullable=False)

    # 回合内字段
    role = Column(Enum(PlayerRole, values_callable=lambda obj: [e.value for e in obj]),
                  nullable=True)
    turn_description = Column(String(200), nullable=True)
    vote = Column(String(36), nullable=True)
    is_protected = Column(Boolean, default=False, nullable=False)
    vote_multiplier = Column(Integer, default=1, nullable=False)
    vote_weight = Column(Integer, nullable=True)  # 投票时的倍率
    special_word = Column(String(100), nullable=True)
    special_ability_used = Column(Boolean, default=False, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    room = relationship("GameRoom", back_populates="players")

    def __repr__(self):
        return f"<RoomPlayer(id={self.id}, room_id={self.room_id}, name={self.name})>"
