"""
Room model
房间数据模型
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, JSON, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from chameleon.core.database import Base

# 导入统一的enum定义
from chameleon.schemas.game import GamePhase, PlayerRole, RoundOutcome


class GameRoom(Base):
    """Room model holding the round state machine fields"""

    __tablename__ = "game_rooms"

    id = Column(String(12), primary_key=True, index=True)

    # Round state
    state = Column(Enum(GamePhase, values_callable=lambda obj: [e.value for e in obj]),
                   default=GamePhase.LOBBY, nullable=False)
    round = Column(Integer, default=0, nullable=False)
    max_rounds = Column(Integer, default=3, nullable=False)
    category = Column(String(50), nullable=True)
    secret_word = Column(String(100), nullable=True)
    turn_order = Column(JSON, default=list, nullable=False)
    current_turn = Column(Integer, default=0, nullable=False)
    timer = Column(Integer, nullable=True)

    # Results of the most recently resolved vote
    votes_tally = Column(JSON, default=dict, nullable=False)
    revealed_player_id = Column(String(36), nullable=True)
    revealed_role = Column(Enum(PlayerRole, values_callable=lambda obj: [e.value for e in obj]),
                           nullable=True)
    round_outcome = Column(Enum(RoundOutcome, values_callable=lambda obj: [e.value for e in obj]),
                           nullable=True)
    chameleon_guess = Column(String(100), nullable=True)
    chameleon_guess_correct = Column(Boolean, nullable=True)

    # Settings snapshot stored as JSON
    settings = Column(JSON, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    players = relationship("RoomPlayer", back_populates="room", order_by="RoomPlayer.seat",
                           cascade="all, delete-orphan", lazy="selectin")

    def __repr__(self):
        return f"<GameRoom(id={self.id}, state={self.state}, round={self.round})>"
