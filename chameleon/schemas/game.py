"""
Game Pydantic schemas
游戏数据验证和序列化模型
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from enum import Enum

from chameleon.core.config import settings as app_settings


class GamePhase(str, Enum):
    """游戏阶段枚举"""
    LOBBY = "lobby"
    SELECTING = "selecting"
    PRESENTING = "presenting"
    DISCUSSION = "discussion"
    VOTING = "voting"
    RESULTS = "results"
    ENDED = "ended"


class PlayerRole(str, Enum):
    """玩家角色枚举"""
    REGULAR = "regular"
    CHAMELEON = "chameleon"
    MIMIC = "mimic"
    ORACLE = "oracle"
    SPY = "spy"
    JESTER = "jester"
    GUARDIAN = "guardian"
    TRICKSTER = "trickster"
    ILLUSIONIST = "illusionist"


# 不知道秘密词的角色
OUTLIER_ROLES = frozenset({PlayerRole.CHAMELEON})
# 被投出即算“抓到卧底”的角色
IMPOSTER_ROLES = frozenset({PlayerRole.CHAMELEON, PlayerRole.MIMIC})


class RoundOutcome(str, Enum):
    """回合结果枚举"""
    TIE = "tie"
    IMPOSTER_CAUGHT = "imposter_caught"
    JESTER_WINS = "jester_wins"
    INNOCENT_VOTED = "innocent_voted"


class GameMode(str, Enum):
    """游戏模式枚举"""
    CLASSIC = "classic"
    TEAMS = "teams"
    CHAOS = "chaos"
    TIMED = "timed"


def default_role_pools() -> Dict[GameMode, List[PlayerRole]]:
    """每种模式默认启用的角色池"""
    return {
        GameMode.CLASSIC: [PlayerRole.REGULAR, PlayerRole.CHAMELEON, PlayerRole.MIMIC],
        GameMode.TEAMS: [PlayerRole.REGULAR, PlayerRole.CHAMELEON, PlayerRole.ORACLE, PlayerRole.GUARDIAN],
        GameMode.CHAOS: list(PlayerRole),
        GameMode.TIMED: [PlayerRole.REGULAR, PlayerRole.CHAMELEON],
    }


class RoomSettings(BaseModel):
    """房间设置快照"""
    max_players: int = Field(default=app_settings.DEFAULT_MAX_PLAYERS, ge=3, le=app_settings.MAX_PLAYERS_PER_ROOM)
    max_rounds: int = Field(default=app_settings.DEFAULT_MAX_ROUNDS, ge=1, le=10)
    presenting_time: int = Field(default=app_settings.DEFAULT_PRESENTING_TIME, ge=10, le=600, description="描述阶段时间(秒)")
    discussion_time: int = Field(default=app_settings.DEFAULT_DISCUSSION_TIME, ge=10, le=600, description="讨论阶段时间(秒)")
    voting_time: int = Field(default=app_settings.DEFAULT_VOTING_TIME, ge=10, le=600, description="投票阶段时间(秒)")
    game_mode: GameMode = GameMode.CLASSIC
    roles: Dict[GameMode, List[PlayerRole]] = Field(default_factory=default_role_pools)
    special_abilities: bool = False

    def enabled_roles(self) -> List[PlayerRole]:
        """当前模式下启用的角色"""
        return self.roles.get(self.game_mode, [PlayerRole.REGULAR, PlayerRole.CHAMELEON])


class SettingsUpdate(BaseModel):
    """房间设置的部分更新"""
    max_players: Optional[int] = Field(None, ge=3, le=app_settings.MAX_PLAYERS_PER_ROOM)
    max_rounds: Optional[int] = Field(None, ge=1, le=10)
    presenting_time: Optional[int] = Field(None, ge=10, le=600)
    discussion_time: Optional[int] = Field(None, ge=10, le=600)
    voting_time: Optional[int] = Field(None, ge=10, le=600)
    game_mode: Optional[GameMode] = None
    roles: Optional[Dict[GameMode, List[PlayerRole]]] = None
    special_abilities: Optional[bool] = None


class PlayerState(BaseModel):
    """房间中的玩家信息"""
    id: str
    name: str
    is_host: bool = False
    is_ready: bool = False
    role: Optional[PlayerRole] = None
    turn_description: Optional[str] = None
    vote: Optional[str] = None
    is_protected: bool = False
    vote_multiplier: int = 1
    vote_weight: Optional[int] = None  # 投票时记录的倍率
    special_word: Optional[str] = None
    special_ability_used: bool = False

    class Config:
        from_attributes = True


class RoomSnapshot(BaseModel):
    """房间完整状态快照，每次转换产生一个新快照"""
    id: str
    state: GamePhase = GamePhase.LOBBY
    round: int = 0
    max_rounds: int = app_settings.DEFAULT_MAX_ROUNDS
    category: Optional[str] = None
    secret_word: Optional[str] = None
    turn_order: List[str] = Field(default_factory=list)
    current_turn: int = 0
    timer: Optional[int] = None
    votes_tally: Dict[str, int] = Field(default_factory=dict)
    revealed_player_id: Optional[str] = None
    revealed_role: Optional[PlayerRole] = None
    round_outcome: Optional[RoundOutcome] = None
    chameleon_guess: Optional[str] = None
    chameleon_guess_correct: Optional[bool] = None
    settings: RoomSettings = Field(default_factory=RoomSettings)
    players: List[PlayerState] = Field(default_factory=list)

    class Config:
        from_attributes = True

    def get_player(self, player_id: Optional[str]) -> Optional[PlayerState]:
        """按ID查找玩家"""
        return next((p for p in self.players if p.id == player_id), None)

    @property
    def host(self) -> Optional[PlayerState]:
        return next((p for p in self.players if p.is_host), None)

    @property
    def current_player_id(self) -> Optional[str]:
        """当前应描述的玩家"""
        if 0 <= self.current_turn < len(self.turn_order):
            return self.turn_order[self.current_turn]
        return None

    @property
    def outlier_ids(self) -> List[str]:
        return [p.id for p in self.players if p.role in OUTLIER_ROLES]


class RoomUpdate(BaseModel):
    """
    一次转换需要写入的全部字段
    room: 房间字段的部分更新；players: 玩家ID -> 玩家字段的部分更新
    """
    room: Dict[str, Any] = Field(default_factory=dict)
    players: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    @property
    def next_phase(self) -> Optional[GamePhase]:
        return self.room.get("state")

    @property
    def is_empty(self) -> bool:
        return not self.room and not self.players

    def merge_player(self, player_id: str, fields: Dict[str, Any]) -> "RoomUpdate":
        self.players.setdefault(player_id, {}).update(fields)
        return self

    def apply_to(self, snapshot: RoomSnapshot) -> RoomSnapshot:
        """在快照上应用更新，返回新快照（原快照不变）"""
        players = [
            p.model_copy(update=self.players[p.id]) if p.id in self.players else p.model_copy()
            for p in snapshot.players
        ]
        return snapshot.model_copy(deep=True, update={**self.room, "players": players})


class TallyResult(BaseModel):
    """计票结果"""
    counts: Dict[str, int] = Field(default_factory=dict)
    winner_id: Optional[str] = None
    is_tie: bool = False


class PlayerView(BaseModel):
    """单个玩家可见的信息"""
    player_id: str
    phase: GamePhase
    round: int
    category: Optional[str] = None
    role: Optional[PlayerRole] = None
    word: Optional[str] = None
    known_chameleon_id: Optional[str] = None
    is_my_turn: bool = False
    can_vote: bool = False
    can_use_ability: bool = False
    revealed_player_id: Optional[str] = None
    revealed_role: Optional[PlayerRole] = None
    round_outcome: Optional[RoundOutcome] = None


class HostAction(BaseModel):
    """房主/系统操作请求"""
    player_id: Optional[str] = Field(None, description="发起操作的玩家ID，为空表示系统触发")


class ReadyUpdate(BaseModel):
    player_id: str
    ready: bool = True


class SettingsPatch(BaseModel):
    player_id: str
    settings: SettingsUpdate


class CategorySelect(BaseModel):
    """选择类别请求"""
    player_id: str
    category: str = Field(..., min_length=1, max_length=50)


class DescriptionCreate(BaseModel):
    """描述提交请求"""
    player_id: str
    content: str = Field(..., min_length=1, max_length=200, description="描述内容")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("描述内容不能为空")
        return v


class VoteCreate(BaseModel):
    """投票请求"""
    voter_id: str
    target_id: str = Field(..., description="投票目标玩家ID")


class AbilityUse(BaseModel):
    """技能使用请求"""
    player_id: str
    target_id: Optional[str] = None


class GuessCreate(BaseModel):
    """变色龙猜词请求"""
    player_id: str
    guess: str = Field(..., min_length=1, max_length=100)


class TimerExpire(BaseModel):
    """计时器到期请求"""
    expected_phase: GamePhase
    expected_turn: Optional[int] = Field(None, ge=0)  # 描述阶段必填


class ActionResult(BaseModel):
    """调用方操作的统一返回"""
    success: bool = True
    message: str = ""
    error_code: Optional[str] = None
    retryable: bool = False
    changed: bool = False
    room: Optional[RoomSnapshot] = None
    data: Optional[Dict[str, Any]] = None
