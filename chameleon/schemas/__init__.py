# Pydantic schemas
from .game import (
    GamePhase, PlayerRole, RoundOutcome, GameMode, OUTLIER_ROLES, IMPOSTER_ROLES,
    RoomSettings, SettingsUpdate, PlayerState, RoomSnapshot, RoomUpdate,
    TallyResult, PlayerView, HostAction, ReadyUpdate, SettingsPatch,
    CategorySelect, DescriptionCreate, VoteCreate, AbilityUse, GuessCreate,
    TimerExpire, ActionResult
)

__all__ = [
    "GamePhase", "PlayerRole", "RoundOutcome", "GameMode", "OUTLIER_ROLES", "IMPOSTER_ROLES",
    "RoomSettings", "SettingsUpdate", "PlayerState", "RoomSnapshot", "RoomUpdate",
    "TallyResult", "PlayerView", "HostAction", "ReadyUpdate", "SettingsPatch",
    "CategorySelect", "DescriptionCreate", "VoteCreate", "AbilityUse", "GuessCreate",
    "TimerExpire", "ActionResult"
]
