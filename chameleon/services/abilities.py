"""
Role abilities
角色技能 - 角色到技能效果函数的分派表

每个效果函数只计算需要写入的字段和要返回给玩家的信息，
不做任何 I/O；持久化和 special_ability_used 标记由编排器负责。
"""

import logging
from typing import Callable, Dict, Optional, Any

from pydantic import BaseModel, Field

from chameleon.core.exceptions import InvalidTargetError, PreconditionError
from chameleon.schemas.game import (
    GamePhase, PlayerRole, PlayerState, RoomSnapshot, RoomUpdate, OUTLIER_ROLES
)

logger = logging.getLogger(__name__)


# 可以使用技能的阶段
ABILITY_PHASES = frozenset({GamePhase.PRESENTING, GamePhase.DISCUSSION, GamePhase.VOTING})


class AbilityOutcome(BaseModel):
    """技能效果：待写入的字段 + 返回给使用者的信息"""
    update: RoomUpdate = Field(default_factory=RoomUpdate)
    data: Dict[str, Any] = Field(default_factory=dict)
    message: str = ""


AbilityEffect = Callable[[RoomSnapshot, PlayerState, Optional[PlayerState]], AbilityOutcome]


def _require_target(target: Optional[PlayerState]) -> PlayerState:
    if target is None:
        raise InvalidTargetError("该技能需要选择一个有效的目标玩家")
    return target


def guardian_protect(snapshot: RoomSnapshot, actor: PlayerState, target: Optional[PlayerState]) -> AbilityOutcome:
    """守护者：本轮投给目标的票全部作废"""
    target = _require_target(target)
    return AbilityOutcome(
        update=RoomUpdate().merge_player(target.id, {"is_protected": True}),
        data={"target_id": target.id},
        message=f"{target.name} 本轮受到保护",
    )


def illusionist_double(snapshot: RoomSnapshot, actor: PlayerState, target: Optional[PlayerState]) -> AbilityOutcome:
    """幻术师：目标的投票计两票"""
    target = _require_target(target)
    return AbilityOutcome(
        update=RoomUpdate().merge_player(target.id, {"vote_multiplier": 2}),
        data={"target_id": target.id},
        message=f"{target.name} 的投票本轮计为两票",
    )


def trickster_invert(snapshot: RoomSnapshot, actor: PlayerState, target: Optional[PlayerState]) -> AbilityOutcome:
    """诡术师：自己的票变为负票"""
    return AbilityOutcome(
        update=RoomUpdate().merge_player(actor.id, {"vote_multiplier": -1}),
        message="你的投票本轮会抵消一票",
    )


def jester_nullify(snapshot: RoomSnapshot, actor: PlayerState, target: Optional[PlayerState]) -> AbilityOutcome:
    """小丑：自己的票不计数"""
    return AbilityOutcome(
        update=RoomUpdate().merge_player(actor.id, {"vote_multiplier": 0}),
        message="你的投票本轮不计数",
    )


def spy_reveal(snapshot: RoomSnapshot, actor: PlayerState, target: Optional[PlayerState]) -> AbilityOutcome:
    # 间谍的 special_word 保存的是变色龙的玩家ID
    return AbilityOutcome(
        data={"chameleon_id": actor.special_word},
        message="你已知道变色龙是谁",
    )


def oracle_inspect(snapshot: RoomSnapshot, actor: PlayerState, target: Optional[PlayerState]) -> AbilityOutcome:
    """先知：查看目标是否为变色龙"""
    target = _require_target(target)
    is_outlier = target.role in OUTLIER_ROLES
    return AbilityOutcome(
        data={"target_id": target.id, "is_outlier": is_outlier},
        message=f"{target.name} {'是' if is_outlier else '不是'}变色龙",
    )


# 角色 -> 技能效果；不在表中的角色（普通玩家、变色龙、模仿者）没有技能
ABILITY_EFFECTS: Dict[PlayerRole, AbilityEffect] = {
    PlayerRole.GUARDIAN: guardian_protect,
    PlayerRole.ILLUSIONIST: illusionist_double,
    PlayerRole.TRICKSTER: trickster_invert,
    PlayerRole.JESTER: jester_nullify,
    PlayerRole.SPY: spy_reveal,
    PlayerRole.ORACLE: oracle_inspect,
}


def has_ability(role: Optional[PlayerRole]) -> bool:
    return role in ABILITY_EFFECTS


def resolve_ability(snapshot: RoomSnapshot, actor: PlayerState, target_id: Optional[str] = None) -> AbilityOutcome:
    """查找并执行角色技能效果（纯计算）"""
    effect = ABILITY_EFFECTS.get(actor.role)
    if effect is None:
        raise PreconditionError("你的角色没有可用技能")

    target = None
    if target_id is not None:
        target = snapshot.get_player(target_id)
        if target is None:
            raise InvalidTargetError("目标玩家不存在")

    outcome = effect(snapshot, actor, target)
    logger.info(f"[ABILITY] Room {snapshot.id}: {actor.id} ({actor.role.value}) -> {target_id}")
    return outcome
