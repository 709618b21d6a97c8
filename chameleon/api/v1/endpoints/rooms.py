"""
Room round API endpoints
房间回合操作端点 - 回合编排器的 HTTP 适配层
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.requests import HTTPConnection

from chameleon.core.exceptions import (
    GameActionError, PreconditionError, InvalidTargetError, FatalRoundError,
    CollaboratorError, RoomNotFoundError
)
from chameleon.schemas.game import (
    ActionResult, RoomSnapshot, PlayerView, HostAction, ReadyUpdate, SettingsPatch,
    CategorySelect, DescriptionCreate, VoteCreate, AbilityUse, GuessCreate, TimerExpire
)
from chameleon.services.orchestrator import RoundOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


# 错误码 -> HTTP 状态码
ERROR_STATUS = {
    PreconditionError.code: status.HTTP_400_BAD_REQUEST,
    InvalidTargetError.code: status.HTTP_400_BAD_REQUEST,
    FatalRoundError.code: status.HTTP_422_UNPROCESSABLE_ENTITY,
    CollaboratorError.code: status.HTTP_503_SERVICE_UNAVAILABLE,
    RoomNotFoundError.code: status.HTTP_404_NOT_FOUND,
}


def get_orchestrator(connection: HTTPConnection) -> RoundOrchestrator:
    """获取回合编排器依赖（在应用启动时创建）"""
    orchestrator = getattr(connection.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="服务尚未就绪"
        )
    return orchestrator


def _raise_for(code: Optional[str], message: str):
    raise HTTPException(
        status_code=ERROR_STATUS.get(code, status.HTTP_400_BAD_REQUEST),
        detail=message
    )


def _respond(result: ActionResult) -> ActionResult:
    if not result.success:
        _raise_for(result.error_code, result.message)
    return result


@router.get("/{room_id}", response_model=RoomSnapshot)
async def get_room(room_id: str, orchestrator: RoundOrchestrator = Depends(get_orchestrator)):
    """获取房间完整快照"""
    try:
        return await orchestrator.get_room(room_id)
    except GameActionError as e:
        _raise_for(e.code, e.message)


@router.get("/{room_id}/players/{player_id}/view", response_model=PlayerView)
async def get_player_view(
    room_id: str,
    player_id: str,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """获取玩家视角（角色、词语、是否轮到自己等）"""
    try:
        return await orchestrator.player_view(room_id, player_id)
    except GameActionError as e:
        _raise_for(e.code, e.message)


@router.post("/{room_id}/start", response_model=ActionResult)
async def start_game(
    room_id: str,
    action: Optional[HostAction] = None,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """房主开始游戏"""
    player_id = action.player_id if action else None
    return _respond(await orchestrator.start_game(room_id, player_id))


@router.post("/{room_id}/ready", response_model=ActionResult)
async def set_ready(
    room_id: str,
    ready_update: ReadyUpdate,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    return _respond(await orchestrator.set_ready(room_id, ready_update.player_id, ready_update.ready))


@router.post("/{room_id}/settings", response_model=ActionResult)
async def update_settings(
    room_id: str,
    patch: SettingsPatch,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """房主修改房间设置（仅大厅阶段）"""
    return _respond(await orchestrator.update_settings(room_id, patch.player_id, patch.settings))


@router.post("/{room_id}/category", response_model=ActionResult)
async def select_category(
    room_id: str,
    selection: CategorySelect,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """
    房主选择类别

    - **category**: 类别名称，见 GET /categories
    """
    return _respond(await orchestrator.select_category(room_id, selection.category, selection.player_id))


@router.post("/{room_id}/description", response_model=ActionResult)
async def submit_description(
    room_id: str,
    description: DescriptionCreate,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """
    提交描述

    - **content**: 描述内容（1-200字符）
    """
    return _respond(await orchestrator.submit_description(room_id, description.player_id, description.content))


@router.post("/{room_id}/vote", response_model=ActionResult)
async def cast_vote(
    room_id: str,
    vote: VoteCreate,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """
    投票

    - **target_id**: 投票目标玩家ID
    """
    return _respond(await orchestrator.cast_vote(room_id, vote.voter_id, vote.target_id))


@router.post("/{room_id}/ability", response_model=ActionResult)
async def use_ability(
    room_id: str,
    ability: AbilityUse,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """使用角色技能，每轮一次"""
    return _respond(await orchestrator.use_ability(room_id, ability.player_id, ability.target_id))


@router.post("/{room_id}/advance", response_model=ActionResult)
async def advance_round_or_reset(
    room_id: str,
    action: Optional[HostAction] = None,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """结果阶段进入下一轮；游戏结束后回到大厅"""
    player_id = action.player_id if action else None
    return _respond(await orchestrator.advance_round_or_reset(room_id, player_id))


@router.post("/{room_id}/reset", response_model=ActionResult)
async def reset_game(
    room_id: str,
    action: Optional[HostAction] = None,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    player_id = action.player_id if action else None
    return _respond(await orchestrator.reset_game(room_id, player_id))


@router.post("/{room_id}/guess", response_model=ActionResult)
async def submit_chameleon_guess(
    room_id: str,
    guess: GuessCreate,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """被投出的变色龙猜秘密词"""
    return _respond(await orchestrator.submit_chameleon_guess(room_id, guess.player_id, guess.guess))


@router.post("/{room_id}/timer/expire", response_model=ActionResult)
async def expire_timer(
    room_id: str,
    expire: TimerExpire,
    orchestrator: RoundOrchestrator = Depends(get_orchestrator)
):
    """
    客户端计时结束

    房间已离开 expected_phase，或描述阶段已不在 expected_turn 时返回 changed=false
    """
    return _respond(await orchestrator.expire_phase(room_id, expire.expected_phase, expire.expected_turn))
