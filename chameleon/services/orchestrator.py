"""
Round Orchestrator
回合编排器 - 调用方操作的统一入口

负责操作校验、调用状态机、持久化一次转换的全部字段并发出变更通知。
所有操作都返回 ActionResult，游戏规则拒绝和协作者故障都不会以异常形式抛给调用方。
"""

import asyncio
import logging
import weakref
from typing import Optional, List, Awaitable, Callable

from chameleon.core.config import settings
from chameleon.core.exceptions import (
    GameActionError, PreconditionError, InvalidTargetError, CollaboratorError, RoomNotFoundError
)
from chameleon.schemas.game import (
    GamePhase, PlayerRole, PlayerView, RoomSettings, RoomSnapshot, RoomUpdate,
    SettingsUpdate, ActionResult, OUTLIER_ROLES
)
from chameleon.services.abilities import ABILITY_PHASES, has_ability, resolve_ability
from chameleon.services.notifier import RoomNotifier
from chameleon.services.storage import RoomStore
from chameleon.services.transitions import PhaseTransitioner

logger = logging.getLogger(__name__)


class RoundOrchestrator:
    """
    回合编排器

    同一房间的操作通过房间锁串行执行；跨进程的并发由状态机的
    “期望阶段”守卫保证重复调用安全。
    """

    def __init__(
        self,
        store: RoomStore,
        notifier: Optional[RoomNotifier] = None,
        transitioner: Optional[PhaseTransitioner] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.transitioner = transitioner or PhaseTransitioner()
        self.timer = None
        # 没有操作持有或等待时，房间锁随之释放
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def attach_timer(self, timer) -> None:
        """房间进入计时阶段时由计时器接管倒计时"""
        self.timer = timer

    def _lock_for(self, room_id: str) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = self._locks[room_id] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # 内部辅助
    # ------------------------------------------------------------------

    async def _load(self, room_id: str) -> RoomSnapshot:
        snapshot = await self.store.load_room(room_id)
        if snapshot is None:
            raise RoomNotFoundError(f"房间 {room_id} 不存在")
        return snapshot

    async def _notify(self, room_id: str, phase: Optional[GamePhase]) -> bool:
        """
        通知房间变更；状态已经写入，通知失败只记录日志
        客户端下次刷新时仍会读到最新状态
        """
        if self.notifier is None:
            return True
        try:
            await self.notifier.notify_room_changed(room_id, phase)
            return True
        except CollaboratorError as e:
            logger.error(f"Failed to notify room {room_id}: {e.message}")
        except Exception as e:
            logger.error(f"Failed to notify room {room_id}: {e}")
        return False

    async def _commit(self, snapshot: RoomSnapshot, update: Optional[RoomUpdate], message: str = "") -> ActionResult:
        """写入一次转换；update 为空表示状态已被其他调用推进，视为成功但无变化"""
        if update is None or update.is_empty:
            logger.info(f"Room {snapshot.id}: no change in phase {snapshot.state.value}")
            return ActionResult(success=True, changed=False, message="房间状态已是最新", room=snapshot)

        await self.store.apply_update(snapshot.id, update)
        room = await self._load(snapshot.id)
        await self._notify(room.id, room.state)

        if self.timer is not None:
            self.timer.follow(room)

        return ActionResult(success=True, changed=True, message=message, room=room)

    async def _run(self, room_id: str, action: str, operation: Callable[[], Awaitable[ActionResult]]) -> ActionResult:
        """在房间锁内执行操作，把游戏异常转换为失败结果"""
        async with self._lock_for(room_id):
            try:
                return await operation()
            except GameActionError as e:
                if e.retryable:
                    logger.error(f"[{action.upper()}] Room {room_id}: {e.message}")
                else:
                    logger.info(f"[{action.upper()}] Room {room_id} rejected: {e.message}")
                return ActionResult(
                    success=False,
                    message=e.message,
                    error_code=e.code,
                    retryable=e.retryable,
                )

    @staticmethod
    def _require_player(snapshot: RoomSnapshot, player_id: str):
        player = snapshot.get_player(player_id)
        if player is None:
            raise PreconditionError("玩家不在房间中")
        return player

    @staticmethod
    def _require_host(snapshot: RoomSnapshot, player_id: Optional[str], action: str) -> None:
        # player_id 为空表示系统触发
        if player_id is None:
            return
        player = snapshot.get_player(player_id)
        if player is None or not player.is_host:
            raise PreconditionError(f"只有房主可以{action}")

    # ------------------------------------------------------------------
    # 回合操作
    # ------------------------------------------------------------------

    async def start_game(self, room_id: str, player_id: Optional[str] = None) -> ActionResult:
        """开始游戏：Lobby -> Selecting"""
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state != GamePhase.LOBBY:
                return await self._commit(snapshot, None)

            self._require_host(snapshot, player_id, "开始游戏")

            player_count = len(snapshot.players)
            if player_count < settings.MIN_PLAYERS:
                raise PreconditionError(f"至少需要{settings.MIN_PLAYERS}名玩家才能开始游戏")
            if player_count > snapshot.settings.max_players:
                raise PreconditionError(f"玩家数量超过房间上限{snapshot.settings.max_players}人")
            if not all(p.is_ready or p.is_host for p in snapshot.players):
                raise PreconditionError("还有玩家未准备")

            return await self._commit(snapshot, self.transitioner.start_game(snapshot), "游戏开始")

        return await self._run(room_id, "start", operation)

    async def select_category(self, room_id: str, category: str, player_id: Optional[str] = None) -> ActionResult:
        """房主选择类别：Selecting -> Presenting"""
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state != GamePhase.SELECTING:
                return await self._commit(snapshot, None)

            self._require_host(snapshot, player_id, "选择类别")
            update = self.transitioner.select_category(snapshot, category)
            return await self._commit(snapshot, update, f"类别已选择：{category}")

        return await self._run(room_id, "category", operation)

    async def submit_description(self, room_id: str, player_id: str, text: str) -> ActionResult:
        """提交描述，只有轮到的玩家可以提交，且每轮一次"""
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state != GamePhase.PRESENTING:
                raise PreconditionError("当前不是描述阶段")

            player = self._require_player(snapshot, player_id)
            if player.turn_description:
                raise PreconditionError("你已经提交过描述了")
            if snapshot.current_player_id != player_id:
                raise PreconditionError("还没轮到你描述")

            content = (text or "").strip()
            if not content:
                raise PreconditionError("描述内容不能为空")

            update = self.transitioner.record_description(snapshot, player_id, content)
            return await self._commit(snapshot, update, "描述已提交")

        return await self._run(room_id, "description", operation)

    async def cast_vote(self, room_id: str, voter_id: str, target_id: str) -> ActionResult:
        """投票；最后一票投出后立即结算"""
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state != GamePhase.VOTING:
                raise PreconditionError("当前不是投票阶段")

            voter = self._require_player(snapshot, voter_id)
            if voter.vote:
                raise PreconditionError("你已经投过票了")

            target = snapshot.get_player(target_id)
            if target is None:
                raise InvalidTargetError("投票目标不存在")
            if target.id == voter.id:
                raise InvalidTargetError("不能投票给自己")
            if target.is_protected:
                raise InvalidTargetError("该玩家受到保护，无法被投票")

            update = RoomUpdate().merge_player(voter_id, {
                "vote": target_id,
                "vote_weight": voter.vote_multiplier,
            })
            preview = update.apply_to(snapshot)
            if self.transitioner.all_voted(preview):
                closing = self.transitioner.close_voting(preview)
                update.room.update(closing.room)
                for pid, fields in closing.players.items():
                    update.merge_player(pid, fields)

            logger.info(f"[VOTE] Room {room_id}: {voter_id} voted for {target_id}")
            return await self._commit(snapshot, update, "投票成功")

        return await self._run(room_id, "vote", operation)

    async def use_ability(self, room_id: str, player_id: str, target_id: Optional[str] = None) -> ActionResult:
        """
        使用角色技能

        先写入技能效果，再标记 special_ability_used；
        标记写入或重新读取失败时回滚标记，玩家可以重试
        """
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state not in ABILITY_PHASES:
                raise PreconditionError("当前阶段不能使用技能")

            player = self._require_player(snapshot, player_id)
            if not has_ability(player.role):
                raise PreconditionError("你的角色没有可用技能")
            if player.special_ability_used:
                raise PreconditionError("本轮技能已经使用过了")

            outcome = resolve_ability(snapshot, player, target_id)

            if not outcome.update.is_empty:
                await self.store.apply_update(room_id, outcome.update)

            try:
                await self.store.save_player(room_id, player_id, {"special_ability_used": True})
                room = await self._load(room_id)
            except CollaboratorError:
                await self._rollback_ability_flag(room_id, player_id)
                raise
            await self._notify(room_id, room.state)

            return ActionResult(
                success=True,
                changed=True,
                message=outcome.message,
                room=room,
                data=outcome.data,
            )

        return await self._run(room_id, "ability", operation)

    async def _rollback_ability_flag(self, room_id: str, player_id: str) -> None:
        try:
            await self.store.save_player(room_id, player_id, {"special_ability_used": False})
            logger.warning(f"[ABILITY] Room {room_id}: ability flag rolled back for {player_id}")
        except CollaboratorError as e:
            logger.error(f"[ABILITY] Room {room_id}: failed to roll back ability flag for {player_id}: {e.message}")

    async def advance_round_or_reset(self, room_id: str, player_id: Optional[str] = None) -> ActionResult:
        """结果阶段进入下一轮（或结束）；游戏结束后回到大厅"""
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state not in (GamePhase.RESULTS, GamePhase.ENDED):
                return await self._commit(snapshot, None)

            self._require_host(snapshot, player_id, "推进游戏")
            if snapshot.state == GamePhase.ENDED:
                return await self._commit(snapshot, self.transitioner.reset(snapshot), "已回到大厅")
            return await self._commit(snapshot, self.transitioner.finish_round(snapshot), "进入下一阶段")

        return await self._run(room_id, "advance", operation)

    async def reset_game(self, room_id: str, player_id: Optional[str] = None) -> ActionResult:
        """房主重置：任意阶段回到大厅"""
        async def operation():
            snapshot = await self._load(room_id)
            self._require_host(snapshot, player_id, "重置游戏")
            return await self._commit(snapshot, self.transitioner.reset(snapshot), "游戏已重置")

        return await self._run(room_id, "reset", operation)

    # ------------------------------------------------------------------
    # 大厅操作
    # ------------------------------------------------------------------

    async def set_ready(self, room_id: str, player_id: str, ready: bool = True) -> ActionResult:
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state != GamePhase.LOBBY:
                raise PreconditionError("游戏已开始，无法修改准备状态")

            player = self._require_player(snapshot, player_id)
            # 房主始终处于准备状态
            is_ready = True if player.is_host else ready
            if player.is_ready == is_ready:
                return await self._commit(snapshot, None)

            update = RoomUpdate().merge_player(player_id, {"is_ready": is_ready})
            return await self._commit(snapshot, update, "已准备" if is_ready else "已取消准备")

        return await self._run(room_id, "ready", operation)

    async def update_settings(self, room_id: str, player_id: str, patch: SettingsUpdate) -> ActionResult:
        """房主在大厅修改房间设置"""
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state != GamePhase.LOBBY:
                raise PreconditionError("游戏进行中不能修改设置")
            self._require_host(snapshot, player_id, "修改设置")

            merged = RoomSettings.model_validate({
                **snapshot.settings.model_dump(),
                **patch.model_dump(exclude_unset=True, exclude_none=True),
            })
            if merged.max_players < len(snapshot.players):
                raise PreconditionError("人数上限不能小于当前玩家数量")

            update = RoomUpdate(room={"settings": merged, "max_rounds": merged.max_rounds})
            return await self._commit(snapshot, update, "设置已更新")

        return await self._run(room_id, "settings", operation)

    # ------------------------------------------------------------------
    # 变色龙猜词
    # ------------------------------------------------------------------

    async def submit_chameleon_guess(self, room_id: str, player_id: str, guess: str) -> ActionResult:
        """
        被投出的变色龙在结果阶段猜秘密词
        只记录猜测结果，不改变本轮结果
        """
        async def operation():
            snapshot = await self._load(room_id)
            if snapshot.state != GamePhase.RESULTS:
                raise PreconditionError("只能在结果阶段猜词")

            player = self._require_player(snapshot, player_id)
            if player.role not in OUTLIER_ROLES or snapshot.revealed_player_id != player_id:
                raise PreconditionError("只有被投出的变色龙可以猜词")
            if snapshot.chameleon_guess is not None:
                raise PreconditionError("已经猜过了")

            cleaned = (guess or "").strip()
            if not cleaned:
                raise PreconditionError("猜测内容不能为空")

            correct = cleaned.lower() == (snapshot.secret_word or "").strip().lower()
            update = RoomUpdate(room={"chameleon_guess": cleaned, "chameleon_guess_correct": correct})
            logger.info(f"Room {room_id}: chameleon {player_id} guessed '{cleaned}', correct={correct}")

            result = await self._commit(snapshot, update, "猜对了！" if correct else "猜错了")
            result.data = {"correct": correct}
            return result

        return await self._run(room_id, "guess", operation)

    # ------------------------------------------------------------------
    # 计时器
    # ------------------------------------------------------------------

    async def sync_timer(self, room_id: str, expected_phase: GamePhase, remaining: int) -> bool:
        """持久化剩余秒数；房间已离开该阶段时返回 False"""
        async with self._lock_for(room_id):
            snapshot = await self._load(room_id)
            if snapshot.state != expected_phase:
                return False
            await self.store.save_room(room_id, {"timer": remaining})
            return True

    async def expire_phase(
        self,
        room_id: str,
        expected_phase: GamePhase,
        expected_turn: Optional[int] = None,
    ) -> ActionResult:
        """
        计时结束；房间已离开期望阶段时不做任何事
        描述阶段按轮次超时，必须带上 expected_turn，同一轮次的重复超时只处理一次
        """
        async def operation():
            snapshot = await self._load(room_id)
            if (snapshot.state == GamePhase.PRESENTING
                    and expected_phase == GamePhase.PRESENTING
                    and expected_turn is None):
                raise PreconditionError("描述阶段超时需要提供当前轮次")

            update = self.transitioner.on_timeout(snapshot, expected_phase, expected_turn)
            if update is not None:
                logger.info(f"[TIMER] Room {room_id}: {expected_phase.value} expired (turn {snapshot.current_turn})")
            return await self._commit(snapshot, update, "阶段时间结束")

        return await self._run(room_id, "timer", operation)

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    async def get_room(self, room_id: str) -> RoomSnapshot:
        return await self._load(room_id)

    async def player_view(self, room_id: str, player_id: str) -> PlayerView:
        """玩家视角：只包含该玩家可以看到的信息"""
        snapshot = await self._load(room_id)
        player = self._require_player(snapshot, player_id)
        role = player.role

        word = None
        if snapshot.secret_word and role is not None:
            if role == PlayerRole.MIMIC:
                word = player.special_word
            elif role not in OUTLIER_ROLES and role != PlayerRole.SPY:
                word = snapshot.secret_word

        return PlayerView(
            player_id=player.id,
            phase=snapshot.state,
            round=snapshot.round,
            category=snapshot.category,
            role=role,
            word=word,
            known_chameleon_id=player.special_word if role == PlayerRole.SPY else None,
            is_my_turn=snapshot.state == GamePhase.PRESENTING and snapshot.current_player_id == player.id,
            can_vote=snapshot.state == GamePhase.VOTING and not player.vote,
            can_use_ability=(
                snapshot.state in ABILITY_PHASES
                and has_ability(role)
                and not player.special_ability_used
            ),
            revealed_player_id=snapshot.revealed_player_id,
            revealed_role=snapshot.revealed_role,
            round_outcome=snapshot.round_outcome,
        )

    def list_categories(self) -> List[str]:
        return self.transitioner.word_source.list_categories()
