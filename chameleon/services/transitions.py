"""
Phase transitions
回合状态机 - 根据当前阶段和房间数据计算下一阶段及需要写入的全部字段

每个转换都以“期望的当前阶段”为前提：快照已不在该阶段时返回 None，
因此重复调用（多个客户端同时触发）不会重复产生副作用。
"""

import random
import logging
from typing import Optional, Dict, Any

from chameleon.core.config import settings
from chameleon.schemas.game import GamePhase, RoomSnapshot, RoomUpdate, RoundOutcome
from chameleon.services.roles import RoleAssigner
from chameleon.services.turns import TurnScheduler, SKIP_DESCRIPTION
from chameleon.services.tally import VoteTally
from chameleon.services.words import WordSource, word_source as default_word_source

logger = logging.getLogger(__name__)


# 每轮开始时清空的玩家字段
ROUND_PLAYER_RESET: Dict[str, Any] = {
    "turn_description": None,
    "vote": None,
    "vote_weight": None,
    "is_protected": False,
    "vote_multiplier": 1,
    "special_ability_used": False,
}


def _result_reset() -> Dict[str, Any]:
    """上一次投票结果相关的房间字段"""
    return {
        "votes_tally": {},
        "revealed_player_id": None,
        "revealed_role": None,
        "round_outcome": None,
        "chameleon_guess": None,
        "chameleon_guess_correct": None,
    }


class PhaseTransitioner:
    """回合状态机"""

    def __init__(self, word_source: Optional[WordSource] = None, rng=None):
        self.rng = rng or random
        self.word_source = word_source or default_word_source
        self.role_assigner = RoleAssigner(self.rng)
        self.turn_scheduler = TurnScheduler(self.rng)
        self.vote_tally = VoteTally()

    def _log(self, snapshot: RoomSnapshot, update: RoomUpdate):
        if update.next_phase and update.next_phase != snapshot.state:
            logger.info(f"[TRANSITION] Room {snapshot.id}: {snapshot.state.value} -> {update.next_phase.value} (round {update.room.get('round', snapshot.round)})")

    def start_game(self, snapshot: RoomSnapshot) -> Optional[RoomUpdate]:
        """Lobby -> Selecting：分配角色，第1轮开始"""
        if snapshot.state != GamePhase.LOBBY:
            return None

        roles = self.role_assigner.assign(snapshot.players, snapshot.settings)
        special_words = self.role_assigner.derive_special_words(snapshot.players, roles)

        update = RoomUpdate(room={
            "state": GamePhase.SELECTING,
            "round": 1,
            "max_rounds": snapshot.settings.max_rounds,
            "category": None,
            "secret_word": None,
            "turn_order": self.turn_scheduler.generate_turn_order(snapshot.players),
            "current_turn": 0,
            "timer": None,
            **_result_reset(),
        })
        for player in snapshot.players:
            update.merge_player(player.id, {
                **ROUND_PLAYER_RESET,
                "role": roles[player.id],
                "special_word": special_words[player.id],
            })

        self._log(snapshot, update)
        return update

    def select_category(self, snapshot: RoomSnapshot, category: str) -> Optional[RoomUpdate]:
        """Selecting -> Presenting：抽取秘密词，重新生成描述顺序"""
        if snapshot.state != GamePhase.SELECTING:
            return None

        words = self.word_source.pick_category(category)
        secret_word = self.rng.choice(words)

        roles = {p.id: p.role for p in snapshot.players}
        special_words = self.role_assigner.derive_special_words(
            snapshot.players, roles, secret_word=secret_word, words=words
        )

        update = RoomUpdate(room={
            "state": GamePhase.PRESENTING,
            "category": category,
            "secret_word": secret_word,
            "turn_order": self.turn_scheduler.generate_turn_order(snapshot.players),
            "current_turn": 0,
            "timer": snapshot.settings.presenting_time,
            **_result_reset(),
        })
        for player in snapshot.players:
            update.merge_player(player.id, {"special_word": special_words[player.id]})

        self._log(snapshot, update)
        return update

    def complete_presenting(self, snapshot: RoomSnapshot) -> Optional[RoomUpdate]:
        """Presenting -> Discussion：仅当所有玩家都已提交描述"""
        if snapshot.state != GamePhase.PRESENTING:
            return None
        if not self.turn_scheduler.all_submitted(snapshot.players):
            return None

        update = RoomUpdate(room={
            "state": GamePhase.DISCUSSION,
            "current_turn": 0,
            "timer": snapshot.settings.discussion_time,
        })
        self._log(snapshot, update)
        return update

    def record_description(self, snapshot: RoomSnapshot, player_id: str, text: str) -> Optional[RoomUpdate]:
        """记录描述；全部提交则进入讨论，否则轮到下一位"""
        if snapshot.state != GamePhase.PRESENTING:
            return None

        update = RoomUpdate().merge_player(player_id, {"turn_description": text})
        completed = self.complete_presenting(update.apply_to(snapshot))

        if completed is not None:
            update.room.update(completed.room)
        else:
            update.room.update({
                "current_turn": self.turn_scheduler.next_turn(
                    snapshot.turn_order, snapshot.current_turn, player_id
                ),
                "timer": snapshot.settings.presenting_time,
            })
        return update

    def open_voting(self, snapshot: RoomSnapshot) -> Optional[RoomUpdate]:
        """Discussion -> Voting：清空所有玩家的投票"""
        if snapshot.state != GamePhase.DISCUSSION:
            return None

        update = RoomUpdate(room={
            "state": GamePhase.VOTING,
            "timer": snapshot.settings.voting_time,
            "votes_tally": {},
        })
        for player in snapshot.players:
            update.merge_player(player.id, {"vote": None, "vote_weight": None})

        self._log(snapshot, update)
        return update

    def close_voting(self, snapshot: RoomSnapshot) -> Optional[RoomUpdate]:
        """Voting -> Results：计票并冻结本轮结果"""
        if snapshot.state != GamePhase.VOTING:
            return None

        result, outcome, winner_role = self.vote_tally.resolve(snapshot.players)
        update = RoomUpdate(room={
            "state": GamePhase.RESULTS,
            "timer": settings.RESULTS_COUNTDOWN,
            "current_turn": 0,
            "votes_tally": result.counts,
            "revealed_player_id": result.winner_id,
            "revealed_role": winner_role,
            "round_outcome": outcome,
        })
        self._log(snapshot, update)
        return update

    def finish_round(self, snapshot: RoomSnapshot) -> Optional[RoomUpdate]:
        """Results -> Selecting（下一轮）或 Ended"""
        if snapshot.state != GamePhase.RESULTS:
            return None

        caught = snapshot.round_outcome == RoundOutcome.IMPOSTER_CAUGHT
        if snapshot.round >= snapshot.max_rounds or caught:
            update = RoomUpdate(room={"state": GamePhase.ENDED, "timer": None})
            self._log(snapshot, update)
            return update

        update = RoomUpdate(room={
            "state": GamePhase.SELECTING,
            "round": snapshot.round + 1,
            "category": None,
            "secret_word": None,
            "turn_order": self.turn_scheduler.generate_turn_order(snapshot.players),
            "current_turn": 0,
            "timer": None,
        })
        for player in snapshot.players:
            update.merge_player(player.id, dict(ROUND_PLAYER_RESET))

        self._log(snapshot, update)
        return update

    def reset(self, snapshot: RoomSnapshot) -> RoomUpdate:
        """任意阶段 -> Lobby：清空所有回合字段，只有房主保持准备状态"""
        update = RoomUpdate(room={
            "state": GamePhase.LOBBY,
            "round": 0,
            "category": None,
            "secret_word": None,
            "turn_order": [],
            "current_turn": 0,
            "timer": None,
            **_result_reset(),
        })
        for player in snapshot.players:
            update.merge_player(player.id, {
                **ROUND_PLAYER_RESET,
                "role": None,
                "special_word": None,
                "is_ready": player.is_host,
            })

        self._log(snapshot, update)
        return update

    def advance(self, snapshot: RoomSnapshot, expected_phase: GamePhase) -> Optional[RoomUpdate]:
        """显式推进计时阶段；快照已离开期望阶段时不做任何事"""
        if snapshot.state != expected_phase:
            return None
        if expected_phase == GamePhase.DISCUSSION:
            return self.open_voting(snapshot)
        if expected_phase == GamePhase.VOTING:
            return self.close_voting(snapshot)
        if expected_phase == GamePhase.RESULTS:
            return self.finish_round(snapshot)
        return None

    def on_timeout(
        self,
        snapshot: RoomSnapshot,
        expected_phase: GamePhase,
        expected_turn: Optional[int] = None,
    ) -> Optional[RoomUpdate]:
        """
        计时结束；描述阶段超时视为当前玩家跳过

        描述阶段每一轮次各有一次超时，expected_turn 与当前轮次不一致时
        说明这次超时已经处理过，不做任何事
        """
        if snapshot.state != expected_phase:
            return None
        if expected_phase != GamePhase.PRESENTING:
            return self.advance(snapshot, expected_phase)
        if expected_turn is not None and snapshot.current_turn != expected_turn:
            return None

        pending = self._next_pending_player(snapshot)
        if pending is None:
            return self.complete_presenting(snapshot)
        logger.info(f"[TIMER] Room {snapshot.id}: player {pending} timed out, submitting skip")
        return self.record_description(snapshot, pending, SKIP_DESCRIPTION)

    @staticmethod
    def _next_pending_player(snapshot: RoomSnapshot) -> Optional[str]:
        """从当前轮次开始，找到第一个还没提交描述的玩家"""
        order = snapshot.turn_order
        for step in range(len(order)):
            player = snapshot.get_player(order[(snapshot.current_turn + step) % len(order)])
            if player is not None and not player.turn_description:
                return player.id
        return None

    @staticmethod
    def all_voted(snapshot: RoomSnapshot) -> bool:
        return bool(snapshot.players) and all(p.vote for p in snapshot.players)
