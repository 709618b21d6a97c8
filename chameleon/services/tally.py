"""
Vote tally
计票服务 - 纯函数，不做任何 I/O
"""

import logging
from typing import Dict, Optional, Sequence, Tuple

from chameleon.schemas.game import (
    PlayerRole, PlayerState, RoundOutcome, TallyResult, IMPOSTER_ROLES
)

logger = logging.getLogger(__name__)


class VoteTally:
    """按投票倍率统计票数，处理保护效果并判定结果"""

    @staticmethod
    def count_votes(players: Sequence[PlayerState]) -> Dict[str, int]:
        """
        统计每个目标的加权票数
        每票按投出时记录的倍率计算，之后的技能不影响已投出的票；
        投给受保护玩家的票整张作废，不计入任何目标
        """
        by_id = {p.id: p for p in players}
        counts: Dict[str, int] = {}

        for voter in players:
            if not voter.vote:
                continue
            target = by_id.get(voter.vote)
            if target is None or target.is_protected:
                continue
            weight = voter.vote_multiplier if voter.vote_weight is None else voter.vote_weight
            counts[target.id] = counts.get(target.id, 0) + weight

        return counts

    @staticmethod
    def resolve_winner(counts: Dict[str, int]) -> Tuple[Optional[str], bool]:
        """单次遍历求最高票；最高票并列时无人出局"""
        leader: Optional[str] = None
        max_votes: Optional[int] = None
        is_tie = False

        for target_id, votes in counts.items():
            if max_votes is None or votes > max_votes:
                leader = target_id
                max_votes = votes
                is_tie = False
            elif votes == max_votes:
                is_tie = True

        if is_tie:
            return None, True
        # 净票数不为正时不淘汰任何人
        if max_votes is None or max_votes <= 0:
            return None, False
        return leader, False

    def tally(self, players: Sequence[PlayerState]) -> TallyResult:
        counts = self.count_votes(players)
        winner_id, is_tie = self.resolve_winner(counts)
        return TallyResult(counts=counts, winner_id=winner_id, is_tie=is_tie)

    @staticmethod
    def classify(winner_role: Optional[PlayerRole]) -> RoundOutcome:
        """根据出局者角色判定回合结果"""
        if winner_role is None:
            return RoundOutcome.TIE
        if winner_role in IMPOSTER_ROLES:
            return RoundOutcome.IMPOSTER_CAUGHT
        if winner_role == PlayerRole.JESTER:
            return RoundOutcome.JESTER_WINS
        return RoundOutcome.INNOCENT_VOTED

    def resolve(self, players: Sequence[PlayerState]) -> Tuple[TallyResult, RoundOutcome, Optional[PlayerRole]]:
        """计票并给出结果和出局者角色"""
        result = self.tally(players)
        winner = next((p for p in players if p.id == result.winner_id), None)
        winner_role = winner.role if winner else None
        outcome = self.classify(winner_role)
        logger.info(f"[VOTE] Tally {result.counts}, winner={result.winner_id}, tie={result.is_tie}, outcome={outcome.value}")
        return result, outcome, winner_role
