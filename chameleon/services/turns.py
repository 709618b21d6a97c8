"""
Turn scheduling
描述阶段的轮转顺序
"""

import random
from typing import List, Optional, Sequence

from chameleon.schemas.game import PlayerState

# 跳过发言时提交的固定描述
SKIP_DESCRIPTION = "skip"


class TurnScheduler:
    """描述阶段轮转调度"""

    def __init__(self, rng=None):
        self.rng = rng or random

    def generate_turn_order(self, players: Sequence[PlayerState]) -> List[str]:
        """每轮重新生成随机顺序，与角色无关"""
        order = [p.id for p in players]
        self.rng.shuffle(order)
        return order

    @staticmethod
    def next_turn(turn_order: Sequence[str], current_turn: int, current_player_id: Optional[str] = None) -> int:
        """
        下一个描述者的索引
        优先按玩家ID定位当前位置，容忍轮次之间玩家列表发生变化
        """
        if not turn_order:
            return 0

        if current_player_id in turn_order:
            index = list(turn_order).index(current_player_id)
        else:
            index = current_turn % len(turn_order)
        return (index + 1) % len(turn_order)

    @staticmethod
    def all_submitted(players: Sequence[PlayerState]) -> bool:
        """所有玩家都已提交描述（以提交为准，与轮转位置无关）"""
        return bool(players) and all(p.turn_description for p in players)

    @staticmethod
    def is_skip(description: Optional[str]) -> bool:
        return (description or "").strip().lower() == SKIP_DESCRIPTION
