"""
Role assignment service
角色分配服务 - 按人数生成角色池、洗牌分配并推导角色附加信息
"""

import random
import logging
from typing import List, Dict, Optional, Sequence, Tuple

from chameleon.schemas.game import PlayerRole, PlayerState, RoomSettings, OUTLIER_ROLES

logger = logging.getLogger(__name__)


# 特殊角色解锁门槛：玩家数严格大于门槛时加入角色池
SPECIAL_ROLE_THRESHOLDS: List[Tuple[PlayerRole, int]] = [
    (PlayerRole.MIMIC, 4),
    (PlayerRole.ORACLE, 5),
    (PlayerRole.SPY, 6),
    (PlayerRole.JESTER, 7),
    (PlayerRole.GUARDIAN, 8),
    (PlayerRole.TRICKSTER, 9),
    (PlayerRole.ILLUSIONIST, 10),
]

# 诱饵词相似度区间（开区间）
DECOY_MIN_SIMILARITY = 0.3
DECOY_MAX_SIMILARITY = 0.7


def outlier_count(player_count: int) -> int:
    """变色龙数量：<7人1个，7-9人2个，>=10人3个"""
    if player_count >= 10:
        return 3
    if player_count >= 7:
        return 2
    return 1


def word_similarity(word1: str, word2: str) -> float:
    """
    逐字符相似度
    等长时为相同位置字符相同的比例；不等长时将短词在长词上滑动，取最大比例
    """
    w1 = word1.lower()
    w2 = word2.lower()

    shorter, longer = (w1, w2) if len(w1) <= len(w2) else (w2, w1)
    if not shorter:
        return 0.0

    best = 0.0
    for offset in range(len(longer) - len(shorter) + 1):
        matches = sum(1 for i, ch in enumerate(shorter) if ch == longer[offset + i])
        best = max(best, matches / len(shorter))
    return best


class RoleAssigner:
    """角色分配器"""

    def __init__(self, rng=None):
        self.rng = rng or random

    def build_role_pool(self, player_count: int, room_settings: RoomSettings) -> List[PlayerRole]:
        """生成与玩家数量完全相等的角色池（未洗牌）"""
        pool = [PlayerRole.CHAMELEON] * outlier_count(player_count)

        if room_settings.special_abilities:
            enabled = set(room_settings.enabled_roles())
            for role, threshold in SPECIAL_ROLE_THRESHOLDS:
                if player_count > threshold and role in enabled:
                    pool.append(role)

        pool.extend([PlayerRole.REGULAR] * (player_count - len(pool)))
        return pool

    def assign(self, players: Sequence[PlayerState], room_settings: RoomSettings) -> Dict[str, PlayerRole]:
        """洗牌角色池并按位置分配给玩家"""
        if not players:
            return {}

        pool = self.build_role_pool(len(players), room_settings)
        self.rng.shuffle(pool)

        roles = {player.id: role for player, role in zip(players, pool)}
        logger.info(f"Roles assigned for {len(players)} players: "
                    f"{sum(1 for r in roles.values() if r in OUTLIER_ROLES)} outliers")
        return roles

    def pick_decoy_word(self, secret_word: str, words: Sequence[str]) -> Optional[str]:
        """为模仿者挑选与秘密词相近但不相同的诱饵词"""
        candidates = [w for w in words if w.lower() != secret_word.lower()]
        if not candidates:
            return None

        qualifying = [
            w for w in candidates
            if DECOY_MIN_SIMILARITY < word_similarity(secret_word, w) < DECOY_MAX_SIMILARITY
        ]
        return self.rng.choice(qualifying or candidates)

    def derive_special_words(
        self,
        players: Sequence[PlayerState],
        roles: Dict[str, Optional[PlayerRole]],
        secret_word: Optional[str] = None,
        words: Optional[Sequence[str]] = None,
    ) -> Dict[str, Optional[str]]:
        """
        推导角色附加信息
        间谍记录变色龙的玩家ID；模仿者在秘密词确定后得到诱饵词；其余玩家清空
        """
        chameleon_id = next((p.id for p in players if roles.get(p.id) in OUTLIER_ROLES), None)

        special_words: Dict[str, Optional[str]] = {}
        for player in players:
            role = roles.get(player.id)
            if role == PlayerRole.SPY:
                special_words[player.id] = chameleon_id
            elif role == PlayerRole.MIMIC and secret_word:
                special_words[player.id] = self.pick_decoy_word(secret_word, words or [])
            else:
                special_words[player.id] = None
        return special_words
