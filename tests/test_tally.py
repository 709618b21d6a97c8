"""
Vote tally tests
计票测试
"""

from hypothesis import given, strategies as st, settings

from chameleon.schemas.game import PlayerRole, PlayerState, RoundOutcome
from chameleon.services.tally import VoteTally


def player(pid, vote=None, role=PlayerRole.REGULAR, multiplier=1, protected=False):
    return PlayerState(id=pid, name=pid, vote=vote, role=role,
                       vote_multiplier=multiplier, is_protected=protected)


player_ids = st.sampled_from(["a", "b", "c", "d", "e"])


@st.composite
def voting_rooms(draw):
    """随机生成投票中的玩家集合"""
    ids = ["a", "b", "c", "d", "e"]
    return [
        player(
            pid,
            vote=draw(st.one_of(st.none(), player_ids)),
            multiplier=draw(st.sampled_from([-1, 0, 1, 2])),
            protected=draw(st.booleans()),
        )
        for pid in ids
    ]


class TestCountVotes:
    """测试加权计票"""

    def test_multiplier_minus_one(self):
        """诡术师 -1 票 + 2 张普通票 = 1"""
        players = [
            player("x"),
            player("t1", vote="x", multiplier=-1, role=PlayerRole.TRICKSTER),
            player("v1", vote="x"),
            player("v2", vote="x"),
        ]
        assert VoteTally.count_votes(players) == {"x": 1}

    def test_doubled_vote(self):
        players = [player("x"), player("v1", vote="x", multiplier=2), player("v2", vote="x")]
        assert VoteTally.count_votes(players)["x"] == 3

    def test_unknown_target_ignored(self):
        assert VoteTally.count_votes([player("a", vote="ghost")]) == {}

    def test_weight_recorded_at_cast_time_wins(self):
        """投票后倍率被改，已投出的票仍按投票时的倍率计算"""
        voter = player("v1", vote="x", multiplier=2).model_copy(update={"vote_weight": 1})
        assert VoteTally.count_votes([player("x"), voter]) == {"x": 1}

    @given(voting_rooms())
    @settings(max_examples=200)
    def test_protected_targets_receive_nothing(self, players):
        """投给受保护玩家的票对任何目标都不计数"""
        counts = VoteTally.count_votes(players)
        protected = {p.id for p in players if p.is_protected}

        assert not protected & set(counts)
        expected_total = sum(
            p.vote_multiplier for p in players
            if p.vote and p.vote not in protected
        )
        assert sum(counts.values()) == expected_total


class TestResolveWinner:
    """测试胜者判定"""

    def test_unique_max(self):
        assert VoteTally.resolve_winner({"a": 3, "b": 1}) == ("a", False)

    def test_tie_at_top_ignores_unique_lower(self):
        """最高票并列时无人出局，即使较低票数唯一"""
        assert VoteTally.resolve_winner({"a": 2, "b": 2, "c": 1}) == (None, True)

    def test_later_strictly_greater_clears_tie(self):
        assert VoteTally.resolve_winner({"a": 1, "b": 1, "c": 3}) == ("c", False)

    def test_no_votes(self):
        assert VoteTally.resolve_winner({}) == (None, False)

    def test_non_positive_total_eliminates_nobody(self):
        assert VoteTally.resolve_winner({"a": 0}) == (None, False)
        assert VoteTally.resolve_winner({"a": -1}) == (None, False)

    @given(st.dictionaries(player_ids, st.integers(min_value=-3, max_value=6), min_size=1))
    def test_shared_maximum_is_tie(self, counts):
        top = max(counts.values())
        winner, is_tie = VoteTally.resolve_winner(counts)
        leaders = [k for k, v in counts.items() if v == top]

        if len(leaders) > 1:
            assert winner is None and is_tie
        elif top > 0:
            assert winner == leaders[0]


class TestClassify:
    """测试回合结果分类"""

    def test_outcomes(self):
        assert VoteTally.classify(None) == RoundOutcome.TIE
        assert VoteTally.classify(PlayerRole.CHAMELEON) == RoundOutcome.IMPOSTER_CAUGHT
        assert VoteTally.classify(PlayerRole.MIMIC) == RoundOutcome.IMPOSTER_CAUGHT
        assert VoteTally.classify(PlayerRole.JESTER) == RoundOutcome.JESTER_WINS
        assert VoteTally.classify(PlayerRole.ORACLE) == RoundOutcome.INNOCENT_VOTED

    def test_resolve_tie_outcome(self):
        players = [
            player("a", vote="b"), player("b", vote="a"),
            player("c", role=PlayerRole.CHAMELEON),
        ]
        result, outcome, role = VoteTally().resolve(players)
        assert result.winner_id is None and result.is_tie
        assert outcome == RoundOutcome.TIE
        assert role is None

    def test_resolve_catches_chameleon(self):
        players = [
            player("a", vote="c"), player("b", vote="c"),
            player("c", vote="a", role=PlayerRole.CHAMELEON),
        ]
        result, outcome, role = VoteTally().resolve(players)
        assert result.winner_id == "c"
        assert outcome == RoundOutcome.IMPOSTER_CAUGHT
        assert role == PlayerRole.CHAMELEON
