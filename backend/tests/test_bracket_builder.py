"""
Tests for knockout bracket construction and progression.
"""

import pytest

from competition_engine.exceptions import (
    ConfigurationError,
    ConflictError,
    IntegrityError,
    StateError,
    ValidationError,
)
from competition_engine.models.bracket import BracketStatus, NodeState, SlotSource
from competition_engine.models.team import Team
from competition_engine.services.bracket_builder import (
    THIRD_PLACE_NODE_ID,
    advance,
    advance_with_score,
    bracket_fold_positions,
    build_bracket,
    next_power_of_two,
    playable_nodes,
    reset_node,
)


def _make_teams(n: int) -> list[Team]:
    """Helper: teams T1..Tn, already in seed order."""
    return [Team(id=f"T{i}", name=f"Team {i}", seed=i) for i in range(1, n + 1)]


def _seed_of(team_id: str) -> int:
    return int(team_id[1:])


def _play_chalk(bracket):
    """Helper: resolve every playable node with the better seed winning."""
    while True:
        ready = playable_nodes(bracket)
        if not ready:
            return bracket
        for node in ready:
            winner = min(node.participants, key=_seed_of)
            bracket = advance(bracket, node.id, winner)


def _pairs(bracket, round_number):
    return [(n.home.team_id, n.away.team_id) for n in bracket.round(round_number)]


class TestBracketFoldPositions:
    def test_2_entries(self):
        assert bracket_fold_positions(2) == [1, 2]

    def test_4_entries(self):
        assert bracket_fold_positions(4) == [1, 4, 2, 3]

    def test_8_entries(self):
        assert bracket_fold_positions(8) == [1, 8, 4, 5, 3, 6, 2, 7]

    def test_16_entries(self):
        expected = [1, 16, 8, 9, 4, 13, 5, 12, 3, 14, 6, 11, 7, 10, 2, 15]
        assert bracket_fold_positions(16) == expected

    def test_all_seeds_present(self):
        for n in (2, 4, 8, 16, 32):
            assert sorted(bracket_fold_positions(n)) == list(range(1, n + 1))

    @pytest.mark.parametrize("size", [4, 8, 16, 32, 64, 128])
    def test_opening_pairs_sum_to_size_plus_one(self, size):
        slots = bracket_fold_positions(size)
        assert all(slots[i] + slots[i + 1] == size + 1 for i in range(0, size, 2))
        half = size // 2
        assert 1 in slots[:half]
        assert 2 in slots[half:]


class TestConstruction:
    def test_eight_teams_first_round(self):
        bracket = build_bracket(_make_teams(8))

        assert bracket.size == 8
        assert bracket.round_count == 3
        assert _pairs(bracket, 1) == [("T1", "T8"), ("T4", "T5"), ("T3", "T6"), ("T2", "T7")]
        assert [n.round_label for n in bracket.round(1)] == ["Quarter-Finals"] * 4
        assert [n.round_label for n in bracket.round(2)] == ["Semi-Finals"] * 2
        assert bracket.final.round_label == "Final"
        assert bracket.status == BracketStatus.IN_PROGRESS
        assert bracket.champion_id is None

    def test_later_rounds_reference_their_sources(self):
        bracket = build_bracket(_make_teams(8))
        semi = bracket.node("R2-M2")
        assert (semi.home.source, semi.home.source_node_id) == (SlotSource.WINNER, "R1-M3")
        assert (semi.away.source, semi.away.source_node_id) == (SlotSource.WINNER, "R1-M4")
        assert bracket.node("R1-M3").next_node_id == "R2-M2"
        assert bracket.node("R1-M3").next_slot == "home"
        assert bracket.node("R1-M4").next_slot == "away"

    @pytest.mark.parametrize("n", range(2, 18))
    def test_size_is_next_power_of_two(self, n):
        bracket = build_bracket(_make_teams(n))
        assert bracket.size == next_power_of_two(n)
        assert bracket.size >= n
        assert bracket.size & (bracket.size - 1) == 0
        assert bracket.size < 2 * n

    def test_round_labels_for_sixteen(self):
        bracket = build_bracket(_make_teams(16))
        labels = [bracket.round(r)[0].round_label for r in range(1, 5)]
        assert labels == ["Round of 16", "Quarter-Finals", "Semi-Finals", "Final"]

    def test_byes_go_to_top_seeds_and_advance_immediately(self):
        bracket = build_bracket(_make_teams(5))

        byes = [n for n in bracket.round(1) if n.state == NodeState.BYE]
        assert sorted(n.team_id for n in byes) == ["T1", "T2", "T3"]
        assert all(n.is_bye for n in byes)

        # 4 v 5 is the only real opening match; 3 v 2 is already set in round two
        assert [n.id for n in playable_nodes(bracket)] == ["R1-M2", "R2-M2"]
        assert bracket.node("R2-M1").home.team_id == "T1"
        assert bracket.node("R2-M2").home.team_id == "T3"
        assert bracket.node("R2-M2").away.team_id == "T2"
        assert bracket.node("R2-M1").away.team_id is None

    def test_no_opening_match_has_two_byes(self):
        for n in range(2, 18):
            bracket = build_bracket(_make_teams(n))
            for node in bracket.round(1):
                assert not (node.home.is_bye and node.away.is_bye)

    def test_two_teams_is_just_a_final(self):
        bracket = build_bracket(_make_teams(2), include_third_place=True)
        assert [n.id for n in bracket.nodes] == ["R1-M1"]
        assert bracket.nodes[0].round_label == "Final"
        assert bracket.include_third_place is False

    def test_third_place_fed_by_semifinal_losers(self):
        bracket = build_bracket(_make_teams(8), include_third_place=True)
        third = bracket.third_place

        assert third.id == THIRD_PLACE_NODE_ID
        assert third.round_label == "Third Place"
        assert (third.home.source, third.home.source_node_id) == (SlotSource.LOSER, "R2-M1")
        assert (third.away.source, third.away.source_node_id) == (SlotSource.LOSER, "R2-M2")
        assert bracket.node("R2-M1").loser_next_node_id == THIRD_PLACE_NODE_ID

    def test_not_enough_teams(self):
        with pytest.raises(ConfigurationError):
            build_bracket(_make_teams(1))
        with pytest.raises(ConfigurationError):
            build_bracket([])

    def test_duplicate_team_ids(self):
        teams = _make_teams(3) + [Team(id="T2", name="Again")]
        with pytest.raises(ValidationError):
            build_bracket(teams)


class TestProgression:
    def test_chalk_run_crowns_top_seed(self):
        bracket = _play_chalk(build_bracket(_make_teams(8)))

        assert bracket.status == BracketStatus.COMPLETE
        assert bracket.champion_id == "T1"
        assert _pairs(bracket, 2) == [("T1", "T4"), ("T3", "T2")]
        assert set(bracket.final.participants) == {"T1", "T2"}
        assert all(n.is_resolved for n in bracket.nodes)

    @pytest.mark.parametrize("n", [2, 3, 5, 6, 7, 9, 12])
    def test_exactly_one_champion(self, n):
        bracket = _play_chalk(build_bracket(_make_teams(n), include_third_place=True))
        assert bracket.status == BracketStatus.COMPLETE
        assert bracket.champion_id == "T1"
        assert bracket.final.team_id == "T1"

    def test_winner_fills_next_round_slot(self):
        bracket = build_bracket(_make_teams(4))
        bracket = advance(bracket, "R1-M2", "T3")
        final = bracket.node("R2-M1")
        assert final.away.team_id == "T3"
        assert final.home.team_id is None
        assert bracket.node("R1-M2").state == NodeState.RESOLVED
        assert bracket.node("R1-M2").loser_team_id == "T2"

    def test_third_place_completes_bracket(self):
        bracket = build_bracket(_make_teams(4), include_third_place=True)
        bracket = advance(bracket, "R1-M1", "T1")
        bracket = advance(bracket, "R1-M2", "T2")

        third = bracket.third_place
        assert (third.home.team_id, third.away.team_id) == ("T4", "T3")

        bracket = advance(bracket, "R2-M1", "T1")
        assert bracket.status == BracketStatus.IN_PROGRESS
        assert bracket.champion_id is None

        bracket = advance(bracket, THIRD_PLACE_NODE_ID, "T3")
        assert bracket.status == BracketStatus.COMPLETE
        assert bracket.champion_id == "T1"

    def test_third_place_after_bye_semifinal_resolves_itself(self):
        bracket = build_bracket(_make_teams(3), include_third_place=True)
        assert bracket.node("R1-M1").state == NodeState.BYE
        assert bracket.third_place.home.is_bye

        bracket = advance(bracket, "R1-M2", "T3")
        third = bracket.third_place
        assert third.state == NodeState.BYE
        assert third.team_id == "T2"

        bracket = advance(bracket, "R2-M1", "T3")
        assert bracket.status == BracketStatus.COMPLETE
        assert bracket.champion_id == "T3"

    def test_advance_returns_new_value(self):
        original = build_bracket(_make_teams(4))
        updated = advance(original, "R1-M1", "T1")

        assert original.node("R1-M1").state == NodeState.UNRESOLVED
        assert original.node("R2-M1").home.team_id is None
        assert original.version == 0
        assert updated.version == 1

    def test_playable_nodes_follow_results(self):
        bracket = build_bracket(_make_teams(4))
        assert [n.id for n in playable_nodes(bracket)] == ["R1-M1", "R1-M2"]
        bracket = advance(bracket, "R1-M1", "T1")
        assert [n.id for n in playable_nodes(bracket)] == ["R1-M2"]
        bracket = advance(bracket, "R1-M2", "T2")
        assert [n.id for n in playable_nodes(bracket)] == ["R2-M1"]


class TestProgressionFailures:
    def test_re_advance_with_different_winner_conflicts(self):
        bracket = advance(build_bracket(_make_teams(4)), "R1-M1", "T1")
        with pytest.raises(ConflictError) as exc_info:
            advance(bracket, "R1-M1", "T4")
        assert exc_info.value.code == "NODE_ALREADY_RESOLVED"

    def test_re_advance_with_same_winner_is_a_no_op(self):
        bracket = advance(build_bracket(_make_teams(4)), "R1-M1", "T1")
        again = advance(bracket, "R1-M1", "T1")
        assert again == bracket

    def test_advance_before_prerequisites(self):
        bracket = advance(build_bracket(_make_teams(4)), "R1-M1", "T1")
        with pytest.raises(StateError) as exc_info:
            advance(bracket, "R2-M1", "T1")
        assert exc_info.value.context["pending"] == ["R1-M2"]

    def test_unknown_node(self):
        with pytest.raises(IntegrityError):
            advance(build_bracket(_make_teams(4)), "R9-M1", "T1")

    def test_winner_must_be_a_participant(self):
        with pytest.raises(ValidationError):
            advance(build_bracket(_make_teams(4)), "R1-M1", "T2")

    def test_stale_version(self):
        bracket = build_bracket(_make_teams(4))
        bracket = advance(bracket, "R1-M1", "T1", expected_version=0)
        with pytest.raises(ConflictError) as exc_info:
            advance(bracket, "R1-M2", "T2", expected_version=0)
        assert exc_info.value.code == "STALE_BRACKET_VERSION"

    def test_byes_cannot_be_re_advanced(self):
        bracket = build_bracket(_make_teams(3))
        assert advance(bracket, "R1-M1", "T1").node("R1-M1").state == NodeState.BYE
        with pytest.raises(ConflictError):
            advance(bracket, "R1-M1", "T2")


class TestScores:
    def test_higher_score_wins(self):
        bracket = advance_with_score(build_bracket(_make_teams(4)), "R1-M1", 1, 2)
        assert bracket.node("R1-M1").team_id == "T4"

    def test_level_score_needs_shootout(self):
        bracket = build_bracket(_make_teams(4))
        with pytest.raises(ValidationError) as exc_info:
            advance_with_score(bracket, "R1-M1", 1, 1)
        assert exc_info.value.code == "LEVEL_SCORE_NEEDS_SHOOTOUT"

        bracket = advance_with_score(bracket, "R1-M1", 1, 1, shootout_winner_id="T4")
        assert bracket.node("R1-M1").team_id == "T4"

    def test_negative_score(self):
        with pytest.raises(ValidationError):
            advance_with_score(build_bracket(_make_teams(4)), "R1-M1", -1, 0)

    def test_score_before_prerequisites(self):
        with pytest.raises(StateError):
            advance_with_score(build_bracket(_make_teams(4)), "R2-M1", 1, 0)


class TestReset:
    def test_reset_cascades_downstream(self):
        bracket = _play_chalk(build_bracket(_make_teams(4)))
        assert bracket.status == BracketStatus.COMPLETE

        bracket = reset_node(bracket, "R1-M1")

        assert bracket.node("R1-M1").state == NodeState.UNRESOLVED
        assert bracket.node("R1-M1").team_id is None
        final = bracket.node("R2-M1")
        assert final.state == NodeState.UNRESOLVED
        assert final.home.team_id is None
        assert final.away.team_id == "T2"
        assert bracket.status == BracketStatus.IN_PROGRESS
        assert bracket.champion_id is None

        bracket = advance(bracket, "R1-M1", "T4")
        assert bracket.node("R2-M1").home.team_id == "T4"

    def test_reset_clears_third_place_slot(self):
        bracket = _play_chalk(build_bracket(_make_teams(4), include_third_place=True))
        bracket = reset_node(bracket, "R1-M2")

        third = bracket.third_place
        assert third.state == NodeState.UNRESOLVED
        assert third.away.team_id is None
        assert third.home.team_id == "T4"

    def test_reset_unresolved_node_is_a_no_op(self):
        bracket = build_bracket(_make_teams(4))
        assert reset_node(bracket, "R1-M1") == bracket

    def test_bye_cannot_be_reset(self):
        with pytest.raises(StateError):
            reset_node(build_bracket(_make_teams(5)), "R1-M1")

    def test_reset_unknown_node(self):
        with pytest.raises(IntegrityError):
            reset_node(build_bracket(_make_teams(4)), "nope")
