"""
Seeded single-elimination brackets.

Construction pads the seeded roster with byes up to the next power of two and
lays seeds out in bracket-fold order, so that if chalk holds seed 1 meets seed
2 only in the final. A bye "wins" its opening match without play and its
opponent is written straight into the next round.

Progression: every node starts UNRESOLVED (or BYE when pre-resolved by a
bye). Recording a winner marks the node RESOLVED and writes the winner into
the single dependent slot of the next round; semifinal losers feed the
optional third-place match. The bracket is COMPLETE once the final (and the
third-place match, when present) is resolved.

Brackets are values: advance/reset return a new Bracket and never touch the
one passed in. Callers serialise writers per bracket using ``version``.
"""

import logging
from typing import Dict, List, Optional, Sequence

from competition_engine import config
from competition_engine.exceptions import (
    ConfigurationError,
    ConflictError,
    IntegrityError,
    StateError,
    ValidationError,
)
from competition_engine.models.bracket import (
    Bracket,
    BracketNode,
    BracketSlot,
    BracketStatus,
    NodeState,
    SlotSide,
    SlotSource,
)
from competition_engine.models.team import Team

logger = logging.getLogger(__name__)

THIRD_PLACE_NODE_ID = "3P"
THIRD_PLACE_LABEL = "Third Place"


def next_power_of_two(n: int) -> int:
    size = 1
    while size < n:
        size *= 2
    return size


def bracket_fold_positions(size: int) -> List[int]:
    """
    Seed numbers in opening-round slot order for a bracket of *size* (a power of two).

    Slots 2k and 2k+1 form opening match k, and every pair sums to size + 1.
    Seeds above the team count are byes, so the top seeds draw them:
      size 4 -> [1, 4, 2, 3]
      size 8 -> [1, 8, 4, 5, 3, 6, 2, 7]
    """
    if size == 2:
        return [1, 2]

    slots: List[int] = []
    for seed in bracket_fold_positions(size // 2):
        slots.extend((seed, size + 1 - seed))

    # keep 1 and 2 in opposite halves
    mid = len(slots) // 2
    upper, lower = slots[:mid], slots[mid:]
    if len(lower) >= 4:
        lower = lower[:-4] + lower[-2:] + lower[-4:-2]
    return upper + lower


def round_label(entrants: int) -> str:
    """Name of a round by the number of teams still in it."""
    if entrants == 2:
        return "Final"
    if entrants == 4:
        return "Semi-Finals"
    if entrants == 8:
        return "Quarter-Finals"
    return f"Round of {entrants}"


def node_id(round_number: int, slot_index: int) -> str:
    return f"R{round_number}-M{slot_index + 1}"


def _side_for(slot_index: int) -> SlotSide:
    return "home" if slot_index % 2 == 0 else "away"


# ============================================================================
# Construction
# ============================================================================


def build_bracket(
    seeded_teams: Sequence[Team],
    include_third_place: Optional[bool] = None,
) -> Bracket:
    """
    Build a single-elimination bracket from teams ordered best to worst.

    Raises:
        ConfigurationError: fewer than 2 teams
        ValidationError: duplicate team ids
    """
    if include_third_place is None:
        include_third_place = config.INCLUDE_THIRD_PLACE

    team_count = len(seeded_teams)
    if team_count < 2:
        raise ConfigurationError(
            f"A knockout bracket needs at least 2 teams, got {team_count}",
            code="NOT_ENOUGH_TEAMS",
            context={"team_count": team_count},
        )
    ids = [t.id for t in seeded_teams]
    if len(set(ids)) != len(ids):
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        raise ValidationError(
            f"Duplicate team ids: {duplicates}",
            code="DUPLICATE_TEAM_ID",
            context={"team_ids": duplicates},
        )

    size = next_power_of_two(team_count)
    rounds = size.bit_length() - 1
    positions = bracket_fold_positions(size)

    nodes: List[BracketNode] = []
    for round_number in range(1, rounds + 1):
        entrants = size // (2 ** (round_number - 1))
        for slot_index in range(entrants // 2):
            node = BracketNode(
                id=node_id(round_number, slot_index),
                round_number=round_number,
                round_label=round_label(entrants),
                slot_index=slot_index,
            )
            if round_number == 1:
                node.home = _seed_slot(positions[2 * slot_index], seeded_teams)
                node.away = _seed_slot(positions[2 * slot_index + 1], seeded_teams)
            else:
                node.home = BracketSlot(
                    source=SlotSource.WINNER,
                    source_node_id=node_id(round_number - 1, 2 * slot_index),
                )
                node.away = BracketSlot(
                    source=SlotSource.WINNER,
                    source_node_id=node_id(round_number - 1, 2 * slot_index + 1),
                )
            if round_number < rounds:
                node.next_node_id = node_id(round_number + 1, slot_index // 2)
                node.next_slot = _side_for(slot_index)
            nodes.append(node)

    with_third_place = include_third_place and rounds >= 2
    if with_third_place:
        semifinal_round = rounds - 1
        nodes.append(
            BracketNode(
                id=THIRD_PLACE_NODE_ID,
                round_number=rounds,
                round_label=THIRD_PLACE_LABEL,
                slot_index=1,
                is_third_place=True,
                home=BracketSlot(source=SlotSource.LOSER, source_node_id=node_id(semifinal_round, 0)),
                away=BracketSlot(source=SlotSource.LOSER, source_node_id=node_id(semifinal_round, 1)),
            )
        )
        for node in nodes:
            if node.round_number == semifinal_round and not node.is_third_place:
                node.loser_next_node_id = THIRD_PLACE_NODE_ID
                node.loser_next_slot = _side_for(node.slot_index)
    elif include_third_place:
        logger.debug("Third-place match skipped: %d teams leave no semifinal", team_count)

    bracket = Bracket(
        size=size,
        team_count=team_count,
        include_third_place=with_third_place,
        nodes=nodes,
    )
    _settle_byes(bracket)
    _refresh_status(bracket)

    logger.info(
        "Built knockout bracket: %d teams, size %d, %d rounds, %d byes%s",
        team_count,
        size,
        rounds,
        size - team_count,
        ", with third-place match" if with_third_place else "",
    )
    return bracket


def _seed_slot(seed: int, seeded_teams: Sequence[Team]) -> BracketSlot:
    if seed > len(seeded_teams):
        return BracketSlot(seed=seed, is_bye=True)
    return BracketSlot(team_id=seeded_teams[seed - 1].id, seed=seed)


# ============================================================================
# Propagation helpers (operate on a private copy)
# ============================================================================


def _place(nodes: Dict[str, BracketNode], target_id: str, side: SlotSide, team_id: Optional[str]) -> None:
    """Write a team (or a bye, when team_id is None) into a dependent slot."""
    slot = nodes[target_id].slot(side)
    if team_id is None:
        slot.is_bye = True
        return
    if slot.team_id is not None and slot.team_id != team_id:
        raise ConflictError(
            f"Slot {side} of {target_id} already holds '{slot.team_id}'; reset it before writing '{team_id}'",
            code="SLOT_ALREADY_FILLED",
            context={"node_id": target_id, "side": side, "team_id": slot.team_id},
        )
    slot.team_id = team_id


def _resolve(
    nodes: Dict[str, BracketNode],
    node: BracketNode,
    winner: Optional[str],
    loser: Optional[str],
    state: NodeState,
) -> None:
    node.state = state
    node.is_bye = state == NodeState.BYE
    node.team_id = winner
    node.loser_team_id = loser
    if node.next_node_id is not None:
        _place(nodes, node.next_node_id, node.next_slot, winner)
    if node.loser_next_node_id is not None:
        _place(nodes, node.loser_next_node_id, node.loser_next_slot, loser)


def _settle_byes(bracket: Bracket) -> None:
    """Auto-resolve every unresolved node that has a bye on one side and a known team (or bye) on the other."""
    nodes = bracket.nodes_by_id()
    changed = True
    while changed:
        changed = False
        for node in _in_play_order(bracket.nodes):
            if node.is_resolved:
                continue
            home, away = node.home, node.away
            if home.is_bye and away.is_bye:
                _resolve(nodes, node, None, None, NodeState.BYE)
                changed = True
            elif home.is_bye and away.is_known:
                _resolve(nodes, node, away.team_id, None, NodeState.BYE)
                changed = True
            elif away.is_bye and home.is_known:
                _resolve(nodes, node, home.team_id, None, NodeState.BYE)
                changed = True


def _clear_outcome(nodes: Dict[str, BracketNode], node: BracketNode) -> None:
    """Undo a node's result and everything that was derived from it downstream."""
    targets = [
        (node.next_node_id, node.next_slot),
        (node.loser_next_node_id, node.loser_next_slot),
    ]
    node.state = NodeState.UNRESOLVED
    node.is_bye = False
    node.team_id = None
    node.loser_team_id = None

    for target_id, side in targets:
        if target_id is None:
            continue
        target = nodes[target_id]
        slot = target.slot(side)
        slot.team_id = None
        slot.is_bye = False
        if target.is_resolved:
            _clear_outcome(nodes, target)


def _refresh_status(bracket: Bracket) -> None:
    final = bracket.final
    third = bracket.third_place
    done = final is not None and final.is_resolved and (third is None or third.is_resolved)
    bracket.status = BracketStatus.COMPLETE if done else BracketStatus.IN_PROGRESS
    bracket.champion_id = final.team_id if done else None


def _in_play_order(nodes: Sequence[BracketNode]) -> List[BracketNode]:
    return sorted(nodes, key=lambda n: (n.round_number, n.is_third_place, n.slot_index))


def _lookup(bracket: Bracket, target_id: str) -> BracketNode:
    node = bracket.node(target_id)
    if node is None:
        raise IntegrityError(
            f"Bracket has no node '{target_id}'",
            code="UNKNOWN_NODE",
            context={"node_id": target_id},
        )
    return node


def _check_version(bracket: Bracket, expected_version: Optional[int]) -> None:
    if expected_version is not None and expected_version != bracket.version:
        raise ConflictError(
            f"Bracket is at version {bracket.version}, expected {expected_version}",
            code="STALE_BRACKET_VERSION",
            context={"version": bracket.version, "expected_version": expected_version},
        )


# ============================================================================
# Progression
# ============================================================================


def advance(
    bracket: Bracket,
    target_id: str,
    winning_team_id: str,
    expected_version: Optional[int] = None,
) -> Bracket:
    """
    Record the winner of a bracket node and propagate it.

    Re-advancing a resolved node with the same winner is a no-op; with a
    different winner it raises ConflictError (use reset_node first).

    Raises:
        IntegrityError: unknown node id
        StateError: the node's participants are not both known yet
        ValidationError: the winner is not one of the node's participants
        ConflictError: node already resolved differently, stale version
    """
    _check_version(bracket, expected_version)
    current = _lookup(bracket, target_id)

    if current.is_resolved:
        if current.team_id == winning_team_id:
            return bracket.model_copy(deep=True)
        raise ConflictError(
            f"Node {target_id} is already resolved with winner '{current.team_id}'",
            code="NODE_ALREADY_RESOLVED",
            context={"node_id": target_id, "team_id": current.team_id},
        )

    if not (current.home.is_known and current.away.is_known):
        raise StateError(
            f"Node {target_id} is waiting on earlier results",
            code="PREREQUISITES_UNRESOLVED",
            context={
                "node_id": target_id,
                "pending": [s.source_node_id for s in (current.home, current.away) if not s.is_known],
            },
        )

    if winning_team_id not in current.participants:
        raise ValidationError(
            f"'{winning_team_id}' is not playing in node {target_id}",
            code="WINNER_NOT_PARTICIPANT",
            context={"node_id": target_id, "participants": current.participants},
        )

    updated = bracket.model_copy(deep=True)
    nodes = updated.nodes_by_id()
    node = nodes[target_id]
    loser = node.away.team_id if node.home.team_id == winning_team_id else node.home.team_id

    _resolve(nodes, node, winning_team_id, loser, NodeState.RESOLVED)
    _settle_byes(updated)
    _refresh_status(updated)
    updated.version = bracket.version + 1

    logger.info("Advanced %s: '%s' beat '%s'", target_id, winning_team_id, loser)
    if updated.status == BracketStatus.COMPLETE:
        logger.info("Bracket complete, champion '%s'", updated.champion_id)
    return updated


def advance_with_score(
    bracket: Bracket,
    target_id: str,
    home_score: int,
    away_score: int,
    shootout_winner_id: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Bracket:
    """Advance using a final score; a level score needs a shootout winner."""
    if home_score < 0 or away_score < 0:
        raise ValidationError("Scores must be >= 0", code="INVALID_SCORE")

    node = _lookup(bracket, target_id)
    if not node.is_resolved and not (node.home.is_known and node.away.is_known):
        raise StateError(
            f"Node {target_id} is waiting on earlier results",
            code="PREREQUISITES_UNRESOLVED",
            context={"node_id": target_id},
        )

    if home_score > away_score:
        winner = node.home.team_id
    elif away_score > home_score:
        winner = node.away.team_id
    else:
        if shootout_winner_id is None:
            raise ValidationError(
                f"Level score {home_score}-{away_score} in {target_id} needs a shootout winner",
                code="LEVEL_SCORE_NEEDS_SHOOTOUT",
                context={"node_id": target_id},
            )
        winner = shootout_winner_id

    return advance(bracket, target_id, winner, expected_version=expected_version)


def reset_node(bracket: Bracket, target_id: str, expected_version: Optional[int] = None) -> Bracket:
    """
    Explicitly clear a node's result and every result derived from it.

    Raises:
        IntegrityError: unknown node id
        StateError: the node was resolved by a bye, which cannot be undone
    """
    _check_version(bracket, expected_version)
    current = _lookup(bracket, target_id)
    if current.state == NodeState.BYE:
        raise StateError(
            f"Node {target_id} was decided by a bye and cannot be reset",
            code="BYE_NOT_RESETTABLE",
            context={"node_id": target_id},
        )
    if current.state == NodeState.UNRESOLVED:
        return bracket.model_copy(deep=True)

    updated = bracket.model_copy(deep=True)
    nodes = updated.nodes_by_id()
    _clear_outcome(nodes, nodes[target_id])
    _settle_byes(updated)
    _refresh_status(updated)
    updated.version = bracket.version + 1

    logger.info("Reset %s and its downstream results", target_id)
    return updated


def playable_nodes(bracket: Bracket) -> List[BracketNode]:
    """Unresolved nodes whose two participants are known, in play order."""
    return [
        n
        for n in _in_play_order(bracket.nodes)
        if not n.is_resolved and n.home.is_known and n.away.is_known
    ]
