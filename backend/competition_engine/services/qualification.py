"""
Group-stage qualification and knockout seeding.

Deterministic rules for turning group tables into a seeded knockout roster:
all group winners are seeded before all runners-up, and so on. Teams that
finished in the same position are ranked by their group record.
"""

import logging
from typing import List, Mapping, Sequence

from competition_engine.exceptions import ConfigurationError, ValidationError
from competition_engine.models.standings import StandingsRow
from competition_engine.models.team import Team

logger = logging.getLogger(__name__)


def qualifier_rank_key(row: StandingsRow, group_name: str) -> tuple:
    """
    Return sort key for cross-group seeding. Lower = better.

    Order: finishing position, -points, -goal_difference, -goals_for,
           group name, team id (asc for determinism).
    """
    return (
        row.position,
        -row.points,
        -row.goal_difference,
        -row.goals_for,
        group_name,
        row.team_id,
    )


def seed_qualifiers(group_tables: Mapping[str, Sequence[StandingsRow]], per_group: int) -> List[Team]:
    """
    Take the top *per_group* teams of every group and seed them best first.

    Args:
        group_tables: Group name -> computed standings for that group
        per_group: Qualifiers per group

    Returns:
        Teams with ``seed`` set 1..N, ready for build_bracket()

    Raises:
        ConfigurationError: per_group < 1, no groups, or a group too small
        ValidationError: the same team qualifies from two groups
    """
    if per_group < 1:
        raise ConfigurationError(
            f"per_group must be >= 1, got {per_group}",
            code="INVALID_QUALIFIER_COUNT",
        )
    if not group_tables:
        raise ConfigurationError("No group tables supplied", code="NO_GROUPS")

    candidates = []
    for group_name in sorted(group_tables):
        table = sorted(group_tables[group_name], key=lambda r: r.position)
        if len(table) < per_group:
            raise ConfigurationError(
                f"{group_name} has {len(table)} teams, cannot supply {per_group} qualifiers",
                code="GROUP_TOO_SMALL",
                context={"group": group_name, "team_count": len(table)},
            )
        for row in table[:per_group]:
            candidates.append((qualifier_rank_key(row, group_name), row))

    candidates.sort(key=lambda c: c[0])

    seen = set()
    qualifiers: List[Team] = []
    for seed, (_, row) in enumerate(candidates, start=1):
        if row.team_id in seen:
            raise ValidationError(
                f"Team '{row.team_id}' qualifies from more than one group",
                code="DUPLICATE_TEAM_ID",
                context={"team_id": row.team_id},
            )
        seen.add(row.team_id)
        qualifiers.append(Team(id=row.team_id, name=row.team_name or row.team_id, seed=seed))

    logger.info(
        "Seeded %d qualifiers from %d groups (%d per group)",
        len(qualifiers),
        len(group_tables),
        per_group,
    )
    return qualifiers
