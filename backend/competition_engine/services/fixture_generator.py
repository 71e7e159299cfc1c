"""
Round-robin fixture generation (circle method).

Position 0 stays fixed while every other position rotates one step per round,
which yields every pairing exactly once per leg. Odd rosters get a virtual BYE
participant; its matches are never scheduled. A double round-robin repeats the
leg with home/away reversed, numbering rounds on from the first leg.

Generation is all-or-nothing: inputs are validated before the first fixture
is built, so a failure never leaves a partial schedule behind.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple, Union

from competition_engine import config
from competition_engine.exceptions import ConfigurationError, IntegrityError, ValidationError
from competition_engine.models.fixture import Fixture, MatchStatus, Round
from competition_engine.models.team import Team
from competition_engine.utils.calendar import (
    Calendar,
    SystemCalendar,
    as_date,
    next_match_day,
    parse_kickoff_time,
)

logger = logging.getLogger(__name__)

BYE = "BYE"


def rr_round_count(team_count: int) -> int:
    """Rounds in one leg; an odd roster is padded with a BYE, so one team sits out each round."""
    padded = team_count + team_count % 2
    return padded - 1


def rr_matches_per_leg(team_count: int) -> int:
    """Real (non-BYE) fixtures in one leg: every pair of teams once."""
    return team_count * (team_count - 1) // 2


def circle_pairings(n: int) -> List[Tuple[int, int, int, int]]:
    """
    Circle-method pairings for an even number of positions.

    Returns (round_number, sequence_in_round, home_idx, away_idx) tuples with
    1-based round/sequence numbers and 0-based positions.

    For round r, positions 1..n-1 are rotated r steps (mod n-1) around the
    fixed position 0. Match 1 pairs position 0 with the team opposite it and
    the fixed team alternates home/away between rounds; the other matches pair
    circle[i] (home) with circle[n-1-i] (away).

    n=4:
    - Round 1: 0v3, 1v2
    - Round 2: 2v0, 3v1
    - Round 3: 0v1, 2v3
    """
    assert n >= 2 and n % 2 == 0, f"n must be even >= 2, got {n}"

    half = n // 2
    others = list(range(1, n))
    result: List[Tuple[int, int, int, int]] = []

    for r in range(n - 1):
        shift = r % (n - 1)
        rotated = others[-shift:] + others[:-shift] if shift else list(others)
        circle = [0] + rotated

        for i in range(half):
            home, away = circle[i], circle[n - 1 - i]
            if i == 0 and r % 2 == 1:
                home, away = away, home
            result.append((r + 1, i + 1, home, away))

    return result


def round_name(round_number: int, rounds_per_leg: int) -> str:
    """'Round 3' in the first leg, 'Round 3 (Return)' in the second."""
    if round_number <= rounds_per_leg:
        return f"Round {round_number}"
    return f"Round {round_number - rounds_per_leg} (Return)"


def _validate_roster(teams: Sequence[Team], minimum: int = 2) -> None:
    if len(teams) < minimum:
        raise ConfigurationError(
            f"At least {minimum} teams are required, got {len(teams)}",
            code="NOT_ENOUGH_TEAMS",
            context={"team_count": len(teams)},
        )

    seen = set()
    duplicates = []
    for team in teams:
        if team.id in seen:
            duplicates.append(team.id)
        seen.add(team.id)
    if duplicates:
        raise ValidationError(
            f"Duplicate team ids: {sorted(set(duplicates))}",
            code="DUPLICATE_TEAM_ID",
            context={"team_ids": sorted(set(duplicates))},
        )

    if BYE in seen:
        raise ValidationError(
            f"'{BYE}' is reserved and cannot be used as a team id",
            code="RESERVED_TEAM_ID",
        )


def generate_fixtures(
    teams: Sequence[Team],
    start_date: Optional[Union[date, datetime]] = None,
    kickoff_time: Optional[str] = None,
    weekends_only: bool = True,
    home_and_away: bool = True,
    venue: Optional[str] = None,
    *,
    calendar: Optional[Calendar] = None,
    round_interval_days: Optional[int] = None,
    group: Optional[str] = None,
) -> List[Fixture]:
    """
    Generate a complete round-robin schedule for *teams*.

    Args:
        teams: Participants; index 0 is the fixed position of the circle
        start_date: First candidate match day (defaults to calendar.today())
        kickoff_time: 24-hour "HH:MM" shared by every fixture
        weekends_only: Move each round forward to the next Saturday/Sunday
        home_and_away: Play a second leg with home/away reversed
        venue: Attached uniformly to every fixture
        calendar: Date source and arithmetic (defaults to the system calendar)
        round_interval_days: Gap between consecutive rounds (default 7)
        group: Optional group label stamped on fixtures and ids

    Returns:
        Fixtures ordered by round, then sequence within round

    Raises:
        ConfigurationError: fewer than 2 teams, malformed kickoff time
        ValidationError: duplicate team ids
    """
    calendar = calendar or SystemCalendar()
    _validate_roster(teams)
    kickoff = parse_kickoff_time(config.DEFAULT_KICKOFF_TIME if kickoff_time is None else kickoff_time)
    interval = config.ROUND_INTERVAL_DAYS if round_interval_days is None else round_interval_days
    if interval < 1:
        raise ConfigurationError(
            f"round_interval_days must be >= 1, got {interval}",
            code="INVALID_ROUND_INTERVAL",
        )
    current_date = as_date(start_date, calendar)

    participants: List[Optional[Team]] = list(teams)
    if len(participants) % 2 == 1:
        participants.append(None)  # BYE

    n = len(participants)
    rounds_per_leg = rr_round_count(len(teams))
    total_legs = 2 if home_and_away else 1
    pairings = circle_pairings(n)

    by_round: Dict[int, List[Tuple[int, int]]] = defaultdict(list)
    for round_number, _, home_idx, away_idx in pairings:
        by_round[round_number].append((home_idx, away_idx))

    id_prefix = f"{group}:" if group else ""
    fixtures: List[Fixture] = []

    for leg in range(1, total_legs + 1):
        for leg_round in range(1, rounds_per_leg + 1):
            round_number = (leg - 1) * rounds_per_leg + leg_round
            current_date = next_match_day(calendar, current_date, weekends_only)
            match_kickoff = datetime.combine(current_date, kickoff)

            sequence = 0
            for home_idx, away_idx in by_round[leg_round]:
                home, away = participants[home_idx], participants[away_idx]
                if home is None or away is None:
                    continue
                if leg == 2:
                    home, away = away, home
                sequence += 1
                fixtures.append(
                    Fixture(
                        id=f"{id_prefix}R{round_number}-M{sequence}",
                        round_number=round_number,
                        round_name=round_name(round_number, rounds_per_leg),
                        leg=leg,
                        group=group,
                        home_team_id=home.id,
                        away_team_id=away.id,
                        kickoff=match_kickoff,
                        venue=venue,
                        status=MatchStatus.SCHEDULED,
                    )
                )

            current_date = calendar.add_days(current_date, interval)

    validate_fixtures(fixtures, teams, legs=total_legs)

    logger.info(
        "Generated %d fixtures for %d teams (%d legs, %d rounds per leg)%s",
        len(fixtures),
        len(teams),
        total_legs,
        rounds_per_leg,
        f" in {group}" if group else "",
    )
    return fixtures


def validate_fixtures(fixtures: Sequence[Fixture], teams: Sequence[Team], legs: int = 2) -> None:
    """
    Check that *fixtures* form a complete round-robin of *teams* over *legs* legs.

    Every team must play every other team exactly once per leg, which also
    fixes the per-team and total match counts.

    Raises:
        ConfigurationError: legs < 1
        IntegrityError: a fixture names a team outside *teams*
        ValidationError: self-pairing, repeated pairing, wrong match counts
    """
    if legs < 1:
        raise ConfigurationError(f"legs must be >= 1, got {legs}", code="INVALID_LEG_COUNT")

    known = {t.id for t in teams}
    per_team: Dict[str, int] = {team_id: 0 for team_id in known}
    seen = set()

    for fixture in fixtures:
        for team_id in (fixture.home_team_id, fixture.away_team_id):
            if team_id not in known:
                raise IntegrityError(
                    f"Fixture {fixture.id} references unknown team '{team_id}'",
                    code="UNKNOWN_TEAM",
                    context={"match_id": fixture.id, "team_id": team_id},
                )
        if fixture.home_team_id == fixture.away_team_id:
            raise ValidationError(
                f"Fixture {fixture.id} pairs team '{fixture.home_team_id}' against itself",
                code="SELF_PAIRING",
                context={"match_id": fixture.id},
            )
        signature = (frozenset((fixture.home_team_id, fixture.away_team_id)), fixture.leg)
        if signature in seen:
            raise ValidationError(
                f"{fixture.home_team_id} v {fixture.away_team_id} is scheduled twice in leg {fixture.leg}",
                code="DUPLICATE_PAIRING",
                context={"match_id": fixture.id, "leg": fixture.leg},
            )
        seen.add(signature)
        per_team[fixture.home_team_id] += 1
        per_team[fixture.away_team_id] += 1

    expected_per_team = (len(known) - 1) * legs
    wrong = sorted(team_id for team_id, count in per_team.items() if count != expected_per_team)
    if wrong:
        raise ValidationError(
            f"Teams {wrong} do not play {expected_per_team} matches each",
            code="WRONG_MATCH_COUNT",
            context={"team_ids": wrong, "expected": expected_per_team},
        )

    expected_total = rr_matches_per_leg(len(known)) * legs
    if len(fixtures) != expected_total:
        raise ValidationError(
            f"Expected {expected_total} fixtures, got {len(fixtures)}",
            code="WRONG_MATCH_COUNT",
            context={"expected": expected_total, "actual": len(fixtures)},
        )


@dataclass
class FixtureStatistics:
    total_rounds: int
    total_matches: int
    matches_per_round: int
    legs: int


def fixture_statistics(fixtures: Sequence[Fixture]) -> FixtureStatistics:
    """Summary counts for a schedule; matches_per_round is rounded to the nearest whole match."""
    rounds = {(f.leg, f.round_number) for f in fixtures}
    legs = {f.leg for f in fixtures}
    total_matches = len(fixtures)
    per_round = round(total_matches / len(rounds)) if rounds else 0
    return FixtureStatistics(
        total_rounds=len(rounds),
        total_matches=total_matches,
        matches_per_round=per_round,
        legs=len(legs),
    )


def group_rounds(fixtures: Sequence[Fixture]) -> List[Round]:
    """Group fixtures into rounds keyed by (leg, round_number), in round order."""
    buckets: Dict[Tuple[int, int], List[Fixture]] = defaultdict(list)
    for fixture in fixtures:
        buckets[(fixture.leg, fixture.round_number)].append(fixture)

    rounds: List[Round] = []
    for (leg, number) in sorted(buckets, key=lambda k: (k[1], k[0])):
        members = buckets[(leg, number)]
        rounds.append(
            Round(
                round_number=number,
                leg=leg,
                name=members[0].round_name or f"Round {number}",
                match_date=min(f.kickoff for f in members).date(),
                fixtures=list(members),
            )
        )
    return rounds


def group_label(index: int) -> str:
    if index < 26:
        return f"Group {chr(ord('A') + index)}"
    return f"Group {index + 1}"


def distribute_into_groups(teams: Sequence[Team], group_count: int) -> Dict[str, List[Team]]:
    """
    Snake-distribute a seeded roster (best first) into *group_count* groups.

    Seeds 1..g go to groups A..G, seeds g+1..2g come back G..A, and so on, so
    every group receives a comparable mix of strong and weak seeds.
    """
    if group_count < 1:
        raise ConfigurationError(
            f"group_count must be >= 1, got {group_count}",
            code="INVALID_GROUP_COUNT",
        )
    if len(teams) < 2 * group_count:
        raise ConfigurationError(
            f"{len(teams)} teams cannot fill {group_count} groups of at least 2",
            code="NOT_ENOUGH_TEAMS",
            context={"team_count": len(teams), "group_count": group_count},
        )

    groups: Dict[str, List[Team]] = {group_label(g): [] for g in range(group_count)}
    labels = list(groups)
    for i, team in enumerate(teams):
        row, col = divmod(i, group_count)
        index = col if row % 2 == 0 else group_count - 1 - col
        groups[labels[index]].append(team)
    return groups


def generate_group_stage(
    teams: Sequence[Team],
    group_count: int,
    start_date: Optional[Union[date, datetime]] = None,
    kickoff_time: Optional[str] = None,
    weekends_only: bool = True,
    home_and_away: bool = True,
    venue: Optional[str] = None,
    *,
    calendar: Optional[Calendar] = None,
    round_interval_days: Optional[int] = None,
) -> Dict[str, List[Fixture]]:
    """Distribute *teams* into groups and schedule a round-robin in each one."""
    _validate_roster(teams)
    parse_kickoff_time(config.DEFAULT_KICKOFF_TIME if kickoff_time is None else kickoff_time)
    groups = distribute_into_groups(teams, group_count)

    schedule: Dict[str, List[Fixture]] = {}
    for label, members in groups.items():
        schedule[label] = generate_fixtures(
            members,
            start_date=start_date,
            kickoff_time=kickoff_time,
            weekends_only=weekends_only,
            home_and_away=home_and_away,
            venue=venue,
            calendar=calendar,
            round_interval_days=round_interval_days,
            group=label,
        )
    logger.info(
        "Generated group stage: %d groups, %d fixtures",
        len(schedule),
        sum(len(f) for f in schedule.values()),
    )
    return schedule
