"""
League standings with a deterministic tie-break chain.

Tables are a derived snapshot: every call recomputes the whole table from the
completed matches it is given. Only COMPLETED matches with both scores count;
anything else (scheduled, live, postponed, cancelled) is ignored. The live
table is the one exception: it also counts LIVE matches at their current
score, as if they had finished that way.

Ordering applies the configured criteria in turn, each one only splitting the
teams still tied under the previous ones:

    points -> goal difference -> goals for -> head-to-head -> team id

Head-to-head builds a mini-table from the matches played exclusively among
the still-tied teams (points, then goal difference within those matches).
Team id ascending is always the last resort, so the order is total and two
runs over the same input give identical positions.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from itertools import groupby
from typing import Dict, List, Optional, Sequence, Tuple

from competition_engine import config
from competition_engine.exceptions import ConfigurationError, IntegrityError, ValidationError
from competition_engine.models.fixture import Fixture, MatchStatus
from competition_engine.models.standings import (
    DEFAULT_TIE_BREAKERS,
    PointsScheme,
    RecentMatch,
    StandingsRow,
    TieBreaker,
    VenueRecord,
)
from competition_engine.models.team import Team

logger = logging.getLogger(__name__)

WIN = "W"
DRAW = "D"
LOSS = "L"


@dataclass
class _Split:
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0

    def record(self, scored: int, conceded: int) -> None:
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.won += 1
        elif scored < conceded:
            self.lost += 1
        else:
            self.drawn += 1


@dataclass
class _Tally:
    team_id: str
    team_name: Optional[str] = None
    total: _Split = field(default_factory=_Split)
    home: _Split = field(default_factory=_Split)
    away: _Split = field(default_factory=_Split)
    form: List[str] = field(default_factory=list)
    recent: List[RecentMatch] = field(default_factory=list)

    @property
    def goal_difference(self) -> int:
        return self.total.goals_for - self.total.goals_against


@dataclass(frozen=True)
class _Result:
    match_id: str
    kickoff: datetime
    home_team_id: str
    away_team_id: str
    home_score: int
    away_score: int


def _outcome(scored: int, conceded: int) -> str:
    if scored > conceded:
        return WIN
    if scored < conceded:
        return LOSS
    return DRAW


def _tie_breaker_chain(tie_breakers: Optional[Sequence]) -> List[TieBreaker]:
    if tie_breakers is None:
        return list(DEFAULT_TIE_BREAKERS)
    chain: List[TieBreaker] = []
    for value in tie_breakers:
        try:
            chain.append(TieBreaker(value))
        except ValueError:
            raise ConfigurationError(
                f"Unsupported tie-breaker: {value!r}",
                code="INVALID_TIE_BREAKER",
                context={"tie_breaker": str(value), "supported": [t.value for t in TieBreaker]},
            ) from None
    return chain


def _known_teams(teams: Sequence[Team]) -> Dict[str, Team]:
    known: Dict[str, Team] = {}
    for team in teams:
        if team.id in known:
            raise ValidationError(
                f"Duplicate team id in standings roster: {team.id}",
                code="DUPLICATE_TEAM_ID",
                context={"team_id": team.id},
            )
        known[team.id] = team
    return known


def _counts(match: Fixture, include_live: bool) -> bool:
    if match.has_result:
        return True
    return (
        include_live
        and match.status == MatchStatus.LIVE
        and match.home_score is not None
        and match.away_score is not None
    )


def _counted_results(
    matches: Sequence[Fixture], known: Dict[str, Team], include_live: bool = False
) -> List[_Result]:
    """
    Counted matches in chronological order (kickoff, round, input order).

    Raises IntegrityError if a counted match references a team outside the
    roster, so a table is never built over partially-unknown data.
    """
    counted: List[Tuple[datetime, int, int, Fixture]] = []
    seen_ids = set()
    for index, match in enumerate(matches):
        if not _counts(match, include_live):
            continue
        for side, team_id in (("home", match.home_team_id), ("away", match.away_team_id)):
            if team_id is None or team_id not in known:
                raise IntegrityError(
                    f"Match {match.id} references unknown {side} team '{team_id}'",
                    code="UNKNOWN_TEAM",
                    context={"match_id": match.id, "team_id": team_id},
                )
        if match.home_team_id == match.away_team_id:
            raise ValidationError(
                f"Match {match.id} pairs team '{match.home_team_id}' against itself",
                code="SELF_PAIRING",
                context={"match_id": match.id},
            )
        if match.id in seen_ids:
            raise ValidationError(
                f"Match {match.id} is counted twice",
                code="DUPLICATE_MATCH_ID",
                context={"match_id": match.id},
            )
        seen_ids.add(match.id)
        counted.append((match.kickoff, match.round_number, index, match))

    # naive and aware datetimes cannot be ordered against each other
    aware = {c[0].utcoffset() is not None for c in counted}
    if len(aware) > 1:
        raise ValidationError(
            "Kickoff times mix timezone-aware and naive datetimes",
            code="MIXED_TIMEZONES",
            context={"match_ids": sorted(c[3].id for c in counted if c[0].utcoffset() is not None)},
        )

    counted.sort(key=lambda c: (c[0], c[1], c[2]))
    return [
        _Result(
            match_id=m.id,
            kickoff=m.kickoff,
            home_team_id=m.home_team_id,
            away_team_id=m.away_team_id,
            home_score=m.home_score,
            away_score=m.away_score,
        )
        for _, _, _, m in counted
    ]


def _criterion_value(tally: _Tally, criterion: TieBreaker, scheme: PointsScheme):
    """Sort value for a simple criterion; larger is better."""
    t = tally.total
    if criterion == TieBreaker.POINTS:
        return scheme.points_for(t.won, t.drawn, t.lost)
    if criterion == TieBreaker.GOAL_DIFFERENCE:
        return tally.goal_difference
    if criterion == TieBreaker.GOALS_FOR:
        return t.goals_for
    if criterion == TieBreaker.GOALS_AGAINST:
        return -t.goals_against
    if criterion == TieBreaker.WINS:
        return t.won
    return tally.away.goals_for  # AWAY_GOALS


def _head_to_head_values(
    group: Sequence[_Tally], results: Sequence[_Result], scheme: PointsScheme
) -> Dict[str, Tuple[int, int]]:
    """(points, goal difference) per team, from matches among *group* only."""
    ids = {t.team_id for t in group}
    mini: Dict[str, _Split] = {team_id: _Split() for team_id in ids}
    for r in results:
        if r.home_team_id in ids and r.away_team_id in ids:
            mini[r.home_team_id].record(r.home_score, r.away_score)
            mini[r.away_team_id].record(r.away_score, r.home_score)
    return {
        team_id: (
            scheme.points_for(s.won, s.drawn, s.lost),
            s.goals_for - s.goals_against,
        )
        for team_id, s in mini.items()
    }


def _order(
    group: List[_Tally],
    criteria: Sequence[TieBreaker],
    results: Sequence[_Result],
    scheme: PointsScheme,
) -> List[_Tally]:
    """Split *group* by the first criterion and recurse into each tied block."""
    if len(group) <= 1:
        return list(group)
    if not criteria:
        return sorted(group, key=lambda t: t.team_id)

    criterion, remaining = criteria[0], criteria[1:]
    if criterion == TieBreaker.HEAD_TO_HEAD:
        values = _head_to_head_values(group, results, scheme)
    else:
        values = {t.team_id: _criterion_value(t, criterion, scheme) for t in group}

    ranked = sorted(group, key=lambda t: values[t.team_id], reverse=True)
    ordered: List[_Tally] = []
    for _, tied in groupby(ranked, key=lambda t: values[t.team_id]):
        ordered.extend(_order(list(tied), remaining, results, scheme))
    return ordered


def _to_record(split: _Split) -> VenueRecord:
    return VenueRecord(
        played=split.played,
        won=split.won,
        drawn=split.drawn,
        lost=split.lost,
        goals_for=split.goals_for,
        goals_against=split.goals_against,
    )


def _recent_entry(r: _Result, team_id: str, known: Dict[str, Team]) -> RecentMatch:
    is_home = r.home_team_id == team_id
    scored, conceded = (r.home_score, r.away_score) if is_home else (r.away_score, r.home_score)
    opponent_id = r.away_team_id if is_home else r.home_team_id
    return RecentMatch(
        match_id=r.match_id,
        opponent_id=opponent_id,
        opponent_name=known[opponent_id].name,
        home_away="home" if is_home else "away",
        result=_outcome(scored, conceded),
        score=f"{scored}-{conceded}",
        kickoff=r.kickoff,
    )


def _window(name: str, value: Optional[int], default: int) -> int:
    window = default if value is None else value
    if window < 0:
        raise ValidationError(f"{name} must be >= 0, got {window}", code="INVALID_WINDOW")
    return window


def compute_standings(
    matches: Sequence[Fixture],
    teams: Sequence[Team],
    points_scheme: Optional[PointsScheme] = None,
    tie_breakers: Optional[Sequence[TieBreaker]] = None,
    form_window: Optional[int] = None,
    recent_window: Optional[int] = None,
    include_live: bool = False,
) -> List[StandingsRow]:
    """
    Compute a fully ordered league table.

    Args:
        matches: Fixtures of one group/league; only completed ones count
        teams: The known roster; every team gets a row, even without matches
        points_scheme: Points per win/draw/loss (default 3/1/0)
        tie_breakers: Ordered criteria; team id is always appended last
        form_window: Number of recent results kept in ``form`` (default 5)
        recent_window: Number of matches kept in ``recent_matches`` (default 5)
        include_live: Also count LIVE matches at their current score

    Raises:
        ConfigurationError: unsupported tie-breaker
        ValidationError: duplicate roster ids, a team playing itself, a match
            counted twice, kickoffs mixing naive and aware datetimes
        IntegrityError: a counted match references a team not in *teams*
    """
    scheme = points_scheme or PointsScheme()
    criteria = _tie_breaker_chain(tie_breakers)
    form_size = _window("form_window", form_window, config.FORM_WINDOW)
    recent_size = _window("recent_window", recent_window, config.RECENT_MATCHES_WINDOW)

    known = _known_teams(teams)
    results = _counted_results(matches, known, include_live=include_live)

    tallies: Dict[str, _Tally] = {
        team_id: _Tally(team_id=team_id, team_name=team.name) for team_id, team in known.items()
    }
    for r in results:
        home, away = tallies[r.home_team_id], tallies[r.away_team_id]
        home.total.record(r.home_score, r.away_score)
        home.home.record(r.home_score, r.away_score)
        away.total.record(r.away_score, r.home_score)
        away.away.record(r.away_score, r.home_score)
        home.form.append(_outcome(r.home_score, r.away_score))
        away.form.append(_outcome(r.away_score, r.home_score))
        home.recent.append(_recent_entry(r, home.team_id, known))
        away.recent.append(_recent_entry(r, away.team_id, known))

    ordered = _order(list(tallies.values()), criteria, results, scheme)

    rows: List[StandingsRow] = []
    for position, tally in enumerate(ordered, start=1):
        t = tally.total
        rows.append(
            StandingsRow(
                team_id=tally.team_id,
                team_name=tally.team_name,
                position=position,
                played=t.played,
                won=t.won,
                drawn=t.drawn,
                lost=t.lost,
                goals_for=t.goals_for,
                goals_against=t.goals_against,
                goal_difference=tally.goal_difference,
                points=scheme.points_for(t.won, t.drawn, t.lost),
                form=tally.form[-form_size:] if form_size else [],
                home_record=_to_record(tally.home),
                away_record=_to_record(tally.away),
                recent_matches=tally.recent[-recent_size:] if recent_size else [],
            )
        )

    logger.debug(
        "Computed standings for %d teams from %d counted matches%s",
        len(rows),
        len(results),
        " (live included)" if include_live else "",
    )
    return rows


def compute_live_standings(
    matches: Sequence[Fixture],
    live_matches: Sequence[Fixture],
    teams: Sequence[Team],
    points_scheme: Optional[PointsScheme] = None,
    tie_breakers: Optional[Sequence[TieBreaker]] = None,
    form_window: Optional[int] = None,
    recent_window: Optional[int] = None,
) -> List[StandingsRow]:
    """
    Provisional table: completed *matches* plus *live_matches* at their current score.

    Live matches without a score yet are ignored. The same match id must not
    be counted from both sequences.
    """
    return compute_standings(
        list(matches) + list(live_matches),
        teams,
        points_scheme=points_scheme,
        tie_breakers=tie_breakers,
        form_window=form_window,
        recent_window=recent_window,
        include_live=True,
    )
