"""
Competition engine: round-robin fixtures, league standings and knockout brackets.
"""

from competition_engine.exceptions import (
    CompetitionError,
    ConfigurationError,
    ConflictError,
    IntegrityError,
    StateError,
    ValidationError,
)
from competition_engine.models.bracket import Bracket, BracketNode, BracketSlot, BracketStatus, NodeState
from competition_engine.models.fixture import Fixture, MatchStatus, Round
from competition_engine.models.standings import PointsScheme, RecentMatch, StandingsRow, TieBreaker
from competition_engine.models.team import Team
from competition_engine.services.bracket_builder import (
    advance,
    advance_with_score,
    build_bracket,
    playable_nodes,
    reset_node,
)
from competition_engine.services.fixture_generator import (
    fixture_statistics,
    generate_fixtures,
    generate_group_stage,
    group_rounds,
    validate_fixtures,
)
from competition_engine.services.qualification import seed_qualifiers
from competition_engine.services.standings_engine import compute_live_standings, compute_standings

__all__ = [
    "Bracket",
    "BracketNode",
    "BracketSlot",
    "BracketStatus",
    "CompetitionError",
    "ConfigurationError",
    "ConflictError",
    "Fixture",
    "IntegrityError",
    "MatchStatus",
    "NodeState",
    "PointsScheme",
    "RecentMatch",
    "Round",
    "StandingsRow",
    "StateError",
    "Team",
    "TieBreaker",
    "ValidationError",
    "advance",
    "advance_with_score",
    "build_bracket",
    "compute_live_standings",
    "compute_standings",
    "fixture_statistics",
    "generate_fixtures",
    "generate_group_stage",
    "group_rounds",
    "playable_nodes",
    "reset_node",
    "seed_qualifiers",
    "validate_fixtures",
]
