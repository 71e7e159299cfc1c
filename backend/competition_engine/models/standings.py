from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from competition_engine import config


class PointsScheme(BaseModel):
    win: int = Field(default_factory=lambda: config.POINTS_WIN)
    draw: int = Field(default_factory=lambda: config.POINTS_DRAW)
    loss: int = Field(default_factory=lambda: config.POINTS_LOSS)

    def points_for(self, won: int, drawn: int, lost: int) -> int:
        return self.win * won + self.draw * drawn + self.loss * lost


class TieBreaker(str, Enum):
    POINTS = "points"
    GOAL_DIFFERENCE = "goal_difference"
    GOALS_FOR = "goals_for"
    GOALS_AGAINST = "goals_against"  # fewer is better
    WINS = "wins"
    AWAY_GOALS = "away_goals"
    HEAD_TO_HEAD = "head_to_head"


DEFAULT_TIE_BREAKERS: List[TieBreaker] = [
    TieBreaker.POINTS,
    TieBreaker.GOAL_DIFFERENCE,
    TieBreaker.GOALS_FOR,
    TieBreaker.HEAD_TO_HEAD,
]


class VenueRecord(BaseModel):
    """Home-only or away-only split of a team's results."""

    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0


class RecentMatch(BaseModel):
    """One counted match from a team's point of view."""

    match_id: str
    opponent_id: str
    opponent_name: Optional[str] = None
    home_away: Literal["home", "away"]
    result: Literal["W", "D", "L"]
    score: str  # team's goals first, e.g. "2-1"
    kickoff: datetime


class StandingsRow(BaseModel):
    team_id: str
    team_name: Optional[str] = None
    position: int
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0
    form: List[str] = Field(default_factory=list)  # oldest first, "W" | "D" | "L"
    home_record: VenueRecord = Field(default_factory=VenueRecord)
    away_record: VenueRecord = Field(default_factory=VenueRecord)
    recent_matches: List[RecentMatch] = Field(default_factory=list)  # oldest first

    @property
    def form_string(self) -> str:
        return "".join(self.form)
