from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    COMPLETED = "COMPLETED"
    POSTPONED = "POSTPONED"
    CANCELLED = "CANCELLED"


class Fixture(BaseModel):
    id: str
    round_number: int
    round_name: Optional[str] = None
    leg: int = 1
    group: Optional[str] = None

    # Null only for a knockout slot still waiting on an earlier result
    home_team_id: Optional[str] = None
    away_team_id: Optional[str] = None

    kickoff: datetime
    venue: Optional[str] = None

    status: MatchStatus = MatchStatus.SCHEDULED
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    @model_validator(mode="after")
    def validate_scores(self):
        for score in (self.home_score, self.away_score):
            if score is not None and score < 0:
                raise ValueError("scores must be >= 0")
        return self

    @property
    def has_result(self) -> bool:
        """True when the match counts towards a table."""
        return (
            self.status == MatchStatus.COMPLETED
            and self.home_score is not None
            and self.away_score is not None
        )


class Round(BaseModel):
    round_number: int
    leg: int
    name: str
    match_date: date
    fixtures: List[Fixture] = Field(default_factory=list)
