from datetime import date

import pytest

from competition_engine.models.team import Team
from competition_engine.utils.calendar import FixedCalendar

# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)


@pytest.fixture(name="calendar")
def calendar_fixture():
    """Calendar pinned to a Monday so "today" never depends on the test run date."""
    return FixedCalendar(MONDAY)


@pytest.fixture(name="four_teams")
def four_teams_fixture():
    return [Team(id=tid, name=f"Team {tid}") for tid in ("A", "B", "C", "D")]
