"""
Engine defaults, overridable through environment variables or a ``.env`` file.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("true", "1", "yes")


DEFAULT_KICKOFF_TIME = os.getenv("ENGINE_DEFAULT_KICKOFF_TIME", "13:00")

POINTS_WIN = _env_int("ENGINE_POINTS_WIN", 3)
POINTS_DRAW = _env_int("ENGINE_POINTS_DRAW", 1)
POINTS_LOSS = _env_int("ENGINE_POINTS_LOSS", 0)

# Number of most recent results kept in a standings row's form guide
FORM_WINDOW = _env_int("ENGINE_FORM_WINDOW", 5)

# Days between consecutive rounds of a generated schedule
ROUND_INTERVAL_DAYS = _env_int("ENGINE_ROUND_INTERVAL_DAYS", 7)

INCLUDE_THIRD_PLACE = _env_bool("ENGINE_INCLUDE_THIRD_PLACE", False)

# Number of most recent matches listed in a standings row
RECENT_MATCHES_WINDOW = _env_int("ENGINE_RECENT_MATCHES_WINDOW", 5)
