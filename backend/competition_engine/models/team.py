from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Team(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    seed: Optional[int] = None  # 1-based (1=highest); informational only

    @field_validator("id")
    @classmethod
    def validate_id(cls, v):
        if not v or not v.strip():
            raise ValueError("team id must be a non-empty string")
        return v
