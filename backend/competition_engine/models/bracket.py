from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

SlotSide = Literal["home", "away"]


class NodeState(str, Enum):
    UNRESOLVED = "UNRESOLVED"
    RESOLVED = "RESOLVED"
    BYE = "BYE"


class BracketStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"


class SlotSource(str, Enum):
    SEED = "SEED"
    WINNER = "WINNER"
    LOSER = "LOSER"


class BracketSlot(BaseModel):
    """One side of a bracket node: an initial seed, or the outcome of a prior node."""

    team_id: Optional[str] = None
    seed: Optional[int] = None
    source: SlotSource = SlotSource.SEED
    source_node_id: Optional[str] = None
    is_bye: bool = False

    @property
    def is_known(self) -> bool:
        return self.team_id is not None


class BracketNode(BaseModel):
    id: str
    round_number: int
    round_label: str
    slot_index: int  # 0-based position within the round

    home: BracketSlot = Field(default_factory=BracketSlot)
    away: BracketSlot = Field(default_factory=BracketSlot)

    state: NodeState = NodeState.UNRESOLVED
    is_bye: bool = False
    team_id: Optional[str] = None  # winner, once resolved
    loser_team_id: Optional[str] = None
    is_third_place: bool = False

    # Where this node's winner (and, for semifinals, loser) goes next
    next_node_id: Optional[str] = None
    next_slot: Optional[SlotSide] = None
    loser_next_node_id: Optional[str] = None
    loser_next_slot: Optional[SlotSide] = None

    def slot(self, side: SlotSide) -> BracketSlot:
        return self.home if side == "home" else self.away

    @property
    def is_resolved(self) -> bool:
        return self.state in (NodeState.RESOLVED, NodeState.BYE)

    @property
    def participants(self) -> List[str]:
        return [s.team_id for s in (self.home, self.away) if s.team_id is not None]


class Bracket(BaseModel):
    size: int  # entrants after padding, a power of two
    team_count: int
    include_third_place: bool = False
    nodes: List[BracketNode] = Field(default_factory=list)
    status: BracketStatus = BracketStatus.IN_PROGRESS
    champion_id: Optional[str] = None
    version: int = 0

    def node(self, node_id: str) -> Optional[BracketNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def nodes_by_id(self) -> Dict[str, BracketNode]:
        return {n.id: n for n in self.nodes}

    @property
    def round_count(self) -> int:
        return max((n.round_number for n in self.nodes if not n.is_third_place), default=0)

    @property
    def final(self) -> Optional[BracketNode]:
        finals = [n for n in self.nodes if n.round_number == self.round_count and not n.is_third_place]
        return finals[0] if finals else None

    @property
    def third_place(self) -> Optional[BracketNode]:
        for n in self.nodes:
            if n.is_third_place:
                return n
        return None

    def round(self, round_number: int) -> List[BracketNode]:
        return sorted(
            (n for n in self.nodes if n.round_number == round_number and not n.is_third_place),
            key=lambda n: n.slot_index,
        )
