"""
Bracket data structures.

BracketData is a tagged union keyed by ``type``: each tournament format has its
own model carrying only the fields that format uses. Matches live in an arena
keyed by integer ``id`` (1-based, unique within one bracket); advancement links
(``next_match_id`` / ``loser_next_match_id``) are keys into that arena.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class BracketType(str, Enum):
    GROUPS_ONLY = "GROUPS_ONLY"
    SINGLE_ELIMINATION = "SINGLE_ELIMINATION"
    DOUBLE_ELIMINATION = "DOUBLE_ELIMINATION"
    ROUND_ROBIN = "ROUND_ROBIN"
    GROUPS_PLUS_KNOCKOUT = "GROUPS_PLUS_KNOCKOUT"


class MatchStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


SlotNumber = Literal[1, 2]


class Match(BaseModel):
    id: int
    round: int
    match_number: int
    team1_id: Optional[str] = None
    team2_id: Optional[str] = None
    team1_score: Optional[int] = Field(default=None, ge=0)
    team2_score: Optional[int] = Field(default=None, ge=0)
    status: MatchStatus = MatchStatus.PENDING
    winner_id: Optional[str] = None
    loser_id: Optional[str] = None

    # Winner advancement (single/double elimination)
    next_match_id: Optional[int] = None
    next_match_slot: Optional[SlotNumber] = None

    # Loser advancement (double elimination only)
    loser_next_match_id: Optional[int] = None
    loser_next_match_slot: Optional[SlotNumber] = None


class PlayoffRound(BaseModel):
    round_number: int
    round_name: str
    matches: List[Match] = Field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _BracketBase(BaseModel):
    seed: str
    generated_at: datetime = Field(default_factory=_utcnow)

    def all_matches(self) -> Iterator[Match]:
        """Iterate every match in the bracket arena, in creation order."""
        for playoff_round in getattr(self, "playoff_rounds", None) or []:
            yield from playoff_round.matches
        yield from getattr(self, "matches", None) or []

    def find_match(self, match_id: int) -> Optional[Match]:
        for match in self.all_matches():
            if match.id == match_id:
                return match
        return None


class GroupsOnlyBracket(_BracketBase):
    type: Literal[BracketType.GROUPS_ONLY] = BracketType.GROUPS_ONLY
    group_count: int
    teams_per_group: int


class SingleEliminationBracket(_BracketBase):
    type: Literal[BracketType.SINGLE_ELIMINATION] = BracketType.SINGLE_ELIMINATION
    playoff_rounds: List[PlayoffRound] = Field(default_factory=list)
    third_place_match: bool = False


class DoubleEliminationBracket(_BracketBase):
    type: Literal[BracketType.DOUBLE_ELIMINATION] = BracketType.DOUBLE_ELIMINATION
    playoff_rounds: List[PlayoffRound] = Field(default_factory=list)
    third_place_match: bool = False


class RoundRobinBracket(_BracketBase):
    type: Literal[BracketType.ROUND_ROBIN] = BracketType.ROUND_ROBIN
    matches: List[Match] = Field(default_factory=list)


class GroupsPlusKnockoutBracket(_BracketBase):
    type: Literal[BracketType.GROUPS_PLUS_KNOCKOUT] = BracketType.GROUPS_PLUS_KNOCKOUT
    group_count: int
    teams_per_group: int
    advancing_teams_per_group: int
    playoff_rounds: List[PlayoffRound] = Field(default_factory=list)
    third_place_match: bool = False


BracketData = Annotated[
    Union[
        GroupsOnlyBracket,
        SingleEliminationBracket,
        DoubleEliminationBracket,
        RoundRobinBracket,
        GroupsPlusKnockoutBracket,
    ],
    Field(discriminator="type"),
]

bracket_adapter: TypeAdapter = TypeAdapter(BracketData)


def load_bracket(raw: dict) -> BracketData:
    """Rebuild a BracketData from its stored JSON form."""
    return bracket_adapter.validate_python(raw)


def dump_bracket(bracket: BracketData) -> dict:
    """Serialize a BracketData for JSON storage."""
    return bracket.model_dump(mode="json")


class BracketOptions(BaseModel):
    group_count: Optional[int] = Field(default=None, ge=1)
    teams_per_group: Optional[int] = Field(default=None, ge=1)
    advancing_per_group: int = Field(default=2, ge=1)
    third_place_match: bool = False
    seed: Optional[str] = None
