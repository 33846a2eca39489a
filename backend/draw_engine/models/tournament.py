from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from draw_engine.models.group import GroupMatch, TournamentGroup
    from draw_engine.models.registration import Registration


class TournamentStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    organizer_id: str = Field(index=True)
    status: TournamentStatus = Field(default=TournamentStatus.DRAFT, sa_column=Column(String, nullable=False))
    max_teams: int = Field(default=16)
    current_teams: int = Field(default=0)

    # Draw state
    draw_completed: bool = Field(default=False)
    draw_seed: Optional[str] = Field(default=None)

    # Stored bracket (serialized BracketData, see draw_engine.schemas.bracket)
    bracket_data: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    registrations: List["Registration"] = Relationship(back_populates="tournament")
    groups: List["TournamentGroup"] = Relationship(back_populates="tournament")
    group_matches: List["GroupMatch"] = Relationship(back_populates="tournament")
