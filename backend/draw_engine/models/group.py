"""
Group-stage tables.

TournamentGroup holds the drawn partition (one row per group letter).
GroupMatch holds recorded group-stage results; standings are never stored,
they are recomputed from these rows on every query.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, CheckConstraint
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from draw_engine.models.tournament import Tournament


class TournamentGroup(SQLModel, table=True):
    __tablename__ = "tournament_group"

    __table_args__ = (SAUniqueConstraint("tournament_id", "group_letter", name="uq_tournament_group_letter"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    group_letter: str  # "A".."H"
    teams: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))  # club ids, draw order
    group_order: int = Field(default=0)  # 0-based creation order
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="groups")
    matches: List["GroupMatch"] = Relationship(
        back_populates="group", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class GroupMatch(SQLModel, table=True):
    __tablename__ = "group_match"

    __table_args__ = (CheckConstraint("team1_id <> team2_id", name="ck_group_match_distinct_teams"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    group_id: int = Field(foreign_key="tournament_group.id", index=True)
    team1_id: str
    team2_id: str
    team1_score: Optional[int] = Field(default=None)
    team2_score: Optional[int] = Field(default=None)
    status: str = Field(default="COMPLETED")  # PENDING | IN_PROGRESS | COMPLETED
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="group_matches")
    group: "TournamentGroup" = Relationship(back_populates="matches")
