from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from draw_engine.models.tournament import Tournament


class RegistrationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class Registration(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "club_id", name="uq_tournament_club"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    club_id: str
    club_name: str
    status: RegistrationStatus = Field(default=RegistrationStatus.PENDING, sa_column=Column(String, nullable=False))
    group_assignment: Optional[str] = Field(default=None)  # Group letter once drawn
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="registrations")
