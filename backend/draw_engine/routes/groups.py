"""
API Routes for the group draw and group-stage results
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from draw_engine.database import get_session
from draw_engine.routes.deps import Caller, get_caller, http_error
from draw_engine.services import draw_service
from draw_engine.services.errors import DrawEngineError

router = APIRouter()


# ============================================================================
# Request / Response Models
# ============================================================================


class ExecuteDrawRequest(BaseModel):
    number_of_groups: int = Field(..., ge=1)
    draw_seed: Optional[str] = None


class CreateGroupRequest(BaseModel):
    group_letter: str
    team_ids: List[str]

    @field_validator("group_letter")
    @classmethod
    def normalize_letter(cls, v):
        if not v or not v.strip():
            raise ValueError("group_letter is required")
        return v.strip().upper()


class GroupMatchCreate(BaseModel):
    team1_id: str
    team2_id: str
    team1_score: int = Field(..., ge=0)
    team2_score: int = Field(..., ge=0)


class GroupMemberResponse(BaseModel):
    club_id: str
    club_name: Optional[str] = None
    registration_id: Optional[int] = None
    status: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class GroupResponse(BaseModel):
    id: int
    tournament_id: int
    group_letter: str
    group_order: int
    teams: List[GroupMemberResponse]

    model_config = ConfigDict(from_attributes=True)


class DrawGroupResponse(BaseModel):
    """A freshly drawn group (member ids only)."""

    id: int
    tournament_id: int
    group_letter: str
    group_order: int
    teams: List[str]

    model_config = ConfigDict(from_attributes=True)


class GroupMatchResponse(BaseModel):
    id: int
    group_id: int
    team1_id: str
    team2_id: str
    team1_score: Optional[int]
    team2_score: Optional[int]
    status: str

    model_config = ConfigDict(from_attributes=True)


class StandingResponse(BaseModel):
    team_id: str
    position: int
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    goal_difference: int
    points: int

    model_config = ConfigDict(from_attributes=True)


class ResetDrawResponse(BaseModel):
    message: str
    groups_deleted: int


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/tournaments/{tournament_id}/draw", response_model=List[DrawGroupResponse], status_code=201)
def execute_draw(
    tournament_id: int,
    body: ExecuteDrawRequest,
    caller: Caller = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """
    Execute the random group draw.

    Approved teams are shuffled (seeded, reproducible from the stored draw seed)
    and cut into groups A, B, C, ... The whole draw commits atomically.
    """
    try:
        return draw_service.execute_draw(
            session,
            tournament_id,
            caller.user_id,
            caller.role,
            body.number_of_groups,
            draw_seed=body.draw_seed,
        )
    except DrawEngineError as e:
        raise http_error(e)


@router.delete("/tournaments/{tournament_id}/draw", response_model=ResetDrawResponse)
def reset_draw(
    tournament_id: int,
    caller: Caller = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Reset the draw and clear all groups"""
    try:
        deleted = draw_service.reset_draw(session, tournament_id, caller.user_id, caller.role)
    except DrawEngineError as e:
        raise http_error(e)
    return ResetDrawResponse(message="Draw reset", groups_deleted=deleted)


@router.get("/tournaments/{tournament_id}/groups", response_model=List[GroupResponse])
def get_groups(tournament_id: int, session: Session = Depends(get_session)):
    """Get all groups and team assignments"""
    return draw_service.get_groups(session, tournament_id)


@router.post("/tournaments/{tournament_id}/groups", response_model=DrawGroupResponse, status_code=201)
def create_group(
    tournament_id: int,
    body: CreateGroupRequest,
    caller: Caller = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Create a group by hand"""
    try:
        return draw_service.create_group(
            session, tournament_id, caller.user_id, caller.role, body.group_letter, body.team_ids
        )
    except DrawEngineError as e:
        raise http_error(e)


@router.post(
    "/tournaments/{tournament_id}/groups/{group_id}/matches",
    response_model=GroupMatchResponse,
    status_code=201,
)
def record_group_match(
    tournament_id: int,
    group_id: int,
    body: GroupMatchCreate,
    caller: Caller = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Record a completed group-stage result"""
    try:
        return draw_service.record_group_match(
            session,
            tournament_id,
            caller.user_id,
            caller.role,
            group_id,
            body.team1_id,
            body.team2_id,
            body.team1_score,
            body.team2_score,
        )
    except DrawEngineError as e:
        raise http_error(e)


@router.get("/tournaments/{tournament_id}/groups/{group_id}/standings", response_model=List[StandingResponse])
def get_group_standings(tournament_id: int, group_id: int, session: Session = Depends(get_session)):
    """Current group table (recomputed from results on every call)"""
    try:
        return draw_service.get_group_standings(session, tournament_id, group_id)
    except DrawEngineError as e:
        raise http_error(e)