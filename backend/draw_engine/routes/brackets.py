"""
API Routes for bracket generation, knockout seeding and bracket results
"""

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from draw_engine.database import get_session
from draw_engine.routes.deps import Caller, get_caller, http_error
from draw_engine.routes.groups import GroupResponse, StandingResponse
from draw_engine.schemas.bracket import BracketData, BracketOptions, BracketType, MatchStatus
from draw_engine.services import draw_service
from draw_engine.services.bracket_generator import generate_bracket
from draw_engine.services.errors import DrawEngineError

router = APIRouter()


# ============================================================================
# Request / Response Models
# ============================================================================


class BracketGenerateRequest(BaseModel):
    type: BracketType
    options: BracketOptions = Field(default_factory=BracketOptions)


class BracketPreviewRequest(BracketGenerateRequest):
    team_count: int = Field(..., ge=2)


class SeedKnockoutRequest(BaseModel):
    advancing_per_group: Optional[int] = Field(default=None, ge=1)


class MatchUpdate(BaseModel):
    team1_id: Optional[str] = None
    team2_id: Optional[str] = None
    team1_score: Optional[int] = Field(default=None, ge=0)
    team2_score: Optional[int] = Field(default=None, ge=0)
    status: Optional[MatchStatus] = None


class TournamentSummary(BaseModel):
    id: int
    name: str
    organizer_id: str
    status: str
    draw_completed: bool
    draw_seed: Optional[str]
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BracketViewResponse(BaseModel):
    tournament: TournamentSummary
    draw_completed: bool
    groups: List[GroupResponse]
    standings: Dict[str, List[StandingResponse]]
    bracket: Optional[BracketData] = None


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/bracket/preview", response_model=BracketData)
def preview_bracket(body: BracketPreviewRequest):
    """Build a bracket without storing it"""
    return generate_bracket(body.type, body.team_count, body.options)


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketViewResponse)
def get_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Get the full bracket: groups, live standings and the stored knockout bracket"""
    try:
        view = draw_service.get_bracket(session, tournament_id)
    except DrawEngineError as e:
        raise http_error(e)

    return BracketViewResponse(
        tournament=TournamentSummary.model_validate(view.tournament, from_attributes=True),
        draw_completed=view.draw_completed,
        groups=[GroupResponse.model_validate(group, from_attributes=True) for group in view.groups],
        standings={
            letter: [StandingResponse.model_validate(row, from_attributes=True) for row in rows]
            for letter, rows in view.standings.items()
        },
        bracket=view.bracket,
    )


@router.post("/tournaments/{tournament_id}/bracket", response_model=BracketData, status_code=201)
def generate_tournament_bracket(
    tournament_id: int,
    body: BracketGenerateRequest,
    caller: Caller = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Generate and store the bracket for the tournament's approved teams"""
    try:
        return draw_service.generate_tournament_bracket(
            session, tournament_id, caller.user_id, caller.role, body.type, body.options
        )
    except DrawEngineError as e:
        raise http_error(e)


@router.post("/tournaments/{tournament_id}/bracket/seed", response_model=BracketData)
def seed_knockout(
    tournament_id: int,
    body: Optional[SeedKnockoutRequest] = None,
    caller: Caller = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Seed group qualifiers into the first knockout round and advance byes"""
    try:
        return draw_service.seed_knockout(
            session, tournament_id, caller.user_id, caller.role, body.advancing_per_group if body else None
        )
    except DrawEngineError as e:
        raise http_error(e)


@router.patch("/tournaments/{tournament_id}/bracket/matches/{match_id}", response_model=BracketData)
def update_bracket_match(
    tournament_id: int,
    match_id: int,
    body: MatchUpdate,
    caller: Caller = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Adjust a bracket match (teams, scores, status); completed results advance automatically"""
    try:
        return draw_service.update_bracket_match(
            session,
            tournament_id,
            caller.user_id,
            caller.role,
            match_id,
            team1_score=body.team1_score,
            team2_score=body.team2_score,
            status=body.status,
            team1_id=body.team1_id,
            team2_id=body.team2_id,
        )
    except DrawEngineError as e:
        raise http_error(e)
