"""
Draw Service: group draw orchestration and stored bracket management.

This is the only part of the engine that touches the database. It validates
tournament/registration state, runs the seeded random group draw, stores the
generated bracket on the tournament and feeds group results through the
standings calculator and the seeding assigner.

Multi-row write operations run inside database.atomic(): every row is staged
on the session and committed once; any failure rolls the whole operation back.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from math import ceil
from typing import Dict, List, Optional, Sequence

from sqlalchemy import update
from sqlmodel import Session, select

from draw_engine.database import atomic
from draw_engine.models.group import GroupMatch, TournamentGroup
from draw_engine.models.registration import Registration, RegistrationStatus
from draw_engine.models.tournament import Tournament, TournamentStatus
from draw_engine.schemas.bracket import (
    BracketData,
    BracketOptions,
    BracketType,
    MatchStatus,
    dump_bracket,
    load_bracket,
)
from draw_engine.services.advancement import apply_match_result, has_played_matches, resolve_byes
from draw_engine.services.bracket_generator import generate_bracket, generate_seed
from draw_engine.services.errors import (
    BracketNotGeneratedError,
    DrawAlreadyCompletedError,
    DrawPermissionError,
    GroupNotFoundError,
    InsufficientTeamsError,
    InvalidDrawParameterError,
    InvalidTournamentStateError,
    TournamentNotFoundError,
)
from draw_engine.services.seeding import seed_teams_into_bracket
from draw_engine.services.standings import GroupStanding, calculate_group_standings

logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"
GROUP_LETTERS = ("A", "B", "C", "D", "E", "F", "G", "H")
MIN_DRAW_TEAMS = 2
DRAWABLE_STATUSES = frozenset({TournamentStatus.PUBLISHED, TournamentStatus.ONGOING})
GROUP_FORMATS = frozenset({BracketType.GROUPS_ONLY, BracketType.GROUPS_PLUS_KNOCKOUT})


# ============================================================================
# Read models
# ============================================================================


@dataclass
class GroupMember:
    club_id: str
    club_name: Optional[str] = None
    registration_id: Optional[int] = None
    status: Optional[str] = None


@dataclass
class GroupView:
    id: int
    tournament_id: int
    group_letter: str
    group_order: int
    teams: List[GroupMember] = field(default_factory=list)


@dataclass
class BracketView:
    tournament: Tournament
    draw_completed: bool
    groups: List[GroupView]
    standings: Dict[str, List[GroupStanding]]
    bracket: Optional[BracketData] = None


# ============================================================================
# Guards
# ============================================================================


def _get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise TournamentNotFoundError(f"Tournament {tournament_id} not found")
    return tournament


def _check_organizer(tournament: Tournament, user_id: str, user_role: Optional[str]) -> None:
    if (user_role or "").upper() == ADMIN_ROLE:
        return
    if tournament.organizer_id != user_id:
        raise DrawPermissionError("Only the tournament organizer or an administrator can manage the draw")


def _approved_registrations(session: Session, tournament_id: int) -> List[Registration]:
    return list(
        session.exec(
            select(Registration)
            .where(
                Registration.tournament_id == tournament_id,
                Registration.status == RegistrationStatus.APPROVED,
            )
            .order_by(Registration.id)
        ).all()
    )


def _tournament_groups(session: Session, tournament_id: int) -> List[TournamentGroup]:
    return list(
        session.exec(
            select(TournamentGroup)
            .where(TournamentGroup.tournament_id == tournament_id)
            .order_by(TournamentGroup.group_order, TournamentGroup.id)
        ).all()
    )


def _get_group(session: Session, tournament_id: int, group_id: int) -> TournamentGroup:
    group = session.get(TournamentGroup, group_id)
    if not group or group.tournament_id != tournament_id:
        raise GroupNotFoundError(f"Group {group_id} not found in tournament {tournament_id}")
    return group


def _stored_bracket(tournament: Tournament) -> BracketData:
    if not tournament.bracket_data:
        raise BracketNotGeneratedError(f"Tournament {tournament.id} has no generated bracket")
    return load_bracket(tournament.bracket_data)


def _store_bracket(tournament: Tournament, bracket: BracketData) -> None:
    tournament.bracket_data = dump_bracket(bracket)
    tournament.updated_at = datetime.utcnow()


# ============================================================================
# Draw
# ============================================================================


def partition_teams(team_ids: Sequence[str], number_of_groups: int, draw_seed: str) -> List[List[str]]:
    """
    Shuffle team_ids with a PRNG seeded by draw_seed and cut them into groups.

    Group size is ceil(n / number_of_groups); trailing groups that would be
    empty are dropped. The same seed and input order always give the same
    partition.
    """
    shuffled = list(team_ids)
    random.Random(draw_seed).shuffle(shuffled)
    size = ceil(len(shuffled) / number_of_groups)
    groups = [shuffled[i * size : (i + 1) * size] for i in range(number_of_groups)]
    return [members for members in groups if members]


def _delete_groups(session: Session, tournament_id: int) -> int:
    groups = _tournament_groups(session, tournament_id)
    for group in groups:
        session.delete(group)  # cascades to GroupMatch rows
    # letters are reused by the next draw; deletes must hit the table first
    session.flush()
    return len(groups)


def execute_draw(
    session: Session,
    tournament_id: int,
    user_id: str,
    user_role: Optional[str],
    number_of_groups: int,
    draw_seed: Optional[str] = None,
) -> List[TournamentGroup]:
    """
    Randomly partition the approved teams of a tournament into groups.

    Guards (checked before any write, each a distinct error): tournament
    exists, caller may manage it, draw not done yet, tournament is PUBLISHED
    or ONGOING, at least two approved teams, and a group count between 1 and
    min(approved teams, 8).

    The completion flag is flipped with a conditional UPDATE so two concurrent
    draws cannot both commit.
    """
    tournament = _get_tournament(session, tournament_id)
    _check_organizer(tournament, user_id, user_role)

    if tournament.draw_completed:
        raise DrawAlreadyCompletedError(f"Draw already completed for tournament {tournament_id}")
    if TournamentStatus(tournament.status) not in DRAWABLE_STATUSES:
        raise InvalidTournamentStateError(
            f"Draw requires a PUBLISHED or ONGOING tournament, got {tournament.status}"
        )

    approved = _approved_registrations(session, tournament_id)
    if len(approved) < MIN_DRAW_TEAMS:
        raise InsufficientTeamsError(
            f"At least {MIN_DRAW_TEAMS} approved teams are required for the draw, got {len(approved)}"
        )
    if number_of_groups < 1 or number_of_groups > len(approved):
        raise InvalidDrawParameterError(
            f"number_of_groups must be between 1 and {len(approved)}, got {number_of_groups}"
        )
    if number_of_groups > len(GROUP_LETTERS):
        raise InvalidDrawParameterError(
            f"number_of_groups cannot exceed {len(GROUP_LETTERS)}, got {number_of_groups}"
        )

    draw_seed = draw_seed or generate_seed()
    by_club = {registration.club_id: registration for registration in approved}

    with atomic(session):
        _delete_groups(session, tournament_id)

        groups: List[TournamentGroup] = []
        for order, members in enumerate(partition_teams(list(by_club), number_of_groups, draw_seed)):
            letter = GROUP_LETTERS[order]
            group = TournamentGroup(
                tournament_id=tournament_id,
                group_letter=letter,
                teams=members,
                group_order=order,
            )
            session.add(group)
            groups.append(group)
            for club_id in members:
                registration = by_club[club_id]
                registration.group_assignment = letter
                session.add(registration)

        result = session.execute(
            update(Tournament)
            .where(Tournament.id == tournament_id, Tournament.draw_completed == False)  # noqa: E712
            .values(draw_completed=True, draw_seed=draw_seed, updated_at=datetime.utcnow())
        )
        if result.rowcount != 1:
            raise DrawAlreadyCompletedError(f"Draw already completed for tournament {tournament_id}")

    for group in groups:
        session.refresh(group)

    logger.info(
        "Draw completed for tournament %d: %d teams into %d groups (seed=%s)",
        tournament_id,
        len(approved),
        len(groups),
        draw_seed,
    )
    return groups


def reset_draw(session: Session, tournament_id: int, user_id: str, user_role: Optional[str]) -> int:
    """
    Undo a draw: delete all groups (and their results), clear group labels and
    the draw flag/seed. Registration approval state is left untouched. A stored
    group-based bracket is cleared with the groups it was built on.

    Returns the number of groups deleted.
    """
    tournament = _get_tournament(session, tournament_id)
    _check_organizer(tournament, user_id, user_role)

    with atomic(session):
        deleted = _delete_groups(session, tournament_id)

        registrations = session.exec(
            select(Registration).where(Registration.tournament_id == tournament_id)
        ).all()
        for registration in registrations:
            if registration.group_assignment is not None:
                registration.group_assignment = None
                session.add(registration)

        if tournament.bracket_data and BracketType(tournament.bracket_data["type"]) in GROUP_FORMATS:
            tournament.bracket_data = None
        tournament.draw_completed = False
        tournament.draw_seed = None
        tournament.updated_at = datetime.utcnow()
        session.add(tournament)

    logger.info("Draw reset for tournament %d: %d groups deleted", tournament_id, deleted)
    return deleted


def create_group(
    session: Session,
    tournament_id: int,
    user_id: str,
    user_role: Optional[str],
    group_letter: str,
    team_ids: Sequence[str],
) -> TournamentGroup:
    """Manually add one group of approved teams that are not yet in a group."""
    tournament = _get_tournament(session, tournament_id)
    _check_organizer(tournament, user_id, user_role)

    letter = (group_letter or "").strip().upper()
    if letter not in GROUP_LETTERS:
        raise InvalidDrawParameterError(f"group_letter must be one of {', '.join(GROUP_LETTERS)}, got {group_letter!r}")
    if not team_ids:
        raise InvalidDrawParameterError("A group needs at least one team")
    if len(set(team_ids)) != len(team_ids):
        raise InvalidDrawParameterError("A team cannot appear twice in a group")

    existing = _tournament_groups(session, tournament_id)
    if any(group.group_letter == letter for group in existing):
        raise InvalidDrawParameterError(f"Group {letter} already exists")

    approved = {registration.club_id: registration for registration in _approved_registrations(session, tournament_id)}
    grouped = {club_id for group in existing for club_id in group.teams}
    for club_id in team_ids:
        if club_id not in approved:
            raise InvalidDrawParameterError(f"Team {club_id} has no approved registration")
        if club_id in grouped:
            raise InvalidDrawParameterError(f"Team {club_id} is already in a group")

    group = TournamentGroup(
        tournament_id=tournament_id,
        group_letter=letter,
        teams=list(team_ids),
        group_order=max((g.group_order for g in existing), default=-1) + 1,
    )
    with atomic(session):
        session.add(group)
        for club_id in team_ids:
            approved[club_id].group_assignment = letter
            session.add(approved[club_id])
    session.refresh(group)

    logger.info("Group %s created for tournament %d with %d teams", letter, tournament_id, len(team_ids))
    return group


# ============================================================================
# Queries
# ============================================================================


def _group_view(group: TournamentGroup, registrations: Dict[str, Registration]) -> GroupView:
    members = []
    for club_id in group.teams:
        registration = registrations.get(club_id)
        if registration is None:
            members.append(GroupMember(club_id=club_id))
        else:
            members.append(
                GroupMember(
                    club_id=club_id,
                    club_name=registration.club_name,
                    registration_id=registration.id,
                    status=getattr(registration.status, "value", registration.status),
                )
            )
    return GroupView(
        id=group.id,
        tournament_id=group.tournament_id,
        group_letter=group.group_letter,
        group_order=group.group_order,
        teams=members,
    )


def get_groups(session: Session, tournament_id: int) -> List[GroupView]:
    """Groups of a tournament in creation order, members resolved to their registrations."""
    groups = _tournament_groups(session, tournament_id)
    if not groups:
        return []
    registrations = {
        registration.club_id: registration
        for registration in session.exec(
            select(Registration).where(Registration.tournament_id == tournament_id)
        ).all()
    }
    return [_group_view(group, registrations) for group in groups]


def _standings_for(session: Session, group: TournamentGroup) -> List[GroupStanding]:
    matches = session.exec(
        select(GroupMatch).where(GroupMatch.group_id == group.id).order_by(GroupMatch.id)
    ).all()
    return calculate_group_standings(group.teams, matches)


def get_group_standings(session: Session, tournament_id: int, group_id: int) -> List[GroupStanding]:
    _get_tournament(session, tournament_id)
    return _standings_for(session, _get_group(session, tournament_id, group_id))


def standings_by_group(session: Session, tournament_id: int) -> Dict[str, List[GroupStanding]]:
    """Current standings of every group, keyed by group letter."""
    return {
        group.group_letter: _standings_for(session, group)
        for group in _tournament_groups(session, tournament_id)
    }


def get_bracket(session: Session, tournament_id: int) -> BracketView:
    tournament = _get_tournament(session, tournament_id)
    bracket = load_bracket(tournament.bracket_data) if tournament.bracket_data else None
    return BracketView(
        tournament=tournament,
        draw_completed=tournament.draw_completed,
        groups=get_groups(session, tournament_id),
        standings=standings_by_group(session, tournament_id),
        bracket=bracket,
    )


# ============================================================================
# Results and knockout
# ============================================================================


def record_group_match(
    session: Session,
    tournament_id: int,
    user_id: str,
    user_role: Optional[str],
    group_id: int,
    team1_id: str,
    team2_id: str,
    team1_score: int,
    team2_score: int,
) -> GroupMatch:
    """Store a completed group-stage result between two members of the group."""
    tournament = _get_tournament(session, tournament_id)
    _check_organizer(tournament, user_id, user_role)
    group = _get_group(session, tournament_id, group_id)

    if team1_id == team2_id:
        raise InvalidDrawParameterError("A team cannot play itself")
    for team_id in (team1_id, team2_id):
        if team_id not in group.teams:
            raise InvalidDrawParameterError(f"Team {team_id} is not in group {group.group_letter}")
    if team1_score < 0 or team2_score < 0:
        raise InvalidDrawParameterError("Scores cannot be negative")

    match = GroupMatch(
        tournament_id=tournament_id,
        group_id=group.id,
        team1_id=team1_id,
        team2_id=team2_id,
        team1_score=team1_score,
        team2_score=team2_score,
        status=MatchStatus.COMPLETED.value,
    )
    session.add(match)
    session.commit()
    session.refresh(match)

    logger.info(
        "Group %s result recorded: %s %d-%d %s",
        group.group_letter,
        team1_id,
        team1_score,
        team2_score,
        team2_id,
    )
    return match


def generate_tournament_bracket(
    session: Session,
    tournament_id: int,
    user_id: str,
    user_role: Optional[str],
    bracket_type: BracketType,
    options: Optional[BracketOptions] = None,
) -> BracketData:
    """
    Build a bracket for the approved teams and store it on the tournament.

    For group formats the group count defaults to the number of drawn groups.
    """
    tournament = _get_tournament(session, tournament_id)
    _check_organizer(tournament, user_id, user_role)

    team_count = len(_approved_registrations(session, tournament_id))
    if team_count < MIN_DRAW_TEAMS:
        raise InsufficientTeamsError(
            f"At least {MIN_DRAW_TEAMS} approved teams are required for a bracket, got {team_count}"
        )

    options = options.model_copy() if options else BracketOptions()
    bracket_type = BracketType(bracket_type)
    if bracket_type in GROUP_FORMATS and options.group_count is None:
        drawn = len(_tournament_groups(session, tournament_id))
        if drawn:
            options.group_count = drawn

    bracket = generate_bracket(bracket_type, team_count, options)
    _store_bracket(tournament, bracket)
    session.add(tournament)
    session.commit()

    logger.info(
        "%s bracket generated for tournament %d (%d teams, seed=%s)",
        bracket_type.value,
        tournament_id,
        team_count,
        bracket.seed,
    )
    return bracket


def seed_knockout(
    session: Session,
    tournament_id: int,
    user_id: str,
    user_role: Optional[str],
    advancing_per_group: Optional[int] = None,
) -> BracketData:
    """
    Seed the stored knockout bracket from current group standings, then
    auto-advance any byes.

    Seeding again (e.g. after more group results) replaces the earlier seeding
    as long as no knockout match has been played; bye walkovers do not count.
    """
    tournament = _get_tournament(session, tournament_id)
    _check_organizer(tournament, user_id, user_role)

    bracket = _stored_bracket(tournament)
    if not getattr(bracket, "playoff_rounds", None):
        raise BracketNotGeneratedError(f"Tournament {tournament_id} bracket has no knockout rounds")
    if has_played_matches(bracket):
        raise InvalidTournamentStateError(
            f"Tournament {tournament_id} knockout already has results; it cannot be seeded again"
        )

    if advancing_per_group is None:
        advancing_per_group = getattr(bracket, "advancing_teams_per_group", None) or BracketOptions().advancing_per_group
    if advancing_per_group < 1:
        raise InvalidDrawParameterError("advancing_per_group must be at least 1")

    standings = standings_by_group(session, tournament_id)
    if not standings:
        raise InvalidTournamentStateError(f"Tournament {tournament_id} has no groups to seed from")

    seed_teams_into_bracket(standings, advancing_per_group, bracket)
    resolve_byes(bracket)

    _store_bracket(tournament, bracket)
    session.add(tournament)
    session.commit()
    return bracket


def update_bracket_match(
    session: Session,
    tournament_id: int,
    user_id: str,
    user_role: Optional[str],
    match_id: int,
    team1_score: Optional[int] = None,
    team2_score: Optional[int] = None,
    status: Optional[MatchStatus] = None,
    team1_id: Optional[str] = None,
    team2_id: Optional[str] = None,
) -> BracketData:
    """Manually adjust one stored bracket match and advance its result."""
    tournament = _get_tournament(session, tournament_id)
    _check_organizer(tournament, user_id, user_role)

    bracket = _stored_bracket(tournament)
    apply_match_result(
        bracket,
        match_id,
        team1_score=team1_score,
        team2_score=team2_score,
        status=status,
        team1_id=team1_id,
        team2_id=team2_id,
    )
    # a result can be the last thing a bye downstream was waiting for
    resolve_byes(bracket)

    _store_bracket(tournament, bracket)
    session.add(tournament)
    session.commit()
    return bracket
