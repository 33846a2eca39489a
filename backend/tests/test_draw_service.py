"""
Draw service tests against an in-memory database.

Tests must prove:
1. The draw partitions exactly the approved teams, once
2. Every guard fails with its own error and writes nothing
3. A stored draw seed reproduces the partition
4. Reset undoes the draw
5. Group results feed standings, knockout seeding and bracket advancement
"""

import pytest
from sqlalchemy import text
from sqlmodel import Session, select

from draw_engine.models.group import GroupMatch, TournamentGroup
from draw_engine.models.registration import Registration
from draw_engine.models.tournament import TournamentStatus
from draw_engine.schemas.bracket import BracketOptions, BracketType, MatchStatus
from draw_engine.services import draw_service
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

from .conftest import ORGANIZER_ID


def groups_in_db(session: Session, tournament_id: int):
    return session.exec(select(TournamentGroup).where(TournamentGroup.tournament_id == tournament_id)).all()


def draw(session, tournament, number_of_groups=2, **kwargs):
    return draw_service.execute_draw(session, tournament.id, ORGANIZER_ID, None, number_of_groups, **kwargs)


def play_out_group(session, tournament, group):
    """Record results so the group table follows roster order."""
    teams = group.teams
    for i, home in enumerate(teams):
        for away in teams[i + 1 :]:
            draw_service.record_group_match(session, tournament.id, ORGANIZER_ID, None, group.id, home, away, 1, 0)


# ============================================================================
# Draw
# ============================================================================


def test_draw_partitions_approved_teams(session, make_tournament):
    tournament = make_tournament(approved=8, pending=2)

    groups = draw(session, tournament, 2)

    assert [g.group_letter for g in groups] == ["A", "B"]
    assert [g.group_order for g in groups] == [0, 1]
    assert [len(g.teams) for g in groups] == [4, 4]
    drawn = [team for g in groups for team in g.teams]
    assert sorted(drawn) == sorted(f"club-{i}" for i in range(1, 9))

    session.refresh(tournament)
    assert tournament.draw_completed is True
    assert tournament.draw_seed

    registrations = session.exec(select(Registration).where(Registration.tournament_id == tournament.id)).all()
    assigned = {r.club_id: r.group_assignment for r in registrations}
    for group in groups:
        for club_id in group.teams:
            assert assigned[club_id] == group.group_letter
    assert assigned["club-9"] is None
    assert assigned["club-10"] is None


def test_second_draw_fails_without_duplicating_groups(session, make_tournament):
    tournament = make_tournament(approved=8)
    draw(session, tournament, 2)

    with pytest.raises(DrawAlreadyCompletedError):
        draw(session, tournament, 4)

    assert len(groups_in_db(session, tournament.id)) == 2


def test_same_seed_same_groups(session, make_tournament):
    first = make_tournament(approved=10)
    second = make_tournament(approved=0)
    for i in range(1, 11):
        session.add(
            Registration(tournament_id=second.id, club_id=f"club-{i}", club_name=f"Club {i}", status="APPROVED")
        )
    session.commit()

    groups_a = draw(session, first, 3, draw_seed="cup-2026")
    groups_b = draw(session, second, 3, draw_seed="cup-2026")

    assert [g.teams for g in groups_a] == [g.teams for g in groups_b]
    assert groups_a[0].teams == draw_service.partition_teams([f"club-{i}" for i in range(1, 11)], 3, "cup-2026")[0]
    session.refresh(first)
    assert first.draw_seed == "cup-2026"


def test_partition_sizes_and_empty_trailing_groups():
    teams = [f"t{i}" for i in range(5)]

    groups = draw_service.partition_teams(teams, 4, "seed")

    # ceil(5 / 4) = 2 per group, so the fourth group would be empty
    assert [len(g) for g in groups] == [2, 2, 1]
    assert sorted(t for g in groups for t in g) == sorted(teams)


def test_admin_may_draw_for_someone_else(session, make_tournament):
    tournament = make_tournament(approved=4)

    groups = draw_service.execute_draw(session, tournament.id, "someone-else", "admin", 1)

    assert len(groups) == 1


# ============================================================================
# Guards
# ============================================================================


def test_unknown_tournament(session):
    with pytest.raises(TournamentNotFoundError):
        draw_service.execute_draw(session, 999, ORGANIZER_ID, None, 2)


def test_only_the_organizer_may_draw(session, make_tournament):
    tournament = make_tournament(approved=4)

    with pytest.raises(DrawPermissionError):
        draw_service.execute_draw(session, tournament.id, "someone-else", "ORGANIZER", 2)

    assert groups_in_db(session, tournament.id) == []


@pytest.mark.parametrize("status", [TournamentStatus.DRAFT, TournamentStatus.COMPLETED, TournamentStatus.CANCELLED])
def test_draw_needs_published_or_ongoing(session, make_tournament, status):
    tournament = make_tournament(approved=4, status=status)

    with pytest.raises(InvalidTournamentStateError):
        draw(session, tournament, 2)


def test_ongoing_tournament_can_be_drawn(session, make_tournament):
    tournament = make_tournament(approved=4, status=TournamentStatus.ONGOING)

    assert len(draw(session, tournament, 2)) == 2


def test_draw_needs_two_approved_teams(session, make_tournament):
    tournament = make_tournament(approved=1, pending=5)

    with pytest.raises(InsufficientTeamsError):
        draw(session, tournament, 1)


@pytest.mark.parametrize("number_of_groups", [0, -1, 5])
def test_group_count_must_fit_the_teams(session, make_tournament, number_of_groups):
    tournament = make_tournament(approved=4)

    with pytest.raises(InvalidDrawParameterError):
        draw(session, tournament, number_of_groups)

    session.refresh(tournament)
    assert tournament.draw_completed is False


def test_at_most_eight_groups(session, make_tournament):
    tournament = make_tournament(approved=16)

    with pytest.raises(InvalidDrawParameterError):
        draw(session, tournament, 9)

    assert len(draw(session, tournament, 8)) == 8


def test_concurrent_draw_loses_on_the_completion_flag(session, make_tournament):
    tournament = make_tournament(approved=8)
    assert tournament.draw_completed is False

    # another writer flips the flag after this caller loaded the tournament
    session.execute(text("UPDATE tournament SET draw_completed = 1 WHERE id = :id"), {"id": tournament.id})

    with pytest.raises(DrawAlreadyCompletedError):
        draw(session, tournament, 2)

    assert groups_in_db(session, tournament.id) == []
    registrations = session.exec(select(Registration).where(Registration.tournament_id == tournament.id)).all()
    assert all(r.group_assignment is None for r in registrations)


# ============================================================================
# Reset / manual groups
# ============================================================================


def test_reset_draw(session, make_tournament):
    tournament = make_tournament(approved=8)
    draw(session, tournament, 2)

    deleted = draw_service.reset_draw(session, tournament.id, ORGANIZER_ID, None)

    assert deleted == 2
    assert groups_in_db(session, tournament.id) == []
    session.refresh(tournament)
    assert tournament.draw_completed is False
    assert tournament.draw_seed is None
    registrations = session.exec(select(Registration).where(Registration.tournament_id == tournament.id)).all()
    assert all(r.group_assignment is None for r in registrations)
    assert all(r.status == "APPROVED" for r in registrations)

    # draw can run again
    assert len(draw(session, tournament, 4)) == 4


def test_reset_drops_group_results_and_group_bracket(session, make_tournament):
    tournament = make_tournament(approved=8)
    groups = draw(session, tournament, 2)
    play_out_group(session, tournament, groups[0])
    draw_service.generate_tournament_bracket(session, tournament.id, ORGANIZER_ID, None, BracketType.GROUPS_PLUS_KNOCKOUT)

    draw_service.reset_draw(session, tournament.id, ORGANIZER_ID, None)

    session.refresh(tournament)
    assert tournament.bracket_data is None
    assert session.exec(select(GroupMatch)).all() == []


def test_reset_keeps_a_plain_knockout_bracket(session, make_tournament):
    tournament = make_tournament(approved=8)
    draw(session, tournament, 2)
    draw_service.generate_tournament_bracket(session, tournament.id, ORGANIZER_ID, None, BracketType.SINGLE_ELIMINATION)

    draw_service.reset_draw(session, tournament.id, ORGANIZER_ID, None)

    session.refresh(tournament)
    assert tournament.bracket_data["type"] == "SINGLE_ELIMINATION"


def test_reset_needs_permission(session, make_tournament):
    tournament = make_tournament(approved=4)
    draw(session, tournament, 2)

    with pytest.raises(DrawPermissionError):
        draw_service.reset_draw(session, tournament.id, "someone-else", None)

    assert len(groups_in_db(session, tournament.id)) == 2


def test_create_group_by_hand(session, make_tournament):
    tournament = make_tournament(approved=6)

    group_a = draw_service.create_group(session, tournament.id, ORGANIZER_ID, None, "a", ["club-1", "club-2"])
    group_b = draw_service.create_group(session, tournament.id, ORGANIZER_ID, None, "B", ["club-3"])

    assert group_a.group_letter == "A"
    assert (group_a.group_order, group_b.group_order) == (0, 1)
    registration = session.exec(select(Registration).where(Registration.club_id == "club-1")).one()
    assert registration.group_assignment == "A"


@pytest.mark.parametrize(
    "letter,teams",
    [
        ("Z", ["club-3"]),
        ("A", ["club-3"]),  # letter taken
        ("C", ["club-1"]),  # already grouped
        ("C", ["club-9"]),  # not approved
        ("C", ["club-3", "club-3"]),
        ("C", []),
    ],
)
def test_create_group_rejects(session, make_tournament, letter, teams):
    tournament = make_tournament(approved=6)
    draw_service.create_group(session, tournament.id, ORGANIZER_ID, None, "A", ["club-1", "club-2"])

    with pytest.raises(InvalidDrawParameterError):
        draw_service.create_group(session, tournament.id, ORGANIZER_ID, None, letter, teams)


def test_draw_replaces_hand_made_groups(session, make_tournament):
    tournament = make_tournament(approved=4)
    draw_service.create_group(session, tournament.id, ORGANIZER_ID, None, "A", ["club-1", "club-2"])

    groups = draw(session, tournament, 2)

    assert [g.group_letter for g in groups] == ["A", "B"]
    assert len(groups_in_db(session, tournament.id)) == 2


# ============================================================================
# Results, standings and knockout
# ============================================================================


def test_group_results_drive_standings(session, make_tournament):
    tournament = make_tournament(approved=8)
    group = draw(session, tournament, 2)[0]
    first, second, third, fourth = group.teams

    draw_service.record_group_match(session, tournament.id, ORGANIZER_ID, None, group.id, first, second, 2, 1)
    draw_service.record_group_match(session, tournament.id, ORGANIZER_ID, None, group.id, first, third, 1, 1)
    draw_service.record_group_match(session, tournament.id, ORGANIZER_ID, None, group.id, second, third, 3, 0)

    table = draw_service.get_group_standings(session, tournament.id, group.id)

    assert [row.team_id for row in table] == [first, second, third, fourth]
    assert [row.points for row in table] == [4, 3, 1, 0]


def test_record_group_match_rejects(session, make_tournament):
    tournament = make_tournament(approved=8)
    group_a, group_b = draw(session, tournament, 2)

    with pytest.raises(InvalidDrawParameterError):
        draw_service.record_group_match(
            session, tournament.id, ORGANIZER_ID, None, group_a.id, group_a.teams[0], group_a.teams[0], 1, 0
        )
    with pytest.raises(InvalidDrawParameterError):
        draw_service.record_group_match(
            session, tournament.id, ORGANIZER_ID, None, group_a.id, group_a.teams[0], group_b.teams[0], 1, 0
        )
    with pytest.raises(GroupNotFoundError):
        draw_service.record_group_match(
            session, tournament.id, ORGANIZER_ID, None, 999, group_a.teams[0], group_a.teams[1], 1, 0
        )


def test_bracket_uses_the_drawn_group_count(session, make_tournament):
    tournament = make_tournament(approved=12)
    draw(session, tournament, 3)

    bracket = draw_service.generate_tournament_bracket(
        session, tournament.id, ORGANIZER_ID, None, BracketType.GROUPS_PLUS_KNOCKOUT
    )

    assert bracket.group_count == 3
    assert bracket.teams_per_group == 4
    session.refresh(tournament)
    assert tournament.bracket_data["type"] == "GROUPS_PLUS_KNOCKOUT"


def test_bracket_needs_two_teams(session, make_tournament):
    tournament = make_tournament(approved=1)

    with pytest.raises(InsufficientTeamsError):
        draw_service.generate_tournament_bracket(
            session, tournament.id, ORGANIZER_ID, None, BracketType.SINGLE_ELIMINATION
        )


def test_seed_knockout_and_play_the_final(session, make_tournament):
    tournament = make_tournament(approved=8)
    group_a, group_b = draw(session, tournament, 2)
    play_out_group(session, tournament, group_a)
    play_out_group(session, tournament, group_b)
    draw_service.generate_tournament_bracket(
        session, tournament.id, ORGANIZER_ID, None, BracketType.GROUPS_PLUS_KNOCKOUT
    )

    bracket = draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)

    a1, a2 = group_a.teams[:2]
    b1, b2 = group_b.teams[:2]
    semis = bracket.playoff_rounds[0].matches
    assert [(m.team1_id, m.team2_id) for m in semis] == [(a1, b2), (b1, a2)]

    draw_service.update_bracket_match(
        session, tournament.id, ORGANIZER_ID, None, semis[0].id, 3, 1, MatchStatus.COMPLETED
    )
    draw_service.update_bracket_match(
        session, tournament.id, ORGANIZER_ID, None, semis[1].id, 0, 2, MatchStatus.COMPLETED
    )

    view = draw_service.get_bracket(session, tournament.id)
    final = view.bracket.playoff_rounds[1].matches[0]
    assert (final.team1_id, final.team2_id) == (a1, a2)
    assert view.draw_completed is True
    assert [g.group_letter for g in view.groups] == ["A", "B"]
    assert set(view.standings) == {"A", "B"}


def test_seed_knockout_resolves_byes(session, make_tournament):
    tournament = make_tournament(approved=6)
    group_a, group_b, group_c = draw(session, tournament, 3)
    draw_service.generate_tournament_bracket(
        session,
        tournament.id,
        ORGANIZER_ID,
        None,
        BracketType.GROUPS_PLUS_KNOCKOUT,
        BracketOptions(advancing_per_group=1),
    )

    bracket = draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)

    first_round = bracket.playoff_rounds[0].matches
    assert (first_round[0].team1_id, first_round[0].team2_id) == (group_a.teams[0], group_c.teams[0])
    bye = first_round[1]
    assert (bye.team1_id, bye.team2_id) == (group_b.teams[0], None)
    assert bye.status == MatchStatus.COMPLETED
    assert bracket.playoff_rounds[1].matches[0].team2_id == group_b.teams[0]


def one_per_group_knockout(session, make_tournament):
    tournament = make_tournament(approved=6)
    groups = draw(session, tournament, 3)
    draw_service.generate_tournament_bracket(
        session,
        tournament.id,
        ORGANIZER_ID,
        None,
        BracketType.GROUPS_PLUS_KNOCKOUT,
        BracketOptions(advancing_per_group=1),
    )
    return tournament, groups


def test_seed_knockout_again_follows_new_standings(session, make_tournament):
    tournament, (group_a, group_b, group_c) = one_per_group_knockout(session, make_tournament)
    draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)
    b1, b2 = group_b.teams

    draw_service.record_group_match(session, tournament.id, ORGANIZER_ID, None, group_b.id, b2, b1, 2, 0)
    bracket = draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)

    first_round = bracket.playoff_rounds[0].matches
    assert (first_round[0].team1_id, first_round[0].team2_id) == (group_a.teams[0], group_c.teams[0])
    bye = first_round[1]
    assert (bye.team1_id, bye.team2_id) == (b2, None)
    assert (bye.status, bye.winner_id) == (MatchStatus.COMPLETED, b2)
    final = bracket.playoff_rounds[1].matches[0]
    assert (final.team1_id, final.team2_id) == (None, b2)


def test_seed_knockout_refused_after_a_knockout_result(session, make_tournament):
    tournament, _ = one_per_group_knockout(session, make_tournament)
    bracket = draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)
    opener = bracket.playoff_rounds[0].matches[0]
    draw_service.update_bracket_match(
        session, tournament.id, ORGANIZER_ID, None, opener.id, 1, 0, MatchStatus.COMPLETED
    )

    with pytest.raises(InvalidTournamentStateError):
        draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)

    stored = draw_service.get_bracket(session, tournament.id).bracket
    final = stored.playoff_rounds[1].matches[0]
    assert (final.team1_id, final.team2_id) == (opener.team1_id, bracket.playoff_rounds[0].matches[1].team1_id)


def test_seed_knockout_needs_a_knockout_bracket(session, make_tournament):
    tournament = make_tournament(approved=8)
    draw(session, tournament, 2)

    with pytest.raises(BracketNotGeneratedError):
        draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)

    draw_service.generate_tournament_bracket(session, tournament.id, ORGANIZER_ID, None, BracketType.GROUPS_ONLY)
    with pytest.raises(BracketNotGeneratedError):
        draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)


def test_seed_knockout_needs_groups(session, make_tournament):
    tournament = make_tournament(approved=8)
    draw_service.generate_tournament_bracket(
        session, tournament.id, ORGANIZER_ID, None, BracketType.SINGLE_ELIMINATION
    )

    with pytest.raises(InvalidTournamentStateError):
        draw_service.seed_knockout(session, tournament.id, ORGANIZER_ID, None)


def test_get_groups_resolves_members(session, make_tournament):
    tournament = make_tournament(approved=4)
    draw(session, tournament, 1)

    views = draw_service.get_groups(session, tournament.id)

    assert len(views) == 1
    members = views[0].teams
    assert len(members) == 4
    assert all(m.club_name == f"Club {m.club_id.split('-')[1]}" for m in members)
    assert all(m.status == "APPROVED" for m in members)
