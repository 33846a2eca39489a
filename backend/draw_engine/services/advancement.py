"""
Bracket advancement: when a match is completed, move its winner (and, in double
elimination, its loser) into the linked downstream slots.

Works on an in-memory BracketData; the orchestrator persists the result.
Slot writes are idempotent: a downstream slot is only written when it is empty.
Correcting or reopening a completed match first takes its old winner/loser back
out of the downstream slots, which is refused once a downstream match that
holds them has started.
"""

import logging
from typing import Dict, List, Optional, Tuple

from draw_engine.schemas.bracket import BracketData, Match, MatchStatus
from draw_engine.services.errors import InvalidDrawParameterError, MatchNotFoundError

logger = logging.getLogger(__name__)

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"

# (source match, role, slot) for every edge feeding a match
Feeder = Tuple[Match, str, int]


def _slot_team(match: Match, slot: int) -> Optional[str]:
    return match.team1_id if slot == 1 else match.team2_id


def _set_slot(match: Match, slot: int, team_id: str) -> bool:
    if _slot_team(match, slot) is None:
        setattr(match, "team1_id" if slot == 1 else "team2_id", team_id)
        return True
    return False


def _result_edges(match: Match) -> List[Tuple[str, int, int]]:
    """(team, target match id, target slot) for each team this match sends on."""
    edges = (
        (match.winner_id, match.next_match_id, match.next_match_slot),
        (match.loser_id, match.loser_next_match_id, match.loser_next_match_slot),
    )
    return [edge for edge in edges if None not in edge]


def advance_from(bracket: BracketData, match: Match) -> int:
    """
    Push a completed match's winner/loser into downstream slots.

    Returns the number of slots filled.
    """
    if match.status != MatchStatus.COMPLETED:
        return 0

    updated = 0
    for team_id, target_id, slot in _result_edges(match):
        target = bracket.find_match(target_id)
        if target is None:
            continue
        if _set_slot(target, slot, team_id):
            updated += 1
        elif _slot_team(target, slot) != team_id:
            logger.warning(
                "Match %d slot %d already holds %s, not advancing %s",
                target.id,
                slot,
                _slot_team(target, slot),
                team_id,
            )
    return updated


def retract_result(bracket: BracketData, match: Match) -> int:
    """
    Undo what a completed match advanced: clear its winner/loser from the
    downstream slots they were written to, then clear winner_id/loser_id.

    Raises InvalidDrawParameterError (and changes nothing) when a downstream
    match holding one of those teams is already in progress or completed.
    Returns the number of slots cleared.
    """
    cleared: List[Tuple[Match, int]] = []
    for team_id, target_id, slot in _result_edges(match):
        target = bracket.find_match(target_id)
        if target is None or _slot_team(target, slot) != team_id:
            continue
        if target.status != MatchStatus.PENDING:
            raise InvalidDrawParameterError(
                f"Match {match.id} result cannot change: match {target.id} with {team_id} is already "
                f"{target.status.value}"
            )
        cleared.append((target, slot))

    for target, slot in cleared:
        setattr(target, "team1_id" if slot == 1 else "team2_id", None)
    match.winner_id = None
    match.loser_id = None
    return len(cleared)


def apply_match_result(
    bracket: BracketData,
    match_id: int,
    team1_score: Optional[int] = None,
    team2_score: Optional[int] = None,
    status: Optional[MatchStatus] = None,
    team1_id: Optional[str] = None,
    team2_id: Optional[str] = None,
) -> Match:
    """
    Update one match and advance its result.

    Team overrides are applied first (manual bracket adjustment). A COMPLETED
    match with a winner in a linked bracket must not be a draw. Changing an
    already completed match (new score, new team, reopening it) retracts the
    old result before the new one advances. The update is validated in full
    before the bracket is touched.
    """
    match = bracket.find_match(match_id)
    if match is None:
        raise MatchNotFoundError(f"Match {match_id} not found in bracket")

    new_team1 = team1_id if team1_id is not None else match.team1_id
    new_team2 = team2_id if team2_id is not None else match.team2_id
    new_score1 = team1_score if team1_score is not None else match.team1_score
    new_score2 = team2_score if team2_score is not None else match.team2_score
    new_status = MatchStatus(status) if status is not None else match.status

    unchanged = (new_team1, new_team2, new_score1, new_score2, new_status) == (
        match.team1_id,
        match.team2_id,
        match.team1_score,
        match.team2_score,
        match.status,
    )
    if unchanged and match.status == MatchStatus.COMPLETED:
        return match

    if new_status == MatchStatus.COMPLETED:
        if new_team1 is None or new_team2 is None:
            raise InvalidDrawParameterError(f"Match {match_id} cannot be completed without both teams")
        if new_score1 is None or new_score2 is None:
            raise InvalidDrawParameterError(f"Match {match_id} cannot be completed without both scores")
        linked = match.next_match_id is not None or match.loser_next_match_id is not None
        if new_score1 == new_score2 and linked:
            raise InvalidDrawParameterError(f"Knockout match {match_id} cannot end in a draw")

    if match.status == MatchStatus.COMPLETED:
        retracted = retract_result(bracket, match)
        logger.info("Match %d reopened or corrected, %d downstream slot(s) cleared", match.id, retracted)

    match.team1_id, match.team2_id = new_team1, new_team2
    match.team1_score, match.team2_score = new_score1, new_score2
    match.status = new_status

    if match.status != MatchStatus.COMPLETED:
        return match

    if match.team1_score == match.team2_score:
        return match

    if match.team1_score > match.team2_score:
        match.winner_id, match.loser_id = match.team1_id, match.team2_id
    else:
        match.winner_id, match.loser_id = match.team2_id, match.team1_id

    filled = advance_from(bracket, match)
    logger.info(
        "Match %d completed (%d-%d), winner %s, %d downstream slot(s) filled",
        match.id,
        match.team1_score,
        match.team2_score,
        match.winner_id,
        filled,
    )
    return match


def has_played_matches(bracket: BracketData) -> bool:
    """True once any match has a completed result between two real teams (byes don't count)."""
    return any(
        match.status == MatchStatus.COMPLETED and match.team1_id is not None and match.team2_id is not None
        for match in bracket.all_matches()
    )


def _feeders_by_target(bracket: BracketData) -> Dict[int, List[Feeder]]:
    feeders: Dict[int, List[Feeder]] = {}
    for match in bracket.all_matches():
        if match.next_match_id is not None and match.next_match_slot is not None:
            feeders.setdefault(match.next_match_id, []).append((match, ROLE_WINNER, match.next_match_slot))
        if match.loser_next_match_id is not None and match.loser_next_match_slot is not None:
            feeders.setdefault(match.loser_next_match_id, []).append((match, ROLE_LOSER, match.loser_next_match_slot))
    return feeders


def _slot_is_dead(match: Match, slot: int, feeders: List[Feeder]) -> bool:
    """An empty slot that can never be filled: every feeder finished without a team for it."""
    if (match.team1_id if slot == 1 else match.team2_id) is not None:
        return False
    for source, role, target_slot in feeders:
        if target_slot != slot:
            continue
        if source.status != MatchStatus.COMPLETED:
            return False
        produced = source.winner_id if role == ROLE_WINNER else source.loser_id
        if produced is not None:
            return False
    return True


def resolve_byes(bracket: BracketData) -> int:
    """
    Auto-complete bye matches and walk the lone team forward.

    Only first-round matches and matches fed by other matches are considered,
    so unlinked rounds (third place) are left for manual entry. A match with
    one team and one dead slot is completed with that team as winner; a match
    with two dead slots is completed with no winner so its own dependants can
    resolve. Links always point to later rounds, so one pass in arena order is
    enough.

    Returns the number of matches auto-completed.
    """
    playoff_rounds = getattr(bracket, "playoff_rounds", None)
    if not playoff_rounds:
        return 0

    first_round_ids = {match.id for match in playoff_rounds[0].matches}
    feeders = _feeders_by_target(bracket)
    resolved = 0

    for match in bracket.all_matches():
        if match.status == MatchStatus.COMPLETED:
            continue
        incoming = feeders.get(match.id, [])
        if match.id not in first_round_ids and not incoming:
            continue

        dead1 = _slot_is_dead(match, 1, incoming)
        dead2 = _slot_is_dead(match, 2, incoming)
        if dead1 and dead2:
            match.status = MatchStatus.COMPLETED
            resolved += 1
        elif (dead1 and match.team2_id is not None) or (dead2 and match.team1_id is not None):
            match.winner_id = match.team2_id if dead1 else match.team1_id
            match.loser_id = None
            match.status = MatchStatus.COMPLETED
            advance_from(bracket, match)
            resolved += 1

    if resolved:
        logger.info("Resolved %d bye match(es)", resolved)
    return resolved
