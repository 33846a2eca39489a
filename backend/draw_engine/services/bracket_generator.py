"""
Bracket Generator: topology builder for every supported tournament format.

generate_bracket() is the single entry point. It is pure: no session, no I/O.
Callers are responsible for rejecting degenerate team counts (< 2) before
calling; the builder itself only guarantees it will not crash on them.

Formats:
- GROUPS_ONLY: partition shape only (group count, teams per group)
- SINGLE_ELIMINATION: power-of-two bracket, byes are empty first-round slots
- DOUBLE_ELIMINATION: winners bracket + losers bracket + grand finals, fully wired
- ROUND_ROBIN: every pair once, packed into rounds of floor(n/2) matches
- GROUPS_PLUS_KNOCKOUT: group shape + single elimination for the qualifiers
"""

import logging
import uuid
from math import ceil
from typing import List, Optional

from draw_engine.schemas.bracket import (
    BracketData,
    BracketOptions,
    BracketType,
    DoubleEliminationBracket,
    GroupsOnlyBracket,
    GroupsPlusKnockoutBracket,
    Match,
    PlayoffRound,
    RoundRobinBracket,
    SingleEliminationBracket,
)

logger = logging.getLogger(__name__)

THIRD_PLACE_ROUND_NAME = "Third Place"
GRAND_FINALS_ROUND_NAME = "Grand Finals"
DEFAULT_TEAMS_PER_GROUP = 4

_ROUND_NAMES_BY_DISTANCE = {
    0: "Final",
    1: "Semi-Finals",
    2: "Quarter-Finals",
    3: "Round of 16",
    4: "Round of 32",
}


class _MatchArena:
    """Hands out bracket-unique integer match keys in creation order."""

    def __init__(self) -> None:
        self._next_id = 1

    def new_match(self, round_number: int, match_number: int) -> Match:
        match = Match(id=self._next_id, round=round_number, match_number=match_number)
        self._next_id += 1
        return match


def generate_seed() -> str:
    """Fresh opaque reproducibility token."""
    return uuid.uuid4().hex


def rounds_needed(team_count: int) -> int:
    """ceil(log2(team_count)), exact for integers; 0 for a single team."""
    if team_count <= 1:
        return 0
    return (team_count - 1).bit_length()


def get_round_name(round_number: int, total_rounds: int) -> str:
    """Readable round name from the distance to the final."""
    return _ROUND_NAMES_BY_DISTANCE.get(total_rounds - round_number, f"Round {round_number}")


def compute_group_shape(team_count: int, group_count: Optional[int] = None) -> tuple[int, int]:
    """
    Return (group_count, teams_per_group).

    group_count defaults to ceil(team_count / 4); teams_per_group is always
    ceil(team_count / group_count).
    """
    groups = group_count or max(1, ceil(team_count / DEFAULT_TEAMS_PER_GROUP))
    return groups, ceil(team_count / groups)


def generate_bracket(
    bracket_type: BracketType,
    team_count: int,
    options: Optional[BracketOptions] = None,
) -> BracketData:
    """Build the bracket structure for a format and team count."""
    options = options or BracketOptions()
    seed = options.seed or generate_seed()
    bracket_type = BracketType(bracket_type)

    logger.debug("Generating %s bracket for %d teams (seed=%s)", bracket_type.value, team_count, seed)

    if bracket_type == BracketType.SINGLE_ELIMINATION:
        return generate_single_elimination(team_count, options.third_place_match, seed)
    if bracket_type == BracketType.DOUBLE_ELIMINATION:
        return generate_double_elimination(team_count, seed)
    if bracket_type == BracketType.ROUND_ROBIN:
        return generate_round_robin(team_count, seed)
    if bracket_type == BracketType.GROUPS_PLUS_KNOCKOUT:
        return generate_groups_plus_knockout(
            team_count,
            options.group_count,
            options.advancing_per_group,
            options.third_place_match,
            seed,
        )
    return generate_groups_only(team_count, options.group_count, seed)


# =============================================================================
# Groups
# =============================================================================


def generate_groups_only(team_count: int, group_count: Optional[int], seed: str) -> GroupsOnlyBracket:
    groups, teams_per_group = compute_group_shape(team_count, group_count)
    return GroupsOnlyBracket(group_count=groups, teams_per_group=teams_per_group, seed=seed)


def generate_groups_plus_knockout(
    team_count: int,
    group_count: Optional[int],
    advancing_per_group: int,
    third_place_match: bool,
    seed: str,
) -> GroupsPlusKnockoutBracket:
    groups, teams_per_group = compute_group_shape(team_count, group_count)
    playoff = generate_single_elimination(groups * advancing_per_group, third_place_match, seed)
    return GroupsPlusKnockoutBracket(
        group_count=groups,
        teams_per_group=teams_per_group,
        advancing_teams_per_group=advancing_per_group,
        playoff_rounds=playoff.playoff_rounds,
        third_place_match=third_place_match,
        seed=seed,
    )


# =============================================================================
# Single elimination
# =============================================================================


def _build_elimination_rounds(
    arena: _MatchArena,
    total_rounds: int,
    round_name_for,
) -> List[PlayoffRound]:
    bracket_size = 2**total_rounds
    playoff_rounds: List[PlayoffRound] = []
    for round_number in range(1, total_rounds + 1):
        matches_in_round = bracket_size // 2**round_number
        playoff_rounds.append(
            PlayoffRound(
                round_number=round_number,
                round_name=round_name_for(round_number),
                matches=[arena.new_match(round_number, i + 1) for i in range(matches_in_round)],
            )
        )
    return playoff_rounds


def _link_winner(match: Match, target: Match, slot: int) -> None:
    match.next_match_id = target.id
    match.next_match_slot = slot


def _link_loser(match: Match, target: Match, slot: int) -> None:
    match.loser_next_match_id = target.id
    match.loser_next_match_slot = slot


def link_single_elimination(playoff_rounds: List[PlayoffRound]) -> None:
    """
    Winner of match i feeds match i // 2 of the following round.

    Even i fills slot 1, odd i fills slot 2. The last round and any
    "Third Place" round are never linked forward or into.
    """
    for current_round, next_round in zip(playoff_rounds, playoff_rounds[1:]):
        if next_round.round_name == THIRD_PLACE_ROUND_NAME:
            continue
        if current_round.round_name == THIRD_PLACE_ROUND_NAME:
            continue
        for index, match in enumerate(current_round.matches):
            next_index = index // 2
            if next_index < len(next_round.matches):
                _link_winner(match, next_round.matches[next_index], 1 + index % 2)


def generate_single_elimination(team_count: int, third_place_match: bool, seed: str) -> SingleEliminationBracket:
    total_rounds = rounds_needed(team_count)
    arena = _MatchArena()
    playoff_rounds = _build_elimination_rounds(arena, total_rounds, lambda r: get_round_name(r, total_rounds))

    if third_place_match and total_rounds >= 2:
        playoff_rounds.append(
            PlayoffRound(
                round_number=total_rounds,
                round_name=THIRD_PLACE_ROUND_NAME,
                matches=[arena.new_match(total_rounds, 1)],
            )
        )

    link_single_elimination(playoff_rounds)

    return SingleEliminationBracket(
        playoff_rounds=playoff_rounds,
        third_place_match=third_place_match,
        seed=seed,
    )


# =============================================================================
# Double elimination
# =============================================================================


def losers_round_count(winners_rounds: int) -> int:
    return max(0, 2 * winners_rounds - 2)


def generate_double_elimination(team_count: int, seed: str) -> DoubleEliminationBracket:
    """
    Winners bracket, losers bracket and grand finals with every advancement edge.

    Losers bracket alternates two kinds of rounds (8-team example):
    - L1: the 4 W1 losers pair off -> 2 matches
    - L2: 2 L1 winners (slot 2) meet the 2 W2 losers (slot 1)
    - L3: the 2 L2 winners pair off -> 1 match
    - L4: the L3 winner (slot 2) meets the W3 loser (slot 1)
    Grand finals: winners champion (slot 1) vs losers champion (slot 2).
    """
    winners_total = rounds_needed(team_count)
    bracket_size = 2**winners_total
    arena = _MatchArena()

    winners = _build_elimination_rounds(arena, winners_total, lambda r: f"Winners Round {r}")
    link_single_elimination(winners)

    losers_total = losers_round_count(winners_total)
    losers: List[PlayoffRound] = []
    for losers_round in range(1, losers_total + 1):
        round_number = losers_round + winners_total
        matches_in_round = ceil(bracket_size / 2 ** (ceil(losers_round / 2) + 1))
        losers.append(
            PlayoffRound(
                round_number=round_number,
                round_name=f"Losers Round {losers_round}",
                matches=[arena.new_match(round_number, i + 1) for i in range(matches_in_round)],
            )
        )

    grand_finals_round = winners_total + losers_total + 1
    grand_finals = PlayoffRound(
        round_number=grand_finals_round,
        round_name=GRAND_FINALS_ROUND_NAME,
        matches=[arena.new_match(grand_finals_round, 1)],
    )
    grand_final = grand_finals.matches[0]

    _wire_double_elimination(winners, losers, grand_final)

    return DoubleEliminationBracket(
        playoff_rounds=winners + losers + [grand_finals],
        seed=seed,
    )


def _wire_double_elimination(winners: List[PlayoffRound], losers: List[PlayoffRound], grand_final: Match) -> None:
    if not winners:
        return

    winners_final = winners[-1].matches[0]
    _link_winner(winners_final, grand_final, 1)

    if not losers:
        # Two-team bracket: the winners final loser goes straight to grand finals
        _link_loser(winners_final, grand_final, 2)
        return

    # W1 losers pair off in L1
    for index, match in enumerate(winners[0].matches):
        _link_loser(match, losers[0].matches[index // 2], 1 + index % 2)

    winners_total = len(winners)
    for k in range(1, winners_total):
        minor = losers[2 * k - 2]  # L(2k-1)
        major = losers[2 * k - 1]  # L(2k)
        dropping = winners[k]  # W(k+1)
        for index, match in enumerate(minor.matches):
            _link_winner(match, major.matches[index], 2)
        for index, match in enumerate(dropping.matches):
            _link_loser(match, major.matches[index], 1)
        if 2 * k < len(losers):
            following = losers[2 * k]  # L(2k+1)
            for index, match in enumerate(major.matches):
                _link_winner(match, following.matches[index // 2], 1 + index % 2)

    _link_winner(losers[-1].matches[0], grand_final, 2)


# =============================================================================
# Round robin
# =============================================================================


def generate_round_robin(team_count: int, seed: str) -> RoundRobinBracket:
    """
    One match per pair (i, j), i < j, in index order.

    Rounds are filled with up to floor(n / 2) matches before the round counter
    advances; match_number restarts at 1 in each round.
    """
    arena = _MatchArena()
    per_round = max(1, team_count // 2)
    matches: List[Match] = []
    round_number = 1
    match_in_round = 0

    for i in range(team_count):
        for j in range(i + 1, team_count):
            match_in_round += 1
            matches.append(arena.new_match(round_number, match_in_round))
            if match_in_round >= per_round:
                round_number += 1
                match_in_round = 0

    return RoundRobinBracket(matches=matches, seed=seed)
