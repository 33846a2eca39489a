"""
Knockout seeding from group standings.

Top-vs-bottom seeding: qualifiers are ordered by group position (all group
winners, then all runners-up, ...), ties at the same position broken by group
id, then match i of the first playoff round gets entry i against entry n-1-i.
This does not try to keep teams from the same group apart.
"""

import logging
from dataclasses import dataclass
from typing import List, Mapping, Sequence

from draw_engine.schemas.bracket import BracketData, MatchStatus, PlayoffRound
from draw_engine.services.standings import GroupStanding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Qualifier:
    team_id: str
    group_id: str
    position: int


def collect_qualifiers(
    group_standings: Mapping[str, Sequence[GroupStanding]],
    advancing_per_group: int,
) -> List[Qualifier]:
    """Top advancing_per_group of each group, best first."""
    qualifiers = [
        Qualifier(team_id=standing.team_id, group_id=str(group_id), position=standing.position)
        for group_id, standings in group_standings.items()
        for standing in list(standings)[:advancing_per_group]
    ]
    return sorted(qualifiers, key=lambda q: (q.position, q.group_id))


def clear_playoff(playoff_rounds: Sequence[PlayoffRound]) -> None:
    for playoff_round in playoff_rounds:
        for match in playoff_round.matches:
            match.team1_id = match.team2_id = None
            match.team1_score = match.team2_score = None
            match.winner_id = match.loser_id = None
            match.status = MatchStatus.PENDING


def seed_teams_into_bracket(
    group_standings: Mapping[str, Sequence[GroupStanding]],
    advancing_per_group: int,
    bracket_data: BracketData,
) -> BracketData:
    """
    Fill first-round slots of bracket_data from group standings (in place).

    Every playoff match is cleared first (teams, scores, results), so seeding
    again replaces an earlier seeding instead of layering on top of it. Slots
    with no qualifier stay empty (byes). No qualifier is ever placed in two
    slots. Brackets without playoff rounds are returned unchanged.
    """
    playoff_rounds = getattr(bracket_data, "playoff_rounds", None)
    if not playoff_rounds:
        return bracket_data

    clear_playoff(playoff_rounds)

    qualifiers = collect_qualifiers(group_standings, advancing_per_group)
    last = len(qualifiers) - 1

    for index, match in enumerate(playoff_rounds[0].matches):
        opponent_index = last - index
        if index <= opponent_index:
            match.team1_id = qualifiers[index].team_id
        if index < opponent_index:
            match.team2_id = qualifiers[opponent_index].team_id

    logger.info(
        "Seeded %d qualifiers into %d first-round matches",
        len(qualifiers),
        len(playoff_rounds[0].matches),
    )
    return bracket_data
