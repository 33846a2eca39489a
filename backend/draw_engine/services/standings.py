"""
Group standings.

Standings are a derived view: they are rebuilt from the team roster and the
completed match results on every call and never stored.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence

logger = logging.getLogger(__name__)

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1
COMPLETED = "COMPLETED"


@dataclass
class GroupStanding:
    """One team's row in a group table."""

    team_id: str
    position: int
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0

    def record(self, scored: int, conceded: int) -> None:
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.won += 1
            self.points += POINTS_FOR_WIN
        elif scored < conceded:
            self.lost += 1
        else:
            self.drawn += 1
            self.points += POINTS_FOR_DRAW
        self.goal_difference = self.goals_for - self.goals_against


def standing_sort_key(standing: GroupStanding) -> tuple:
    """Sort key, lower = better: points, goal difference, goals for (all descending)."""
    return (-standing.points, -standing.goal_difference, -standing.goals_for)


def _status_value(match: Any) -> str:
    status = getattr(match, "status", None)
    return getattr(status, "value", status)


def calculate_group_standings(team_ids: Sequence[str], matches: Iterable[Any]) -> List[GroupStanding]:
    """
    Rank a group from its completed matches.

    Accepts anything exposing status, team1_id, team2_id, team1_score and
    team2_score (bracket Match models, GroupMatch rows). Only COMPLETED
    matches with both teams set count; matches naming a team outside the
    roster are skipped. Ties beyond goals for keep roster order.
    """
    standings = {team_id: GroupStanding(team_id=team_id, position=index + 1) for index, team_id in enumerate(team_ids)}

    for match in matches:
        if _status_value(match) != COMPLETED or not match.team1_id or not match.team2_id:
            continue
        team1 = standings.get(match.team1_id)
        team2 = standings.get(match.team2_id)
        if team1 is None or team2 is None:
            logger.debug(
                "Skipping match %s: team outside roster (%s vs %s)",
                getattr(match, "id", None),
                match.team1_id,
                match.team2_id,
            )
            continue

        score1 = match.team1_score or 0
        score2 = match.team2_score or 0
        team1.record(score1, score2)
        team2.record(score2, score1)

    ranked = sorted(standings.values(), key=standing_sort_key)
    for index, standing in enumerate(ranked):
        standing.position = index + 1
    return ranked
