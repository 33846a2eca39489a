from draw_engine.models.group import GroupMatch, TournamentGroup
from draw_engine.models.registration import Registration, RegistrationStatus
from draw_engine.models.tournament import Tournament, TournamentStatus

__all__ = [
    "Tournament",
    "TournamentStatus",
    "Registration",
    "RegistrationStatus",
    "TournamentGroup",
    "GroupMatch",
]
