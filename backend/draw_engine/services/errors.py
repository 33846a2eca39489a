"""
Domain errors raised by the draw services.

Routes translate these into HTTP responses; the pure bracket/standings
functions never raise them for best-effort cases.
"""


class DrawEngineError(Exception):
    """Base class for every draw engine failure."""


class NotFoundError(DrawEngineError):
    pass


class TournamentNotFoundError(NotFoundError):
    pass


class GroupNotFoundError(NotFoundError):
    pass


class MatchNotFoundError(NotFoundError):
    pass


class DrawPermissionError(DrawEngineError):
    """Caller is neither the tournament organizer nor an administrator."""


class InvalidStateError(DrawEngineError):
    pass


class DrawAlreadyCompletedError(InvalidStateError):
    pass


class InvalidTournamentStateError(InvalidStateError):
    pass


class BracketNotGeneratedError(InvalidStateError):
    pass


class InvalidParameterError(DrawEngineError):
    pass


class InsufficientTeamsError(InvalidParameterError):
    pass


class InvalidDrawParameterError(InvalidParameterError):
    pass
