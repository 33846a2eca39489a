from draw_engine.schemas.bracket import (
    BracketData,
    BracketOptions,
    BracketType,
    DoubleEliminationBracket,
    GroupsOnlyBracket,
    GroupsPlusKnockoutBracket,
    Match,
    MatchStatus,
    PlayoffRound,
    RoundRobinBracket,
    SingleEliminationBracket,
    dump_bracket,
    load_bracket,
)

__all__ = [
    "BracketData",
    "BracketOptions",
    "BracketType",
    "DoubleEliminationBracket",
    "GroupsOnlyBracket",
    "GroupsPlusKnockoutBracket",
    "Match",
    "MatchStatus",
    "PlayoffRound",
    "RoundRobinBracket",
    "SingleEliminationBracket",
    "dump_bracket",
    "load_bracket",
]
