"""
Rank tiers derived from XP — pure functions, no DB access.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Rank:
    name: str
    min_xp: int


# Ascending by min_xp; the first tier must start at 0.
RANKS: list[Rank] = [
    Rank("Novice",     0),
    Rank("Apprentice", 10),
    Rank("Adept",      30),
    Rank("Expert",     75),
    Rank("Master",     150),
    Rank("Grandmaster", 300),
    Rank("Legend",     600),
]


def current_rank(xp: int) -> Rank:
    for rank in reversed(RANKS):
        if xp >= rank.min_xp:
            return rank
    return RANKS[0]


def next_rank(xp: int) -> Rank | None:
    """The tier after the current one, or None at the top."""
    for rank in RANKS:
        if rank.min_xp > xp:
            return rank
    return None
