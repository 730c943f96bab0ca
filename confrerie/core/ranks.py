"""Rank tiers derived from a user's points."""

from __future__ import annotations

from typing import NamedTuple


class Rank(NamedTuple):
    name: str
    min_points: int
    icon: str
    color: str


RANKS: tuple[Rank, ...] = (
    Rank("Petit Joueur", 0, "🧃", "text-gray-400"),
    Rank("Apprenti Soiffard", 100, "🍺", "text-yellow-200"),
    Rank("Barathonien", 300, "🍻", "text-orange-400"),
    Rank("Mixologue Fou", 600, "🍹", "text-green-400"),
    Rank("Roi de la Nuit", 1000, "🍸", "text-blue-400"),
    Rank("Légende du Bar", 2000, "🍾", "text-purple-500"),
    Rank("Sommelier du Chaos", 5000, "🍷", "text-red-500"),
    Rank("Dieu de la Pinte", 10000, "⚡", "text-cyan-400"),
    Rank("L'Imbibe Supreme", 20000, "🧊", "text-pink-400"),
    Rank("L'Absolu Ethylique", 50000, "🌌", "text-violet-400"),
)


def get_rank(points: int) -> Rank:
    """Highest tier whose threshold is at most ``points``."""
    current = RANKS[0]
    for rank in sorted(RANKS, key=lambda r: r.min_points):
        if rank.min_points <= points:
            current = rank
    return current


def get_next_rank(points: int) -> Rank | None:
    """Lowest tier whose threshold is above ``points``, if any."""
    return next(
        (r for r in sorted(RANKS, key=lambda r: r.min_points) if r.min_points > points),
        None,
    )


def rank_progress(points: int) -> float:
    """Percentage of the way from the current tier to the next one."""
    nxt = get_next_rank(points)
    if nxt is None:
        return 100.0
    current = get_rank(points)
    span = nxt.min_points - current.min_points
    progress = (points - current.min_points) / span * 100
    return max(0.0, min(100.0, progress))
