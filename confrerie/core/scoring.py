"""Point award for a new post."""

from __future__ import annotations

import random
from dataclasses import dataclass

from .models import MediaEntry, MediaType
from .seeds import GM_COMMENTS

MIN_POINTS = 2
MAX_POINTS = 45
BASE_POINTS = 4
MAX_DESCRIPTION_BONUS = 10
MAX_MEDIA_BONUS = 22
MAX_RANDOM_BONUS = 6


@dataclass(frozen=True)
class PostScore:
    points: int
    comment: str


def description_bonus(description: str) -> int:
    length = len(description)
    bonus = (length // 40) * 2 + (2 if length > 0 else 0)
    return max(0, min(MAX_DESCRIPTION_BONUS, bonus))


def media_bonus(media: list[MediaEntry]) -> int:
    videos = sum(1 for m in media if m.type is MediaType.VIDEO)
    images = len(media) - videos
    return max(0, min(MAX_MEDIA_BONUS, images * 3 + videos * 5))


def compute_post_points(
    description: str,
    media: list[MediaEntry],
    rng: random.Random | None = None,
) -> PostScore:
    """Score a post and pick the game master's comment.

    ``points = clamp(4 + description bonus + media bonus + U(0, 6), 2, 45)``
    """
    rng = rng or random.SystemRandom()
    raw = (
        BASE_POINTS
        + description_bonus(description)
        + media_bonus(media)
        + rng.randint(0, MAX_RANDOM_BONUS)
    )
    points = max(MIN_POINTS, min(MAX_POINTS, raw))
    return PostScore(points=points, comment=rng.choice(GM_COMMENTS))
