"""Session-scoped helpers: the duplicate-submission guard and the challenge bag.

Both operate on a plain mutable mapping so the front door can hand in its
session dictionary directly.
"""

from __future__ import annotations

import hashlib
import random
from collections.abc import MutableMapping
from typing import Any

from .errors import RateLimitedError
from .models import Challenge, now_ts

GUARD_KEY = "submit_guard"
BAG_KEY = "challenge_bag"


def fingerprint(kind: str, *parts: str) -> str:
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
    return f"{kind}_{digest[:32]}"


def submission_guard(
    session: MutableMapping[str, Any],
    key: str,
    seconds: int,
    message: str,
    now: int | None = None,
) -> None:
    """Raise :class:`RateLimitedError` if ``key`` was seen less than ``seconds`` ago."""
    now = now if now is not None else now_ts()
    seen = session.get(GUARD_KEY)
    if not isinstance(seen, dict):
        seen = {}
    last = seen.get(key, 0)
    if isinstance(last, int) and last > 0 and now - last < seconds:
        raise RateLimitedError(message)
    # drop stale entries so the session cookie stays small
    seen = {k: v for k, v in seen.items() if isinstance(v, int) and now - v < seconds}
    seen[key] = now
    session[GUARD_KEY] = seen


def draw_challenge(
    session: MutableMapping[str, Any],
    challenges: list[Challenge],
    rng: random.Random | None = None,
) -> str:
    """Pick the next challenge from a shuffled per-session bag."""
    if not challenges:
        return "Aucun defi disponible."
    rng = rng or random.SystemRandom()
    bag = session.get(BAG_KEY)
    if not isinstance(bag, list) or not bag:
        bag = list(range(len(challenges)))
        rng.shuffle(bag)
    index = bag.pop()
    session[BAG_KEY] = bag
    if not isinstance(index, int) or not 0 <= index < len(challenges):
        return rng.choice(challenges).text
    return challenges[index].text
