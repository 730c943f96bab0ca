import random

from confrerie.core.models import MediaEntry, MediaType
from confrerie.core.ranks import RANKS, get_next_rank, get_rank, rank_progress
from confrerie.core.scoring import compute_post_points, description_bonus, media_bonus
from confrerie.core.seeds import GM_COMMENTS


def video(n: int) -> list[MediaEntry]:
    return [MediaEntry(type=MediaType.VIDEO, url=f"v{i}.mp4") for i in range(n)]


def test_empty_post_scores_between_four_and_ten() -> None:
    seen = {compute_post_points("", [], random.Random(seed)).points for seed in range(300)}
    assert seen == set(range(4, 11))


def test_description_bonus() -> None:
    assert description_bonus("") == 0
    assert description_bonus("a") == 2
    assert description_bonus("a" * 40) == 4
    assert description_bonus("a" * 1000) == 10


def test_media_bonus_is_capped() -> None:
    image = MediaEntry(type=MediaType.IMAGE, url="i.jpg")
    assert media_bonus([image]) == 3
    assert media_bonus(video(1)) == 5
    assert media_bonus(video(8)) == 22


def test_score_stays_in_bounds() -> None:
    for seed in range(50):
        score = compute_post_points("a" * 1000, video(8), random.Random(seed))
        assert 36 <= score.points <= 45
        assert score.comment in GM_COMMENTS


def test_ranks() -> None:
    assert get_rank(0).name == "Petit Joueur"
    assert get_rank(99).name == "Petit Joueur"
    assert get_rank(100).name == "Apprenti Soiffard"
    assert get_next_rank(100).min_points == 300
    assert rank_progress(200) == 50.0

    top = RANKS[-1]
    assert get_rank(10**6) == top
    assert get_next_rank(top.min_points) is None
    assert rank_progress(top.min_points) == 100.0
