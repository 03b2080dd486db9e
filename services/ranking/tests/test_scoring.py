import math
from dataclasses import replace

import pytest

from feedrank.feed.candidates import ViewerContext
from feedrank.feed.scoring import (
    DEFAULT_ALGORITHM_CONFIG,
    AlgorithmConfig,
    score_affinity,
    score_candidates,
    score_composite,
    score_diversity,
    score_engagement,
    score_recency,
    score_virality,
    sort_by_composite,
)
from feedrank.models.enums import MediaType

from factories import NOW, make_author, make_candidate


def test_recency_one_hour_old() -> None:
    item = make_candidate(hours_old=1)
    assert score_recency(item.created_at, NOW) == pytest.approx(math.exp(-1 / 24))
    assert score_recency(item.created_at, NOW) == pytest.approx(0.9592, abs=1e-4)


def test_recency_strictly_decreasing_with_age() -> None:
    scores = [
        score_recency(make_candidate(hours_old=h).created_at, NOW) for h in (0, 1, 6, 24, 72)
    ]
    assert scores[0] == 1.0
    assert all(a > b for a, b in zip(scores, scores[1:]))
    assert all(0 < s <= 1 for s in scores)


def test_recency_future_timestamp_clamped() -> None:
    item = make_candidate(hours_old=-2)
    assert score_recency(item.created_at, NOW) == 1.0


def test_engagement_worked_example() -> None:
    item = make_candidate(hours_old=1, likes=10, reposts=2, replies=1)
    recency = score_recency(item.created_at, NOW)
    expected = math.log10(21 * (0.3 + 0.7 * recency) + 1) * 10
    score = score_engagement(item, recency)
    assert score == pytest.approx(expected)
    assert score == pytest.approx(13.3, abs=0.05)


def test_engagement_never_decreases_with_more_interactions() -> None:
    base = make_candidate(hours_old=4, likes=3, reposts=1, replies=1)
    recency = score_recency(base.created_at, NOW)
    baseline = score_engagement(base, recency)
    for field in ("likes", "reposts", "replies"):
        bumped = replace(
            base, counters=replace(base.counters, **{field: getattr(base.counters, field) + 1})
        )
        assert score_engagement(bumped, recency) > baseline


def test_engagement_old_items_discounted_not_zeroed() -> None:
    item = make_candidate(hours_old=24 * 30, likes=100)
    score = score_engagement(item, score_recency(item.created_at, NOW))
    assert score == pytest.approx(math.log10(100 * 0.3 + 1) * 10, rel=1e-3)


def test_engagement_verified_and_media_boosts() -> None:
    plain = make_candidate(likes=10)
    verified = make_candidate(make_author(verified=True), likes=10)
    video = make_candidate(likes=10, media_type=MediaType.VIDEO)
    image = make_candidate(likes=10, media_type=MediaType.IMAGE)
    recency = score_recency(plain.created_at, NOW)

    value = 10 * (0.3 + 0.7 * recency)
    assert score_engagement(plain, recency) == pytest.approx(math.log10(value + 1) * 10)
    assert score_engagement(verified, recency) == pytest.approx(math.log10(value * 1.2 + 1) * 10)
    assert score_engagement(video, recency) == pytest.approx(math.log10(value * 1.3 + 1) * 10)
    assert score_engagement(image, recency) == pytest.approx(math.log10(value * 1.1 + 1) * 10)


def test_engagement_media_boost_needs_attached_urls() -> None:
    plain = make_candidate(likes=10)
    bare_gif = make_candidate(likes=10, media_type=MediaType.GIF, media_urls=())
    recency = score_recency(plain.created_at, NOW)

    assert not bare_gif.has_media
    assert score_engagement(bare_gif, recency) == pytest.approx(score_engagement(plain, recency))


def test_engagement_zero_for_no_interactions() -> None:
    item = make_candidate()
    assert score_engagement(item, 1.0) == 0.0


def test_affinity_following_boost_and_topics() -> None:
    author = make_author()
    item = make_candidate(author, hashtags=("python", "feeds"), mentions=("@bob",))
    viewer = ViewerContext(viewer_id=make_author().id, following=frozenset({author.id}))
    assert score_affinity(item, viewer) == pytest.approx(10.0 + 0.5 * 2 + 0.3)


def test_affinity_interaction_weight_capped() -> None:
    author = make_author()
    item = make_candidate(author)
    viewer = ViewerContext(viewer_id=None, interaction_weights={author.id: 250.0})
    assert score_affinity(item, viewer) == 20.0


def test_affinity_self_counts_as_followed() -> None:
    me = make_author()
    viewer = ViewerContext(viewer_id=me.id)
    assert score_affinity(make_candidate(me), viewer) == DEFAULT_ALGORITHM_CONFIG.following_boost


@pytest.mark.parametrize(
    ("likes", "expected"),
    [
        (25, 75.0),  # > 20 → ×3
        (20, 40.0),  # == 20 falls to ×2
        (12, 24.0),
        (6, 9.0),
        (5, 5.0),
        (2, 2.0),
    ],
)
def test_virality_tiers(likes: int, expected: float) -> None:
    item = make_candidate(hours_old=1, likes=likes)
    assert score_virality(item, NOW) == pytest.approx(expected)


def test_virality_young_items_use_one_hour_floor() -> None:
    item = make_candidate(hours_old=0.25, likes=4)
    assert score_virality(item, NOW) == pytest.approx(4.0)


def test_diversity_penalises_same_author_and_media() -> None:
    author = make_author()
    item = make_candidate(author)
    preceding = [
        make_candidate(author),
        make_candidate(media_type=MediaType.IMAGE),
        make_candidate(),
    ]
    # one same author, two same media type
    assert score_diversity(item, preceding) == pytest.approx(0.5)


def test_diversity_floor() -> None:
    author = make_author()
    preceding = [make_candidate(author) for _ in range(5)]
    assert score_diversity(make_candidate(author), preceding) == 0.1


def test_diversity_first_item_is_unpenalised() -> None:
    assert score_diversity(make_candidate(), []) == 1.0


def test_composite_floored_at_zero() -> None:
    config = AlgorithmConfig(recency=-5, engagement=-5, affinity=-5, virality=-5, diversity=-5)
    assert score_composite(1.0, 10.0, 10.0, 10.0, 1.0, config) == 0.0


def test_composite_is_weighted_sum() -> None:
    config = AlgorithmConfig(recency=1, engagement=2, affinity=3, virality=4, diversity=5)
    assert score_composite(1, 1, 1, 1, 1, config) == pytest.approx(15.0)


def test_score_candidates_composite_non_negative_and_deterministic() -> None:
    authors = [make_author(), make_author(verified=True)]
    candidates = [
        make_candidate(authors[i % 2], hours_old=i, likes=i * 3, reposts=i, replies=i % 3)
        for i in range(12)
    ]
    viewer = ViewerContext(viewer_id=authors[0].id, interaction_weights={authors[1].id: 4.0})

    first = score_candidates(candidates, viewer, NOW)
    second = score_candidates(candidates, viewer, NOW)

    assert [s.scores for s in first] == [s.scores for s in second]
    assert all(s.scores.composite >= 0 for s in first)


def test_score_candidates_excludes_invalid_from_output_and_window() -> None:
    a, b = make_author(), make_author()
    valid_a = make_candidate(a)
    missing_author = replace(make_candidate(a), author=None)
    negative = replace(make_candidate(a), counters=replace(valid_a.counters, likes=-1))
    mismatched = replace(make_candidate(a), author=b)
    valid_b = make_candidate(b)

    scored = score_candidates(
        [valid_a, missing_author, negative, mismatched, valid_b],
        ViewerContext(viewer_id=None),
        NOW,
    )

    assert [s.candidate.id for s in scored] == [valid_a.id, valid_b.id]
    # only valid_a precedes valid_b in the diversity window: same media, other author
    assert scored[1].scores.diversity == pytest.approx(0.9)


def test_score_candidates_diversity_uses_input_order() -> None:
    a = make_author()
    items = [make_candidate(a), make_candidate(a), make_candidate(a)]
    scored = score_candidates(items, ViewerContext(viewer_id=None), NOW)
    assert [s.scores.diversity for s in scored] == pytest.approx([1.0, 0.6, 0.2])


def test_sort_by_composite_descending_and_stable() -> None:
    a = make_author()
    items = [
        make_candidate(a, likes=1),
        make_candidate(a, likes=50),
        make_candidate(a, likes=1),
    ]
    # zero the order-dependent factor so equal items tie exactly
    config = replace(DEFAULT_ALGORITHM_CONFIG, diversity=0.0)
    scored = score_candidates(items, ViewerContext(viewer_id=None), NOW, config)
    ranked = sort_by_composite(scored)
    assert ranked[0].candidate.id == items[1].id
    assert [r.candidate.id for r in ranked[1:]] == [items[0].id, items[2].id]
