import random

import pytest

from moviemate.matching import (
    WEIGHTS,
    UserPreferenceProfile,
    find_candidates,
    is_viable,
    match_details,
    overlap_ratio,
    rating_similarity,
    score,
    score_dimensions,
)


def _profile(user_id, *, genres=(), favorites=(), watchlist=(), ratings=None) -> UserPreferenceProfile:
    return UserPreferenceProfile(
        user_id=user_id,
        genres=genres,
        favorite_movies=favorites,
        watchlist=watchlist,
        ratings=ratings or {},
    )


def _random_profile(rng: random.Random, user_id: str) -> UserPreferenceProfile:
    movies = [str(i) for i in range(20)]
    genres = ["Action", "Comedy", "Drama", "Horror", "Romance", "Thriller", "Animation"]
    rated = rng.sample(movies, rng.randint(0, 12))
    return _profile(
        user_id,
        genres=rng.sample(genres, rng.randint(0, len(genres))),
        favorites=rng.sample(movies, rng.randint(0, 10)),
        watchlist=rng.sample(movies, rng.randint(0, 10)),
        ratings={movie_id: rng.randint(1, 5) for movie_id in rated},
    )


def test_overlap_ratio_uses_smaller_set_and_floors_denominator():
    assert overlap_ratio(frozenset({"1", "2", "3"}), frozenset({"2", "3", "4"})) == (2 / 3, 2)
    assert overlap_ratio(frozenset({"1", "2"}), frozenset({"1", "2", "3", "4", "5"})) == (1.0, 2)
    assert overlap_ratio(frozenset(), frozenset()) == (0.0, 0)
    assert overlap_ratio(frozenset({"1"}), frozenset()) == (0.0, 0)


def test_rating_similarity_averages_over_common_movies():
    a = _profile("a", ratings={"m1": 5, "m2": 3, "m3": 1, "m4": 2})
    b = _profile("b", ratings={"m1": 4, "m2": 3, "m3": 5, "m9": 2})

    similarity, common = rating_similarity(a, b)

    assert common == 3
    assert similarity == pytest.approx((0.75 + 1.0 + 0.0) / 3)


def test_rating_dimension_needs_three_common_movies():
    a = _profile("a", ratings={"m1": 5, "m2": 4})
    b = _profile("b", ratings={"m1": 5, "m2": 4})

    dimensions = score_dimensions(a, b)

    assert dimensions.common_ratings == 2
    assert dimensions.ratings == 0.0


def test_documented_scenario_favorites_and_genres():
    a = _profile("a", favorites=[1, 2, 3], genres=["Action", "Comedy", "Drama"])
    b = _profile("b", favorites=[2, 3, 4], genres=["Action", "Comedy"])

    dimensions = score_dimensions(a, b)
    result = score(a, b)

    assert dimensions.favorites == pytest.approx(2 / 3)
    assert dimensions.genres == 1.0
    assert dimensions.total == pytest.approx(0.4 * (2 / 3) + 0.3)
    assert is_viable(dimensions)
    assert result.user_id == "b"
    assert result.score == pytest.approx(0.5667, abs=1e-4)
    assert result.match_reason == [
        "2 common favorite movies",
        "shares 2 genres: Action, Comedy",
    ]


def test_identical_ratings_give_full_rating_weight():
    ratings = {f"m{i}": rating for i, rating in enumerate([5, 4, 3, 2, 1])}
    a = _profile("a", favorites=["m0"], genres=["Action", "Drama"], ratings=ratings)
    b = _profile("b", favorites=["m0"], genres=["Action", "Drama"], ratings=dict(ratings))

    dimensions = score_dimensions(a, b)
    result = score(a, b)

    assert dimensions.ratings == 1.0
    assert WEIGHTS.ratings * dimensions.ratings == 0.2
    assert result.score == pytest.approx(0.4 + 0.3 + 0.2)
    assert "5 commonly rated movies, 100% rating agreement" in result.match_reason


def test_no_overlap_scores_zero_with_empty_explanation():
    a = _profile("a", favorites=["1"], genres=["Action"], watchlist=["7"], ratings={"1": 5})
    b = _profile("b", favorites=["2"], genres=["Drama"], watchlist=["8"], ratings={"2": 5})

    dimensions = score_dimensions(a, b)
    result = score(a, b)

    assert dimensions.total == 0.0
    assert result.score == 0.0
    assert result.match_reason == []


def test_empty_profiles_are_not_an_error():
    result = score(_profile("a"), _profile("b"))

    assert result.score == 0.0
    assert result.match_reason == []


def test_gating_requires_a_common_favorite():
    a = _profile("a", genres=["Action", "Comedy"], watchlist=["1", "2"])
    b = _profile("b", genres=["Action", "Comedy"], watchlist=["1", "2"])

    dimensions = score_dimensions(a, b)

    assert dimensions.total == pytest.approx(0.4)
    assert score(a, b).score == 0.0


def test_gating_requires_two_common_genres():
    a = _profile("a", favorites=["1", "2"], genres=["Action", "Comedy"])
    b = _profile("b", favorites=["1", "2"], genres=["Action", "Drama"])

    dimensions = score_dimensions(a, b)

    assert dimensions.total == pytest.approx(0.4 + 0.15)
    assert dimensions.common_genres == 1
    assert score(a, b).score == 0.0


def test_gating_requires_minimum_total():
    favorites = [str(i) for i in range(10)]
    genres = ["Action", "Comedy", "Drama", "Horror", "Romance", "Thriller", "War", "Western", "Music", "Crime"]
    a = _profile("a", favorites=favorites, genres=genres)
    b = _profile("b", favorites=["0"] + [f"x{i}" for i in range(9)], genres=genres[:2] + [f"g{i}" for i in range(8)])

    dimensions = score_dimensions(a, b)

    assert dimensions.common_favorites == 1
    assert dimensions.common_genres == 2
    assert dimensions.total == pytest.approx(0.4 * 0.1 + 0.3 * 0.2)
    assert score(a, b).score == 0.0


def test_watchlist_only_overlap_is_not_a_match():
    a = _profile("a", watchlist=["1", "2", "3"])
    b = _profile("b", watchlist=["1", "2", "3"])

    result = score(a, b)

    assert result.score == 0.0
    assert result.match_reason == ["3 movies on both watchlists"]


def test_explanation_order_follows_weights():
    ratings = {"1": 5, "2": 4, "3": 3}
    a = _profile("a", favorites=["1"], genres=["Drama", "Action"], watchlist=["9"], ratings=ratings)
    b = _profile("b", favorites=["1"], genres=["Action", "Drama"], watchlist=["9"], ratings={"1": 5, "2": 2, "3": 3})

    reasons = score(a, b).match_reason

    assert reasons == [
        "1 common favorite movie",
        "shares 2 genres: Action, Drama",
        "3 commonly rated movies, 83% rating agreement",
        "1 movie on both watchlists",
    ]


def test_score_is_symmetric_and_bounded():
    rng = random.Random(1234)
    profiles = [_random_profile(rng, f"u{i}") for i in range(30)]

    for a in profiles:
        for b in profiles:
            forward = score_dimensions(a, b)
            backward = score_dimensions(b, a)
            assert forward == backward
            assert 0.0 <= forward.total <= 1.0
            assert score(a, b).score == score(b, a).score


def test_score_is_idempotent():
    rng = random.Random(99)
    a = _random_profile(rng, "a")
    b = _random_profile(rng, "b")

    assert score(a, b) == score(a, b)


def test_score_accepts_mappings(make_profile):
    a = make_profile("a", favorites=[1, 2, 3], genres=["Action", "Comedy", "Drama"])
    b = make_profile("b", favorites=[2, 3, 4], genres=["Action", "Comedy"])

    assert score(a, b).score == pytest.approx(0.4 * (2 / 3) + 0.3)


def test_movie_ids_are_normalized():
    a = _profile("a", favorites=[1, 2], genres=["Action", "Comedy"])
    b = _profile("b", favorites=["1", "2"], genres=["Action", "Comedy"])

    assert score_dimensions(a, b).common_favorites == 2


def test_find_candidates_orders_by_score_then_id():
    subject = _profile("1", favorites=["a", "b"], genres=["Action", "Comedy", "Drama"])
    strong = _profile("7", favorites=["a", "b"], genres=["Action", "Comedy", "Drama"])
    tie_low = _profile("9", favorites=["a", "q"], genres=["Action", "Comedy"])
    tie_high = _profile("10", favorites=["a", "r"], genres=["Action", "Comedy"])
    weak = _profile("3", favorites=["z"], genres=["Action", "Comedy"])

    results = find_candidates(subject, [weak, tie_high, strong, tie_low, subject])

    assert [result.user_id for result in results] == ["7", "9", "10"]
    assert results[0].score == pytest.approx(0.7)
    assert results[1].score == results[2].score == pytest.approx(0.5)


def test_find_candidates_empty_inputs():
    subject = _profile("1", favorites=["a"], genres=["Action", "Comedy"])

    assert find_candidates(subject, []) == []
    assert find_candidates(subject, [_profile("2")]) == []


def test_match_details_lists_common_items():
    a = _profile("a", favorites=["3", "1", "2"], genres=["Drama", "Action"], ratings={"1": 4, "5": 2})
    b = _profile("b", favorites=["2", "3"], genres=["Action", "Drama", "War"], ratings={"1": 3})

    details = match_details(a, b)

    assert details.common_movies == ["2", "3"]
    assert details.common_genres == ["Action", "Drama"]
    assert details.common_movies_count == 2
    assert details.common_genres_count == 2
    assert details.common_ratings_count == 1
