import pytest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from mcp_solana_launchpad.schemas import (
    HypeFactors,
    TrendingCategory,
    TrendingFilters,
    TrendingMetrics,
    TrendingSortKey,
    TrendingTuning,
)
from mcp_solana_launchpad.trending import (
    TrendingBoard,
    calculate_hype_score,
    calculate_trending_score,
    is_trending,
    rank_launches,
    trending_categories,
)


def metrics(launch_id="l", volume=0.0, trades=0, participants=0, hype=0.0, social=0.0,
            category=TrendingCategory.token):
    return TrendingMetrics(
        launch_id=launch_id,
        category=category,
        volume_24h=volume,
        trades_24h=trades,
        participants_24h=participants,
        hype_score=hype,
        social_engagement=social,
    )


def test_score_all_maxed():
    assert calculate_trending_score(metrics(volume=10, trades=50, participants=20, hype=100, social=100)) == 100


def test_score_empty():
    assert calculate_trending_score(metrics()) == 0


def test_score_weighted_sum():
    # 50*0.30 + 20*0.25 + 20*0.20 + 40*0.15 + 0*0.10 = 30
    assert calculate_trending_score(metrics(volume=5, trades=10, participants=4, hype=40)) == 30


def test_score_caps_are_idempotent():
    capped = metrics(volume=10, trades=50, participants=20, hype=100, social=100)
    beyond = metrics(volume=10_000, trades=5_000, participants=2_000, hype=500, social=900)
    assert calculate_trending_score(capped) == calculate_trending_score(beyond) == 100


def test_score_rounds_half_up():
    # Only social engagement: 5 * 0.10 = 0.5
    assert calculate_trending_score(metrics(social=5)) == 1


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), -50.0])
def test_malformed_telemetry_scores_as_zero(bad):
    assert calculate_trending_score(metrics(volume=bad)) == 0


def test_hype_score_midpoint():
    factors = HypeFactors(ticket_sales=50, max_tickets=100, time_remaining_hours=12,
                          social_mentions=50, unique_participants=25, volume_24h=50)
    assert calculate_hype_score(factors) == 50


def test_hype_score_maxed():
    factors = HypeFactors(ticket_sales=100, max_tickets=100, time_remaining_hours=0,
                          social_mentions=1000, unique_participants=500, volume_24h=1000)
    assert calculate_hype_score(factors) == 100


def test_hype_sales_ratio_is_clamped():
    oversold = HypeFactors(ticket_sales=500, max_tickets=100, time_remaining_hours=48)
    assert calculate_hype_score(oversold) == 30


def test_hype_without_max_tickets():
    factors = HypeFactors(ticket_sales=10, max_tickets=0, time_remaining_hours=48)
    assert calculate_hype_score(factors) == 0


def test_hype_time_pressure_never_negative():
    factors = HypeFactors(time_remaining_hours=1000)
    assert calculate_hype_score(factors) == 0


def test_is_trending_needs_all_floors():
    assert is_trending(metrics(volume=1, trades=5, participants=3, hype=10)) is True
    assert is_trending(metrics(volume=0.9, trades=5, participants=3, hype=10)) is False
    assert is_trending(metrics(volume=1, trades=4, participants=3, hype=10)) is False
    assert is_trending(metrics(volume=1, trades=5, participants=2, hype=10)) is False
    assert is_trending(metrics(volume=1, trades=5, participants=3, hype=9)) is False


def test_rank_launches_orders_by_score():
    ranked = rank_launches([
        metrics("low", volume=1),
        metrics("high", volume=10, trades=50),
        metrics("mid", volume=5),
    ])
    assert [(r.launch_id, r.rank) for r in ranked] == [("high", 1), ("mid", 2), ("low", 3)]


def test_rank_launches_ties_keep_input_order():
    ranked = rank_launches([metrics("first", volume=3), metrics("second", volume=3), metrics("third", volume=3)])
    assert [r.launch_id for r in ranked] == ["first", "second", "third"]


def test_rank_launches_change_24h():
    ranked = rank_launches(
        [metrics("a", volume=10), metrics("b", volume=5), metrics("new", volume=1)],
        previous_ranks={"a": 3, "b": 1},
    )
    changes = {r.launch_id: r.change_24h for r in ranked}
    assert changes == {"a": 2, "b": -1, "new": 0}


def test_rank_launches_filters_and_limit():
    launches = [
        metrics("raffle_big", volume=9, participants=10, category=TrendingCategory.raffle),
        metrics("raffle_small", volume=0.5, participants=1, category=TrendingCategory.raffle),
        metrics("token", volume=8, participants=10),
    ]
    raffles = rank_launches(launches, TrendingFilters(category=TrendingCategory.raffle))
    assert [r.launch_id for r in raffles] == ["raffle_big", "raffle_small"]

    busy = rank_launches(launches, TrendingFilters(min_volume=1, min_participants=5))
    assert [r.launch_id for r in busy] == ["raffle_big", "token"]

    assert len(rank_launches(launches, limit=1)) == 1


def test_rank_launches_sort_by_participants():
    ranked = rank_launches(
        [metrics("loud", volume=10, participants=1), metrics("crowded", volume=1, participants=30)],
        TrendingFilters(sort_by=TrendingSortKey.participants),
    )
    assert [r.launch_id for r in ranked] == ["crowded", "loud"]


def test_tuning_weights_must_sum_to_one():
    with pytest.raises(ValidationError):
        TrendingTuning(score_weights={"volume": 0.5, "trades": 0.5, "participants": 0.5, "hype": 0, "social": 0})
    with pytest.raises(ValidationError):
        TrendingTuning(scales={"volume": 0, "trades": 2, "participants": 5})


def test_custom_tuning_changes_score():
    tuning = TrendingTuning(score_weights={"volume": 1.0, "trades": 0, "participants": 0, "hype": 0, "social": 0})
    assert calculate_trending_score(metrics(volume=5, trades=50), tuning) == 50


def test_board_measures_change_against_baseline():
    board = TrendingBoard()
    start = datetime(2024, 6, 1, tzinfo=timezone.utc)

    board.publish([metrics("a", volume=10), metrics("b", volume=5)], now=start)
    later = board.publish([metrics("a", volume=1), metrics("b", volume=5)], now=start + timedelta(hours=2))
    assert {r.launch_id: r.change_24h for r in later} == {"b": 1, "a": -1}

    dashboard = board.dashboard()
    assert [r.launch_id for r in dashboard["biggest_gainers"]] == ["b"]
    assert [r.launch_id for r in dashboard["biggest_losers"]] == ["a"]
    assert [r.launch_id for r in dashboard["top_tokens"]] == ["b", "a"]
    assert dashboard["top_raffles"] == []


def test_board_rotates_baseline_after_window():
    board = TrendingBoard()
    start = datetime(2024, 6, 1, tzinfo=timezone.utc)
    board.publish([metrics("a", volume=10), metrics("b", volume=5)], now=start)
    # Rotation happens on the first publish after 24h
    board.publish([metrics("a", volume=1), metrics("b", volume=5)], now=start + timedelta(hours=25))
    settled = board.publish([metrics("a", volume=1), metrics("b", volume=5)], now=start + timedelta(hours=26))
    assert all(r.change_24h == 0 for r in settled)


def test_trending_categories():
    ids = [c["id"] for c in trending_categories()]
    assert ids == ["raffles", "tokens", "volume", "new", "ending"]
