import pytest
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError

from mcp_solana_launchpad.errors import ValidationError
from mcp_solana_launchpad.rewards import (
    calculate_reward,
    calculate_reward_pool_allocation,
    distribute_rewards,
    top_market_makers,
    validate_pool_config,
    volume_multiplier,
)
from mcp_solana_launchpad.schemas import RewardPoolConfig, RewardTuning, TradingVolumeRecord, TransactionType


def make_pool(total="100000", distributed="0", percent="5", active=True):
    return RewardPoolConfig(
        raffle_id="raffle_1",
        reward_percent=Decimal(percent),
        total_reward_pool=Decimal(total),
        distributed_rewards=Decimal(distributed),
        is_active=active,
    )


def volume(user_id, total):
    return TradingVolumeRecord(user_id=user_id, total_volume=Decimal(str(total)))


@pytest.mark.parametrize("total_volume, expected", [
    (0.5, "1.0"), (5, "1.2"), (25, "1.5"), (75, "2.0"), (150, "2.5"),
    # Tier edges belong to the higher tier
    (1, "1.2"), (10, "1.5"), (50, "2.0"), (100, "2.5"),
])
def test_volume_multiplier_tiers(total_volume, expected):
    assert volume_multiplier(total_volume) == Decimal(expected)


def test_volume_multiplier_custom_tiers():
    tuning = RewardTuning(volume_tiers=[(Decimal(5), Decimal(1))], top_volume_multiplier=Decimal(3))
    assert volume_multiplier(4, tuning) == 1
    assert volume_multiplier(5, tuning) == 3


def test_tuning_rejects_unordered_tiers():
    with pytest.raises(PydanticValidationError):
        RewardTuning(volume_tiers=[(Decimal(10), Decimal(1)), (Decimal(5), Decimal(2))])


def test_reward_for_small_trade():
    pool = make_pool()
    # min(1/100 * 5, 0.1) = 0.05 -> 100000 * 0.05 * 1.0 / 100
    reward = calculate_reward(pool, 1, TransactionType.buy, volume("u", 0))
    assert reward == Decimal(50)


def test_reward_percent_capped_per_trade():
    pool = make_pool()
    reward = calculate_reward(pool, 10, TransactionType.buy, volume("u", 0))
    assert reward == Decimal(100)


def test_reward_scaled_by_multiplier():
    pool = make_pool()
    reward = calculate_reward(pool, 10, TransactionType.sell, volume("u", 150))
    assert reward == Decimal(250)


def test_reward_clamped_to_remaining():
    pool = make_pool(distributed="99990")
    reward = calculate_reward(pool, 10, TransactionType.buy, volume("u", 150))
    assert reward == Decimal(10)


@pytest.mark.parametrize("pool", [
    make_pool(active=False),
    make_pool(distributed="100000"),
])
def test_no_reward_from_inactive_or_depleted_pool(pool):
    assert calculate_reward(pool, 10, TransactionType.buy, volume("u", 5)) == 0


def test_malformed_trade_amount_pays_nothing():
    assert calculate_reward(make_pool(), float("nan"), TransactionType.buy, volume("u", 5)) == 0


def test_scenario_a_daily_cap_then_decrement():
    pool = make_pool(total="100000", distributed="25000", percent="5")
    results = distribute_rewards(pool, [volume("whale", 80), volume("minnow", 20)])

    assert [r.user_id for r in results] == ["whale", "minnow"]
    assert [r.reward_amount for r in results] == [Decimal(1000), Decimal(1000)]
    granted = sum(r.reward_amount for r in results)
    assert pool.remaining_rewards - granted == Decimal(73000)


def test_distribution_never_exceeds_remaining():
    pool = make_pool(total="1000", distributed="0")
    records = [volume(f"u{i}", i + 1) for i in range(20)]
    results = distribute_rewards(pool, records)
    assert sum(r.reward_amount for r in results) <= pool.remaining_rewards


def test_distribution_sorted_by_volume_with_stable_ties():
    pool = make_pool(total="900", distributed="0")
    results = distribute_rewards(pool, [volume("a", 1), volume("b", 5), volume("c", 5)])
    assert [r.user_id for r in results] == ["b", "c", "a"]


def test_distribution_uses_start_total_volume_on_remaining():
    pool = make_pool(total="900", distributed="0")
    results = distribute_rewards(pool, [volume("a", 3), volume("b", 1)])
    # a: 900 * 3/4 = 675, b: 225 * 1/4 = 56.25
    assert results[0].reward_amount == Decimal(675)
    assert results[1].reward_amount == Decimal("56.25")


def test_distribution_counts_rewards_already_granted_today():
    pool = make_pool(total="100000", distributed="0")
    results = distribute_rewards(pool, [volume("a", 10)], already_granted={"a": Decimal(900)})
    assert results[0].reward_amount == Decimal(100)

    capped = distribute_rewards(pool, [volume("a", 10)], already_granted={"a": Decimal(1000)})
    assert capped == []


@pytest.mark.parametrize("pool, records", [
    (make_pool(active=False), [volume("a", 1)]),
    (make_pool(distributed="100000"), [volume("a", 1)]),
    (make_pool(), [volume("a", 0), volume("b", 0)]),
    (make_pool(), []),
])
def test_distribution_empty_cases(pool, records):
    assert distribute_rewards(pool, records) == []


def test_zero_volume_users_skipped():
    pool = make_pool(total="500", distributed="0")
    results = distribute_rewards(pool, [volume("a", 0), volume("b", 3)])
    assert [r.user_id for r in results] == ["b"]


def test_validate_pool_config_messages():
    assert validate_pool_config(reward_percent=5, total_reward_pool=100) == []
    assert validate_pool_config(reward_percent=21) == ["Reward percentage must be between 0% and 20%"]
    assert validate_pool_config(reward_percent=-1) == ["Reward percentage must be between 0% and 20%"]
    assert validate_pool_config(total_reward_pool=0) == ["Total reward pool must be greater than 0"]
    assert len(validate_pool_config(reward_percent="abc", total_reward_pool="nan")) == 2


def test_pool_remaining_invariant():
    pool = make_pool(total="100", distributed="40")
    assert pool.remaining_rewards == Decimal(60)
    assert pool.model_dump()["remaining_rewards"] == Decimal(60)


def test_pool_rejects_overdistribution_and_bad_percent():
    with pytest.raises(PydanticValidationError):
        make_pool(total="100", distributed="101")
    with pytest.raises(PydanticValidationError):
        make_pool(percent="25")
    with pytest.raises(PydanticValidationError):
        make_pool(total="0")


def test_reward_pool_allocation():
    allocation = calculate_reward_pool_allocation(1_000_000_000, 5, {"team": 20, "liquidity": 40})
    assert allocation == Decimal(50_000_000)


def test_reward_pool_allocation_over_100_percent():
    with pytest.raises(ValidationError, match="cannot exceed 100%"):
        calculate_reward_pool_allocation(1_000_000, 10, {"team": 50, "liquidity": 45})


def test_top_market_makers():
    records = [volume("a", 1), volume("b", 30), volume("c", 7)]
    assert [r.user_id for r in top_market_makers(records, 2)] == ["b", "c"]


def test_reward_eligibility():
    assert volume("a", 50).reward_eligibility == Decimal(5)
    assert volume("a", 5000).reward_eligibility == Decimal(100)
