"""
Market Making Reward Calculations

Token issuers set aside a pool of tokens to reward traders who provide volume. This
module holds the pure reward arithmetic; reward_pools wraps it in atomic pool updates.

Per-trade rewards:
1. Inactive or depleted pools pay nothing
2. The base reward percent scales with trade size and is capped at MAX_REWARD_PER_TRADE
3. A step multiplier rewards traders with more cumulative volume
4. The reward is clamped to what is left in the pool

Batch distribution splits what is left in the pool across traders by volume share,
largest traders first. Each trader is capped at DAILY_REWARD_LIMIT and the amount
actually granted is taken off the pool before the next trader's share is computed, so
caps never cause the batch to over-allocate.
"""
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from mcp_solana_launchpad import config
from mcp_solana_launchpad.errors import ValidationError
from mcp_solana_launchpad.schemas import (
    RewardDistributionResult,
    RewardPoolConfig,
    RewardTuning,
    TradingVolumeRecord,
    TransactionType,
)
from mcp_solana_launchpad.utils import coerce_decimal
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

_DEFAULT_TUNING: Optional[RewardTuning] = None


def default_tuning() -> RewardTuning:
    global _DEFAULT_TUNING
    if _DEFAULT_TUNING is None:
        _DEFAULT_TUNING = RewardTuning()
    return _DEFAULT_TUNING


def volume_multiplier(total_volume, tuning: Optional[RewardTuning] = None) -> Decimal:
    """Step multiplier for a trader's cumulative SOL volume."""
    tuning = tuning or default_tuning()
    volume = coerce_decimal(total_volume, "total_volume")
    for upper_bound, multiplier in tuning.volume_tiers:
        if volume < upper_bound:
            return multiplier
    return tuning.top_volume_multiplier


def calculate_reward(
    pool: RewardPoolConfig,
    trade_amount_sol,
    side: TransactionType,
    user_volume: TradingVolumeRecord,
    tuning: Optional[RewardTuning] = None,
) -> Decimal:
    """
    Calculates the market making reward for a single trade.

    Args:
        pool: Current reward pool snapshot.
        trade_amount_sol: SOL size of the trade.
        side: Buy or sell. Both sides earn rewards at the same rate.
        user_volume: The trader's cumulative volume record.
        tuning: Reward constants; defaults to configuration.

    Returns:
        The reward in pool tokens, between 0 and the pool's remaining rewards.
    """
    tuning = tuning or default_tuning()
    if not pool.is_active or pool.remaining_rewards <= 0:
        return Decimal(0)

    trade_amount = coerce_decimal(trade_amount_sol, "trade_amount_sol")
    base_reward_percent = min(trade_amount / 100 * pool.reward_percent, tuning.max_reward_per_trade)
    multiplier = volume_multiplier(user_volume.total_volume, tuning)

    reward = pool.total_reward_pool * base_reward_percent * multiplier / 100
    reward = min(reward, pool.remaining_rewards)
    logger.debug(f"Reward for {side.value} of {trade_amount} SOL by {user_volume.user_id} in "
                 f"'{pool.raffle_id}': base={base_reward_percent}, multiplier={multiplier}, reward={reward}")
    return reward


def distribute_rewards(
    pool: RewardPoolConfig,
    records: Sequence[TradingVolumeRecord],
    tuning: Optional[RewardTuning] = None,
    already_granted: Optional[Mapping[str, Decimal]] = None,
) -> List[RewardDistributionResult]:
    """
    Splits the pool's remaining rewards across traders by volume share.

    Args:
        pool: Current reward pool snapshot.
        records: Volume records of the traders in this epoch.
        tuning: Reward constants; defaults to configuration.
        already_granted: Rewards each user already received today; counts against the daily limit.

    Returns:
        One result per rewarded trader, largest volume first. Ties keep input order.
    """
    tuning = tuning or default_tuning()
    if not pool.is_active or pool.remaining_rewards <= 0:
        return []

    volumes = [coerce_decimal(r.total_volume, "total_volume") for r in records]
    total_volume = sum(volumes, Decimal(0))
    if total_volume == 0:
        return []

    # sorted() is stable, so equal volumes keep first-seen order
    ranked = sorted(zip(volumes, records), key=lambda pair: pair[0], reverse=True)

    granted: Dict[str, Decimal] = dict(already_granted or {})
    remaining = pool.remaining_rewards
    results: List[RewardDistributionResult] = []

    for volume, record in ranked:
        if remaining <= 0:
            break

        user_reward = remaining * (volume / total_volume)
        daily_headroom = max(tuning.daily_reward_limit - granted.get(record.user_id, Decimal(0)), Decimal(0))
        final_reward = min(user_reward, daily_headroom, remaining)

        if final_reward > 0:
            results.append(RewardDistributionResult(
                raffle_id=pool.raffle_id,
                user_id=record.user_id,
                sol_amount=volume,
                reward_amount=final_reward,
                transaction_type=TransactionType.buy,
            ))
            granted[record.user_id] = granted.get(record.user_id, Decimal(0)) + final_reward
            remaining -= final_reward

    logger.debug(f"Distribution for '{pool.raffle_id}': {len(results)} rewards, "
                 f"remaining {pool.remaining_rewards} -> {remaining}")
    return results


def validate_pool_config(reward_percent=None, total_reward_pool=None) -> List[str]:
    """Returns validation messages for pool parameters; an empty list means valid."""
    errors: List[str] = []

    if reward_percent is not None:
        try:
            percent = Decimal(str(reward_percent))
        except ArithmeticError:
            percent = None
        if percent is None or not percent.is_finite() or percent < 0 or percent > config.MAX_REWARD_PERCENT:
            errors.append(f"Reward percentage must be between 0% and {config.MAX_REWARD_PERCENT}%")

    if total_reward_pool is not None:
        try:
            pool_size = Decimal(str(total_reward_pool))
        except ArithmeticError:
            pool_size = None
        if pool_size is None or not pool_size.is_finite() or pool_size <= 0:
            errors.append("Total reward pool must be greater than 0")

    return errors


def calculate_reward_pool_allocation(total_supply, reward_percent, allocations: Mapping[str, Decimal]) -> Decimal:
    """
    Token amount an issuer sets aside for market making rewards.

    Args:
        total_supply: Token supply of the launch.
        reward_percent: Percent of supply allocated to market making rewards.
        allocations: Other tokenomics allocations in percent (team, marketing, liquidity, airdrop, ...).

    Raises:
        ValidationError: If all allocations together exceed 100% or the percent is out of range.
    """
    errors = validate_pool_config(reward_percent=reward_percent)
    if errors:
        raise ValidationError("; ".join(errors))

    percent = Decimal(str(reward_percent))
    total_allocated = sum((Decimal(str(v)) for v in allocations.values()), Decimal(0)) + percent
    if total_allocated > 100:
        raise ValidationError("Total allocations cannot exceed 100%")

    return Decimal(str(total_supply)) * percent / 100


def top_market_makers(records: Sequence[TradingVolumeRecord], limit: int = 10) -> List[TradingVolumeRecord]:
    """Traders with the most volume, largest first."""
    return sorted(records, key=lambda r: r.total_volume, reverse=True)[:limit]
