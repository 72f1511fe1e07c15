"""
Pydantic Data Models and Validation Schemas

This module defines the data models of the launchpad economics engine using Pydantic.
Configuration-time rules (positive supply, percentages in range, ordered curve prices,
weights summing to one) are enforced here, so invalid launches and pools are rejected
when they are created instead of when prices or rewards are queried.

Key Components:
- CurveKind / CurveConfig: bonding curve shape, immutable per launch
- SaleState / GraduationState: sale progress snapshots
- RewardPoolConfig: reward pool snapshot with a derived remaining balance
- TradingVolumeRecord / RewardDistributionResult: reward inputs and outputs
- TrendingMetrics / HypeFactors / TrendingRanking / TrendingFilters: ranking inputs and outputs
- LaunchEvent: entries of the launch event log
- RewardTuning / TrendingTuning: named tuning knobs loaded from configuration
- TokenConfig / LaunchConfig / LaunchConfigModel: launch JSON file layout

Money amounts (prices, SOL volumes, reward tokens) are Decimals. Engagement telemetry
used only for ranking is float.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from solders.pubkey import Pubkey

from mcp_solana_launchpad import config


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CurveKind(str, Enum):
    fixed = "fixed"
    linear = "linear"
    exponential = "exponential"


class TransactionType(str, Enum):
    buy = "buy"
    sell = "sell"


class TrendingCategory(str, Enum):
    raffle = "raffle"
    token = "token"


class TrendingSortKey(str, Enum):
    score = "score"
    volume = "volume"
    participants = "participants"
    hype = "hype"


class EventKind(str, Enum):
    milestone_crossed = "milestone_crossed"
    threshold_met = "threshold_met"
    graduated = "graduated"
    rewards_distributed = "rewards_distributed"
    trade_recorded = "trade_recorded"


# --- Bonding curve ---

class CurveConfig(BaseModel):
    """Bonding curve parameters. The curve runs from base_price at 0 sold to terminal_price at total_supply."""

    model_config = ConfigDict(frozen=True)

    total_supply: Decimal = Field(config.DEFAULT_TOTAL_SUPPLY, gt=0)
    decimals: int = Field(config.DEFAULT_TOKEN_DECIMALS, ge=0, le=18)
    curve_kind: CurveKind = CurveKind(config.DEFAULT_CURVE_KIND)
    base_price: Decimal = Field(config.DEFAULT_BASE_PRICE, ge=0)
    terminal_price: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _default_terminal_price(cls, data: Any) -> Any:
        # Fixed curves default to flat, the other kinds to the configured terminal price
        if isinstance(data, dict) and data.get("terminal_price") is None:
            data = dict(data)
            kind = data.get("curve_kind", config.DEFAULT_CURVE_KIND)
            if kind == CurveKind.fixed:
                data["terminal_price"] = data.get("base_price", config.DEFAULT_BASE_PRICE)
            else:
                data["terminal_price"] = config.DEFAULT_TERMINAL_PRICE
        return data

    @model_validator(mode="after")
    def _check_prices(self) -> "CurveConfig":
        if self.terminal_price < self.base_price:
            raise ValueError("terminal_price must be >= base_price")
        if self.curve_kind == CurveKind.fixed and self.terminal_price != self.base_price:
            raise ValueError("fixed curves must have terminal_price == base_price")
        if self.curve_kind == CurveKind.exponential and self.base_price <= 0:
            raise ValueError("exponential curves need a positive base_price")
        return self


class SaleState(BaseModel):
    tokens_sold: Decimal = Decimal(0)
    total_supply: Decimal = Field(..., gt=0)
    sol_collected_lamports: int = 0


class GraduationState(BaseModel):
    sol_collected_lamports: int
    goal_lamports: int
    is_graduated: bool
    progress_percent: Decimal
    high_water_mark_percent: Decimal


# --- Rewards ---

class RewardPoolConfig(BaseModel):
    """
    Snapshot of a reward pool.

    remaining_rewards is derived from total_reward_pool and distributed_rewards, so
    remaining = total - distributed holds for every snapshot. Snapshots are frozen;
    new versions are committed through the reward pool store.
    """

    model_config = ConfigDict(frozen=True)

    raffle_id: str = Field(..., min_length=1)
    reward_percent: Decimal = Field(..., ge=0)
    total_reward_pool: Decimal = Field(..., gt=0)
    distributed_rewards: Decimal = Field(Decimal(0), ge=0)
    is_active: bool = True
    version: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _check_pool(self) -> "RewardPoolConfig":
        if self.reward_percent > config.MAX_REWARD_PERCENT:
            raise ValueError(f"reward_percent must be between 0 and {config.MAX_REWARD_PERCENT}")
        if self.distributed_rewards > self.total_reward_pool:
            raise ValueError("distributed_rewards cannot exceed total_reward_pool")
        return self

    @computed_field
    @property
    def remaining_rewards(self) -> Decimal:
        return self.total_reward_pool - self.distributed_rewards


class TradingVolumeRecord(BaseModel):
    user_id: str
    total_volume: Decimal = Decimal(0)
    total_trades: int = 0
    buy_volume: Decimal = Decimal(0)
    sell_volume: Decimal = Decimal(0)

    @computed_field
    @property
    def reward_eligibility(self) -> Decimal:
        """Percentage of the reward pool the user is eligible for, 10% per SOL traded up to 100."""
        return min(self.total_volume * Decimal("0.1"), Decimal(100))


class RewardDistributionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"reward_{uuid.uuid4()}")
    raffle_id: str
    user_id: str
    sol_amount: Decimal
    reward_amount: Decimal
    transaction_type: TransactionType = TransactionType.buy
    created_at: datetime = Field(default_factory=_utcnow)


class RewardTuning(BaseModel):
    """Reward allocator constants. Defaults come from configuration."""

    model_config = ConfigDict(frozen=True)

    max_reward_per_trade: Decimal = config.MAX_REWARD_PER_TRADE
    daily_reward_limit: Decimal = config.DAILY_REWARD_LIMIT
    volume_tiers: List[Tuple[Decimal, Decimal]] = Field(
        default_factory=lambda: list(config.VOLUME_MULTIPLIER_TIERS)
    )
    top_volume_multiplier: Decimal = config.TOP_VOLUME_MULTIPLIER

    @field_validator("volume_tiers")
    @classmethod
    def _tiers_ascending(cls, tiers: List[Tuple[Decimal, Decimal]]) -> List[Tuple[Decimal, Decimal]]:
        bounds = [bound for bound, _ in tiers]
        if bounds != sorted(bounds) or len(set(bounds)) != len(bounds):
            raise ValueError("volume tiers must have strictly ascending upper bounds")
        return tiers


# --- Trending ---

class TrendingMetrics(BaseModel):
    launch_id: str
    category: TrendingCategory = TrendingCategory.token
    score: int = 0
    volume_24h: float = 0.0
    trades_24h: float = 0
    participants_24h: float = 0
    hype_score: float = 0.0
    social_engagement: float = 0.0
    last_updated: datetime = Field(default_factory=_utcnow)


class HypeFactors(BaseModel):
    ticket_sales: float = 0.0
    max_tickets: float = 0.0
    time_remaining_hours: float = 0.0
    social_mentions: float = 0.0
    unique_participants: float = 0.0
    volume_24h: float = 0.0


class TrendingRanking(BaseModel):
    launch_id: str
    rank: int
    score: int
    change_24h: int = 0
    category: TrendingCategory = TrendingCategory.token


class TrendingFilters(BaseModel):
    category: Optional[TrendingCategory] = None
    min_volume: Optional[float] = None
    min_participants: Optional[float] = None
    sort_by: TrendingSortKey = TrendingSortKey.score


_SCORE_WEIGHT_KEYS = {"volume", "trades", "participants", "hype", "social"}
_SCALE_KEYS = {"volume", "trades", "participants"}
_HYPE_WEIGHT_KEYS = {"sales", "time", "social", "participants", "volume"}


class TrendingTuning(BaseModel):
    """Trending scorer constants. Defaults come from configuration."""

    model_config = ConfigDict(frozen=True)

    score_weights: Dict[str, float] = Field(
        default_factory=lambda: {k: float(v) for k, v in config.TRENDING_SCORE_WEIGHTS.items()}
    )
    scales: Dict[str, float] = Field(
        default_factory=lambda: {k: float(v) for k, v in config.TRENDING_SCALES.items()}
    )
    hype_weights: Dict[str, float] = Field(
        default_factory=lambda: {k: float(v) for k, v in config.HYPE_WEIGHTS.items()}
    )
    min_volume: float = config.TRENDING_MIN_VOLUME
    min_trades: float = config.TRENDING_MIN_TRADES
    min_participants: float = config.TRENDING_MIN_PARTICIPANTS
    min_hype: float = config.TRENDING_MIN_HYPE

    @model_validator(mode="after")
    def _check_weights(self) -> "TrendingTuning":
        for name, weights, keys in (
            ("score_weights", self.score_weights, _SCORE_WEIGHT_KEYS),
            ("hype_weights", self.hype_weights, _HYPE_WEIGHT_KEYS),
        ):
            if set(weights) != keys:
                raise ValueError(f"{name} must define exactly {sorted(keys)}")
            if any(w < 0 for w in weights.values()):
                raise ValueError(f"{name} must be non-negative")
            if abs(sum(weights.values()) - 1.0) > 1e-9:
                raise ValueError(f"{name} must sum to 1.0")
        if set(self.scales) != _SCALE_KEYS:
            raise ValueError(f"scales must define exactly {sorted(_SCALE_KEYS)}")
        if any(s <= 0 for s in self.scales.values()):
            raise ValueError("scales must be positive")
        return self


# --- Events ---

class LaunchEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    launch_id: str
    kind: EventKind
    value: Decimal = Decimal(0)
    timestamp: datetime = Field(default_factory=_utcnow)
    transaction_ref: Optional[str] = None


# --- Launch configuration files ---

class TokenConfig(BaseModel):
    name: str
    symbol: str
    mint_address: Optional[str] = None

    @field_validator("mint_address")
    @classmethod
    def _valid_pubkey(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            Pubkey.from_string(value)
        except ValueError as e:
            raise ValueError(f"mint_address is not a valid Solana public key: {e}")
        return value


class LaunchConfig(BaseModel):
    launch_id: str = Field(..., min_length=1, max_length=100)
    start_time: int
    end_time: int
    category: TrendingCategory = TrendingCategory.token
    graduation_goal_lamports: int = Field(config.GRADUATION_GOAL_LAMPORTS, gt=0)
    sell_fee_percentage: float = Field(0.0, ge=0.0, le=1.0)
    vault_address: Optional[str] = None

    @field_validator("vault_address")
    @classmethod
    def _valid_vault(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            Pubkey.from_string(value)
        except ValueError as e:
            raise ValueError(f"vault_address is not a valid Solana public key: {e}")
        return value

    @model_validator(mode="after")
    def _check_window(self) -> "LaunchConfig":
        if self.start_time >= self.end_time:
            raise ValueError("launch start_time must be before end_time")
        return self


class LaunchConfigModel(BaseModel):
    token: TokenConfig
    launch: LaunchConfig
    curve: CurveConfig
    resources: Optional[list] = []
