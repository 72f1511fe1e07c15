import json
import threading
import time
from collections import deque
from decimal import Decimal
from pathlib import Path
from typing import Deque, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from mcp_solana_launchpad import pricing
from mcp_solana_launchpad.config import LAUNCH_CONFIG_DIR
from mcp_solana_launchpad.errors import ConcurrentUpdateError, LaunchNotFoundError
from mcp_solana_launchpad.events import EventLog
from mcp_solana_launchpad.graduation import GraduationMonitor, GraduationUpdate
from mcp_solana_launchpad.reward_pools import RewardPoolStore
from mcp_solana_launchpad.schemas import (
    EventKind,
    HypeFactors,
    LaunchConfigModel,
    LaunchEvent,
    SaleState,
    TradingVolumeRecord,
    TransactionType,
    TrendingMetrics,
)
from mcp_solana_launchpad.trending import TrendingBoard, calculate_hype_score
from mcp_solana_launchpad.utils import coerce_float, lamports_to_sol, sol_to_lamports
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

# Determine the absolute path to the directory containing this file
MODULE_DIR = Path(__file__).parent.resolve()

TRENDING_WINDOW_SECONDS = 24 * 60 * 60

# In-memory storage for loaded launch configurations and sale state
launch_data: Dict[str, LaunchConfigModel] = {}
sale_states: Dict[str, SaleState] = {}
monitors: Dict[str, GraduationMonitor] = {}
volume_records: Dict[str, Dict[str, TradingVolumeRecord]] = {}
trade_history: Dict[str, Deque["TradeRecord"]] = {}
engagement: Dict[str, Dict[str, float]] = {}

# Shared engine state: one event log, one pool store, one ranking board
event_log = EventLog()
reward_pools = RewardPoolStore(event_log=event_log)
trending_board = TrendingBoard()

_state_lock = threading.RLock()

# Simple file-based caching to avoid repeated I/O operations
_launch_cache_timestamp: float = 0
_LAUNCH_CACHE_DURATION = 300  # Cache for 5 minutes


class TradeRecord(BaseModel):
    user_id: str
    side: TransactionType
    amount: int
    sol_amount: Decimal
    timestamp: float
    transaction_ref: Optional[str] = None


class TradeOutcome(BaseModel):
    launch_id: str
    trade: TradeRecord
    price_after: Decimal
    tokens_sold: Decimal
    graduation: GraduationUpdate
    reward: Decimal = Decimal(0)


def load_launches_from_config_files(config_dir_name: str = LAUNCH_CONFIG_DIR) -> Dict[str, LaunchConfigModel]:
    """
    Loads launch configurations from JSON files in the specified directory
    relative to this module's location. Uses caching to avoid repeated I/O operations.

    Args:
        config_dir_name: The name of the directory containing launch configuration files.

    Returns:
        A dictionary mapping launch_id to the validated LaunchConfigModel instance.
    """
    global _launch_cache_timestamp

    current_time = time.time()
    if current_time - _launch_cache_timestamp < _LAUNCH_CACHE_DURATION and launch_data:
        logger.debug("Using cached launch data")
        return launch_data.copy()

    loaded: Dict[str, LaunchConfigModel] = {}
    config_path = MODULE_DIR / config_dir_name

    if not config_path.is_dir():
        logger.warning(f"Launch configuration directory not found: {config_path}. No launches loaded.")
        return loaded

    logger.info(f"Loading launch configurations from: {config_path.resolve()}")

    for file_path in sorted(config_path.glob("*.json")):
        try:
            with open(file_path, "r") as f:
                launch_config = LaunchConfigModel.model_validate(json.load(f))

            launch_id = launch_config.launch.launch_id
            if launch_id != file_path.stem:
                logger.warning(f"Launch ID mismatch in {file_path}: expected '{file_path.stem}', "
                               f"found '{launch_id}'. Skipping.")
                continue
            if launch_id in loaded:
                logger.warning(f"Duplicate launch ID '{launch_id}' found in {file_path}. Skipping.")
                continue

            loaded[launch_id] = launch_config
            _init_launch_state(launch_config)
            logger.info(f"Successfully loaded launch config: {launch_id}")

        except json.JSONDecodeError:
            logger.error(f"Error decoding JSON from file: {file_path}")
        except ValidationError as e:
            logger.error(f"Invalid launch configuration in file {file_path}: {e}")
        except OSError as e:
            logger.error(f"Error reading launch config {file_path}: {e}")

    logger.info(f"Finished loading launches. Total loaded: {len(loaded)}")
    _launch_cache_timestamp = current_time
    return loaded


def _init_launch_state(launch_config: LaunchConfigModel) -> None:
    """Creates sale state and a graduation monitor for a launch that has none yet."""
    launch_id = launch_config.launch.launch_id
    with _state_lock:
        if launch_id not in sale_states:
            sale_states[launch_id] = SaleState(total_supply=launch_config.curve.total_supply)
        monitor = monitors.get(launch_id)
        if monitor is None or monitor.goal_lamports != launch_config.launch.graduation_goal_lamports:
            monitors[launch_id] = GraduationMonitor(
                launch_id, launch_config.launch.graduation_goal_lamports, event_log=event_log
            )
        volume_records.setdefault(launch_id, {})
        trade_history.setdefault(launch_id, deque())
        engagement.setdefault(launch_id, {"social_mentions": 0.0, "social_engagement": 0.0})


def get_launch(launch_id: str) -> Optional[LaunchConfigModel]:
    """Retrieves a launch configuration by its ID."""
    return launch_data.get(launch_id)


def require_launch(launch_id: str) -> LaunchConfigModel:
    launch = launch_data.get(launch_id)
    if launch is None:
        raise LaunchNotFoundError(f"Launch with id {launch_id} not found.")
    return launch


def clear_launch_cache():
    """Clears the launch cache to force reload on next access."""
    global _launch_cache_timestamp
    _launch_cache_timestamp = 0
    logger.debug("Launch cache cleared")


def add_or_update_launch(launch_config: LaunchConfigModel) -> bool:
    """Adds a new launch or updates an existing one in memory and saves its config file."""
    launch_id = launch_config.launch.launch_id
    launch_data[launch_id] = launch_config
    _init_launch_state(launch_config)

    config_path = MODULE_DIR / LAUNCH_CONFIG_DIR
    file_path = config_path / f"{launch_id}.json"
    try:
        config_path.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w") as f:
            json.dump(launch_config.model_dump(mode='json'), f, indent=4)
        logger.info(f"Successfully saved launch configuration to {file_path}")
        clear_launch_cache()
        return True
    except OSError as e:
        logger.error(f"Error saving launch configuration to {file_path}: {e}")
        return False


def get_sale_state(launch_id: str) -> SaleState:
    require_launch(launch_id)
    return sale_states[launch_id]


def get_monitor(launch_id: str) -> GraduationMonitor:
    require_launch(launch_id)
    return monitors[launch_id]


def get_volume_records(launch_id: str) -> List[TradingVolumeRecord]:
    require_launch(launch_id)
    with _state_lock:
        return list(volume_records[launch_id].values())


def _updated_volume(record: Optional[TradingVolumeRecord], user_id: str, side: TransactionType,
                    sol_amount: Decimal) -> TradingVolumeRecord:
    record = record or TradingVolumeRecord(user_id=user_id)
    is_buy = side == TransactionType.buy
    return record.model_copy(update={
        "total_volume": record.total_volume + sol_amount,
        "total_trades": record.total_trades + 1,
        "buy_volume": record.buy_volume + (sol_amount if is_buy else 0),
        "sell_volume": record.sell_volume + (0 if is_buy else sol_amount),
    })


def record_trade(
    launch_id: str,
    user_id: str,
    side: TransactionType,
    amount: int,
    transaction_ref: Optional[str] = None,
) -> TradeOutcome:
    """
    Applies an accepted trade to the sale and feeds every derived component.

    The SOL value of the trade comes from the bonding curve. The trade moves tokens sold
    and SOL collected, updates the trader's volume record and the 24h window, advances the
    graduation monitor and, when the launch has an active reward pool, grants the
    per-trade market making reward.

    Args:
        launch_id: The launch the trade belongs to.
        user_id: Trader identifier.
        side: Buy or sell.
        amount: Traded tokens in base units.
        transaction_ref: Opaque reference of the settled transaction.

    Raises:
        LaunchNotFoundError: If the launch is unknown.
        ValueError: If the amount is not positive or a sell exceeds tokens sold.
    """
    launch = require_launch(launch_id)
    if amount <= 0:
        raise ValueError("Trade amount must be a positive integer")
    curve = launch.curve
    amount_in_tokens = Decimal(amount) / (Decimal(10) ** curve.decimals)
    is_sell = side == TransactionType.sell

    with _state_lock:
        sale = sale_states[launch_id]
        if is_sell and amount_in_tokens > sale.tokens_sold:
            raise ValueError(f"Cannot sell {amount_in_tokens} tokens; only {sale.tokens_sold} sold")
        if not is_sell and sale.tokens_sold + amount_in_tokens > curve.total_supply:
            raise ValueError(f"Cannot buy {amount_in_tokens} tokens; only "
                             f"{curve.total_supply - sale.tokens_sold} remaining")

        sol_amount = pricing.calculate_trade_cost(
            amount, sale.tokens_sold, curve, is_sell=is_sell,
            sell_fee_percentage=launch.launch.sell_fee_percentage,
        )
        lamports = sol_to_lamports(sol_amount)
        if is_sell:
            tokens_sold = sale.tokens_sold - amount_in_tokens
            collected = max(sale.sol_collected_lamports - lamports, 0)
        else:
            tokens_sold = sale.tokens_sold + amount_in_tokens
            collected = sale.sol_collected_lamports + lamports
        sale = sale.model_copy(update={"tokens_sold": tokens_sold, "sol_collected_lamports": collected})
        sale_states[launch_id] = sale

        user_volume = _updated_volume(volume_records[launch_id].get(user_id), user_id, side, sol_amount)
        volume_records[launch_id][user_id] = user_volume

        trade = TradeRecord(
            user_id=user_id, side=side, amount=amount, sol_amount=sol_amount,
            timestamp=time.time(), transaction_ref=transaction_ref,
        )
        trade_history[launch_id].append(trade)

    logger.info(f"Recorded {side.value} of {amount_in_tokens} tokens for {sol_amount:.9f} SOL "
                f"by {user_id} in launch '{launch_id}'")
    event_log.append(LaunchEvent(
        launch_id=launch_id, kind=EventKind.trade_recorded, value=sol_amount, transaction_ref=transaction_ref,
    ))

    graduation = monitors[launch_id].update(sale.sol_collected_lamports, transaction_ref)

    reward = Decimal(0)
    if reward_pools.has_pool(launch_id):
        try:
            reward = reward_pools.allocate_trade_reward(launch_id, sol_amount, side, user_volume, transaction_ref)
        except ConcurrentUpdateError as e:
            # The trade is already recorded; only its reward is lost
            logger.warning(f"Trade by {user_id} in launch '{launch_id}' recorded without a reward: {e}")

    return TradeOutcome(
        launch_id=launch_id,
        trade=trade,
        price_after=pricing.price_for_state(sale, curve),
        tokens_sold=sale.tokens_sold,
        graduation=graduation,
        reward=reward,
    )


def _prune_window(launch_id: str, now: float) -> List[TradeRecord]:
    """Drops trades older than the trending window and returns the rest."""
    cutoff = now - TRENDING_WINDOW_SECONDS
    with _state_lock:
        history = trade_history[launch_id]
        while history and history[0].timestamp < cutoff:
            history.popleft()
        return list(history)


def window_stats(launch_id: str, now: Optional[float] = None) -> Dict[str, float]:
    """24h volume (SOL), trade count and unique participants of a launch."""
    require_launch(launch_id)
    trades = _prune_window(launch_id, now if now is not None else time.time())
    return {
        "volume_24h": float(sum((t.sol_amount for t in trades), Decimal(0))),
        "trades_24h": float(len(trades)),
        "participants_24h": float(len({t.user_id for t in trades})),
    }


def update_engagement(launch_id: str, social_mentions=None, social_engagement=None) -> Dict[str, float]:
    """Stores the latest social counters reported for a launch."""
    require_launch(launch_id)
    with _state_lock:
        counters = engagement[launch_id]
        if social_mentions is not None:
            counters["social_mentions"] = coerce_float(social_mentions, "social_mentions")
        if social_engagement is not None:
            counters["social_engagement"] = min(coerce_float(social_engagement, "social_engagement"), 100.0)
        logger.debug(f"Engagement for '{launch_id}': {counters}")
        return dict(counters)


def build_hype_factors(launch_id: str, now: Optional[float] = None) -> HypeFactors:
    """
    Hype inputs for a launch: SOL collected against the graduation goal stands in for
    tickets sold against max tickets.
    """
    launch = require_launch(launch_id)
    now = now if now is not None else time.time()
    stats = window_stats(launch_id, now)
    sale = sale_states[launch_id]
    hours_left = max(launch.launch.end_time - now, 0) / 3600
    return HypeFactors(
        ticket_sales=float(lamports_to_sol(sale.sol_collected_lamports)),
        max_tickets=float(lamports_to_sol(launch.launch.graduation_goal_lamports)),
        time_remaining_hours=hours_left,
        social_mentions=engagement[launch_id]["social_mentions"],
        unique_participants=stats["participants_24h"],
        volume_24h=stats["volume_24h"],
    )


def build_trending_metrics(launch_id: str, now: Optional[float] = None) -> TrendingMetrics:
    launch = require_launch(launch_id)
    now = now if now is not None else time.time()
    stats = window_stats(launch_id, now)
    return TrendingMetrics(
        launch_id=launch_id,
        category=launch.launch.category,
        volume_24h=stats["volume_24h"],
        trades_24h=stats["trades_24h"],
        participants_24h=stats["participants_24h"],
        hype_score=calculate_hype_score(build_hype_factors(launch_id, now)),
        social_engagement=engagement[launch_id]["social_engagement"],
    )


def all_trending_metrics(now: Optional[float] = None) -> List[TrendingMetrics]:
    return [build_trending_metrics(launch_id, now) for launch_id in list(launch_data)]


def reset_state() -> None:
    """Drops all runtime state; launch configurations stay loaded."""
    global trending_board
    trending_board = TrendingBoard()
    with _state_lock:
        sale_states.clear()
        monitors.clear()
        volume_records.clear()
        trade_history.clear()
        engagement.clear()
    event_log.clear()
    reward_pools.clear()
    for launch_config in launch_data.values():
        _init_launch_state(launch_config)


# --- Initial Load ---
# Load launches when the module is imported
launch_data = load_launches_from_config_files()
