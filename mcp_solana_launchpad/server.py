"""
Solana Launchpad Server - MCP Server Implementation

This module exposes the launchpad economics engine as MCP tools: bonding curve prices
and trade quotes, graduation progress, market making reward pools and trending
rankings for every configured launch.

Key Features:
- Multi-launch support with individual curve and graduation configurations
- Trade recording that feeds the pricer, graduation monitor, reward pools and trending telemetry
- Reward pools with atomic allocations and a distribution ledger
- Trending rankings with 24h rank changes and a dashboard view
- Launch event log queries (milestones, graduation, reward distributions)

Security Features:
- Input validation and sanitization
- Rate limiting of mutating tools per client
- Transaction references validated as Solana signatures
- Secure error message handling (no internal details exposed)
"""

import json
import time
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field, ValidationError

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_solana_launchpad import errors
from mcp_solana_launchpad import launch_manager
from mcp_solana_launchpad import pricing
from mcp_solana_launchpad import rate_limiter
from mcp_solana_launchpad import rewards
from mcp_solana_launchpad import solana_utils
from mcp_solana_launchpad import trending
from mcp_solana_launchpad.schemas import (
    EventKind,
    LaunchConfigModel,
    TransactionType,
    TrendingCategory,
    TrendingFilters,
    TrendingSortKey,
)
from mcp_solana_launchpad.utils import lamports_to_sol

logger = get_logger(__name__)

# Constants
MAX_LAUNCH_ID_LENGTH = 100
MAX_USER_ID_LENGTH = 100
MAX_TOKEN_AMOUNT = 10**18
MAX_CONFIG_JSON_SIZE = 10000
MAX_CURVE_POINTS = 500
MAX_LIST_LIMIT = 100

# --- Server Setup ---
mcp = FastMCP(name="Solana Launchpad Server")


# --- Helper Functions ---

def validate_launch_id(launch_id: str) -> None:
    if not launch_id or not isinstance(launch_id, str):
        raise ValueError("Launch ID must be a non-empty string")
    if len(launch_id) > MAX_LAUNCH_ID_LENGTH:
        raise ValueError("Launch ID is too long")


def validate_user_id(user_id: str) -> None:
    if not user_id or not isinstance(user_id, str):
        raise ValueError("User ID must be a non-empty string")
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise ValueError("User ID is too long")


def validate_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError("Amount must be a positive integer")
    if amount > MAX_TOKEN_AMOUNT:
        raise ValueError("Amount is too large")


def validate_limit(limit: int) -> None:
    if not isinstance(limit, int) or limit <= 0 or limit > MAX_LIST_LIMIT:
        raise ValueError(f"Limit must be an integer between 1 and {MAX_LIST_LIMIT}")


def optional_reference(transaction_ref: Optional[str]) -> Optional[str]:
    """Empty references are treated as absent; anything else must be a valid signature."""
    if not transaction_ref:
        return None
    return solana_utils.validate_transaction_reference(transaction_ref)


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2)


def log_operation_error(operation: str, launch_id: str, error: Exception, duration: float) -> None:
    """Log operation error with structured information."""
    logger.error(f"{operation} failed for launch '{launch_id}': {error}, duration: {duration:.3f}s")


# --- Launches ---

@mcp.tool()
async def get_launch_info(context: Context, launch_id: str = Field(..., description="The launch ID.")) -> str:
    """Get the configuration of a specific launch."""
    try:
        validate_launch_id(launch_id)
        launch = launch_manager.get_launch(launch_id)
        if not launch:
            logger.warning(f"Launch not found: {launch_id}")
            return f"Launch with id {launch_id} not found."
        return launch.model_dump_json(indent=2)
    except ValueError as e:
        logger.error(f"Invalid launch ID provided: {e}")
        return f"Invalid launch ID: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error getting launch info for {launch_id}: {e}")
        return "An unexpected error occurred while retrieving launch information."


@mcp.tool()
async def create_launch(
    context: Context,
    config_json: str = Field(..., description="The launch configuration (token, launch, curve) as a JSON string."),
) -> str:
    """Creates or replaces a launch from a JSON configuration string."""
    try:
        if not config_json or not isinstance(config_json, str):
            raise ValueError("Configuration JSON must be a non-empty string")
        if len(config_json) > MAX_CONFIG_JSON_SIZE:
            raise ValueError("Configuration JSON is too large (max 10KB)")

        launch_config = LaunchConfigModel.model_validate(json.loads(config_json))
        launch_id = launch_config.launch.launch_id

        if launch_manager.add_or_update_launch(launch_config):
            logger.info(f"Launch '{launch_id}' created/updated successfully")
            return f"Launch '{launch_id}' created/updated successfully."
        logger.error(f"Failed to save launch configuration for '{launch_id}'")
        return f"Error saving launch configuration for '{launch_id}'."

    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON for create_launch request: {e}")
        return "Error: Invalid JSON format provided. Please check your JSON syntax."
    except ValidationError as e:
        logger.error(f"Invalid launch configuration provided to create_launch: {e}")
        return f"Error: Invalid launch configuration - {e}"
    except ValueError as e:
        logger.error(f"Validation error in create_launch: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error creating launch: {e}")
        return "An unexpected server error occurred while creating the launch."


# --- Pricing ---

@mcp.tool()
async def get_token_price(context: Context, launch_id: str = Field(..., description="The launch ID.")) -> str:
    """Current bonding curve price of a launch and the price at the next supply step."""
    try:
        validate_launch_id(launch_id)
        launch = launch_manager.require_launch(launch_id)
        sale = launch_manager.get_sale_state(launch_id)
        step = pricing.price_step_info(sale.tokens_sold, launch.curve)
        return to_json({
            "launch_id": launch_id,
            "symbol": launch.token.symbol,
            "tokens_sold": str(sale.tokens_sold),
            "total_supply": str(launch.curve.total_supply),
            "price": str(pricing.price_for_state(sale, launch.curve)),
            "next_step": step.model_dump(mode='json'),
        })
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in get_token_price: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error getting price for {launch_id}: {e}")
        return "An unexpected error occurred while calculating the price."


@mcp.tool()
async def get_price_curve(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    points: int = Field(20, description="Number of evenly spaced sample points (2-500)."),
) -> str:
    """Samples the bonding curve of a launch for display."""
    try:
        validate_launch_id(launch_id)
        if not isinstance(points, int) or points < 2 or points > MAX_CURVE_POINTS:
            raise ValueError(f"Points must be an integer between 2 and {MAX_CURVE_POINTS}")
        launch = launch_manager.require_launch(launch_id)
        samples = pricing.sample_curve(launch.curve, points)
        return to_json({
            "launch_id": launch_id,
            "curve_kind": launch.curve.curve_kind.value,
            "points": [{"tokens_sold": str(tokens), "price": str(price)} for tokens, price in samples],
        })
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in get_price_curve: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error sampling curve for {launch_id}: {e}")
        return "An unexpected error occurred while sampling the price curve."


@mcp.tool()
async def quote_trade(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    amount: int = Field(..., description="The number of tokens to buy/sell (in base units)."),
    sell: bool = Field(False, description="Set to True to quote a sell, False to quote a buy."),
) -> str:
    """Quotes the SOL cost of a buy, or the net SOL proceeds of a sell, at the current curve position."""
    try:
        validate_launch_id(launch_id)
        validate_amount(amount)
        launch = launch_manager.require_launch(launch_id)
        sale = launch_manager.get_sale_state(launch_id)
        sol = pricing.calculate_trade_cost(
            amount, sale.tokens_sold, launch.curve, is_sell=sell,
            sell_fee_percentage=launch.launch.sell_fee_percentage,
        )
        tokens = Decimal(amount) / (Decimal(10) ** launch.curve.decimals)
        if sell:
            return f"Selling {tokens} {launch.token.symbol} returns {sol:.9f} SOL after fees."
        return f"Buying {tokens} {launch.token.symbol} costs {sol:.9f} SOL."
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in quote_trade: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error quoting trade for {launch_id}: {e}")
        return "An unexpected error occurred while quoting the trade."


@mcp.tool()
async def record_trade(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    user_id: str = Field(..., description="The trader's identifier (usually a wallet address)."),
    amount: int = Field(..., description="The number of tokens traded (in base units)."),
    sell: bool = Field(False, description="Set to True for a sell, False for a buy."),
    transaction_ref: Optional[str] = Field(None, description="Signature of the settled trade transaction."),
    client_id: str = Field(..., description="The calling client's identifier (e.g. IP address) for rate limiting."),
) -> str:
    """
    Records a settled trade.

    The trade moves the sale along the bonding curve, updates the trader's volume and the
    launch's 24h telemetry, advances the graduation monitor and, when the launch has an
    active reward pool, grants the market making reward for the trade.
    """
    start_time = time.time()
    try:
        validate_launch_id(launch_id)
        validate_user_id(user_id)
        validate_amount(amount)
        reference = optional_reference(transaction_ref)
        rate_limiter.limiter.enforce(client_id)

        side = TransactionType.sell if sell else TransactionType.buy
        outcome = launch_manager.record_trade(launch_id, user_id, side, amount, reference)

        logger.info(f"Trade recorded for launch '{launch_id}': side={side.value}, amount={amount}, "
                    f"sol={outcome.trade.sol_amount:.9f}, reward={outcome.reward}, "
                    f"duration={time.time() - start_time:.3f}s, client_id={client_id}")
        return outcome.model_dump_json(indent=2)

    except errors.RateLimitExceededError as e:
        return str(e)
    except errors.LaunchNotFoundError as e:
        log_operation_error("Trade recording", launch_id, e, time.time() - start_time)
        return str(e)
    except errors.InvalidTransactionError as e:
        log_operation_error("Trade recording", launch_id, e, time.time() - start_time)
        return str(e)
    except ValueError as e:
        log_operation_error("Trade recording", launch_id, e, time.time() - start_time)
        return f"Error: {e}"
    except Exception as e:
        log_operation_error("Trade recording", launch_id, e, time.time() - start_time)
        return "An unexpected server error occurred"


# --- Graduation ---

@mcp.tool()
async def get_graduation_status(context: Context, launch_id: str = Field(..., description="The launch ID.")) -> str:
    """Progress of a launch toward its graduation goal."""
    try:
        validate_launch_id(launch_id)
        state = launch_manager.get_monitor(launch_id).state()
        data = state.model_dump(mode='json')
        data["launch_id"] = launch_id
        data["sol_collected"] = str(lamports_to_sol(state.sol_collected_lamports))
        data["goal_sol"] = str(lamports_to_sol(state.goal_lamports))
        return to_json(data)
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in get_graduation_status: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error getting graduation status for {launch_id}: {e}")
        return "An unexpected error occurred while retrieving graduation status."


@mcp.tool()
async def sync_graduation_from_chain(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    transaction_ref: Optional[str] = Field(None, description="Signature to attach to emitted events."),
) -> str:
    """Reads the launch vault balance over RPC and feeds it to the graduation monitor."""
    try:
        validate_launch_id(launch_id)
        reference = optional_reference(transaction_ref)
        launch = launch_manager.require_launch(launch_id)
        if not launch.launch.vault_address:
            return f"Launch '{launch_id}' has no vault address configured."

        async with solana_utils.new_rpc_client() as client:
            lamports = await solana_utils.fetch_sol_collected(client, launch.launch.vault_address)

        update = launch_manager.get_monitor(launch_id).update(lamports, reference)
        return update.model_dump_json(indent=2)
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except errors.RpcError as e:
        logger.error(f"RPC error syncing graduation for {launch_id}: {e}")
        return f"Error reading vault balance: {e}"
    except errors.InvalidTransactionError as e:
        logger.error(f"Invalid reference syncing graduation for {launch_id}: {e}")
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in sync_graduation_from_chain: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error syncing graduation for {launch_id}: {e}")
        return "An unexpected error occurred while syncing graduation status."


# --- Reward Pools ---

@mcp.tool()
async def create_reward_pool(
    context: Context,
    launch_id: str = Field(..., description="The launch ID the pool rewards trading for."),
    reward_percent: float = Field(..., description="Reward percent (0-20)."),
    total_reward_pool: Optional[float] = Field(
        None, description="Tokens set aside for market making rewards. Defaults to reward_percent of the token supply."
    ),
    other_allocations_json: Optional[str] = Field(
        None, description='Other tokenomics allocations in percent as a JSON object, e.g. {"team": 15, "liquidity": 60}.'
    ),
) -> str:
    """Creates a market making reward pool for a launch."""
    try:
        validate_launch_id(launch_id)
        launch = launch_manager.require_launch(launch_id)

        allocations = json.loads(other_allocations_json) if other_allocations_json else {}
        if not isinstance(allocations, dict):
            raise ValueError("Other allocations must be a JSON object of percents")
        supply_share = rewards.calculate_reward_pool_allocation(launch.curve.total_supply, reward_percent, allocations)
        if total_reward_pool is None:
            total_reward_pool = supply_share

        pool = launch_manager.reward_pools.create_pool(launch_id, reward_percent, total_reward_pool)
        return pool.model_dump_json(indent=2)
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except json.JSONDecodeError as e:
        logger.error(f"Error decoding allocations JSON for {launch_id}: {e}")
        return "Error: Invalid JSON format provided for other allocations."
    except errors.ValidationError as e:
        logger.error(f"Invalid reward pool for {launch_id}: {e}")
        return f"Error: {e}"
    except ValueError as e:
        logger.error(f"Validation error in create_reward_pool: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error creating reward pool for {launch_id}: {e}")
        return "An unexpected error occurred while creating the reward pool."


@mcp.tool()
async def update_reward_pool(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    reward_percent: Optional[float] = Field(None, description="New reward percent (0-20)."),
    is_active: Optional[bool] = Field(None, description="Set to False to freeze further allocations."),
    top_up_amount: Optional[float] = Field(None, description="Tokens to add to the pool."),
) -> str:
    """Changes the reward percent or active flag of a pool, or tops it up."""
    try:
        validate_launch_id(launch_id)
        pools = launch_manager.reward_pools
        pool = pools.get_pool(launch_id)
        if reward_percent is not None or is_active is not None:
            pool = pools.update_pool(launch_id, reward_percent=reward_percent, is_active=is_active)
        if top_up_amount is not None:
            pool = pools.top_up_pool(launch_id, top_up_amount)
        return pool.model_dump_json(indent=2)
    except errors.PoolNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except errors.ValidationError as e:
        logger.error(f"Invalid reward pool update for {launch_id}: {e}")
        return f"Error: {e}"
    except errors.ConcurrentUpdateError as e:
        logger.error(f"Reward pool update for {launch_id} lost to concurrent updates: {e}")
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in update_reward_pool: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error updating reward pool for {launch_id}: {e}")
        return "An unexpected error occurred while updating the reward pool."


@mcp.tool()
async def get_reward_pool(context: Context, launch_id: str = Field(..., description="The launch ID.")) -> str:
    """Current snapshot of a launch's reward pool."""
    try:
        validate_launch_id(launch_id)
        return launch_manager.reward_pools.get_pool(launch_id).model_dump_json(indent=2)
    except errors.PoolNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in get_reward_pool: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error getting reward pool for {launch_id}: {e}")
        return "An unexpected error occurred while retrieving the reward pool."


@mcp.tool()
async def distribute_rewards(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    transaction_ref: Optional[str] = Field(None, description="Signature to attach to the distribution event."),
    client_id: str = Field(..., description="The calling client's identifier for rate limiting."),
) -> str:
    """Splits the pool's remaining rewards across the launch's traders by volume."""
    start_time = time.time()
    try:
        validate_launch_id(launch_id)
        reference = optional_reference(transaction_ref)
        rate_limiter.limiter.enforce(client_id)

        records = launch_manager.get_volume_records(launch_id)
        results = launch_manager.reward_pools.run_distribution(launch_id, records, transaction_ref=reference)
        pool = launch_manager.reward_pools.get_pool(launch_id)
        return to_json({
            "launch_id": launch_id,
            "distributed": [r.model_dump(mode='json') for r in results],
            "total_distributed": str(sum((r.reward_amount for r in results), Decimal(0))),
            "remaining_rewards": str(pool.remaining_rewards),
        })
    except errors.RateLimitExceededError as e:
        return str(e)
    except (errors.LaunchNotFoundError, errors.PoolNotFoundError) as e:
        log_operation_error("Reward distribution", launch_id, e, time.time() - start_time)
        return str(e)
    except (errors.InvalidTransactionError, errors.ConcurrentUpdateError) as e:
        log_operation_error("Reward distribution", launch_id, e, time.time() - start_time)
        return str(e)
    except ValueError as e:
        log_operation_error("Reward distribution", launch_id, e, time.time() - start_time)
        return f"Error: {e}"
    except Exception as e:
        log_operation_error("Reward distribution", launch_id, e, time.time() - start_time)
        return "An unexpected server error occurred"


@mcp.tool()
async def get_user_rewards(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    user_id: str = Field(..., description="The trader's identifier."),
) -> str:
    """Rewards granted to a trader in a launch, with the trader's volume record."""
    try:
        validate_launch_id(launch_id)
        validate_user_id(user_id)
        launch_manager.require_launch(launch_id)
        ledger = launch_manager.reward_pools.ledger
        record = next((r for r in launch_manager.get_volume_records(launch_id) if r.user_id == user_id), None)
        return to_json({
            "launch_id": launch_id,
            "user_id": user_id,
            "total_rewards": str(ledger.user_total(launch_id, user_id)),
            "rewards": [r.model_dump(mode='json') for r in ledger.for_user(launch_id, user_id)],
            "volume": record.model_dump(mode='json') if record else None,
        })
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in get_user_rewards: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error getting rewards for {user_id} in {launch_id}: {e}")
        return "An unexpected error occurred while retrieving rewards."


@mcp.tool()
async def get_top_market_makers(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    limit: int = Field(10, description="Maximum number of traders to return (1-100)."),
) -> str:
    """Traders with the most volume in a launch."""
    try:
        validate_launch_id(launch_id)
        validate_limit(limit)
        top = rewards.top_market_makers(launch_manager.get_volume_records(launch_id), limit)
        return to_json([r.model_dump(mode='json') for r in top])
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in get_top_market_makers: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error getting market makers for {launch_id}: {e}")
        return "An unexpected error occurred while retrieving market makers."


# --- Trending ---

@mcp.tool()
async def update_engagement(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    social_mentions: Optional[float] = Field(None, description="Social mentions counted for the launch."),
    social_engagement: Optional[float] = Field(None, description="Social engagement score (0-100)."),
) -> str:
    """Stores the latest social counters reported for a launch."""
    try:
        validate_launch_id(launch_id)
        counters = launch_manager.update_engagement(launch_id, social_mentions, social_engagement)
        return to_json({"launch_id": launch_id, **counters})
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in update_engagement: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error updating engagement for {launch_id}: {e}")
        return "An unexpected error occurred while updating engagement."


@mcp.tool()
async def get_trending_score(context: Context, launch_id: str = Field(..., description="The launch ID.")) -> str:
    """Trending score, hype score and trending status of a launch."""
    try:
        validate_launch_id(launch_id)
        metrics = launch_manager.build_trending_metrics(launch_id)
        metrics = metrics.model_copy(update={"score": trending.calculate_trending_score(metrics)})
        data = metrics.model_dump(mode='json')
        data["is_trending"] = trending.is_trending(metrics)
        return to_json(data)
    except errors.LaunchNotFoundError as e:
        logger.warning(str(e))
        return str(e)
    except ValueError as e:
        logger.error(f"Validation error in get_trending_score: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error getting trending score for {launch_id}: {e}")
        return "An unexpected error occurred while calculating the trending score."


@mcp.tool()
async def get_trending_rankings(
    context: Context,
    category: Optional[str] = Field(None, description="Restrict to 'raffle' or 'token' launches."),
    sort_by: str = Field("score", description="Sort key: score, volume, participants or hype."),
    limit: int = Field(10, description="Maximum number of rankings to return (1-100)."),
    min_volume: Optional[float] = Field(None, description="Minimum 24h volume in SOL."),
    min_participants: Optional[float] = Field(None, description="Minimum 24h unique participants."),
) -> str:
    """Ranks launches by trending score, with 24h rank changes and the dashboard view."""
    try:
        validate_limit(limit)
        filters = TrendingFilters(
            category=TrendingCategory(category) if category else None,
            sort_by=TrendingSortKey(sort_by),
            min_volume=min_volume,
            min_participants=min_participants,
        )
        board = launch_manager.trending_board
        rankings = board.publish(launch_manager.all_trending_metrics(), filters, limit)
        dashboard = board.dashboard()
        return to_json({
            "rankings": [r.model_dump(mode='json') for r in rankings],
            "biggest_gainers": [r.model_dump(mode='json') for r in dashboard["biggest_gainers"]],
            "biggest_losers": [r.model_dump(mode='json') for r in dashboard["biggest_losers"]],
            "categories": trending.trending_categories(),
        })
    except ValidationError as e:
        logger.error(f"Invalid trending filters: {e}")
        return f"Error: Invalid trending filters - {e}"
    except ValueError as e:
        logger.error(f"Validation error in get_trending_rankings: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error ranking launches: {e}")
        return "An unexpected error occurred while ranking launches."


# --- Events ---

@mcp.tool()
async def get_launch_events(
    context: Context,
    launch_id: str = Field(..., description="The launch ID."),
    kind: Optional[str] = Field(None, description="Only events of this kind (e.g. 'milestone_crossed')."),
    limit: int = Field(50, description="Maximum number of events to return, newest first (1-100)."),
) -> str:
    """Launch events (milestones, graduation, reward distributions, trades), newest first."""
    try:
        validate_launch_id(launch_id)
        validate_limit(limit)
        event_kind = EventKind(kind) if kind else None
        events = launch_manager.event_log.query(launch_id=launch_id, kind=event_kind, limit=limit)
        return to_json([e.model_dump(mode='json') for e in events])
    except ValueError as e:
        logger.error(f"Validation error in get_launch_events: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.exception(f"Unexpected error querying events for {launch_id}: {e}")
        return "An unexpected error occurred while retrieving launch events."


# --- Main Execution ---
if __name__ == "__main__":
    startup_start = time.time()
    logger.info("Starting Solana Launchpad MCP Server...")

    launch_count = len(launch_manager.launch_data)
    startup_duration = time.time() - startup_start
    logger.info(f"Server startup completed in {startup_duration:.3f}s, loaded {launch_count} launch(es).")

    try:
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")
    except Exception as e:
        logger.exception(f"Server error: {e}")
    finally:
        logger.info("Solana Launchpad MCP Server stopped.")
