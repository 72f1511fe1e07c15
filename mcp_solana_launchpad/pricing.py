"""
Token Pricing Engine with Bonding Curves

This module prices launch tokens along the bonding curve configured for each launch.
Prices depend only on how much of the supply has been sold, so every function here is
pure: the same inputs always give the same price, whatever order or density callers
sample the curve in.

Bonding Curve Kinds Supported:
- Fixed: constant base price
- Linear: base price rising linearly to the terminal price at full supply
- Exponential: base price growing geometrically to the terminal price at full supply

All kinds are non-decreasing and continuous in tokens sold, start at base_price with
nothing sold and reach terminal_price when the whole supply is sold.

Price Calculation Process:
1. Coerce malformed input (NaN, negative, missing) to 0 and clamp to [0, total_supply]
2. Convert tokens sold to the progress ratio along the curve
3. Evaluate the curve formula for the curve kind
4. For trades, integrate the curve over the traded range and apply sell fees

Curve validity (positive supply, ordered prices) is checked when the CurveConfig is
built, so price queries never raise.
"""
from decimal import Decimal
from typing import List, Tuple

from pydantic import BaseModel

from mcp_solana_launchpad.config import PRICE_STEP_PERCENT
from mcp_solana_launchpad.schemas import CurveConfig, CurveKind, SaleState
from mcp_solana_launchpad.utils import coerce_decimal
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)


class PriceStep(BaseModel):
    current_price: Decimal
    next_price: Decimal
    price_delta: Decimal
    tokens_until_next_step: Decimal


def _clamp_tokens(tokens_sold, curve: CurveConfig) -> Decimal:
    tokens = coerce_decimal(tokens_sold, "tokens_sold")
    if tokens > curve.total_supply:
        logger.debug(f"Clamped tokens_sold {tokens} to total supply {curve.total_supply}")
        return curve.total_supply
    return tokens


def _price_at(tokens: Decimal, curve: CurveConfig) -> Decimal:
    """Curve formula for an already clamped token count."""
    base = curve.base_price
    terminal = curve.terminal_price
    if curve.curve_kind == CurveKind.fixed or terminal == base:
        return base

    if tokens >= curve.total_supply:
        return terminal
    ratio = tokens / curve.total_supply
    if curve.curve_kind == CurveKind.linear:
        return base + (terminal - base) * ratio
    if curve.curve_kind == CurveKind.exponential:
        return base * (terminal / base) ** ratio
    # Unreachable while CurveConfig validates curve_kind
    raise ValueError(f"Invalid curve kind '{curve.curve_kind}'")


def calculate_price(tokens_sold, curve: CurveConfig) -> Decimal:
    """
    Returns the unit price in SOL after tokens_sold tokens (human units) have been sold.

    Args:
        tokens_sold: Tokens sold so far. Out-of-range values are clamped to [0, total_supply].
        curve: The launch's curve configuration.

    Returns:
        The unit price, never negative.
    """
    tokens = _clamp_tokens(tokens_sold, curve)
    price = _price_at(tokens, curve)
    return max(price, Decimal(0))


def price_for_state(sale: SaleState, curve: CurveConfig) -> Decimal:
    """Current unit price of a sale."""
    return calculate_price(sale.tokens_sold, curve)


def sample_curve(curve: CurveConfig, points: int) -> List[Tuple[Decimal, Decimal]]:
    """
    Samples the curve at evenly spaced points from 0 to total_supply for display.

    Raises:
        ValueError: If fewer than two points are requested.
    """
    if points < 2:
        raise ValueError("A price curve needs at least 2 sample points")
    step = curve.total_supply / (points - 1)
    samples = []
    for i in range(points):
        tokens = curve.total_supply if i == points - 1 else step * i
        samples.append((tokens, calculate_price(tokens, curve)))
    return samples


def _integral(x0: Decimal, x1: Decimal, curve: CurveConfig) -> Decimal:
    """SOL value of the curve between x0 and x1 tokens (x0 <= x1, both clamped)."""
    base = curve.base_price
    terminal = curve.terminal_price
    width = x1 - x0
    if width <= 0:
        return Decimal(0)
    if curve.curve_kind == CurveKind.fixed or terminal == base:
        return base * width

    supply = curve.total_supply
    if curve.curve_kind == CurveKind.linear:
        slope = (terminal - base) / supply
        return base * width + slope / 2 * (x1 * x1 - x0 * x0)

    growth = terminal / base
    ln_growth = growth.ln()
    return base * supply / ln_growth * (growth ** (x1 / supply) - growth ** (x0 / supply))


def calculate_trade_cost(
    amount: int,
    tokens_sold,
    curve: CurveConfig,
    is_sell: bool = False,
    sell_fee_percentage: float = 0.0,
) -> Decimal:
    """
    Calculates the SOL paid for a buy, or received for a sell, of `amount` base units.

    The price moves along the curve during the trade, so the cost is the integral of the
    curve over the traded range rather than amount * spot price.

    Args:
        amount: The number of tokens (in base units).
        tokens_sold: Tokens sold before the trade (human units).
        curve: The launch's curve configuration.
        is_sell: True when the tokens are sold back to the curve.
        sell_fee_percentage: Fee taken from sell proceeds (0.0-1.0).

    Returns:
        Total SOL cost for buys, net SOL proceeds for sells. Never negative.
    """
    amount_in_tokens = coerce_decimal(amount, "amount") / (Decimal(10) ** curve.decimals)
    current = _clamp_tokens(tokens_sold, curve)

    if is_sell:
        start = max(current - amount_in_tokens, Decimal(0))
        end = current
    else:
        start = current
        end = min(current + amount_in_tokens, curve.total_supply)
        if end - start < amount_in_tokens:
            logger.warning(f"Buy of {amount_in_tokens} tokens exceeds remaining supply; "
                           f"pricing only {end - start} tokens")

    total_sol_value = _integral(start, end, curve)

    if is_sell:
        sell_fee = total_sol_value * Decimal(repr(sell_fee_percentage))
        net_sol_value = total_sol_value - sell_fee
        logger.debug(f"Sell calculation for {amount} units ({amount_in_tokens} tokens): "
                     f"Base Value={total_sol_value:.9f} SOL, Fee={sell_fee:.9f} SOL, Net={net_sol_value:.9f} SOL")
        return max(Decimal(0), net_sol_value)

    logger.debug(f"Buy calculation for {amount} units ({amount_in_tokens} tokens): "
                 f"Total Price={total_sol_value:.9f} SOL")
    return total_sol_value


def calculate_tokens_for_sol(sol_amount, tokens_sold, curve: CurveConfig) -> int:
    """
    Inverts the buy integral: how many tokens (base units) `sol_amount` buys right now.

    The result is capped at the remaining supply.
    """
    sol = coerce_decimal(sol_amount, "sol_amount")
    x0 = _clamp_tokens(tokens_sold, curve)
    supply = curve.total_supply
    remaining = supply - x0
    base = curve.base_price
    terminal = curve.terminal_price

    if sol == 0 or remaining == 0:
        return 0

    if curve.curve_kind == CurveKind.fixed or terminal == base:
        tokens = remaining if base == 0 else sol / base
    elif curve.curve_kind == CurveKind.linear:
        slope = (terminal - base) / supply
        target = sol + base * x0 + slope / 2 * x0 * x0
        x1 = (-base + (base * base + 2 * slope * target).sqrt()) / slope
        tokens = x1 - x0
    else:
        growth = terminal / base
        ln_growth = growth.ln()
        level = growth ** (x0 / supply) + sol * ln_growth / (base * supply)
        x1 = supply * level.ln() / ln_growth
        tokens = x1 - x0

    tokens = min(max(tokens, Decimal(0)), remaining)
    return int(tokens * (Decimal(10) ** curve.decimals))


def price_step_info(tokens_sold, curve: CurveConfig) -> PriceStep:
    """Reports the price at the next supply step (PRICE_STEP_PERCENT of supply wide)."""
    current_tokens = _clamp_tokens(tokens_sold, curve)
    step = curve.total_supply * PRICE_STEP_PERCENT / 100
    until_next = step - (current_tokens % step)
    until_next = min(until_next, curve.total_supply - current_tokens)

    current_price = calculate_price(current_tokens, curve)
    next_price = calculate_price(current_tokens + until_next, curve)
    return PriceStep(
        current_price=current_price,
        next_price=next_price,
        price_delta=next_price - current_price,
        tokens_until_next_step=until_next,
    )
