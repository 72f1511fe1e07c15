import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_solana_launchpad.config import LAMPORTS_PER_SOL

logger = get_logger(__name__)


def coerce_decimal(value: Any, field: str) -> Decimal:
    """
    Converts UI/ledger telemetry to a non-negative Decimal.

    None, NaN, infinities, unparsable values and negatives become 0. Every coercion is
    logged so degraded inputs stay visible.
    """
    if isinstance(value, bool):
        value = int(value)
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(repr(value)) if math.isfinite(value) else Decimal("NaN")
        else:
            result = Decimal(str(value)) if value is not None else Decimal("NaN")
    except (InvalidOperation, ValueError, TypeError):
        logger.warning(f"Coerced unparsable {field}={value!r} to 0")
        return Decimal(0)

    if not result.is_finite():
        logger.warning(f"Coerced non-finite {field}={value!r} to 0")
        return Decimal(0)
    if result < 0:
        logger.warning(f"Coerced negative {field}={value!r} to 0")
        return Decimal(0)
    return result


def coerce_float(value: Any, field: str) -> float:
    """Float variant of coerce_decimal for ranking telemetry."""
    if isinstance(value, bool):
        value = int(value)
    try:
        result = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Coerced unparsable {field}={value!r} to 0")
        return 0.0
    if not math.isfinite(result):
        logger.warning(f"Coerced non-finite {field}={value!r} to 0")
        return 0.0
    if result < 0:
        logger.warning(f"Coerced negative {field}={value!r} to 0")
        return 0.0
    return result


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero; the builtin round() rounds half to even."""
    return int(Decimal(repr(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def lamports_to_sol(lamports: int) -> Decimal:
    """Convert lamports to SOL."""
    return Decimal(lamports) / LAMPORTS_PER_SOL


def sol_to_lamports(sol: Decimal) -> int:
    """Convert SOL to lamports, truncating sub-lamport dust."""
    return int(Decimal(sol) * LAMPORTS_PER_SOL)
