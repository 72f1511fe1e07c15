import os
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

# Import custom errors
from mcp_solana_launchpad.errors import ConfigurationError

"""
Configuration Management for the Launchpad Economics Engine

This module loads and validates every tunable constant of the engine: bonding curve
defaults, the graduation goal and milestones, reward pool caps and multiplier tiers,
and the trending/hype weights and floors. Deployments tune these through environment
variables instead of code changes.

Configuration Sources (in order of precedence):
1. Environment variables
2. Default values defined in this module
3. Configuration validation and type conversion

Environment Variables:
    RPC_ENDPOINT: Solana RPC endpoint URL (used to read vault balances)
    RPC_TIMEOUT_SECONDS: Timeout for RPC requests
    TOKEN_DECIMALS: Default token decimals (0-18)
    DEFAULT_TOTAL_SUPPLY: Default token supply for new launches
    CURVE_KIND: Default bonding curve kind (fixed, linear, exponential)
    CURVE_BASE_PRICE / CURVE_TERMINAL_PRICE: Default curve end points in SOL
    GRADUATION_GOAL_LAMPORTS: SOL (in lamports) a sale must collect to graduate
    MILESTONE_CHECKPOINTS: Comma-separated progress checkpoints in percent
    MAX_REWARD_PER_TRADE: Ceiling on the per-trade base reward percent
    DAILY_REWARD_LIMIT: Maximum reward per user per day
    MAX_REWARD_PERCENT: Maximum share of tokenomics an issuer may put in a pool
    VOLUME_MULTIPLIER_TIERS: "upper:multiplier" pairs, "*" marks the top tier
    POOL_UPDATE_MAX_RETRIES: Retries for optimistic reward pool commits
    TRENDING_SCORE_WEIGHTS / TRENDING_SCALES / HYPE_WEIGHTS: "name:value" pairs
    TRENDING_MIN_VOLUME / TRENDING_MIN_TRADES / TRENDING_MIN_PARTICIPANTS / TRENDING_MIN_HYPE
    RATE_LIMIT_PER_MINUTE: Mutating requests allowed per client per minute
    LAUNCH_CONFIG_DIR: Directory holding launch JSON files
    ACTIONS_PORT: Port for the HTTP API server
    CORS_ALLOWED_ORIGINS: Comma-separated allowed CORS origins
"""

# Set up logger
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


def _get_env_str(key: str, default: str, required: bool = False) -> str:
    """Get environment variable as string with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ConfigurationError(f"Required environment variable {key} is not set")
    return value


def _get_env_choice(key: str, default: str, choices: Tuple[str, ...]) -> str:
    """Get environment variable as one of a fixed set of lowercase names."""
    value = os.getenv(key, default).strip().lower()
    if value not in choices:
        raise ConfigurationError(f"Environment variable {key} must be one of: {', '.join(choices)}")
    return value


def _get_env_int(key: str, default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    """Get environment variable as integer with validation."""
    try:
        value = int(os.getenv(key, str(default)))
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be a valid integer")
    if min_val is not None and value < min_val:
        raise ConfigurationError(f"Environment variable {key} must be >= {min_val}")
    if max_val is not None and value > max_val:
        raise ConfigurationError(f"Environment variable {key} must be <= {max_val}")
    return value


def _get_env_float(key: str, default: float, min_val: Optional[float] = None, max_val: Optional[float] = None) -> float:
    """Get environment variable as float with validation."""
    try:
        value = float(os.getenv(key, str(default)))
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be a valid float")
    if min_val is not None and value < min_val:
        raise ConfigurationError(f"Environment variable {key} must be >= {min_val}")
    if max_val is not None and value > max_val:
        raise ConfigurationError(f"Environment variable {key} must be <= {max_val}")
    return value


def _get_env_decimal(key: str, default: str, min_val: Optional[Decimal] = None) -> Decimal:
    """Get environment variable as Decimal. Money amounts never go through float."""
    raw = os.getenv(key, default)
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ConfigurationError(f"Environment variable {key} must be a valid decimal number")
    if not value.is_finite():
        raise ConfigurationError(f"Environment variable {key} must be finite")
    if min_val is not None and value < min_val:
        raise ConfigurationError(f"Environment variable {key} must be >= {min_val}")
    return value


def _get_env_pairs(key: str, default: str) -> Dict[str, Decimal]:
    """Parse "name:value,name:value" into a dict of Decimals."""
    raw = os.getenv(key, default)
    pairs: Dict[str, Decimal] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.partition(":")
        if not sep:
            raise ConfigurationError(f"Environment variable {key} entry '{item}' must look like name:value")
        try:
            pairs[name.strip()] = Decimal(value.strip())
        except InvalidOperation:
            raise ConfigurationError(f"Environment variable {key} entry '{item}' has an invalid number")
    return pairs


def _get_env_tiers(key: str, default: str) -> Tuple[List[Tuple[Decimal, Decimal]], Decimal]:
    """
    Parse volume multiplier tiers.

    "1:1.0,10:1.2,*:2.5" means volume < 1 -> 1.0, volume < 10 -> 1.2, anything else -> 2.5.
    Returns the bounded tiers (ascending) and the top multiplier.
    """
    raw = os.getenv(key, default)
    tiers: List[Tuple[Decimal, Decimal]] = []
    top: Optional[Decimal] = None
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        bound, sep, multiplier = item.partition(":")
        if not sep:
            raise ConfigurationError(f"Environment variable {key} entry '{item}' must look like upper:multiplier")
        try:
            multiplier_value = Decimal(multiplier.strip())
            if bound.strip() == "*":
                top = multiplier_value
            else:
                tiers.append((Decimal(bound.strip()), multiplier_value))
        except InvalidOperation:
            raise ConfigurationError(f"Environment variable {key} entry '{item}' has an invalid number")
    if top is None:
        raise ConfigurationError(f"Environment variable {key} must define a top tier with '*'")
    bounds = [bound for bound, _ in tiers]
    if bounds != sorted(bounds) or len(set(bounds)) != len(bounds):
        raise ConfigurationError(f"Environment variable {key} tiers must be strictly ascending")
    return tiers, top


def _get_env_int_list(key: str, default: str) -> List[int]:
    """Parse a comma-separated list of integers."""
    raw = os.getenv(key, default)
    try:
        return sorted({int(x.strip()) for x in raw.split(",") if x.strip()})
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be a comma-separated list of integers")


CURVE_KINDS = ("fixed", "linear", "exponential")

# --- Solana Configuration ---
try:
    RPC_ENDPOINT = _get_env_str("RPC_ENDPOINT", "http://localhost:8899", required=True)
    RPC_TIMEOUT_SECONDS = _get_env_float("RPC_TIMEOUT_SECONDS", 10.0, min_val=0.1, max_val=120.0)
    LAMPORTS_PER_SOL = 10**9

    # --- Token / Curve Defaults ---
    DEFAULT_TOKEN_DECIMALS = _get_env_int("TOKEN_DECIMALS", 9, min_val=0, max_val=18)
    DEFAULT_TOTAL_SUPPLY = _get_env_decimal("DEFAULT_TOTAL_SUPPLY", "1000000000", min_val=Decimal(1))
    DEFAULT_CURVE_KIND = _get_env_choice("CURVE_KIND", "linear", CURVE_KINDS)
    DEFAULT_BASE_PRICE = _get_env_decimal("CURVE_BASE_PRICE", "0.000001", min_val=Decimal(0))
    DEFAULT_TERMINAL_PRICE = _get_env_decimal("CURVE_TERMINAL_PRICE", "0.00001", min_val=Decimal(0))
    # Price steps reported by the pricer are 1% of supply wide
    PRICE_STEP_PERCENT = _get_env_int("PRICE_STEP_PERCENT", 1, min_val=1, max_val=100)

    # --- Graduation ---
    GRADUATION_GOAL_LAMPORTS = _get_env_int("GRADUATION_GOAL_LAMPORTS", 30_000_000_000, min_val=1)
    MILESTONE_CHECKPOINTS = _get_env_int_list("MILESTONE_CHECKPOINTS", "25,50,75,100")

    # --- Reward Pools ---
    MAX_REWARD_PER_TRADE = _get_env_decimal("MAX_REWARD_PER_TRADE", "0.1", min_val=Decimal(0))
    DAILY_REWARD_LIMIT = _get_env_decimal("DAILY_REWARD_LIMIT", "1000", min_val=Decimal(0))
    MAX_REWARD_PERCENT = _get_env_decimal("MAX_REWARD_PERCENT", "20", min_val=Decimal(0))
    VOLUME_MULTIPLIER_TIERS, TOP_VOLUME_MULTIPLIER = _get_env_tiers(
        "VOLUME_MULTIPLIER_TIERS", "1:1.0,10:1.2,50:1.5,100:2.0,*:2.5"
    )
    POOL_UPDATE_MAX_RETRIES = _get_env_int("POOL_UPDATE_MAX_RETRIES", 8, min_val=1, max_val=1000)

    # --- Trending ---
    TRENDING_SCORE_WEIGHTS = _get_env_pairs(
        "TRENDING_SCORE_WEIGHTS", "volume:0.30,trades:0.25,participants:0.20,hype:0.15,social:0.10"
    )
    TRENDING_SCALES = _get_env_pairs("TRENDING_SCALES", "volume:10,trades:2,participants:5")
    HYPE_WEIGHTS = _get_env_pairs(
        "HYPE_WEIGHTS", "sales:0.30,time:0.20,social:0.20,participants:0.15,volume:0.15"
    )
    TRENDING_MIN_VOLUME = _get_env_float("TRENDING_MIN_VOLUME", 1.0, min_val=0.0)
    TRENDING_MIN_TRADES = _get_env_int("TRENDING_MIN_TRADES", 5, min_val=0)
    TRENDING_MIN_PARTICIPANTS = _get_env_int("TRENDING_MIN_PARTICIPANTS", 3, min_val=0)
    TRENDING_MIN_HYPE = _get_env_float("TRENDING_MIN_HYPE", 10.0, min_val=0.0, max_val=100.0)

    # --- Rate Limiting ---
    RATE_LIMIT_PER_MINUTE = _get_env_int("RATE_LIMIT_PER_MINUTE", 10, min_val=1, max_val=1000)

    # --- Directories ---
    LAUNCH_CONFIG_DIR = _get_env_str("LAUNCH_CONFIG_DIR", "launch_configs")

    # --- HTTP API Configuration ---
    ACTIONS_PORT = _get_env_int("ACTIONS_PORT", 5000, min_val=1024, max_val=65535)
    CORS_ALLOWED_ORIGINS = [o.strip() for o in _get_env_str("CORS_ALLOWED_ORIGINS", "*").split(",") if o.strip()]

    logger.info("Configuration loaded successfully")

except ConfigurationError as e:
    logger.error(f"Configuration error: {e}")
    raise
except Exception as e:
    logger.error(f"Unexpected error loading configuration: {e}")
    raise ConfigurationError(f"Failed to load configuration: {e}")
