"""
Custom Exception Classes for the Launchpad Economics Engine

This module defines the exception classes raised by the pricing, graduation, reward and
trending components and by the tool surfaces built on top of them.

Exception Categories:
- Configuration Errors: invalid environment settings or launch/pool parameters
- Lookup Errors: unknown launches or reward pools
- Concurrency Errors: optimistic commits that lost a race on a reward pool
- Transport Errors: RPC failures and malformed transaction references
- Rate Limiting Errors: too many mutating requests from one client

Degenerate telemetry (NaN, negative or missing numbers) is never raised as an error;
it is coerced to a safe default and logged. A depleted or inactive reward pool is a
normal zero-reward outcome and is not an exception either.
"""


class ConfigurationError(Exception):
    """Raised when environment configuration is missing or invalid."""


class ValidationError(Exception):
    """Raised when launch or reward pool parameters fail validation at creation/update time."""


class LaunchNotFoundError(Exception):
    """Raised when a launch id is not known to the launch manager."""


class PoolNotFoundError(Exception):
    """Raised when no reward pool exists for a raffle/launch id."""


class ConcurrentUpdateError(Exception):
    """Raised when a reward pool commit is rejected because the pool version moved."""


class InvalidTransactionError(Exception):
    """Raised for malformed transaction references supplied by callers."""


class RpcError(Exception):
    """Raised when the Solana RPC endpoint returns an error or an unusable payload."""


class RateLimitExceededError(Exception):
    """Raised when the rate limit is exceeded for mutating requests."""
