"""
Reward Pool Store and Distribution Ledger

Reward pools are the only shared mutable state of the engine: many trades may try to
draw on the same pool at once. The store owns every pool record and hands out frozen
snapshots only. Changes go through `transact`, which reads a snapshot, computes the
change and commits it with an optimistic compare-and-swap on the pool version. A commit
against a stale version is rejected and recomputed, so concurrent allocations can never
lose an update or together hand out more than the pool holds.

Pools of different launches are independent: each pool has its own locks and nothing
locks across pools. Grants to one pool also hold a grant lock from the ledger read to
the ledger append, since the daily limit depends on what the ledger already holds.

Granted rewards are appended to the RewardLedger, which also answers how much each
trader has received today for the daily limit.
"""
import threading
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from mcp_solana_launchpad import config
from mcp_solana_launchpad.errors import ConcurrentUpdateError, PoolNotFoundError, ValidationError
from mcp_solana_launchpad.events import EventLog
from mcp_solana_launchpad.rewards import calculate_reward, distribute_rewards, validate_pool_config
from mcp_solana_launchpad.schemas import (
    EventKind,
    LaunchEvent,
    RewardDistributionResult,
    RewardPoolConfig,
    RewardTuning,
    TradingVolumeRecord,
    TransactionType,
)
from mcp_solana_launchpad.utils import coerce_decimal
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)


def _start_of_day(now: datetime) -> datetime:
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


class RewardLedger:
    """Append-only store of granted rewards."""

    def __init__(self):
        self._records: List[RewardDistributionResult] = []
        self._lock = threading.Lock()

    def append(self, results: Sequence[RewardDistributionResult]) -> None:
        with self._lock:
            self._records.extend(results)

    def for_raffle(self, raffle_id: str) -> List[RewardDistributionResult]:
        with self._lock:
            return [r for r in self._records if r.raffle_id == raffle_id]

    def for_user(self, raffle_id: str, user_id: str) -> List[RewardDistributionResult]:
        return [r for r in self.for_raffle(raffle_id) if r.user_id == user_id]

    def user_total(self, raffle_id: str, user_id: str) -> Decimal:
        return sum((r.reward_amount for r in self.for_user(raffle_id, user_id)), Decimal(0))

    def granted_since(self, raffle_id: str, since: datetime) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for r in self.for_raffle(raffle_id):
            if r.created_at >= since:
                totals[r.user_id] += r.reward_amount
        return dict(totals)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class RewardPoolStore:
    def __init__(
        self,
        ledger: Optional[RewardLedger] = None,
        event_log: Optional[EventLog] = None,
        tuning: Optional[RewardTuning] = None,
        max_retries: int = config.POOL_UPDATE_MAX_RETRIES,
    ):
        self.ledger = ledger if ledger is not None else RewardLedger()
        self.event_log = event_log
        self.tuning = tuning
        self.max_retries = max_retries
        self._pools: Dict[str, RewardPoolConfig] = {}
        self._locks: Dict[str, threading.Lock] = {}
        # Held across ledger read, pool commit and ledger append of a grant
        self._grant_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # --- Pool lifecycle ---

    def create_pool(
        self,
        raffle_id: str,
        reward_percent,
        total_reward_pool,
        is_active: bool = True,
        distributed_rewards=Decimal(0),
    ) -> RewardPoolConfig:
        """
        Creates a funded reward pool.

        Raises:
            ValidationError: If the percent or pool size is invalid, or the pool already exists.
        """
        errors = validate_pool_config(reward_percent=reward_percent, total_reward_pool=total_reward_pool)
        if not raffle_id:
            errors.append("Raffle id must be a non-empty string")
        if errors:
            raise ValidationError("; ".join(errors))

        try:
            pool = RewardPoolConfig(
                raffle_id=raffle_id,
                reward_percent=Decimal(str(reward_percent)),
                total_reward_pool=Decimal(str(total_reward_pool)),
                distributed_rewards=Decimal(str(distributed_rewards)),
                is_active=is_active,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        with self._registry_lock:
            if raffle_id in self._pools:
                raise ValidationError(f"Reward pool for '{raffle_id}' already exists")
            self._pools[raffle_id] = pool
            self._locks[raffle_id] = threading.Lock()
            self._grant_locks[raffle_id] = threading.Lock()

        logger.info(f"Created reward pool for '{raffle_id}': {pool.total_reward_pool} tokens "
                    f"at {pool.reward_percent}%")
        return pool

    def has_pool(self, raffle_id: str) -> bool:
        return raffle_id in self._pools

    def get_pool(self, raffle_id: str) -> RewardPoolConfig:
        pool = self._pools.get(raffle_id)
        if pool is None:
            raise PoolNotFoundError(f"No reward pool for '{raffle_id}'")
        return pool

    def clear(self) -> None:
        with self._registry_lock:
            self._pools.clear()
            self._locks.clear()
            self._grant_locks.clear()
        self.ledger.clear()

    # --- Transactions ---

    def compare_and_swap(self, raffle_id: str, expected_version: int, new_pool: RewardPoolConfig) -> RewardPoolConfig:
        """
        Commits new_pool if the stored pool is still at expected_version.

        Raises:
            ConcurrentUpdateError: If another commit landed first.
        """
        lock = self._locks.get(raffle_id)
        if lock is None:
            raise PoolNotFoundError(f"No reward pool for '{raffle_id}'")
        with lock:
            current = self._pools[raffle_id]
            if current.version != expected_version:
                raise ConcurrentUpdateError(
                    f"Pool '{raffle_id}' moved from version {expected_version} to {current.version}"
                )
            committed = new_pool.model_copy(update={"version": current.version + 1})
            self._pools[raffle_id] = committed
            return committed

    def transact(
        self,
        raffle_id: str,
        compute: Callable[[RewardPoolConfig], Tuple[Optional[Dict[str, Any]], Any]],
    ) -> Tuple[RewardPoolConfig, Any]:
        """
        Runs one atomic read-compute-commit against a pool.

        `compute` receives a snapshot and returns (field updates or None, result). It must
        be free of side effects: it is called again whenever the commit loses a race.

        Returns:
            The committed (or unchanged) snapshot and compute's result.
        """
        for attempt in range(1, self.max_retries + 1):
            snapshot = self.get_pool(raffle_id)
            updates, result = compute(snapshot)
            if not updates:
                return snapshot, result

            fields = snapshot.model_dump(exclude={"remaining_rewards"})
            fields.update(updates)
            try:
                candidate = RewardPoolConfig.model_validate(fields)
            except ValueError as e:
                raise ValidationError(str(e))

            try:
                return self.compare_and_swap(raffle_id, snapshot.version, candidate), result
            except ConcurrentUpdateError as e:
                logger.debug(f"Retrying pool update (attempt {attempt}/{self.max_retries}): {e}")

        logger.error(f"Giving up on pool '{raffle_id}' after {self.max_retries} conflicting commits")
        raise ConcurrentUpdateError(f"Pool '{raffle_id}' is too contended, retry later")

    def update_pool(self, raffle_id: str, reward_percent=None, is_active: Optional[bool] = None) -> RewardPoolConfig:
        """
        Changes the reward percent or the active flag of a pool.

        Raises:
            ValidationError: If the new percent is out of range.
        """
        errors = validate_pool_config(reward_percent=reward_percent)
        if errors:
            raise ValidationError("; ".join(errors))

        updates: Dict[str, Any] = {}
        if reward_percent is not None:
            updates["reward_percent"] = Decimal(str(reward_percent))
        if is_active is not None:
            updates["is_active"] = is_active

        pool, _ = self.transact(raffle_id, lambda snapshot: (updates, None))
        logger.info(f"Updated reward pool '{raffle_id}': {updates}")
        return pool

    def top_up_pool(self, raffle_id: str, amount) -> RewardPoolConfig:
        """Adds tokens to a pool. This is the only way total_reward_pool grows."""
        errors = validate_pool_config(total_reward_pool=amount)
        if errors:
            raise ValidationError("Top-up amount must be greater than 0")
        top_up = Decimal(str(amount))

        pool, _ = self.transact(
            raffle_id,
            lambda snapshot: ({"total_reward_pool": snapshot.total_reward_pool + top_up}, None),
        )
        logger.info(f"Topped up reward pool '{raffle_id}' by {top_up}; total now {pool.total_reward_pool}")
        return pool

    # --- Allocation ---

    def allocate_trade_reward(
        self,
        raffle_id: str,
        trade_amount_sol,
        side: TransactionType,
        user_volume: TradingVolumeRecord,
        transaction_ref: Optional[str] = None,
    ) -> Decimal:
        """
        Grants the per-trade reward for one trade and commits it to the pool.

        Returns:
            The granted reward; 0 for inactive or depleted pools.
        """
        def compute(snapshot: RewardPoolConfig):
            reward = calculate_reward(snapshot, trade_amount_sol, side, user_volume, self.tuning)
            if reward <= 0:
                return None, Decimal(0)
            return {"distributed_rewards": snapshot.distributed_rewards + reward}, reward

        with self._grant_lock(raffle_id):
            pool, reward = self.transact(raffle_id, compute)
            if reward > 0:
                self.ledger.append([RewardDistributionResult(
                    raffle_id=raffle_id,
                    user_id=user_volume.user_id,
                    sol_amount=coerce_decimal(trade_amount_sol, "trade_amount_sol"),
                    reward_amount=reward,
                    transaction_type=side,
                )])
        if reward > 0:
            self._emit(raffle_id, reward, transaction_ref)
            logger.info(f"Granted {reward} reward tokens to {user_volume.user_id} in '{raffle_id}'; "
                        f"{pool.remaining_rewards} remaining")
        return reward

    def run_distribution(
        self,
        raffle_id: str,
        records: Sequence[TradingVolumeRecord],
        now: Optional[datetime] = None,
        transaction_ref: Optional[str] = None,
    ) -> List[RewardDistributionResult]:
        """
        Distributes an epoch of rewards across traders and commits the total to the pool.

        Rewards already granted to a trader since the start of the current UTC day count
        against that trader's daily limit. Grants to the same pool are serialized from
        the ledger read to the ledger append, so concurrent runs never both spend a
        trader's daily headroom.
        """
        now = now or datetime.now(timezone.utc)

        with self._grant_lock(raffle_id):
            already_granted = self.ledger.granted_since(raffle_id, _start_of_day(now))

            def compute(snapshot: RewardPoolConfig):
                results = distribute_rewards(snapshot, records, self.tuning, already_granted)
                total = sum((r.reward_amount for r in results), Decimal(0))
                if total <= 0:
                    return None, results
                return {"distributed_rewards": snapshot.distributed_rewards + total}, results

            pool, results = self.transact(raffle_id, compute)
            if results:
                self.ledger.append(results)

        if results:
            total = sum((r.reward_amount for r in results), Decimal(0))
            self._emit(raffle_id, total, transaction_ref)
            logger.info(f"Distributed {total} reward tokens to {len(results)} traders in '{raffle_id}'; "
                        f"{pool.remaining_rewards} remaining")
        return results

    def _grant_lock(self, raffle_id: str) -> threading.Lock:
        lock = self._grant_locks.get(raffle_id)
        if lock is None:
            raise PoolNotFoundError(f"No reward pool for '{raffle_id}'")
        return lock

    def _emit(self, raffle_id: str, amount: Decimal, transaction_ref: Optional[str]) -> None:
        if self.event_log is None:
            return
        self.event_log.append(LaunchEvent(
            launch_id=raffle_id,
            kind=EventKind.rewards_distributed,
            value=amount,
            transaction_ref=transaction_ref,
        ))
