"""
Graduation Monitor

Tracks a sale's progress toward its graduation goal: the amount of SOL (in lamports)
that must be collected before liquidity migrates to a persistent pool.

A monitor has two states, Active and Graduated. The Graduated flag is a latch: once
collected SOL reaches the goal the launch stays graduated even if a later (stale) read
reports less. Progress is still reported numerically, capped at 100%.

Milestones are edge-triggered. The monitor keeps the highest progress it has observed
and each update returns only the checkpoints crossed for the first time, so repeated
polls never re-fire the same milestone.
"""
import threading
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from mcp_solana_launchpad import config
from mcp_solana_launchpad.events import EventLog
from mcp_solana_launchpad.schemas import EventKind, GraduationState, LaunchEvent
from mcp_solana_launchpad.utils import coerce_decimal
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

HUNDRED = Decimal(100)


class GraduationUpdate(BaseModel):
    launch_id: str
    progress_percent: Decimal
    is_graduated: bool
    just_graduated: bool
    newly_crossed: List[int]


def calculate_progress(sol_collected_lamports, goal_lamports) -> Decimal:
    """
    Progress toward the graduation goal in percent, clamped to [0, 100].

    Malformed inputs are coerced to 0. A goal of 0 yields 0 progress.
    """
    collected = coerce_decimal(sol_collected_lamports, "sol_collected_lamports")
    goal = coerce_decimal(goal_lamports, "goal_lamports")
    if goal == 0:
        logger.warning("Graduation goal is zero; reporting 0% progress")
        return Decimal(0)
    return min(HUNDRED, collected / goal * HUNDRED)


class GraduationMonitor:
    """Per-launch graduation state machine with milestone tracking."""

    def __init__(
        self,
        launch_id: str,
        goal_lamports: int,
        event_log: Optional[EventLog] = None,
        checkpoints: Optional[List[int]] = None,
    ):
        self.launch_id = launch_id
        self.goal_lamports = goal_lamports
        self.event_log = event_log
        self.checkpoints = sorted(checkpoints if checkpoints is not None else config.MILESTONE_CHECKPOINTS)
        self.is_graduated = False
        self.high_water_mark_percent = Decimal(0)
        self.sol_collected_lamports = 0
        self.progress_percent = Decimal(0)
        self._lock = threading.Lock()

    def update(self, sol_collected_lamports, transaction_ref: Optional[str] = None) -> GraduationUpdate:
        """
        Feeds the latest collected-SOL reading to the monitor.

        Args:
            sol_collected_lamports: Latest SOL collected by the sale, in lamports.
            transaction_ref: Opaque reference of the transaction that produced the reading,
                copied onto emitted events.

        Returns:
            The progress, the latched graduation flag and the checkpoints crossed for the first time.
        """
        collected = coerce_decimal(sol_collected_lamports, "sol_collected_lamports")
        progress = calculate_progress(collected, self.goal_lamports)

        with self._lock:
            self.sol_collected_lamports = int(collected)
            self.progress_percent = progress

            newly_crossed = [
                c for c in self.checkpoints
                if self.high_water_mark_percent < c <= progress
            ]
            if progress > self.high_water_mark_percent:
                self.high_water_mark_percent = progress

            just_graduated = False
            if not self.is_graduated and self.goal_lamports > 0 and collected >= self.goal_lamports:
                self.is_graduated = True
                just_graduated = True

        for checkpoint in newly_crossed:
            logger.info(f"Launch '{self.launch_id}' crossed {checkpoint}% of its graduation goal")
            self._emit(EventKind.milestone_crossed, Decimal(checkpoint), transaction_ref)

        if just_graduated:
            logger.info(f"Launch '{self.launch_id}' graduated: {int(collected)} lamports collected "
                        f"(goal {self.goal_lamports})")
            self._emit(EventKind.threshold_met, collected, transaction_ref)
            self._emit(EventKind.graduated, Decimal(self.goal_lamports), transaction_ref)
        elif self.is_graduated and collected < self.goal_lamports:
            logger.warning(f"Launch '{self.launch_id}' is graduated but reported {int(collected)} lamports "
                           f"below the goal; keeping graduated state")

        return GraduationUpdate(
            launch_id=self.launch_id,
            progress_percent=progress,
            is_graduated=self.is_graduated,
            just_graduated=just_graduated,
            newly_crossed=newly_crossed,
        )

    def state(self) -> GraduationState:
        return GraduationState(
            sol_collected_lamports=self.sol_collected_lamports,
            goal_lamports=self.goal_lamports,
            is_graduated=self.is_graduated,
            progress_percent=self.progress_percent,
            high_water_mark_percent=self.high_water_mark_percent,
        )

    def _emit(self, kind: EventKind, value: Decimal, transaction_ref: Optional[str]) -> None:
        if self.event_log is None:
            return
        self.event_log.append(LaunchEvent(
            launch_id=self.launch_id,
            kind=kind,
            value=value,
            transaction_ref=transaction_ref,
        ))
