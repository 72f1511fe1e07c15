"""
Trending Scorer

Ranks launches by a composite 0-100 trending score built from 24h trading telemetry,
a hype sub-score and social engagement.

Score Calculation:
1. Normalize raw counters to 0-100 (volume x10, trades x2, participants x5; hype and
   social engagement are already 0-100), capping each at 100
2. Weighted sum: volume 30%, trades 25%, participants 20%, hype 15%, social 10%
3. Round half up

Hype Sub-Score:
Sales ratio, time pressure as the sale nears its end, social mentions, unique
participants and 24h volume, weighted 30/20/20/15/15 and scaled to 0-100.

A launch is trending only when it clears all four floors: volume, trades, participants
and hype. Rankings are stable sorts, so launches with equal scores keep input order.

Telemetry is advisory: malformed counters are coerced to 0 and logged, never raised.
"""
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from mcp_solana_launchpad.schemas import (
    HypeFactors,
    TrendingCategory,
    TrendingFilters,
    TrendingMetrics,
    TrendingRanking,
    TrendingSortKey,
    TrendingTuning,
)
from mcp_solana_launchpad.utils import coerce_float, round_half_up
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

MAX_SCORE = 100.0

_DEFAULT_TUNING: Optional[TrendingTuning] = None


def default_tuning() -> TrendingTuning:
    global _DEFAULT_TUNING
    if _DEFAULT_TUNING is None:
        _DEFAULT_TUNING = TrendingTuning()
    return _DEFAULT_TUNING


def calculate_trending_score(metrics: TrendingMetrics, tuning: Optional[TrendingTuning] = None) -> int:
    """Composite trending score in [0, 100]."""
    tuning = tuning or default_tuning()
    weights = tuning.score_weights
    scales = tuning.scales

    normalized_volume = min(coerce_float(metrics.volume_24h, "volume_24h") * scales["volume"], MAX_SCORE)
    normalized_trades = min(coerce_float(metrics.trades_24h, "trades_24h") * scales["trades"], MAX_SCORE)
    normalized_participants = min(
        coerce_float(metrics.participants_24h, "participants_24h") * scales["participants"], MAX_SCORE
    )
    normalized_hype = min(coerce_float(metrics.hype_score, "hype_score"), MAX_SCORE)
    normalized_social = min(coerce_float(metrics.social_engagement, "social_engagement"), MAX_SCORE)

    score = (
        normalized_volume * weights["volume"]
        + normalized_trades * weights["trades"]
        + normalized_participants * weights["participants"]
        + normalized_hype * weights["hype"]
        + normalized_social * weights["social"]
    )
    return min(round_half_up(score), int(MAX_SCORE))


def calculate_hype_score(factors: HypeFactors, tuning: Optional[TrendingTuning] = None) -> int:
    """Hype score in [0, 100] from sales velocity, time pressure and social signals."""
    tuning = tuning or default_tuning()
    weights = tuning.hype_weights

    ticket_sales = coerce_float(factors.ticket_sales, "ticket_sales")
    max_tickets = coerce_float(factors.max_tickets, "max_tickets")
    time_remaining = coerce_float(factors.time_remaining_hours, "time_remaining_hours")

    sales_ratio = min(ticket_sales / max_tickets, 1.0) if max_tickets > 0 else 0.0
    time_pressure = max(0.0, 1 - time_remaining / 24)
    social_score = min(coerce_float(factors.social_mentions, "social_mentions") / 100, 1.0)
    participant_score = min(coerce_float(factors.unique_participants, "unique_participants") / 50, 1.0)
    volume_score = min(coerce_float(factors.volume_24h, "volume_24h") / 100, 1.0)

    hype = (
        sales_ratio * weights["sales"]
        + time_pressure * weights["time"]
        + social_score * weights["social"]
        + participant_score * weights["participants"]
        + volume_score * weights["volume"]
    )
    return round_half_up(hype * 100)


def is_trending(metrics: TrendingMetrics, tuning: Optional[TrendingTuning] = None) -> bool:
    tuning = tuning or default_tuning()
    return (
        coerce_float(metrics.volume_24h, "volume_24h") >= tuning.min_volume
        and coerce_float(metrics.trades_24h, "trades_24h") >= tuning.min_trades
        and coerce_float(metrics.participants_24h, "participants_24h") >= tuning.min_participants
        and coerce_float(metrics.hype_score, "hype_score") >= tuning.min_hype
    )


def _sort_value(metrics: TrendingMetrics, sort_by: TrendingSortKey) -> float:
    if sort_by == TrendingSortKey.volume:
        return coerce_float(metrics.volume_24h, "volume_24h")
    if sort_by == TrendingSortKey.participants:
        return coerce_float(metrics.participants_24h, "participants_24h")
    if sort_by == TrendingSortKey.hype:
        return coerce_float(metrics.hype_score, "hype_score")
    return float(metrics.score)


def rank_launches(
    metrics: Sequence[TrendingMetrics],
    filters: Optional[TrendingFilters] = None,
    limit: Optional[int] = None,
    previous_ranks: Optional[Dict[str, int]] = None,
    tuning: Optional[TrendingTuning] = None,
) -> List[TrendingRanking]:
    """
    Scores, filters and ranks launches.

    Args:
        metrics: Telemetry per launch. Scores are recomputed from the raw counters.
        filters: Category/volume/participant filters and the sort key.
        limit: Maximum number of rankings returned.
        previous_ranks: Ranks from 24h ago; change_24h is previous rank minus current rank.
        tuning: Scorer constants; defaults to configuration.

    Returns:
        Rankings with 1-based ranks, highest first.
    """
    filters = filters or TrendingFilters()
    previous_ranks = previous_ranks or {}

    scored = [m.model_copy(update={"score": calculate_trending_score(m, tuning)}) for m in metrics]
    if filters.category is not None:
        scored = [m for m in scored if m.category == filters.category]
    if filters.min_volume is not None:
        scored = [m for m in scored if coerce_float(m.volume_24h, "volume_24h") >= filters.min_volume]
    if filters.min_participants is not None:
        scored = [m for m in scored
                  if coerce_float(m.participants_24h, "participants_24h") >= filters.min_participants]

    ordered = sorted(scored, key=lambda m: _sort_value(m, filters.sort_by), reverse=True)
    if limit is not None:
        ordered = ordered[:limit]

    rankings = []
    for position, m in enumerate(ordered, start=1):
        previous = previous_ranks.get(m.launch_id)
        rankings.append(TrendingRanking(
            launch_id=m.launch_id,
            rank=position,
            score=m.score,
            change_24h=previous - position if previous is not None else 0,
            category=m.category,
        ))
    return rankings


def trending_categories() -> List[Dict[str, str]]:
    return [
        {"id": "raffles", "name": "Trending Raffles",
         "description": "Most popular raffles by volume and participants"},
        {"id": "tokens", "name": "Trending Tokens", "description": "Most traded tokens on the platform"},
        {"id": "volume", "name": "High Volume", "description": "Launches with highest trading volume"},
        {"id": "new", "name": "New Launches", "description": "Recently launched raffles and tokens"},
        {"id": "ending", "name": "Ending Soon", "description": "Launches ending in the next 24 hours"},
    ]


class TrendingBoard:
    """
    Keeps the ranking snapshot that change_24h is measured against.

    The snapshot rotates once per window: the first ranking published after the window
    elapses becomes the new baseline.
    """

    def __init__(self, window: timedelta = timedelta(hours=24)):
        self.window = window
        self._baseline: Dict[str, int] = {}
        self._baseline_at: Optional[datetime] = None
        self._latest: List[TrendingRanking] = []
        self._lock = threading.Lock()

    def publish(
        self,
        metrics: Sequence[TrendingMetrics],
        filters: Optional[TrendingFilters] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
        tuning: Optional[TrendingTuning] = None,
    ) -> List[TrendingRanking]:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            baseline = dict(self._baseline)
            rankings = rank_launches(metrics, filters, limit, baseline, tuning)
            if self._baseline_at is None or now - self._baseline_at >= self.window:
                # Baselines come from the unfiltered ranking so filtered views stay comparable
                full = rankings if filters is None and limit is None else rank_launches(metrics, tuning=tuning)
                self._baseline = {r.launch_id: r.rank for r in full}
                self._baseline_at = now
                logger.debug(f"Rotated trending baseline with {len(self._baseline)} launches")
            self._latest = rankings
        return rankings

    def dashboard(self, size: int = 5) -> Dict[str, List[TrendingRanking]]:
        with self._lock:
            latest = list(self._latest)
        gainers = sorted((r for r in latest if r.change_24h > 0), key=lambda r: r.change_24h, reverse=True)
        losers = sorted((r for r in latest if r.change_24h < 0), key=lambda r: r.change_24h)
        return {
            "top_raffles": [r for r in latest if r.category == TrendingCategory.raffle][:size * 2],
            "top_tokens": [r for r in latest if r.category == TrendingCategory.token][:size * 2],
            "biggest_gainers": gainers[:size],
            "biggest_losers": losers[:size],
        }
