"""Running totals of remote extraction spend.

The daily total resets the first time the tracker is touched on a new
calendar day; the monthly total only ever grows.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
import logging

from clinical_ocr import constants
from clinical_ocr.cache.store import KeyValueStore
from clinical_ocr.core.types import CostSnapshot, CostTotals

log = logging.getLogger(__name__)


def calculate_cost(
    input_tokens: int,
    output_tokens: int,
    *,
    input_per_1k: float = constants.COST_INPUT_PER_1K,
    output_per_1k: float = constants.COST_OUTPUT_PER_1K,
) -> float:
    """Price a remote call from its token usage (USD)."""
    return (input_tokens / 1000) * input_per_1k + (output_tokens / 1000) * output_per_1k


class CostTracker:
    """Accumulates remote spend in a `KeyValueStore` under `costs`.

    Args:
        store: Backend shared with the result cache.
        today: Returns the current local date; injectable for tests.
    """

    def __init__(
        self, store: KeyValueStore, today: Callable[[], date] = date.today
    ) -> None:
        self.store = store
        self.today = today

    def track(self, cost: float) -> CostSnapshot:
        """Add `cost` to both totals and persist the new snapshot."""
        if cost < 0:
            raise ValueError(f"cost must be non-negative, got {cost}")
        current = self.snapshot()
        updated = CostSnapshot(
            daily_total=current.daily_total + cost,
            monthly_total=current.monthly_total + cost,
            last_reset_date=current.last_reset_date,
        )
        self._save(updated)
        log.debug(
            "Tracked remote cost %.6f (daily %.6f, monthly %.6f)",
            cost,
            updated.daily_total,
            updated.monthly_total,
        )
        return updated

    def get_costs(self) -> CostTotals:
        """Current daily and monthly totals."""
        snap = self.snapshot()
        return CostTotals(daily=snap.daily_total, monthly=snap.monthly_total)

    def snapshot(self) -> CostSnapshot:
        """Load the stored snapshot, applying the daily reset if due."""
        today = self.today()
        snap = self._load(today)
        if snap.last_reset_date != today:
            log.info(
                "New day (%s); resetting daily remote cost of %.6f",
                today.isoformat(),
                snap.daily_total,
            )
            snap = CostSnapshot(
                daily_total=0.0,
                monthly_total=snap.monthly_total,
                last_reset_date=today,
            )
            self._save(snap)
        return snap

    def _load(self, today: date) -> CostSnapshot:
        raw = self.store.get(constants.COSTS_KEY)
        if not raw:
            return CostSnapshot(0.0, 0.0, today)
        try:
            return CostSnapshot(
                daily_total=float(raw["daily"]),
                monthly_total=float(raw["monthly"]),
                last_reset_date=date.fromisoformat(raw["lastResetDate"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Ignoring unreadable cost snapshot: %s", e)
            return CostSnapshot(0.0, 0.0, today)

    def _save(self, snap: CostSnapshot) -> None:
        self.store.set(
            constants.COSTS_KEY,
            {
                "daily": snap.daily_total,
                "monthly": snap.monthly_total,
                "lastResetDate": snap.last_reset_date.isoformat(),
            },
        )
