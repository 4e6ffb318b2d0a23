"""Per-call metrics snapshots and the history they accumulate in.

A :class:`DailyMetricsSnapshot` is appended for every call of the control
loop, not for every calendar day. ``revenue`` and ``spend`` are the
ledger's lifetime totals at call time, so per-period figures are the
differences between consecutive snapshots.
"""

from dataclasses import asdict, dataclass, fields
from decimal import Decimal
from typing import Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

from .decimal_utils import MetricsDict, to_float


@dataclass(frozen=True)
class DailyMetricsSnapshot:
    """Derived financial metrics recorded by one control-loop call.

    Attributes:
        day: Ledger day at call time.
        net_worth: Cash position.
        revenue: Lifetime revenue (cumulative).
        spend: Lifetime spend including fees (cumulative).
        roas: Lifetime revenue / spend.
        profit_margin: Lifetime profit as a percentage of revenue.
        burn_rate: Mean per-call increase in cumulative spend.
        days_until_bankruptcy: Runway at the current burn rate; None when
            there is no burn.
        financial_health: Health tier value (e.g. ``"good"``).
        available_budget: Spendable cash after the fee reserve.
        total_profit: Lifetime revenue minus lifetime spend.
        active_products: Products tracked by the ledger.
        active_campaigns: Campaigns tracked by the ledger.
        errors: Collaborator error count.
    """

    day: int
    net_worth: Decimal
    revenue: Decimal
    spend: Decimal
    roas: Decimal
    profit_margin: Decimal
    burn_rate: Decimal
    days_until_bankruptcy: Optional[int]
    financial_health: str
    available_budget: Decimal
    total_profit: Decimal
    active_products: int = 0
    active_campaigns: int = 0
    errors: int = 0

    def to_dict(self) -> MetricsDict:
        """JSON-ready copy with Decimals rendered as floats."""
        return {
            key: to_float(value) if isinstance(value, Decimal) else value
            for key, value in asdict(self).items()
        }


SNAPSHOT_FIELDS = tuple(f.name for f in fields(DailyMetricsSnapshot))


class MetricsHistory:
    """Ordered, append-only list of snapshots with windowing helpers."""

    def __init__(self) -> None:
        self._entries: List[DailyMetricsSnapshot] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DailyMetricsSnapshot]:
        return iter(self._entries)

    def __getitem__(self, item):
        return self._entries[item]

    def append(self, snapshot: DailyMetricsSnapshot) -> None:
        self._entries.append(snapshot)

    @property
    def latest(self) -> Optional[DailyMetricsSnapshot]:
        return self._entries[-1] if self._entries else None

    def window(self, size: int, end_offset: int = 0) -> Sequence[DailyMetricsSnapshot]:
        """Return up to ``size`` entries ending ``end_offset`` entries before the end.

        ``window(7)`` is the last seven entries; ``window(7, end_offset=7)``
        is the seven before those (positions ``[-14, -7)``).
        """
        end = len(self._entries) - end_offset
        if end <= 0:
            return []
        return self._entries[max(0, end - size) : end]

    def values(self, field_name: str, size: int, end_offset: int = 0) -> np.ndarray:
        """Float array of one field over :meth:`window`."""
        return np.array(
            [float(getattr(s, field_name)) for s in self.window(size, end_offset)],
            dtype=float,
        )

    def to_records(self) -> List[MetricsDict]:
        return [s.to_dict() for s in self._entries]

    def to_frame(self) -> pd.DataFrame:
        """One row per recorded call, columns in snapshot field order."""
        return pd.DataFrame(self.to_records(), columns=list(SNAPSHOT_FIELDS))
