"""Typed, deduplicated financial alerts.

An :class:`AlertLog` is an append-and-resolve list. Deduplication is by
exact message text against *unresolved* alerts only: two alerts whose
messages differ in a single digit are distinct, and resolving an alert lets
an identical message be raised again later.

Each alert keeps the position it was appended at as its ``index`` for its
whole life, so :meth:`AlertLog.resolve` keeps addressing the same alert even
after :meth:`AlertLog.clear_old` has dropped earlier entries.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from .decimal_utils import MetricsDict


class AlertType(Enum):
    """Severity of a financial alert."""

    WARNING = "warning"
    CRITICAL = "critical"
    BANKRUPTCY = "bankruptcy"


@dataclass
class Alert:
    """A single financial alert.

    Attributes:
        type: Severity.
        message: Human-readable text; also the deduplication key.
        timestamp: Wall-clock time the alert was raised.
        day: Simulated day the alert was raised on.
        index: Insertion position in the owning log, stable for its lifetime.
        resolved: Whether the alert has been acknowledged.
    """

    type: AlertType
    message: str
    timestamp: datetime
    day: int
    index: int
    resolved: bool = False

    def to_dict(self) -> MetricsDict:
        return {
            "type": self.type.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "day": self.day,
            "index": self.index,
            "resolved": self.resolved,
        }


class AlertLog:
    """Insertion-ordered alerts with literal-message deduplication.

    Args:
        clock: Returns the current wall-clock time; defaults to
            :meth:`datetime.now`.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or datetime.now
        self._alerts: List[Alert] = []
        self._next_index = 0

    def __len__(self) -> int:
        return len(self._alerts)

    def __iter__(self):
        return iter(list(self._alerts))

    def add(self, alert_type: AlertType, message: str, day: int) -> Optional[Alert]:
        """Append an alert unless an unresolved one has the same message.

        Returns:
            The new alert, or None when it was suppressed as a duplicate.
        """
        if any(a.message == message and not a.resolved for a in self._alerts):
            return None

        alert = Alert(
            type=alert_type,
            message=message,
            timestamp=self._clock(),
            day=day,
            index=self._next_index,
        )
        self._next_index += 1
        self._alerts.append(alert)
        return alert

    def resolve(self, index: int) -> bool:
        """Mark the alert appended at ``index`` as resolved.

        Returns:
            False if no retained alert carries that index.
        """
        for alert in self._alerts:
            if alert.index == index:
                alert.resolved = True
                return True
        return False

    def unresolved(self) -> List[Alert]:
        return [a for a in self._alerts if not a.resolved]

    def all(self) -> List[Alert]:
        return list(self._alerts)

    def clear_old(self, days: float = 7) -> int:
        """Drop resolved alerts raised at or before ``days`` ago.

        Unresolved alerts are kept regardless of age.

        Returns:
            Number of alerts removed.
        """
        cutoff = self._clock() - timedelta(days=days)
        before = len(self._alerts)
        self._alerts = [a for a in self._alerts if not a.resolved or a.timestamp > cutoff]
        return before - len(self._alerts)
