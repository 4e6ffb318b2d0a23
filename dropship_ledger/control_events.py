"""Event sinks receiving the control loop's alerts and protective actions.

The control loop never prints. Every alert it raises and every mutation it
applies to the ledger is handed to a :class:`ControlEventSink`, so callers
decide where that information goes: the default :class:`LoggingEventSink`
writes it to :mod:`logging`, :class:`RecordingEventSink` keeps it in memory.

Example:
    Capture actions during a run::

        sink = RecordingEventSink()
        loop = FinancialControlLoop(event_sink=sink)
        loop.update_daily_metrics(ledger)
        killed = [a for a in sink.actions if a.kind is ActionKind.CAMPAIGN_KILLED]
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .alerts import Alert, AlertType

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    """Kinds of action the control loop reports."""

    EMERGENCY_MEASURES = "emergency_measures"
    CAMPAIGN_KILLED = "campaign_killed"
    PRODUCT_KILLED = "product_killed"
    BUDGET_REDUCED = "budget_reduced"
    SPENDING_LIMIT_ENFORCED = "spending_limit_enforced"
    PROTECTION_TOGGLED = "protection_toggled"
    THRESHOLDS_UPDATED = "thresholds_updated"


@dataclass(frozen=True)
class ProtectiveAction:
    """Structured record of one action taken by the control loop.

    Attributes:
        kind: What happened.
        message: Human-readable description.
        day: Simulated day, or None for configuration changes made outside
            a daily update.
        target_id: Campaign or product id affected, if any.
        details: Extra figures (old/new budget, ROAS, factor, ...).
    """

    kind: ActionKind
    message: str
    day: Optional[int] = None
    target_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ControlEventSink(Protocol):
    """Receiver of control-loop alerts and actions."""

    def on_alert(self, alert: Alert) -> None:
        ...

    def on_action(self, action: ProtectiveAction) -> None:
        ...


class LoggingEventSink:
    """Forward alerts and actions to a :mod:`logging` logger.

    Bankruptcy alerts are logged at ERROR, other alerts and protective
    mutations at WARNING, configuration changes at INFO.
    """

    _INFO_KINDS = {ActionKind.PROTECTION_TOGGLED, ActionKind.THRESHOLDS_UPDATED}

    def __init__(self, target: Optional[logging.Logger] = None):
        self._logger = target or logger

    def on_alert(self, alert: Alert) -> None:
        level = logging.ERROR if alert.type is AlertType.BANKRUPTCY else logging.WARNING
        self._logger.log(
            level, f"Financial alert [{alert.type.value.upper()}] day {alert.day}: {alert.message}"
        )

    def on_action(self, action: ProtectiveAction) -> None:
        level = logging.INFO if action.kind in self._INFO_KINDS else logging.WARNING
        self._logger.log(level, action.message)


class RecordingEventSink:
    """Keep every alert and action in memory, in arrival order."""

    def __init__(self) -> None:
        self.alerts: List[Alert] = []
        self.actions: List[ProtectiveAction] = []

    def on_alert(self, alert: Alert) -> None:
        self.alerts.append(alert)

    def on_action(self, action: ProtectiveAction) -> None:
        self.actions.append(action)

    def actions_of(self, kind: ActionKind) -> List[ProtectiveAction]:
        return [a for a in self.actions if a.kind is kind]

    def clear(self) -> None:
        self.alerts.clear()
        self.actions.clear()
