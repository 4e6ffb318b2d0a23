"""Protective financial control loop.

The :class:`FinancialControlLoop` is invoked once per simulated day by the
orchestrator, after the day's fees, revenue and spend have been applied to
the :class:`~dropship_ledger.business_ledger.BusinessLedger`. Each call:

1. reads the ledger and records a :class:`DailyMetricsSnapshot`,
2. raises deduplicated alerts into its :class:`AlertLog`,
3. if bankruptcy protection is enabled, mutates the ledger's campaigns and
   products in a fixed order: emergency measures, spending limits, loss
   kills, imminent-bankruptcy budget cut.

Every statistic is computed over *call* history. Calling the loop twice in
one simulated day adds two snapshots and skews burn rate, projections and
trends accordingly.

Example:
    Daily orchestration::

        ledger = BusinessLedger(initial_capital=1000, daily_fee=50)
        loop = FinancialControlLoop(event_sink=RecordingEventSink())

        for _ in range(30):
            ledger.advance_day()
            ledger.update_financials(revenue=revenue_today, spend=spend_today)
            snapshot = loop.update_daily_metrics(ledger)
            if ledger.is_bankrupt():
                break

        report = loop.get_financial_report(ledger)
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .alerts import Alert, AlertLog, AlertType
from .business_ledger import BusinessLedger, FinancialHealth, HealthReport
from .config.constants import (
    EMERGENCY_BUDGET_FACTOR,
    EMERGENCY_KILL_MIN_SPEND,
    EMERGENCY_KILL_ROAS,
    HIGH_BURN_FEE_MULTIPLE,
    IMMINENT_BANKRUPTCY_DAYS,
    IMMINENT_BUDGET_FACTOR,
    MIN_CAMPAIGN_BUDGET,
    NEGATIVE_TREND_MIN_HISTORY,
    NEGATIVE_TREND_WINDOW,
    PROJECTION_DAYS,
    ROAS_ALERT_MIN_SPEND,
    RUNWAY_ALERT_DAYS,
    STATISTICS_WINDOW,
)
from .config.control import ControlLoopConfig
from .control_events import ActionKind, ControlEventSink, LoggingEventSink, ProtectiveAction
from .daily_metrics import DailyMetricsSnapshot, MetricsHistory
from .decimal_utils import ZERO, Numeric, safe_divide, sum_decimals, to_decimal
from .exceptions import ValidationError
from .models import Campaign, CampaignStatus, ProductStatus
from .projections import (
    BankruptcyRisk,
    MetricTrend,
    Projection,
    ProjectionEngine,
    ROASAnalysis,
    TrendAssessment,
    TrendSummary,
)

logger = logging.getLogger(__name__)

BANKRUPTCY_MESSAGE = "Business has declared bankruptcy"
CRITICAL_HEALTH_MESSAGE = "Critical financial situation - immediate action required"
NEGATIVE_TREND_MESSAGE = "Negative cash flow trend detected over last 3 days"


@dataclass
class FinancialReport:
    """Composite view handed to the decision and reporting layers.

    Attributes:
        current_status: Ledger health at report time.
        daily_metrics: Latest recorded snapshot, or None if the loop has
            never run.
        roas_analysis: Tiered ROAS assessment with per-campaign guidance.
        projections: 30-day forward projection.
        alerts: Unresolved alerts.
        trends: Recent-vs-prior window trends.
        recommendations: Every recommendation string, deduplicated in first
            appearance order.
    """

    current_status: HealthReport
    daily_metrics: Optional[DailyMetricsSnapshot]
    roas_analysis: ROASAnalysis
    projections: Projection
    alerts: List[Alert]
    trends: TrendSummary
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_status": self.current_status.to_dict(),
            "daily_metrics": self.daily_metrics.to_dict() if self.daily_metrics else None,
            "roas_analysis": self.roas_analysis.to_dict(),
            "projections": self.projections.to_dict(),
            "alerts": [a.to_dict() for a in self.alerts],
            "trends": self.trends.to_dict(),
            "recommendations": list(self.recommendations),
        }


class FinancialControlLoop:
    """Per-day metrics, alerting and bankruptcy protection for a ledger.

    Args:
        min_roas_threshold: Target ROAS for alerts and performance tiers.
        max_daily_spend_limit: Largest acceptable increase in cumulative
            spend between two consecutive calls.
        emergency_reserve: Cash buffer subtracted from net worth when
            estimating runway, and compared with the available budget.
        event_sink: Receiver of alerts and protective actions. Defaults to
            a :class:`LoggingEventSink`.
        clock: Wall-clock source for alert timestamps and exports.
        ledger_kill_roas_threshold: Kill threshold for
            :meth:`kill_losing_campaigns`.
        default_kill_roas_threshold: Default threshold for
            :meth:`kill_losing_campaigns_from`.
        min_kill_spend: Spend a campaign needs before it can be killed.
        bankruptcy_protection_enabled: Whether protective mutations run.
    """

    def __init__(
        self,
        min_roas_threshold: float = 1.5,
        max_daily_spend_limit: float = 1000.0,
        emergency_reserve: float = 100.0,
        event_sink: Optional[ControlEventSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
        ledger_kill_roas_threshold: float = 0.8,
        default_kill_roas_threshold: float = 1.0,
        min_kill_spend: float = 50.0,
        bankruptcy_protection_enabled: bool = True,
    ):
        self.min_roas_threshold = min_roas_threshold
        self.max_daily_spend_limit = max_daily_spend_limit
        self.emergency_reserve = emergency_reserve
        self.ledger_kill_roas_threshold = ledger_kill_roas_threshold
        self.default_kill_roas_threshold = default_kill_roas_threshold
        self.min_kill_spend = min_kill_spend
        self.bankruptcy_protection_enabled = bankruptcy_protection_enabled

        self.event_sink: ControlEventSink = event_sink or LoggingEventSink()
        self._clock = clock or datetime.now
        self._history = MetricsHistory()
        self._alerts = AlertLog(clock=self._clock)
        self._projections = ProjectionEngine(self._history)

    @classmethod
    def from_config(
        cls,
        config: ControlLoopConfig,
        event_sink: Optional[ControlEventSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "FinancialControlLoop":
        """Build a loop from validated configuration."""
        return cls(
            min_roas_threshold=config.min_roas_threshold,
            max_daily_spend_limit=config.max_daily_spend_limit,
            emergency_reserve=config.emergency_reserve,
            event_sink=event_sink,
            clock=clock,
            ledger_kill_roas_threshold=config.ledger_kill_roas_threshold,
            default_kill_roas_threshold=config.default_kill_roas_threshold,
            min_kill_spend=config.min_kill_spend,
            bankruptcy_protection_enabled=config.bankruptcy_protection_enabled,
        )

    # ------------------------------------------------------------------ #
    #  Daily update
    # ------------------------------------------------------------------ #

    def update_daily_metrics(self, ledger: BusinessLedger) -> DailyMetricsSnapshot:
        """Record a snapshot, raise alerts and apply protective actions.

        Args:
            ledger: Ledger to read and, when protection is enabled, correct.

        Returns:
            The snapshot appended to the history by this call.
        """
        raw = ledger.get_daily_metrics()
        revenue: Decimal = raw["revenue"]
        spend: Decimal = raw["spend"]
        total_profit = revenue - spend

        # Burn rate and runway come from the history as it stood before this call.
        burn_rate = self._burn_rate(ledger)
        snapshot = DailyMetricsSnapshot(
            day=raw["day"],
            net_worth=raw["net_worth"],
            revenue=revenue,
            spend=spend,
            roas=raw["roas"],
            profit_margin=safe_divide(total_profit, revenue) * 100,
            burn_rate=burn_rate,
            days_until_bankruptcy=self._runway(ledger, burn_rate),
            financial_health=ledger.get_financial_health().status.value,
            available_budget=ledger.get_available_budget(),
            total_profit=total_profit,
            active_products=raw["active_products"],
            active_campaigns=raw["active_campaigns"],
            errors=raw["errors"],
        )
        self._history.append(snapshot)
        logger.debug(
            f"Day {snapshot.day} metrics: net worth ${snapshot.net_worth:,.2f}, "
            f"ROAS {snapshot.roas:.2f}, burn ${snapshot.burn_rate:,.2f}/day, "
            f"runway {snapshot.days_until_bankruptcy}"
        )

        self._check_alerts(ledger, snapshot)
        if self.bankruptcy_protection_enabled:
            self._enforce_protection(ledger)
        return snapshot

    def _burn_rate(self, ledger: BusinessLedger) -> Decimal:
        """Mean per-call increase of cumulative spend over the trailing window."""
        if len(self._history) < 2:
            return ledger.daily_fee
        recent = self._history.window(STATISTICS_WINDOW)
        # Consecutive deltas telescope to last - first.
        total_increase = recent[-1].spend - recent[0].spend
        return total_increase / max(1, len(recent) - 1)

    def _runway(self, ledger: BusinessLedger, burn_rate: Decimal) -> Optional[int]:
        if ledger.net_worth <= ZERO:
            return 0
        if burn_rate <= ZERO:
            return None
        return math.floor((ledger.net_worth - to_decimal(self.emergency_reserve)) / burn_rate)

    def _days_until_bankruptcy(self, ledger: BusinessLedger) -> Optional[int]:
        return self._runway(ledger, self._burn_rate(ledger))

    def _daily_spend(self, ledger: BusinessLedger) -> Decimal:
        if len(self._history) < 2:
            return ledger.daily_fee
        return self._history[-1].spend - self._history[-2].spend

    def _has_negative_trend(self) -> bool:
        """True when at least two per-call profit deltas in the last 3 entries are negative."""
        if len(self._history) < NEGATIVE_TREND_MIN_HISTORY:
            return False
        recent = self._history.window(NEGATIVE_TREND_WINDOW)
        negative = 0
        for previous, current in zip(recent, recent[1:]):
            profit = (current.revenue - previous.revenue) - (current.spend - previous.spend)
            if profit < ZERO:
                negative += 1
        return negative >= 2

    # ------------------------------------------------------------------ #
    #  Alerts
    # ------------------------------------------------------------------ #

    def _check_alerts(self, ledger: BusinessLedger, snapshot: DailyMetricsSnapshot) -> None:
        day = ledger.current_day

        if ledger.is_bankrupt():
            self._raise_alert(AlertType.BANKRUPTCY, BANKRUPTCY_MESSAGE, day)
            return

        if snapshot.financial_health == FinancialHealth.CRITICAL.value:
            self._raise_alert(AlertType.CRITICAL, CRITICAL_HEALTH_MESSAGE, day)

        if snapshot.roas < to_decimal(self.min_roas_threshold) and snapshot.spend > to_decimal(
            ROAS_ALERT_MIN_SPEND
        ):
            self._raise_alert(
                AlertType.WARNING,
                f"ROAS below threshold: {snapshot.roas:.2f} < {self.min_roas_threshold}",
                day,
            )

        runway = snapshot.days_until_bankruptcy
        if runway is not None and runway < RUNWAY_ALERT_DAYS:
            self._raise_alert(
                AlertType.CRITICAL,
                f"Only {runway} days until bankruptcy at current burn rate",
                day,
            )

        daily_spend = self._daily_spend(ledger)
        if daily_spend > to_decimal(self.max_daily_spend_limit):
            self._raise_alert(
                AlertType.WARNING,
                f"Daily spend limit exceeded: ${daily_spend:,.2f} > "
                f"${self.max_daily_spend_limit:,.2f}",
                day,
            )

        if self._has_negative_trend():
            self._raise_alert(AlertType.WARNING, NEGATIVE_TREND_MESSAGE, day)

        if snapshot.available_budget < to_decimal(self.emergency_reserve):
            self._raise_alert(
                AlertType.CRITICAL,
                f"Available budget below emergency reserve: "
                f"${snapshot.available_budget:,.2f} < ${self.emergency_reserve:,.2f}",
                day,
            )

    def _raise_alert(self, alert_type: AlertType, message: str, day: int) -> None:
        alert = self._alerts.add(alert_type, message, day)
        if alert is not None:
            self.event_sink.on_alert(alert)

    # ------------------------------------------------------------------ #
    #  Protection
    # ------------------------------------------------------------------ #

    def _emit(self, kind: ActionKind, message: str, day: Optional[int] = None, **kwargs) -> None:
        self.event_sink.on_action(ProtectiveAction(kind=kind, message=message, day=day, **kwargs))

    def _enforce_protection(self, ledger: BusinessLedger) -> None:
        if ledger.classify_health() is FinancialHealth.CRITICAL:
            self._apply_emergency_measures(ledger)

        self._enforce_spending_limits(ledger)
        self.kill_losing_campaigns(ledger)

        runway = self._days_until_bankruptcy(ledger)
        if runway is not None and runway < IMMINENT_BANKRUPTCY_DAYS:
            self._reduce_budgets(ledger, IMMINENT_BUDGET_FACTOR)

    def _apply_emergency_measures(self, ledger: BusinessLedger) -> None:
        day = ledger.current_day
        self._emit(
            ActionKind.EMERGENCY_MEASURES,
            f"Day {day}: implementing emergency financial measures",
            day,
        )

        kill_roas = to_decimal(EMERGENCY_KILL_ROAS)
        kill_spend = to_decimal(EMERGENCY_KILL_MIN_SPEND)
        for campaign in ledger.active_campaigns:
            if campaign.is_active() and campaign.roas < kill_roas and campaign.spend > kill_spend:
                campaign.update_status(CampaignStatus.KILLED)
                self._emit(
                    ActionKind.CAMPAIGN_KILLED,
                    f"Emergency killed campaign {campaign.id} - ROAS: {campaign.roas:.2f}",
                    day,
                    target_id=campaign.id,
                    details={"roas": float(campaign.roas), "spend": float(campaign.spend)},
                )

        for product in ledger.active_products:
            if product.status is ProductStatus.RESEARCHING:
                product.update_status(ProductStatus.KILLED)
                self._emit(
                    ActionKind.PRODUCT_KILLED,
                    f"Emergency stopped product research: {product.name}",
                    day,
                    target_id=product.id,
                )

        self._reduce_budgets(ledger, EMERGENCY_BUDGET_FACTOR)

    def _enforce_spending_limits(self, ledger: BusinessLedger) -> None:
        available = ledger.get_available_budget()
        total_budgets = sum_decimals(*(c.budget for c in ledger.active_campaigns if c.is_active()))
        if total_budgets <= available:
            return

        factor = available / total_budgets
        self._emit(
            ActionKind.SPENDING_LIMIT_ENFORCED,
            f"Reducing campaign budgets by {(1 - factor) * 100:.1f}% to stay within "
            f"available budget ${available:,.2f}",
            ledger.current_day,
            details={
                "available_budget": float(available),
                "total_budgets": float(total_budgets),
                "factor": float(factor),
            },
        )
        self._reduce_budgets(ledger, factor)

    def _reduce_budgets(self, ledger: BusinessLedger, factor: Numeric) -> None:
        """Scale every active campaign's budget by ``factor``, floored at the minimum budget."""
        day = ledger.current_day
        for campaign in ledger.active_campaigns:
            if not campaign.is_active():
                continue
            old_budget = campaign.reduce_budget(factor, floor=MIN_CAMPAIGN_BUDGET)
            if campaign.budget != old_budget:
                self._emit(
                    ActionKind.BUDGET_REDUCED,
                    f"Reduced campaign {campaign.id} budget from ${old_budget:,.2f} "
                    f"to ${campaign.budget:,.2f}",
                    day,
                    target_id=campaign.id,
                    details={
                        "old_budget": float(old_budget),
                        "new_budget": float(campaign.budget),
                        "factor": float(factor),
                    },
                )

    def kill_losing_campaigns(self, ledger: BusinessLedger) -> int:
        """Kill the ledger's active campaigns below the ledger kill threshold.

        Uses ``ledger_kill_roas_threshold`` (0.8 by default). Campaigns that
        have spent less than ``min_kill_spend`` are never killed.

        Returns:
            Number of campaigns killed.
        """
        return self._kill_campaigns(
            ledger.active_campaigns, self.ledger_kill_roas_threshold, ledger.current_day
        )

    def kill_losing_campaigns_from(
        self, campaigns: Iterable[Campaign], min_roas: Optional[float] = None
    ) -> int:
        """Kill active campaigns from an arbitrary list below ``min_roas``.

        Args:
            campaigns: Campaigns to sweep.
            min_roas: Kill threshold; defaults to ``default_kill_roas_threshold``
                (1.0 by default).

        Returns:
            Number of campaigns killed.
        """
        threshold = self.default_kill_roas_threshold if min_roas is None else min_roas
        latest = self._history.latest
        return self._kill_campaigns(campaigns, threshold, latest.day if latest else None)

    def _kill_campaigns(
        self, campaigns: Iterable[Campaign], threshold: float, day: Optional[int]
    ) -> int:
        to_kill = [c for c in campaigns if c.should_be_killed(threshold, self.min_kill_spend)]
        for campaign in to_kill:
            campaign.update_status(CampaignStatus.KILLED)
            self._emit(
                ActionKind.CAMPAIGN_KILLED,
                f"Auto-killed losing campaign {campaign.id} - ROAS: {campaign.roas:.2f}, "
                f"Spend: ${campaign.spend:,.2f}",
                day,
                target_id=campaign.id,
                details={
                    "roas": float(campaign.roas),
                    "spend": float(campaign.spend),
                    "threshold": threshold,
                },
            )
        return len(to_kill)

    # ------------------------------------------------------------------ #
    #  Analysis
    # ------------------------------------------------------------------ #

    def analyze_roas_performance(self, ledger: BusinessLedger) -> ROASAnalysis:
        return self._projections.analyze_roas_performance(ledger, self.min_roas_threshold)

    def calculate_projections(
        self, ledger: BusinessLedger, days: int = PROJECTION_DAYS
    ) -> Projection:
        return self._projections.calculate_projections(ledger.net_worth, days)

    def calculate_trends(self) -> TrendSummary:
        return self._projections.calculate_trends()

    def metric_trend(self, field_name: str, window: int = STATISTICS_WINDOW) -> MetricTrend:
        return self._projections.metric_trend(field_name, window)

    def get_financial_report(
        self, ledger: BusinessLedger, refresh: bool = False
    ) -> FinancialReport:
        """Compose health, metrics, projections, alerts, trends and advice.

        Args:
            ledger: Ledger to report on.
            refresh: Record a fresh snapshot (running the full daily update,
                protective actions included) before reporting. By default
                the latest recorded snapshot is reused.

        Returns:
            The composed report.
        """
        current_status = ledger.get_financial_health()
        daily_metrics = self.update_daily_metrics(ledger) if refresh else self._history.latest
        roas_analysis = self.analyze_roas_performance(ledger)
        projections = self.calculate_projections(ledger)
        trends = self.calculate_trends()

        recommendations = roas_analysis.recommendations + self._financial_recommendations(
            ledger, projections, trends
        )
        return FinancialReport(
            current_status=current_status,
            daily_metrics=daily_metrics,
            roas_analysis=roas_analysis,
            projections=projections,
            alerts=self.get_unresolved_alerts(),
            trends=trends,
            recommendations=list(dict.fromkeys(recommendations)),
        )

    def _financial_recommendations(
        self, ledger: BusinessLedger, projections: Projection, trends: TrendSummary
    ) -> List[str]:
        recommendations = []
        if projections.bankruptcy_risk in (BankruptcyRisk.CRITICAL, BankruptcyRisk.HIGH):
            recommendations.extend(
                [
                    "URGENT: Implement emergency cost reduction measures",
                    "Kill all unprofitable campaigns immediately",
                    "Pause all new product launches",
                ]
            )
        if ledger.get_available_budget() < to_decimal(self.emergency_reserve):
            recommendations.append("Increase emergency reserve or reduce spending")
        if self._burn_rate(ledger) > ledger.daily_fee * HIGH_BURN_FEE_MULTIPLE:
            recommendations.append("Daily burn rate is too high - reduce campaign budgets")
        if trends.roas_trend is TrendAssessment.DECLINING:
            recommendations.append("ROAS is declining - review and optimize campaigns")
        if trends.profitability_trend is TrendAssessment.DECLINING:
            recommendations.append("Profitability declining - focus on margin improvement")
        return recommendations

    # ------------------------------------------------------------------ #
    #  Alert lifecycle
    # ------------------------------------------------------------------ #

    @property
    def alerts(self) -> List[Alert]:
        """Every retained alert, resolved or not, in insertion order."""
        return self._alerts.all()

    def get_unresolved_alerts(self) -> List[Alert]:
        return self._alerts.unresolved()

    def resolve_alert(self, index: int) -> bool:
        """Resolve the alert with insertion index ``index``; False if unknown."""
        return self._alerts.resolve(index)

    def clear_old_alerts(self, days: float = 7) -> int:
        """Drop resolved alerts older than ``days``; returns how many were dropped."""
        return self._alerts.clear_old(days)

    # ------------------------------------------------------------------ #
    #  History and configuration
    # ------------------------------------------------------------------ #

    @property
    def history(self) -> Tuple[DailyMetricsSnapshot, ...]:
        return tuple(self._history)

    def history_frame(self) -> pd.DataFrame:
        """Metrics history as a DataFrame, one row per recorded call."""
        return self._history.to_frame()

    def set_bankruptcy_protection(self, enabled: bool) -> None:
        self.bankruptcy_protection_enabled = enabled
        self._emit(
            ActionKind.PROTECTION_TOGGLED,
            f"Bankruptcy protection {'enabled' if enabled else 'disabled'}",
            details={"enabled": enabled},
        )

    def update_thresholds(
        self,
        min_roas: Optional[float] = None,
        max_daily_spend: Optional[float] = None,
        emergency_reserve: Optional[float] = None,
    ) -> None:
        """Change alerting thresholds; arguments left as None are kept.

        Raises:
            ValidationError: If a ROAS or spend limit is not positive, or the
                reserve is negative.
        """
        if min_roas is not None and min_roas <= 0:
            raise ValidationError("Minimum ROAS threshold must be positive")
        if max_daily_spend is not None and max_daily_spend <= 0:
            raise ValidationError("Daily spend limit must be positive")
        if emergency_reserve is not None and emergency_reserve < 0:
            raise ValidationError("Emergency reserve cannot be negative")

        if min_roas is not None:
            self.min_roas_threshold = min_roas
        if max_daily_spend is not None:
            self.max_daily_spend_limit = max_daily_spend
        if emergency_reserve is not None:
            self.emergency_reserve = emergency_reserve

        self._emit(
            ActionKind.THRESHOLDS_UPDATED,
            f"Financial thresholds updated: min ROAS {self.min_roas_threshold}, "
            f"max daily spend ${self.max_daily_spend_limit:,.2f}, "
            f"emergency reserve ${self.emergency_reserve:,.2f}",
            details={
                "min_roas_threshold": self.min_roas_threshold,
                "max_daily_spend_limit": self.max_daily_spend_limit,
                "emergency_reserve": self.emergency_reserve,
            },
        )

    def get_configuration(self) -> Dict[str, Any]:
        return {
            "min_roas_threshold": self.min_roas_threshold,
            "max_daily_spend_limit": self.max_daily_spend_limit,
            "emergency_reserve": self.emergency_reserve,
            "bankruptcy_protection_enabled": self.bankruptcy_protection_enabled,
            "ledger_kill_roas_threshold": self.ledger_kill_roas_threshold,
            "default_kill_roas_threshold": self.default_kill_roas_threshold,
            "min_kill_spend": self.min_kill_spend,
        }

    def export_financial_data(self) -> Dict[str, Any]:
        """JSON-serializable dump of history, alerts and configuration."""
        return {
            "daily_metrics": self._history.to_records(),
            "alerts": [a.to_dict() for a in self._alerts],
            "configuration": self.get_configuration(),
            "exported_at": self._clock().isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"FinancialControlLoop(entries={len(self._history)}, "
            f"unresolved_alerts={len(self._alerts.unresolved())}, "
            f"protection={'on' if self.bankruptcy_protection_enabled else 'off'})"
        )
