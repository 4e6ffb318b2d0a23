"""Forward projections, ROAS analysis, and trend detection.

The :class:`ProjectionEngine` reads the control loop's call history. All
windows are counted in recorded calls, not calendar days: if the
orchestrator records twice in one day, the seven-entry window covers three
and a half days. Statistics here are float-valued (numpy), unlike the
Decimal accounting in the ledger.

Key Concepts:
    - Projections average the *stored cumulative* revenue and spend of the
      last seven entries and multiply by the horizon.
    - Trends compare the mean of the latest seven entries with the mean of
      the seven before them (positions ``[-14, -7)``).
    - ROAS tiers: excellent >= 3.0, good >= 2.0, acceptable >= target,
      poor >= 1.0, critical below.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import List, Sequence
import warnings

import numpy as np

from ._warnings import DataQualityWarning
from .business_ledger import BusinessLedger
from .config.constants import (
    BREAKEVEN_ROAS,
    EXCELLENT_ROAS,
    GOOD_ROAS,
    MARGIN_TREND_BAND,
    PROJECTION_DAYS,
    RELATIVE_TREND_BAND,
    RISK_CRITICAL_BELOW,
    RISK_HIGH_BELOW,
    RISK_LOW_BELOW,
    RISK_MEDIUM_BELOW,
    STATISTICS_WINDOW,
)
from .daily_metrics import MetricsHistory
from .decimal_utils import MetricsDict, Numeric
from .models import Campaign

logger = logging.getLogger(__name__)

NO_HISTORY_ASSUMPTION = "No historical data available"

# Fields compared with absolute (percentage point) banding instead of relative.
_ABSOLUTE_BAND_FIELDS = {"profit_margin": MARGIN_TREND_BAND}


class BankruptcyRisk(Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ROASPerformance(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"
    CRITICAL = "critical"


class TrendDirection(Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class TrendAssessment(Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


_ASSESSMENT_BY_DIRECTION = {
    TrendDirection.UP: TrendAssessment.IMPROVING,
    TrendDirection.STABLE: TrendAssessment.STABLE,
    TrendDirection.DOWN: TrendAssessment.DECLINING,
}

ROAS_RECOMMENDATIONS = {
    ROASPerformance.CRITICAL: [
        "URGENT: Kill all campaigns with ROAS < 1.0 immediately",
        "Pause all new spending until ROAS improves",
        "Review and optimize existing campaigns",
    ],
    ROASPerformance.POOR: [
        "Kill campaigns with ROAS < 0.8",
        "Optimize underperforming campaigns",
        "Test new angles for existing products",
    ],
    ROASPerformance.ACCEPTABLE: [
        "Scale campaigns with ROAS > 2.0",
        "Optimize campaigns with ROAS 1.5-2.0",
        "Consider testing new products",
    ],
    ROASPerformance.GOOD: [
        "Aggressively scale top performers",
        "Launch new product tests",
        "Expand to new platforms",
    ],
    ROASPerformance.EXCELLENT: [
        "Scale all profitable campaigns",
        "Launch multiple new products",
        "Consider increasing daily budgets",
    ],
}

CAMPAIGN_RECOMMENDATIONS = {
    ROASPerformance.EXCELLENT: "Scale aggressively - excellent performance",
    ROASPerformance.GOOD: "Scale moderately - good performance",
    ROASPerformance.ACCEPTABLE: "Optimize before scaling",
    ROASPerformance.POOR: "Optimize or consider killing",
    ROASPerformance.CRITICAL: "Kill immediately - losing money",
}


@dataclass(frozen=True)
class Projection:
    """Forward-looking estimate over ``days``."""

    projected_net_worth: float
    projected_revenue: float
    projected_spend: float
    projected_roas: float
    bankruptcy_risk: BankruptcyRisk
    assumptions: List[str]
    days: int = PROJECTION_DAYS

    def to_dict(self) -> MetricsDict:
        return {
            "projected_net_worth": self.projected_net_worth,
            "projected_revenue": self.projected_revenue,
            "projected_spend": self.projected_spend,
            "projected_roas": self.projected_roas,
            "bankruptcy_risk": self.bankruptcy_risk.value,
            "assumptions": list(self.assumptions),
            "days": self.days,
        }


@dataclass(frozen=True)
class CampaignRecommendation:
    campaign_id: str
    platform: str
    roas: float
    recommendation: str

    def to_dict(self) -> MetricsDict:
        return {
            "campaign_id": self.campaign_id,
            "platform": self.platform,
            "roas": self.roas,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class ROASAnalysis:
    current_roas: float
    target_roas: float
    performance: ROASPerformance
    recommendations: List[str]
    campaign_analysis: List[CampaignRecommendation] = field(default_factory=list)

    def to_dict(self) -> MetricsDict:
        return {
            "current_roas": self.current_roas,
            "target_roas": self.target_roas,
            "performance": self.performance.value,
            "recommendations": list(self.recommendations),
            "campaign_analysis": [c.to_dict() for c in self.campaign_analysis],
        }


@dataclass(frozen=True)
class MetricTrend:
    """Comparison of one metric between two adjacent windows.

    Attributes:
        current: Mean over the latest window.
        previous: Mean over the window before it.
        change: Percent change for relative fields, point change for
            profit margin.
        direction: Banded direction of the change.
    """

    current: float
    previous: float
    change: float
    direction: TrendDirection

    def to_dict(self) -> MetricsDict:
        return {
            "current": self.current,
            "previous": self.previous,
            "change": self.change,
            "direction": self.direction.value,
        }


@dataclass(frozen=True)
class TrendSummary:
    revenue_growth: float = 0.0
    spend_growth: float = 0.0
    revenue_trend: TrendAssessment = TrendAssessment.STABLE
    spend_trend: TrendAssessment = TrendAssessment.STABLE
    roas_trend: TrendAssessment = TrendAssessment.STABLE
    profitability_trend: TrendAssessment = TrendAssessment.STABLE

    def to_dict(self) -> MetricsDict:
        return {
            "revenue_growth": self.revenue_growth,
            "spend_growth": self.spend_growth,
            "revenue_trend": self.revenue_trend.value,
            "spend_trend": self.spend_trend.value,
            "roas_trend": self.roas_trend.value,
            "profitability_trend": self.profitability_trend.value,
        }


def classify_roas(roas: float, min_roas_threshold: float) -> ROASPerformance:
    """Place a ROAS value into one of the five performance tiers."""
    if roas >= EXCELLENT_ROAS:
        return ROASPerformance.EXCELLENT
    if roas >= GOOD_ROAS:
        return ROASPerformance.GOOD
    if roas >= min_roas_threshold:
        return ROASPerformance.ACCEPTABLE
    if roas >= BREAKEVEN_ROAS:
        return ROASPerformance.POOR
    return ROASPerformance.CRITICAL


def classify_bankruptcy_risk(projected_net_worth: float) -> BankruptcyRisk:
    if projected_net_worth < RISK_CRITICAL_BELOW:
        return BankruptcyRisk.CRITICAL
    if projected_net_worth < RISK_HIGH_BELOW:
        return BankruptcyRisk.HIGH
    if projected_net_worth < RISK_MEDIUM_BELOW:
        return BankruptcyRisk.MEDIUM
    if projected_net_worth < RISK_LOW_BELOW:
        return BankruptcyRisk.LOW
    return BankruptcyRisk.NONE


def _mean(values: np.ndarray) -> float:
    return float(np.mean(values)) if values.size else 0.0


class ProjectionEngine:
    """Statistics over a control loop's metrics history.

    Args:
        history: The call history to analyse. The engine never mutates it.
        window: Entries per statistical window.
    """

    def __init__(self, history: MetricsHistory, window: int = STATISTICS_WINDOW):
        self.history = history
        self.window = window

    def calculate_projections(self, net_worth: Numeric, days: int = PROJECTION_DAYS) -> Projection:
        """Extrapolate the recent history ``days`` forward.

        Args:
            net_worth: Current net worth to project from.
            days: Projection horizon.

        Returns:
            Projection; with no history, net worth is returned unchanged and
            the risk is ``none``.
        """
        current_net_worth = float(net_worth)
        if len(self.history) == 0:
            return Projection(
                projected_net_worth=current_net_worth,
                projected_revenue=0.0,
                projected_spend=0.0,
                projected_roas=0.0,
                bankruptcy_risk=BankruptcyRisk.NONE,
                assumptions=[NO_HISTORY_ASSUMPTION],
                days=days,
            )

        revenue = self.history.values("revenue", self.window)
        spend = self.history.values("spend", self.window)
        avg_revenue = _mean(revenue)
        avg_spend = _mean(spend)
        projected_roas = avg_revenue / avg_spend if avg_spend > 0 else 0.0

        projected_revenue = avg_revenue * days
        projected_spend = avg_spend * days
        projected_net_worth = current_net_worth + (projected_revenue - projected_spend)
        logger.debug(
            f"{days}-day projection from {revenue.size} entries: "
            f"net worth ${current_net_worth:,.2f} -> ${projected_net_worth:,.2f}"
        )

        return Projection(
            projected_net_worth=projected_net_worth,
            projected_revenue=projected_revenue,
            projected_spend=projected_spend,
            projected_roas=projected_roas,
            bankruptcy_risk=classify_bankruptcy_risk(projected_net_worth),
            assumptions=[
                f"Based on last {revenue.size} days of data",
                f"Average daily revenue: ${avg_revenue:,.2f}",
                f"Average daily spend: ${avg_spend:,.2f}",
                "Assumes current performance trends continue",
            ],
            days=days,
        )

    def analyze_roas_performance(
        self, ledger: BusinessLedger, min_roas_threshold: float
    ) -> ROASAnalysis:
        """Classify lifetime ROAS and give per-campaign guidance."""
        current_roas = float(ledger.current_roas)
        performance = classify_roas(current_roas, min_roas_threshold)
        return ROASAnalysis(
            current_roas=current_roas,
            target_roas=min_roas_threshold,
            performance=performance,
            recommendations=list(ROAS_RECOMMENDATIONS[performance]),
            campaign_analysis=self.campaign_recommendations(
                ledger.active_campaigns, min_roas_threshold
            ),
        )

    @staticmethod
    def campaign_recommendations(
        campaigns: Sequence[Campaign], min_roas_threshold: float
    ) -> List[CampaignRecommendation]:
        results = []
        for campaign in campaigns:
            roas = float(campaign.roas)
            tier = classify_roas(roas, min_roas_threshold)
            results.append(
                CampaignRecommendation(
                    campaign_id=campaign.id,
                    platform=campaign.platform.value,
                    roas=roas,
                    recommendation=CAMPAIGN_RECOMMENDATIONS[tier],
                )
            )
        return results

    def metric_trend(self, field_name: str, window: int = STATISTICS_WINDOW) -> MetricTrend:
        """Compare a snapshot field's latest window with the one before it.

        Relative fields move when the mean changes by more than 10%; profit
        margin moves when it changes by more than 5 points. Relative change is
        measured against the magnitude of the earlier mean, so a negative net
        worth sinking further reads as DOWN. An empty window counts as a mean
        of 0.
        """
        if len(self.history) < window:
            warnings.warn(
                f"Trend for '{field_name}' requested over {len(self.history)} entries; "
                f"a full window needs {window}",
                DataQualityWarning,
                stacklevel=2,
            )
        current = _mean(self.history.values(field_name, window))
        previous = _mean(self.history.values(field_name, window, end_offset=window))

        if field_name in _ABSOLUTE_BAND_FIELDS:
            band = _ABSOLUTE_BAND_FIELDS[field_name]
            change = current - previous
            if current > previous + band:
                direction = TrendDirection.UP
            elif current < previous - band:
                direction = TrendDirection.DOWN
            else:
                direction = TrendDirection.STABLE
        else:
            # Relative band is taken against |previous|.
            delta = current - previous
            scale = abs(previous)
            change = delta / scale * 100 if scale > 0 else 0.0
            if delta > scale * RELATIVE_TREND_BAND:
                direction = TrendDirection.UP
            elif delta < -scale * RELATIVE_TREND_BAND:
                direction = TrendDirection.DOWN
            else:
                direction = TrendDirection.STABLE

        return MetricTrend(current=current, previous=previous, change=change, direction=direction)

    def calculate_trends(self) -> TrendSummary:
        """Revenue, spend, ROAS, and margin trends.

        Needs at least one full window of history; shorter histories report
        zero growth and stable trends.
        """
        if len(self.history) < self.window:
            return TrendSummary()

        revenue = self.metric_trend("revenue", self.window)
        spend = self.metric_trend("spend", self.window)
        roas = self.metric_trend("roas", self.window)
        margin = self.metric_trend("profit_margin", self.window)

        return TrendSummary(
            revenue_growth=revenue.change,
            spend_growth=spend.change,
            revenue_trend=_ASSESSMENT_BY_DIRECTION[revenue.direction],
            spend_trend=_ASSESSMENT_BY_DIRECTION[spend.direction],
            roas_trend=_ASSESSMENT_BY_DIRECTION[roas.direction],
            profitability_trend=_ASSESSMENT_BY_DIRECTION[margin.direction],
        )
