"""Canonical financial state of the simulated business.

The :class:`BusinessLedger` owns the cash position, the lifetime revenue and
spend accumulators, the consecutive-insolvency counter, and the products and
campaigns the business runs. It is mutated once per simulated day by the
orchestrator (fees, revenue, spend) and by the protective control loop
(campaign kills, budget cuts).

Key invariants:
    - ``total_revenue`` and ``total_spend`` never decrease.
    - ``net_worth == initial_capital - daily_fee * days + revenue - spend``
      exactly (all money is Decimal).
    - ``bankruptcy_days`` is 0 whenever ``net_worth >= 0`` and grows by
      exactly one per :meth:`BusinessLedger.advance_day` spent below zero.
    - ``get_available_budget()`` is never negative.

Example:
    One simulated day::

        ledger = BusinessLedger(initial_capital=1000, daily_fee=50, bankruptcy_threshold=10)
        ledger.advance_day()
        ledger.update_financials(revenue=300, spend=100)
        print(ledger.net_worth)          # Decimal('1150')
        print(ledger.get_financial_health().status)  # FinancialHealth.GOOD
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
import logging
import math
from typing import Any, Dict, List, Optional

import pydantic
from pydantic import BaseModel, Field

from .config.constants import RESERVE_DAYS
from .config.ledger import HealthConfig, LedgerConfig
from .decimal_utils import (
    ZERO,
    MetricsDict,
    Numeric,
    safe_divide,
    to_decimal,
    to_finite_decimal,
    to_float,
)
from .exceptions import DuplicateError, ValidationError
from .models import Campaign, Product

logger = logging.getLogger(__name__)


class FinancialHealth(Enum):
    """Five-tier financial health classification, best first."""

    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    CRITICAL = "critical"
    BANKRUPT = "bankrupt"

    @property
    def rank(self) -> int:
        """Ordering key: higher is healthier."""
        return _HEALTH_RANK[self]


_HEALTH_RANK = {
    FinancialHealth.EXCELLENT: 4,
    FinancialHealth.GOOD: 3,
    FinancialHealth.ACCEPTABLE: 2,
    FinancialHealth.CRITICAL: 1,
    FinancialHealth.BANKRUPT: 0,
}

_HEALTH_RECOMMENDATIONS = {
    FinancialHealth.EXCELLENT: "Scale aggressively",
    FinancialHealth.GOOD: "Continue current strategy",
    FinancialHealth.ACCEPTABLE: "Optimize campaigns and reduce risk",
    FinancialHealth.CRITICAL: "Enter conservative mode immediately",
    FinancialHealth.BANKRUPT: "Business is bankrupt - simulation should end",
}


@dataclass(frozen=True)
class HealthReport:
    """Result of :meth:`BusinessLedger.get_financial_health`.

    Attributes:
        status: Health tier.
        days_until_bankruptcy: Rough runway: 0 when bankrupt, whole days of
            fees covered by cash when net worth is positive, otherwise the
            negative days left before the threshold is hit.
        recommendation: One-line guidance for the decision layer.
    """

    status: FinancialHealth
    days_until_bankruptcy: int
    recommendation: str

    def to_dict(self) -> MetricsDict:
        return {
            "status": self.status.value,
            "days_until_bankruptcy": self.days_until_bankruptcy,
            "recommendation": self.recommendation,
        }


class LedgerSnapshot(BaseModel):
    """Schema of a ledger snapshot as produced by :meth:`BusinessLedger.to_dict`.

    Accumulators and counters default to zero so hand-written snapshots can
    omit them; money fields must be finite.
    """

    current_day: int = Field(default=0, ge=0)
    net_worth: float = Field(allow_inf_nan=False)
    daily_fee: float = Field(gt=0, allow_inf_nan=False)
    total_revenue: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    total_spend: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    current_roas: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    bankruptcy_days: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    active_products: List[Dict[str, Any]] = Field(default_factory=list)
    active_campaigns: List[Dict[str, Any]] = Field(default_factory=list)


class BusinessLedger:
    """Cash position, accumulators, and entity store of one business.

    Args:
        initial_capital: Starting cash. Must be positive.
        daily_fee: Fixed fee charged on every :meth:`advance_day`. Must be positive.
        bankruptcy_threshold: Consecutive negative-net-worth day advances
            tolerated before :meth:`is_bankrupt` turns true. Must be positive.
        health_config: Breakpoints for :meth:`get_financial_health`.
        reserve_days: Days of fees withheld by :meth:`get_available_budget`.
        max_error_count: Default threshold of :meth:`has_excessive_errors`.

    Raises:
        ValidationError: If any of the three financial arguments is not
            positive, or an amount is not finite.
    """

    def __init__(
        self,
        initial_capital: Numeric,
        daily_fee: Numeric,
        bankruptcy_threshold: int = 10,
        health_config: Optional[HealthConfig] = None,
        reserve_days: int = RESERVE_DAYS,
        max_error_count: int = 10,
    ):
        initial_capital = to_finite_decimal(initial_capital, "Initial capital")
        daily_fee = to_finite_decimal(daily_fee, "Daily fee")
        if initial_capital <= ZERO:
            raise ValidationError("Initial capital must be positive")
        if daily_fee <= ZERO:
            raise ValidationError("Daily fee must be positive")
        if bankruptcy_threshold <= 0:
            raise ValidationError("Bankruptcy threshold must be positive")

        self._initial_capital: Decimal = initial_capital
        self._bankruptcy_threshold: int = int(bankruptcy_threshold)
        self._health_config = health_config or HealthConfig()
        self._reserve_days = reserve_days
        self._max_error_count = max_error_count

        self.daily_fee: Decimal = daily_fee
        self._current_day = 0
        self._net_worth: Decimal = initial_capital
        self._total_revenue: Decimal = ZERO
        self._total_spend: Decimal = ZERO
        self._current_roas: Decimal = ZERO
        self._bankruptcy_days = 0
        self.error_count = 0

        # Canonical id-indexed stores; dicts keep insertion order.
        self._products: Dict[str, Product] = {}
        self._campaigns: Dict[str, Campaign] = {}

    @classmethod
    def from_config(
        cls, config: LedgerConfig, health_config: Optional[HealthConfig] = None
    ) -> "BusinessLedger":
        """Build a ledger from validated configuration."""
        return cls(
            initial_capital=config.initial_capital,
            daily_fee=config.daily_fee,
            bankruptcy_threshold=config.bankruptcy_threshold,
            health_config=health_config,
            reserve_days=config.reserve_days,
            max_error_count=config.max_error_count,
        )

    # ------------------------------------------------------------------ #
    #  Read-only state
    # ------------------------------------------------------------------ #

    @property
    def initial_capital(self) -> Decimal:
        return self._initial_capital

    @property
    def bankruptcy_threshold(self) -> int:
        return self._bankruptcy_threshold

    @property
    def current_day(self) -> int:
        return self._current_day

    @property
    def net_worth(self) -> Decimal:
        return self._net_worth

    @property
    def total_revenue(self) -> Decimal:
        return self._total_revenue

    @property
    def total_spend(self) -> Decimal:
        return self._total_spend

    @property
    def current_roas(self) -> Decimal:
        return self._current_roas

    @property
    def bankruptcy_days(self) -> int:
        return self._bankruptcy_days

    @property
    def active_products(self) -> List[Product]:
        """Tracked products in insertion order (the canonical instances)."""
        return list(self._products.values())

    @property
    def active_campaigns(self) -> List[Campaign]:
        """Tracked campaigns in insertion order (the canonical instances)."""
        return list(self._campaigns.values())

    # ------------------------------------------------------------------ #
    #  Mutation
    # ------------------------------------------------------------------ #

    def advance_day(self) -> None:
        """Move to the next day and charge the fixed daily fee."""
        was_bankrupt = self.is_bankrupt()
        self._current_day += 1
        self._net_worth -= self.daily_fee
        self._total_spend += self.daily_fee

        if self._net_worth < ZERO:
            self._bankruptcy_days += 1
            logger.warning(
                f"Day {self._current_day}: net worth negative (${self._net_worth:,.2f}), "
                f"{self._bankruptcy_days}/{self._bankruptcy_threshold} days toward bankruptcy"
            )
        else:
            self._bankruptcy_days = 0

        self._update_roas()
        logger.debug(
            f"Advanced to day {self._current_day}: net worth ${self._net_worth:,.2f}, "
            f"total spend ${self._total_spend:,.2f}"
        )
        if self.is_bankrupt() and not was_bankrupt:
            logger.warning(
                f"BANKRUPTCY: business insolvent on day {self._current_day} after "
                f"{self._bankruptcy_days} consecutive negative days"
            )

    def update_financials(self, revenue: Numeric, spend: Numeric) -> None:
        """Apply revenue earned and ad spend incurred.

        Revenue that lifts net worth back to zero or above clears the
        insolvency counter immediately, without waiting for the next day.

        Raises:
            ValidationError: If either amount is negative or not finite. The
                ledger is left unchanged.
        """
        revenue = to_finite_decimal(revenue, "Revenue")
        spend = to_finite_decimal(spend, "Ad spend")
        if revenue < ZERO or spend < ZERO:
            raise ValidationError("Revenue and ad spend must be non-negative")

        self._total_revenue += revenue
        self._total_spend += spend
        self._net_worth += revenue - spend

        if self._net_worth >= ZERO:
            self._bankruptcy_days = 0

        self._update_roas()

    def _update_roas(self) -> None:
        self._current_roas = safe_divide(self._total_revenue, self._total_spend)

    def add_product(self, product: Product) -> None:
        """Register a product.

        Raises:
            DuplicateError: If a product with the same id is already tracked.
        """
        if product.id in self._products:
            raise DuplicateError("product", product.id)
        self._products[product.id] = product

    def remove_product(self, product_id: str) -> None:
        """Stop tracking a product; unknown ids are ignored."""
        self._products.pop(product_id, None)

    def add_campaign(self, campaign: Campaign) -> None:
        """Register a campaign.

        Raises:
            DuplicateError: If a campaign with the same id is already tracked.
        """
        if campaign.id in self._campaigns:
            raise DuplicateError("campaign", campaign.id)
        self._campaigns[campaign.id] = campaign

    def remove_campaign(self, campaign_id: str) -> None:
        """Stop tracking a campaign; unknown ids are ignored."""
        self._campaigns.pop(campaign_id, None)

    def increment_error_count(self) -> None:
        self.error_count += 1

    def reset_error_count(self) -> None:
        self.error_count = 0

    # ------------------------------------------------------------------ #
    #  Queries
    # ------------------------------------------------------------------ #

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self._campaigns.get(campaign_id)

    def get_campaigns_for_product(self, product_id: str) -> List[Campaign]:
        return [c for c in self._campaigns.values() if c.product_id == product_id]

    def has_excessive_errors(self, threshold: Optional[int] = None) -> bool:
        limit = self._max_error_count if threshold is None else threshold
        return self.error_count >= limit

    def is_bankrupt(self) -> bool:
        return self._bankruptcy_days >= self._bankruptcy_threshold

    def can_afford(self, amount: Numeric) -> bool:
        return self._net_worth >= to_finite_decimal(amount, "Amount")

    def get_available_budget(self) -> Decimal:
        """Cash left after reserving ``reserve_days`` of fixed fees, floored at 0."""
        reserved = self.daily_fee * self._reserve_days
        return max(ZERO, self._net_worth - reserved)

    def classify_health(self, net_worth: Optional[Numeric] = None) -> FinancialHealth:
        """Classify a net worth against the health breakpoints.

        Args:
            net_worth: Value to classify. Defaults to the current net worth.

        Returns:
            The health tier; always ``BANKRUPT`` while :meth:`is_bankrupt` holds.
        """
        if self.is_bankrupt():
            return FinancialHealth.BANKRUPT

        value = self._net_worth if net_worth is None else to_decimal(net_worth)
        policy = self._health_config
        if value >= self._initial_capital * to_decimal(policy.excellent_ratio):
            return FinancialHealth.EXCELLENT
        if value >= self._initial_capital * to_decimal(policy.good_ratio):
            return FinancialHealth.GOOD
        if value >= self._initial_capital * to_decimal(policy.acceptable_ratio):
            return FinancialHealth.ACCEPTABLE
        return FinancialHealth.CRITICAL

    def get_financial_health(self) -> HealthReport:
        """Classify current health with a rough runway and recommendation."""
        status = self.classify_health()
        if status is FinancialHealth.BANKRUPT:
            days = 0
        elif self._net_worth > ZERO:
            days = math.floor(self._net_worth / self.daily_fee)
        else:
            days = self._bankruptcy_threshold - self._bankruptcy_days
        return HealthReport(
            status=status,
            days_until_bankruptcy=days,
            recommendation=_HEALTH_RECOMMENDATIONS[status],
        )

    def get_daily_metrics(self) -> Dict[str, Any]:
        """Raw reading of the ledger at call time.

        ``revenue`` and ``spend`` are the lifetime accumulators, not
        per-day amounts.
        """
        return {
            "day": self._current_day,
            "net_worth": self._net_worth,
            "revenue": self._total_revenue,
            "spend": self._total_spend,
            "roas": self._current_roas,
            "active_products": len(self._products),
            "active_campaigns": len(self._campaigns),
            "errors": self.error_count,
        }

    def get_summary(self) -> MetricsDict:
        total_profit = self._total_revenue - self._total_spend
        profit_margin = safe_divide(total_profit, self._total_revenue) * 100
        return {
            "total_profit": float(total_profit),
            "profit_margin": float(profit_margin),
            "average_roas": float(self._current_roas),
            "days_active": self._current_day,
            "products_launched": len(self._products),
            "campaigns_launched": len(self._campaigns),
        }

    # ------------------------------------------------------------------ #
    #  Snapshots
    # ------------------------------------------------------------------ #

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable snapshot of the ledger state."""
        return {
            "current_day": self._current_day,
            "net_worth": to_float(self._net_worth),
            "daily_fee": to_float(self.daily_fee),
            "total_revenue": to_float(self._total_revenue),
            "total_spend": to_float(self._total_spend),
            "current_roas": to_float(self._current_roas),
            "bankruptcy_days": self._bankruptcy_days,
            "error_count": self.error_count,
            "active_products": [p.to_dict() for p in self._products.values()],
            "active_campaigns": [c.to_dict() for c in self._campaigns.values()],
        }

    @staticmethod
    def validate(data: Dict[str, Any]) -> bool:
        """Check a snapshot against :class:`LedgerSnapshot` without building a ledger.

        Returns:
            True when :meth:`from_dict` would accept ``data``'s ledger fields.
        """
        try:
            LedgerSnapshot.model_validate(data)
        except pydantic.ValidationError as exc:
            logger.debug(f"Rejected ledger snapshot: {exc.error_count()} error(s)")
            return False
        return True

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        initial_capital: Numeric,
        bankruptcy_threshold: int = 10,
        health_config: Optional[HealthConfig] = None,
    ) -> "BusinessLedger":
        """Rebuild a ledger from :meth:`to_dict` output.

        The snapshot does not carry the initial capital or threshold, so the
        caller supplies them again.

        Raises:
            ValidationError: If ``data`` does not match :class:`LedgerSnapshot`,
                for example a negative accumulator or a non-finite amount.
        """
        try:
            snapshot = LedgerSnapshot.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid ledger snapshot: {exc}") from exc

        ledger = cls(
            initial_capital,
            snapshot.daily_fee,
            bankruptcy_threshold=bankruptcy_threshold,
            health_config=health_config,
        )
        ledger._current_day = snapshot.current_day
        ledger._net_worth = to_decimal(snapshot.net_worth)
        ledger._total_revenue = to_decimal(snapshot.total_revenue)
        ledger._total_spend = to_decimal(snapshot.total_spend)
        ledger._bankruptcy_days = snapshot.bankruptcy_days
        ledger.error_count = snapshot.error_count
        ledger._update_roas()
        for product_data in snapshot.active_products:
            ledger.add_product(Product.from_dict(product_data))
        for campaign_data in snapshot.active_campaigns:
            ledger.add_campaign(Campaign.from_dict(campaign_data))
        return ledger

    def __repr__(self) -> str:
        return (
            f"BusinessLedger(day={self._current_day}, net_worth={self._net_worth}, "
            f"bankruptcy_days={self._bankruptcy_days}/{self._bankruptcy_threshold})"
        )
