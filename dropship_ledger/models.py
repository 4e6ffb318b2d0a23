"""Product and campaign entities tracked by the business ledger.

Products and campaigns are plain mutable objects. A ledger holds the
canonical instance of each, keyed by id, and hands out the very same
objects to collaborators, so a budget cut applied by the control loop is
visible to anything that kept a reference.

Example:
    Register a product and a campaign promoting it::

        product = Product(name="Posture corrector", margin=18.5, status="testing")
        campaign = Campaign(product_id=product.id, platform="tiktok", budget=50)
        campaign.update_metrics(spend=40, revenue=96, day=3)
        print(campaign.roas)  # Decimal('2.4')
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from .config.constants import (
    BREAKEVEN_ROAS,
    EXCELLENT_ROAS,
    GOOD_ROAS,
    MIN_CAMPAIGN_BUDGET,
    MIN_MARKUP_PERCENT,
    SCALING_MIN_CONTENT_SCORE,
    TESTING_MAX_COMPETITORS,
    TESTING_MIN_CONTENT_SCORE,
)
from .decimal_utils import (
    PENNY,
    ZERO,
    MetricsDict,
    Numeric,
    quantize_currency,
    safe_divide,
    to_decimal,
    to_finite_decimal,
    to_float,
)
from .exceptions import InvalidTransitionError, ValidationError


class ProductStatus(Enum):
    """Lifecycle stage of a product."""

    RESEARCHING = "researching"
    TESTING = "testing"
    SCALING = "scaling"
    KILLED = "killed"


class CampaignStatus(Enum):
    """Delivery state of an advertising campaign."""

    ACTIVE = "active"
    PAUSED = "paused"
    KILLED = "killed"


class Platform(Enum):
    """Advertising platform a campaign runs on."""

    FACEBOOK = "facebook"
    TIKTOK = "tiktok"
    GOOGLE = "google"


_PRODUCT_TRANSITIONS = {
    ProductStatus.RESEARCHING: {ProductStatus.TESTING, ProductStatus.KILLED},
    ProductStatus.TESTING: {ProductStatus.SCALING, ProductStatus.KILLED},
    ProductStatus.SCALING: {ProductStatus.KILLED},
    ProductStatus.KILLED: set(),
}

_CAMPAIGN_TRANSITIONS = {
    CampaignStatus.ACTIVE: {CampaignStatus.PAUSED, CampaignStatus.KILLED},
    CampaignStatus.PAUSED: {CampaignStatus.ACTIVE, CampaignStatus.KILLED},
    CampaignStatus.KILLED: set(),
}


def _new_id() -> str:
    return uuid.uuid4().hex


def _coerce_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        valid = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field_name} '{value}'. Must be one of: {valid}") from exc


@dataclass
class Product:
    """A product the business is researching, testing, or selling.

    Pricing is optional. When both ``supplier_price`` and
    ``recommended_price`` are set, ``margin`` may be omitted and is derived
    from them; when all three are given they must agree to the cent.

    Attributes:
        name: Display name. Must be non-empty.
        margin: Per-unit margin in dollars (retail price minus supplier cost).
        status: Lifecycle stage; strings are accepted and converted.
        created_day: Simulated day the product was added.
        id: Unique identifier, generated when omitted.
        category: Optional merchandising category.
        supplier_price: Unit cost from the supplier.
        recommended_price: Planned retail price.
        content_score: Quality of the product's creative assets, 0 to 100.
        competitor_count: Number of competing stores selling the product.
        source_url: Where the product was found.
        description: Free-form notes.
        tags: Free-form labels.
    """

    name: str
    margin: Optional[Decimal] = None
    status: ProductStatus = ProductStatus.RESEARCHING
    created_day: int = 0
    id: str = field(default_factory=_new_id)
    category: Optional[str] = None
    supplier_price: Optional[Decimal] = None
    recommended_price: Optional[Decimal] = None
    content_score: float = 0
    competitor_count: int = 0
    source_url: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Product name is required")
        if (self.supplier_price is None) != (self.recommended_price is None):
            raise ValidationError("Supplier and recommended price must be set together")

        derived = None
        if self.has_pricing:
            self.supplier_price = to_finite_decimal(self.supplier_price, "Supplier price")
            self.recommended_price = to_finite_decimal(
                self.recommended_price, "Recommended price"
            )
            if self.supplier_price <= ZERO or self.recommended_price <= ZERO:
                raise ValidationError("Prices must be positive")
            derived = self.recommended_price - self.supplier_price
            if self.margin is None:
                self.margin = derived

        self.margin = to_finite_decimal(self.margin, "Product margin")
        if self.margin < ZERO:
            raise ValidationError(f"Product margin cannot be negative, got {self.margin}")
        if derived is not None and abs(self.margin - derived) > PENNY:
            raise ValidationError(
                f"Margin {self.margin} does not match recommended minus supplier "
                f"price ({derived})"
            )
        if not 0 <= self.content_score <= 100:
            raise ValidationError(f"Content score must be 0-100, got {self.content_score}")
        if self.competitor_count < 0:
            raise ValidationError("Competitor count cannot be negative")
        if self.created_day < 0:
            raise ValidationError("Created day cannot be negative")
        self.status = _coerce_enum(ProductStatus, self.status, "product status")

    @property
    def has_pricing(self) -> bool:
        return self.supplier_price is not None and self.recommended_price is not None

    def is_active(self) -> bool:
        """Return True unless the product has been killed."""
        return self.status is not ProductStatus.KILLED

    def margin_percentage(self) -> Decimal:
        """Margin as a percentage of the retail price; zero without pricing."""
        return safe_divide(self.margin, self.recommended_price or ZERO) * 100

    def markup_percentage(self) -> Decimal:
        """Margin as a percentage of the supplier price; zero without pricing."""
        return safe_divide(self.margin, self.supplier_price or ZERO) * 100

    def meets_margin_requirements(self, min_markup: float = MIN_MARKUP_PERCENT) -> bool:
        return self.markup_percentage() >= to_decimal(min_markup)

    def is_ready_for_testing(self) -> bool:
        """Researched, priced with enough markup, good creatives, not overcrowded."""
        return (
            self.status is ProductStatus.RESEARCHING
            and self.meets_margin_requirements()
            and self.content_score >= TESTING_MIN_CONTENT_SCORE
            and self.competitor_count < TESTING_MAX_COMPETITORS
        )

    def is_ready_for_scaling(self) -> bool:
        return (
            self.status is ProductStatus.TESTING
            and self.content_score >= SCALING_MIN_CONTENT_SCORE
        )

    def update_prices(self, supplier_price: Numeric, recommended_price: Numeric) -> None:
        """Reprice the product and recompute its margin to the cent.

        Raises:
            ValidationError: If a price is not positive and finite, or the
                retail price does not exceed the supplier price.
        """
        supplier = to_finite_decimal(supplier_price, "Supplier price")
        recommended = to_finite_decimal(recommended_price, "Recommended price")
        if supplier <= ZERO or recommended <= ZERO:
            raise ValidationError("Prices must be positive")
        if recommended <= supplier:
            raise ValidationError(
                f"Recommended price {recommended} must exceed supplier price {supplier}"
            )
        self.supplier_price = supplier
        self.recommended_price = recommended
        self.margin = quantize_currency(recommended - supplier)

    def risk_analysis(self) -> MetricsDict:
        """Score launch risk from competition, creatives and markup.

        Returns:
            Pricing figures, ``market_demand`` (100 minus competitors, floored
            at 0), ``risk_score`` and a ``recommendation`` of ``"proceed"``,
            ``"caution"`` or ``"reject"``.
        """
        markup = self.markup_percentage()
        risk_score = 0
        if self.competitor_count > 30:
            risk_score += 30
        if self.content_score < TESTING_MIN_CONTENT_SCORE:
            risk_score += 25
        if markup < to_decimal(MIN_MARKUP_PERCENT):
            risk_score += 35
        if self.content_score < 40:
            risk_score += 20

        if risk_score > 60:
            recommendation = "reject"
        elif risk_score > 30:
            recommendation = "caution"
        else:
            recommendation = "proceed"

        return {
            "margin": to_float(self.margin),
            "margin_percent": float(self.margin_percentage()),
            "markup_percent": float(markup),
            "content_score": self.content_score,
            "competitor_count": self.competitor_count,
            "market_demand": max(0, 100 - self.competitor_count),
            "risk_score": risk_score,
            "recommendation": recommendation,
        }

    def update_status(self, new_status) -> None:
        """Move the product to a new lifecycle stage.

        Raises:
            InvalidTransitionError: If the transition is not allowed (e.g. out
                of ``killed``, or skipping from researching to scaling).
        """
        new_status = _coerce_enum(ProductStatus, new_status, "product status")
        if new_status not in _PRODUCT_TRANSITIONS[self.status]:
            raise InvalidTransitionError("product", self.status.value, new_status.value)
        self.status = new_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "margin": to_float(self.margin),
            "status": self.status.value,
            "created_day": self.created_day,
            "category": self.category,
            "supplier_price": to_float(self.supplier_price),
            "recommended_price": to_float(self.recommended_price),
            "content_score": self.content_score,
            "competitor_count": self.competitor_count,
            "source_url": self.source_url,
            "description": self.description,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            id=data["id"],
            name=data["name"],
            margin=data.get("margin"),
            status=data.get("status", ProductStatus.RESEARCHING.value),
            created_day=data.get("created_day", 0),
            category=data.get("category"),
            supplier_price=data.get("supplier_price"),
            recommended_price=data.get("recommended_price"),
            content_score=data.get("content_score", 0),
            competitor_count=data.get("competitor_count", 0),
            source_url=data.get("source_url"),
            description=data.get("description"),
            tags=list(data.get("tags", [])),
        )


@dataclass
class Campaign:
    """An advertising campaign promoting one product on one platform.

    ``spend`` and ``revenue`` are the campaign's lifetime totals. ROAS is
    derived from them on every read, so it can never disagree with the
    underlying figures.

    Attributes:
        product_id: Id of the promoted product. Not checked against the
            ledger's products.
        platform: Advertising platform; strings are accepted.
        budget: Daily budget in dollars. Must be positive at creation.
        spend: Lifetime ad spend.
        revenue: Lifetime attributed revenue.
        status: Delivery state; strings are accepted.
        created_day: Simulated day the campaign was created.
        last_optimized: Last simulated day its metrics were updated.
        id: Unique identifier, generated when omitted.
        angle: Optional marketing angle description.
        impressions: Lifetime ad impressions, when the platform reports them.
        clicks: Lifetime clicks, when reported.
        conversions: Lifetime purchases, when reported.
    """

    product_id: str
    platform: Platform
    budget: Decimal
    spend: Decimal = ZERO
    revenue: Decimal = ZERO
    status: CampaignStatus = CampaignStatus.ACTIVE
    created_day: int = 0
    last_optimized: int = 0
    id: str = field(default_factory=_new_id)
    angle: Optional[str] = None
    impressions: Optional[int] = None
    clicks: Optional[int] = None
    conversions: Optional[int] = None

    def __post_init__(self) -> None:
        self.platform = _coerce_enum(Platform, self.platform, "platform")
        self.status = _coerce_enum(CampaignStatus, self.status, "campaign status")
        self.budget = to_finite_decimal(self.budget, "Campaign budget")
        self.spend = to_finite_decimal(self.spend, "Campaign spend")
        self.revenue = to_finite_decimal(self.revenue, "Campaign revenue")
        if self.budget <= ZERO:
            raise ValidationError(f"Campaign budget must be positive, got {self.budget}")
        if self.spend < ZERO or self.revenue < ZERO:
            raise ValidationError("Campaign spend and revenue must be non-negative")
        if self.created_day < 0 or self.last_optimized < 0:
            raise ValidationError("Campaign days cannot be negative")
        _check_counts(self.impressions, self.clicks, self.conversions)

    @property
    def roas(self) -> Decimal:
        """Return on ad spend; zero until the campaign has spent anything."""
        return safe_divide(self.revenue, self.spend)

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.spend

    @property
    def ctr(self) -> Optional[Decimal]:
        """Click-through rate in percent; None until impressions and clicks are known."""
        if not self.impressions or not self.clicks:
            return None
        return Decimal(self.clicks) / Decimal(self.impressions) * 100

    @property
    def cpc(self) -> Optional[Decimal]:
        """Cost per click; None until there are clicks and spend."""
        if not self.clicks or self.spend <= ZERO:
            return None
        return self.spend / Decimal(self.clicks)

    def conversion_rate(self) -> Optional[Decimal]:
        """Purchases per click in percent, or None without click data."""
        if not self.clicks or self.conversions is None:
            return None
        return Decimal(self.conversions) / Decimal(self.clicks) * 100

    def is_active(self) -> bool:
        return self.status is CampaignStatus.ACTIVE

    def update_metrics(self, spend: Numeric, revenue: Numeric, day: int) -> None:
        """Replace lifetime spend and revenue with fresh platform figures.

        Raises:
            ValidationError: If either figure is negative or not finite.
        """
        spend = to_finite_decimal(spend, "Spend")
        revenue = to_finite_decimal(revenue, "Revenue")
        if spend < ZERO or revenue < ZERO:
            raise ValidationError("Spend and revenue must be non-negative")
        self.spend = spend
        self.revenue = revenue
        self.last_optimized = day

    def update_detailed_metrics(
        self,
        impressions: Optional[int] = None,
        clicks: Optional[int] = None,
        conversions: Optional[int] = None,
    ) -> None:
        """Record funnel counts; arguments left as None keep their current value.

        Raises:
            ValidationError: If any count is negative. Nothing is updated.
        """
        _check_counts(impressions, clicks, conversions)
        if impressions is not None:
            self.impressions = impressions
        if clicks is not None:
            self.clicks = clicks
        if conversions is not None:
            self.conversions = conversions

    def is_profitable(self) -> bool:
        return self.roas > to_decimal(BREAKEVEN_ROAS)

    def meets_breakeven(self, threshold: float = 1.5) -> bool:
        return self.roas >= to_decimal(threshold)

    def is_ready_for_scaling(self, min_roas: float = 2.0, min_spend: float = 100) -> bool:
        return (
            self.is_active()
            and self.roas >= to_decimal(min_roas)
            and self.spend >= to_decimal(min_spend)
        )

    def should_be_killed(self, min_roas: float = 1.0, min_spend: float = 50) -> bool:
        """Return True for an active campaign with enough spend and too little return."""
        return (
            self.is_active()
            and self.spend >= to_decimal(min_spend)
            and self.roas < to_decimal(min_roas)
        )

    def update_status(self, new_status) -> None:
        """Change the delivery state.

        Raises:
            InvalidTransitionError: If the transition is not allowed (nothing
                leaves ``killed``).
        """
        new_status = _coerce_enum(CampaignStatus, new_status, "campaign status")
        if new_status not in _CAMPAIGN_TRANSITIONS[self.status]:
            raise InvalidTransitionError("campaign", self.status.value, new_status.value)
        self.status = new_status

    def scale_budget(self, new_budget: Numeric) -> None:
        """Raise (or set) the budget of a campaign that has earned it.

        Raises:
            ValidationError: If the budget is not positive, the campaign is
                not active, or it is not yet ready for scaling.
        """
        new_budget = to_finite_decimal(new_budget, "Budget")
        if new_budget <= ZERO:
            raise ValidationError("Budget must be positive")
        if not self.is_active():
            raise ValidationError("Can only scale active campaigns")
        if not self.is_ready_for_scaling():
            raise ValidationError("Campaign is not ready for scaling")
        self.budget = new_budget

    def reduce_budget(self, factor: Numeric, floor: float = MIN_CAMPAIGN_BUDGET) -> Decimal:
        """Multiply the budget by ``factor`` without going below ``floor``.

        Args:
            factor: Multiplier applied to the current budget.
            floor: Minimum budget after the reduction.

        Returns:
            The budget before the reduction.
        """
        old_budget = self.budget
        factor = to_finite_decimal(factor, "Budget factor")
        self.budget = max(to_decimal(floor), self.budget * factor)
        return old_budget

    def performance_summary(self) -> MetricsDict:
        """Summarise efficiency with a one-line recommendation."""
        roas = self.roas
        profit_margin = safe_divide(self.profit, self.revenue) * 100
        if roas >= to_decimal(EXCELLENT_ROAS):
            efficiency, recommendation = "excellent", "Scale aggressively"
        elif roas >= to_decimal(GOOD_ROAS):
            efficiency, recommendation = "good", "Scale moderately"
        elif roas >= to_decimal(BREAKEVEN_ROAS):
            efficiency, recommendation = "poor", "Optimize or pause"
        else:
            efficiency, recommendation = "losing", "Kill immediately"
        return {
            "roas": float(roas),
            "profit": float(self.profit),
            "profit_margin": float(profit_margin),
            "efficiency": efficiency,
            "recommendation": recommendation,
        }

    def to_dict(self) -> MetricsDict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "platform": self.platform.value,
            "angle": self.angle,
            "budget": to_float(self.budget),
            "spend": to_float(self.spend),
            "revenue": to_float(self.revenue),
            "roas": to_float(self.roas),
            "status": self.status.value,
            "created_day": self.created_day,
            "last_optimized": self.last_optimized,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "conversions": self.conversions,
            "ctr": to_float(self.ctr),
            "cpc": to_float(self.cpc),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Campaign":
        return cls(
            id=data["id"],
            product_id=data["product_id"],
            platform=data["platform"],
            budget=data["budget"],
            spend=data.get("spend", 0),
            revenue=data.get("revenue", 0),
            status=data.get("status", CampaignStatus.ACTIVE.value),
            created_day=data.get("created_day", 0),
            last_optimized=data.get("last_optimized", 0),
            angle=data.get("angle"),
            impressions=data.get("impressions"),
            clicks=data.get("clicks"),
            conversions=data.get("conversions"),
        )


def _check_counts(*counts: Optional[int]) -> None:
    if any(count is not None and count < 0 for count in counts):
        raise ValidationError("Impressions, clicks and conversions cannot be negative")
