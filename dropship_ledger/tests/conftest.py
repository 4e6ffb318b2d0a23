"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from dropship_ledger.business_ledger import BusinessLedger
from dropship_ledger.control_events import RecordingEventSink
from dropship_ledger.control_loop import FinancialControlLoop
from dropship_ledger.daily_metrics import DailyMetricsSnapshot
from dropship_ledger.models import Campaign, Product


class FakeClock:
    """Manually advanced wall clock for alert timestamps."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Return a fake clock starting at 2024-01-01 12:00."""
    return FakeClock()


@pytest.fixture
def ledger():
    """Return the standard $1,000 ledger with a $50 daily fee."""
    return BusinessLedger(initial_capital=1000, daily_fee=50, bankruptcy_threshold=10)


@pytest.fixture
def sink():
    """Return an in-memory event sink."""
    return RecordingEventSink()


@pytest.fixture
def control_loop(sink, clock):
    """Return a control loop with default thresholds reporting to ``sink``."""
    return FinancialControlLoop(event_sink=sink, clock=clock)


@pytest.fixture
def make_campaign():
    """Factory for campaigns with given lifetime figures."""

    def _make(spend=0, revenue=0, budget=50, status="active", platform="facebook"):
        return Campaign(
            product_id="prod-1",
            platform=platform,
            budget=budget,
            spend=spend,
            revenue=revenue,
            status=status,
        )

    return _make


@pytest.fixture
def make_product():
    """Factory for products in a given lifecycle stage."""

    def _make(name="Posture corrector", status="researching", margin=15):
        return Product(name=name, margin=margin, status=status)

    return _make


@pytest.fixture
def make_snapshot():
    """Factory for history snapshots with only the analysed fields set."""

    def _make(day=0, revenue=0, spend=0, roas=0, profit_margin=0, net_worth=1000):
        return DailyMetricsSnapshot(
            day=day,
            net_worth=Decimal(str(net_worth)),
            revenue=Decimal(str(revenue)),
            spend=Decimal(str(spend)),
            roas=Decimal(str(roas)),
            profit_margin=Decimal(str(profit_margin)),
            burn_rate=Decimal("50"),
            days_until_bankruptcy=None,
            financial_health="good",
            available_budget=Decimal("650"),
            total_profit=Decimal(str(revenue)) - Decimal(str(spend)),
        )

    return _make
