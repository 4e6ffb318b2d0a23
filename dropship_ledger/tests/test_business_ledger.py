"""Tests for the BusinessLedger: accounting, insolvency, entities, and health."""

from decimal import Decimal
import json

import pytest

from dropship_ledger.business_ledger import BusinessLedger, FinancialHealth
from dropship_ledger.config import HealthConfig, LedgerConfig
from dropship_ledger.exceptions import DuplicateError, ValidationError
from dropship_ledger.models import CampaignStatus


class TestConstruction:
    """Constructor validation."""

    @pytest.mark.parametrize(
        "capital,fee,threshold",
        [(0, 50, 10), (-100, 50, 10), (1000, 0, 10), (1000, -5, 10), (1000, 50, 0)],
    )
    def test_non_positive_arguments_rejected(self, capital, fee, threshold):
        with pytest.raises(ValidationError):
            BusinessLedger(capital, fee, threshold)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            BusinessLedger(0, 50, 10)

    @pytest.mark.parametrize(
        "capital,fee",
        [(float("inf"), 50), (float("nan"), 50), (1000, float("inf")), (1000, float("nan"))],
    )
    def test_non_finite_arguments_rejected(self, capital, fee):
        with pytest.raises(ValidationError, match="finite"):
            BusinessLedger(capital, fee, 10)

    def test_initial_state(self, ledger):
        assert ledger.current_day == 0
        assert ledger.net_worth == 1000
        assert ledger.total_revenue == 0
        assert ledger.total_spend == 0
        assert ledger.current_roas == 0
        assert ledger.bankruptcy_days == 0
        assert ledger.active_products == []
        assert ledger.active_campaigns == []

    def test_from_config(self):
        config = LedgerConfig(initial_capital=2500, daily_fee=25, bankruptcy_threshold=3)
        ledger = BusinessLedger.from_config(config)
        assert ledger.initial_capital == 2500
        assert ledger.daily_fee == 25
        assert ledger.bankruptcy_threshold == 3


class TestDailyAccounting:
    """Day advances and revenue/spend application."""

    def test_advance_day(self, ledger):
        """One day charges exactly one fee."""
        ledger.advance_day()
        assert ledger.net_worth == 950
        assert ledger.total_spend == 50
        assert ledger.current_day == 1

    def test_update_financials(self, ledger):
        ledger.update_financials(revenue=300, spend=100)
        assert ledger.current_roas == 3
        assert ledger.net_worth == 1200
        assert ledger.total_revenue == 300
        assert ledger.total_spend == 100

    def test_roas_includes_fees(self, ledger):
        ledger.advance_day()
        ledger.update_financials(revenue=300, spend=100)
        assert ledger.current_roas == 2

    def test_negative_amounts_rejected_without_side_effects(self, ledger):
        with pytest.raises(ValidationError):
            ledger.update_financials(revenue=-1, spend=0)
        with pytest.raises(ValidationError):
            ledger.update_financials(revenue=0, spend=-1)
        assert ledger.net_worth == 1000
        assert ledger.total_spend == 0

    def test_float_amounts_are_exact(self, ledger):
        for _ in range(10):
            ledger.update_financials(revenue=0.1, spend=0)
        assert ledger.net_worth == Decimal("1001.0")

    @pytest.mark.parametrize("field_name", ["revenue", "spend"])
    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_amounts_rejected_without_side_effects(self, ledger, field_name, value):
        amounts = {"revenue": 0, "spend": 0, field_name: value}
        with pytest.raises(ValidationError, match="finite"):
            ledger.update_financials(**amounts)
        assert ledger.net_worth == 1000
        assert ledger.total_revenue == 0
        assert ledger.total_spend == 0


class TestInsolvency:
    """Consecutive negative-day counting and the bankruptcy predicate."""

    def test_bankruptcy_at_threshold(self):
        """$100 capital and a $50 fee go insolvent on the fourth day."""
        ledger = BusinessLedger(100, 50, 2)
        ledger.advance_day()
        ledger.advance_day()
        assert ledger.net_worth == 0
        assert ledger.bankruptcy_days == 0

        ledger.advance_day()
        assert ledger.net_worth == -50
        assert ledger.bankruptcy_days == 1
        assert not ledger.is_bankrupt()

        ledger.advance_day()
        assert ledger.net_worth == -100
        assert ledger.bankruptcy_days == 2
        assert ledger.is_bankrupt()

    def test_revenue_clears_counter_mid_day(self):
        ledger = BusinessLedger(100, 50, 5)
        for _ in range(3):
            ledger.advance_day()
        assert ledger.bankruptcy_days == 1

        ledger.update_financials(revenue=60, spend=0)
        assert ledger.net_worth == 10
        assert ledger.bankruptcy_days == 0

    def test_partial_recovery_keeps_counter(self):
        ledger = BusinessLedger(100, 50, 5)
        for _ in range(4):
            ledger.advance_day()
        ledger.update_financials(revenue=20, spend=0)
        assert ledger.net_worth == -80
        assert ledger.bankruptcy_days == 2

    def test_bankrupt_always_wins(self):
        ledger = BusinessLedger(100, 50, 1)
        for _ in range(3):
            ledger.advance_day()
        assert ledger.is_bankrupt()
        assert ledger.get_financial_health().status is FinancialHealth.BANKRUPT
        assert ledger.classify_health(net_worth=10_000) is FinancialHealth.BANKRUPT

    def test_bankruptcy_logged(self, caplog):
        ledger = BusinessLedger(100, 50, 1)
        with caplog.at_level("WARNING", logger="dropship_ledger"):
            for _ in range(3):
                ledger.advance_day()
        assert any("BANKRUPTCY" in r.message for r in caplog.records)


class TestEntities:
    """Product and campaign registration."""

    def test_add_and_get(self, ledger, make_product, make_campaign):
        product = make_product()
        campaign = make_campaign()
        ledger.add_product(product)
        ledger.add_campaign(campaign)
        assert ledger.get_product(product.id) is product
        assert ledger.get_campaign(campaign.id) is campaign
        assert ledger.get_campaign("missing") is None

    def test_duplicate_rejected(self, ledger, make_product, make_campaign):
        product = make_product()
        campaign = make_campaign()
        ledger.add_product(product)
        ledger.add_campaign(campaign)
        with pytest.raises(DuplicateError) as exc_info:
            ledger.add_product(product)
        assert exc_info.value.entity_id == product.id
        with pytest.raises(DuplicateError):
            ledger.add_campaign(campaign)

    def test_remove_missing_is_noop(self, ledger):
        ledger.remove_product("missing")
        ledger.remove_campaign("missing")
        assert ledger.active_products == []

    def test_remove(self, ledger, make_campaign):
        campaign = make_campaign()
        ledger.add_campaign(campaign)
        ledger.remove_campaign(campaign.id)
        assert ledger.active_campaigns == []

    def test_insertion_order_and_shared_instances(self, ledger, make_campaign):
        """Collections hand out the canonical objects, in insertion order."""
        first, second = make_campaign(), make_campaign()
        ledger.add_campaign(first)
        ledger.add_campaign(second)
        assert ledger.active_campaigns == [first, second]

        ledger.active_campaigns[0].update_status(CampaignStatus.KILLED)
        assert first.status is CampaignStatus.KILLED

    def test_campaigns_for_product(self, ledger, make_campaign):
        ours = make_campaign()
        other = make_campaign()
        other.product_id = "prod-2"
        ledger.add_campaign(ours)
        ledger.add_campaign(other)
        assert ledger.get_campaigns_for_product("prod-2") == [other]


class TestQueries:
    """Budget, affordability, errors, and health queries."""

    def test_available_budget_reserves_seven_days(self, ledger):
        assert ledger.get_available_budget() == 650

    def test_available_budget_never_negative(self, ledger):
        ledger.update_financials(revenue=0, spend=900)
        assert ledger.get_available_budget() == 0

    def test_can_afford(self, ledger):
        assert ledger.can_afford(1000)
        assert not ledger.can_afford(1000.01)

    def test_can_afford_rejects_nan(self, ledger):
        with pytest.raises(ValidationError):
            ledger.can_afford(float("nan"))

    def test_error_counter(self, ledger):
        for _ in range(10):
            ledger.increment_error_count()
        assert ledger.has_excessive_errors()
        assert not ledger.has_excessive_errors(threshold=11)
        ledger.reset_error_count()
        assert ledger.error_count == 0

    @pytest.mark.parametrize(
        "net_worth_change,expected",
        [
            (1000, FinancialHealth.EXCELLENT),
            (0, FinancialHealth.GOOD),
            (-500, FinancialHealth.ACCEPTABLE),
            (-501, FinancialHealth.CRITICAL),
        ],
    )
    def test_default_health_breakpoints(self, ledger, net_worth_change, expected):
        if net_worth_change >= 0:
            ledger.update_financials(revenue=net_worth_change, spend=0)
        else:
            ledger.update_financials(revenue=0, spend=-net_worth_change)
        assert ledger.get_financial_health().status is expected

    def test_custom_health_breakpoints(self):
        ledger = BusinessLedger(
            1000, 50, 10, health_config=HealthConfig(excellent_ratio=1.5, good_ratio=0.9)
        )
        assert ledger.classify_health(net_worth=1500) is FinancialHealth.EXCELLENT
        assert ledger.classify_health(net_worth=899) is FinancialHealth.ACCEPTABLE

    def test_health_runway(self, ledger):
        report = ledger.get_financial_health()
        assert report.days_until_bankruptcy == 20
        assert report.recommendation == "Continue current strategy"

    def test_health_runway_when_negative(self):
        ledger = BusinessLedger(100, 50, 5)
        for _ in range(3):
            ledger.advance_day()
        assert ledger.get_financial_health().days_until_bankruptcy == 4

    def test_daily_metrics(self, ledger, make_campaign):
        ledger.add_campaign(make_campaign())
        ledger.update_financials(revenue=200, spend=100)
        metrics = ledger.get_daily_metrics()
        assert metrics["revenue"] == 200
        assert metrics["spend"] == 100
        assert metrics["roas"] == 2
        assert metrics["active_campaigns"] == 1

    def test_summary(self, ledger):
        ledger.update_financials(revenue=400, spend=100)
        summary = ledger.get_summary()
        assert summary["total_profit"] == pytest.approx(300.0)
        assert summary["profit_margin"] == pytest.approx(75.0)
        assert summary["average_roas"] == pytest.approx(4.0)


class TestSnapshots:
    """JSON-ready snapshots."""

    def test_round_trip(self, ledger, make_product, make_campaign):
        ledger.add_product(make_product())
        ledger.add_campaign(make_campaign(spend=60, revenue=90))
        ledger.advance_day()
        ledger.update_financials(revenue=90, spend=60)

        data = json.loads(json.dumps(ledger.to_dict()))
        restored = BusinessLedger.from_dict(data, initial_capital=1000)

        assert restored.net_worth == ledger.net_worth
        assert restored.total_spend == ledger.total_spend
        assert restored.current_day == 1
        assert [c.id for c in restored.active_campaigns] == [
            c.id for c in ledger.active_campaigns
        ]

    def test_negative_accumulators_rejected(self, ledger):
        data = ledger.to_dict()
        data["total_spend"] = -1
        with pytest.raises(ValidationError):
            BusinessLedger.from_dict(data, initial_capital=1000)

    def test_validate_accepts_own_snapshot(self, ledger, make_product, make_campaign):
        ledger.add_product(make_product())
        ledger.add_campaign(make_campaign(spend=60, revenue=90))
        ledger.advance_day()
        assert BusinessLedger.validate(json.loads(json.dumps(ledger.to_dict())))

    @pytest.mark.parametrize(
        "key,value",
        [
            ("current_day", -1),
            ("daily_fee", 0),
            ("total_revenue", -5),
            ("current_roas", -0.5),
            ("bankruptcy_days", -1),
            ("error_count", -1),
            ("net_worth", float("inf")),
            ("net_worth", "lots"),
            ("active_campaigns", "none"),
        ],
    )
    def test_validate_rejects_bad_fields(self, ledger, key, value):
        data = ledger.to_dict()
        data[key] = value
        assert not BusinessLedger.validate(data)

    def test_validate_requires_net_worth_and_fee(self, ledger):
        data = ledger.to_dict()
        del data["net_worth"]
        assert not BusinessLedger.validate(data)

    def test_negative_net_worth_is_valid(self, ledger):
        data = ledger.to_dict()
        data["net_worth"] = -250.0
        assert BusinessLedger.validate(data)
        assert BusinessLedger.from_dict(data, initial_capital=1000).net_worth == Decimal("-250.0")

    def test_from_dict_rejects_non_finite_net_worth(self, ledger):
        data = ledger.to_dict()
        data["net_worth"] = float("nan")
        with pytest.raises(ValidationError, match="Invalid ledger snapshot"):
            BusinessLedger.from_dict(data, initial_capital=1000)
