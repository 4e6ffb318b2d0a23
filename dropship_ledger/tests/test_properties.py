"""Property-based tests using Hypothesis for ledger and control-loop invariants.

These cover the invariants that must hold for *every* call sequence rather
than for a handful of hand-picked scenarios: the cash identity, the
insolvency counter, the available-budget floor, the kill spend gate, the
minimum campaign budget, alert deduplication, and health ordering.
"""

from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from dropship_ledger.alerts import AlertLog, AlertType
from dropship_ledger.business_ledger import BusinessLedger
from dropship_ledger.config.constants import MIN_CAMPAIGN_BUDGET
from dropship_ledger.control_events import RecordingEventSink
from dropship_ledger.control_loop import FinancialControlLoop
from dropship_ledger.models import Campaign, CampaignStatus

money = st.decimals(min_value=0, max_value=2000, places=2, allow_nan=False, allow_infinity=False)

operations = st.lists(
    st.one_of(
        st.just(("advance",)),
        st.tuples(st.just("update"), money, money),
    ),
    max_size=60,
)


class TestLedgerProperties:
    """Invariants of the ledger under arbitrary operation sequences."""

    @given(ops=operations, threshold=st.integers(min_value=1, max_value=5))
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_accounting_and_insolvency_invariants(self, ops, threshold):
        """Properties tested:
        - net worth equals capital minus fees plus revenue minus spend, exactly
        - revenue and spend accumulators never decrease
        - the insolvency counter follows the negative-day rule
        - is_bankrupt() holds iff the counter reached the threshold
        - the available budget is never negative
        """
        ledger = BusinessLedger(500, 50, threshold)
        days = 0
        revenue_applied = Decimal("0")
        spend_applied = Decimal("0")
        expected_bankruptcy_days = 0

        for op in ops:
            previous_revenue, previous_spend = ledger.total_revenue, ledger.total_spend
            if op[0] == "advance":
                ledger.advance_day()
                days += 1
                expected_bankruptcy_days = (
                    expected_bankruptcy_days + 1 if ledger.net_worth < 0 else 0
                )
            else:
                _, revenue, spend = op
                ledger.update_financials(revenue=revenue, spend=spend)
                revenue_applied += revenue
                spend_applied += spend
                if ledger.net_worth >= 0:
                    expected_bankruptcy_days = 0

            assert ledger.net_worth == 500 - 50 * days + revenue_applied - spend_applied
            assert ledger.total_revenue >= previous_revenue
            assert ledger.total_spend >= previous_spend
            assert ledger.bankruptcy_days == expected_bankruptcy_days
            if ledger.net_worth >= 0:
                assert ledger.bankruptcy_days == 0
            assert ledger.is_bankrupt() == (ledger.bankruptcy_days >= threshold)
            assert ledger.get_available_budget() >= 0

    @given(
        a=st.integers(min_value=-5000, max_value=5000),
        b=st.integers(min_value=-5000, max_value=5000),
    )
    @settings(max_examples=100)
    def test_health_is_monotonic(self, a, b):
        """A lower net worth never classifies above a higher one."""
        ledger = BusinessLedger(1000, 50, 10)
        low, high = sorted((a, b))
        assert ledger.classify_health(net_worth=low).rank <= ledger.classify_health(
            net_worth=high
        ).rank


class TestControlLoopProperties:
    """Invariants of protective actions."""

    @given(
        spends=st.lists(
            st.decimals(min_value=0, max_value=Decimal("49.99"), places=2), min_size=1, max_size=10
        ),
        min_roas=st.floats(min_value=0.1, max_value=100),
    )
    @settings(max_examples=50)
    def test_low_spend_never_killed(self, spends, min_roas):
        loop = FinancialControlLoop(event_sink=RecordingEventSink())
        campaigns = [
            Campaign(product_id="p", platform="facebook", budget=20, spend=s) for s in spends
        ]

        assert loop.kill_losing_campaigns_from(campaigns, min_roas=min_roas) == 0
        assert all(c.status is CampaignStatus.ACTIVE for c in campaigns)

    @given(
        budgets=st.lists(st.integers(min_value=10, max_value=5000), min_size=1, max_size=8),
        spend=st.integers(min_value=0, max_value=2000),
        revenue=st.integers(min_value=0, max_value=2000),
        days=st.integers(min_value=1, max_value=10),
    )
    @settings(max_examples=50, suppress_health_check=[HealthCheck.too_slow])
    def test_budgets_never_below_minimum(self, budgets, spend, revenue, days):
        ledger = BusinessLedger(1000, 50, 10)
        for budget in budgets:
            ledger.add_campaign(
                Campaign(product_id="p", platform="tiktok", budget=budget, spend=30, revenue=20)
            )
        loop = FinancialControlLoop(event_sink=RecordingEventSink())

        for _ in range(days):
            ledger.advance_day()
            ledger.update_financials(revenue=revenue, spend=spend)
            loop.update_daily_metrics(ledger)
            for campaign in ledger.active_campaigns:
                if campaign.is_active():
                    assert campaign.budget >= MIN_CAMPAIGN_BUDGET

    @given(messages=st.lists(st.sampled_from(["a", "b", "c", "d"]), max_size=30))
    @settings(max_examples=50)
    def test_alert_deduplication(self, messages):
        log = AlertLog()
        for message in messages:
            log.add(AlertType.WARNING, message, day=0)
        assert len(log) == len(set(messages))
        assert sorted(a.message for a in log.unresolved()) == sorted(set(messages))
