"""Fixed policy constants for the ledger and its protective control loop.

These values are part of the control policy itself rather than tunable
thresholds; tunable thresholds live on :class:`ControlLoopConfig`.
"""

MIN_CAMPAIGN_BUDGET: float = 10.0
"""Floor applied by every automated budget reduction of an active campaign."""

RESERVE_DAYS: int = 7
"""Days of fixed fees withheld from the available budget."""

STATISTICS_WINDOW: int = 7
"""Trailing call-history window for burn rate, projections, and trends."""

NEGATIVE_TREND_WINDOW: int = 3
"""History entries inspected by the negative cash-flow trend check."""

NEGATIVE_TREND_MIN_HISTORY: int = 4
"""History length required before the negative trend check runs."""

ROAS_ALERT_MIN_SPEND: float = 100.0
"""Cumulative spend required before a low-ROAS warning is raised."""

RUNWAY_ALERT_DAYS: int = 7
"""Runway (days until bankruptcy) below which a critical alert is raised."""

IMMINENT_BANKRUPTCY_DAYS: int = 5
"""Runway below which all active budgets are additionally halved."""

IMMINENT_BUDGET_FACTOR: float = 0.5

EMERGENCY_BUDGET_FACTOR: float = 0.3
"""Budget multiplier applied to every active campaign under critical health."""

EMERGENCY_KILL_ROAS: float = 1.0
EMERGENCY_KILL_MIN_SPEND: float = 25.0

EXCELLENT_ROAS: float = 3.0
GOOD_ROAS: float = 2.0
BREAKEVEN_ROAS: float = 1.0

PROJECTION_DAYS: int = 30

# Projected net worth cutoffs, checked in order (first match wins).
RISK_CRITICAL_BELOW: float = -500.0
RISK_HIGH_BELOW: float = 0.0
RISK_MEDIUM_BELOW: float = 200.0
RISK_LOW_BELOW: float = 500.0

RELATIVE_TREND_BAND: float = 0.10
"""Relative change (10%) separating a stable trend from a moving one."""

MARGIN_TREND_BAND: float = 5.0
"""Absolute profit-margin change (percentage points) for margin trends."""

HIGH_BURN_FEE_MULTIPLE: int = 3
"""Burn rate above this multiple of the daily fee triggers a recommendation."""

# Product readiness gates.
MIN_MARKUP_PERCENT: float = 200.0
"""Markup over supplier price (margin / supplier price) a product must reach."""

TESTING_MIN_CONTENT_SCORE: int = 60
TESTING_MAX_COMPETITORS: int = 50
SCALING_MIN_CONTENT_SCORE: int = 70
