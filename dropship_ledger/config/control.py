"""Protective control-loop thresholds.

Since the control loop mutates campaign budgets and statuses on its own,
every tunable threshold is validated here before a loop is built.
"""

import warnings

from pydantic import BaseModel, Field, model_validator

from .._warnings import ConfigurationWarning
from .constants import BREAKEVEN_ROAS, GOOD_ROAS


class ControlLoopConfig(BaseModel):
    """Thresholds of the financial control loop.

    Attributes:
        min_roas_threshold: Target ROAS; below it a warning is raised and
            performance is at best *poor*.
        max_daily_spend_limit: Spend increase between two consecutive calls
            above which a warning is raised.
        emergency_reserve: Cash buffer the protective logic tries to keep.
        bankruptcy_protection_enabled: Whether protective mutations run.
        ledger_kill_roas_threshold: Kill threshold used when sweeping the
            ledger's own campaigns.
        default_kill_roas_threshold: Kill threshold used for caller-supplied
            campaign lists when none is given.
        min_kill_spend: Spend a campaign must reach before it can be killed.
    """

    min_roas_threshold: float = Field(default=1.5, gt=0, description="Target ROAS")
    max_daily_spend_limit: float = Field(
        default=1000.0, gt=0, description="Per-call spend increase limit"
    )
    emergency_reserve: float = Field(default=100.0, ge=0, description="Emergency cash reserve")
    bankruptcy_protection_enabled: bool = Field(
        default=True, description="Apply protective budget and campaign actions"
    )
    ledger_kill_roas_threshold: float = Field(
        default=0.8, gt=0, description="Kill threshold for the ledger's campaigns"
    )
    default_kill_roas_threshold: float = Field(
        default=1.0, gt=0, description="Kill threshold for supplied campaign lists"
    )
    min_kill_spend: float = Field(
        default=50.0, ge=0, description="Minimum spend before a campaign may be killed"
    )

    @model_validator(mode="after")
    def warn_unreachable_tiers(self):
        """Warn when the target ROAS collapses a performance tier."""
        if self.min_roas_threshold <= BREAKEVEN_ROAS:
            warnings.warn(
                f"min_roas_threshold {self.min_roas_threshold} is at or below breakeven; "
                "the 'poor' ROAS tier can never be reached",
                ConfigurationWarning,
                stacklevel=2,
            )
        elif self.min_roas_threshold >= GOOD_ROAS:
            warnings.warn(
                f"min_roas_threshold {self.min_roas_threshold} is at or above {GOOD_ROAS}; "
                "the 'acceptable' ROAS tier can never be reached",
                ConfigurationWarning,
                stacklevel=2,
            )
        return self
