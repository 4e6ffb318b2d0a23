"""Business ledger and financial-health configuration.

Contains the parameters a :class:`~dropship_ledger.business_ledger.BusinessLedger`
is constructed with and the breakpoints of its five-tier health
classification.
"""

from pydantic import BaseModel, Field, model_validator

from .constants import RESERVE_DAYS


class LedgerConfig(BaseModel):
    """Financial parameters of one simulation run.

    Attributes:
        initial_capital: Starting cash. Must be positive.
        daily_fee: Fixed operating fee charged on every day advance.
        bankruptcy_threshold: Consecutive negative-net-worth days tolerated
            before the business is declared insolvent.
        reserve_days: Days of fixed fees withheld from the available budget.
        max_error_count: Collaborator error count treated as excessive.

    Examples:
        Tight runway for stress testing::

            config = LedgerConfig(initial_capital=200, daily_fee=50, bankruptcy_threshold=3)
    """

    initial_capital: float = Field(default=1000.0, gt=0, description="Starting cash in dollars")
    daily_fee: float = Field(default=50.0, gt=0, description="Fixed fee charged per day")
    bankruptcy_threshold: int = Field(
        default=10, gt=0, description="Consecutive negative days before bankruptcy"
    )
    reserve_days: int = Field(
        default=RESERVE_DAYS, ge=0, description="Days of fees reserved from available budget"
    )
    max_error_count: int = Field(
        default=10, gt=0, description="Error count at which errors are considered excessive"
    )


class HealthConfig(BaseModel):
    """Breakpoints of the financial-health classification.

    Each breakpoint is a ratio of current net worth to initial capital. A
    ledger at or above ``excellent_ratio`` is *excellent*, at or above
    ``good_ratio`` is *good*, at or above ``acceptable_ratio`` is
    *acceptable*, and anything lower is *critical*. *bankrupt* overrides
    every tier.
    """

    excellent_ratio: float = Field(default=2.0, description="Net worth multiple for excellent")
    good_ratio: float = Field(default=1.0, description="Net worth multiple for good")
    acceptable_ratio: float = Field(default=0.5, description="Net worth multiple for acceptable")

    @model_validator(mode="after")
    def validate_descending(self):
        """Ensure breakpoints strictly descend so tiers stay ordered."""
        if not self.excellent_ratio > self.good_ratio > self.acceptable_ratio:
            raise ValueError(
                "Health breakpoints must strictly descend: "
                f"excellent ({self.excellent_ratio}) > good ({self.good_ratio}) "
                f"> acceptable ({self.acceptable_ratio})"
            )
        return self
