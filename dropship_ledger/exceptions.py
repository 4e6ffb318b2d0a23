"""Exceptions raised by the business ledger and its entities.

Both error kinds are fail-fast: callers get the exception, nothing is
coerced into a valid-looking value.
"""


class LedgerError(Exception):
    """Base class for errors raised by the dropship_ledger core."""


class ValidationError(LedgerError, ValueError):
    """Raised for invalid constructor arguments or negative money flows.

    Examples:
        Rejecting a negative revenue injection::

            try:
                ledger.update_financials(revenue=-5, spend=0)
            except ValidationError as e:
                print(f"Rejected: {e}")
    """


class InvalidTransitionError(ValidationError):
    """Raised when a product or campaign status change is not allowed."""

    def __init__(self, entity_kind: str, current: str, requested: str) -> None:
        self.entity_kind = entity_kind
        self.current = current
        self.requested = requested
        super().__init__(
            f"Invalid {entity_kind} status transition from {current} to {requested}"
        )


class DuplicateError(LedgerError, ValueError):
    """Raised when an entity with an already-registered id is added.

    Attributes:
        entity_kind: ``"product"`` or ``"campaign"``.
        entity_id: The colliding id.
    """

    def __init__(self, entity_kind: str, entity_id: str) -> None:
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(f"{entity_kind.capitalize()} '{entity_id}' already exists in the ledger")
