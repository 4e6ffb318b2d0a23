"""Custom warning classes for the dropship_ledger package.

These warning classes allow callers to programmatically filter, suppress,
or capture warnings using Python's standard ``warnings`` module.

Example:
    Silence threshold warnings while sweeping control-loop settings::

        import warnings
        from dropship_ledger._warnings import ConfigurationWarning

        warnings.filterwarnings("ignore", category=ConfigurationWarning)
"""


class DropshipLedgerWarning(UserWarning):
    """Base class for all dropship-ledger warnings."""


class ConfigurationWarning(DropshipLedgerWarning):
    """Unusual or internally inconsistent configuration values.

    Raised during config validation when a threshold makes part of a
    classification unreachable (e.g. a minimum ROAS below breakeven).
    """


class DataQualityWarning(DropshipLedgerWarning):
    """Runtime data-quality observations.

    Raised when the control loop is asked to analyse a history that is too
    short or otherwise unsuitable for the requested statistic.
    """
