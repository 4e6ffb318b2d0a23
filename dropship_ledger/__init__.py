"""Dropship Ledger"""

from ._version import __version__

# Use lazy imports to avoid import issues during test discovery
# Direct imports are defined but modules are imported only when accessed

__all__ = [
    "__version__",
    "ActionKind",
    "Alert",
    "AlertLog",
    "AlertType",
    "BankruptcyRisk",
    "BusinessLedger",
    "Campaign",
    "CampaignStatus",
    "Config",
    "ControlEventSink",
    "DailyMetricsSnapshot",
    "DuplicateError",
    "FinancialControlLoop",
    "FinancialHealth",
    "FinancialReport",
    "LedgerError",
    "LoggingEventSink",
    "Platform",
    "Product",
    "ProductStatus",
    "ProjectionEngine",
    "ProtectiveAction",
    "RecordingEventSink",
    "ValidationError",
]


def __getattr__(name):
    """Lazy import modules to avoid circular dependencies during test discovery."""
    if name in ["Alert", "AlertLog", "AlertType"]:
        from .alerts import Alert, AlertLog, AlertType

        return locals()[name]
    elif name == "BusinessLedger" or name == "FinancialHealth":
        from .business_ledger import BusinessLedger, FinancialHealth

        return locals()[name]
    elif name in ["Campaign", "CampaignStatus", "Platform", "Product", "ProductStatus"]:
        from .models import Campaign, CampaignStatus, Platform, Product, ProductStatus

        return locals()[name]
    elif name == "Config":
        from .config import Config

        return Config
    elif name in [
        "ActionKind",
        "ControlEventSink",
        "LoggingEventSink",
        "ProtectiveAction",
        "RecordingEventSink",
    ]:
        from .control_events import (
            ActionKind,
            ControlEventSink,
            LoggingEventSink,
            ProtectiveAction,
            RecordingEventSink,
        )

        return locals()[name]
    elif name == "FinancialControlLoop" or name == "FinancialReport":
        from .control_loop import FinancialControlLoop, FinancialReport

        return locals()[name]
    elif name == "DailyMetricsSnapshot":
        from .daily_metrics import DailyMetricsSnapshot

        return DailyMetricsSnapshot
    elif name in ["DuplicateError", "LedgerError", "ValidationError"]:
        from .exceptions import DuplicateError, LedgerError, ValidationError

        return locals()[name]
    elif name == "BankruptcyRisk" or name == "ProjectionEngine":
        from .projections import BankruptcyRisk, ProjectionEngine

        return locals()[name]
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
