"""Configuration management using Pydantic v2 models.

Sub-modules:
    constants: Fixed policy constants of the protective control loop.
    core: Master Config class that composes all sub-configs.
    ledger: Ledger parameters and financial-health breakpoints.
    control: Control-loop thresholds.
    reporting: Logging configuration.

Examples:
    Quick start with defaults::

        from dropship_ledger.config import Config

        config = Config()
        ledger = config.create_ledger()

    Loading from file::

        config = Config.from_yaml(Path("run.yaml"))

Note:
    All monetary values are in nominal dollars. Ratios are expressed as
    decimals (2.0 = twice the initial capital).
"""

from .control import ControlLoopConfig
from .core import Config
from .ledger import HealthConfig, LedgerConfig
from .reporting import LoggingConfig
from .utils import deep_merge

__all__ = [
    "Config",
    "ControlLoopConfig",
    "HealthConfig",
    "LedgerConfig",
    "LoggingConfig",
    "deep_merge",
]
