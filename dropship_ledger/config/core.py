"""Top-level ``Config`` for a ledger simulation run.

``Config`` groups the ledger, health, control-loop and logging sections,
loads them from YAML, applies dot-notation overrides, and builds the ledger
and control loop they describe.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, Field
import yaml

from .control import ControlLoopConfig
from .ledger import HealthConfig, LedgerConfig
from .reporting import LoggingConfig
from .utils import deep_merge, load_yaml_sections, unflatten

if TYPE_CHECKING:
    from ..business_ledger import BusinessLedger
    from ..control_events import ControlEventSink
    from ..control_loop import FinancialControlLoop


class Config(BaseModel):
    """Complete configuration for one simulation run.

    Every section has defaults, so ``Config()`` describes a $1,000 business
    paying $50 a day under the default protection policy.

    Examples:
        Defaults::

            config = Config()
            ledger = config.create_ledger()
            loop = config.create_control_loop()

        A leaner business with a larger cash buffer::

            config = Config().override({"ledger.daily_fee": 25, "control.emergency_reserve": 250})

        From a run file::

            config = Config.from_yaml(Path("run.yaml"))
    """

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    control: ControlLoopConfig = Field(default_factory=ControlLoopConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # ------------------------------------------------------------------ #
    #  Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load and validate a YAML run file.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            ValueError: If the file is not a mapping of sections.
            pydantic.ValidationError: If a section fails validation.
        """
        return cls(**load_yaml_sections(Path(path)))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_config: Optional["Config"] = None) -> "Config":
        """Build a config from section dictionaries.

        Args:
            data: Section name to field values.
            base_config: When given, ``data`` is merged onto its values so
                that omitted fields keep the base settings.
        """
        if base_config is None:
            return cls(**data)
        return cls(**deep_merge(base_config.model_dump(), data))

    def override(self, overrides: Dict[str, Any]) -> "Config":
        """Return a copy with dot-notation fields replaced.

        Args:
            overrides: ``"section.field"`` keys, for example
                ``{"control.min_roas_threshold": 2.0}``.

        Returns:
            A new, re-validated Config; ``self`` is unchanged.

        Raises:
            ValueError: If a key names an unknown section or field.
        """
        for key in overrides:
            self._check_path(key)
        return Config.from_dict(unflatten(overrides), base_config=self)

    @classmethod
    def _check_path(cls, key: str) -> None:
        section, _, field_name = key.partition(".")
        sections = cls.model_fields
        if section not in sections:
            raise ValueError(
                f"Invalid config path '{key}': '{section}' is not a valid config section. "
                f"Valid sections: {_names(sections)}"
            )

        model = sections[section].annotation
        leaf = field_name.split(".")[0]
        if leaf and isinstance(model, type) and issubclass(model, BaseModel):
            if leaf not in model.model_fields:
                raise ValueError(
                    f"Invalid config path '{key}': '{leaf}' is not a valid field in "
                    f"'{section}'. Valid fields: {_names(model.model_fields)}"
                )

    def to_yaml(self, path: Path) -> None:
        """Write the configuration as a YAML run file, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)

    # ------------------------------------------------------------------ #
    #  Builders
    # ------------------------------------------------------------------ #

    def create_ledger(self) -> "BusinessLedger":
        """Build a fresh ledger from the ledger and health sections."""
        from ..business_ledger import BusinessLedger

        return BusinessLedger.from_config(self.ledger, health_config=self.health)

    def create_control_loop(
        self, event_sink: Optional["ControlEventSink"] = None
    ) -> "FinancialControlLoop":
        """Build a control loop from the control section.

        Args:
            event_sink: Receiver for alerts and protective actions. Defaults
                to a :class:`~dropship_ledger.control_events.LoggingEventSink`.
        """
        from ..control_loop import FinancialControlLoop

        return FinancialControlLoop.from_config(self.control, event_sink=event_sink)

    def setup_logging(self) -> None:
        """Attach handlers to the ``dropship_ledger`` logger per the logging section.

        Existing handlers on that logger are replaced. Does nothing when
        logging is disabled.
        """
        if not self.logging.enabled:
            return

        import logging
        import sys

        package_logger = logging.getLogger("dropship_ledger")
        package_logger.setLevel(self.logging.level)
        package_logger.handlers.clear()

        handlers: List[logging.Handler] = []
        if self.logging.console_output:
            handlers.append(logging.StreamHandler(sys.stdout))
        if self.logging.log_file:
            log_path = Path(self.logging.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

        formatter = logging.Formatter(self.logging.format, datefmt=self.logging.date_format)
        for handler in handlers:
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)


def _names(fields: Dict[str, Any]) -> str:
    return ", ".join(sorted(fields))
