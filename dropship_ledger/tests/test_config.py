"""Tests for configuration management system."""

import logging
import warnings

from pydantic import ValidationError
import pytest
import yaml

from dropship_ledger._warnings import ConfigurationWarning
from dropship_ledger.business_ledger import FinancialHealth
from dropship_ledger.config import (
    Config,
    ControlLoopConfig,
    HealthConfig,
    LedgerConfig,
    LoggingConfig,
    deep_merge,
)
from dropship_ledger.config.utils import load_yaml_sections, unflatten
from dropship_ledger.control_events import RecordingEventSink


class TestLedgerConfig:
    """Test ledger configuration validation."""

    def test_defaults(self):
        config = LedgerConfig()
        assert config.initial_capital == 1000
        assert config.daily_fee == 50
        assert config.bankruptcy_threshold == 10
        assert config.reserve_days == 7

    @pytest.mark.parametrize(
        "field_name,value",
        [("initial_capital", 0), ("daily_fee", -5), ("bankruptcy_threshold", 0)],
    )
    def test_non_positive_rejected(self, field_name, value):
        with pytest.raises(ValidationError) as exc_info:
            LedgerConfig(**{field_name: value})
        assert "greater than 0" in str(exc_info.value)


class TestHealthConfig:
    """Test health breakpoint validation."""

    def test_defaults_descend(self):
        config = HealthConfig()
        assert config.excellent_ratio > config.good_ratio > config.acceptable_ratio

    def test_non_descending_rejected(self):
        with pytest.raises(ValidationError, match="strictly descend"):
            HealthConfig(excellent_ratio=1.0, good_ratio=1.0)


class TestControlLoopConfig:
    """Test control-loop threshold validation."""

    def test_defaults(self):
        config = ControlLoopConfig()
        assert config.min_roas_threshold == 1.5
        assert config.ledger_kill_roas_threshold == 0.8
        assert config.default_kill_roas_threshold == 1.0
        assert config.min_kill_spend == 50

    def test_negative_reserve_rejected(self):
        with pytest.raises(ValidationError):
            ControlLoopConfig(emergency_reserve=-1)

    @pytest.mark.parametrize("threshold", [0.9, 1.0, 2.0, 2.5])
    def test_unreachable_tier_warns(self, threshold):
        with pytest.warns(ConfigurationWarning):
            ControlLoopConfig(min_roas_threshold=threshold)

    def test_sensible_threshold_is_silent(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", ConfigurationWarning)
            ControlLoopConfig(min_roas_threshold=1.7)


class TestConfig:
    """Test the composed configuration."""

    def test_defaults(self):
        config = Config()
        assert config.ledger.initial_capital == 1000
        assert config.logging.level == "INFO"

    def test_override(self):
        config = Config().override({"ledger.daily_fee": 25, "control.emergency_reserve": 250})
        assert config.ledger.daily_fee == 25
        assert config.control.emergency_reserve == 250
        assert config.ledger.initial_capital == 1000

    def test_override_does_not_mutate(self):
        base = Config()
        base.override({"ledger.daily_fee": 25})
        assert base.ledger.daily_fee == 50

    def test_override_unknown_section(self):
        with pytest.raises(ValueError, match="not a valid config section"):
            Config().override({"ledgr.daily_fee": 25})

    def test_override_unknown_field(self):
        with pytest.raises(ValueError, match="not a valid field in 'control'"):
            Config().override({"control.max_roas": 3})

    def test_from_dict_with_base(self):
        base = Config().override({"ledger.initial_capital": 5000})
        config = Config.from_dict({"ledger": {"daily_fee": 10}}, base_config=base)
        assert config.ledger.initial_capital == 5000
        assert config.ledger.daily_fee == 10

    def test_yaml_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "run.yaml"
        Config().override({"health.excellent_ratio": 3.0}).to_yaml(path)

        loaded = Config.from_yaml(path)
        assert loaded.health.excellent_ratio == 3.0

    def test_from_yaml_skips_private_anchors(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(
            yaml.dump({"_defaults": {"x": 1}, "ledger": {"initial_capital": 200}}),
            encoding="utf-8",
        )
        assert Config.from_yaml(path).ledger.initial_capital == 200

    def test_from_yaml_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "absent.yaml")

    def test_create_ledger(self):
        config = Config().override({"ledger.initial_capital": 2000, "health.good_ratio": 0.8})
        ledger = config.create_ledger()
        assert ledger.initial_capital == 2000
        assert ledger.classify_health(net_worth=1600) is FinancialHealth.GOOD

    def test_create_control_loop(self):
        sink = RecordingEventSink()
        loop = Config().override({"control.min_roas_threshold": 1.8}).create_control_loop(sink)
        assert loop.min_roas_threshold == 1.8
        assert loop.event_sink is sink

    def test_setup_logging(self, tmp_path):
        log_file = tmp_path / "logs" / "ledger.log"
        config = Config(
            logging=LoggingConfig(level="DEBUG", log_file=str(log_file), console_output=False)
        )
        logger = logging.getLogger("dropship_ledger")
        try:
            config.setup_logging()
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 1
            logger.debug("ledger ready")
            logger.handlers[0].flush()
            assert "ledger ready" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)

    def test_setup_logging_disabled(self):
        logger = logging.getLogger("dropship_ledger")
        before = list(logger.handlers)
        Config(logging=LoggingConfig(enabled=False)).setup_logging()
        assert logger.handlers == before


class TestDeepMerge:
    """Test recursive dictionary merging."""

    def test_nested(self):
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        merged = deep_merge(base, {"a": {"c": 20}})
        assert merged == {"a": {"b": 1, "c": 20}, "d": 3}
        assert base["a"]["c"] == 2

    def test_unflatten(self):
        assert unflatten({"ledger.daily_fee": 25, "control.min_kill_spend": 75}) == {
            "ledger": {"daily_fee": 25},
            "control": {"min_kill_spend": 75},
        }


class TestYamlSections:
    """Test reading run files."""

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("- ledger\n- control\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping of sections"):
            load_yaml_sections(path)

    def test_empty_file_is_defaults(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml_sections(path) == {}
        assert Config.from_yaml(path) == Config()


class TestLoggingConfig:
    """Test logging section parsing."""

    def test_lower_case_level(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_level_rejected(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="verbose")
