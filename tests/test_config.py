"""
Tests for configuration management and logging setup.
"""

import json
import logging
import os

import pytest
import yaml
from unittest.mock import patch

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import ConfigManager, get_config, reset_config, update_config
from logging_config import LOGGER_NAMESPACE, build_logging_config, get_logger, log_execution_time


class TestConfigManager:
    """Test cases for ConfigManager class."""

    def teardown_method(self):
        reset_config()

    def test_defaults(self):
        config = ConfigManager().config

        assert config.optimization.max_iterations == 1000
        assert config.optimization.tolerance == 1e-8
        assert config.optimization.frontier_points == 50
        assert config.black_litterman.risk_aversion == 2.5
        assert config.black_litterman.tau == 0.025
        assert config.constraints.long_only is True
        assert config.constraints.fully_invested is False
        assert config.output.format == "json"
        assert config.log_level == "WARNING"

    def test_yaml_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "optimization": {"max_iterations": 50},
            "black_litterman": {"tau": 0.05},
        }))

        config = ConfigManager(str(path)).config
        assert config.optimization.max_iterations == 50
        assert config.optimization.tolerance == 1e-8
        assert config.black_litterman.tau == 0.05

    def test_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"constraints": {"box_lower": 0.0, "box_upper": 0.5}}))

        config = ConfigManager(str(path)).config
        assert config.constraints.box_upper == 0.5

    def test_unsupported_file(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[optimization]\n")

        with pytest.raises(ValueError, match="Unsupported config file format"):
            ConfigManager(str(path))

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"black_litterman": {"risk_aversion": 3.0}}))

        with patch.dict(os.environ, {"ALLOC_RISK_AVERSION": "4.5", "ALLOC_MAX_ITERATIONS": "20",
                                     "ALLOC_OUTPUT_FORMAT": "csv"}):
            config = ConfigManager(str(path)).config

        assert config.black_litterman.risk_aversion == 4.5
        assert config.optimization.max_iterations == 20
        assert config.output.format == "csv"

    def test_validation(self, tmp_path):
        path = tmp_path / "config.json"

        for bad in (
            {"optimization": {"tolerance": 0}},
            {"optimization": {"frontier_points": 1}},
            {"black_litterman": {"default_confidence": 1.5}},
            {"constraints": {"box_lower": 0.1}},
            {"output": {"format": "xml"}},
        ):
            path.write_text(json.dumps(bad))
            with pytest.raises(ValueError):
                ConfigManager(str(path))

    def test_update_config(self):
        manager = ConfigManager()
        manager.update_config(**{"black_litterman.tau": 0.1, "log_level": "DEBUG"})

        assert manager.config.black_litterman.tau == 0.1
        assert manager.config.log_level == "DEBUG"

        with pytest.raises(KeyError):
            manager.update_config(**{"optimization.unknown": 1})

    def test_save_config(self, tmp_path):
        manager = ConfigManager()
        path = tmp_path / "saved.yaml"
        manager.save_config(str(path))

        reloaded = ConfigManager(str(path)).config
        assert reloaded == manager.config

    def test_global_config(self):
        update_config(**{"optimization.frontier_points": 7})
        assert get_config().optimization.frontier_points == 7

        reset_config()
        assert get_config().optimization.frontier_points == 50


class TestLogging:
    """Test cases for logging configuration."""

    def test_logger_namespace(self):
        assert get_logger("markowitz_optimizer").name == f"{LOGGER_NAMESPACE}.markowitz_optimizer"

    def test_build_logging_config(self, tmp_path):
        config = build_logging_config("info", log_file=str(tmp_path / "engine.log"))

        assert set(config["handlers"]) == {"console", "file"}
        assert config["loggers"][LOGGER_NAMESPACE]["level"] == "INFO"
        assert config["loggers"][LOGGER_NAMESPACE]["propagate"] is False

        assert build_logging_config(enable_console=False)["handlers"] == {}

    def test_log_execution_time(self, caplog):
        @log_execution_time
        def square(x):
            return x * x

        logger = logging.getLogger(LOGGER_NAMESPACE)
        logger.propagate = True
        try:
            with caplog.at_level(logging.INFO, logger=LOGGER_NAMESPACE):
                assert square(3) == 9
        finally:
            logger.propagate = False

        assert any("Completed" in record.getMessage() for record in caplog.records)
