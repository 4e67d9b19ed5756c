"""
Configuration management for the allocation engine.

This module provides centralized configuration with support for JSON/YAML
configuration files, environment variables, and default values. Defaults
mirror the engine's numerical constants.
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from constants import (
    DEFAULT_FRONTIER_POINTS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_RISK_AVERSION,
    DEFAULT_TAU,
    DEFAULT_TOLERANCE,
    DEFAULT_VIEW_CONFIDENCE,
)


@dataclass
class OptimizationConfig:
    """Configuration for the Markowitz optimizer."""
    max_iterations: int
    tolerance: float
    frontier_points: int


@dataclass
class BlackLittermanConfig:
    """Configuration for the Black-Litterman model."""
    risk_aversion: float
    tau: float
    default_confidence: float


@dataclass
class ConstraintConfig:
    """Default constraint set applied when no constraints file is given."""
    fully_invested: bool
    long_only: bool
    box_lower: Optional[float]
    box_upper: Optional[float]


@dataclass
class OutputConfig:
    """Configuration for result output."""
    format: str


@dataclass
class SystemConfig:
    """Main system configuration."""
    optimization: OptimizationConfig
    black_litterman: BlackLittermanConfig
    constraints: ConstraintConfig
    output: OutputConfig
    log_level: str


# Environment variable -> (config path, converter)
ENV_MAPPINGS = {
    "ALLOC_LOG_LEVEL": (("log_level",), str),
    "ALLOC_MAX_ITERATIONS": (("optimization", "max_iterations"), int),
    "ALLOC_TOLERANCE": (("optimization", "tolerance"), float),
    "ALLOC_FRONTIER_POINTS": (("optimization", "frontier_points"), int),
    "ALLOC_RISK_AVERSION": (("black_litterman", "risk_aversion"), float),
    "ALLOC_TAU": (("black_litterman", "tau"), float),
    "ALLOC_OUTPUT_FORMAT": (("output", "format"), str),
}


class ConfigManager:
    """Manages system configuration with multiple sources."""

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to configuration file (JSON or YAML)
        """
        self.config_file = config_file
        self._config = self._load_config()

    def _load_config(self) -> SystemConfig:
        """Load configuration: defaults, then file, then environment."""
        config_dict = self._get_default_config()

        if self.config_file and os.path.exists(self.config_file):
            file_config = self._load_config_file(self.config_file)
            config_dict = self._merge_configs(config_dict, file_config or {})

        config_dict = self._merge_configs(config_dict, self._load_env_config())

        return self._dict_to_config(config_dict)

    def _get_default_config(self) -> Dict[str, Any]:
        return {
            "optimization": {
                "max_iterations": DEFAULT_MAX_ITERATIONS,
                "tolerance": DEFAULT_TOLERANCE,
                "frontier_points": DEFAULT_FRONTIER_POINTS,
            },
            "black_litterman": {
                "risk_aversion": DEFAULT_RISK_AVERSION,
                "tau": DEFAULT_TAU,
                "default_confidence": DEFAULT_VIEW_CONFIDENCE,
            },
            "constraints": {
                "fully_invested": False,
                "long_only": True,
                "box_lower": None,
                "box_upper": None,
            },
            "output": {
                "format": "json",
            },
            "log_level": "WARNING",
        }

    def _load_config_file(self, config_file: str) -> Dict[str, Any]:
        """Load configuration from a JSON or YAML file."""
        file_path = Path(config_file)

        with open(file_path, 'r') as f:
            if file_path.suffix.lower() in ['.yaml', '.yml']:
                return yaml.safe_load(f)
            elif file_path.suffix.lower() == '.json':
                return json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {file_path.suffix}")

    def _load_env_config(self) -> Dict[str, Any]:
        env_config: Dict[str, Any] = {}

        for env_var, (config_path, convert) in ENV_MAPPINGS.items():
            if env_var not in os.environ:
                continue

            current = env_config
            for key in config_path[:-1]:
                current = current.setdefault(key, {})
            current[config_path[-1]] = convert(os.environ[env_var])

        return env_config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> SystemConfig:
        config = SystemConfig(
            optimization=OptimizationConfig(**config_dict["optimization"]),
            black_litterman=BlackLittermanConfig(**config_dict["black_litterman"]),
            constraints=ConstraintConfig(**config_dict["constraints"]),
            output=OutputConfig(**config_dict["output"]),
            log_level=config_dict["log_level"],
        )
        self._validate(config)
        return config

    @staticmethod
    def _validate(config: SystemConfig) -> None:
        if config.optimization.max_iterations <= 0:
            raise ValueError("optimization.max_iterations must be positive")
        if config.optimization.tolerance <= 0:
            raise ValueError("optimization.tolerance must be positive")
        if config.optimization.frontier_points < 2:
            raise ValueError("optimization.frontier_points must be at least 2")
        if config.black_litterman.risk_aversion <= 0:
            raise ValueError("black_litterman.risk_aversion must be positive")
        if config.black_litterman.tau <= 0:
            raise ValueError("black_litterman.tau must be positive")
        if not 0.0 <= config.black_litterman.default_confidence <= 1.0:
            raise ValueError("black_litterman.default_confidence must be in [0, 1]")
        if (config.constraints.box_lower is None) != (config.constraints.box_upper is None):
            raise ValueError("constraints.box_lower and constraints.box_upper must be set together")
        if config.output.format not in ("json", "csv"):
            raise ValueError(f"Unsupported output format: {config.output.format}")

    @property
    def config(self) -> SystemConfig:
        return self._config

    def save_config(self, output_file: str) -> None:
        """Save current configuration to a JSON or YAML file."""
        config_dict = asdict(self._config)

        file_path = Path(output_file)
        with open(file_path, 'w') as f:
            if file_path.suffix.lower() in ['.yaml', '.yml']:
                yaml.dump(config_dict, f, default_flow_style=False, indent=2)
            elif file_path.suffix.lower() == '.json':
                json.dump(config_dict, f, indent=2)
            else:
                raise ValueError(f"Unsupported output format: {file_path.suffix}")

    def update_config(self, **kwargs) -> None:
        """Update configuration values; nested keys use dots ('black_litterman.tau')."""
        config_dict = asdict(self._config)

        for key, value in kwargs.items():
            current = config_dict
            keys = key.split('.')
            for k in keys[:-1]:
                current = current[k]
            if keys[-1] not in current:
                raise KeyError(f"Unknown configuration key: {key}")
            current[keys[-1]] = value

        self._config = self._dict_to_config(config_dict)


# Global configuration instance
_config_manager = None


def get_config(config_file: Optional[str] = None) -> SystemConfig:
    """Get global configuration instance."""
    global _config_manager

    if _config_manager is None or (config_file and config_file != _config_manager.config_file):
        _config_manager = ConfigManager(config_file)

    return _config_manager.config


def update_config(**kwargs) -> None:
    """Update global configuration."""
    global _config_manager

    if _config_manager is None:
        _config_manager = ConfigManager()

    _config_manager.update_config(**kwargs)


def reset_config() -> None:
    """Drop the global configuration so the next ``get_config`` reloads it."""
    global _config_manager
    _config_manager = None
