"""
Configuration for the inertial tracker.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, asdict
from typing import Dict, Any

from .math.constants import (HEADING_SENSITIVITY, INITIAL_POSITION_UNCERTAINTY, MEASUREMENT_NOISE,
                             NOMINAL_SAMPLE_PERIOD_S, NOMINAL_SAMPLE_RATE_HZ, POSITION_SCALE, PROCESS_NOISE)

logger = logging.getLogger(__name__)

FILTER_MODES = ("decoupled", "correlated")

@dataclass
class EstimatorConfig:
    """Tunables fixed at estimator construction."""

    sensitivity: float = HEADING_SENSITIVITY
    position_scale: float = POSITION_SCALE
    process_noise: float = PROCESS_NOISE
    measurement_noise: float = MEASUREMENT_NOISE
    nominal_sample_period: float = NOMINAL_SAMPLE_PERIOD_S
    initial_uncertainty: float = INITIAL_POSITION_UNCERTAINTY
    filter_mode: str = "decoupled"

    def validate(self) -> 'EstimatorConfig':
        """
        Check parameter ranges.

        Raises:
            ValueError: If any parameter is out of range
        """
        if self.nominal_sample_period <= 0:
            raise ValueError("nominal_sample_period must be positive")
        if self.process_noise < 0 or self.measurement_noise < 0:
            raise ValueError("Noise parameters must be non-negative")
        if self.initial_uncertainty < 0:
            raise ValueError("initial_uncertainty must be non-negative")
        if self.filter_mode not in FILTER_MODES:
            raise ValueError(f"Unknown filter mode: {self.filter_mode}. Use one of {FILTER_MODES}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'EstimatorConfig':
        """Build from a dict, ignoring unknown keys."""
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        return cls(**known).validate()

class Config:
    """Configuration manager for the tracker application."""

    DEFAULT_CONFIG = {
        # Estimator tunables
        "estimator": EstimatorConfig().to_dict(),

        # Simulated sensor source
        "sensors": {
            "accel_rate_hz": NOMINAL_SAMPLE_RATE_HZ,
            "gyro_rate_hz": NOMINAL_SAMPLE_RATE_HZ,
            "accel_noise_std": 0.0005,
            "gyro_noise_std": 0.001,
            "gyro_bias": 0.0
        },

        # Logging
        "logging": {
            "level": "INFO",
            "file": None
        },

        # Output configuration
        "output_rate_hz": 1.0,
        "path_history_size": 5000
    }

    def __init__(self, config_file: str = "config.json"):
        """
        Initialize configuration.

        Args:
            config_file: Path to configuration file
        """
        self.config_file = config_file
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        # Load configuration from file if it exists
        if config_file and os.path.exists(config_file):
            self.load_config()
        else:
            logger.info("Config file %s not found, using defaults", config_file)

    def load_config(self) -> bool:
        """
        Load configuration from file.

        Returns:
            True if loaded successfully
        """
        try:
            with open(self.config_file, 'r') as f:
                file_config = json.load(f)

            # Merge with defaults (file config overrides defaults)
            self._merge_config(self.config, file_config)

            logger.info("Configuration loaded from %s", self.config_file)
            return True

        except (OSError, ValueError) as e:
            logger.error("Failed to load config %s: %s", self.config_file, e)
            return False

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if saved successfully
        """
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.config, f, indent=2)

            logger.info("Configuration saved to %s", self.config_file)
            return True

        except (OSError, TypeError) as e:
            logger.error("Failed to save config %s: %s", self.config_file, e)
            return False

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]):
        """Recursively merge configuration dictionaries."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default=None):
        """Get configuration value with optional default."""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """Set configuration value."""
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def estimator_config(self) -> EstimatorConfig:
        """Build validated estimator tunables from the 'estimator' section."""
        return EstimatorConfig.from_dict(self.config["estimator"])

    # Property accessors for common configuration values
    @property
    def accel_rate_hz(self) -> float:
        return self.config["sensors"]["accel_rate_hz"]

    @property
    def gyro_rate_hz(self) -> float:
        return self.config["sensors"]["gyro_rate_hz"]

    @property
    def sensors(self) -> Dict[str, Any]:
        return self.config["sensors"]

    @property
    def log_level(self) -> str:
        return self.config["logging"]["level"]

    @property
    def log_file(self):
        return self.config["logging"]["file"]

    @property
    def output_rate_hz(self) -> float:
        return self.config["output_rate_hz"]

    @property
    def path_history_size(self) -> int:
        return self.config["path_history_size"]
