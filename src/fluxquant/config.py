"""
Configuration management for the quota engine.

Policy thresholds (lagging, anomaly ratio, overrun factor) and operational
limits are deployment settings, not code constants. They are resolved in
this order, later sources winning:

    1. EngineConfig defaults
    2. YAML file named by FLUXQUANT_CONFIG (optional)
    3. FLUXQUANT_* environment variables (a .env file is loaded first)

Usage:
    from fluxquant.config import get_config

    config = get_config()
    calculator = config.build_calculator()
    detector = config.build_detector()
"""

import logging
import os
from dataclasses import dataclass, fields, asdict
from typing import Optional, Dict, Any

import yaml
from dotenv import load_dotenv, find_dotenv

from fluxquant.exceptions import ConfigError


logger = logging.getLogger(__name__)

ENV_PREFIX = 'FLUXQUANT_'
CONFIG_FILE_VAR = 'FLUXQUANT_CONFIG'


def _parse_optional_float(value):
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in ('', 'none', 'null', 'off'):
        return None
    return float(value)


def _parse_optional_str(value):
    if value is None or not str(value).strip():
        return None
    return str(value)


_PARSERS = {
    'database_url': str,
    'lagging_threshold': int,
    'anomaly_threshold': float,
    'overrun_factor': float,
    'anomaly_min_sample': int,
    'revert_window_hours': _parse_optional_float,
    'max_reason_length': int,
    'max_comment_length': int,
    'quota_retry_attempts': int,
    'audit_log_path': str,
    'audit_log_max_bytes': int,
    'audit_log_backups': int,
    'log_file': _parse_optional_str,
    'log_level': lambda v: str(v).upper(),
}

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')


@dataclass(frozen=True)
class EngineConfig:
    """Settings shared by the writers, readers and CLI."""

    database_url: str = 'sqlite:///fluxquant.db'
    lagging_threshold: int = 50
    anomaly_threshold: float = 0.15
    overrun_factor: float = 1.1
    anomaly_min_sample: int = 0
    revert_window_hours: Optional[float] = 24
    max_reason_length: int = 500
    max_comment_length: int = 1000
    quota_retry_attempts: int = 3
    audit_log_path: str = '/var/log/fluxquant/quota_audit.log'
    audit_log_max_bytes: int = 10_000_000
    audit_log_backups: int = 5
    log_file: Optional[str] = None
    log_level: str = 'INFO'

    def __post_init__(self):
        if not 0 <= self.lagging_threshold <= 100:
            raise ConfigError(f"lagging_threshold must be within 0..100, got {self.lagging_threshold}")
        if not 0 <= self.anomaly_threshold <= 1:
            raise ConfigError(f"anomaly_threshold must be a ratio within 0..1, got {self.anomaly_threshold}")
        if self.overrun_factor < 1:
            raise ConfigError(f"overrun_factor must be >= 1, got {self.overrun_factor}")
        if self.anomaly_min_sample < 0:
            raise ConfigError(f"anomaly_min_sample must be >= 0, got {self.anomaly_min_sample}")
        if self.revert_window_hours is not None and self.revert_window_hours <= 0:
            raise ConfigError(f"revert_window_hours must be positive or None, got {self.revert_window_hours}")
        if self.max_reason_length < 1 or self.max_comment_length < 1:
            raise ConfigError("max_reason_length and max_comment_length must be positive")
        if self.quota_retry_attempts < 1:
            raise ConfigError(f"quota_retry_attempts must be >= 1, got {self.quota_retry_attempts}")
        if self.audit_log_max_bytes < 0 or self.audit_log_backups < 0:
            raise ConfigError("audit_log_max_bytes and audit_log_backups must be >= 0")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level}")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> 'EngineConfig':
        """Build a config from a plain mapping, coercing each known key."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")

        parsed = {}
        for key, value in values.items():
            try:
                parsed[key] = _PARSERS[key](value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {key}: {value!r} ({e})") from e
        return cls(**parsed)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'EngineConfig':
        """
        Load configuration from YAML file and environment variables.

        Args:
            environ: Mapping to read instead of os.environ (tests)

        Returns:
            EngineConfig

        Raises:
            ConfigError: On unreadable YAML, unknown keys or invalid values
        """
        if environ is None:
            env_file = find_dotenv(usecwd=True)
            if env_file:
                load_dotenv(env_file)
                logger.debug(f"Loaded environment from {env_file}")
            environ = os.environ

        values: Dict[str, Any] = {}

        config_file = environ.get(CONFIG_FILE_VAR)
        if config_file:
            values.update(_load_yaml(config_file))

        for name in _PARSERS:
            env_name = f"{ENV_PREFIX}{name.upper()}"
            if env_name in environ:
                values[name] = environ[env_name]

        return cls.from_mapping(values)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    # ------------------------------------------------------------------
    # Policy objects
    # ------------------------------------------------------------------
    def build_calculator(self):
        from fluxquant.accounting.calculator import ProgressCalculator
        return ProgressCalculator(lagging_threshold=self.lagging_threshold)

    def build_detector(self):
        from fluxquant.accounting.anomalies import AnomalyDetector
        return AnomalyDetector(
            anomaly_threshold=self.anomaly_threshold,
            overrun_factor=self.overrun_factor,
            min_sample=self.anomaly_min_sample,
        )


def _load_yaml(config_file: str) -> Dict[str, Any]:
    if not os.path.exists(config_file):
        raise ConfigError(f"Config file not found: {config_file}")

    with open(config_file, 'r') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")

    logger.debug(f"Loaded config from {config_file}")
    return data


# ============================================================================
# Process-wide configuration
# ============================================================================

_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Return the process configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def set_config(config: EngineConfig) -> None:
    global _config
    _config = config


def reset_config() -> None:
    global _config
    _config = None
