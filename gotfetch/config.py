"""
Settings for gotfetch: the packaged config.yaml (or another YAML file),
then GOTFETCH_* environment variables, a .env file being loaded first.

Each section is turned into a typed settings object and validated, so a bad
value fails when the configuration is loaded rather than on the first request.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from dotenv import load_dotenv

from .redirects import DEFAULT_MAX_REDIRECTS

REDIRECT_MODES = ('follow', 'manual', 'error')
LOG_RENDERERS = ('json', 'console')

# env var -> (section, key, converter)
ENV_OVERRIDES = {
    'GOTFETCH_USER_AGENT': ('client', 'user_agent', str),
    'GOTFETCH_TIMEOUT': ('client', 'timeout', float),
    'GOTFETCH_MAX_CONNECTIONS': ('client', 'max_connections', int),
    'GOTFETCH_METHOD': ('request', 'method', str),
    'GOTFETCH_MAX_REDIRECTS': ('request', 'max_redirects', int),
    'GOTFETCH_LOG_LEVEL': ('logging', 'level', str),
    'GOTFETCH_LOG_RENDERER': ('logging', 'renderer', str),
}


def _check_count(section: str, key: str, value: Any):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{section}.{key} must be a non-negative integer, got {value!r}")


@dataclass
class RequestDefaults:
    """Transport defaults applied under every request's own options."""
    method: str = 'POST'
    mode: str = 'cors'
    credentials: str = 'include'
    redirect: str = 'follow'
    referrer_policy: str = 'no-referrer-when-downgrade'
    max_redirects: int = DEFAULT_MAX_REDIRECTS

    def validate(self) -> 'RequestDefaults':
        if not isinstance(self.method, str) or not self.method.strip():
            raise ValueError(f"request.method must be a non-empty string, got {self.method!r}")
        self.method = self.method.strip().upper()
        if self.redirect not in REDIRECT_MODES:
            raise ValueError(f"request.redirect must be one of {', '.join(REDIRECT_MODES)}, got {self.redirect!r}")
        _check_count('request', 'max_redirects', self.max_redirects)
        return self


@dataclass
class ClientSettings:
    """httpx client construction settings."""
    user_agent: str = 'gotfetch/1.0'
    timeout: float = 30.0
    max_connections: int = 20
    max_keepalive_connections: int = 10
    max_redirects: int = 20

    def validate(self) -> 'ClientSettings':
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            raise ValueError(f"client.timeout must be a positive number, got {self.timeout!r}")
        for key in ('max_connections', 'max_keepalive_connections', 'max_redirects'):
            _check_count('client', key, getattr(self, key))
        return self

    def executor_kwargs(self) -> Dict[str, Any]:
        return {
            'user_agent': self.user_agent,
            'timeout': float(self.timeout),
            'max_connections': self.max_connections,
            'max_keepalive_connections': self.max_keepalive_connections,
            'transport_max_redirects': self.max_redirects,
        }


@dataclass
class LoggingSettings:
    level: str = 'INFO'
    renderer: str = 'json'

    def validate(self) -> 'LoggingSettings':
        self.level = str(self.level).upper()
        if not isinstance(logging.getLevelName(self.level), int):
            raise ValueError(f"logging.level is not a logging level: {self.level!r}")
        if self.renderer not in LOG_RENDERERS:
            raise ValueError(f"logging.renderer must be one of {', '.join(LOG_RENDERERS)}, got {self.renderer!r}")
        return self


def _build_section(cls, name: str, values: Any):
    """Instantiate and validate one settings section, rejecting unknown keys."""
    if values is None:
        values = {}
    if not isinstance(values, Mapping):
        raise ValueError(f"'{name}' section must be a mapping, got {type(values).__name__}")
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {', '.join(sorted(unknown))}")
    return cls(**values).validate()


class Config:
    """Validated gotfetch settings: `client`, `request` and `logging`."""

    def __init__(self, config_path: str = None, load_env_file: bool = True):
        """Load and validate configuration.

        Args:
            config_path: Path to a YAML file. If None, uses the config.yaml
                        shipped next to this module.
            load_env_file: Load a .env file into the environment before
                        applying GOTFETCH_* overrides.
        """
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"
        if load_env_file:
            load_dotenv()

        self.config_path = Path(config_path)
        raw = self._apply_env_overrides(self._read_yaml())

        self.client = _build_section(ClientSettings, 'client', raw.get('client'))
        self.request = _build_section(RequestDefaults, 'request', raw.get('request'))
        self.logging = _build_section(LoggingSettings, 'logging', raw.get('logging'))

    def _read_yaml(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r') as f:
                raw = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file must hold a mapping: {self.config_path}")
        return raw

    def _apply_env_overrides(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        for env_var, (section, key, convert) in ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                converted = convert(value)
            except ValueError:
                raise ValueError(f"{env_var}={value!r} is not a valid {convert.__name__}")
            if not isinstance(raw.get(section), dict):
                raw[section] = {}
            raw[section][key] = converted
        return raw
