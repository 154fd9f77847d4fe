"""Environment overrides for the Gemini connection and logging.

Recognised variables (a ``.env`` file in the working directory wins over the
process environment):

    GEMINI_API_KEY      key for the segmentation model
    GEMINI_MODEL        model id used for the precision preset
    GEMINI_TIMEOUT      request timeout in seconds, 5-300
    DEBUG_LOGGING       true/1/yes/on switches to DEBUG
    RESULTS_EXPORT_DIR  default folder for CSV exports
"""
import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from ..core.exceptions import ConfigError

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({'true', '1', 'yes', 'on'})
_QUOTES = ('"', "'")

TIMEOUT_RANGE = (5, 300)


class EnvironmentConfigError(ConfigError):
    """An environment variable is set to something unusable."""


@dataclass(frozen=True)
class EnvironmentConfig:
    gemini_api_key: Optional[str] = None
    gemini_model: Optional[str] = None
    gemini_timeout: Optional[int] = None
    debug_logging: bool = False
    results_export_dir: Optional[str] = None

    @property
    def is_api_key_configured(self) -> bool:
        return bool(self.gemini_api_key)


def validate_numeric_range(value: Union[str, int, float],
                           min_val: Optional[Union[int, float]] = None,
                           max_val: Optional[Union[int, float]] = None,
                           value_type: type = int) -> Union[int, float]:
    """Convert ``value`` with ``value_type`` and check it lies in [min_val, max_val].

    Raises:
        EnvironmentConfigError: not a number of that type, or out of range
    """
    try:
        number = value_type(value)
    except (TypeError, ValueError):
        raise EnvironmentConfigError(f"{value!r} is not a valid {value_type.__name__}")

    too_low = min_val is not None and number < min_val
    too_high = max_val is not None and number > max_val
    if too_low or too_high:
        raise EnvironmentConfigError(f"{number} is outside [{min_val}, {max_val}]")
    return number


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return value[1:-1]
    return value


def load_env_file(env_path: Optional[str] = None) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` lines; blank lines and ``#`` comments are skipped.

    A missing or unreadable file yields an empty dict.
    """
    path = Path(env_path or '.env')
    if not path.is_file():
        logger.debug(f"No env file at {path}")
        return {}

    values: Dict[str, str] = {}
    try:
        lines = path.read_text(encoding='utf-8').splitlines()
    except OSError as e:
        logger.error(f"Cannot read env file {path}: {e}")
        return values

    for number, raw in enumerate(lines, 1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        key, sep, value = line.partition('=')
        if not sep:
            logger.warning(f"{path}:{number}: expected KEY=VALUE, got {line!r}")
            continue
        values[key.strip()] = _unquote(value.strip())

    logger.info(f"Read {len(values)} variables from {path}")
    return values


def _lookup(name: str, file_values: Mapping[str, str]) -> Optional[str]:
    value = file_values[name] if name in file_values else os.getenv(name)
    return value or None


def load_environment_config(env_file_path: Optional[str] = None) -> EnvironmentConfig:
    """Collect the recognised variables into an ``EnvironmentConfig``.

    Raises:
        EnvironmentConfigError: GEMINI_TIMEOUT is not an integer in range
    """
    file_values = load_env_file(env_file_path)

    timeout = _lookup('GEMINI_TIMEOUT', file_values)
    export_dir = _lookup('RESULTS_EXPORT_DIR', file_values)
    debug = _lookup('DEBUG_LOGGING', file_values) or ''

    config = EnvironmentConfig(
        gemini_api_key=_lookup('GEMINI_API_KEY', file_values),
        gemini_model=_lookup('GEMINI_MODEL', file_values),
        gemini_timeout=validate_numeric_range(timeout, *TIMEOUT_RANGE) if timeout else None,
        debug_logging=debug.lower() in _TRUTHY,
        results_export_dir=os.path.normpath(export_dir) if export_dir else None,
    )

    if not config.is_api_key_configured:
        logger.info("GEMINI_API_KEY not set in the environment")
    return config


__all__ = [
    "EnvironmentConfig",
    "EnvironmentConfigError",
    "load_environment_config",
    "load_env_file",
    "validate_numeric_range",
]
