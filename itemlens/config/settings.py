"""Typed application settings.

``load_config`` layers three sources, later ones winning: the built-in
defaults, ``config.json`` and the environment (see ``env_config``). Every
value is checked on the way in, so a hand-edited file can never leave the
window with an unusable setting; bad values are logged and replaced by
their default.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, Optional
import json, os, logging
from .defaults import DEFAULT_CONFIG, NUMERIC_RANGES
from .env_config import load_environment_config, EnvironmentConfig, EnvironmentConfigError
from ..core.entities import ModelMode, is_finite_number

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_FLAGS = ("show_masks", "show_boxes", "debug", "structured_logging")
_PATHS = ("results_export_dir", "log_dir")


@dataclass(slots=True)
class Config:
    # Batch
    item_name: str = DEFAULT_CONFIG["item_name"]
    reference_length_mm: float = DEFAULT_CONFIG["reference_length_mm"]
    model_mode: str = DEFAULT_CONFIG["model_mode"]

    # Canvas
    container_width: int = DEFAULT_CONFIG["container_width"]
    show_masks: bool = DEFAULT_CONFIG["show_masks"]
    show_boxes: bool = DEFAULT_CONFIG["show_boxes"]

    # Gemini
    gemini_api_key: str = DEFAULT_CONFIG["gemini_api_key"]
    gemini_precision_model: str = DEFAULT_CONFIG["gemini_precision_model"]
    gemini_fast_model: str = DEFAULT_CONFIG["gemini_fast_model"]
    gemini_timeout: int = DEFAULT_CONFIG["gemini_timeout"]
    gemini_temperature: float = DEFAULT_CONFIG["gemini_temperature"]

    results_export_dir: str = DEFAULT_CONFIG["results_export_dir"]

    # Logging
    debug: bool = DEFAULT_CONFIG["debug"]
    log_level: str = DEFAULT_CONFIG["log_level"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # True when gemini_api_key came from the environment; it is then never written back
    _api_key_from_env: bool = False

    # Keys this version does not know about, preserved across load/save
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(data.pop("extra"))
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, self.extra.get(key, default))

    def get_model_mode(self) -> ModelMode:
        try:
            return ModelMode(self.model_mode)
        except ValueError:
            return ModelMode.PRECISION

    def model_name_for(self, mode: ModelMode) -> str:
        """Gemini model id behind a segmentation preset."""
        if mode is ModelMode.FAST:
            return self.gemini_fast_model
        return self.gemini_precision_model


_FIELDS = tuple(name for name in Config.__dataclass_fields__ if name not in ("extra", "_api_key_from_env"))


def _read_json_object(path: str) -> Dict[str, Any]:
    """Contents of ``path`` if it holds a JSON object, otherwise ``{}``."""
    if not os.path.isfile(path):
        logger.info(f"No configuration file at '{path}', using defaults")
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"'{path}' is not valid JSON ({e}), using defaults")
        return {}
    except OSError as e:
        logger.error(f"Cannot read '{path}' ({e}), using defaults")
        return {}
    if not isinstance(data, dict):
        logger.error(f"'{path}' must contain a JSON object, using defaults")
        return {}
    logger.info(f"Loaded configuration from '{path}'")
    return data


def load_config(path: str = "config.json", env_file: Optional[str] = None) -> Config:
    """Build a ``Config`` from defaults, ``path`` and the environment.

    Never raises: unreadable files and invalid values are logged and the
    defaults are used in their place.
    """
    try:
        env: Optional[EnvironmentConfig] = load_environment_config(env_file)
    except EnvironmentConfigError as e:
        logger.warning(f"Ignoring environment overrides: {e}")
        env = None

    values = {**DEFAULT_CONFIG, **_read_json_object(path)}
    if env is not None:
        _apply_environment_overrides(values, env)
    _sanitize_config_values(values)

    extra = {k: v for k, v in values.items() if k not in Config.__dataclass_fields__}
    if extra:
        logger.info(f"Keeping unrecognised configuration keys: {sorted(extra)}")

    cfg = Config(**{k: values[k] for k in _FIELDS}, extra=extra)
    cfg._api_key_from_env = env is not None and env.is_api_key_configured
    return cfg


def save_config(cfg: Config, path: str = "config.json") -> None:
    """Write ``cfg`` as JSON. A key taken from the environment is saved blank."""
    data = cfg.to_dict()
    if data.pop("_api_key_from_env"):
        data["gemini_api_key"] = ""

    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    except OSError as e:
        logger.error(f"Could not save configuration to '{path}': {e}")
        return
    logger.info(f"Configuration saved to '{path}'")


def _apply_environment_overrides(values: Dict[str, Any], env: EnvironmentConfig) -> None:
    overrides = {
        "gemini_api_key": env.gemini_api_key,
        "gemini_precision_model": env.gemini_model,
        "gemini_timeout": env.gemini_timeout,
        "results_export_dir": env.results_export_dir,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    if env.debug_logging:
        values["debug"] = True
        values["log_level"] = "DEBUG"


def _replace_if(values: Dict[str, Any], key: str, invalid: Callable[[Any], bool], reason: str) -> None:
    if invalid(values.get(key)):
        logger.warning(f"{key}={values.get(key)!r} {reason}, using {DEFAULT_CONFIG[key]!r}")
        values[key] = DEFAULT_CONFIG[key]


def _sanitize_config_values(values: Dict[str, Any]) -> None:
    """Swap invalid entries of ``values`` for their defaults, in place."""
    for key, (low, high) in NUMERIC_RANGES.items():
        _replace_if(values, key, lambda v, lo=low, hi=high: not is_finite_number(v) or not lo <= v <= hi,
                    f"is outside [{low}, {high}]")

    _replace_if(values, "reference_length_mm", lambda v: not is_finite_number(v) or v <= 0,
                "is not a positive length")
    _replace_if(values, "model_mode", lambda v: v not in {m.value for m in ModelMode},
                "is not a known preset")
    for key in _FLAGS:
        _replace_if(values, key, lambda v: not isinstance(v, bool), "is not true/false")

    level = str(values.get("log_level", "")).upper()
    values["log_level"] = level if level in _LOG_LEVELS else "INFO"

    for key in _PATHS:
        _replace_if(values, key, lambda v: not isinstance(v, str) or not v.strip(), "is not a path")
        values[key] = os.path.normpath(values[key].strip())
