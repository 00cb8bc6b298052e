"""
Settings for batching-future.

Values come from three layers, later ones winning:

* dataclass defaults below,
* ``config/config.yaml`` (or an explicit path),
* ``BATCHER_<SECTION>_<KEY>`` environment variables, which a ``.env``
  file at the project root may also provide.
"""

import logging
import os
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from dotenv import load_dotenv

from batching_future.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DEFAULT_CONFIG = _PROJECT_ROOT / "config" / "config.yaml"
_DEFAULT_DOTENV = _PROJECT_ROOT / ".env"
_ENV_PREFIX = "BATCHER_"


@dataclass
class BatchingSettings:
    """Thresholds for batchers built by ``create_batcher_from_settings``.

    A value of 0 switches the corresponding threshold or the cache off.
    """
    max_batch_size: int = 10
    max_wait_ms: int = 500
    cache_size: int = 0


@dataclass
class LoggingSettings:
    level: str = "INFO"
    format: str = "json"


@dataclass
class Settings:
    batching: BatchingSettings = field(default_factory=BatchingSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


_PARSERS: Dict[type, Callable[[str], Any]] = {int: int, float: float, bool: _parse_bool}


def read_config_file(path: Path) -> Dict[str, Any]:
    """Return the mapping stored in a YAML file.

    A missing file or a document that is not a mapping yields ``{}``.

    Raises:
        ConfigurationError: If the file is not valid YAML.
    """
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Cannot parse config file {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def merge_section(section: Any, values: Dict[str, Any], source: str) -> None:
    """Copy ``values`` onto a settings dataclass.

    String values for non-string fields are parsed with the field's
    default type; values that do not parse are skipped.  Unknown keys are
    ignored.
    """
    known = {f.name: type(getattr(section, f.name)) for f in fields(section)}
    for key, value in values.items():
        expected = known.get(key)
        if expected is None:
            logger.warning("Unknown setting %s ignored (%s)", key, source)
            continue
        if isinstance(value, str) and expected is not str:
            try:
                value = _PARSERS.get(expected, str)(value)
            except ValueError:
                logger.warning("Invalid value %r for %s ignored (%s)", value, key, source)
                continue
        setattr(section, key, value)


def _environment_values(section_name: str, section: Any) -> Dict[str, str]:
    prefix = f"{_ENV_PREFIX}{section_name.upper()}_"
    found: Dict[str, str] = {}
    for f in fields(section):
        raw = os.environ.get(prefix + f.name.upper())
        if raw is not None:
            found[f.name] = raw
    return found


def _build_settings(config_path: Path) -> Settings:
    raw = read_config_file(config_path)
    settings = Settings()
    for f in fields(settings):
        section = getattr(settings, f.name)
        file_values = raw.get(f.name)
        if isinstance(file_values, dict):
            merge_section(section, file_values, str(config_path))
        merge_section(section, _environment_values(f.name, section), "environment")
    return settings


_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    yaml_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the process-wide settings, loading them on first use.

    Args:
        yaml_path: Config file to read instead of ``config/config.yaml``.
        env_path: ``.env`` file to read instead of the project's.
        _force_reload: Rebuild even if settings are already loaded.
    """
    global _settings

    with _lock:
        if _settings is None or _force_reload:
            load_dotenv(env_path or _DEFAULT_DOTENV, override=True)
            config_path = yaml_path or _DEFAULT_CONFIG
            _settings = _build_settings(config_path)
            logger.info("Settings loaded from %s", config_path)
        return _settings


def reset_settings() -> None:
    """Forget loaded settings so the next ``get_settings`` rebuilds them."""
    global _settings
    with _lock:
        _settings = None
