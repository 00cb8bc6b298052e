"""
Logging setup for batching-future programs.

Library modules only create module loggers; applications call
:func:`configure_logging` once at startup.
"""

import logging
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

from batching_future.config import LoggingSettings, get_settings

_JSON_FIELDS = ["asctime", "levelname", "name", "message", "module", "funcName", "lineno"]
_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(
    settings: Optional[LoggingSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Install a stream handler using the ``logging`` settings section.

    Does nothing if the target logger already has handlers.

    Args:
        settings: Logging settings.  Defaults to ``get_settings().logging``.
        logger: Logger to configure.  Defaults to the root logger.
    """
    target = logger if logger is not None else logging.getLogger()
    if target.handlers:
        return

    cfg = settings or get_settings().logging
    target.setLevel(cfg.level.upper())

    handler = logging.StreamHandler()
    if cfg.format == "json":
        formatter: logging.Formatter = JsonFormatter(
            " ".join(f"%({name})s" for name in _JSON_FIELDS)
        )
    else:
        formatter = logging.Formatter(_TEXT_FORMAT)
    handler.setFormatter(formatter)
    target.addHandler(handler)
