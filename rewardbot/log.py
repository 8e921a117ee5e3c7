import logging
from pathlib import Path
from typing import Optional

from .config import Settings, settings as default_settings

DIAGNOSTIC_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def map_log_level(level_name: str) -> int:
    level = logging.getLevelName((level_name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _build_handlers(config: Settings) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=DIAGNOSTIC_FORMAT, datefmt=DATE_FORMAT)

    log_path = Path(config.ERROR_LOG)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    # Append-only, never read back
    diagnostic = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    diagnostic.setLevel(logging.WARNING)
    diagnostic.setFormatter(formatter)

    console = logging.StreamHandler()
    console.setLevel(map_log_level(config.LOG_LEVEL))
    console.setFormatter(formatter)

    return [diagnostic, console]


def configure_logging(app_logger_name: str = "rewardbot", config: Optional[Settings] = None) -> logging.Logger:
    """Attach the diagnostic file handler and a console handler.

    Safe to call more than once: existing handlers on the app logger are
    replaced rather than duplicated.
    """
    config = config or default_settings
    app_logger = logging.getLogger(app_logger_name)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(config):
        app_logger.addHandler(handler)
    app_logger.setLevel(min(map_log_level(config.LOG_LEVEL), logging.WARNING))
    return app_logger
