import logging
import os
from pathlib import Path
import sys


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL_ENV = "I18N_LLM_LOG_LEVEL"
NOISY_LOGGERS = ("urllib3", "requests")


def _level(verbose: bool) -> int:
    if verbose:
        return logging.DEBUG
    name = (os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(level=_level(verbose), format=LOG_FORMAT, stream=sys.stdout)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def attach_file_logging(path: str) -> logging.Handler:
    """Also write every log record to ``path``."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler
