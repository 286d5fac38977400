# pricewatch/config/logging_config.py

"""Logging for one pricewatch invocation.

Every invocation (``run``, ``track``, ``list`` or ``serve``) writes its own
file under ``Settings.LOGS_DIR``, named after the subcommand and the start
time, e.g. ``logs/run_20261019_153045.log``. The file receives everything
from the ``pricewatch.*`` loggers at DEBUG. Stderr only shows
``Settings.CONSOLE_LOG_LEVEL`` and above, because stdout carries the JSON
cycle summary and must stay clean.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from pricewatch.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s "
    "%(funcName)s:%(lineno)d  %(message)s"
)
_STDERR_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty libraries the fetcher and server pull in.
_QUIET_LOGGERS = ("urllib3", "charset_normalizer", "asyncio")


def setup_logging(command: str = "run") -> Path:
    """Attach the file and stderr handlers to the ``pricewatch`` logger.

    Safe to call more than once: later calls return the new file name but
    keep the handlers from the first call.
    """
    Settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    started = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = Settings.LOGS_DIR / f"{command}_{started}.log"

    app_logger = logging.getLogger("pricewatch")
    app_logger.setLevel(logging.DEBUG)
    if app_logger.handlers:
        return log_file

    to_file = logging.FileHandler(log_file, encoding="utf-8")
    to_file.setLevel(logging.DEBUG)
    to_file.setFormatter(logging.Formatter(_FILE_FORMAT, _DATE_FORMAT))

    to_stderr = logging.StreamHandler(sys.stderr)
    to_stderr.setLevel(
        logging.getLevelName(Settings.CONSOLE_LOG_LEVEL.upper())
    )
    to_stderr.setFormatter(logging.Formatter(_STDERR_FORMAT, _DATE_FORMAT))

    app_logger.addHandler(to_file)
    app_logger.addHandler(to_stderr)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app_logger.debug("pricewatch %s logging to %s", command, log_file)
    return log_file
