"""Logging for airdrop loads.

Every line carries the airdrop label and source file so interleaved loads can
be told apart. Log output goes to stderr; stdout is reserved for the CLI's
summaries and JSON.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s airdrop=%(airdrop)s file=%(file)s %(message)s"
CONTEXT_DEFAULTS = {"airdrop": "-", "file": "-"}
DRIVER_LOGGERS = ("psycopg",)


def log_context(label: Optional[str] = None, path: Union[str, Path, None] = None) -> Dict[str, str]:
    """``extra=`` mapping for records about one load."""
    context = dict(CONTEXT_DEFAULTS)
    if label:
        context["airdrop"] = label
    if path:
        context["file"] = Path(path).name
    return context


def configure_logging(level_name: Optional[str] = None) -> None:
    level = logging.getLevelName((level_name or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    formatter = logging.Formatter(LOG_FORMAT, defaults=CONTEXT_DEFAULTS)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler(sys.stderr))
    for handler in root_logger.handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    # driver chatter stays at WARNING even under --verbose
    for name in DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
