from __future__ import annotations

import logging
import sys
from typing import Union


class _ThirdPartyNoiseFilter(logging.Filter):
    """
    Keep task_tracker logs at the configured level, but only let third-party
    loggers (uvicorn access logs, asyncio, ...) through at WARNING and above.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("task_tracker"):
            return True
        return record.levelno >= logging.WARNING


# PUBLIC_INTERFACE
def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging with a single stderr handler.

    Pre-existing root handlers are removed so repeated calls (tests, reloads)
    do not duplicate output.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_ThirdPartyNoiseFilter())
    root.addHandler(ch)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
