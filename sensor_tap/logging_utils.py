from __future__ import annotations

import logging

from colorlog import ColoredFormatter

TRACE_LEVEL = 5

LOG_COLORS = {
    "TRACE": "cyan",
    "DEBUG": "blue",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def _trace(self: logging.Logger, message: str, *args: object, **kwargs: object) -> None:
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, message, args, **kwargs)


logging.addLevelName(TRACE_LEVEL, "TRACE")


def configure_logging(level: int) -> None:
    setattr(logging.Logger, "trace", _trace)
    handler = logging.StreamHandler()
    handler.setFormatter(
        ColoredFormatter(
            "%(log_color)s%(asctime)s %(levelname)s %(name)s %(message)s",
            log_colors=LOG_COLORS,
        )
    )
    logging.basicConfig(level=level, handlers=[handler])


def resolve_log_level(verbosity: int, fallback: str) -> int:
    if verbosity >= 2:
        return TRACE_LEVEL
    if verbosity == 1:
        return logging.DEBUG
    return logging.getLevelName(fallback.upper()) if fallback.upper() in LOG_COLORS else logging.INFO
