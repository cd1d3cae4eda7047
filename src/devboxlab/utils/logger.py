"""
Logging setup for devboxlab.

All modules obtain loggers through :func:`get_logger`, which binds the
module name onto the shared loguru logger; the CLI calls
:func:`configure_logging` once at startup. Output goes to stderr so it
never mixes with tables printed on stdout.
"""

import sys
import traceback

from loguru import logger as _logger

from devboxlab.models.enums import LogLevel

ROOT_LOGGER = "devboxlab"

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

_LEVELS = {
    LogLevel.FULL: "DEBUG",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

_configured_level: LogLevel = LogLevel.WARNING

# Records logged without get_logger() still render
_logger.configure(extra={"name": ROOT_LOGGER})


def get_logger(name: str):
    """Get a logger bound to a name under the devboxlab namespace."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return _logger.bind(name=name)


def _stderr_sink(message) -> None:
    # Resolved per message so redirected stderr (tests, pipes) is honoured
    sys.stderr.write(message)


def configure_logging(level: LogLevel | str = LogLevel.INFO) -> None:
    """
    Configure the loguru sink for the CLI.

    Safe to call more than once; previous sinks are removed.

    Args:
        level: LogLevel or its string value.
    """
    global _configured_level

    level = LogLevel(level)
    _configured_level = level
    full = level == LogLevel.FULL

    _logger.remove()
    _logger.add(
        _stderr_sink,
        level=_LEVELS[level],
        format=LOG_FORMAT,
        colorize=sys.stderr.isatty(),
        backtrace=full,
        diagnose=full,
    )


def tracebacks_enabled() -> bool:
    """Whether fatal errors should print full tracebacks."""
    return _configured_level == LogLevel.FULL


def format_traceback(exc: BaseException) -> str:
    """Format an exception with its traceback as a single string."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
