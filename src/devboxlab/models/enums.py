"""
Enumeration types for devboxlab.

This module defines the enumerations shared by the controller, the
orchestrator adapter and the CLI.
"""

from enum import Enum


# =============================================================================
# Lifecycle Enums
# =============================================================================


class Verb(str, Enum):
    """
    Lifecycle verbs accepted on the command line.

    ``connect`` is never typed directly as a bare verb without a target; the
    CLI maps ``connect1``, ``connect2``, ... and ``connect HOST`` onto it.
    """

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    STATUS = "status"
    LOGS = "logs"
    CLEANUP = "cleanup"
    CONNECT = "connect"
    TEST = "test"
    INIT = "init"


class HostState(str, Enum):
    """
    Runtime state of a host as reported by the orchestrator.

    Mirrors the ``State`` column of ``docker compose ps``. Anything the
    engine reports that is not listed here maps to UNKNOWN.
    """

    CREATED = "created"
    RUNNING = "running"
    RESTARTING = "restarting"
    PAUSED = "paused"
    EXITED = "exited"
    DEAD = "dead"
    REMOVING = "removing"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "HostState":
        """Map engine state text onto a HostState."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels.

    Levels (from most to least verbose):
        - FULL: Debug output plus full tracebacks on fatal errors
        - DEBUG: Debug messages and above (shows every docker command)
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
