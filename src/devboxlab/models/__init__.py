"""Data models for devboxlab."""

from devboxlab.models.enums import HostState, LogLevel, Verb
from devboxlab.models.environment import (
    DEFAULT_DESCRIPTOR,
    Environment,
    Host,
    NetworkSpec,
    ProbeSettings,
    SharedMount,
    default_environment,
    dump_environment,
    load_environment,
)

__all__ = [
    # Enums
    "HostState",
    "LogLevel",
    "Verb",
    # Environment
    "DEFAULT_DESCRIPTOR",
    "Environment",
    "Host",
    "NetworkSpec",
    "ProbeSettings",
    "SharedMount",
    "default_environment",
    "dump_environment",
    "load_environment",
]
