"""
Orchestrator integration for devboxlab.

Provides:
- ComposeAdapter: lifecycle calls through ``docker compose``
- DockerEngine: direct daemon access for pruning and image cleanup
- Compose file rendering from an Environment
"""

from devboxlab.orchestrator.compose import (
    ComposeAdapter,
    ExecResult,
    HostStatus,
    detect_compose_command,
    parse_ps_output,
)
from devboxlab.orchestrator.compose_file import render_compose, write_compose
from devboxlab.orchestrator.engine import DockerEngine
from devboxlab.orchestrator.naming import (
    LABEL_ENVIRONMENT,
    LABEL_HOST,
    LABEL_MANAGED,
    environment_filter,
    make_labels,
    project_name,
)

__all__ = [
    # Adapter
    "ComposeAdapter",
    "ExecResult",
    "HostStatus",
    "detect_compose_command",
    "parse_ps_output",
    # Engine
    "DockerEngine",
    # Compose file
    "render_compose",
    "write_compose",
    # Naming
    "LABEL_ENVIRONMENT",
    "LABEL_HOST",
    "LABEL_MANAGED",
    "environment_filter",
    "make_labels",
    "project_name",
]
