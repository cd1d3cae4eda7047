"""Lifecycle core: controller, prober, dependency and mount preparation."""

from devboxlab.core.controller import (
    LifecycleCommand,
    LifecycleController,
    RunReport,
    Step,
    StepResult,
)
from devboxlab.core.dependencies import check_dependencies
from devboxlab.core.prober import ConnectivityProber, ProbeResult
from devboxlab.core.shared import ensure_mount_dirs, render_reference, write_reference

__all__ = [
    "LifecycleCommand",
    "LifecycleController",
    "RunReport",
    "Step",
    "StepResult",
    "check_dependencies",
    "ConnectivityProber",
    "ProbeResult",
    "ensure_mount_dirs",
    "render_reference",
    "write_reference",
]
