"""
External dependency checks.

Verifies the docker CLI and a compose implementation are installed before
any mutating lifecycle step runs. Individual checks are pure functions
returning ``(ok, error)``.
"""

import shutil

from devboxlab.exceptions import DependencyError
from devboxlab.orchestrator.compose import detect_compose_command
from devboxlab.utils.logger import get_logger

logger = get_logger(__name__)


# --- Individual Check Functions ---


def check_docker() -> tuple[bool, str | None]:
    """Check the docker CLI is on PATH."""
    if shutil.which("docker"):
        return True, None
    return False, "Docker is not installed or not in PATH"


def check_compose() -> tuple[bool, str | None]:
    """Check a compose implementation is usable."""
    try:
        command = detect_compose_command()
    except DependencyError as e:
        return False, str(e)
    logger.debug(f"Using compose command: {' '.join(command)}")
    return True, None


# --- Aggregate ---


def check_dependencies() -> None:
    """
    Run every dependency check.

    Raises:
        DependencyError: Listing every missing tool.
    """
    errors = []
    for check in (check_docker, check_compose):
        ok, error = check()
        if not ok:
            errors.append(error)

    if errors:
        raise DependencyError(errors)
    logger.info("Docker and Docker Compose are available")
