"""Exception classes for devboxlab."""


class DevboxError(Exception):
    """Base exception for devboxlab operations."""

    exit_code: int = 1


class ConfigError(DevboxError):
    """Environment descriptor is missing, malformed or inconsistent."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class DependencyError(DevboxError):
    """A required external tool is not installed."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__("; ".join(missing))


class UsageError(DevboxError):
    """Unknown verb or bad target on the command line."""

    pass


class OrchestratorError(DevboxError):
    """
    Engine-reported failure.

    The message is the engine's own diagnostic text, passed through
    unchanged so the operator sees what docker said.
    """

    action = "orchestrator call"

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        if returncode:
            # Signal-killed processes report a negative code
            self.exit_code = returncode if returncode > 0 else 1
        super().__init__(message.strip() or f"{self.action} failed")


class BuildError(OrchestratorError):
    """Image build failed."""

    action = "build"


class StartError(OrchestratorError):
    """Bringing the hosts up failed."""

    action = "up"


class StopError(OrchestratorError):
    """Tearing the hosts down failed."""

    action = "down"


class CleanupError(OrchestratorError):
    """Pruning or image removal failed."""

    action = "cleanup"


class EngineConnectionError(OrchestratorError):
    """Could not reach the Docker daemon through the SDK."""

    action = "connect to docker"


class WriteError(DevboxError):
    """Writing a report or reference file failed (never fatal)."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)
