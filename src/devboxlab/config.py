"""
devboxlab configuration.

A global Config instance that can be modified at runtime. Defaults can be
overridden through ``DEVBOXLAB_*`` environment variables, and the CLI
overrides individual fields from its options.
"""

import os
import shlex
from dataclasses import dataclass, field, fields

from devboxlab.models.enums import LogLevel

ENV_PREFIX = "DEVBOXLAB_"


@dataclass
class CliConfig:
    """Lifecycle CLI configuration."""

    # Descriptor Configuration
    DESCRIPTOR_FILE: str = "devboxlab.yml"
    COMPOSE_DIR: str = ".devboxlab"  # Relative to the descriptor directory
    COMPOSE_FILE_NAME: str = "docker-compose.yml"

    # Engine Configuration
    COMPOSE_COMMAND: str = ""  # Empty = auto-detect "docker compose" / "docker-compose"
    DOCKER_TIMEOUT: int = 60  # docker-py request timeout for cleanup calls

    # Timing Configuration
    SETTLE_DELAY_SECONDS: float = 5.0
    RESTART_DELAY_SECONDS: float = 2.0
    READY_TIMEOUT_SECONDS: float = 60.0
    READY_POLL_SECONDS: float = 1.0
    LOG_STOP_TIMEOUT_SECONDS: float = 5.0

    # Probe Configuration
    PROBE_WORKERS: int = 1

    # Connect Configuration
    SHELL: str = "bash"

    # Logging Configuration
    LOG_LEVEL: LogLevel = LogLevel.INFO

    # Extra args appended to every compose invocation (e.g. "--ansi never")
    COMPOSE_EXTRA_ARGS: list[str] = field(default_factory=list)

    def get_compose_command(self) -> list[str] | None:
        """Get the configured compose command, or None for auto-detect."""
        if self.COMPOSE_COMMAND:
            return shlex.split(self.COMPOSE_COMMAND)
        return None

    def get_compose_path(self, base_dir: str) -> str:
        """Get the rendered compose file path for a descriptor directory."""
        return os.path.join(base_dir, self.COMPOSE_DIR, self.COMPOSE_FILE_NAME)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "CliConfig":
        """
        Build a config from ``DEVBOXLAB_*`` environment variables.

        Unknown or unparsable values are ignored and the default is kept.
        """
        environ = os.environ if environ is None else environ
        cfg = cls()

        for f in fields(cls):
            raw = environ.get(f"{ENV_PREFIX}{f.name}")
            if raw is None:
                continue
            current = getattr(cfg, f.name)
            try:
                if isinstance(current, LogLevel):
                    value = LogLevel(raw.lower())
                elif isinstance(current, bool):
                    value = raw.lower() in ("1", "true", "yes", "on")
                elif isinstance(current, int):
                    value = int(raw)
                elif isinstance(current, float):
                    value = float(raw)
                elif isinstance(current, list):
                    value = shlex.split(raw)
                else:
                    value = raw
            except ValueError:
                continue
            setattr(cfg, f.name, value)

        return cfg


# Global config instance
config = CliConfig.from_env()
