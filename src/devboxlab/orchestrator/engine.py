"""
Docker engine client wrapper using docker-py SDK.

Only ``cleanup`` talks to the daemon directly: pruning unused resources and
removing the images built for an environment. Everything else goes through
the compose adapter.
"""

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from devboxlab.exceptions import CleanupError, EngineConnectionError
from devboxlab.models.environment import Environment
from devboxlab.orchestrator.naming import environment_filter
from devboxlab.utils.logger import get_logger

log = get_logger(__name__)


class DockerEngine:
    """
    Manages direct daemon operations for cleanup.

    Attributes:
        client: The docker-py client instance.
    """

    def __init__(self, timeout: int | None = None):
        """
        Initialize Docker client.

        Args:
            timeout: Request timeout in seconds. None means the SDK default.

        Raises:
            EngineConnectionError: If connection to Docker daemon fails.
        """
        try:
            kwargs = {"timeout": timeout} if timeout else {}
            self.client = docker.from_env(**kwargs)
            self.client.ping()
            log.debug("Docker client initialized successfully")
        except DockerException as e:
            log.error(f"Failed to connect to Docker daemon: {e}")
            raise EngineConnectionError(f"Failed to connect to Docker: {e}") from e

    # =========================================================================
    # Pruning
    # =========================================================================

    def prune(self) -> int:
        """
        Remove stopped containers, unused networks, dangling images and
        build cache.

        Returns:
            Bytes reclaimed as reported by the daemon.

        Raises:
            CleanupError: If the daemon rejects a prune request.
        """
        reclaimed = 0
        try:
            result = self.client.containers.prune()
            reclaimed += result.get("SpaceReclaimed") or 0
            log.debug(f"Pruned containers: {result.get('ContainersDeleted') or []}")

            result = self.client.networks.prune()
            log.debug(f"Pruned networks: {result.get('NetworksDeleted') or []}")

            result = self.client.images.prune(filters={"dangling": True})
            reclaimed += result.get("SpaceReclaimed") or 0

            result = self.client.api.prune_builds()
            reclaimed += result.get("SpaceReclaimed") or 0
        except APIError as e:
            raise CleanupError(str(e)) from e

        log.info(f"Reclaimed {reclaimed} bytes")
        return reclaimed

    # =========================================================================
    # Images
    # =========================================================================

    def environment_images(self, env: Environment) -> list:
        """Images labelled for, or tagged as, an environment's hosts."""
        images = {}
        for image in self.client.images.list(filters=environment_filter(env.name)):
            images[image.id] = image

        for host in env.hosts:
            try:
                image = self.client.images.get(env.image_for(host))
            except ImageNotFound:
                continue
            images[image.id] = image

        return list(images.values())

    def remove_environment_images(self, env: Environment) -> list[str]:
        """
        Force-remove every image belonging to an environment.

        Images that disappear concurrently are skipped.

        Returns:
            Removed image references (first tag, or id if untagged).

        Raises:
            CleanupError: If the daemon refuses a removal.
        """
        try:
            images = self.environment_images(env)
        except APIError as e:
            raise CleanupError(f"Failed to list images: {e}") from e

        removed = []
        for image in images:
            ref = image.tags[0] if image.tags else image.short_id
            try:
                self.client.images.remove(image.id, force=True)
            except (ImageNotFound, NotFound):
                log.debug(f"Image {ref} already gone")
                continue
            except APIError as e:
                raise CleanupError(f"Failed to remove image {ref}: {e}") from e
            log.info(f"Removed image {ref}")
            removed.append(ref)
        return removed
