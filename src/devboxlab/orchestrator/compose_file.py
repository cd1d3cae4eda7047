"""
Compose document rendering.

Turns an Environment into the docker-compose document the engine runs.
The descriptor stays the single source of truth; the rendered file is
regenerated before every compose call.
"""

import os

import yaml

from devboxlab.models.environment import Environment, Host
from devboxlab.orchestrator.naming import make_labels, project_name
from devboxlab.utils.logger import get_logger

logger = get_logger(__name__)


def _service(env: Environment, host: Host) -> dict:
    service: dict = {
        "image": env.image_for(host),
        "container_name": host.name,
        "hostname": host.hostname or host.name,
        "stdin_open": True,
        "tty": True,
        "labels": make_labels(env.name, host.name),
        "networks": {
            env.network.name: {"ipv4_address": host.address},
        },
    }

    if host.build:
        build: dict = {
            "context": env.resolve_path(host.build),
            "labels": make_labels(env.name, host.name),
        }
        if host.dockerfile:
            build["dockerfile"] = host.dockerfile
        service["build"] = build

    volumes = []
    for mount in env.mounts_for(host.name):
        spec = f"{env.resolve_path(mount.host_path)}:{mount.container_path}"
        if mount.read_only:
            spec += ":ro"
        volumes.append(spec)
    if volumes:
        service["volumes"] = volumes

    if host.privileged:
        service["privileged"] = True
    if host.cap_add:
        service["cap_add"] = list(host.cap_add)

    return service


def render_compose(env: Environment) -> dict:
    """
    Render an environment as a compose document.

    Returns:
        Compose document as a plain dict.
    """
    ipam_config: dict = {"subnet": env.network.subnet}
    if env.network.gateway:
        ipam_config["gateway"] = env.network.gateway

    return {
        "name": project_name(env.name),
        "services": {host.name: _service(env, host) for host in env.hosts},
        "networks": {
            env.network.name: {
                "driver": "bridge",
                "ipam": {"config": [ipam_config]},
                "labels": make_labels(env.name),
            }
        },
    }


def write_compose(env: Environment, path: str) -> str:
    """
    Write the rendered compose document to ``path``.

    Overwrites any previous rendering.

    Returns:
        The path written.
    """
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    content = yaml.safe_dump(render_compose(env), sort_keys=False)
    with open(path, "w") as f:
        f.write(content)
    logger.debug(f"Rendered compose file {path}")
    return path
