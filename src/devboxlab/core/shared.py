"""
Shared mount preparation.

Creates each shared directory on the host side and writes a reference
README into it describing the lab's addresses and common commands. The
README is regenerated (overwritten) on every start.
"""

import os

from devboxlab.exceptions import DevboxError, WriteError
from devboxlab.models.environment import Environment, SharedMount
from devboxlab.utils.logger import get_logger

logger = get_logger(__name__)

README_NAME = "README.md"

README_TEMPLATE = """# Shared Files
This directory is mounted on {attached} at {container_path}
Use it to transfer files between containers

## Network Tools Quick Reference

### Container IPs:
{host_lines}

### Netcat Variants:
1. nc (openbsd) - Secure, no -e flag
2. nc.traditional - Has -e flag for shell execution
3. socat - Advanced bidirectional relay

### Example Commands:

#### Traditional Netcat (bind shell):
```bash
# Listener with shell
nc.traditional -l -p 8080 -e /bin/bash

# Connect
nc.traditional <target> 8080
```

#### Socat (interactive shell):
```bash
# Better shell listener
socat TCP-LISTEN:8080,fork,reuseaddr EXEC:/bin/bash,pty,stderr

# Connect
socat TCP:<target>:8080 -
```

#### Port Scanning:
```bash
# Single port
nc -zv <target> 22

# Port range
nc -zv <target> 20-25

# Nmap network scan
nmap -sn {subnet}
```

#### File Transfer:
```bash
# Send file (receiver)
nc -l -p 8080 > received_file

# Send file (sender)
nc <target> 8080 < file_to_send
```
"""


def render_reference(env: Environment, mount: SharedMount) -> str:
    """Render the reference README for one shared mount."""
    attached = [h for h in env.host_names if mount.attached_to(h)]
    if len(attached) == len(env.hosts) and len(attached) > 1:
        attached_text = "all containers"
    else:
        attached_text = ", ".join(attached)

    host_lines = "\n".join(f"- {h.name}: {h.address}" for h in env.hosts)
    return README_TEMPLATE.format(
        attached=attached_text,
        container_path=mount.container_path,
        host_lines=host_lines,
        subnet=env.network.subnet,
    )


def ensure_mount_dirs(env: Environment) -> list[str]:
    """
    Create every shared mount's host directory if absent.

    Returns:
        Host paths that were newly created.

    Raises:
        DevboxError: If a directory cannot be created.
    """
    created = []
    for mount in env.mounts:
        path = env.resolve_path(mount.host_path)
        if os.path.isdir(path):
            logger.info(f"Shared directory {path} already exists")
            continue
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise DevboxError(f"Cannot create shared directory {path}: {e}") from e
        logger.info(f"Created shared directory {path}")
        created.append(path)
    return created


def write_reference(env: Environment) -> list[str]:
    """
    Write the reference README into every shared mount.

    Returns:
        Paths written.

    Raises:
        WriteError: If any README could not be written. Directories that
            were written successfully are still listed in the log.
    """
    written = []
    failures = []
    for mount in env.mounts:
        path = os.path.join(env.resolve_path(mount.host_path), README_NAME)
        try:
            with open(path, "w") as f:
                f.write(render_reference(env, mount))
        except OSError as e:
            failures.append(f"{path}: {e}")
            continue
        logger.debug(f"Wrote reference {path}")
        written.append(path)

    if failures:
        raise WriteError("; ".join(failures))
    return written
