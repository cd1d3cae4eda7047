"""
Environment descriptor models.

An environment is the full declared set of hosts, the private network they
share and the directories mounted into them. It is loaded once per
invocation and passed explicitly to every component; nothing here touches
the engine or the filesystem beyond reading the descriptor file.

Descriptor format (YAML)::

    name: devbox
    network:
      name: devnet
      subnet: 172.20.0.0/16
    hosts:
      - name: dev-box-1
        address: 172.20.0.10
        build: ./dev-box-1
      - name: dev-box-2
        address: 172.20.0.11
        build: ./dev-box-2
    mounts:
      - host_path: ./shared
        container_path: /shared
    probe:
      count: 3
      timeout: 2
"""

from __future__ import annotations

import ipaddress
import os
import re

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from devboxlab.exceptions import ConfigError

DEFAULT_DESCRIPTOR = "devboxlab.yml"

_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")
# Compose project names: lowercase alphanumerics, "_" and "-"
_PROJECT_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


# =============================================================================
# Component Models
# =============================================================================


class NetworkSpec(BaseModel):
    """Private bridge network shared by all hosts."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "devnet"
    subnet: str = Field(..., description="CIDR block, e.g. 172.20.0.0/16")
    gateway: str | None = Field(default=None, description="Gateway address")

    @field_validator("subnet")
    @classmethod
    def _valid_cidr(cls, v: str) -> str:
        try:
            return str(ipaddress.IPv4Network(v, strict=True))
        except ValueError as e:
            raise ValueError(f"invalid CIDR '{v}': {e}")

    @property
    def network(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Network(self.subnet)


class Host(BaseModel):
    """
    A single declared host.

    ``name`` doubles as the compose service name and the container name, so
    it is what the operator types for ``connect`` and what other hosts
    resolve on the network.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    address: str
    build: str | None = Field(default=None, description="Build context directory")
    dockerfile: str | None = None
    image: str | None = Field(default=None, description="Image tag")
    shell: str | None = None
    hostname: str | None = None
    privileged: bool = False
    cap_add: tuple[str, ...] = ("NET_ADMIN", "NET_RAW")

    @field_validator("name")
    @classmethod
    def _valid_name(cls, v: str) -> str:
        if not _NAME_RE.match(v):
            raise ValueError(f"invalid host name '{v}'")
        return v

    @field_validator("address")
    @classmethod
    def _valid_address(cls, v: str) -> str:
        try:
            return str(ipaddress.IPv4Address(v))
        except ValueError as e:
            raise ValueError(f"invalid address '{v}': {e}")


class SharedMount(BaseModel):
    """A host directory bind-mounted into some or all hosts."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    host_path: str
    container_path: str
    hosts: tuple[str, ...] = Field(
        default=(), description="Hosts to attach to (empty = all)"
    )
    read_only: bool = False

    @field_validator("container_path")
    @classmethod
    def _absolute(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"container path must be absolute: '{v}'")
        return v

    def attached_to(self, host_name: str) -> bool:
        return not self.hosts or host_name in self.hosts


class ProbeSettings(BaseModel):
    """Connectivity probe parameters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    count: int = Field(default=3, ge=1)
    timeout: int = Field(default=2, ge=1, description="Per-echo timeout in seconds")
    pairs: tuple[tuple[str, str], ...] | None = None


# =============================================================================
# Environment
# =============================================================================


class Environment(BaseModel):
    """
    Full environment declaration.

    Validation guarantees:
        - At least one host
        - Unique host names and addresses
        - Every address inside the network CIDR, not the network/broadcast
          address and not the gateway
        - Mounts and probe pairs only reference declared hosts
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "devbox"
    network: NetworkSpec
    hosts: tuple[Host, ...]
    mounts: tuple[SharedMount, ...] = ()
    probe: ProbeSettings = ProbeSettings()
    base_dir: str = Field(default=".", exclude=True)

    @field_validator("name")
    @classmethod
    def _valid_name(cls, v: str) -> str:
        v = v.lower()
        if not _PROJECT_RE.match(v):
            raise ValueError(
                f"invalid environment name '{v}' (use letters, digits, '_' and '-')"
            )
        return v

    @model_validator(mode="after")
    def _consistent(self) -> "Environment":
        _check_environment(self)
        return self

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @property
    def host_names(self) -> list[str]:
        return [h.name for h in self.hosts]

    def get_host(self, name: str) -> Host:
        for host in self.hosts:
            if host.name == name:
                return host
        raise KeyError(name)

    def host_by_index(self, index: int) -> Host:
        """Get a host by its 1-based declaration index."""
        if index < 1 or index > len(self.hosts):
            raise IndexError(index)
        return self.hosts[index - 1]

    def mounts_for(self, host_name: str) -> list[SharedMount]:
        return [m for m in self.mounts if m.attached_to(host_name)]

    def resolve_path(self, path: str) -> str:
        """Resolve a descriptor-relative path."""
        path = os.path.expanduser(path)
        if os.path.isabs(path):
            return path
        return os.path.normpath(os.path.join(self.base_dir, path))

    def image_for(self, host: Host) -> str:
        """Image tag used for a host's build (references must be lowercase)."""
        return host.image or f"{self.name}-{host.name.lower()}:latest"

    def probe_pairs(self) -> list[tuple[str, str]]:
        """
        Ordered (source, destination) pairs to probe.

        Declared pairs are kept as written; otherwise every ordered pair of
        distinct hosts in declaration order.
        """
        if self.probe.pairs is not None:
            return [tuple(p) for p in self.probe.pairs]
        names = self.host_names
        return [(a, b) for a in names for b in names if a != b]


def _check_environment(env: Environment) -> None:
    """Cross-field checks; raises ValueError so pydantic reports them."""
    if not env.hosts:
        raise ValueError("at least one host is required")

    network = env.network.network
    gateway = None
    if env.network.gateway:
        gateway = ipaddress.IPv4Address(env.network.gateway)
        if gateway not in network:
            raise ValueError(f"gateway {gateway} is outside {network}")

    names: set[str] = set()
    addresses: dict[str, str] = {}
    for host in env.hosts:
        if host.name in names:
            raise ValueError(f"duplicate host name '{host.name}'")
        names.add(host.name)

        if host.address in addresses:
            raise ValueError(
                f"address {host.address} used by both "
                f"'{addresses[host.address]}' and '{host.name}'"
            )
        addresses[host.address] = host.name

        ip = ipaddress.IPv4Address(host.address)
        if ip not in network:
            raise ValueError(f"host '{host.name}' address {ip} is outside {network}")
        if network.prefixlen < 31 and ip in (
            network.network_address,
            network.broadcast_address,
        ):
            raise ValueError(
                f"host '{host.name}' address {ip} is reserved in {network}"
            )
        if gateway is not None and ip == gateway:
            raise ValueError(f"host '{host.name}' address {ip} is the gateway")

    for mount in env.mounts:
        unknown = [h for h in mount.hosts if h not in names]
        if unknown:
            raise ValueError(
                f"mount {mount.container_path} references unknown hosts: "
                f"{', '.join(unknown)}"
            )

    for host in env.hosts:
        seen: set[str] = set()
        for mount in env.mounts:
            if not mount.attached_to(host.name):
                continue
            if mount.container_path in seen:
                raise ValueError(
                    f"host '{host.name}' mounts {mount.container_path} twice"
                )
            seen.add(mount.container_path)

    if env.probe.pairs is not None:
        for src, dst in env.probe.pairs:
            for name in (src, dst):
                if name not in names:
                    raise ValueError(f"probe pair references unknown host '{name}'")
            if src == dst:
                raise ValueError(f"probe pair ({src}, {dst}) targets itself")


# =============================================================================
# Loading
# =============================================================================


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        msg = err.get("msg", "")
        # pydantic prefixes errors raised from validators with "Value error, "
        msg = msg.removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def parse_environment(data: dict, base_dir: str = ".", source: str | None = None) -> Environment:
    """
    Build an Environment from already-parsed descriptor data.

    Raises:
        ConfigError: If the data does not describe a valid environment.
    """
    if not isinstance(data, dict):
        raise ConfigError("descriptor must be a mapping", source)
    try:
        return Environment.model_validate({**data, "base_dir": base_dir})
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e), source) from e


def load_environment(path: str | None = None) -> Environment:
    """
    Load an environment descriptor.

    When ``path`` is None, or is the default descriptor name and does not
    exist, the built-in two-host environment is returned (rooted at the
    current directory).

    Args:
        path: Path to a YAML descriptor.

    Returns:
        Validated Environment.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    if path is None or (
        os.path.basename(path) == DEFAULT_DESCRIPTOR and not os.path.exists(path)
    ):
        base_dir = os.path.dirname(os.path.abspath(path)) if path else os.getcwd()
        return default_environment(base_dir)

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError("descriptor not found", path)
    except OSError as e:
        raise ConfigError(f"cannot read descriptor: {e}", path) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"malformed YAML: {e}", path) from e

    if data is None:
        raise ConfigError("descriptor is empty", path)

    base_dir = os.path.dirname(os.path.abspath(path))
    return parse_environment(data, base_dir=base_dir, source=path)


def default_environment(base_dir: str = ".") -> Environment:
    """The stock two-host lab: dev-box-1 and dev-box-2 on 172.20.0.0/16."""
    return Environment(
        name="devbox",
        network=NetworkSpec(name="devnet", subnet="172.20.0.0/16"),
        hosts=(
            Host(name="dev-box-1", address="172.20.0.10", build="./dev-box-1"),
            Host(name="dev-box-2", address="172.20.0.11", build="./dev-box-2"),
        ),
        mounts=(SharedMount(host_path="./shared", container_path="/shared"),),
        base_dir=base_dir,
    )


def dump_environment(env: Environment) -> str:
    """Serialize an environment back to descriptor YAML."""
    data = env.model_dump(mode="json", exclude_defaults=False)
    data.pop("base_dir", None)
    for host in data["hosts"]:
        for key in ("dockerfile", "image", "shell", "hostname"):
            if host.get(key) is None:
                host.pop(key, None)
    if data["network"].get("gateway") is None:
        data["network"].pop("gateway")
    if data["probe"].get("pairs") is None:
        data["probe"].pop("pairs")
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
