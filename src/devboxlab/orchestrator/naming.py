"""Naming and labelling conventions for engine resources."""

# Labels (for tracking)
LABEL_MANAGED = "devboxlab.managed"
LABEL_ENVIRONMENT = "devboxlab.environment"
LABEL_HOST = "devboxlab.host"


def project_name(env_name: str) -> str:
    """Compose project name for an environment."""
    return env_name.lower()


def make_labels(env_name: str, host_name: str | None = None) -> dict[str, str]:
    """Labels attached to images and containers of an environment."""
    labels = {
        LABEL_MANAGED: "true",
        LABEL_ENVIRONMENT: env_name,
    }
    if host_name:
        labels[LABEL_HOST] = host_name
    return labels


def environment_filter(env_name: str) -> dict[str, list[str]]:
    """docker-py ``filters`` matching resources labelled for an environment."""
    return {"label": [f"{LABEL_ENVIRONMENT}={env_name}"]}
