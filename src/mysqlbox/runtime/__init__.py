"""Container runtime layer — the backend sandboxes are created on."""

from mysqlbox.runtime.backend import ContainerBackend
from mysqlbox.runtime.docker_cli import DockerCLIBackend
from mysqlbox.runtime.models import (
    MANAGED_LABEL,
    BindMount,
    ContainerInfo,
    ContainerSpec,
    ContainerSummary,
    PortBinding,
)

__all__ = [
    "MANAGED_LABEL",
    "BindMount",
    "ContainerBackend",
    "ContainerInfo",
    "ContainerSpec",
    "ContainerSummary",
    "DockerCLIBackend",
    "PortBinding",
]
