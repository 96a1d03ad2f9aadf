"""The runtime surface the lifecycle manager needs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mysqlbox.runtime.models import ContainerInfo, ContainerSpec, ContainerSummary


@runtime_checkable
class ContainerBackend(Protocol):
    """Creates, starts, inspects and stops containers.

    Any runtime offering bind mounts and auto-removal on stop can implement
    this. ``list_managed()`` only serves inventory tooling.
    """

    async def create(self, spec: ContainerSpec) -> str:
        """Create (but do not start) a container and return its id."""
        ...

    async def start(self, container_id: str) -> None:
        """Start a created container."""
        ...

    async def inspect(self, container_id: str) -> ContainerInfo:
        """Return the current state of a container."""
        ...

    async def stop(self, container_id: str, timeout: float) -> None:
        """Stop a container, killing it after *timeout* seconds."""
        ...

    async def list_managed(self, label: str) -> list[ContainerSummary]:
        """List running containers carrying *label*."""
        ...
