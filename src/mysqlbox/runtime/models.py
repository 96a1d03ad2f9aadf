"""Data models for the container runtime layer."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

MANAGED_LABEL = "mysqlbox.managed"


class BindMount(BaseModel):
    """A host file or directory bound into the container."""

    source: str = Field(..., description="Absolute host path.")
    target: str = Field(..., description="Path inside the container.")
    read_only: bool = Field(default=True, description="Mount read-only.")


class PortBinding(BaseModel):
    """A host address a container port is published on."""

    host_ip: str = Field(default="127.0.0.1", description="Host interface.")
    host_port: int = Field(default=0, ge=0, le=65535, description="Host port; 0 lets the runtime pick.")


class ContainerSpec(BaseModel):
    """Everything needed to create one container."""

    name: str = Field(..., description="Container name.")
    image: str = Field(..., description="Image reference.")
    env: dict[str, str] = Field(default_factory=dict, description="Environment variables.")
    command: list[str] = Field(default_factory=list, description="Arguments passed to the entrypoint.")
    ports: dict[str, PortBinding] = Field(
        default_factory=dict, description="Container port (e.g. '3306/tcp') to host binding."
    )
    mounts: list[BindMount] = Field(default_factory=list, description="Bind mounts.")
    labels: dict[str, str] = Field(default_factory=dict, description="Bookkeeping labels.")
    auto_remove: bool = Field(default=True, description="Remove the container once it stops.")


class ContainerInfo(BaseModel):
    """The subset of ``docker inspect`` output mysqlbox relies on."""

    id: str = Field(..., description="Full container id.")
    name: str = Field(default="", description="Container name without the leading slash.")
    running: bool = Field(default=False, description="Whether the container is running.")
    status: str = Field(default="", description="Runtime status string.")
    ports: dict[str, list[PortBinding]] = Field(
        default_factory=dict, description="Published ports keyed by container port."
    )
    labels: dict[str, str] = Field(default_factory=dict, description="Container labels.")

    def host_port(self, container_port: str) -> int | None:
        """Return the first host port bound to *container_port*, if any."""
        for binding in self.ports.get(container_port, []):
            if binding.host_port:
                return binding.host_port
        return None

    @classmethod
    def from_inspect(cls, data: dict[str, Any]) -> ContainerInfo:
        """Build from one element of ``docker inspect`` JSON output."""
        state = data.get("State") or {}
        config = data.get("Config") or {}
        raw_ports = (data.get("NetworkSettings") or {}).get("Ports") or {}

        ports: dict[str, list[PortBinding]] = {}
        for container_port, bindings in raw_ports.items():
            ports[container_port] = [
                PortBinding(host_ip=b.get("HostIp") or "", host_port=int(b.get("HostPort") or 0))
                for b in bindings or []
            ]

        return cls(
            id=data.get("Id", ""),
            name=str(data.get("Name", "")).lstrip("/"),
            running=bool(state.get("Running", False)),
            status=state.get("Status", ""),
            ports=ports,
            labels=config.get("Labels") or {},
        )


class ContainerSummary(BaseModel):
    """One row of ``docker ps`` output."""

    id: str
    name: str
    image: str = ""
    status: str = ""
    ports: str = ""
