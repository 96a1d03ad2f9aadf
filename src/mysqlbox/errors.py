"""Shared error types for mysqlbox."""

from __future__ import annotations


class MySQLBoxError(Exception):
    """Base error for all mysqlbox failures."""


class BackendError(MySQLBoxError):
    """A container runtime command failed."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Container backend error" + (f": {detail}" if detail else ""))


class BackendTimeoutError(BackendError):
    """A container runtime command did not finish in time."""

    def __init__(self, command: str, timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"{command} timed out after {timeout}s")


class ContainerNotFoundError(BackendError):
    """The runtime does not know the container (already removed)."""

    def __init__(self, container: str) -> None:
        self.container = container
        super().__init__(f"No such container: {container}")


class ConfigurationError(MySQLBoxError):
    """Settings are invalid or contradictory."""


class InitialDataError(MySQLBoxError):
    """The initial-data artifact could not be read or written to disk."""


class ProvisioningError(MySQLBoxError):
    """The sandbox could not be created, started or made ready.

    ``cleanup_error`` holds the secondary failure, if any, raised while
    stopping the partially provisioned container.
    """

    def __init__(self, detail: str = "", *, container_name: str | None = None) -> None:
        self.detail = detail
        self.container_name = container_name
        self.cleanup_error: BaseException | None = None
        msg = "Provisioning failed"
        if container_name:
            msg += f" for {container_name}"
        super().__init__(msg + (f": {detail}" if detail else ""))


class PortDiscoveryError(ProvisioningError):
    """The started container reported no host binding for the engine port."""


class ReadinessTimeoutError(ProvisioningError):
    """The engine did not accept connections before the deadline."""

    def __init__(self, timeout: float, *, container_name: str | None = None) -> None:
        self.timeout = timeout
        super().__init__(
            f"MySQL not reachable after {timeout}s",
            container_name=container_name,
        )


class TeardownError(MySQLBoxError):
    """Stopping the sandbox container failed."""

    def __init__(self, container: str, detail: str = "") -> None:
        self.container = container
        self.detail = detail
        super().__init__(f"Failed to stop {container}" + (f": {detail}" if detail else ""))


class ResetError(MySQLBoxError):
    """Listing or truncating tables failed."""

    def __init__(self, detail: str = "", *, table: str | None = None) -> None:
        self.detail = detail
        self.table = table
        msg = f"Reset failed on table {table}" if table else "Reset failed"
        super().__init__(msg + (f": {detail}" if detail else ""))


class InvalidHandleError(MySQLBoxError):
    """Operation attempted on an uninitialized sandbox handle."""

    def __init__(self, operation: str = "") -> None:
        self.operation = operation
        msg = "Sandbox handle is not initialized"
        if operation:
            msg += f" (called {operation})"
        super().__init__(msg)
