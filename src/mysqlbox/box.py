"""LifecycleManager — provisions and tears down MySQL sandboxes.

Each ``provision()`` call:
1. Resolves settings and materializes the initial-data script, if any.
2. ``create`` a container with the credential env, engine flags, the
   published port, the read-only script mount and auto-removal.
3. ``start`` it and ``inspect`` it for the bound host port.
4. Probes the engine until it accepts connections or the deadline passes.
5. Opens a pool and returns a READY :class:`~mysqlbox.handle.Handle`.

Any failure after step 2 stops the container before the error propagates.
"""

from __future__ import annotations

import asyncio
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from mysqlbox.config import CredentialMode, ResolvedSettings, Settings, resolve
from mysqlbox.data import materialize
from mysqlbox.db import DSN, PROBE_ERRORS, MySQLConnector
from mysqlbox.errors import (
    BackendError,
    ContainerNotFoundError,
    PortDiscoveryError,
    ProvisioningError,
    ReadinessTimeoutError,
)
from mysqlbox.handle import BoxState, Handle, SandboxRecord, StopAction, teardown
from mysqlbox.logs import LogSink
from mysqlbox.runtime.backend import ContainerBackend
from mysqlbox.runtime.docker_cli import DockerCLIBackend
from mysqlbox.runtime.models import MANAGED_LABEL, BindMount, ContainerSpec, PortBinding
from mysqlbox.utils.telemetry import (
    ATTR_CONTAINER_ID,
    ATTR_CONTAINER_NAME,
    ATTR_CREDENTIAL_MODE,
    ATTR_DATABASE,
    ATTR_HOST_PORT,
    ATTR_IMAGE,
    ATTR_PROBE_ATTEMPTS,
    get_tracer,
)

_tracer = get_tracer(__name__)

ENGINE_PORT = "3306/tcp"
INIT_SCRIPT_TARGET = "/docker-entrypoint-initdb.d/schema.sql"
ENGINE_COMMAND = [
    "--default-authentication-plugin=mysql_native_password",
    "--general-log=1",
    "--general-log-file=/var/lib/mysql/general-log.log",
]
# Pool account when root has a random password (printed only to the container log)
SANDBOX_USER = "mysqlbox"


class LifecycleManager:
    """Provisions MySQL sandboxes on a container backend.

    Collaborators are fixed at construction; the manager holds no reference
    to a sandbox once its handle is returned, so one manager can provision
    any number of sandboxes concurrently.
    """

    def __init__(
        self,
        backend: ContainerBackend | None = None,
        connector: MySQLConnector | None = None,
        log: LogSink | None = None,
    ) -> None:
        self._backend = backend or DockerCLIBackend()
        self._connector = connector or MySQLConnector()
        self.log = log or LogSink()

    async def provision(self, settings: Settings | None = None) -> Handle:
        """Create, start and wait for a sandbox; return its READY handle.

        Raises:
            ConfigurationError: Contradictory settings.
            InitialDataError: The initial-data script could not be written.
            ProvisioningError: The backend rejected the container, or the
                engine exited during startup.
            PortDiscoveryError: No host port was bound to the engine port.
            ReadinessTimeoutError: The engine never accepted connections.
        """
        resolved = resolve(settings)
        with _tracer.start_as_current_span("mysqlbox.provision") as span:
            span.set_attribute(ATTR_CONTAINER_NAME, resolved.container_name)
            span.set_attribute(ATTR_IMAGE, resolved.image)
            span.set_attribute(ATTR_DATABASE, resolved.database)
            span.set_attribute(ATTR_CREDENTIAL_MODE, resolved.credential.mode.value)

            if resolved.initial_data is None:
                return await self._provision(resolved, None)
            with materialize(resolved.initial_data) as script:
                return await self._provision(resolved, script)

    async def teardown(self, handle: Handle | None) -> bool:
        """Stop the sandbox behind *handle*; see :meth:`Handle.stop`."""
        return await teardown(handle)

    @asynccontextmanager
    async def sandbox(self, settings: Settings | None = None) -> AsyncIterator[Handle]:
        """Provision a sandbox for the duration of an ``async with`` block."""
        handle = await self.provision(settings)
        try:
            yield handle
        finally:
            await handle.stop()

    async def _provision(self, resolved: ResolvedSettings, script: Path | None) -> Handle:
        name = resolved.container_name
        env, user, password = self._credential_env(resolved)
        spec = self._build_spec(resolved, env, script)

        state = BoxState.CREATING
        self.log.info("Creating %s from %s", name, resolved.image)
        try:
            container_id = await self._backend.create(spec)
        except BackendError as exc:
            self.log.error("Create %s failed: %s", name, exc.detail)
            raise ProvisioningError(exc.detail, container_name=name) from exc

        span = _tracer.start_span("mysqlbox.startup")
        span.set_attribute(ATTR_CONTAINER_ID, container_id)
        try:
            state = BoxState.STARTING
            await self._backend.start(container_id)

            state = BoxState.AWAITING_READINESS
            port = await self._discover_port(container_id, name)
            span.set_attribute(ATTR_HOST_PORT, port)
            dsn = DSN(
                host=_connect_host(resolved.host),
                port=port,
                user=user,
                password=password,
                database=resolved.database,
            )
            attempts = await self._wait_until_ready(container_id, dsn, resolved)
            span.set_attribute(ATTR_PROBE_ATTEMPTS, attempts)
            pool = await self._connector.open_pool(dsn)
        except ProvisioningError as exc:
            await self._discard(container_id, resolved, state, exc)
            raise
        except (BackendError, *PROBE_ERRORS) as exc:
            err = ProvisioningError(str(exc), container_name=name)
            await self._discard(container_id, resolved, state, err)
            raise err from exc
        except BaseException:
            await self._discard(container_id, resolved, state, None)
            raise
        finally:
            span.end()

        stop = StopAction(
            self._backend,
            container_id,
            name,
            timeout=resolved.stop_timeout,
            log=self.log,
        )
        self.log.info("%s ready at %s:%d", name, dsn.host, dsn.port)
        return Handle(
            SandboxRecord(
                container_id=container_id,
                container_name=name,
                image=resolved.image,
                dsn=dsn,
                pool=pool,
                excluded_tables=resolved.excluded_tables,
                stop=stop,
                connector=self._connector,
                log=self.log,
            )
        )

    def _credential_env(self, resolved: ResolvedSettings) -> tuple[dict[str, str], str, str]:
        """Return the container env plus the user and password to connect with."""
        env = {"MYSQL_DATABASE": resolved.database}
        credential = resolved.credential

        if credential.mode is CredentialMode.RANDOM:
            env["MYSQL_RANDOM_ROOT_PASSWORD"] = "1"
            password = secrets.token_urlsafe(18)
            env["MYSQL_USER"] = SANDBOX_USER
            env["MYSQL_PASSWORD"] = password
            return env, SANDBOX_USER, password

        if credential.mode is CredentialMode.EMPTY:
            env["MYSQL_ALLOW_EMPTY_PASSWORD"] = "1"
            return env, "root", ""

        env["MYSQL_ROOT_PASSWORD"] = credential.password
        return env, "root", credential.password

    def _build_spec(
        self,
        resolved: ResolvedSettings,
        env: dict[str, str],
        script: Path | None,
    ) -> ContainerSpec:
        mounts = []
        if script is not None:
            mounts.append(BindMount(source=str(script), target=INIT_SCRIPT_TARGET, read_only=True))

        return ContainerSpec(
            name=resolved.container_name,
            image=resolved.image,
            env=env,
            command=list(ENGINE_COMMAND),
            ports={ENGINE_PORT: PortBinding(host_ip=resolved.host, host_port=resolved.port)},
            mounts=mounts,
            labels={MANAGED_LABEL: "true"},
            auto_remove=True,
        )

    async def _discover_port(self, container_id: str, name: str) -> int:
        info = await self._backend.inspect(container_id)
        port = info.host_port(ENGINE_PORT)
        if port is None:
            raise PortDiscoveryError(f"no host port bound to {ENGINE_PORT}", container_name=name)
        self.log.debug("%s: %s bound to host port %d", name, ENGINE_PORT, port)
        return port

    async def _wait_until_ready(
        self,
        container_id: str,
        dsn: DSN,
        resolved: ResolvedSettings,
    ) -> int:
        """Probe until the engine answers; return the number of attempts.

        Every probe is bounded by the time left before the deadline.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + resolved.ready_timeout
        attempts = 0

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                self.log.warning(
                    "%s not ready after %d probe(s)", resolved.container_name, attempts
                )
                raise ReadinessTimeoutError(
                    resolved.ready_timeout, container_name=resolved.container_name
                )

            attempts += 1
            try:
                await self._connector.probe(dsn, timeout=remaining)
            except PROBE_ERRORS as exc:
                self.log.debug("Probe %d on %s failed: %s", attempts, resolved.container_name, exc)
            else:
                return attempts

            if not await self._is_running(container_id):
                raise ProvisioningError(
                    "container exited before MySQL became ready (bad initial data?)",
                    container_name=resolved.container_name,
                )

            pause = min(resolved.ready_interval, deadline - loop.time())
            if pause > 0:
                await asyncio.sleep(pause)

    async def _is_running(self, container_id: str) -> bool:
        try:
            info = await self._backend.inspect(container_id)
        except ContainerNotFoundError:
            return False
        except BackendError as exc:
            # Not conclusive; keep probing until the deadline
            self.log.debug("Inspect during readiness wait failed: %s", exc.detail)
            return True
        return info.running

    async def _discard(
        self,
        container_id: str,
        resolved: ResolvedSettings,
        state: BoxState,
        error: ProvisioningError | None,
    ) -> None:
        """Stop a partially provisioned container without masking *error*."""
        self.log.warning(
            "Provisioning %s failed: %s -> %s; stopping container",
            resolved.container_name,
            state.value,
            BoxState.FAILED.value,
        )
        try:
            await self._backend.stop(container_id, resolved.stop_timeout)
        except ContainerNotFoundError:
            pass
        except BackendError as exc:
            self.log.error("Cleanup of %s failed: %s", resolved.container_name, exc.detail)
            if error is not None:
                error.cleanup_error = exc


def _connect_host(host: str) -> str:
    return "127.0.0.1" if host in ("", "0.0.0.0") else host  # noqa: S104


async def start(settings: Settings | None = None) -> Handle:
    """Provision a sandbox with a default :class:`LifecycleManager`."""
    return await LifecycleManager().provision(settings)


@asynccontextmanager
async def sandbox(settings: Settings | None = None) -> AsyncIterator[Handle]:
    """``async with sandbox(settings) as box:`` with a default manager."""
    async with LifecycleManager().sandbox(settings) as handle:
        yield handle
