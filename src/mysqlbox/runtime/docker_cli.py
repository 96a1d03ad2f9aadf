"""DockerCLIBackend — drives containers through the ``docker`` CLI.

Uses ``asyncio`` subprocesses rather than a docker SDK; every command is
bounded by a timeout so nothing in the lifecycle blocks indefinitely.
"""

from __future__ import annotations

import asyncio
import json
import logging

from mysqlbox.errors import BackendError, BackendTimeoutError, ContainerNotFoundError
from mysqlbox.runtime.models import ContainerInfo, ContainerSpec, ContainerSummary

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("No such container", "No such object")


class DockerCLIBackend:
    """Container backend on top of the ``docker`` executable.

    Satisfies the :class:`~mysqlbox.runtime.backend.ContainerBackend`
    protocol.
    """

    def __init__(
        self,
        *,
        docker: str = "docker",
        command_timeout: float = 60.0,
        create_timeout: float = 600.0,
    ) -> None:
        self._docker = docker
        self._command_timeout = command_timeout
        # create may pull the image first
        self._create_timeout = create_timeout

    async def create(self, spec: ContainerSpec) -> str:
        """``docker create`` the container described by *spec*."""
        out = await self._run_docker(self._build_create_command(spec), timeout=self._create_timeout)
        container_id = out.stdout.splitlines()[-1].strip() if out.stdout else ""
        if not container_id:
            raise BackendError(f"docker create returned no container id for {spec.name}")
        logger.debug("Created container %s (%s)", spec.name, container_id[:12])
        return container_id

    async def start(self, container_id: str) -> None:
        await self._run_docker([self._docker, "start", container_id], target=container_id)

    async def inspect(self, container_id: str) -> ContainerInfo:
        out = await self._run_docker([self._docker, "inspect", container_id], target=container_id)
        try:
            data = json.loads(out.stdout)
        except json.JSONDecodeError as exc:
            raise BackendError(f"Unparseable docker inspect output: {exc}") from exc
        if not data:
            raise ContainerNotFoundError(container_id)
        return ContainerInfo.from_inspect(data[0])

    async def stop(self, container_id: str, timeout: float) -> None:
        """``docker stop`` with a grace period of *timeout* seconds.

        ``--rm`` only removes containers that actually ran, so a container
        that was created but never started is removed here instead.
        """
        await self._run_docker(
            [self._docker, "stop", "--time", str(int(timeout)), container_id],
            target=container_id,
            timeout=timeout + self._command_timeout,
        )
        if await self._never_started(container_id):
            logger.debug("Removing never-started container %s", container_id[:12])
            try:
                await self._run_docker(
                    [self._docker, "rm", "--volumes", container_id], target=container_id
                )
            except ContainerNotFoundError:
                pass

    async def _never_started(self, container_id: str) -> bool:
        out = await self._run_docker(
            [
                self._docker, "ps", "--all", "--quiet", "--no-trunc",
                "--filter", f"id={container_id}",
                "--filter", "status=created",
            ],
        )
        return bool(out.stdout)

    async def list_managed(self, label: str) -> list[ContainerSummary]:
        out = await self._run_docker(
            [self._docker, "ps", "--filter", f"label={label}", "--format", "{{json .}}"],
        )
        summaries: list[ContainerSummary] = []
        for line in out.stdout.splitlines():
            if not line.strip():
                continue
            row = json.loads(line)
            summaries.append(
                ContainerSummary(
                    id=row.get("ID", ""),
                    name=row.get("Names", ""),
                    image=row.get("Image", ""),
                    status=row.get("Status", ""),
                    ports=row.get("Ports", ""),
                )
            )
        return summaries

    def _build_create_command(self, spec: ContainerSpec) -> list[str]:
        """Build the ``docker create`` command line for *spec*."""
        cmd: list[str] = [self._docker, "create", "--name", spec.name]

        if spec.auto_remove:
            cmd.append("--rm")

        for key, value in spec.labels.items():
            cmd.extend(["--label", f"{key}={value}"])

        for key, value in spec.env.items():
            cmd.extend(["-e", f"{key}={value}"])

        for container_port, binding in spec.ports.items():
            host_port = str(binding.host_port) if binding.host_port else ""
            cmd.extend(["--expose", container_port])
            cmd.extend(["-p", f"{binding.host_ip}:{host_port}:{container_port}"])

        for mount in spec.mounts:
            value = f"type=bind,source={mount.source},target={mount.target}"
            if mount.read_only:
                value += ",readonly"
            cmd.extend(["--mount", value])

        cmd.append(spec.image)
        cmd.extend(spec.command)
        return cmd

    async def _run_docker(
        self,
        cmd: list[str],
        *,
        target: str | None = None,
        timeout: float | None = None,
    ) -> _DockerOutput:
        """Run a docker CLI command and return its output.

        A non-zero exit mentioning an unknown container raises
        :class:`ContainerNotFoundError` when *target* is given.
        """
        timeout = timeout or self._command_timeout
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise BackendError(f"Failed to run docker: {exc}") from exc

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise BackendTimeoutError(" ".join(cmd[:2]), timeout)

        stdout = stdout_bytes.decode(errors="replace").strip() if stdout_bytes else ""
        stderr = stderr_bytes.decode(errors="replace").strip() if stderr_bytes else ""

        if proc.returncode != 0:
            if target is not None and any(m in stderr for m in _NOT_FOUND_MARKERS):
                raise ContainerNotFoundError(target)
            raise BackendError(f"docker command failed (rc={proc.returncode}): {stderr or stdout}")

        return _DockerOutput(stdout=stdout, stderr=stderr)


class _DockerOutput:
    """Simple container for docker CLI output."""

    __slots__ = ("stdout", "stderr")

    def __init__(self, stdout: str = "", stderr: str = "") -> None:
        self.stdout = stdout
        self.stderr = stderr
