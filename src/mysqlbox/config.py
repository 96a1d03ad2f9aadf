"""Sandbox settings, credential policy and default resolution."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, InstanceOf, ValidationError, model_validator

from mysqlbox.data import BufferData, InitialData, StreamData
from mysqlbox.errors import ConfigurationError
from mysqlbox.ids import new_id

DEFAULT_IMAGE = "mysql:8.0"
DEFAULT_DATABASE = "testing"
DEFAULT_HOST = "127.0.0.1"
CONTAINER_NAME_PREFIX = "mysql-test-"


class CredentialMode(str, Enum):
    """How the root account of the sandbox is secured."""

    EMPTY = "empty"
    RANDOM = "random"
    EXPLICIT = "explicit"


class Credential(BaseModel):
    """Exactly one active credential policy."""

    model_config = ConfigDict(frozen=True)

    mode: CredentialMode = Field(default=CredentialMode.EMPTY, description="Active policy.")
    password: str = Field(default="", description="Root password (EXPLICIT only).")

    @model_validator(mode="after")
    def _check_password(self) -> Credential:
        if self.mode is CredentialMode.EXPLICIT and not self.password:
            raise ValueError("explicit credential requires a password")
        if self.mode is not CredentialMode.EXPLICIT and self.password:
            raise ValueError(f"{self.mode.value} credential cannot carry a password")
        return self

    @classmethod
    def empty(cls) -> Credential:
        return cls()

    @classmethod
    def random(cls) -> Credential:
        return cls(mode=CredentialMode.RANDOM)

    @classmethod
    def explicit(cls, password: str) -> Credential:
        return cls(mode=CredentialMode.EXPLICIT, password=password)


class Settings(BaseModel):
    """Caller-facing sandbox settings. Unset fields are filled by :func:`resolve`."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    image: str | None = Field(default=None, description="Docker image reference.")
    database: str | None = Field(default=None, description="Database created at boot.")
    container_name: str | None = Field(default=None, description="Container name.")
    root_password: str | None = Field(default=None, description="Explicit root password.")
    random_root_password: bool = Field(
        default=False, description="Let MySQL generate the root password."
    )
    port: int = Field(default=0, ge=0, le=65535, description="Host port; 0 picks an ephemeral one.")
    host: str | None = Field(default=None, description="Host interface the port is published on.")
    initial_data: InstanceOf[StreamData] | InstanceOf[BufferData] | None = Field(
        default=None, description="SQL script run at first boot."
    )
    excluded_tables: list[str] = Field(default_factory=list, description="Tables kept by reset_all().")
    ready_timeout: float = Field(default=30.0, gt=0, description="Readiness deadline in seconds.")
    ready_interval: float = Field(default=0.5, gt=0, description="Delay between readiness probes.")
    stop_timeout: float = Field(
        default=60.0, ge=0, description="Grace period before the container is killed."
    )


class ResolvedSettings(BaseModel):
    """Settings with every default applied and the credential policy fixed."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image: str
    database: str
    container_name: str
    credential: Credential
    port: int
    host: str
    initial_data: InstanceOf[StreamData] | InstanceOf[BufferData] | None
    excluded_tables: tuple[str, ...]
    ready_timeout: float
    ready_interval: float
    stop_timeout: float


def resolve(settings: Settings | None = None) -> ResolvedSettings:
    """Fill unset fields with defaults; caller-supplied values are kept.

    Credential precedence is explicit password, then random, then empty.

    Raises:
        ConfigurationError: If both an explicit and a random password are requested.
    """
    s = settings or Settings()

    if s.root_password and s.random_root_password:
        raise ConfigurationError("root_password and random_root_password are mutually exclusive")

    if s.root_password:
        credential = Credential.explicit(s.root_password)
    elif s.random_root_password:
        credential = Credential.random()
    else:
        credential = Credential.empty()

    return ResolvedSettings(
        image=s.image or DEFAULT_IMAGE,
        database=s.database or DEFAULT_DATABASE,
        container_name=s.container_name or f"{CONTAINER_NAME_PREFIX}{new_id().lower()}",
        credential=credential,
        port=s.port,
        host=s.host or DEFAULT_HOST,
        initial_data=s.initial_data,
        excluded_tables=tuple(dict.fromkeys(s.excluded_tables)),
        ready_timeout=s.ready_timeout,
        ready_interval=s.ready_interval,
        stop_timeout=s.stop_timeout,
    )


def load_settings(path: str | Path) -> Settings:
    """Read settings from a YAML file.

    ``${VAR}`` references are expanded from the environment before parsing.
    An ``initial_data`` key names a SQL file, relative to the YAML file.

    Raises:
        ConfigurationError: On read, parse or validation failures.
    """
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read {p}: {exc}") from exc

    try:
        data: Any = yaml.safe_load(os.path.expandvars(raw))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"YAML parse error: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Settings YAML must be a mapping")

    schema = data.pop("initial_data", None)
    if schema is not None:
        data["initial_data"] = InitialData.from_file(p.parent / str(schema))

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
