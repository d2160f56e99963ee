"""Daemon configuration loaded from the environment.

The daemon has a small configuration surface: the niri socket
(provided by the niri session), the control socket path, and a few tuning
knobs for the event stream and compositor queries.
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import ConfigPaths, EnvVars
from .errors import StartupFailed

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class DaemonConfig(BaseModel):
    """Validated daemon configuration."""

    niri_socket: Path = Field(..., description="Path of niri's IPC socket")
    control_socket: Path = Field(
        ConfigPaths.CONTROL_SOCKET_PATH, description="Path of the control socket"
    )
    reconnect: bool = Field(True, description="Reconnect the event stream when it ends")
    max_reconnect_attempts: Optional[int] = Field(
        None, ge=1, description="Consecutive failed attempts before giving up (None = forever)"
    )
    query_timeout: Optional[float] = Field(
        None, gt=0, description="Timeout in seconds for a single niri request"
    )
    max_connections: Optional[int] = Field(
        None, ge=1, description="Cap on concurrently handled control connections"
    )

    @field_validator("niri_socket")
    @classmethod
    def validate_niri_socket(cls, v: Path) -> Path:
        """Reject an empty socket location."""
        if not str(v).strip() or str(v) == ".":
            raise ValueError("niri socket path cannot be empty")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DaemonConfig":
        """Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            DaemonConfig instance

        Raises:
            StartupFailed: If NIRI_SOCKET is unset or any value is invalid
        """
        env = os.environ if environ is None else environ

        niri_socket = env.get(EnvVars.NIRI_SOCKET, "").strip()
        if not niri_socket:
            raise StartupFailed(
                f"{EnvVars.NIRI_SOCKET} is not set (run inside a niri session)",
                context={"variable": EnvVars.NIRI_SOCKET},
            )

        values = {"niri_socket": niri_socket}

        control_socket = env.get(EnvVars.CONTROL_SOCKET, "").strip()
        if control_socket:
            values["control_socket"] = control_socket

        reconnect = env.get(EnvVars.RECONNECT, "").strip().lower()
        if reconnect:
            if reconnect in _TRUE_VALUES:
                values["reconnect"] = True
            elif reconnect in _FALSE_VALUES:
                values["reconnect"] = False
            else:
                raise StartupFailed(
                    f"invalid {EnvVars.RECONNECT} value: {reconnect!r}",
                    context={"variable": EnvVars.RECONNECT},
                )

        for variable, field in (
            (EnvVars.MAX_RECONNECT_ATTEMPTS, "max_reconnect_attempts"),
            (EnvVars.QUERY_TIMEOUT, "query_timeout"),
            (EnvVars.MAX_CONNECTIONS, "max_connections"),
        ):
            raw = env.get(variable, "").strip()
            if raw:
                values[field] = raw

        try:
            config = cls(**values)
        except ValidationError as e:
            raise StartupFailed(
                f"invalid configuration: {e.errors()[0]['msg']}",
                context={"errors": [err["loc"] for err in e.errors()]},
            ) from e

        logger.debug(f"Loaded configuration: {config.model_dump()}")
        return config
