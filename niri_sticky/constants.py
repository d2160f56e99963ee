"""Centralized paths and constants for the nsticky daemon and CLI.

Single source of truth for socket locations, environment variable names and
reconnect timing. Use these constants instead of repeating literals.
"""

from pathlib import Path
from typing import Final


class ConfigPaths:
    """Well-known filesystem paths.

    Example:
        from .constants import ConfigPaths

        server = ControlServer(state, niri, ConfigPaths.CONTROL_SOCKET_PATH)
    """

    # Control socket shared by the daemon and the CLI
    CONTROL_SOCKET_PATH: Final[Path] = Path("/tmp/niri_sticky_cli.sock")


class EnvVars:
    """Environment variables read at startup."""

    NIRI_SOCKET: Final[str] = "NIRI_SOCKET"
    CONTROL_SOCKET: Final[str] = "NSTICKY_SOCKET"
    RECONNECT: Final[str] = "NSTICKY_RECONNECT"
    MAX_RECONNECT_ATTEMPTS: Final[str] = "NSTICKY_MAX_RECONNECT_ATTEMPTS"
    QUERY_TIMEOUT: Final[str] = "NSTICKY_QUERY_TIMEOUT"
    MAX_CONNECTIONS: Final[str] = "NSTICKY_MAX_CONNECTIONS"
    LOG_LEVEL: Final[str] = "LOG_LEVEL"


# Event stream reconnect backoff (seconds)
RECONNECT_INITIAL_DELAY: Final[float] = 0.1
RECONNECT_MAX_DELAY: Final[float] = 5.0

# systemd journal identifier
SYSLOG_IDENTIFIER: Final[str] = "nsticky"
