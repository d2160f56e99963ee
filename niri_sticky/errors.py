"""
Error handling for the nsticky daemon.

Every failure the daemon can hit maps to one of the codes below. Control
connections turn them into a single reply line, the event reconciler logs them
and keeps streaming, and only StartupFailed stops the process.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """
    Error codes for nsticky.

    - 1000-1099: Control protocol errors
    - 1100-1199: Niri IPC errors
    - 1200-1299: Daemon lifecycle errors
    """

    # Control protocol errors (1000-1099)
    MALFORMED_REQUEST = 1000
    WINDOW_NOT_FOUND = 1001

    # Niri IPC errors (1100-1199)
    QUERY_FAILED = 1100
    NO_FOCUSED_WINDOW = 1101
    COMMAND_FAILED = 1102
    DECODE_FAILED = 1103

    # Daemon lifecycle errors (1200-1299)
    STARTUP_FAILED = 1200


class StickyError(Exception):
    """Base exception for nsticky errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize nsticky error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dictionary for structured logging."""
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.context:
            result["context"] = self.context

        return result


class MalformedRequest(StickyError):
    """Bad or missing control command or argument.

    The reply attribute holds the exact line sent back to the client.
    """

    def __init__(self, reply: str, line: Optional[str] = None):
        self.reply = reply
        super().__init__(
            code=ErrorCode.MALFORMED_REQUEST,
            message=reply,
            context={"line": line} if line is not None else None
        )


class NotFound(StickyError):
    """Target window is absent from niri's current state."""

    def __init__(self, window_id: int):
        self.window_id = window_id
        super().__init__(
            code=ErrorCode.WINDOW_NOT_FOUND,
            message=f"Window {window_id} not found in niri",
            context={"window_id": window_id}
        )


class QueryFailed(StickyError):
    """Niri is unreachable or replied with data we cannot use."""

    def __init__(self, operation: str, reason: str):
        """
        Initialize query error.

        Args:
            operation: Niri request that failed (e.g. "Windows")
            reason: Reason for failure
        """
        self.operation = operation
        self.reason = reason
        super().__init__(
            code=ErrorCode.QUERY_FAILED,
            message=f"Niri {operation} query failed: {reason}",
            context={"operation": operation, "reason": reason}
        )


class NoFocus(StickyError):
    """Niri reports no focused window."""

    def __init__(self):
        super().__init__(
            code=ErrorCode.NO_FOCUSED_WINDOW,
            message="No focused window in niri"
        )


class CommandFailed(StickyError):
    """A niri action was rejected or could not be delivered."""

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(
            code=ErrorCode.COMMAND_FAILED,
            message=f"Niri action {action} failed: {reason}",
            context={"action": action, "reason": reason}
        )


class DecodeFailed(StickyError):
    """One event line from the niri event stream could not be decoded."""

    def __init__(self, line: str, reason: str):
        self.line = line
        super().__init__(
            code=ErrorCode.DECODE_FAILED,
            message=f"Failed to decode niri event: {reason}",
            context={"line": line[:200], "reason": reason}
        )


class StartupFailed(StickyError):
    """The daemon cannot start in a fully initialized state."""

    def __init__(self, reason: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.STARTUP_FAILED,
            message=f"Daemon startup failed: {reason}",
            context=context
        )
