"""Control protocol shared by the daemon and the CLI.

One request per connection, one newline-terminated line each way:

    add <id>         remove <id>         list         toggle_active

Replies are the fixed strings in Reply, or the rendered id list for ``list``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

from .errors import MalformedRequest

# niri window ids are u64
MAX_WINDOW_ID = 2**64 - 1


class Reply(str, Enum):
    """Every fixed reply line the daemon can send (without the newline)."""

    ADDED = "Added"
    ALREADY_STICKY = "Already in sticky list"
    REMOVED = "Removed"
    NOT_STICKY = "Not in sticky list"
    WINDOW_NOT_FOUND = "Window not found in Niri"
    INVALID_WINDOW_ID = "Invalid window id"
    MISSING_WINDOW_ID = "Missing window id"
    ACTIVE_ADDED = "Added active window to sticky"
    ACTIVE_REMOVED = "Removed active window from sticky"
    ACTIVE_NOT_FOUND = "Active window not found in Niri"
    ACTIVE_FAILED = "Failed to get active window"
    QUERY_FAILED = "Failed to query Niri windows"
    UNKNOWN_COMMAND = "Unknown command"


@dataclass(frozen=True)
class AddCommand:
    window_id: int


@dataclass(frozen=True)
class RemoveCommand:
    window_id: int


@dataclass(frozen=True)
class ListCommand:
    pass


@dataclass(frozen=True)
class ToggleActiveCommand:
    pass


Command = Union[AddCommand, RemoveCommand, ListCommand, ToggleActiveCommand]


def parse_window_id(token: str) -> int:
    """Parse a decimal u64 window id, optionally prefixed with a single ``+``.

    Raises:
        MalformedRequest: With the ``Invalid window id`` reply
    """
    digits = token[1:] if token.startswith("+") else token
    if not digits.isascii() or not digits.isdigit():
        raise MalformedRequest(Reply.INVALID_WINDOW_ID.value, token)
    window_id = int(digits)
    if window_id > MAX_WINDOW_ID:
        raise MalformedRequest(Reply.INVALID_WINDOW_ID.value, token)
    return window_id


def parse_command(line: str) -> Command:
    """Parse one request line into a command.

    Surrounding whitespace is ignored, as are tokens after the window id.

    Args:
        line: Request line as read from the socket

    Returns:
        Parsed command

    Raises:
        MalformedRequest: Carrying the reply to send back
    """
    parts = line.split()
    if not parts:
        raise MalformedRequest(Reply.UNKNOWN_COMMAND.value, line)

    verb, args = parts[0], parts[1:]

    if verb in ("add", "remove"):
        if not args:
            raise MalformedRequest(Reply.MISSING_WINDOW_ID.value, line)
        window_id = parse_window_id(args[0])
        return AddCommand(window_id) if verb == "add" else RemoveCommand(window_id)

    if verb == "list":
        return ListCommand()

    if verb == "toggle_active":
        return ToggleActiveCommand()

    raise MalformedRequest(Reply.UNKNOWN_COMMAND.value, line)


def format_request(command: Command) -> str:
    """Render a command as a request line (newline included)."""
    if isinstance(command, AddCommand):
        return f"add {command.window_id}\n"
    if isinstance(command, RemoveCommand):
        return f"remove {command.window_id}\n"
    if isinstance(command, ListCommand):
        return "list\n"
    return "toggle_active\n"


def format_window_list(window_ids: Iterable[int]) -> str:
    """Render ids as ``[1, 2, 3]`` in ascending order."""
    return "[" + ", ".join(str(wid) for wid in sorted(window_ids)) + "]"
