"""
Pydantic models for the niri IPC boundary.

niri speaks newline-delimited JSON with externally tagged enums, e.g.
``{"WorkspaceActivated": {"id": 3, "focused": true}}``. Events are decoded
into a closed set of variants before dispatch: the one variant the daemon
acts on (WorkspaceActivated) and UnknownEvent for everything else.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from .errors import DecodeFailed


class NiriWindow(BaseModel):
    """A window as reported by niri's ``Windows`` / ``FocusedWindow`` replies.

    Only the id matters to the daemon; the other fields are kept for logging.
    """

    model_config = ConfigDict(extra="ignore")

    id: StrictInt = Field(..., ge=0, description="niri window id")
    title: Optional[str] = None
    app_id: Optional[str] = None
    workspace_id: Optional[int] = None
    is_focused: bool = False
    is_floating: bool = False


class WorkspaceActivated(BaseModel):
    """A workspace became active on some output."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: StrictInt = Field(..., ge=0, description="niri workspace id")
    focused: bool = False


class UnknownEvent(BaseModel):
    """Any well-formed event the daemon does not act on."""

    model_config = ConfigDict(frozen=True)

    name: str


NiriEvent = Union[WorkspaceActivated, UnknownEvent]


def decode_event(line: Union[str, bytes]) -> NiriEvent:
    """Decode one line of niri's event stream.

    Args:
        line: Raw JSON line (with or without the trailing newline)

    Returns:
        WorkspaceActivated or UnknownEvent

    Raises:
        DecodeFailed: If the line is not JSON, not a single-variant object,
            or a WorkspaceActivated payload is missing its id
    """
    if isinstance(line, bytes):
        try:
            line = line.decode()
        except UnicodeDecodeError as e:
            raise DecodeFailed(repr(line), f"invalid utf-8: {e}") from e

    try:
        payload = json.loads(line)
    except json.JSONDecodeError as e:
        raise DecodeFailed(line, f"invalid JSON: {e}") from e

    if not isinstance(payload, dict) or len(payload) != 1:
        raise DecodeFailed(line, "expected an object with exactly one event variant")

    (name, body), = payload.items()

    if name == "WorkspaceActivated":
        try:
            return WorkspaceActivated.model_validate(body)
        except ValidationError as e:
            raise DecodeFailed(line, f"bad WorkspaceActivated payload: {e.errors()[0]['msg']}") from e

    return UnknownEvent(name=name)


class MoveWindowToWorkspace(BaseModel):
    """niri action moving a window to a workspace by id, without focusing it.

    Example:
        >>> MoveWindowToWorkspace(window_id=12, workspace_id=3).to_request()
        {'Action': {'MoveWindowToWorkspace': {'window_id': 12, 'reference': {'Id': 3}, 'focus': False}}}
    """

    model_config = ConfigDict(frozen=True)

    window_id: int = Field(..., ge=0)
    workspace_id: int = Field(..., ge=0)
    focus: bool = False

    def to_request(self) -> dict[str, Any]:
        """Build the JSON request object niri expects."""
        return {
            "Action": {
                "MoveWindowToWorkspace": {
                    "window_id": self.window_id,
                    "reference": {"Id": self.workspace_id},
                    "focus": self.focus,
                }
            }
        }
