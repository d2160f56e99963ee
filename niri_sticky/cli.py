#!/usr/bin/env python3
"""
nsticky CLI

Command-line client for the nsticky daemon. Sends one control request and
prints the single-line reply.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

from .constants import ConfigPaths, EnvVars
from .protocol import (
    AddCommand,
    Command,
    ListCommand,
    RemoveCommand,
    ToggleActiveCommand,
    format_request,
    parse_window_id,
)
from .errors import MalformedRequest


def _window_id(value: str) -> int:
    try:
        return parse_window_id(value)
    except MalformedRequest:
        raise argparse.ArgumentTypeError(f"invalid window id: {value!r}")


class StickyCLI:
    """CLI client for the nsticky daemon."""

    def __init__(self, socket_path: Optional[Path] = None):
        """Initialize CLI client.

        Args:
            socket_path: Control socket (defaults to $NSTICKY_SOCKET or the
                well-known path)
        """
        if socket_path is None:
            socket_path = Path(os.environ.get(EnvVars.CONTROL_SOCKET) or ConfigPaths.CONTROL_SOCKET_PATH)
        self.socket_path = socket_path

    async def send_request(self, command: Command) -> str:
        """Send one request to the daemon.

        Args:
            command: Command to send

        Returns:
            Reply line including its trailing newline (empty if the daemon
            closed the connection without replying)

        Raises:
            ConnectionError: If the daemon is not running
        """
        try:
            reader, writer = await asyncio.open_unix_connection(str(self.socket_path))
        except (FileNotFoundError, ConnectionRefusedError) as e:
            raise ConnectionError(f"Daemon not running (cannot connect to {self.socket_path}): {e}") from e

        try:
            writer.write(format_request(command).encode())
            await writer.drain()
            data = await reader.readline()
        finally:
            writer.close()
            await writer.wait_closed()

        return data.decode(errors="replace")

    @staticmethod
    def build_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="nsticky",
            description="Manage sticky windows via CLI",
        )
        subparsers = parser.add_subparsers(dest="command", required=True)

        add_parser = subparsers.add_parser("add", help="Add a window to the sticky list")
        add_parser.add_argument("window_id", type=_window_id, help="Window ID to add to sticky list")

        remove_parser = subparsers.add_parser("remove", help="Remove a window from the sticky list")
        remove_parser.add_argument("window_id", type=_window_id, help="Window ID to remove from sticky list")

        subparsers.add_parser("list", help="List sticky windows")
        subparsers.add_parser("toggle-active", help="Toggle the focused window")

        return parser

    @staticmethod
    def command_from_args(args: argparse.Namespace) -> Command:
        if args.command == "add":
            return AddCommand(args.window_id)
        if args.command == "remove":
            return RemoveCommand(args.window_id)
        if args.command == "list":
            return ListCommand()
        return ToggleActiveCommand()

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run CLI.

        Returns:
            Exit code
        """
        args = self.build_parser().parse_args(argv)
        command = self.command_from_args(args)

        try:
            reply = asyncio.run(self.send_request(command))
        except ConnectionError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except OSError as e:
            print(f"Error: failed to communicate with daemon: {e}", file=sys.stderr)
            return 1

        print(reply, end="")
        return 0


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    sys.exit(StickyCLI().run(argv))


if __name__ == "__main__":
    main()
