"""Entry point: ``nsticky`` runs the daemon, ``nsticky <command>`` the CLI."""

import sys
from typing import List, Optional

from . import cli, daemon


def main(argv: Optional[List[str]] = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if args:
        cli.main(args)
    else:
        daemon.main()


if __name__ == "__main__":
    main()
