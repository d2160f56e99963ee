"""nsticky

Sticky windows for the niri compositor.

This package provides a long-running daemon that:
- Keeps the set of sticky windows in memory
- Exposes a control socket for the nsticky CLI
- Moves sticky windows to every workspace niri activates

License: MIT
Version: 0.1.0
"""

__version__ = "0.1.0"
