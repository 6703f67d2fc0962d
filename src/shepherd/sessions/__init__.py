"""Session drivers: reading from and typing into interactive sessions."""

from __future__ import annotations

from shepherd.sessions.driver import SessionDriver
from shepherd.sessions.tmux import TmuxSessionDriver

__all__ = ["SessionDriver", "TmuxSessionDriver"]
