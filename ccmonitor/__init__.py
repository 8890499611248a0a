"""ccmonitor — correlates Claude Code hook events with running CLI sessions."""

__version__ = "0.1.0"
