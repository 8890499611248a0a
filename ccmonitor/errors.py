"""Exception types shared across ccmonitor."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for ccmonitor errors."""


class ProtocolError(MonitorError):
    """A hook payload could not be parsed or validated."""


class DiscoveryError(MonitorError):
    """The OS process query failed."""


class CorrelationMiss(MonitorError):
    """No process could be bound to a logical session id."""

    def __init__(self, logical_session_id: str, reason: str = "no candidate process"):
        super().__init__(f"{logical_session_id}: {reason}")
        self.logical_session_id = logical_session_id
        self.reason = reason


class ParseError(MonitorError):
    """A single transcript record could not be decoded."""
