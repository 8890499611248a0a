from ccmonitor.engine.monitor import SessionMonitor
from ccmonitor.engine.state_machine import SessionStateMachine

__all__ = ["SessionMonitor", "SessionStateMachine"]
