from ccmonitor.discovery.processes import ProcessScanner

__all__ = ["ProcessScanner"]
