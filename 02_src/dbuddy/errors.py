"""Exception types raised by the inspector core."""


class DBuddyError(Exception):
    """Base class for all inspector errors."""


class ConfigError(DBuddyError):
    """Invalid configuration value."""


class FilterParseError(DBuddyError):
    """A filter string could not be parsed.

    The engine keeps the previously applied filter when this is raised.
    """

    def __init__(self, message: str, clause: str | None = None):
        super().__init__(message)
        self.clause = clause


class ProcessNotFound(DBuddyError):
    """The OS could not describe a pid (exited, zombie or access denied)."""

    def __init__(self, pid: int, reason: str = ""):
        message = f"process {pid} not found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.pid = pid
        self.reason = reason


class TransportError(DBuddyError):
    """A bus transport lost its connection or subscription."""


class RecordNotFound(DBuddyError):
    """A record id is no longer retained in history."""

    def __init__(self, record_id: int):
        super().__init__(f"record {record_id} is not in retained history")
        self.record_id = record_id
