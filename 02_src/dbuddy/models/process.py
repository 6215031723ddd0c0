"""Process identity data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePath


@dataclass(frozen=True)
class ProcessInfo:
    """Raw answer from the OS process lookup."""

    pid: int
    name: str
    exe: str = ""
    argv: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProcessIdentity:
    """Human-readable identity behind a pid.

    ``resolved_at`` makes stale entries diagnosable: the cache never expires
    an entry, so a pid reused by the OS keeps the identity of the process
    that held it first.
    """

    pid: int
    app_name: str
    full_path: str = ""
    argv: tuple[str, ...] = ()
    resolved: bool = True
    error: str = ""
    resolved_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def from_info(cls, info: ProcessInfo) -> "ProcessIdentity":
        # argv[0] is what the process calls itself; fall back to the exe
        full_path = info.argv[0] if info.argv else info.exe
        app_name = PurePath(full_path).name if full_path else info.name
        return cls(
            pid=info.pid,
            app_name=app_name or info.name or "Unknown",
            full_path=full_path,
            argv=info.argv,
        )

    @classmethod
    def unresolved(cls, pid: int, error: str) -> "ProcessIdentity":
        """Sentinel cached for a pid the OS could not describe."""
        return cls(pid=pid, app_name="Unknown", resolved=False, error=error)

    @property
    def label(self) -> str:
        """``app:pid`` form used in list rows and filters."""
        return f"{self.app_name}:{self.pid}"
