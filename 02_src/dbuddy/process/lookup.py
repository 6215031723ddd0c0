"""OS process lookup backed by psutil."""

from typing import Callable

import psutil

from ..errors import ProcessNotFound
from ..models import ProcessInfo

ProcessLookup = Callable[[int], ProcessInfo]


def lookup_process(pid: int) -> ProcessInfo:
    """Describe a running process.

    Raises:
        ProcessNotFound: the process exited, is a zombie, or is not ours to read.
    """
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            name = proc.name()
            try:
                argv = tuple(proc.cmdline())
            except psutil.AccessDenied:
                argv = ()
            try:
                exe = proc.exe()
            except (psutil.AccessDenied, psutil.ZombieProcess):
                exe = ""
    except psutil.ZombieProcess as e:
        raise ProcessNotFound(pid, "zombie process") from e
    except psutil.NoSuchProcess as e:
        raise ProcessNotFound(pid, "no such process") from e
    except psutil.AccessDenied as e:
        raise ProcessNotFound(pid, "access denied") from e

    return ProcessInfo(pid=pid, name=name, exe=exe, argv=argv)
