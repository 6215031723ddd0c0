"""Process identity resolution."""

from .cache import IProcessIdentityCache, ProcessIdentityCache
from .lookup import ProcessLookup, lookup_process

__all__ = [
    "IProcessIdentityCache",
    "ProcessIdentityCache",
    "ProcessLookup",
    "lookup_process",
]
