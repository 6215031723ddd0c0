"""Synthetic bus traffic."""

from .sim import ISim, SimTransport

__all__ = ["ISim", "SimTransport"]
