"""Ingestion module."""

from .channel import ChannelSet, IngestionChannel
from .producer import SourceProducer, SourceStatus, Transport

__all__ = [
    "ChannelSet",
    "IngestionChannel",
    "SourceProducer",
    "SourceStatus",
    "Transport",
]
