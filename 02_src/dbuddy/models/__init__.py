"""Core data models for the bus inspector."""

from .events import (
    BodyDecoder,
    BusSource,
    ConnectionSerial,
    EventRecord,
    MessageKind,
    RawEvent,
    RecordFactory,
    ViewMode,
)
from .process import ProcessIdentity, ProcessInfo
from .values import (
    EMPTY_BODY,
    Array,
    Dict,
    Elided,
    Primitive,
    Struct,
    Undecodable,
    Value,
    Variant,
    decode_python,
    format_value,
    summarize,
    value_depth,
)

__all__ = [
    # Events
    "BodyDecoder",
    "BusSource",
    "ConnectionSerial",
    "EventRecord",
    "MessageKind",
    "RawEvent",
    "RecordFactory",
    "ViewMode",
    # Process identity
    "ProcessIdentity",
    "ProcessInfo",
    # Values
    "EMPTY_BODY",
    "Array",
    "Dict",
    "Elided",
    "Primitive",
    "Struct",
    "Undecodable",
    "Value",
    "Variant",
    "decode_python",
    "format_value",
    "summarize",
    "value_depth",
]
