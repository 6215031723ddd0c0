"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_record():
    """Build EventRecords with sequential ids and millisecond offsets."""
    from dbuddy.models import BusSource, EventRecord, MessageKind, decode_python

    counter = {"id": 0}

    def _make(
        sender: str = ":1.1",
        serial: int = 1,
        kind: MessageKind = MessageKind.SIGNAL,
        at: int | None = None,
        source: BusSource = BusSource.SESSION,
        member: str = "Changed",
        path: str = "/org/example",
        interface: str = "org.example.Iface",
        destination: str | None = None,
        reply_serial: int | None = None,
        body=None,
        sender_pid: int | None = None,
        record_id: int | None = None,
    ) -> EventRecord:
        counter["id"] += 1
        rid = record_id if record_id is not None else counter["id"]
        offset = at if at is not None else rid
        return EventRecord(
            id=rid,
            timestamp=BASE_TIME + timedelta(milliseconds=offset),
            source=source,
            kind=kind,
            sender=sender,
            path=path,
            interface=interface,
            member=member,
            serial=serial,
            destination=destination,
            reply_serial=reply_serial,
            body=decode_python(body) if body is not None else decode_python(()),
            sender_pid=sender_pid,
        )

    return _make


@pytest.fixture
def history():
    """Create HistoryStores with a generous cap."""
    from dbuddy.history import HistoryStores

    return HistoryStores(max_messages=1000)


@pytest.fixture
def fake_lookup():
    """Lookup that knows pid 100 (gedit) and fails for everything else."""
    from dbuddy.errors import ProcessNotFound
    from dbuddy.models import ProcessInfo

    def _lookup(pid: int) -> ProcessInfo:
        if pid == 100:
            return ProcessInfo(
                pid=100, name="gedit", exe="/usr/bin/gedit", argv=("/usr/bin/gedit", "--new")
            )
        raise ProcessNotFound(pid, "no such process")

    return Mock(side_effect=_lookup)


@pytest.fixture
def settings():
    """Small, fast settings for tests."""
    from dbuddy.config import InspectorSettings

    return InspectorSettings(
        max_messages=100,
        channel_capacity=50,
        refresh_interval=0.01,
        retry_delay=0.01,
    )


@pytest_asyncio.fixture
async def application(settings, fake_lookup):
    """Create Application without transports."""
    from dbuddy.app import Application

    app = Application(settings=settings, lookup=fake_lookup)
    yield app
    await app.stop()


@pytest.fixture
def raw_event():
    """Build RawEvents with sensible defaults."""
    from dbuddy.models import MessageKind, RawEvent

    def _raw(**kwargs) -> RawEvent:
        kwargs.setdefault("kind", MessageKind.SIGNAL)
        kwargs.setdefault("sender", ":1.1")
        kwargs.setdefault("serial", 1)
        kwargs.setdefault("member", "Changed")
        kwargs.setdefault("path", "/org/example")
        return RawEvent(**kwargs)

    return _raw
