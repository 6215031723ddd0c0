"""Tests for the synthetic transport."""

import pytest

from dbuddy.models import BusSource, MessageKind
from sim import SimTransport


async def _collect(transport: SimTransport) -> list:
    await transport.connect()
    return [event async for event in transport.events()]


class TestSimTransport:
    """Tests for SimTransport."""

    @pytest.mark.asyncio
    async def test_max_events(self):
        """Test the generator stops after max_events."""
        events = await _collect(SimTransport(BusSource.SESSION, rate=0, seed=1, max_events=25))
        assert len(events) == 25

    @pytest.mark.asyncio
    async def test_serials_per_connection(self):
        """Test serials increase per sender and replies point at calls."""
        events = await _collect(SimTransport(BusSource.SYSTEM, rate=0, seed=2, max_events=200))

        last: dict[str, int] = {}
        for event in events:
            assert event.serial > last.get(event.sender, 0)
            last[event.sender] = event.serial

        calls = {
            (e.sender, e.serial) for e in events if e.kind is MessageKind.METHOD_CALL
        }
        replies = [e for e in events if e.reply_serial is not None]
        assert replies
        for reply in replies:
            assert reply.kind in (MessageKind.METHOD_RETURN, MessageKind.ERROR)
            assert (reply.destination, reply.reply_serial) in calls

    @pytest.mark.asyncio
    async def test_seed_is_deterministic(self):
        """Test the same seed yields the same traffic shape."""
        first = await _collect(SimTransport(BusSource.SESSION, rate=0, seed=9, max_events=30))
        second = await _collect(SimTransport(BusSource.SESSION, rate=0, seed=9, max_events=30))
        assert [(e.kind, e.sender, e.serial, e.member) for e in first] == [
            (e.kind, e.sender, e.serial, e.member) for e in second
        ]
