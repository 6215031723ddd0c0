"""SIM implementation - synthetic bus traffic for demos and tests."""

import asyncio
import os
import random
from datetime import datetime, timezone
from typing import AsyncIterator, Protocol

from dbuddy.logging_config import get_logger
from dbuddy.models import BusSource, MessageKind, RawEvent

logger = get_logger(__name__)

BUS_NAME = "org.freedesktop.DBus"

# (destination, path, interface, member, reply body) per source
_SERVICES = {
    BusSource.SESSION: [
        ("org.freedesktop.Notifications", "/org/freedesktop/Notifications",
         "org.freedesktop.Notifications", "GetCapabilities", (["body", "actions"],)),
        ("org.mpris.MediaPlayer2.spotify", "/org/mpris/MediaPlayer2",
         "org.freedesktop.DBus.Properties", "GetAll",
         ({"PlaybackStatus": "Playing", "Volume": 0.8},)),
        ("org.gnome.Shell", "/org/gnome/Shell",
         "org.gnome.Shell", "Eval", (True, "")),
    ],
    BusSource.SYSTEM: [
        ("org.freedesktop.NetworkManager", "/org/freedesktop/NetworkManager",
         "org.freedesktop.NetworkManager", "GetDevices",
         (["/org/freedesktop/NetworkManager/Devices/1"],)),
        ("org.freedesktop.login1", "/org/freedesktop/login1",
         "org.freedesktop.login1.Manager", "ListSessions",
         ([("2", 1000, "user", "seat0", "/org/freedesktop/login1/session/_32")],)),
        ("org.freedesktop.UPower", "/org/freedesktop/UPower/devices/DisplayDevice",
         "org.freedesktop.DBus.Properties", "Get", (("Percentage", 87.0),)),
    ],
}


class ISim(Protocol):
    """Synthetic transport: same contract as a real bus subscription."""

    source: BusSource

    async def connect(self) -> None:
        """Pretend to connect."""
        ...

    def events(self) -> AsyncIterator[RawEvent]:
        """Yield generated messages."""
        ...


class SimTransport:
    """Generates plausible bus traffic with connection-scoped serials."""

    def __init__(
        self,
        source: BusSource,
        rate: float = 50.0,
        seed: int | None = None,
        max_events: int | None = None,
        connections: int = 6,
    ):
        self.source = source
        self._rate = rate
        self._random = random.Random(seed)
        self._max_events = max_events
        self._names = [f":1.{n}" for n in range(10, 10 + connections)]
        self._serials: dict[str, int] = {name: 0 for name in self._names + [BUS_NAME]}
        # Our own pid resolves for real; the rest stay unresolved
        self._pids = {name: (os.getpid() if i == 0 else None) for i, name in enumerate(self._names)}
        self.emitted = 0

    async def connect(self) -> None:
        """Pretend to connect."""
        logger.info("SIM %s bus connected", self.source.value)

    async def events(self) -> AsyncIterator[RawEvent]:
        """Yield generated messages until ``max_events`` (if set)."""
        delay = 1.0 / self._rate if self._rate > 0 else 0.0
        while self._max_events is None or self.emitted < self._max_events:
            for raw in self._next_burst():
                if self._max_events is not None and self.emitted >= self._max_events:
                    return
                self.emitted += 1
                yield raw
            await asyncio.sleep(delay)

    def _serial(self, name: str) -> int:
        self._serials[name] += 1
        return self._serials[name]

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _next_burst(self) -> list[RawEvent]:
        roll = self._random.random()
        if roll < 0.35:
            return [self._signal()]
        return self._call_and_reply(error=roll > 0.93)

    def _signal(self) -> RawEvent:
        if self._random.random() < 0.3:
            name = self._random.choice(self._names)
            return RawEvent(
                kind=MessageKind.SIGNAL,
                sender=BUS_NAME,
                destination=name,
                serial=self._serial(BUS_NAME),
                path="/org/freedesktop/DBus",
                interface=BUS_NAME,
                member="NameAcquired",
                body=(name,),
                timestamp=self._now(),
            )

        sender = self._random.choice(self._names)
        _, path, interface, _, _ = self._random.choice(_SERVICES[self.source])
        return RawEvent(
            kind=MessageKind.SIGNAL,
            sender=sender,
            serial=self._serial(sender),
            path=path,
            interface="org.freedesktop.DBus.Properties",
            member="PropertiesChanged",
            body=(interface, {"Updated": self._random.randint(0, 1000)}, []),
            sender_pid=self._pids[sender],
            timestamp=self._now(),
        )

    def _call_and_reply(self, error: bool) -> list[RawEvent]:
        caller, callee = self._random.sample(self._names, 2)
        _, path, interface, member, reply_body = self._random.choice(_SERVICES[self.source])
        call_serial = self._serial(caller)

        call = RawEvent(
            kind=MessageKind.METHOD_CALL,
            sender=caller,
            destination=callee,
            serial=call_serial,
            path=path,
            interface=interface,
            member=member,
            body=(),
            sender_pid=self._pids[caller],
            destination_pid=self._pids[callee],
            timestamp=self._now(),
        )
        reply = RawEvent(
            kind=MessageKind.ERROR if error else MessageKind.METHOD_RETURN,
            sender=callee,
            destination=caller,
            serial=self._serial(callee),
            reply_serial=call_serial,
            member="org.freedesktop.DBus.Error.Failed" if error else "",
            body=("operation failed",) if error else reply_body,
            sender_pid=self._pids[callee],
            destination_pid=self._pids[caller],
            timestamp=self._now(),
        )
        return [call, reply]
