# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from tact.core.clock import parse_day_key
from tact.core.ports import SyncHandler, SyncMessage


class FakeClock:
    """
    Deterministic clock for unit tests.

    - `today()` returns a settable date
    - `now_ms()` returns a settable timestamp and then advances it by `step_ms`,
      so consecutive writes get distinct, increasing timestamps
    """

    def __init__(self, day: str = "2024-06-03", *, hour: int = 8, step_ms: int = 1000) -> None:
        self.current: date = parse_day_key(day)
        self.ms = int(datetime(self.current.year, self.current.month, self.current.day, hour).timestamp() * 1000)
        self.step_ms = step_ms

    def set_day(self, day: str, *, hour: int = 8) -> None:
        self.current = parse_day_key(day)
        self.ms = int(datetime(self.current.year, self.current.month, self.current.day, hour).timestamp() * 1000)

    def now_ms(self) -> int:
        now = self.ms
        self.ms += self.step_ms
        return now

    def today(self) -> date:
        return self.current


@dataclass(slots=True)
class RecordingChannel:
    """
    Fake SyncChannel: records outbound messages and lets tests push inbound ones.
    """

    available: bool = True
    sent: list[SyncMessage] = field(default_factory=list)
    handlers: list[SyncHandler] = field(default_factory=list)
    closed: bool = False

    def notify(self, message: SyncMessage) -> None:
        self.sent.append(dict(message))

    def on_notify(self, handler: SyncHandler) -> None:
        self.handlers.append(handler)

    def receive(self, message: SyncMessage) -> None:
        for handler in list(self.handlers):
            handler(message)

    def close(self) -> None:
        self.closed = True

    @property
    def refresh_count(self) -> int:
        return sum(1 for m in self.sent if m.get("type") == "refresh")
