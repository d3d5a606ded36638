"""
Time-ordered event queue driving every cell.

Each cell owns two future events: a recurring GrowTick and a one-shot
Reproduce (stems only). Leaves add a RemoveLeaf once they fall. The
session may interleave PhysicsFrame events to step the physics world.

There is a single timeline and callbacks run to completion, so no locks are
needed. Events with equal deadlines run in the order they were pushed.
"""

import heapq
import itertools
from dataclasses import dataclass


@dataclass(frozen=True)
class GrowTick:
    """Recurring growth step; interval is fixed when first scheduled."""

    handle: int
    due_at: float
    interval: float

    def next(self) -> "GrowTick":
        return GrowTick(self.handle, self.due_at + self.interval, self.interval)


@dataclass(frozen=True)
class Reproduce:
    handle: int
    due_at: float


@dataclass(frozen=True)
class RemoveLeaf:
    handle: int
    due_at: float


@dataclass(frozen=True)
class PhysicsFrame:
    due_at: float
    interval: float

    def next(self) -> "PhysicsFrame":
        return PhysicsFrame(self.due_at + self.interval, self.interval)


Event = GrowTick | Reproduce | RemoveLeaf | PhysicsFrame


class EventQueue:
    """Priority queue of events keyed by (due_at, push order)."""

    def __init__(self, start: float = 0.0) -> None:
        self._heap: list[tuple[float, int, Event]] = []
        self._counter = itertools.count()
        self._now = start

    @property
    def now(self) -> float:
        """Deadline of the most recently popped event."""
        return self._now

    def __len__(self) -> int:
        return len(self._heap)

    def push(self, event: Event) -> None:
        if event.due_at < self._now:
            raise ValueError(f"Cannot schedule in the past: {event.due_at} < {self._now}")
        heapq.heappush(self._heap, (event.due_at, next(self._counter), event))

    def after(self, delay: float) -> float:
        """Absolute deadline `delay` ms from now (negative delays run now)."""
        return self._now + max(delay, 0.0)

    def peek_time(self) -> float | None:
        if not self._heap:
            return None
        return self._heap[0][0]

    def pop(self) -> Event:
        due_at, _, event = heapq.heappop(self._heap)
        self._now = due_at
        return event

    def advance_to(self, time: float) -> None:
        """Move the clock forward without popping (idle time)."""
        if time > self._now:
            self._now = time

    def pending(self, kind: type | None = None) -> list[Event]:
        """Queued events in deadline order, optionally of one type."""
        events = [event for _, _, event in sorted(self._heap)]
        if kind is None:
            return events
        return [event for event in events if isinstance(event, kind)]
