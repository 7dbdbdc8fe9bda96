from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], None]

_ids = itertools.count(1)


@dataclass(eq=False)
class ScheduledCall:
    """Cancellation token for a deferred callback."""

    callback: Callback
    delay: float
    label: str = ""
    due: float = 0.0
    id: int = field(default_factory=lambda: next(_ids))
    cancelled: bool = False
    fired: bool = False

    @property
    def live(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler(ABC):
    """Timed-callback collaborator. Waiting is always a deferred callback, never a sleep."""

    @abstractmethod
    def schedule_after(self, delay: float, callback: Callback, label: str = "") -> ScheduledCall:
        """Run ``callback`` once after ``delay`` seconds and return its token."""
        raise NotImplementedError

    @abstractmethod
    def cancel(self, token: Optional[ScheduledCall]) -> None:
        """Prevent a scheduled call from firing. Safe on None, fired or cancelled tokens."""
        raise NotImplementedError


class ManualScheduler(Scheduler):
    """Virtual-clock scheduler driven explicitly by ``advance``.

    Used by tests and the headless runner. Calls due at the same instant
    fire in the order they were scheduled.
    """

    def __init__(self) -> None:
        self._now: float = 0.0
        self._calls: List[ScheduledCall] = []

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> List[ScheduledCall]:
        live = [c for c in self._calls if c.live]
        return sorted(live, key=lambda c: (c.due, c.id))

    def schedule_after(self, delay: float, callback: Callback, label: str = "") -> ScheduledCall:
        delay = max(0.0, float(delay))
        call = ScheduledCall(callback=callback, delay=delay, label=label, due=self._now + delay)
        self._calls.append(call)
        logger.debug("Scheduled %s#%d in %.3fs (due=%.3f)", label or "call", call.id, delay, call.due)
        return call

    def cancel(self, token: Optional[ScheduledCall]) -> None:
        if token is None or not token.live:
            return
        token.cancel()
        logger.debug("Cancelled %s#%d", token.label or "call", token.id)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every call that becomes due.

        Calls scheduled by a callback fire too if they fall inside the window.

        Returns:
            Number of callbacks fired.
        """
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        target = self._now + seconds
        fired = 0
        while True:
            due = [c for c in self.pending if c.due <= target]
            if not due:
                break
            call = due[0]
            self._now = max(self._now, call.due)
            self._fire(call)
            fired += 1
        self._now = target
        self._calls = [c for c in self._calls if c.live]
        return fired

    def step(self) -> bool:
        """Jump the clock to the next pending call and fire it. Returns False when idle."""
        pending = self.pending
        if not pending:
            return False
        call = pending[0]
        self._now = max(self._now, call.due)
        self._fire(call)
        self._calls = [c for c in self._calls if c.live]
        return True

    def run_until_idle(self, max_calls: int = 1000) -> int:
        """Fire pending calls in due order until none remain or ``max_calls`` is hit."""
        fired = 0
        while fired < max_calls and self.step():
            fired += 1
        return fired

    def _fire(self, call: ScheduledCall) -> None:
        call.fired = True
        logger.debug("Firing %s#%d at t=%.3f", call.label or "call", call.id, self._now)
        call.callback()
