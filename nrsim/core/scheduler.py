"""
Discrete event scheduler for the RAN simulation core.

This module wraps a SimPy environment behind a small callback-oriented
interface (schedule / cancel / run / now). SimPy orders its event heap by
(time, priority, event id), so events sharing a timestamp run in the order
they were submitted.
"""

import math
import simpy
import logging
from typing import Any, Callable, Dict, Optional

from .errors import SchedulingError

logger = logging.getLogger(__name__)


class EventHandle:
    """Handle returned by Scheduler.schedule, used to cancel a pending event"""

    def __init__(self, event_id: int, time: float, action: Callable, args: tuple):
        self.event_id = event_id
        self.time = time
        self.action = action
        self.args = args
        self.cancelled = False
        self.executed = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.executed)

    def __repr__(self):
        name = getattr(self.action, '__qualname__', repr(self.action))
        state = 'pending' if self.pending else ('executed' if self.executed else 'cancelled')
        return f"EventHandle(id={self.event_id}, time={self.time:.9f}, action={name}, {state})"


class Scheduler:
    """
    Single-threaded event scheduler

    Actions are plain callables. An action runs to completion and may
    schedule or cancel further events, including events at the current
    time, which run after every event already queued for that tick.
    """

    def __init__(self, env: Optional[simpy.Environment] = None):
        self.env = env if env is not None else simpy.Environment()
        self._next_event_id = 0
        self._pending: Dict[int, EventHandle] = {}

        # Statistics
        self.stats = {
            'scheduled': 0,
            'executed': 0,
            'cancelled': 0,
            'discarded': 0
        }

    def now(self) -> float:
        """Current simulation time in seconds"""
        return self.env.now

    def schedule(self, delay: float, action: Callable, *args: Any) -> EventHandle:
        """
        Schedule an action to run after a delay.

        Args:
            delay: Delay in seconds, must be >= 0
            action: Callable invoked as action(*args)

        Returns:
            EventHandle for the scheduled event

        Raises:
            SchedulingError: If the delay is negative or not a number
        """
        if delay is None or math.isnan(delay) or delay < 0:
            raise SchedulingError(f"Cannot schedule {action!r} with delay {delay}: delay must be >= 0")

        handle = EventHandle(self._next_event_id, self.env.now + delay, action, args)
        self._next_event_id += 1

        timeout = self.env.timeout(delay)
        timeout.callbacks.append(lambda _event, h=handle: self._dispatch(h))

        self._pending[handle.event_id] = handle
        self.stats['scheduled'] += 1
        return handle

    def schedule_now(self, action: Callable, *args: Any) -> EventHandle:
        """Schedule an action at the current time, after already queued events"""
        return self.schedule(0.0, action, *args)

    def cancel(self, handle: Optional[EventHandle]):
        """Cancel a pending event. No-op if it already ran or was cancelled."""
        if handle is None or not handle.pending:
            return
        handle.cancelled = True
        self._pending.pop(handle.event_id, None)
        self.stats['cancelled'] += 1

    def _dispatch(self, handle: EventHandle):
        if not handle.pending:
            return
        handle.executed = True
        self._pending.pop(handle.event_id, None)
        self.stats['executed'] += 1
        handle.action(*handle.args)

    def run(self, stop_time: Optional[float] = None):
        """
        Run until the pending set empties or the clock reaches stop_time.

        Events scheduled at or after stop_time are discarded without running.
        Cancelled events stay in the SimPy heap, so the loop stops on the
        pending set rather than on the heap.
        """
        if stop_time is not None:
            logger.debug(f"Running scheduler from {self.env.now:.6f}s until {stop_time:.6f}s")

        while self._pending:
            if stop_time is not None and self.env.peek() >= stop_time:
                break
            self.env.step()

        if stop_time is not None:
            if stop_time > self.env.now:
                # Advance the clock; only cancelled events remain before stop_time
                self.env.run(until=stop_time)
            self._discard_pending()

    def _discard_pending(self):
        discarded = list(self._pending.values())
        for handle in discarded:
            handle.cancelled = True
        self._pending.clear()
        self.stats['discarded'] += len(discarded)
        if discarded:
            logger.debug(f"Discarded {len(discarded)} events pending past stop time")

    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, handle: Optional[EventHandle]) -> bool:
        return handle is not None and handle.pending
