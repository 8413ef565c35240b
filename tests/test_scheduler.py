"""
Tests for the event scheduler, random streams and trace sources.
"""

import unittest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nrsim.core.errors import SchedulingError
from nrsim.core.random_streams import RandomStreams
from nrsim.core.scheduler import Scheduler
from nrsim.core.trace import TraceSource


class TestScheduler(unittest.TestCase):
    """Test Scheduler functionality."""

    def setUp(self):
        self.scheduler = Scheduler()
        self.log = []

    def record(self, label):
        self.log.append((self.scheduler.now(), label))

    def test_events_run_in_time_order(self):
        """Events run in timestamp order regardless of submission order."""
        self.scheduler.schedule(0.3, self.record, 'c')
        self.scheduler.schedule(0.1, self.record, 'a')
        self.scheduler.schedule(0.2, self.record, 'b')

        self.scheduler.run()

        self.assertEqual([label for _, label in self.log], ['a', 'b', 'c'])
        self.assertEqual([t for t, _ in self.log], [0.1, 0.2, 0.3])

    def test_equal_timestamps_are_fifo(self):
        """Events at the same time run in submission order."""
        for label in 'abcde':
            self.scheduler.schedule(0.5, self.record, label)

        self.scheduler.run()

        self.assertEqual(''.join(label for _, label in self.log), 'abcde')

    def test_zero_delay_from_action_runs_after_queued_events(self):
        """An event scheduled for now from inside an action runs after the tick's queue."""
        def first():
            self.record('first')
            self.scheduler.schedule_now(self.record, 'nested')

        self.scheduler.schedule(1.0, first)
        self.scheduler.schedule(1.0, self.record, 'second')

        self.scheduler.run()

        self.assertEqual([label for _, label in self.log], ['first', 'second', 'nested'])
        self.assertTrue(all(t == 1.0 for t, _ in self.log))

    def test_negative_delay_fails_fast(self):
        """Negative or NaN delays are rejected."""
        with self.assertRaises(SchedulingError):
            self.scheduler.schedule(-0.001, self.record, 'x')
        with self.assertRaises(SchedulingError):
            self.scheduler.schedule(float('nan'), self.record, 'x')
        self.assertEqual(self.scheduler.pending_count(), 0)

    def test_cancel_pending_event(self):
        """Cancelled events never run."""
        handle = self.scheduler.schedule(0.1, self.record, 'cancelled')
        self.scheduler.schedule(0.2, self.record, 'kept')

        self.scheduler.cancel(handle)
        self.scheduler.run()

        self.assertEqual([label for _, label in self.log], ['kept'])
        self.assertTrue(handle.cancelled)
        self.assertFalse(handle.executed)
        self.assertEqual(self.scheduler.stats['cancelled'], 1)

    def test_cancel_after_execution_is_noop(self):
        """Cancelling an executed event changes nothing."""
        handle = self.scheduler.schedule(0.1, self.record, 'a')
        self.scheduler.run()

        self.scheduler.cancel(handle)
        self.scheduler.cancel(None)

        self.assertTrue(handle.executed)
        self.assertFalse(handle.cancelled)
        self.assertEqual(self.scheduler.stats['cancelled'], 0)

    def test_stop_time_discards_events_at_and_after_stop(self):
        """Events at or after the stop time are discarded without running."""
        self.scheduler.schedule(0.5, self.record, 'before')
        at_stop = self.scheduler.schedule(1.0, self.record, 'at_stop')
        after_stop = self.scheduler.schedule(2.0, self.record, 'after_stop')

        self.scheduler.run(1.0)

        self.assertEqual([label for _, label in self.log], ['before'])
        self.assertEqual(self.scheduler.now(), 1.0)
        self.assertFalse(at_stop.executed)
        self.assertFalse(after_stop.executed)
        self.assertFalse(self.scheduler.is_pending(at_stop))
        self.assertEqual(self.scheduler.pending_count(), 0)
        self.assertEqual(self.scheduler.stats['discarded'], 2)

    def test_run_until_empty(self):
        """Without a stop time the run ends when the pending set empties."""
        self.scheduler.schedule(0.25, self.record, 'a')
        self.scheduler.schedule(0.75, self.record, 'b')

        self.scheduler.run()

        self.assertEqual(self.scheduler.now(), 0.75)
        self.assertEqual(self.scheduler.stats['executed'], 2)
        self.assertEqual(self.scheduler.pending_count(), 0)

    def test_run_ends_at_last_live_event(self):
        """A cancelled event does not advance the clock once nothing is pending."""
        self.scheduler.schedule(0.25, self.record, 'a')
        late = self.scheduler.schedule(5.0, self.record, 'late')
        self.scheduler.cancel(late)

        self.scheduler.run()

        self.assertEqual(self.scheduler.now(), 0.25)
        self.assertEqual([label for _, label in self.log], ['a'])

    def test_cancelled_periodic_event_ends_run(self):
        """Cancelling a self-rescheduling action ends the run at the cancel time."""
        handles = []

        def tick():
            self.record('tick')
            handles.append(self.scheduler.schedule(0.25, tick))

        def stop():
            self.scheduler.cancel(handles[-1])

        self.scheduler.schedule(0.0, tick)
        self.scheduler.schedule(0.6, stop)
        self.scheduler.run()

        self.assertEqual([t for t, _ in self.log], [0.0, 0.25, 0.5])
        self.assertEqual(self.scheduler.now(), 0.6)
        self.assertEqual(self.scheduler.pending_count(), 0)

    def test_stop_time_still_reached_after_cancel(self):
        """With a stop time the clock still ends at the stop time."""
        handle = self.scheduler.schedule(0.5, self.record, 'cancelled')
        self.scheduler.cancel(handle)

        self.scheduler.run(1.0)

        self.assertEqual(self.scheduler.now(), 1.0)
        self.assertEqual(self.log, [])

    def test_self_rescheduling_event(self):
        """A periodic action stops at the stop time."""
        def tick():
            self.record('tick')
            self.scheduler.schedule(0.25, tick)

        self.scheduler.schedule(0.0, tick)
        self.scheduler.run(1.0)

        self.assertEqual([t for t, _ in self.log], [0.0, 0.25, 0.5, 0.75])

    def test_action_arguments(self):
        """Positional arguments are passed to the action."""
        received = []
        self.scheduler.schedule(0.1, lambda a, b: received.append((a, b)), 1, 'two')
        self.scheduler.run()
        self.assertEqual(received, [(1, 'two')])


class TestRandomStreams(unittest.TestCase):
    """Test RandomStreams functionality."""

    def test_same_seed_and_key_give_same_draws(self):
        a = RandomStreams(seed=7)
        b = RandomStreams(seed=7)
        self.assertEqual(a.generator(0, 2).random(), b.generator(0, 2).random())

    def test_different_keys_are_independent(self):
        streams = RandomStreams(seed=7)
        self.assertNotEqual(streams.generator(0, 2).random(), streams.generator(1, 2).random())

    def test_next_generator_counts_calls_per_key(self):
        """The n-th draw of a key does not depend on draws of other keys."""
        a = RandomStreams(seed=3)
        b = RandomStreams(seed=3)

        first_a = a.next_generator(0, 2).random()
        second_a = a.next_generator(0, 2).random()

        b.next_generator(1, 2)
        b.next_generator(1, 2)
        first_b = b.next_generator(0, 2).random()
        second_b = b.next_generator(0, 2).random()

        self.assertEqual(first_a, first_b)
        self.assertEqual(second_a, second_b)
        self.assertNotEqual(first_a, second_a)
        self.assertEqual(a.call_count(0, 2), 2)

    def test_reset(self):
        streams = RandomStreams(seed=3)
        first = streams.next_generator(0, 1).random()
        streams.reset()
        self.assertEqual(streams.call_count(0, 1), 0)
        self.assertEqual(streams.next_generator(0, 1).random(), first)

    def test_negative_seed_rejected(self):
        with self.assertRaises(ValueError):
            RandomStreams(seed=-1)


class TestTraceSource(unittest.TestCase):
    """Test TraceSource functionality."""

    def test_callbacks_run_in_connection_order(self):
        source = TraceSource("test")
        calls = []
        source.connect(lambda value: calls.append(('first', value)))
        source.connect(lambda value: calls.append(('second', value)))

        source(42)

        self.assertEqual(calls, [('first', 42), ('second', 42)])
        self.assertEqual(len(source), 2)

    def test_disconnect(self):
        source = TraceSource("test")
        calls = []
        callback = calls.append
        source.connect(callback)
        source.disconnect(callback)
        source.disconnect(callback)

        source('ignored')

        self.assertEqual(calls, [])

    def test_non_callable_rejected(self):
        with self.assertRaises(TypeError):
            TraceSource("test").connect("not callable")


if __name__ == '__main__':
    unittest.main()
