"""
Unit tests for the poll-driven scheduler.
"""

import unittest

from common.timers import Scheduler


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


class TestScheduler(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.scheduler = Scheduler(self.clock)
        self.calls = []

    def test_one_shot_fires_once(self):
        self.scheduler.call_later(1.0, lambda: self.calls.append('a'))
        self.assertEqual(self.scheduler.run_due(0.5), 0)
        self.assertEqual(self.scheduler.run_due(1.0), 1)
        self.assertEqual(self.scheduler.run_due(5.0), 0)
        self.assertEqual(self.calls, ['a'])
        self.assertEqual(self.scheduler.pending, 0)

    def test_repeating(self):
        timer = self.scheduler.call_every(0.25, lambda: self.calls.append(1))
        self.assertTrue(timer.repeating)
        for now in (0.25, 0.5, 0.75, 1.0):
            self.scheduler.run_due(now)
        self.assertEqual(len(self.calls), 4)
        self.assertEqual(self.scheduler.pending, 1)

    def test_repeating_skips_missed_periods(self):
        timer = self.scheduler.call_every(0.1, lambda: self.calls.append(1))
        self.assertEqual(self.scheduler.run_due(1.05), 1)
        self.assertAlmostEqual(timer.deadline, 1.15)

    def test_cancel(self):
        timer = self.scheduler.call_every(0.1, lambda: self.calls.append(1))
        self.scheduler.run_due(0.1)
        timer.cancel()
        self.scheduler.run_due(0.2)
        self.assertEqual(len(self.calls), 1)
        self.assertEqual(self.scheduler.pending, 0)

    def test_callback_cancels_later_timer(self):
        second = self.scheduler.call_later(0.2, lambda: self.calls.append('b'))
        self.scheduler.call_later(0.1, second.cancel)
        self.assertEqual(self.scheduler.run_due(1.0), 1)
        self.assertEqual(self.calls, [])

    def test_fires_in_deadline_order(self):
        self.scheduler.call_later(0.3, lambda: self.calls.append('late'))
        self.scheduler.call_later(0.1, lambda: self.calls.append('early'))
        self.scheduler.run_due(1.0)
        self.assertEqual(self.calls, ['early', 'late'])

    def test_cancel_all(self):
        self.scheduler.call_every(0.1, lambda: self.calls.append(1))
        self.scheduler.call_later(0.1, lambda: self.calls.append(2))
        self.scheduler.cancel_all()
        self.assertEqual(self.scheduler.run_due(1.0), 0)
        self.assertEqual(self.calls, [])

    def test_non_positive_interval_rejected(self):
        with self.assertRaises(ValueError):
            self.scheduler.call_every(0, lambda: None)

    def test_deadline_relative_to_clock(self):
        self.clock.t = 10.0
        timer = self.scheduler.call_later(1.0, lambda: None)
        self.assertEqual(timer.deadline, 11.0)
        self.assertEqual(self.scheduler.run_due(), 0)


if __name__ == '__main__':
    unittest.main()
