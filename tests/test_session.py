"""
Session lifecycle tests over the in-process loopback transport.
A fake clock drives both sides so every timing check is exact.
"""

import random
import unittest

from common.config import SNAPSHOT_INTERVAL, SERVE_DELAY, BALL_SPEED
from common.metrics_logger import MetricsLogger
from common.net import LoopbackNetwork
from app.session import GameSession, Role, SessionStatus, SessionError


class FakeClock:
    def __init__(self, t: float = 100.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, dt: float) -> float:
        self.t += dt
        return self.t


class SessionTestCase(unittest.TestCase):

    latency = 0.0

    def setUp(self):
        self.clock = FakeClock()
        self.net = LoopbackNetwork(latency=self.latency, clock=self.clock,
                                   rng=random.Random(0))

    def make_session(self, peer_id: str = None, seed: int = 1) -> GameSession:
        return GameSession(self.net.peer(peer_id), clock=self.clock,
                           rng=random.Random(seed),
                           metrics=MetricsLogger(clock=self.clock),
                           verbose=False)

    def pump(self, *sessions, steps: int = 1, dt: float = 0.0):
        for _ in range(steps):
            now = self.clock.advance(dt)
            for s in sessions:
                s.tick(now)

    def connect_pair(self):
        host = self.make_session('host')
        client = self.make_session('client')
        host.host()
        client.join('host')
        self.pump(host, client)
        return host, client


class TestLifecycle(SessionTestCase):

    def test_starts_idle(self):
        session = self.make_session()
        self.assertIs(session.status, SessionStatus.IDLE)
        self.assertIsNone(session.role)
        self.assertEqual(session.tag, '[SESSION]')

    def test_host_returns_shareable_id(self):
        session = self.make_session('table-7')
        self.assertEqual(session.host(), 'table-7')
        self.assertIs(session.role, Role.HOST)
        self.assertIs(session.status, SessionStatus.CONNECTING)
        self.assertEqual(session.own_paddle, 1)

    def test_join_is_connecting(self):
        session = self.make_session()
        session.join('whoever')
        self.assertIs(session.role, Role.CLIENT)
        self.assertIs(session.status, SessionStatus.CONNECTING)
        self.assertEqual(session.own_paddle, 2)

    def test_lifecycle_calls_require_idle(self):
        session = self.make_session('h')
        session.host()
        with self.assertRaises(SessionError):
            session.host()
        with self.assertRaises(SessionError):
            session.join('other')

    def test_both_sides_play_after_connect(self):
        host, client = self.connect_pair()
        self.assertTrue(host.is_playing)
        self.assertTrue(client.is_playing)
        self.assertEqual(host.state.status, 'playing')
        self.assertEqual(host.tag, '[HOST]')
        self.assertEqual(client.tag, '[CLIENT]')

    def test_unknown_host_ends_with_error(self):
        session = self.make_session()
        session.join('nobody-home')
        self.assertIs(session.status, SessionStatus.CONNECTING)
        self.pump(session)
        self.assertTrue(session.is_ended)
        self.assertEqual(session.end_reason, 'Error: peer-unavailable')

    def test_disconnect_is_seen_by_opponent(self):
        host, client = self.connect_pair()
        client.disconnect()
        self.assertTrue(client.is_playing)  # queued until the next tick
        self.pump(client, host)
        self.assertEqual(client.end_reason, 'Disconnected')
        self.assertTrue(host.is_ended)
        self.assertEqual(host.end_reason, 'Opponent disconnected')

    def test_close_cancels_timers(self):
        host, client = self.connect_pair()
        self.assertGreater(host.scheduler.pending, 0)
        host.close()
        self.assertTrue(host.is_ended)
        self.assertEqual(host.scheduler.pending, 0)
        self.assertIsNone(host.behavior.broadcast_timer)
        self.pump(client)
        self.assertEqual(client.end_reason, 'Opponent disconnected')

    def test_ended_session_ignores_input(self):
        host, client = self.connect_pair()
        client.close()
        before = client.state.paddle2_y
        client.move_paddle(10.0)
        self.pump(client, dt=0.1)
        self.assertEqual(client.state.paddle2_y, before)
        self.assertEqual(client.frame, 1)

    def test_second_client_rejected(self):
        host = self.make_session('host')
        first = self.make_session('first')
        second = self.make_session('second')
        host.host()
        first.join('host')
        second.join('host')
        self.pump(host, first, second, steps=2)
        self.assertTrue(host.is_playing)
        self.assertEqual(host.channel.remote_id, 'first')
        self.assertTrue(first.is_playing)
        self.assertTrue(second.is_ended)

    def test_move_before_playing_dropped(self):
        host = self.make_session('host')
        host.host()
        host.move_paddle(42.0)
        self.pump(host)
        self.assertNotEqual(host.state.paddle1_y, 42.0)


class TestGameplay(SessionTestCase):

    def test_client_input_reaches_host(self):
        host, client = self.connect_pair()
        client.move_paddle(321.0)
        self.pump(client, host)
        self.assertEqual(client.state.paddle2_y, 321.0)
        self.assertEqual(host.state.paddle2_y, 321.0)

    def test_host_paddle_reaches_client_smoothed(self):
        host, client = self.connect_pair()
        client.state.paddle1_y = 0.0
        host.move_paddle(100.0)
        self.pump(host, client, dt=SNAPSHOT_INTERVAL)
        self.assertEqual(host.state.paddle1_y, 100.0)
        self.assertAlmostEqual(client.state.paddle1_y, 20.0)

    def test_snapshots_at_fixed_rate(self):
        host, client = self.connect_pair()
        self.pump(host, client, steps=60, dt=1.0 / 60)
        # One second of play: 30 periodic snapshots, give or take one
        self.assertGreaterEqual(host.behavior.snapshots_sent, 29)
        self.assertLessEqual(host.behavior.snapshots_sent, 31)
        self.assertEqual(client.behavior.snapshots_received,
                         host.behavior.snapshots_sent)

    def test_score_freezes_then_serves(self):
        host, client = self.connect_pair()
        ball = host.state.ball
        ball.x, ball.y, ball.dx, ball.dy = -15.0, 250.0, -BALL_SPEED, 0.0
        host.state.paddle1_y = 400.0

        self.pump(host, client, dt=0.02)
        scored_at = self.clock.t
        self.assertEqual((host.state.score1, host.state.score2), (0, 1))
        self.assertTrue(host.state.ball.frozen)

        # Client jumps straight to the frozen centre
        self.assertEqual(client.behavior.last_correction.kind, 'frozen')
        self.assertEqual((client.state.ball.x, client.state.ball.y),
                         (400.0, 250.0))
        self.assertEqual(client.state.score2, 1)

        for _ in range(40):
            self.pump(host, client, dt=0.05)
            if host.behavior.serve_timer is None:
                break
        self.assertIsNone(host.behavior.serve_timer)
        self.assertGreaterEqual(self.clock.t - scored_at, SERVE_DELAY - 1e-9)
        self.assertLess(self.clock.t - scored_at, SERVE_DELAY + 0.05 + 1e-9)

        speeds = {(BALL_SPEED, BALL_SPEED), (BALL_SPEED, -BALL_SPEED),
                  (-BALL_SPEED, BALL_SPEED), (-BALL_SPEED, -BALL_SPEED)}
        self.assertIn((host.state.ball.dx, host.state.ball.dy), speeds)
        self.assertFalse(client.state.ball.frozen)
        self.assertIn((client.state.ball.dx, client.state.ball.dy), speeds)

    def test_metrics_recorded(self):
        host, client = self.connect_pair()
        self.pump(host, client, steps=70, dt=1.0 / 60)
        self.assertEqual(len(client.metrics.data['frame_times']), 71)
        self.assertIn('corrections_blend', client.metrics.get_summary())
        self.assertGreater(len(client.metrics.data['snapshot_intervals']), 0)
        self.assertGreater(len(host.metrics.data['bandwidth']), 0)


class TestLatency(SessionTestCase):

    latency = 0.1

    def test_snapshot_delayed_by_latency(self):
        host, client = self.connect_pair()
        self.pump(host, client, dt=0.05)
        self.assertTrue(host.is_playing)
        self.assertTrue(client.is_playing)
        self.pump(host, client, steps=2, dt=SNAPSHOT_INTERVAL)
        self.assertGreater(host.behavior.snapshots_sent, 0)
        self.assertEqual(client.behavior.snapshots_received, 0)
        self.pump(host, client, dt=0.1)
        self.assertGreater(client.behavior.snapshots_received, 0)


if __name__ == '__main__':
    unittest.main()
