"""
Frame loop and command-line entry point.

    python -m app.runner --host                 # wait for an opponent
    python -m app.runner --join HOST:PORT       # join a host
    python -m app.runner --local --headless     # both roles over loopback
"""

import time

from common.config import (
    DEFAULT_HOST, DEFAULT_PORT, FRAME_RATE, PADDLE_HEIGHT, BALL_SIZE
)
from common.metrics_logger import MetricsLogger
from common.net import TcpPeer, LoopbackNetwork
from host.simulation import clamp_paddle
from app.session import GameSession, SessionStatus

BOT_SPEED = 350.0   # pixels per second


def track_ball(state, current_y: float, dt: float) -> float:
    """Headless opponent: chase the ball's centre at a capped speed."""
    target = state.ball.y + BALL_SIZE / 2 - PADDLE_HEIGHT / 2
    step = BOT_SPEED * dt
    delta = max(-step, min(step, target - current_y))
    return clamp_paddle(current_y + delta)


class PongApp:
    """
    Drives one or two sessions at FRAME_RATE: capture input, tick,
    render, until the session ends, the user quits, or --duration passes.
    """

    def __init__(self, sessions: list, headless: bool = False,
                 duration: float = None):
        self.sessions = sessions
        self.viewer = sessions[-1]     # the session a human plays / watches
        self.headless = headless
        self.duration = duration
        self.renderer = None

    def _status_text(self) -> str:
        s = self.viewer
        if s.status is SessionStatus.CONNECTING:
            if s.peer_id:
                return f"Waiting for opponent... ID: {s.peer_id}"
            return "Connecting..."
        if s.status is SessionStatus.ENDED:
            return s.end_reason or "Session ended"
        return None

    def _hud(self) -> dict:
        s = self.viewer
        hud = {'Role': s.role.value if s.role else '-',
               'Frame': str(s.frame)}
        behavior = s.behavior
        if hasattr(behavior, 'snapshots_received'):
            hud['Snapshots'] = str(behavior.snapshots_received)
            if behavior.last_correction is not None:
                c = behavior.last_correction
                hud['Correction'] = f"{c.kind} {c.error:.1f}px"
        if hasattr(behavior, 'snapshots_sent'):
            hud['Snapshots'] = str(behavior.snapshots_sent)
        return hud

    def run(self):
        if not self.headless:
            from app.renderer import GameRenderer
            self.renderer = GameRenderer()

        start = time.perf_counter()
        last = start
        frame_time = 1.0 / FRAME_RATE

        try:
            while True:
                now = time.perf_counter()
                dt = now - last
                last = now

                if self.renderer is not None and self.renderer.check_quit():
                    break
                if self.duration is not None and now - start >= self.duration:
                    break

                for session in self.sessions:
                    if not session.is_playing:
                        continue
                    own = session.own_paddle
                    current = session.state.paddle(own)
                    if session is self.viewer and self.renderer is not None:
                        target = self.renderer.get_paddle_target(current, dt)
                    else:
                        target = track_ball(session.state, current, dt)
                    if target != current:
                        session.move_paddle(target)

                for session in self.sessions:
                    session.tick(now)

                if self.renderer is not None:
                    self.renderer.render(self.viewer.state,
                                         self.viewer.own_paddle,
                                         self._status_text(), self._hud())
                else:
                    time.sleep(frame_time)

                if all(s.is_ended for s in self.sessions):
                    break

        except KeyboardInterrupt:
            print("\n[APP] Interrupted", flush=True)
        finally:
            for session in self.sessions:
                reason = session.end_reason
                session.close()
                if reason:
                    print(f"[APP] {session.tag} {reason}", flush=True)
                print(f"[APP] {session.tag} Final score "
                      f"{session.state.score1}-{session.state.score2}", flush=True)
                role = session.role.value if session.role else 'idle'
                session.metrics.save(f'{role}_metrics.json')
                summary = session.metrics.get_summary()
                if summary:
                    print(f"[APP] {session.tag} Metrics summary: {summary}",
                          flush=True)
            if self.renderer is not None:
                self.renderer.close()


def build_sessions(args) -> list:
    """Create and start the session(s) the command line asks for."""
    verbose = not args.quiet

    if args.local:
        network = LoopbackNetwork(latency=args.latency, jitter=args.jitter)
        host = GameSession(network.peer('host'), verbose=verbose,
                           metrics=MetricsLogger(args.metrics_dir))
        client = GameSession(network.peer('client'), verbose=verbose,
                             metrics=MetricsLogger(args.metrics_dir))
        host_id = host.host()
        client.join(host_id)
        return [host, client]

    peer = TcpPeer(args.bind, args.port, latency=args.latency,
                   jitter=args.jitter)
    session = GameSession(peer, verbose=verbose,
                          metrics=MetricsLogger(args.metrics_dir))
    if args.join:
        session.join(args.join)
    else:
        session.host()
    return [session]


def main():
    """Entry point for running a player."""
    import argparse
    parser = argparse.ArgumentParser(description='Peer-to-peer Pong')
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument('--host', action='store_true',
                      help='Wait for one opponent to join')
    mode.add_argument('--join', metavar='ID',
                      help='Join a host by its id (host:port)')
    mode.add_argument('--local', action='store_true',
                      help='Run host and client in-process over loopback')
    parser.add_argument('--bind', default=DEFAULT_HOST,
                        help='Bind address when hosting')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT,
                        help='Listen port when hosting (0 picks a free one)')
    parser.add_argument('--headless', action='store_true',
                        help='Run without pygame; a bot moves the paddle')
    parser.add_argument('--duration', type=float, default=None,
                        help='Stop after this many seconds')
    parser.add_argument('--latency', type=float, default=0.0,
                        help='Simulated one-way latency (seconds)')
    parser.add_argument('--jitter', type=float, default=0.0,
                        help='Simulated latency jitter (seconds)')
    parser.add_argument('--metrics-dir', default='analysis/logs',
                        help='Where metrics JSON is written on exit')
    parser.add_argument('--quiet', action='store_true',
                        help='Suppress session log lines')
    args = parser.parse_args()

    sessions = build_sessions(args)
    PongApp(sessions, headless=args.headless, duration=args.duration).run()


if __name__ == '__main__':
    main()
