"""
Host-side behavior: the authoritative simulation, the opponent's paddle
input, and the snapshot broadcast that keeps the client honest.
"""

import random

from common.config import SNAPSHOT_INTERVAL, SERVE_DELAY
from host.simulation import step_frame, serve_ball


class HostAuthority:
    """
    Owns ground truth for the ball and score. Broadcasts a full STATE
    snapshot on a fixed timer, and immediately whenever a point is
    scored or the ball is served.
    """

    own_paddle = 1

    def __init__(self, state, scheduler, send, rng: random.Random = None,
                 log=print):
        self.state = state
        self.scheduler = scheduler
        self.send = send
        self.rng = rng or random.Random()
        self.log = log
        self.broadcast_timer = None
        self.serve_timer = None
        self.snapshots_sent = 0

    def start(self):
        self.broadcast_timer = self.scheduler.call_every(
            SNAPSHOT_INTERVAL, self.broadcast)

    def stop(self):
        for timer in (self.broadcast_timer, self.serve_timer):
            if timer is not None:
                timer.cancel()
        self.broadcast_timer = None
        self.serve_timer = None

    def move_paddle(self, y: float, now: float):
        self.state.paddle1_y = y

    def on_message(self, message: dict, now: float):
        if message.get('type') == 'INPUT':
            self.state.paddle2_y = message['y']

    def step(self, elapsed: float, now: float) -> int:
        return step_frame(self.state, elapsed, authoritative=True,
                          on_score=self._on_score)

    def broadcast(self):
        snapshot = self.state.get_snapshot()
        if self.send({'type': 'STATE', 'state': snapshot.to_dict()}):
            self.snapshots_sent += 1

    def serve(self):
        self.serve_timer = None
        serve_ball(self.state, self.rng)
        self.broadcast()

    def _on_score(self, scorer: int):
        self.log(f"[HOST] Player {scorer} scores "
                 f"({self.state.score1}-{self.state.score2})")
        # Frozen snapshot: the client snaps to centre instead of smoothing
        self.broadcast()
        if self.serve_timer is not None:
            self.serve_timer.cancel()
        self.serve_timer = self.scheduler.call_later(SERVE_DELAY, self.serve)
