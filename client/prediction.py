"""
Client-side prediction: dead-reckon the ball locally with the same physics
as the host, report our paddle, and fold host snapshots back in.
"""

from common.snapshot import Snapshot
from host.simulation import step_frame
from client.reconciliation import Reconciler
from client.throttle import InputThrottle


class ClientPredictor:
    """
    Client-side behavior. Never scores and never trusts its own ball:
    ball and score always come from the latest snapshot.
    """

    own_paddle = 2

    def __init__(self, state, send, metrics=None, log=print):
        self.state = state
        self.send = send
        self.metrics = metrics
        self.log = log
        self.reconciler = Reconciler(own_paddle=self.own_paddle)
        self.throttle = InputThrottle()
        self.last_correction = None
        self.snapshots_received = 0
        self.inputs_sent = 0

    def start(self):
        pass

    def stop(self):
        self.throttle.pending = None

    def move_paddle(self, y: float, now: float):
        self.state.paddle2_y = y
        allowed = self.throttle.submit(y, now)
        if allowed is not None:
            self._send_input(allowed)

    def on_message(self, message: dict, now: float):
        if message.get('type') != 'STATE':
            return
        snapshot = Snapshot.from_dict(message['state'])
        self.last_correction = self.reconciler.reconcile(self.state, snapshot)
        self.snapshots_received += 1
        if self.metrics is not None:
            self.metrics.log_correction(self.last_correction.kind,
                                        self.last_correction.error)
            self.metrics.log_snapshot_arrival(now)

    def step(self, elapsed: float, now: float) -> int:
        steps = step_frame(self.state, elapsed, authoritative=False)
        held = self.throttle.flush(now)
        if held is not None:
            self._send_input(held)
        return steps

    def _send_input(self, y: float):
        if self.send({'type': 'INPUT', 'y': y}):
            self.inputs_sent += 1
            if self.metrics is not None:
                self.metrics.log_input_sent(y)
