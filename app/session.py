"""
Session lifecycle and role selection.

A GameSession is the single writer of its GameState. Transport events and
local input only enqueue intents; tick() polls the transport, applies the
queued intents in order, runs due timers, and then steps the frame physics.
Nothing else touches the state, so no two mutations can race even if input
is captured on another thread.
"""

import queue
import random
import time
from enum import Enum

from common.metrics_logger import MetricsLogger
from common.snapshot import GameState
from common.timers import Scheduler
from host.authority import HostAuthority
from client.prediction import ClientPredictor


class Role(Enum):
    HOST = 'host'
    CLIENT = 'client'


class SessionStatus(Enum):
    IDLE = 'idle'
    CONNECTING = 'connecting'
    PLAYING = 'playing'
    ENDED = 'ended'


class SessionError(RuntimeError):
    """Raised when a lifecycle operation is called in the wrong state."""


class GameSession:
    """
    One two-player match over one channel. The role picks which behavior
    runs: HostAuthority (simulates, broadcasts) or ClientPredictor
    (predicts, reconciles). Ending is final; reconnecting needs a new
    session.
    """

    def __init__(self, peer, clock=time.perf_counter,
                 rng: random.Random = None, metrics: MetricsLogger = None,
                 verbose: bool = True):
        self.peer = peer
        self.clock = clock
        self.rng = rng or random.Random()
        self.metrics = metrics or MetricsLogger()
        self.verbose = verbose

        self.state = GameState()
        self.status = SessionStatus.IDLE
        self.role = None
        self.behavior = None
        self.channel = None
        self.peer_id = None
        self.end_reason = None

        self.scheduler = Scheduler(clock)
        self.intents = queue.SimpleQueue()

        # Frame loop bookkeeping
        self.frame = 0
        self.last_frame_time = None
        self._bandwidth_time = None
        self._bandwidth_mark = (0, 0)

        peer.on_error(lambda info: self.intents.put(('peer_error', None, info)))

    def _log(self, msg: str):
        """Print a message if verbose mode is enabled."""
        if self.verbose:
            print(msg, flush=True)

    @property
    def tag(self) -> str:
        if self.role is None:
            return '[SESSION]'
        return f"[{self.role.name}]"

    @property
    def own_paddle(self) -> int:
        return self.behavior.own_paddle if self.behavior else 1

    @property
    def is_playing(self) -> bool:
        return self.status is SessionStatus.PLAYING

    @property
    def is_ended(self) -> bool:
        return self.status is SessionStatus.ENDED

    # -- lifecycle ---------------------------------------------------------

    def host(self) -> str:
        """Start accepting one opponent. Returns the id to share with them."""
        self._require_idle('host')
        self.role = Role.HOST
        self.behavior = HostAuthority(self.state, self.scheduler, self._send,
                                      rng=self.rng, log=self._log)
        self.peer.on_incoming(self._on_incoming)
        self.status = SessionStatus.CONNECTING
        try:
            self.peer_id = self.peer.listen()
        except OSError as e:
            self._end(f"Error: {e}")
            return None
        self._log(f"{self.tag} Waiting for opponent. Share this ID: {self.peer_id}")
        return self.peer_id

    def join(self, host_id: str):
        """Connect to a host by id."""
        self._require_idle('join')
        self.role = Role.CLIENT
        self.behavior = ClientPredictor(self.state, self._send,
                                        metrics=self.metrics, log=self._log)
        self.status = SessionStatus.CONNECTING
        self._log(f"{self.tag} Connecting to {host_id}...")
        self._attach(self.peer.connect(host_id))

    def move_paddle(self, y: float):
        """Queue a local paddle move. y must already be clamped to the field."""
        self.intents.put(('move', None, y))

    def disconnect(self):
        """Queue a local hang-up; takes effect on the next tick."""
        self.intents.put(('disconnect', None, None))

    def close(self):
        """End immediately and release the transport."""
        self._end('Closed locally')
        self.peer.close()

    def _require_idle(self, action: str):
        if self.status is not SessionStatus.IDLE:
            raise SessionError(
                f"Cannot {action}: session is {self.status.value}")

    # -- transport events --------------------------------------------------

    def _attach(self, channel):
        self.channel = channel
        self._watch(channel)

    def _watch(self, channel):
        channel.on('open', lambda: self.intents.put(('open', channel, None)))
        channel.on('data', lambda m: self.intents.put(('data', channel, m)))
        channel.on('close', lambda: self.intents.put(('close', channel, None)))
        channel.on('error', lambda info: self.intents.put(('error', channel, info)))

    def _on_incoming(self, channel):
        # Handlers go on first so no event is lost; adoption is decided in order
        self._watch(channel)
        self.intents.put(('incoming', channel, None))

    # -- owner loop --------------------------------------------------------

    def tick(self, now: float = None):
        """Run one frame: poll, apply intents, fire timers, step physics."""
        if now is None:
            now = self.clock()
        if self.status in (SessionStatus.IDLE, SessionStatus.ENDED):
            return

        self.peer.poll()
        self._drain(now)
        if self.status is SessionStatus.ENDED:
            return

        self.scheduler.run_due(now)
        if self.status is SessionStatus.PLAYING:
            self._step(now)

    def _drain(self, now: float):
        while True:
            try:
                kind, channel, payload = self.intents.get_nowait()
            except queue.Empty:
                return
            self._apply(kind, channel, payload, now)

    def _apply(self, kind: str, channel, payload, now: float):
        if self.status is SessionStatus.ENDED:
            return

        if kind == 'move':
            if self.status is SessionStatus.PLAYING:
                self.behavior.move_paddle(payload, now)
            return
        if kind == 'disconnect':
            self._end('Disconnected')
            return
        if kind == 'peer_error':
            self._end(f"Error: {payload}")
            return
        if kind == 'incoming':
            self._adopt(channel)
            return

        if channel is not self.channel:
            return  # events from a rejected or replaced channel

        if kind == 'open':
            self._start(now)
        elif kind == 'data':
            if self.status is SessionStatus.PLAYING:
                self.behavior.on_message(payload, now)
        elif kind == 'close':
            self._end('Opponent disconnected')
        elif kind == 'error':
            self._end(f"Error: {payload}")

    def _adopt(self, channel):
        if self.channel is not None or self.status is not SessionStatus.CONNECTING:
            self._log(f"{self.tag} Rejected {channel.remote_id}: already paired")
            channel.close()
            return
        self._log(f"{self.tag} Connected! Starting...")
        self.channel = channel

    def _start(self, now: float):
        if self.status is not SessionStatus.CONNECTING:
            return
        self.status = SessionStatus.PLAYING
        self.state.status = 'playing'
        self.last_frame_time = now
        self._bandwidth_time = now
        self.behavior.start()
        self._log(f"{self.tag} Playing against {self.channel.remote_id}")

    def _step(self, now: float):
        elapsed = max(0.0, now - self.last_frame_time)
        self.last_frame_time = now

        step_start = time.perf_counter()
        steps = self.behavior.step(elapsed, now)
        duration = (time.perf_counter() - step_start) * 1000.0
        self.frame += 1
        self.metrics.log_frame_time(self.frame, steps, duration)

        if now - self._bandwidth_time >= 1.0:
            sent, recv = self.channel.bytes_sent, self.channel.bytes_recv
            self.metrics.log_bandwidth(sent - self._bandwidth_mark[0],
                                       recv - self._bandwidth_mark[1])
            self._bandwidth_mark = (sent, recv)
            self._bandwidth_time = now

    def _send(self, message: dict) -> bool:
        if self.channel is None:
            return False
        return self.channel.send(message)

    def _end(self, reason: str):
        if self.status is SessionStatus.ENDED:
            return
        self.status = SessionStatus.ENDED
        self.end_reason = reason
        self.state.status = 'waiting'
        self.scheduler.cancel_all()
        if self.behavior is not None:
            self.behavior.stop()
        if self.channel is not None:
            self.channel.close()
        self._log(f"{self.tag} Session ended: {reason}")
