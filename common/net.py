"""
Transport channel adapters.

A Channel is an ordered, reliable, bidirectional message pipe to exactly
one remote peer with open/data/close/error events. Two adapters exist:
non-blocking TCP sockets for real play, and in-process loopback pairs
for tests and local demos. Both frame messages with common.packet, and
both can delay outbound frames through a NetworkSimulator.
"""

import errno
import itertools
import random
import select
import socket
import time
from collections import deque

from common.config import (
    DEFAULT_HOST, DEFAULT_PORT, DEFAULT_BUFFER_SIZE, CONNECT_TIMEOUT
)
from common.packet import FrameBuffer, encode_message, decode_message


def create_server_socket(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> socket.socket:
    """Create, bind and listen on a non-blocking TCP socket for the host."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((host, port))
    sock.listen(4)
    sock.setblocking(False)
    return sock


def create_client_socket() -> socket.socket:
    """Create a non-blocking TCP socket for the client."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setblocking(False)
    _tune(sock)
    return sock


def _tune(sock: socket.socket):
    # Small frames at 30 Hz: don't let Nagle batch them
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)


def format_peer_id(host: str, port: int) -> str:
    return f"{host}:{port}"


def parse_peer_id(peer_id: str) -> tuple:
    """Split a 'host:port' peer id. Raises ValueError when malformed."""
    host, sep, port = peer_id.rpartition(':')
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Malformed peer id: {peer_id!r} (expected host:port)")
    return host, int(port)


class NetworkSimulator:
    """
    Delays outbound frames by latency +/- jitter.
    Delivery times never go backwards, so the channel stays ordered.
    """

    def __init__(self, latency: float = 0.0, jitter: float = 0.0,
                 clock=time.perf_counter, rng: random.Random = None):
        self.latency = latency
        self.jitter = jitter
        self.clock = clock
        self.rng = rng or random.Random()
        self.delayed = deque()       # (deliver_time, data)
        self._last_deliver = float('-inf')

    def schedule(self, data: bytes):
        delay = self.latency
        if self.jitter > 0:
            delay += self.rng.uniform(-self.jitter, self.jitter)
        deliver_time = max(self.clock() + max(0.0, delay), self._last_deliver)
        self._last_deliver = deliver_time
        self.delayed.append((deliver_time, data))

    def due(self) -> list:
        """Pop every frame whose delivery time has elapsed, in send order."""
        now = self.clock()
        ready = []
        while self.delayed and self.delayed[0][0] <= now:
            ready.append(self.delayed.popleft()[1])
        return ready

    def __len__(self):
        return len(self.delayed)


class Channel:
    """
    Base channel: event registry, framing, byte counters.
    Subclasses supply _transmit(), _release() and poll().
    """

    EVENTS = ('open', 'data', 'close', 'error')

    def __init__(self, remote_id: str):
        self.remote_id = remote_id
        self.closed = False
        self.bytes_sent = 0
        self.bytes_recv = 0
        self._open = False
        self._frames = FrameBuffer()
        self._deferred_error = None
        self._handlers = {event: [] for event in self.EVENTS}

    def on(self, event: str, handler):
        """Register a handler for 'open', 'data', 'close' or 'error'."""
        if event not in self._handlers:
            raise ValueError(f"Unknown channel event: {event!r}")
        self._handlers[event].append(handler)

    @property
    def is_open(self) -> bool:
        return self._open and not self.closed

    def send(self, message: dict) -> bool:
        """Frame and send a message. Dropped (False) unless the channel is open."""
        if not self.is_open:
            return False
        data = encode_message(message)
        self._transmit(data)
        self.bytes_sent += len(data)
        return True

    def close(self):
        """Close locally. No event is emitted for a local close."""
        if self.closed:
            return
        self._shutdown()

    def poll(self):
        raise NotImplementedError

    def _transmit(self, data: bytes):
        raise NotImplementedError

    def _release(self):
        pass

    def _emit(self, event: str, *args):
        for handler in list(self._handlers[event]):
            handler(*args)

    def _mark_open(self):
        if self._open or self.closed:
            return
        self._open = True
        self._emit('open')

    def _receive(self, data: bytes):
        self.bytes_recv += len(data)
        try:
            packets = self._frames.feed(data)
        except ValueError as e:
            self._fail(f"bad frame: {e}")
            return
        for pkt in packets:
            if self.closed:
                return
            try:
                message = decode_message(pkt)
            except ValueError as e:
                self._fail(f"bad message: {e}")
                return
            self._emit('data', message)

    def _defer_error(self, info: str):
        # Raised before anyone could register handlers; reported on next poll
        self._deferred_error = info

    def _raise_deferred(self) -> bool:
        if self._deferred_error is None:
            return False
        info, self._deferred_error = self._deferred_error, None
        self._fail(info)
        return True

    def _fail(self, info: str):
        if self.closed:
            return
        self._shutdown()
        self._emit('error', info)

    def _remote_closed(self):
        if self.closed:
            return
        self._shutdown()
        self._emit('close')

    def _shutdown(self):
        self.closed = True
        self._open = False
        self._release()

    def __repr__(self):
        state = 'closed' if self.closed else ('open' if self._open else 'pending')
        return f"{type(self).__name__}({self.remote_id}, {state})"


class TcpChannel(Channel):
    """Channel over a non-blocking TCP stream."""

    def __init__(self, sock: socket.socket, remote_id: str,
                 connecting: bool = False, net_sim: NetworkSimulator = None,
                 clock=time.perf_counter, timeout: float = CONNECT_TIMEOUT):
        super().__init__(remote_id)
        self.sock = sock
        self.net_sim = net_sim
        self.clock = clock
        self._connecting = connecting
        self._deadline = clock() + timeout
        self._outbox = bytearray()

    def _transmit(self, data: bytes):
        if self.net_sim is not None:
            self.net_sim.schedule(data)
        else:
            self._outbox.extend(data)
            self._flush()

    def poll(self):
        """Advance the connect handshake, flush writes, drain reads."""
        if self.closed or self._raise_deferred():
            return

        if self._connecting:
            self._poll_connect()
            if self._connecting or self.closed:
                return
        else:
            self._mark_open()

        if self.net_sim is not None:
            for data in self.net_sim.due():
                self._outbox.extend(data)
        self._flush()
        self._drain()

    def _poll_connect(self):
        _, writable, failed = select.select([], [self.sock], [self.sock], 0)
        if writable or failed:
            err = self.sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
            if err:
                self._fail(f"connect failed: {errno.errorcode.get(err, err)}")
                return
            self._connecting = False
            self._mark_open()
        elif self.clock() > self._deadline:
            self._fail('connect timed out')

    def _flush(self):
        while self._outbox and not self.closed:
            try:
                sent = self.sock.send(self._outbox)
            except BlockingIOError:
                return
            except OSError as e:
                self._fail(f"send failed: {e}")
                return
            del self._outbox[:sent]

    def _drain(self):
        for _ in range(1000):  # Safety limit
            if self.closed:
                return
            try:
                data = self.sock.recv(DEFAULT_BUFFER_SIZE)
            except BlockingIOError:
                return
            except OSError as e:
                self._fail(f"receive failed: {e}")
                return
            if not data:
                self._remote_closed()
                return
            self._receive(data)

    def _release(self):
        try:
            self.sock.close()
        except OSError:
            pass


class TcpPeer:
    """
    Local endpoint for TCP play. Hosts listen() and accept inbound
    channels; clients connect() to a 'host:port' peer id.
    """

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
                 latency: float = 0.0, jitter: float = 0.0,
                 clock=time.perf_counter):
        self.host = host
        self.port = port
        self.latency = latency
        self.jitter = jitter
        self.clock = clock
        self.sock = None
        self.channels = []
        self._incoming_handler = None
        self._error_handlers = []

    @property
    def id(self) -> str:
        host = self.host
        if host in ('', '0.0.0.0'):
            host = socket.gethostname()
        return format_peer_id(host, self.port)

    def on_incoming(self, handler):
        self._incoming_handler = handler

    def on_error(self, handler):
        self._error_handlers.append(handler)

    def listen(self) -> str:
        """Start accepting inbound channels. Returns this peer's id."""
        self.sock = create_server_socket(self.host, self.port)
        self.port = self.sock.getsockname()[1]
        return self.id

    def connect(self, remote_id: str) -> TcpChannel:
        """Begin an outbound connection. Failures arrive as channel errors."""
        sock = create_client_socket()
        channel = TcpChannel(sock, remote_id, connecting=True,
                             net_sim=self._make_simulator(), clock=self.clock)
        try:
            err = sock.connect_ex(parse_peer_id(remote_id))
        except (ValueError, OSError) as e:
            channel._defer_error(f"connect failed: {e}")
        else:
            if err not in (0, errno.EINPROGRESS, errno.EWOULDBLOCK):
                channel._defer_error(
                    f"connect failed: {errno.errorcode.get(err, err)}")
        self.channels.append(channel)
        return channel

    def poll(self):
        if self.sock is not None:
            self._accept_all()
        for channel in list(self.channels):
            channel.poll()
        self.channels = [c for c in self.channels if not c.closed]

    def close(self):
        for channel in self.channels:
            channel.close()
        self.channels = []
        if self.sock is not None:
            try:
                self.sock.close()
            except OSError:
                pass
            self.sock = None

    def _accept_all(self):
        for _ in range(16):
            try:
                conn, addr = self.sock.accept()
            except BlockingIOError:
                return
            except OSError as e:
                for handler in list(self._error_handlers):
                    handler(f"accept failed: {e}")
                return
            conn.setblocking(False)
            _tune(conn)
            channel = TcpChannel(conn, format_peer_id(addr[0], addr[1]),
                                 net_sim=self._make_simulator(),
                                 clock=self.clock)
            self.channels.append(channel)
            if self._incoming_handler is not None:
                self._incoming_handler(channel)
            else:
                channel.close()

    def _make_simulator(self):
        if self.latency > 0 or self.jitter > 0:
            return NetworkSimulator(self.latency, self.jitter, self.clock)
        return None


class LoopbackChannel(Channel):
    """One end of an in-process channel pair."""

    def __init__(self, remote_id: str, net_sim: NetworkSimulator):
        super().__init__(remote_id)
        self.net_sim = net_sim        # frames travelling toward the other end
        self.other = None
        self.established = False

    @staticmethod
    def pair(a_id: str, b_id: str, make_sim) -> tuple:
        """Create linked ends; a talks to b_id, b talks to a_id."""
        a = LoopbackChannel(b_id, make_sim())
        b = LoopbackChannel(a_id, make_sim())
        a.other, b.other = b, a
        return a, b

    def _transmit(self, data: bytes):
        self.net_sim.schedule(data)

    def poll(self):
        if self.closed or self._raise_deferred():
            return
        if self.established:
            self._mark_open()
            for data in self.other.net_sim.due():
                self._receive(data)
                if self.closed:
                    return
        # Remote closed: deliver what is still in flight first
        if self.other.closed and not self.other.net_sim.delayed:
            self._remote_closed()


class LoopbackPeer:
    """Endpoint on a LoopbackNetwork with the same surface as TcpPeer."""

    def __init__(self, network: 'LoopbackNetwork', peer_id: str):
        self.network = network
        self.id = peer_id
        self.listening = False
        self.channels = []
        self._incoming = deque()
        self._incoming_handler = None
        self._error_handlers = []

    def on_incoming(self, handler):
        self._incoming_handler = handler

    def on_error(self, handler):
        self._error_handlers.append(handler)

    def listen(self) -> str:
        self.listening = True
        return self.id

    def connect(self, remote_id: str) -> LoopbackChannel:
        local, remote = LoopbackChannel.pair(self.id, remote_id,
                                             self.network.make_simulator)
        self.channels.append(local)
        target = self.network.peers.get(remote_id)
        if target is None or target is self or not target.listening:
            local._defer_error('peer-unavailable')
        else:
            target._incoming.append(remote)
        return local

    def poll(self):
        while self._incoming:
            channel = self._incoming.popleft()
            self.channels.append(channel)
            if self._incoming_handler is None:
                channel.close()
                continue
            self._incoming_handler(channel)
            if not channel.closed:
                channel.established = True
                channel.other.established = True
        for channel in list(self.channels):
            channel.poll()
        self.channels = [c for c in self.channels if not c.closed]

    def close(self):
        self.listening = False
        for channel in self.channels:
            channel.close()
        self.channels = []
        self.network.peers.pop(self.id, None)


class LoopbackNetwork:
    """In-process switchboard joining LoopbackPeers by id."""

    def __init__(self, latency: float = 0.0, jitter: float = 0.0,
                 clock=time.perf_counter, rng: random.Random = None):
        self.latency = latency
        self.jitter = jitter
        self.clock = clock
        self.rng = rng or random.Random()
        self.peers = {}
        self._ids = itertools.count(1)

    def peer(self, peer_id: str = None) -> LoopbackPeer:
        if peer_id is None:
            peer_id = f"peer-{next(self._ids)}"
        if peer_id in self.peers:
            raise ValueError(f"Peer id already in use: {peer_id}")
        p = LoopbackPeer(self, peer_id)
        self.peers[peer_id] = p
        return p

    def make_simulator(self) -> NetworkSimulator:
        return NetworkSimulator(self.latency, self.jitter, self.clock, self.rng)
