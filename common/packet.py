"""
Wire protocol for the two-player Pong channel.

Packet Header (7 bytes):
    Protocol ID    (4 bytes) - Magic number 0x504F4E47 ("PONG")
    Packet Type    (1 byte)  - Type identifier
    Payload Length (2 bytes) - Length of payload data

The channel is ordered and reliable, so there are no sequence numbers
or acks: every STATE packet is a complete snapshot.
"""

import struct

PROTOCOL_ID = 0x504F4E47  # "PONG" in ASCII

# Network byte order: uint32, uint8, uint16
HEADER_FORMAT = '!I B H'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)  # 7 bytes


class PacketType:
    """Packet type identifiers."""
    INPUT = 0x01
    STATE = 0x02

    _NAMES = {
        0x01: "INPUT",
        0x02: "STATE",
    }

    @classmethod
    def name(cls, ptype: int) -> str:
        return cls._NAMES.get(ptype, f"UNKNOWN({ptype:#x})")


# Input payload: paddle top edge (f64)
INPUT_FORMAT = '!d'
INPUT_SIZE = struct.calcsize(INPUT_FORMAT)

# State payload: ball x, y, dx, dy, paddle1_y, paddle2_y (f64),
# score1, score2 (u32), frozen (bool)
STATE_FORMAT = '!d d d d d d I I ?'
STATE_SIZE = struct.calcsize(STATE_FORMAT)


class Packet:
    """
    A single framed message on the channel.
    Handles serialization/deserialization of the binary header.
    """

    def __init__(self, packet_type: int, payload: bytes = b''):
        self.protocol_id = PROTOCOL_ID
        self.packet_type = packet_type
        self.payload = payload

    def serialize(self) -> bytes:
        """Serialize packet to bytes for transmission."""
        header = struct.pack(
            HEADER_FORMAT,
            self.protocol_id,
            self.packet_type,
            len(self.payload)
        )
        return header + self.payload

    @staticmethod
    def deserialize(data: bytes) -> 'Packet':
        """Deserialize exactly one packet from bytes."""
        pkt, _ = Packet.parse(data)
        return pkt

    @staticmethod
    def parse(data: bytes) -> tuple:
        """
        Parse one packet from the front of data.

        Returns:
            (packet, consumed_bytes)
        """
        if len(data) < HEADER_SIZE:
            raise ValueError(f"Packet too short: {len(data)} < {HEADER_SIZE}")

        proto_id, ptype, plen = struct.unpack(
            HEADER_FORMAT, data[:HEADER_SIZE]
        )

        if proto_id != PROTOCOL_ID:
            raise ValueError(f"Invalid protocol ID: {proto_id:#x}")

        payload = bytes(data[HEADER_SIZE:HEADER_SIZE + plen])
        if len(payload) < plen:
            raise ValueError(f"Payload truncated: got {len(payload)}, expected {plen}")

        return Packet(ptype, payload), HEADER_SIZE + plen

    def __repr__(self):
        return (f"Packet(type={PacketType.name(self.packet_type)}, "
                f"payload_len={len(self.payload)})")


class FrameBuffer:
    """Reassembles packets from a byte stream that may arrive in pieces."""

    def __init__(self):
        self._buf = bytearray()

    def feed(self, data: bytes) -> list:
        """Append received bytes and return every complete packet."""
        self._buf.extend(data)
        packets = []
        while len(self._buf) >= HEADER_SIZE:
            proto_id, _, plen = struct.unpack(
                HEADER_FORMAT, bytes(self._buf[:HEADER_SIZE])
            )
            if proto_id != PROTOCOL_ID:
                raise ValueError(f"Invalid protocol ID: {proto_id:#x}")
            if len(self._buf) < HEADER_SIZE + plen:
                break
            pkt, consumed = Packet.parse(self._buf)
            del self._buf[:consumed]
            packets.append(pkt)
        return packets

    @property
    def pending(self) -> int:
        return len(self._buf)


def encode_message(message: dict) -> bytes:
    """Encode a logical INPUT/STATE message dict into a framed packet."""
    mtype = message.get('type')
    if mtype == 'INPUT':
        payload = struct.pack(INPUT_FORMAT, float(message['y']))
        return Packet(PacketType.INPUT, payload).serialize()
    if mtype == 'STATE':
        s = message['state']
        b = s['ball']
        payload = struct.pack(
            STATE_FORMAT,
            b['x'], b['y'], b['dx'], b['dy'],
            s['paddle1_y'], s['paddle2_y'],
            s['score1'], s['score2'],
            bool(s.get('frozen', False))
        )
        return Packet(PacketType.STATE, payload).serialize()
    raise ValueError(f"Unknown message type: {mtype!r}")


def decode_message(pkt: Packet) -> dict:
    """Decode a packet back into its logical message dict."""
    if pkt.packet_type == PacketType.INPUT:
        if len(pkt.payload) < INPUT_SIZE:
            raise ValueError("Input payload too short")
        (y,) = struct.unpack(INPUT_FORMAT, pkt.payload[:INPUT_SIZE])
        return {'type': 'INPUT', 'y': y}
    if pkt.packet_type == PacketType.STATE:
        if len(pkt.payload) < STATE_SIZE:
            raise ValueError("State payload too short")
        x, y, dx, dy, p1, p2, s1, s2, frozen = struct.unpack(
            STATE_FORMAT, pkt.payload[:STATE_SIZE]
        )
        return {
            'type': 'STATE',
            'state': {
                'ball': {'x': x, 'y': y, 'dx': dx, 'dy': dy},
                'paddle1_y': p1,
                'paddle2_y': p2,
                'score1': s1,
                'score2': s2,
                'frozen': frozen,
            }
        }
    raise ValueError(f"Unknown packet type: {PacketType.name(pkt.packet_type)}")
