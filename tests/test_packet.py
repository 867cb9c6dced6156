"""
Unit tests for packet framing and INPUT/STATE message encoding.
"""

import struct
import unittest

from common.packet import (
    Packet, PacketType, FrameBuffer, HEADER_SIZE, HEADER_FORMAT, PROTOCOL_ID,
    encode_message, decode_message
)


STATE_MESSAGE = {
    'type': 'STATE',
    'state': {
        'ball': {'x': 412.5, 'y': 260.25, 'dx': -420.0, 'dy': 400.0},
        'paddle1_y': 180.0,
        'paddle2_y': 222.75,
        'score1': 3,
        'score2': 11,
        'frozen': False,
    }
}


class TestPacketSerialization(unittest.TestCase):
    """Test the binary packet header."""

    def test_roundtrip_basic(self):
        original = Packet(PacketType.INPUT, payload=b'\x01\x02\x03')
        restored = Packet.deserialize(original.serialize())
        self.assertEqual(restored.packet_type, PacketType.INPUT)
        self.assertEqual(restored.payload, b'\x01\x02\x03')

    def test_invalid_protocol_id(self):
        """Invalid protocol ID should raise ValueError."""
        data = b'\x00\x00\x00\x00' + b'\x00' * 20
        with self.assertRaises(ValueError):
            Packet.deserialize(data)

    def test_too_short(self):
        with self.assertRaises(ValueError):
            Packet.deserialize(b'\x01\x02')

    def test_truncated_payload(self):
        data = struct.pack(HEADER_FORMAT, PROTOCOL_ID, PacketType.STATE, 50) + b'\x00' * 10
        with self.assertRaises(ValueError):
            Packet.deserialize(data)

    def test_header_size(self):
        self.assertEqual(HEADER_SIZE, 7)

    def test_protocol_id_value(self):
        """Protocol ID should be 'PONG' in ASCII."""
        self.assertEqual(PROTOCOL_ID.to_bytes(4, 'big'), b'PONG')

    def test_type_names(self):
        self.assertEqual(PacketType.name(PacketType.STATE), 'STATE')
        self.assertEqual(PacketType.name(0x7F), 'UNKNOWN(0x7f)')


class TestMessages(unittest.TestCase):
    """INPUT/STATE messages through the codec."""

    def test_input_message(self):
        pkt = Packet.deserialize(encode_message({'type': 'INPUT', 'y': 187.5}))
        self.assertEqual(pkt.packet_type, PacketType.INPUT)
        self.assertEqual(decode_message(pkt), {'type': 'INPUT', 'y': 187.5})

    def test_state_message_is_exact(self):
        pkt = Packet.deserialize(encode_message(STATE_MESSAGE))
        self.assertEqual(decode_message(pkt), STATE_MESSAGE)

    def test_frozen_flag_survives(self):
        message = {'type': 'STATE', 'state': dict(STATE_MESSAGE['state'], frozen=True)}
        decoded = decode_message(Packet.deserialize(encode_message(message)))
        self.assertIs(decoded['state']['frozen'], True)

    def test_unknown_message_type(self):
        with self.assertRaises(ValueError):
            encode_message({'type': 'CHAT', 'text': 'hi'})

    def test_unknown_packet_type(self):
        with self.assertRaises(ValueError):
            decode_message(Packet(0x33, b''))

    def test_short_payload(self):
        with self.assertRaises(ValueError):
            decode_message(Packet(PacketType.STATE, b'\x00' * 8))


class TestFrameBuffer(unittest.TestCase):
    """Stream reassembly."""

    def test_byte_by_byte(self):
        data = encode_message({'type': 'INPUT', 'y': 1.0}) + encode_message(STATE_MESSAGE)
        buf = FrameBuffer()
        packets = []
        for i in range(len(data)):
            packets.extend(buf.feed(data[i:i + 1]))
        self.assertEqual([p.packet_type for p in packets],
                         [PacketType.INPUT, PacketType.STATE])
        self.assertEqual(buf.pending, 0)

    def test_many_in_one_read(self):
        data = b''.join(encode_message({'type': 'INPUT', 'y': float(i)})
                        for i in range(5))
        packets = FrameBuffer().feed(data)
        self.assertEqual([decode_message(p)['y'] for p in packets],
                         [0.0, 1.0, 2.0, 3.0, 4.0])

    def test_partial_frame_held(self):
        data = encode_message(STATE_MESSAGE)
        buf = FrameBuffer()
        self.assertEqual(buf.feed(data[:HEADER_SIZE + 3]), [])
        self.assertEqual(buf.pending, HEADER_SIZE + 3)
        self.assertEqual(len(buf.feed(data[HEADER_SIZE + 3:])), 1)

    def test_garbage_rejected(self):
        with self.assertRaises(ValueError):
            FrameBuffer().feed(b'GARBAGE!')


if __name__ == '__main__':
    unittest.main()
