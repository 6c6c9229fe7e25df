"""Protocol constants and the wire layout of handshake and transport messages.

Every message starts with an 8-bit type followed by three zero bytes, so
the first four bytes are read as a little-endian 32-bit unsigned integer.
All integer fields are little-endian.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

# Specification constants. Durations are in seconds.
REKEY_AFTER_MESSAGES = 1 << 60
REJECT_AFTER_MESSAGES = (1 << 64) - (1 << 13) - 1
REKEY_AFTER_TIME = 120.0
REKEY_ATTEMPT_TIME = 90.0
REKEY_TIMEOUT = 5.0
MAX_TIMER_HANDSHAKES = 90 // 5  # REKEY_ATTEMPT_TIME / REKEY_TIMEOUT
REKEY_TIMEOUT_JITTER_MAX_MS = 334
REJECT_AFTER_TIME = 180.0
KEEPALIVE_TIMEOUT = 10.0
COOKIE_REFRESH_TIME = 120.0
HANDSHAKE_INITIATION_RATE = 1.0 / 50
PADDING_MULTIPLE = 16

# Implementation constants.
UNDER_LOAD_AFTER_TIME = 1.0
MAX_PEERS = 1 << 16

# Offsets into IP headers.
IPV4_LEN = 4
IPV6_LEN = 16
IPV4_OFFSET_TOTAL_LENGTH = 2
IPV4_OFFSET_SRC = 12
IPV4_OFFSET_DST = IPV4_OFFSET_SRC + IPV4_LEN
IPV6_OFFSET_PAYLOAD_LENGTH = 4
IPV6_OFFSET_SRC = 8
IPV6_OFFSET_DST = IPV6_OFFSET_SRC + IPV6_LEN

# Protocol labels.
NOISE_CONSTRUCTION = "Noise_IKpsk2_25519_ChaChaPoly_BLAKE2s"
WG_IDENTIFIER = "WireGuard v1 zx2c4 [email]"
WG_LABEL_MAC1 = "mac1----"
WG_LABEL_COOKIE = "cookie--"

# Primitive sizes.
NOISE_PUBLIC_KEY_SIZE = 32
TAG_SIZE = 16
MAC_SIZE = 16
TIMESTAMP_SIZE = 12
NONCE_SIZE = 12

MESSAGE_INITIATION_TYPE = 1
MESSAGE_RESPONSE_TYPE = 2
MESSAGE_COOKIE_REPLY_TYPE = 3
MESSAGE_TRANSPORT_TYPE = 4

MESSAGE_INITIATION_SIZE = 148
MESSAGE_RESPONSE_SIZE = 92
MESSAGE_COOKIE_REPLY_SIZE = 64
MESSAGE_TRANSPORT_HEADER_SIZE = 16
MESSAGE_TRANSPORT_SIZE = MESSAGE_TRANSPORT_HEADER_SIZE + TAG_SIZE
MESSAGE_KEEPALIVE_SIZE = MESSAGE_TRANSPORT_SIZE
MESSAGE_HANDSHAKE_SIZE = MESSAGE_INITIATION_SIZE
MIN_MESSAGE_SIZE = MESSAGE_KEEPALIVE_SIZE

MESSAGE_TRANSPORT_OFFSET_RECEIVER = 4
MESSAGE_TRANSPORT_OFFSET_COUNTER = 8
MESSAGE_TRANSPORT_OFFSET_CONTENT = 16

_INITIATION = struct.Struct(
    f"<II{NOISE_PUBLIC_KEY_SIZE}s{NOISE_PUBLIC_KEY_SIZE + TAG_SIZE}s"
    f"{TIMESTAMP_SIZE + TAG_SIZE}s{MAC_SIZE}s{MAC_SIZE}s"
)
_RESPONSE = struct.Struct(
    f"<III{NOISE_PUBLIC_KEY_SIZE}s{TAG_SIZE}s{MAC_SIZE}s{MAC_SIZE}s"
)
_COOKIE_REPLY = struct.Struct(f"<II{NONCE_SIZE}s{MAC_SIZE + TAG_SIZE}s")
_TRANSPORT_HEADER = struct.Struct("<IIQ")


def _fixed(value: bytes, size: int, name: str) -> bytes:
    value = bytes(value)
    if len(value) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(value)}")
    return value


def _expect_length(data: bytes, size: int, kind: str) -> None:
    if len(data) != size:
        raise ValueError(f"{kind} must be {size} bytes, got {len(data)}")


def message_type(data: bytes) -> int:
    """Return the message type stored in the first four bytes of a packet."""
    if len(data) < 4:
        raise ValueError("packet too short to hold a message type")
    return int.from_bytes(data[:4], "little")


@dataclass
class MessageInitiation:
    """First handshake message, sent by the initiator."""

    type: int = MESSAGE_INITIATION_TYPE
    sender: int = 0
    ephemeral: bytes = bytes(NOISE_PUBLIC_KEY_SIZE)
    static: bytes = bytes(NOISE_PUBLIC_KEY_SIZE + TAG_SIZE)
    timestamp: bytes = bytes(TIMESTAMP_SIZE + TAG_SIZE)
    mac1: bytes = bytes(MAC_SIZE)
    mac2: bytes = bytes(MAC_SIZE)

    def pack(self) -> bytes:
        return _INITIATION.pack(
            self.type,
            self.sender,
            _fixed(self.ephemeral, NOISE_PUBLIC_KEY_SIZE, "ephemeral"),
            _fixed(self.static, NOISE_PUBLIC_KEY_SIZE + TAG_SIZE, "static"),
            _fixed(self.timestamp, TIMESTAMP_SIZE + TAG_SIZE, "timestamp"),
            _fixed(self.mac1, MAC_SIZE, "mac1"),
            _fixed(self.mac2, MAC_SIZE, "mac2"),
        )

    @classmethod
    def unpack(cls, data: bytes) -> "MessageInitiation":
        _expect_length(data, MESSAGE_INITIATION_SIZE, "initiation message")
        return cls(*_INITIATION.unpack(bytes(data)))


@dataclass
class MessageResponse:
    """Second handshake message, sent by the responder."""

    type: int = MESSAGE_RESPONSE_TYPE
    sender: int = 0
    receiver: int = 0
    ephemeral: bytes = bytes(NOISE_PUBLIC_KEY_SIZE)
    empty: bytes = bytes(TAG_SIZE)
    mac1: bytes = bytes(MAC_SIZE)
    mac2: bytes = bytes(MAC_SIZE)

    def pack(self) -> bytes:
        return _RESPONSE.pack(
            self.type,
            self.sender,
            self.receiver,
            _fixed(self.ephemeral, NOISE_PUBLIC_KEY_SIZE, "ephemeral"),
            _fixed(self.empty, TAG_SIZE, "empty"),
            _fixed(self.mac1, MAC_SIZE, "mac1"),
            _fixed(self.mac2, MAC_SIZE, "mac2"),
        )

    @classmethod
    def unpack(cls, data: bytes) -> "MessageResponse":
        _expect_length(data, MESSAGE_RESPONSE_SIZE, "response message")
        return cls(*_RESPONSE.unpack(bytes(data)))


@dataclass
class MessageTransport:
    """Data message: a 16-byte header followed by encrypted content."""

    type: int = MESSAGE_TRANSPORT_TYPE
    receiver: int = 0
    counter: int = 0
    content: bytes = field(default=b"")

    def pack(self) -> bytes:
        return (
            _TRANSPORT_HEADER.pack(self.type, self.receiver, self.counter)
            + bytes(self.content)
        )

    @classmethod
    def unpack(cls, data: bytes) -> "MessageTransport":
        if len(data) < MIN_MESSAGE_SIZE:
            raise ValueError(
                f"transport message must be at least {MIN_MESSAGE_SIZE} bytes, "
                f"got {len(data)}"
            )
        data = bytes(data)
        kind, receiver, counter = _TRANSPORT_HEADER.unpack_from(data)
        return cls(kind, receiver, counter, data[MESSAGE_TRANSPORT_OFFSET_CONTENT:])


@dataclass
class MessageCookieReply:
    """Cookie reply sent under load; the wire form is padded to its fixed size."""

    type: int = MESSAGE_COOKIE_REPLY_TYPE
    receiver: int = 0
    nonce: bytes = bytes(NONCE_SIZE)
    cookie: bytes = bytes(MAC_SIZE + TAG_SIZE)

    def pack(self) -> bytes:
        body = _COOKIE_REPLY.pack(
            self.type,
            self.receiver,
            _fixed(self.nonce, NONCE_SIZE, "nonce"),
            _fixed(self.cookie, MAC_SIZE + TAG_SIZE, "cookie"),
        )
        return body.ljust(MESSAGE_COOKIE_REPLY_SIZE, b"\x00")

    @classmethod
    def unpack(cls, data: bytes) -> "MessageCookieReply":
        _expect_length(data, MESSAGE_COOKIE_REPLY_SIZE, "cookie reply message")
        return cls(*_COOKIE_REPLY.unpack_from(bytes(data)))