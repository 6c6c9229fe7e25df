import pytest

from wgcore.messages import (
    MESSAGE_COOKIE_REPLY_SIZE,
    MESSAGE_COOKIE_REPLY_TYPE,
    MESSAGE_INITIATION_SIZE,
    MESSAGE_INITIATION_TYPE,
    MESSAGE_RESPONSE_SIZE,
    MESSAGE_RESPONSE_TYPE,
    MESSAGE_TRANSPORT_HEADER_SIZE,
    MESSAGE_TRANSPORT_TYPE,
    MessageCookieReply,
    MessageInitiation,
    MessageResponse,
    MessageTransport,
    message_type,
)


def _initiation():
    return MessageInitiation(
        sender=0x01020304,
        ephemeral=bytes(range(32)),
        static=bytes(range(48)),
        timestamp=bytes(range(28)),
        mac1=b"\xaa" * 16,
        mac2=b"\xbb" * 16,
    )


def test_initiation_round_trip():
    msg = _initiation()
    data = msg.pack()
    assert len(data) == MESSAGE_INITIATION_SIZE
    assert MessageInitiation.unpack(data) == msg


def test_initiation_wire_layout():
    data = _initiation().pack()
    assert data[:4] == b"\x01\x00\x00\x00"
    assert data[4:8] == b"\x04\x03\x02\x01"
    assert data[8:40] == bytes(range(32))
    assert data[-16:] == b"\xbb" * 16


def test_response_round_trip():
    msg = MessageResponse(
        sender=7,
        receiver=9,
        ephemeral=b"\x11" * 32,
        empty=b"\x22" * 16,
        mac1=b"\x33" * 16,
        mac2=b"\x44" * 16,
    )
    data = msg.pack()
    assert len(data) == MESSAGE_RESPONSE_SIZE
    assert message_type(data) == MESSAGE_RESPONSE_TYPE
    assert MessageResponse.unpack(data) == msg


def test_cookie_reply_padded_to_fixed_size():
    msg = MessageCookieReply(receiver=1377, nonce=b"\x05" * 12, cookie=b"\x06" * 32)
    data = msg.pack()
    assert len(data) == MESSAGE_COOKIE_REPLY_SIZE
    assert message_type(data) == MESSAGE_COOKIE_REPLY_TYPE
    assert MessageCookieReply.unpack(data) == msg


def test_transport_round_trip_keeps_content():
    msg = MessageTransport(receiver=42, counter=2**40 + 3, content=b"\x99" * 20)
    data = msg.pack()
    assert data[MESSAGE_TRANSPORT_HEADER_SIZE:] == msg.content
    parsed = MessageTransport.unpack(data)
    assert parsed == msg
    assert parsed.type == MESSAGE_TRANSPORT_TYPE


def test_transport_too_short_rejected():
    with pytest.raises(ValueError):
        MessageTransport.unpack(MessageTransport(content=b"\x00" * 4).pack())


@pytest.mark.parametrize(
    "cls, size",
    [
        (MessageInitiation, MESSAGE_INITIATION_SIZE),
        (MessageResponse, MESSAGE_RESPONSE_SIZE),
        (MessageCookieReply, MESSAGE_COOKIE_REPLY_SIZE),
    ],
)
def test_wrong_length_rejected(cls, size):
    with pytest.raises(ValueError):
        cls.unpack(bytes(size - 1))
    with pytest.raises(ValueError):
        cls.unpack(bytes(size + 1))


def test_pack_rejects_wrong_field_size():
    with pytest.raises(ValueError):
        MessageInitiation(ephemeral=b"\x00" * 31).pack()


def test_default_initiation_type():
    assert message_type(MessageInitiation().pack()) == MESSAGE_INITIATION_TYPE


def test_message_type_too_short():
    with pytest.raises(ValueError):
        message_type(b"\x01\x00")