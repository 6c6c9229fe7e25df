import struct

import pytest

from wgcore import gso

_HDR = struct.Struct("@Nii")
_ALIGN = struct.calcsize("@N")


def _align(n):
    return (n + _ALIGN - 1) & ~(_ALIGN - 1)


def _cmsg(level, kind, data):
    header_room = _align(_HDR.size)
    header = _HDR.pack(header_room + len(data), level, kind).ljust(header_room, b"\x00")
    return (header + data).ljust(header_room + _align(len(data)), b"\x00")


def test_get_gso_size_reads_gro_message():
    control = _cmsg(gso.SOL_UDP, gso.UDP_GRO, struct.pack("=H", 1400))
    assert gso.get_gso_size(control) == 1400


def test_get_gso_size_empty_control_is_zero():
    assert gso.get_gso_size(b"") == 0


def test_get_gso_size_ignores_other_messages():
    control = _cmsg(0, 8, bytes(12)) + _cmsg(gso.SOL_UDP, gso.UDP_GRO, struct.pack("=H", 512))
    assert gso.get_gso_size(control) == 512


def test_get_gso_size_skips_short_data():
    control = _cmsg(gso.SOL_UDP, gso.UDP_GRO, b"\x01")
    assert gso.get_gso_size(control) == 0


def test_get_gso_size_malformed_raises():
    header = _HDR.pack(10_000, gso.SOL_UDP, gso.UDP_GRO)
    with pytest.raises(ValueError, match="error parsing socket control message"):
        gso.get_gso_size(header + bytes(8))


def test_set_gso_size_appends_segment_message():
    control = bytearray(b"prefix!!")
    gso.set_gso_size(control, 1200)
    assert control[:8] == b"prefix!!"
    assert len(control) == 8 + gso.GSO_CONTROL_SIZE
    length, level, kind = _HDR.unpack_from(control, 8)
    assert level == gso.SOL_UDP
    assert kind == gso.UDP_SEGMENT
    assert length == _align(_HDR.size) + gso.SIZE_OF_GSO_DATA
    data_at = 8 + _align(_HDR.size)
    assert struct.unpack_from("=H", control, data_at)[0] == 1200


def test_segment_message_is_not_read_as_gro():
    control = bytearray()
    gso.set_gso_size(control, 900)
    assert gso.get_gso_size(bytes(control)) == 0


def test_set_gso_size_rejects_out_of_range():
    with pytest.raises(ValueError):
        gso.set_gso_size(bytearray(), 1 << 16)