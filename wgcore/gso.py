"""UDP generic segmentation offload (GSO/GRO) control messages.

On send, a UDP_SEGMENT control message tells the kernel to split one large
datagram into segments of a given size. On receive, a UDP_GRO control
message reports the segment size of a coalesced datagram.
"""

from __future__ import annotations

import struct

from wgcore.endpoint import _cmsg_space, _pack_cmsg, _parse_control_messages

SOL_UDP = 17
UDP_SEGMENT = 103
UDP_GRO = 104

SIZE_OF_GSO_DATA = 2

_GSO_DATA = struct.Struct("=H")

# Recommended room for UDP offload control data.
GSO_CONTROL_SIZE = _cmsg_space(SIZE_OF_GSO_DATA)


def get_gso_size(control: bytes) -> int:
    """Return the segment size from a UDP_GRO message in control, or 0.

    Raises ValueError when control holds a malformed control message.
    """
    try:
        for level, kind, data in _parse_control_messages(control):
            if level == SOL_UDP and kind == UDP_GRO and len(data) >= SIZE_OF_GSO_DATA:
                return _GSO_DATA.unpack_from(data)[0]
    except ValueError as exc:
        raise ValueError(f"error parsing socket control message: {exc}") from exc
    return 0


def set_gso_size(control: bytearray, gso_size: int) -> None:
    """Append a UDP_SEGMENT message for gso_size to control, keeping what is there."""
    if not 0 <= gso_size <= 0xFFFF:
        raise ValueError(f"gso size {gso_size} out of range")
    control.extend(_pack_cmsg(SOL_UDP, UDP_SEGMENT, _GSO_DATA.pack(gso_size)))