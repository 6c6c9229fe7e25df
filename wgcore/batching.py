"""Coalescing datagrams for UDP segmentation offload, and splitting them back."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from wgcore.endpoint import STICKY_CONTROL_SIZE, StdNetEndpoint, set_src_control
from wgcore.gso import GSO_CONTROL_SIZE

# Exceeding these gives EMSGSIZE. They account for layer 3 and layer 4
# headers; the IPv6 payload length field excludes its own header.
MAX_IPV4_PAYLOAD_LEN = (1 << 16) - 1 - 20 - 8
MAX_IPV6_PAYLOAD_LEN = (1 << 16) - 1 - 8

# Hard limit imposed by the kernel.
UDP_SEGMENT_MAX_DATAGRAMS = 64

OOB_SIZE = STICKY_CONTROL_SIZE + GSO_CONTROL_SIZE

SetGSOFunc = Callable[[bytearray, int], None]
GetGSOFunc = Callable[[bytes], int]
PacketLike = Union[bytes, bytearray, memoryview, Tuple[Any, int]]


class SplitOverflowError(RuntimeError):
    """Raised when splitting coalesced datagrams runs out of messages.

    count holds how many messages had been filled when it happened.
    """

    def __init__(self, count: int) -> None:
        super().__init__("splitting coalesced packet resulted in overflow")
        self.count = count


@dataclass
class Message:
    """One datagram for a batched send or receive.

    buffer holds the data; capacity is how far it may grow when datagrams are
    appended (None means it may not grow). n is the number of bytes received
    into buffer, oob the control data and nn the number of control bytes
    received.
    """

    buffer: bytearray = field(default_factory=bytearray)
    capacity: Optional[int] = None
    n: int = 0
    oob: bytearray = field(default_factory=lambda: bytearray(OOB_SIZE))
    nn: int = 0
    addr: Any = None

    def room(self) -> int:
        limit = len(self.buffer) if self.capacity is None else self.capacity
        return limit - len(self.buffer)


def _packet(item: PacketLike) -> Tuple[bytes, int]:
    if isinstance(item, tuple):
        data, capacity = item
        data = bytes(data)
        if capacity < len(data):
            raise ValueError("capacity smaller than packet")
        return data, capacity
    data = bytes(item)
    return data, len(data)


def coalesce_messages(
    addr: Any,
    ep: StdNetEndpoint,
    bufs: Sequence[PacketLike],
    msgs: List[Message],
    set_gso: SetGSOFunc,
) -> int:
    """Pack bufs into msgs, joining runs of datagrams for segmentation offload.

    Each item of bufs is a packet, or a (packet, capacity) pair giving how far
    that packet's storage may grow. A run shares one message while each
    datagram is no longer than the first, fits the room and payload limits,
    and the run holds fewer than UDP_SEGMENT_MAX_DATAGRAMS; a shorter datagram
    ends its run. Returns the number of messages used.
    """
    base = -1
    gso_size = 0
    dgram_count = 0
    end_batch = False
    dst = ep.dst_ip()
    max_payload_len = (
        MAX_IPV6_PAYLOAD_LEN if dst is not None and dst.version == 6 else MAX_IPV4_PAYLOAD_LEN
    )
    last = len(bufs) - 1
    for i, item in enumerate(bufs):
        data, capacity = _packet(item)
        if i > 0:
            current = msgs[base]
            msg_len = len(data)
            base_len = len(current.buffer)
            if (
                msg_len + base_len <= max_payload_len
                and msg_len <= gso_size
                and msg_len <= current.room()
                and dgram_count < UDP_SEGMENT_MAX_DATAGRAMS
                and not end_batch
            ):
                current.buffer.extend(data)
                if i == last:
                    set_gso(current.oob, gso_size)
                dgram_count += 1
                if msg_len < gso_size:
                    # A short tail datagram is allowed but ends the run.
                    end_batch = True
                continue
        if dgram_count > 1:
            set_gso(msgs[base].oob, gso_size)
        end_batch = False
        base += 1
        gso_size = len(data)
        target = msgs[base]
        set_src_control(target.oob, ep)
        target.buffer = bytearray(data)
        target.capacity = capacity
        target.addr = addr
        dgram_count = 1
    return base + 1


def split_coalesced_messages(
    msgs: List[Message], first_msg_at: int, get_gso: GetGSOFunc
) -> int:
    """Split coalesced datagrams read into msgs[first_msg_at:] to the front of msgs.

    Returns the number of leading messages to evaluate. Raises
    SplitOverflowError when the split would overwrite a message not yet read.
    """
    n = 0
    for i in range(first_msg_at, len(msgs)):
        msg = msgs[i]
        if msg.n == 0:
            return n
        gso_size = get_gso(bytes(msg.oob[: msg.nn]))
        start = 0
        end = msg.n
        num_to_split = 1
        if gso_size > 0:
            num_to_split = (msg.n + gso_size - 1) // gso_size
            end = gso_size
        for _ in range(num_to_split):
            if n > i:
                raise SplitOverflowError(n)
            chunk = bytes(msg.buffer[start:end])
            dest = msgs[n]
            copied = min(len(dest.buffer), len(chunk))
            dest.buffer[:copied] = chunk[:copied]
            dest.n = copied
            dest.addr = msg.addr
            start = end
            end = min(end + gso_size, msg.n)
            n += 1
        if i != n - 1:
            # The source message is emptied unless it received the last piece.
            msg.n = 0
    return n