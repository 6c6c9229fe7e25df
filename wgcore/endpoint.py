"""The standard UDP endpoint and its sticky-source control messages.

The sticky source of an endpoint is the local address and interface index
a datagram from the peer arrived on. It is read from an IP_PKTINFO or
IPV6_PKTINFO control message on receive and written back as one on send,
so replies leave from the same address.
"""

from __future__ import annotations

import ipaddress
import struct
import sys
from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv6Address
from typing import Iterator, Optional, Tuple, Union

from wgcore.conn import Endpoint

IPAddress = Union[IPv4Address, IPv6Address]

IPPROTO_IP = 0
IP_PKTINFO = 8
IPPROTO_IPV6 = 41
IPV6_PKTINFO = 50

STD_NET_SUPPORTS_STICKY_SOCKETS = sys.platform.startswith("linux") and not hasattr(
    sys, "getandroidapilevel"
)

# Control message header: length (size_t), level (int), type (int).
_CMSG_HEADER = struct.Struct("@Nii")
_CMSG_ALIGN = struct.calcsize("@N")
_IN4_PKTINFO = struct.Struct("=i4s4s")  # ifindex, spec_dst, addr
_IN6_PKTINFO = struct.Struct("=16sI")  # addr, ifindex

CMSG_HEADER_SIZE = _CMSG_HEADER.size


def _align(n: int) -> int:
    return (n + _CMSG_ALIGN - 1) & ~(_CMSG_ALIGN - 1)


def _cmsg_len(n: int) -> int:
    return _align(_CMSG_HEADER.size) + n


def _cmsg_space(n: int) -> int:
    return _align(_CMSG_HEADER.size) + _align(n)


STICKY_CONTROL_SIZE = _cmsg_space(_IN6_PKTINFO.size)


def _pack_cmsg(level: int, kind: int, data: bytes) -> bytes:
    header = _CMSG_HEADER.pack(_cmsg_len(len(data)), level, kind)
    header = header.ljust(_align(_CMSG_HEADER.size), b"\x00")
    return (header + bytes(data)).ljust(_cmsg_space(len(data)), b"\x00")


def _parse_control_messages(control: bytes) -> Iterator[Tuple[int, int, bytes]]:
    """Yield (level, type, data) for each control message in control.

    Raises ValueError on a malformed message.
    """
    rem = bytes(control)
    while len(rem) > _CMSG_HEADER.size:
        length, level, kind = _CMSG_HEADER.unpack_from(rem)
        if length < _CMSG_HEADER.size or length > len(rem):
            raise ValueError("malformed socket control message")
        yield level, kind, rem[_align(_CMSG_HEADER.size):length]
        end = _align(length)
        rem = rem[end:] if end < len(rem) else b""


@dataclass(frozen=True)
class PacketInfo:
    """Local address and interface index of a received datagram."""

    addr: IPAddress
    ifindex: int = 0

    def _to_control(self) -> bytes:
        if self.addr.version == 4:
            data = _IN4_PKTINFO.pack(self.ifindex, self.addr.packed, bytes(4))
            return _pack_cmsg(IPPROTO_IP, IP_PKTINFO, data)
        plain = IPv6Address(int(self.addr))
        data = _IN6_PKTINFO.pack(plain.packed, self.ifindex & 0xFFFFFFFF)
        return _pack_cmsg(IPPROTO_IPV6, IPV6_PKTINFO, data)


def _split_addr_port(s: str) -> Tuple[IPAddress, int]:
    i = s.rfind(":")
    if i < 0:
        raise ValueError(f"{s!r}: not an ip:port")
    host, port_text = s[:i], s[i + 1:]
    if not port_text:
        raise ValueError(f"{s!r}: no port")
    if not (port_text.isascii() and port_text.isdigit()) or int(port_text) > 0xFFFF:
        raise ValueError(f"{s!r}: invalid port {port_text!r}")
    bracketed = host.startswith("[")
    if bracketed:
        if len(host) < 2 or not host.endswith("]"):
            raise ValueError(f"{s!r}: missing ]")
        host = host[1:-1]
    addr = ipaddress.ip_address(host)
    if bracketed and addr.version == 4:
        raise ValueError(
            f"{s!r}: square brackets can only be used with IPv6 addresses"
        )
    if not bracketed and addr.version == 6:
        raise ValueError(f"{s!r}: IPv6 addresses must be surrounded by square brackets")
    return addr, int(port_text)


def _format_ipv6(addr: IPv6Address) -> str:
    plain = IPv6Address(int(addr))
    mapped = plain.ipv4_mapped
    text = f"::ffff:{mapped}" if mapped is not None else plain.compressed
    if addr.scope_id:
        text += f"%{addr.scope_id}"
    return text


@dataclass
class StdNetEndpoint(Endpoint):
    """UDP destination address and port, with an optional sticky source."""

    addr: Optional[IPAddress] = None
    port: int = 0
    src: Optional[PacketInfo] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.addr, str):
            self.addr = ipaddress.ip_address(self.addr)
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port {self.port} out of range")

    def __hash__(self) -> int:
        return hash((self.addr, self.port))

    @classmethod
    def parse(cls, s: str) -> "StdNetEndpoint":
        """Parse "a.b.c.d:port" or "[ipv6]:port"; raise ValueError if invalid."""
        addr, port = _split_addr_port(s)
        return cls(addr, port)

    def clear_src(self) -> None:
        self.src = None

    def dst_ip(self) -> Optional[IPAddress]:
        return self.addr

    def dst_to_bytes(self) -> bytes:
        """Return the address bytes, any zone, then the port little-endian."""
        if self.addr is None:
            body = b""
        elif self.addr.version == 6:
            plain = IPv6Address(int(self.addr))
            body = plain.packed + (self.addr.scope_id or "").encode()
        else:
            body = self.addr.packed
        return body + self.port.to_bytes(2, "little")

    def dst_to_string(self) -> str:
        if self.addr is None:
            return "invalid AddrPort"
        if self.addr.version == 6:
            return f"[{_format_ipv6(self.addr)}]:{self.port}"
        return f"{self.addr}:{self.port}"

    def src_ip(self) -> Optional[IPAddress]:
        return None if self.src is None else self.src.addr

    def src_ifidx(self) -> int:
        """Return the source interface index as a signed 32-bit value."""
        if self.src is None:
            return 0
        value = self.src.ifindex & 0xFFFFFFFF
        return value - (1 << 32) if value >= 1 << 31 else value

    def src_to_string(self) -> str:
        ip = self.src_ip()
        return "" if ip is None else str(ip)


def get_src_from_control(control: bytes, ep: StdNetEndpoint) -> None:
    """Clear ep's source, then set it from the first PKTINFO message in control."""
    ep.clear_src()
    try:
        for level, kind, data in _parse_control_messages(control):
            if level == IPPROTO_IP and kind == IP_PKTINFO:
                data = data[:_IN4_PKTINFO.size].ljust(_IN4_PKTINFO.size, b"\x00")
                ifindex, spec_dst, _ = _IN4_PKTINFO.unpack(data)
                ep.src = PacketInfo(IPv4Address(spec_dst), ifindex)
                return
            if level == IPPROTO_IPV6 and kind == IPV6_PKTINFO:
                data = data[:_IN6_PKTINFO.size].ljust(_IN6_PKTINFO.size, b"\x00")
                addr, ifindex = _IN6_PKTINFO.unpack(data)
                ep.src = PacketInfo(IPv6Address(addr), ifindex)
                return
    except ValueError:
        return


def set_src_control(control: bytearray, ep: StdNetEndpoint) -> None:
    """Replace the contents of control with ep's PKTINFO message, in place.

    len(control) is the room available: if the message does not fit, control
    is left as it is. With no source set, control is emptied.
    """
    encoded = b"" if ep.src is None else ep.src._to_control()
    if len(control) < len(encoded):
        return
    control[:] = encoded