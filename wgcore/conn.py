"""Network binding interfaces: endpoints, binds and receive functions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from ipaddress import IPv4Address, IPv6Address
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

IDEAL_BATCH_SIZE = 128  # maximum number of packets handled per read and write

IPAddress = Union[IPv4Address, IPv6Address]

# A receive function fills packets, sizes and endpoints, and returns how
# many leading elements of them to evaluate. Some sizes may be zero; callers
# ignore those. It raises when the read fails or the bind is closed.
ReceiveFunc = Callable[
    [List[bytearray], List[int], List[Optional["Endpoint"]]], int
]

_ANONYMOUS_PARTS = frozenset({"<lambda>", "<locals>"})


class BindAlreadyOpenError(RuntimeError):
    """Raised when a bind that is already open is opened again."""

    def __init__(self, message: str = "bind is already open") -> None:
        super().__init__(message)


class WrongEndpointTypeError(TypeError):
    """Raised when a bind is given an endpoint made by another kind of bind."""

    def __init__(
        self, message: str = "endpoint type does not correspond with bind type"
    ) -> None:
        super().__init__(message)


class Endpoint(ABC):
    """Source and destination addresses cached for a peer.

    The destination is the peer's remote address; the source is the local
    address datagrams to that peer are sent from.
    """

    @abstractmethod
    def clear_src(self) -> None:
        """Forget the cached source address."""

    @abstractmethod
    def src_to_string(self) -> str:
        """Return the local source address as text."""

    @abstractmethod
    def dst_to_string(self) -> str:
        """Return the destination as ip:port text."""

    @abstractmethod
    def dst_to_bytes(self) -> bytes:
        """Return the destination in the binary form used for mac2 cookies."""

    @abstractmethod
    def dst_ip(self) -> Optional[IPAddress]:
        """Return the destination address."""

    @abstractmethod
    def src_ip(self) -> Optional[IPAddress]:
        """Return the cached source address, or None when there is none."""


class Bind(ABC):
    """Listener on one port for both IPv4 and IPv6 UDP traffic."""

    @abstractmethod
    def open(self, port: int) -> Tuple[List[ReceiveFunc], int]:
        """Start listening on port (0 picks one) and return the receive
        functions and the port actually bound."""

    @abstractmethod
    def close(self) -> None:
        """Stop listening; receive functions fail from then on."""

    @abstractmethod
    def set_mark(self, mark: int) -> None:
        """Set the firewall mark applied to every packet sent."""

    @abstractmethod
    def send(self, bufs: Sequence[bytes], ep: Endpoint) -> None:
        """Send each buffer in bufs to ep; at most batch_size() of them."""

    @abstractmethod
    def parse_endpoint(self, s: str) -> Endpoint:
        """Build an endpoint from its text form."""

    @abstractmethod
    def batch_size(self) -> int:
        """Number of buffers handled per receive call and per send call."""


def pretty_name(fn: Any) -> str:
    """Return a short human name for a receive function.

    Functions whose names end in IPv4 or IPv6 become "v4" or "v6"; closures
    are named after the function that encloses them; functions without a
    usable name are shown by address.
    """
    name = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None)
    parts = name.split(".") if isinstance(name, str) and name else []
    while parts and parts[-1] in _ANONYMOUS_PARTS:
        parts.pop()
    name = parts[-1] if parts else ""
    if not name:
        return f"0x{id(fn):x}"
    lowered = name.lower()
    if lowered.endswith("ipv4"):
        return "v4"
    if lowered.endswith("ipv6"):
        return "v6"
    return name