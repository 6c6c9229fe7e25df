"""Longest-prefix-match routing table from IP prefixes to peers."""

from __future__ import annotations

import ipaddress
import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

PrefixLike = Union[
    str,
    ipaddress.IPv4Network,
    ipaddress.IPv6Network,
    ipaddress.IPv4Interface,
    ipaddress.IPv6Interface,
]
AddressLike = Union[bytes, bytearray, ipaddress.IPv4Address, ipaddress.IPv6Address]

_ROOT = 2
_FAMILY_V4 = 0
_FAMILY_V6 = 1


def common_bits(ip1: bytes, ip2: bytes) -> int:
    """Return the number of leading bits that ip1 and ip2 share.

    Both addresses must be 4 or 16 bytes long.
    """
    size = len(ip1)
    if size not in (4, 16):
        raise ValueError("wrong size bit string")
    total = size * 8
    diff = int.from_bytes(bytes(ip1), "big") ^ int.from_bytes(bytes(ip2[:size]), "big")
    return total - diff.bit_length()


class _Parent:
    """The slot that holds a node: a child slot of another node, or a root slot."""

    __slots__ = ("owner", "slots", "index", "bit_type")

    def __init__(self, owner: Optional["_Node"], slots: List[Optional["_Node"]],
                 index: int, bit_type: int) -> None:
        self.owner = owner
        self.slots = slots
        self.index = index
        self.bit_type = bit_type

    def get(self) -> Optional["_Node"]:
        return self.slots[self.index]

    def set(self, node: Optional["_Node"]) -> None:
        self.slots[self.index] = node


class _Node:
    __slots__ = ("peer", "child", "parent", "cidr", "bit_at_byte", "bit_at_shift", "bits")

    def __init__(self, peer: Any, bits: bytes, cidr: int) -> None:
        self.peer = peer
        self.child: List[Optional[_Node]] = [None, None]
        self.parent: Optional[_Parent] = None
        self.cidr = cidr
        self.bit_at_byte = cidr // 8
        self.bit_at_shift = 7 - (cidr % 8)
        self.bits = _masked(bytes(bits), cidr)

    def choose(self, ip: bytes) -> int:
        return (ip[self.bit_at_byte] >> self.bit_at_shift) & 1

    def child_parent(self, bit: int) -> _Parent:
        return _Parent(self, self.child, bit, bit)

    def zeroize(self) -> None:
        self.peer = None
        self.child[0] = None
        self.child[1] = None
        self.parent = None


def _masked(bits: bytes, cidr: int) -> bytes:
    total = len(bits) * 8
    mask = ((1 << cidr) - 1) << (total - cidr)
    return (int.from_bytes(bits, "big") & mask).to_bytes(len(bits), "big")


def _placement(node: Optional[_Node], ip: bytes, cidr: int) -> Tuple[Optional[_Node], bool]:
    parent = None
    while node is not None and node.cidr <= cidr and common_bits(node.bits, ip) >= node.cidr:
        parent = node
        if parent.cidr == cidr:
            return parent, True
        node = node.child[node.choose(ip)]
    return parent, False


def _to_network(prefix: PrefixLike) -> Union[ipaddress.IPv4Network, ipaddress.IPv6Network]:
    if isinstance(prefix, str):
        return ipaddress.ip_network(prefix, strict=False)
    if isinstance(prefix, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return prefix.network
    if isinstance(prefix, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return prefix
    raise TypeError("inserting unknown address type")


class AllowedIPs:
    """Per-family binary tries mapping prefixes to peers."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._roots: List[Optional[_Node]] = [None, None]
        self._peer_entries: Dict[int, Dict[_Node, None]] = {}

    # per-peer bookkeeping

    def _add_entry(self, node: _Node) -> None:
        self._peer_entries.setdefault(id(node.peer), {})[node] = None

    def _remove_entry(self, node: _Node) -> None:
        if node.peer is None:
            return
        entries = self._peer_entries.get(id(node.peer))
        if entries is None:
            return
        entries.pop(node, None)
        if not entries:
            del self._peer_entries[id(node.peer)]

    # public interface

    def is_empty(self) -> bool:
        """Report whether both tries are empty."""
        with self._lock:
            return self._roots[_FAMILY_V4] is None and self._roots[_FAMILY_V6] is None

    def insert(self, prefix: PrefixLike, peer: Any) -> None:
        """Route prefix to peer, replacing any peer already on that exact prefix."""
        if peer is None:
            raise ValueError("peer must not be None")
        network = _to_network(prefix)
        family = _FAMILY_V6 if network.version == 6 else _FAMILY_V4
        with self._lock:
            root = _Parent(None, self._roots, family, _ROOT)
            self._insert(root, network.network_address.packed, network.prefixlen, peer)

    def _insert(self, root: _Parent, ip: bytes, cidr: int, peer: Any) -> None:
        if root.get() is None:
            node = _Node(peer, ip, cidr)
            node.parent = root
            self._add_entry(node)
            root.set(node)
            return

        node, exact = _placement(root.get(), ip, cidr)
        if exact:
            self._remove_entry(node)
            node.peer = peer
            self._add_entry(node)
            return

        new_node = _Node(peer, ip, cidr)
        self._add_entry(new_node)

        if node is None:
            down = root.get()
        else:
            bit = node.choose(ip)
            down = node.child[bit]
            if down is None:
                new_node.parent = node.child_parent(bit)
                node.child[bit] = new_node
                return

        cidr = min(cidr, common_bits(down.bits, ip))
        parent = node

        if new_node.cidr == cidr:
            bit = new_node.choose(down.bits)
            down.parent = new_node.child_parent(bit)
            new_node.child[bit] = down
            self._attach(root, parent, new_node)
            return

        node = _Node(None, new_node.bits, cidr)
        bit = node.choose(down.bits)
        down.parent = node.child_parent(bit)
        node.child[bit] = down
        bit = node.choose(new_node.bits)
        new_node.parent = node.child_parent(bit)
        node.child[bit] = new_node
        self._attach(root, parent, node)

    @staticmethod
    def _attach(root: _Parent, parent: Optional[_Node], node: _Node) -> None:
        if parent is None:
            node.parent = root
            root.set(node)
        else:
            bit = parent.choose(node.bits)
            node.parent = parent.child_parent(bit)
            parent.child[bit] = node

    def lookup(self, ip: AddressLike) -> Any:
        """Return the peer owning the longest prefix containing ip, or None."""
        if isinstance(ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            ip = ip.packed
        ip = bytes(ip)
        if len(ip) == 16:
            family = _FAMILY_V6
        elif len(ip) == 4:
            family = _FAMILY_V4
        else:
            raise ValueError("looking up unknown address type")
        with self._lock:
            node = self._roots[family]
            found = None
            while node is not None and common_bits(node.bits, ip) >= node.cidr:
                if node.peer is not None:
                    found = node.peer
                if node.bit_at_byte == len(ip):
                    break
                node = node.child[node.choose(ip)]
            return found

    def entries_for_peer(
        self, peer: Any
    ) -> Iterator[Union[ipaddress.IPv4Network, ipaddress.IPv6Network]]:
        """Yield the prefixes routed to peer, in insertion order."""
        with self._lock:
            nodes = list(self._peer_entries.get(id(peer), {}))
            prefixes = [
                ipaddress.ip_network((ipaddress.ip_address(node.bits), node.cidr))
                for node in nodes
            ]
        return iter(prefixes)

    def remove_by_peer(self, peer: Any) -> None:
        """Remove every prefix routed to peer, pruning nodes left unneeded."""
        with self._lock:
            for node in list(self._peer_entries.get(id(peer), {})):
                self._remove_entry(node)
                node.peer = None
                if node.child[0] is not None and node.child[1] is not None:
                    continue
                bit = 1 if node.child[0] is None else 0
                child = node.child[bit]
                node_parent = node.parent
                if child is not None:
                    child.parent = node_parent
                node_parent.set(child)
                if (
                    node.child[0] is not None
                    or node.child[1] is not None
                    or node_parent.bit_type > 1
                ):
                    node.zeroize()
                    continue
                parent = node_parent.owner
                if parent.peer is not None:
                    node.zeroize()
                    continue
                sibling = parent.child[node_parent.bit_type ^ 1]
                if sibling is not None:
                    sibling.parent = parent.parent
                parent.parent.set(sibling)
                node.zeroize()
                parent.zeroize()