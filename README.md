# wgcore

Building blocks for a WireGuard-style tunnel, written in plain Python with
no dependencies outside the standard library:

- `wgcore.messages` – protocol constants and the four wire messages
  (`MessageInitiation`, `MessageResponse`, `MessageTransport`,
  `MessageCookieReply`) with `pack()` and `unpack()`, plus `message_type()`
  to read the type of a datagram.
- `wgcore.allowedips` – `AllowedIPs`, a longest-prefix-match trie mapping
  IPv4 and IPv6 prefixes to peers, and `common_bits()`.
- `wgcore.indextable` – `IndexTable`, which hands out random 32-bit
  indices for handshakes and later swaps them over to keypairs.
- `wgcore.logger` – `new_logger()`, `Logger`, `LogLevel` and
  `discard_logf()`.
- `wgcore.conn` – the abstract `Endpoint` and `Bind` interfaces,
  `BindAlreadyOpenError`, `WrongEndpointTypeError`, `IDEAL_BATCH_SIZE`
  and `pretty_name()` for receive functions.
- `wgcore.endpoint` – `StdNetEndpoint`, a UDP destination with an
  optional sticky source (`PacketInfo`), and `get_src_from_control()` /
  `set_src_control()` for IP_PKTINFO and IPV6_PKTINFO control messages.
- `wgcore.gso` – `get_gso_size()` and `set_gso_size()` for UDP_GRO and
  UDP_SEGMENT control messages.
- `wgcore.batching` – `Message`, `coalesce_messages()` and
  `split_coalesced_messages()` for joining datagrams for segmentation
  offload and splitting received ones back apart.

## Install

    pip install .

For running the tests:

    pip install ".[test]"
    pytest

## Examples

Wire messages:

    from wgcore.messages import MessageInitiation, message_type, MESSAGE_INITIATION_TYPE

    wire = MessageInitiation(sender=7).pack()       # 148 bytes
    assert message_type(wire) == MESSAGE_INITIATION_TYPE
    assert MessageInitiation.unpack(wire).sender == 7

Routing by allowed IPs:

    import ipaddress
    from wgcore.allowedips import AllowedIPs

    table = AllowedIPs()
    table.insert("10.0.0.0/24", "peer-a")
    table.insert(ipaddress.ip_network("10.0.0.128/25"), "peer-b")
    table.lookup(ipaddress.ip_address("10.0.0.200"))      # "peer-b"
    table.lookup(bytes([10, 0, 0, 5]))                     # "peer-a"
    list(table.entries_for_peer("peer-b"))                 # [IPv4Network('10.0.0.128/25')]
    table.remove_by_peer("peer-b")

Session indices:

    from wgcore.indextable import IndexTable

    indices = IndexTable()
    index = indices.new_index_for_handshake("peer-a", "handshake")
    indices.swap_index_for_keypair(index, "keypair")
    indices.lookup(index).keypair                          # "keypair"

Logging:

    import sys
    from wgcore.logger import LogLevel, new_logger

    log = new_logger(LogLevel.VERBOSE, "dev0: ", sys.stderr)
    log.verbosef("peer %s up", "peer-a")

Endpoints and sticky sources:

    from ipaddress import IPv4Address
    from wgcore.endpoint import (
        PacketInfo, StdNetEndpoint, STICKY_CONTROL_SIZE,
        get_src_from_control, set_src_control,
    )

    ep = StdNetEndpoint.parse("192.0.2.10:51820")
    ep.dst_to_string()                                     # "192.0.2.10:51820"
    ep.src = PacketInfo(IPv4Address("192.0.2.1"), 3)

    control = bytearray(STICKY_CONTROL_SIZE)
    set_src_control(control, ep)

    received = StdNetEndpoint.parse("192.0.2.10:51820")
    get_src_from_control(control, received)
    received.src_ip(), received.src_ifidx()                # (IPv4Address('192.0.2.1'), 3)

Coalescing datagrams for segmentation offload:

    from wgcore.batching import Message, coalesce_messages
    from wgcore.gso import get_gso_size, set_gso_size

    msgs = [Message() for _ in range(2)]
    bufs = [(bytes(2), 4), bytes(2), bytes(2)]             # (packet, capacity) or packet
    used = coalesce_messages(None, ep, bufs, msgs, set_gso_size)
    used                                                   # 2
    len(msgs[0].buffer), get_gso_size(bytes(msgs[0].oob))  # (4, 2)

## What this package does not do

It holds the data structures and wire formats only. It has no Curve25519
keys, no handshake or transport encryption, no mac1/mac2 cookie handling,
no concrete UDP bind that opens sockets, and no tunnel device or command
to run. `Bind` and `Endpoint` in `wgcore.conn` are interfaces to build
such pieces on.