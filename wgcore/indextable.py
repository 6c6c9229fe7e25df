"""Table mapping 32-bit local indices to handshakes and keypairs."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class IndexTableEntry:
    peer: Any = None
    handshake: Any = None
    keypair: Any = None


class IndexTable:
    """Thread-safe map of random 32-bit indices to table entries."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._table: Dict[int, IndexTableEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)

    def __contains__(self, index: object) -> bool:
        with self._lock:
            return index in self._table

    def delete(self, index: int) -> None:
        with self._lock:
            self._table.pop(index, None)

    def swap_index_for_keypair(self, index: int, keypair: Any) -> None:
        """Replace the handshake at index by keypair; do nothing if index is free."""
        with self._lock:
            entry = self._table.get(index)
            if entry is None:
                return
            self._table[index] = IndexTableEntry(peer=entry.peer, keypair=keypair)

    def new_index_for_handshake(self, peer: Any, handshake: Any) -> int:
        """Assign a fresh random index to a peer's handshake and return it."""
        while True:
            index = secrets.randbits(32)
            with self._lock:
                if index in self._table:
                    continue
                self._table[index] = IndexTableEntry(peer=peer, handshake=handshake)
                return index

    def lookup(self, index: int) -> IndexTableEntry:
        """Return the entry at index, or an empty entry if there is none."""
        with self._lock:
            return self._table.get(index, IndexTableEntry())