"""
Slot stores: the storage-allocation collaborator of the Shard Registry.

A store hands out fixed-size slots at caller-chosen addresses. `create_at` is
the single atomic decision point of the whole registry: for any address,
exactly one caller ever gets a slot back, every other caller gets
SlotAlreadyExists and nothing is written.

Each creation is funded by the requester. The deposit mirrors box storage:

    deposit = 2500 + 400 × (key_length + size)
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import MutableMapping, Protocol

from .errors import InsufficientFunds, SlotAlreadyExists

logger = logging.getLogger(__name__)

KEY_LEN = 32


def minimum_balance(size: int) -> int:
    """Deposit (micro-units) the payer locks up for a slot of `size` bytes."""
    return 2500 + 400 * (KEY_LEN + size)


@dataclass(frozen=True)
class Slot:
    address: bytes
    size: int
    funded_by: bytes
    deposit: int


class SlotStore(Protocol):
    def create_at(self, address: bytes, size: int, funded_by: bytes, data: bytes | None = None) -> Slot: ...

    def read(self, address: bytes) -> bytes | None: ...

    def minimum_balance(self, size: int) -> int: ...


def _initial_payload(size: int, data: bytes | None) -> bytes:
    """Contents a new slot is created with; zero-filled unless given."""
    if data is None:
        return bytes(size)
    if len(data) != size:
        raise ValueError(f"slot holds exactly {size} bytes, got {len(data)}")
    return bytes(data)


# ── In-memory store ───────────────────────────────────────────────────────────

class InMemorySlotStore:
    """
    Thread-safe dict of slots.

    If `balances` is given, every creation debits the payer's entry by the
    deposit and fails with InsufficientFunds when it cannot be covered.
    Without it, creations are free.
    """

    def __init__(self, balances: MutableMapping[bytes, int] | None = None) -> None:
        self._slots: dict[bytes, Slot] = {}
        self._data: dict[bytes, bytes] = {}
        self._balances = balances
        self._lock = threading.Lock()

    def minimum_balance(self, size: int) -> int:
        return minimum_balance(size)

    def create_at(self, address: bytes, size: int, funded_by: bytes, data: bytes | None = None) -> Slot:
        payload = _initial_payload(size, data)
        deposit = self.minimum_balance(size)
        with self._lock:
            if address in self._slots:
                raise SlotAlreadyExists(address)
            if self._balances is not None:
                available = self._balances.get(funded_by, 0)
                if available < deposit:
                    raise InsufficientFunds(funded_by, deposit, available)
                self._balances[funded_by] = available - deposit
            slot = Slot(address, size, funded_by, deposit)
            self._data[address] = payload
            self._slots[address] = slot
        return slot

    def read(self, address: bytes) -> bytes | None:
        return self._data.get(address)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, address: bytes) -> bool:
        return address in self._slots


# ── SQLite store ──────────────────────────────────────────────────────────────

# One row per slot; the PRIMARY KEY is what makes create_at atomic.
DDL = """
CREATE TABLE IF NOT EXISTS slots (
    address    BLOB PRIMARY KEY,
    size       INTEGER NOT NULL,
    funded_by  BLOB NOT NULL,
    deposit    INTEGER NOT NULL,
    data       BLOB NOT NULL
);
"""


class SqliteSlotStore:
    """
    Slots persisted in a local SQLite file.

    Every operation opens its own connection, so one store can be shared by
    many threads or processes pointing at the same file. A slot's contents go
    in with the same INSERT that claims it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        conn = self.connect()
        try:
            with conn:
                conn.execute(DDL)
        finally:
            conn.close()
        logger.info(f"[STORE] SQLite slot store ready at {self.path}")

    def connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path, timeout=30)

    def minimum_balance(self, size: int) -> int:
        return minimum_balance(size)

    def create_at(self, address: bytes, size: int, funded_by: bytes, data: bytes | None = None) -> Slot:
        payload = _initial_payload(size, data)
        deposit = self.minimum_balance(size)
        conn = self.connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO slots VALUES (?,?,?,?,?)",
                    (address, size, funded_by, deposit, payload),
                )
        except sqlite3.IntegrityError as e:
            raise SlotAlreadyExists(address) from e
        finally:
            conn.close()
        return Slot(address, size, funded_by, deposit)

    def read(self, address: bytes) -> bytes | None:
        conn = self.connect()
        try:
            row = conn.execute("SELECT data FROM slots WHERE address = ?", (address,)).fetchone()
        finally:
            conn.close()
        return bytes(row[0]) if row is not None else None

    def __len__(self) -> int:
        conn = self.connect()
        try:
            (count,) = conn.execute("SELECT COUNT(*) FROM slots").fetchone()
        finally:
            conn.close()
        return count
