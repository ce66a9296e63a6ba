# =============================================================================
#  ShardRegistry: create-once registry of commit fingerprints
#  -----------------------------------------------------------------------------
#  Record    : ShardRecord, 182 bytes reserved per fingerprint
#  Addressing: sha256("shard" ‖ sha ‖ bump ‖ registry_id ‖ marker), off-curve
# =============================================================================
#
#  STORAGE MODEL
#  -------------
#    SlotStore
#    │
#    ├── Key   : 32-byte derived address of the 20-byte commit SHA
#    │
#    └── Value : ShardRecord (owner mint, sha, repo, author, verified flag,
#                registration time, bump)
#
#  Each slot locks up a deposit of 2500 + 400 × (32 + 182) micro-units,
#  funded by the requester as part of the same claim.
#
#  WRITE-ONCE GUARANTEE
#  --------------------
#  The registry never checks whether a SHA is taken. It asks the store to
#  create the slot, and the store's atomic create-or-fail is the only thing
#  standing between two registrations of the same commit. The loser gets
#  AlreadyRegistered and the store is left untouched.
#
# =============================================================================
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .address import (
    DEFAULT_REGISTRY_ID,
    FINGERPRINT_LEN,
    derive_address,
    encode_address,
)
from .errors import (
    AlreadyRegistered,
    AuthorTooLong,
    InvalidFingerprint,
    InvalidMetadata,
    InvalidOwnerReference,
    RepoTooLong,
    SlotAlreadyExists,
)
from .record import MAX_AUTHOR_LEN, MAX_REPO_LEN, RECORD_SIZE, ShardRecord, is_initialized
from .storage import SlotStore

logger = logging.getLogger(__name__)

OWNER_LEN = 32


class UnixClock:
    """Wall-clock unix seconds that never go backwards."""

    def __init__(self, source: Callable[[], float] = time.time) -> None:
        self._source = source
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            self._last = max(self._last, int(self._source()))
            return self._last


@dataclass(frozen=True)
class RecordHandle:
    address: bytes
    bump: int
    record: ShardRecord

    def to_dict(self) -> dict:
        return {"address": encode_address(self.address), **self.record.to_dict()}


class ShardRegistry:
    """
    Registry mapping commit fingerprints to their one and only ShardRecord.

    One instance per store. Holds no mutable state of its own, so concurrent
    registrations only ever meet inside the store's create_at.
    """

    def __init__(
        self,
        store: SlotStore,
        registry_id: bytes = DEFAULT_REGISTRY_ID,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.store = store
        self.registry_id = registry_id
        self.clock = clock if clock is not None else UnixClock()

    def address_of(self, fingerprint: bytes) -> tuple[bytes, int]:
        return derive_address(fingerprint, self.registry_id)

    def register_shard(
        self,
        owner: bytes,
        fingerprint: bytes,
        repo: str,
        author: str,
        verified: bool,
        requester: bytes,
    ) -> RecordHandle:
        """
        Register a commit fingerprint exactly once.

        Parameters
        ----------
        owner : bytes
            32-byte mint key of the shard NFT. Stored verbatim, never inspected.
        fingerprint : bytes
            20-byte commit SHA; the registry key.
        repo, author : str
            Commit metadata, at most 64 and 40 UTF-8 bytes.
        verified : bool
            Caller-asserted GitHub verification flag, stored as given.
        requester : bytes
            Already-authenticated identity that funds the new slot.

        Behaviour
        ---------
        - Fingerprint NOT registered: claims the derived slot with the record
          already in it and returns its handle.
        - Fingerprint ALREADY registered: raises AlreadyRegistered. Nothing
          is written and the requester is not charged.
        - Invalid input, or a failing clock: raises before the store is touched.
        """
        # ── Validate ──────────────────────────────────────────────────────────
        if not isinstance(repo, str):
            raise InvalidMetadata(f"repo is {type(repo).__name__}")
        if not isinstance(author, str):
            raise InvalidMetadata(f"author is {type(author).__name__}")
        repo_len = len(repo.encode("utf-8"))
        author_len = len(author.encode("utf-8"))
        if repo_len > MAX_REPO_LEN:
            raise RepoTooLong(f"{repo_len} bytes")
        if author_len > MAX_AUTHOR_LEN:
            raise AuthorTooLong(f"{author_len} bytes")
        if not isinstance(fingerprint, (bytes, bytearray)) or len(fingerprint) != FINGERPRINT_LEN:
            raise InvalidFingerprint()
        if not isinstance(owner, (bytes, bytearray)) or len(owner) != OWNER_LEN:
            raise InvalidOwnerReference()

        # ── Derive ────────────────────────────────────────────────────────────
        address, bump = self.address_of(bytes(fingerprint))

        # ── Build ─────────────────────────────────────────────────────────────
        record = ShardRecord(
            owner=bytes(owner),
            fingerprint=bytes(fingerprint),
            repo=repo,
            author=author,
            verified=bool(verified),
            registered_at=self.clock(),
            bump=bump,
        )
        data = record.to_bytes()

        # ── Claim and populate in one step ────────────────────────────────────
        try:
            self.store.create_at(address, RECORD_SIZE, funded_by=requester, data=data)
        except SlotAlreadyExists as e:
            logger.warning(f"[REGISTER] Rejected {record.fingerprint.hex()[:8]}...: already registered")
            raise AlreadyRegistered(record.fingerprint.hex()) from e

        logger.info(f"[REGISTER] {record.fingerprint.hex()[:8]}... -> {encode_address(address)[:8]}... (bump {bump})")
        return RecordHandle(address, bump, record)

    def get_record(self, fingerprint: bytes) -> ShardRecord | None:
        """Direct lookup by fingerprint. None if never registered, or if the slot was claimed empty."""
        address, _ = self.address_of(fingerprint)
        data = self.store.read(address)
        if data is None or not is_initialized(data):
            return None
        return ShardRecord.from_bytes(data)
