import struct
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from smart_contracts.shard_registry import (
    RECORD_SIZE,
    AlreadyRegistered,
    AuthorTooLong,
    InMemorySlotStore,
    InsufficientFunds,
    InvalidFingerprint,
    InvalidMetadata,
    InvalidOwnerReference,
    RepoTooLong,
    ShardRegistry,
    SqliteSlotStore,
    UnixClock,
    derive_address,
    minimum_balance,
)

from .conftest import FIXED_TIME, OWNER, REQUESTER, fingerprint


def register(registry, fp, repo="acme/widgets", author="alice", verified=True, owner=OWNER):
    return registry.register_shard(owner, fp, repo, author, verified, REQUESTER)


def test_register_then_read_back(registry):
    fp = bytes([0x11]) * 20
    handle = register(registry, fp)

    address, bump = derive_address(fp)
    assert handle.address == address
    assert handle.bump == bump

    record = registry.get_record(fp)
    assert record is not None
    assert record.owner == OWNER
    assert record.fingerprint == fp
    assert record.repo == "acme/widgets"
    assert record.author == "alice"
    assert record.verified is True
    assert record.registered_at == FIXED_TIME
    assert record.bump == bump
    assert record == handle.record


def test_second_registration_is_rejected(registry, store):
    fp = fingerprint(1)
    register(registry, fp, repo="first/repo", author="first")

    with pytest.raises(AlreadyRegistered):
        register(registry, fp, repo="second/repo", author="second", verified=False, owner=bytes(32))

    record = registry.get_record(fp)
    assert record.repo == "first/repo"
    assert record.author == "first"
    assert record.verified is True
    assert record.owner == OWNER
    assert len(store) == 1


def test_repo_too_long_creates_nothing(registry, store):
    fp = fingerprint(2)
    with pytest.raises(RepoTooLong):
        register(registry, fp, repo="r" * 65)

    address, _ = derive_address(fp)
    assert store.read(address) is None
    assert len(store) == 0


def test_author_too_long_creates_nothing(registry, store):
    with pytest.raises(AuthorTooLong):
        register(registry, fingerprint(3), author="a" * 41)
    assert len(store) == 0


def test_length_boundaries(registry):
    register(registry, fingerprint(4), repo="r" * 64)
    register(registry, fingerprint(5), author="a" * 40)
    assert registry.get_record(fingerprint(4)).repo == "r" * 64
    assert registry.get_record(fingerprint(5)).author == "a" * 40


def test_lengths_are_counted_in_utf8_bytes(registry):
    # 33 two-byte characters = 66 bytes
    with pytest.raises(RepoTooLong):
        register(registry, fingerprint(6), repo="é" * 33)
    register(registry, fingerprint(6), repo="é" * 32)


def test_wrong_owner_length(registry, store):
    with pytest.raises(InvalidOwnerReference):
        register(registry, fingerprint(7), owner=bytes(31))
    assert len(store) == 0


def test_wrong_fingerprint_length(registry, store):
    with pytest.raises(InvalidFingerprint):
        register(registry, bytes(19))
    assert len(store) == 0


def test_lookup_of_unknown_fingerprint(registry):
    assert registry.get_record(fingerprint(8)) is None


def test_claimed_but_unpopulated_slot_reads_as_absent(registry, store):
    fp = fingerprint(9)
    address, _ = derive_address(fp)
    store.create_at(address, RECORD_SIZE, funded_by=REQUESTER)
    assert registry.get_record(fp) is None


def test_requester_funds_the_slot():
    balances = {REQUESTER: minimum_balance(RECORD_SIZE) + 10}
    registry = ShardRegistry(InMemorySlotStore(balances), clock=lambda: FIXED_TIME)

    register(registry, fingerprint(10))
    assert balances[REQUESTER] == 10

    # A rejected duplicate costs nothing
    with pytest.raises(AlreadyRegistered):
        register(registry, fingerprint(10))
    assert balances[REQUESTER] == 10


def test_funding_failure_propagates_unchanged():
    store = InMemorySlotStore(balances={})
    registry = ShardRegistry(store, clock=lambda: FIXED_TIME)

    with pytest.raises(InsufficientFunds):
        register(registry, fingerprint(11))
    assert len(store) == 0


def test_concurrent_distinct_registrations(registry, store):
    fingerprints = [fingerprint(n) for n in range(1000)]

    with ThreadPoolExecutor(max_workers=16) as pool:
        handles = list(pool.map(lambda fp: register(registry, fp), fingerprints))

    assert len({h.address for h in handles}) == 1000
    assert len(store) == 1000
    for fp, handle in zip(fingerprints, handles):
        assert registry.get_record(fp) == handle.record


def test_concurrent_same_fingerprint_has_one_winner(registry, store):
    fp = fingerprint(12)
    contenders = 32
    barrier = threading.Barrier(contenders)

    def attempt(i):
        barrier.wait()
        try:
            register(registry, fp, author=f"author-{i}")
            return i
        except AlreadyRegistered:
            return None

    with ThreadPoolExecutor(max_workers=contenders) as pool:
        results = list(pool.map(attempt, range(contenders)))

    winners = [r for r in results if r is not None]
    assert len(winners) == 1
    assert len(store) == 1
    assert registry.get_record(fp).author == f"author-{winners[0]}"


def test_unix_clock_never_goes_backwards():
    readings = iter([100.0, 50.0, 120.5])
    clock = UnixClock(source=lambda: next(readings))
    assert [clock(), clock(), clock()] == [100, 100, 120]


def test_default_clock_stamps_registration(store):
    registry = ShardRegistry(store)
    handle = register(registry, fingerprint(13))
    assert handle.record.registered_at > 1_600_000_000


class FlakyClock:
    """Raises on its first reading, then behaves."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls == 1:
            raise OSError("clock unavailable")
        return FIXED_TIME


@pytest.mark.parametrize("kind", ["memory", "sqlite"])
def test_clock_failure_leaves_fingerprint_registrable(kind, tmp_path):
    store = InMemorySlotStore() if kind == "memory" else SqliteSlotStore(tmp_path / "slots.db")
    registry = ShardRegistry(store, clock=FlakyClock())
    fp = fingerprint(77)

    with pytest.raises(OSError):
        register(registry, fp)
    assert len(store) == 0
    assert registry.get_record(fp) is None

    handle = register(registry, fp)
    assert registry.get_record(fp) == handle.record
    assert handle.record.registered_at == FIXED_TIME


def test_unencodable_timestamp_creates_nothing(store):
    registry = ShardRegistry(store, clock=lambda: 2**63)
    with pytest.raises(struct.error):
        register(registry, fingerprint(78))
    assert len(store) == 0


@pytest.mark.parametrize("field", ["repo", "author"])
def test_non_text_metadata_is_rejected(registry, store, field):
    with pytest.raises(InvalidMetadata):
        register(registry, fingerprint(79), **{field: b"acme/widgets"})
    assert len(store) == 0
