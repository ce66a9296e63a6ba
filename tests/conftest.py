"""Shared fixtures for Shard Registry tests."""

import pytest

from smart_contracts.shard_registry import InMemorySlotStore, ShardRegistry

FIXED_TIME = 1_700_000_000

OWNER = bytes([0xAB]) * 32
REQUESTER = bytes([0x01]) * 32


@pytest.fixture
def store():
    return InMemorySlotStore()


@pytest.fixture
def registry(store):
    return ShardRegistry(store, clock=lambda: FIXED_TIME)


def fingerprint(n: int) -> bytes:
    return n.to_bytes(20, "big")
