from .address import (
    DEFAULT_REGISTRY_ID,
    create_address,
    decode_address,
    derive_address,
    encode_address,
    fingerprint_from_hex,
    verify_address,
)
from .contract import RecordHandle, ShardRegistry, UnixClock
from .errors import (
    AlreadyRegistered,
    AuthorTooLong,
    DerivationExhausted,
    InsufficientFunds,
    InvalidFingerprint,
    InvalidMetadata,
    InvalidOwnerReference,
    InvalidSeeds,
    RecordDecodeError,
    RepoTooLong,
    ShardError,
    SlotAlreadyExists,
    StorageError,
)
from .record import RECORD_SIZE, ShardRecord
from .storage import InMemorySlotStore, SqliteSlotStore, minimum_balance

__all__ = [
    "DEFAULT_REGISTRY_ID",
    "RECORD_SIZE",
    "AlreadyRegistered",
    "AuthorTooLong",
    "DerivationExhausted",
    "InMemorySlotStore",
    "InsufficientFunds",
    "InvalidFingerprint",
    "InvalidMetadata",
    "InvalidOwnerReference",
    "InvalidSeeds",
    "RecordDecodeError",
    "RecordHandle",
    "RepoTooLong",
    "ShardError",
    "ShardRecord",
    "ShardRegistry",
    "SlotAlreadyExists",
    "SqliteSlotStore",
    "StorageError",
    "UnixClock",
    "create_address",
    "decode_address",
    "derive_address",
    "encode_address",
    "fingerprint_from_hex",
    "minimum_balance",
    "verify_address",
]
