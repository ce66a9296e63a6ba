"""
ShardRecord: the fixed-size entity persisted at a derived address.

Byte layout (little-endian, 182 bytes reserved in full):

    [discriminator:8][owner:32][fingerprint:20]
    [repo_len:u32][repo:<=64][author_len:u32][author:<=40]
    [verified:1][registered_at:i64][bump:u8]  + zero padding
"""
from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

from .address import encode_address
from .errors import RecordDecodeError

MAX_REPO_LEN = 64
MAX_AUTHOR_LEN = 40

# 8 (discriminator) + 32 + 20 + (4+64) + (4+40) + 1 + 8 + 1 = 182
RECORD_SIZE = 8 + 32 + 20 + (4 + MAX_REPO_LEN) + (4 + MAX_AUTHOR_LEN) + 1 + 8 + 1

DISCRIMINATOR: bytes = hashlib.sha256(b"account:ShardRecord").digest()[:8]
_EMPTY_DISCRIMINATOR = bytes(8)

_U32 = struct.Struct("<I")
_TAIL = struct.Struct("<?qB")  # verified, registered_at, bump


@dataclass(frozen=True, slots=True)
class ShardRecord:
    """
    One registered commit.

    Attributes:
        owner         : 32-byte opaque owner reference (the NFT mint key), stored verbatim.
        fingerprint   : 20-byte commit SHA; the key the address was derived from.
        repo          : Repository name, at most 64 UTF-8 bytes.
        author        : Commit author, at most 40 UTF-8 bytes.
        verified      : Caller-asserted flag; the registry does not check it.
        registered_at : Unix seconds at creation, from the registry's clock.
        bump          : Disambiguator that made the derived address valid.
    """
    owner: bytes
    fingerprint: bytes
    repo: str
    author: str
    verified: bool
    registered_at: int
    bump: int

    def to_bytes(self) -> bytes:
        repo = self.repo.encode("utf-8")
        author = self.author.encode("utf-8")
        body = b"".join((
            DISCRIMINATOR,
            self.owner,
            self.fingerprint,
            _U32.pack(len(repo)), repo,
            _U32.pack(len(author)), author,
            _TAIL.pack(self.verified, self.registered_at, self.bump),
        ))
        return body.ljust(RECORD_SIZE, b"\x00")

    @classmethod
    def from_bytes(cls, data: bytes) -> ShardRecord:
        """Decode a populated slot. Raises RecordDecodeError on anything else."""
        if len(data) != RECORD_SIZE:
            raise RecordDecodeError(f"expected {RECORD_SIZE} bytes, got {len(data)}")
        if data[:8] != DISCRIMINATOR:
            raise RecordDecodeError("discriminator mismatch")

        try:
            offset = 8
            owner = data[offset:offset + 32]
            offset += 32
            fingerprint = data[offset:offset + 20]
            offset += 20
            repo, offset = _read_str(data, offset, MAX_REPO_LEN)
            author, offset = _read_str(data, offset, MAX_AUTHOR_LEN)
            verified, registered_at, bump = _TAIL.unpack_from(data, offset)
        except (struct.error, UnicodeDecodeError) as e:
            raise RecordDecodeError(str(e)) from e

        return cls(
            owner=bytes(owner),
            fingerprint=bytes(fingerprint),
            repo=repo,
            author=author,
            verified=verified,
            registered_at=registered_at,
            bump=bump,
        )

    def to_dict(self) -> dict:
        return {
            "mint": encode_address(self.owner),
            "sha": self.fingerprint.hex(),
            "repo": self.repo,
            "author": self.author,
            "github_verified": self.verified,
            "minted_at": self.registered_at,
            "bump": self.bump,
        }


def is_initialized(data: bytes) -> bool:
    """A claimed slot stays all-zero until the registry populates it."""
    return data[:8] != _EMPTY_DISCRIMINATOR


def _read_str(data: bytes, offset: int, limit: int) -> tuple[str, int]:
    (length,) = _U32.unpack_from(data, offset)
    offset += 4
    if length > limit:
        raise RecordDecodeError(f"string length {length} exceeds {limit}")
    return data[offset:offset + length].decode("utf-8"), offset + length
