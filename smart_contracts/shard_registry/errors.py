"""Error taxonomy for the Shard Registry.

Every error is terminal for the call that raised it: nothing in the registry
retries. Codes start at 6000 so they line up with the on-chain program's
custom error numbering.
"""


class ShardError(Exception):
    """Base class for all registry errors."""

    code: int = 6999
    msg: str = "Shard registry error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(f"{self.msg}: {detail}" if detail else self.msg)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"error": self.name, "code": self.code, "message": str(self)}


class RepoTooLong(ShardError):
    code = 6000
    msg = "Repo name exceeds 64 characters"


class AuthorTooLong(ShardError):
    code = 6001
    msg = "Author name exceeds 40 characters"


class AlreadyRegistered(ShardError):
    code = 6002
    msg = "Fingerprint already registered"


class DerivationExhausted(ShardError):
    code = 6003
    msg = "Unable to find a viable address for this fingerprint"


class InvalidFingerprint(ShardError):
    code = 6004
    msg = "Fingerprint must be exactly 20 bytes"


class InvalidOwnerReference(ShardError):
    code = 6005
    msg = "Owner reference must be exactly 32 bytes"


class InvalidSeeds(ShardError):
    code = 6006
    msg = "Derived address lies on the ed25519 curve"


class RecordDecodeError(ShardError):
    code = 6007
    msg = "Slot does not hold a ShardRecord"


class InvalidMetadata(ShardError):
    code = 6008
    msg = "Repo and author must be text"


# ── Storage collaborator failures ─────────────────────────────────────────────
# Raised by slot stores and propagated unchanged, except SlotAlreadyExists which
# the registration service reports as AlreadyRegistered.

class StorageError(Exception):
    """Base class for failures of the storage-allocation collaborator."""


class SlotAlreadyExists(StorageError):
    def __init__(self, address: bytes) -> None:
        self.address = address
        super().__init__(f"Slot already in use: {address.hex()}")


class InsufficientFunds(StorageError):
    def __init__(self, payer: bytes, required: int, available: int) -> None:
        self.payer = payer
        self.required = required
        self.available = available
        super().__init__(
            f"Payer {payer.hex()[:8]}... needs {required} but holds {available}"
        )
