"""
Deterministic slot addressing for the Shard Registry.

A fingerprint maps to exactly one 32-byte address:

    sha256( b"shard" ‖ fingerprint ‖ bump ‖ registry_id ‖ b"ProgramDerivedAddress" )

The bump is searched from 255 downwards and the first candidate that does NOT
decompress to an ed25519 curve point wins. No secret key exists for such an
address, so nobody can sign for, or pre-create, a record slot outside of the
registry.
"""
import hashlib
import logging

from algosdk import encoding, error

from .errors import DerivationExhausted, InvalidFingerprint, InvalidSeeds

logger = logging.getLogger(__name__)

NAMESPACE = b"shard"
PDA_MARKER = b"ProgramDerivedAddress"
FINGERPRINT_LEN = 20
ADDRESS_LEN = 32

# Registry id used when none is configured: sha512/256 of the registry name
DEFAULT_REGISTRY_ID: bytes = encoding.checksum(b"shard_registry")

# Edwards25519: -x² + y² = 1 + d·x²·y²  over GF(p)
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


def encode_address(raw: bytes) -> str:
    """Encode a 32-byte key as a base32 address (with sha512/256 checksum)."""
    return encoding.encode_address(raw)


def decode_address(text: str) -> bytes:
    """Parse a base32 address back into its 32 raw bytes."""
    try:
        return encoding.decode_address(text.strip())
    except (error.WrongKeyLengthError, error.WrongChecksumError, ValueError) as e:
        raise ValueError(f"Not a valid address: {text!r}") from e


def fingerprint_from_hex(sha_hex: str) -> bytes:
    """
    Turn a hex commit SHA into a 20-byte fingerprint.

    Only the first 40 hex characters are used; shorter input (an abbreviated
    SHA) is right-padded with "0".
    """
    padded = sha_hex.strip()[:40].ljust(40, "0")
    try:
        return bytes.fromhex(padded)
    except ValueError as e:
        raise InvalidFingerprint(f"not a hex SHA: {sha_hex!r}") from e


def _is_on_curve(candidate: bytes) -> bool:
    """
    True if `candidate` decompresses to a point on edwards25519.

    Any point counts, including small-order and mixed-order ones: the sign
    bit is dropped, y must be canonical (< p), and x² = (y² - 1) / (d·y² + 1)
    must be a square mod p.
    """
    y = int.from_bytes(candidate, "little") & ((1 << 255) - 1)
    if y >= _P:
        return False
    yy = y * y % _P
    u = (yy - 1) % _P
    v = (_D * yy + 1) % _P
    xx = u * pow(v, _P - 2, _P) % _P
    return xx == 0 or pow(xx, (_P - 1) // 2, _P) == 1


def _candidate(fingerprint: bytes, bump: int, registry_id: bytes) -> bytes:
    h = hashlib.sha256()
    for part in (NAMESPACE, bytes(fingerprint), bytes([bump]), registry_id, PDA_MARKER):
        h.update(part)
    return h.digest()


def _check_fingerprint(fingerprint: bytes) -> None:
    if not isinstance(fingerprint, (bytes, bytearray)):
        raise InvalidFingerprint(f"expected bytes, got {type(fingerprint).__name__}")
    if len(fingerprint) != FINGERPRINT_LEN:
        raise InvalidFingerprint(f"got {len(fingerprint)} bytes")


def create_address(fingerprint: bytes, bump: int, registry_id: bytes = DEFAULT_REGISTRY_ID) -> bytes:
    """
    Hash a single (fingerprint, bump) candidate.

    Raises InvalidSeeds if the candidate decompresses to a curve point.
    """
    _check_fingerprint(fingerprint)
    if not 0 <= bump <= 255:
        raise ValueError(f"bump must fit in a byte, got {bump}")

    candidate = _candidate(fingerprint, bump, registry_id)
    if _is_on_curve(candidate):
        raise InvalidSeeds(f"bump {bump}")
    return candidate


def derive_address(fingerprint: bytes, registry_id: bytes = DEFAULT_REGISTRY_ID) -> tuple[bytes, int]:
    """
    Find the canonical (address, bump) for a fingerprint.

    Pure and deterministic: the same fingerprint and registry id always yield
    the same pair. Raises DerivationExhausted if all 256 bumps land on the
    curve, which in practice never happens.
    """
    _check_fingerprint(fingerprint)
    for bump in range(255, -1, -1):
        try:
            return create_address(fingerprint, bump, registry_id), bump
        except InvalidSeeds:
            continue

    logger.error(f"[DERIVE] No off-curve address for {bytes(fingerprint).hex()}")
    raise DerivationExhausted(bytes(fingerprint).hex())


def verify_address(
    fingerprint: bytes,
    address: bytes,
    bump: int,
    registry_id: bytes = DEFAULT_REGISTRY_ID,
) -> bool:
    """Rebuild an address from its stored bump and compare it to `address`."""
    try:
        return create_address(fingerprint, bump, registry_id) == address
    except InvalidSeeds:
        return False
