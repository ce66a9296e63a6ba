import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from smart_contracts.shard_registry import (
    RECORD_SIZE,
    AlreadyRegistered,
    DerivationExhausted,
    InsufficientFunds,
    RecordDecodeError,
    ShardError,
    ShardRegistry,
    StorageError,
    decode_address,
    encode_address,
    fingerprint_from_hex,
)
from smart_contracts.shard_registry.deploy_config import configure_logging, deploy, load_settings

# Load .env from the same directory as this file, regardless of cwd
load_dotenv(Path(__file__).parent / ".env")

settings = load_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)

registry = deploy(settings)

app = FastAPI(title="Shard Registry API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ShardError kinds that are not the caller's fault
_SERVER_ERRORS = (DerivationExhausted, RecordDecodeError)


def get_registry() -> ShardRegistry:
    return registry


class RegisterShardRequest(BaseModel):
    sha: str
    repo: str
    author: str
    github_verified: bool = False
    mint: str


@app.exception_handler(ShardError)
async def shard_error_handler(request: Request, exc: ShardError) -> JSONResponse:
    if isinstance(exc, AlreadyRegistered):
        status = 409
    elif isinstance(exc, _SERVER_ERRORS):
        logger.error(f"[API] {request.url.path}: {exc}")
        status = 500
    else:
        status = 422
    return JSONResponse(exc.to_dict(), status_code=status)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    status = 402 if isinstance(exc, InsufficientFunds) else 500
    logger.error(f"[API] Storage failure on {request.url.path}: {exc}")
    return JSONResponse({"error": type(exc).__name__, "message": str(exc)}, status_code=status)


@app.get("/")
async def root():
    return {
        "status": "ok",
        "message": "Shard Registry API is running",
        "endpoints": ["/registry", "/shards", "/shards/{sha}", "/shards/{sha}/address"],
    }


@app.get("/registry")
async def get_registry_info(reg: ShardRegistry = Depends(get_registry)):
    return {
        "registry_id": encode_address(reg.registry_id),
        "record_size": RECORD_SIZE,
        "deposit": reg.store.minimum_balance(RECORD_SIZE),
    }


@app.get("/shards/{sha}/address")
async def shard_address(sha: str, reg: ShardRegistry = Depends(get_registry)):
    """Where a commit's record lives (or would live), without touching storage."""
    fingerprint = fingerprint_from_hex(sha)
    address, bump = reg.address_of(fingerprint)
    return {"sha": fingerprint.hex(), "address": encode_address(address), "bump": bump}


@app.get("/shards/{sha}")
async def get_shard(sha: str, reg: ShardRegistry = Depends(get_registry)):
    fingerprint = fingerprint_from_hex(sha)
    record = reg.get_record(fingerprint)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No shard registered for {fingerprint.hex()}")
    address, _ = reg.address_of(fingerprint)
    return {"address": encode_address(address), **record.to_dict()}


@app.post("/shards", status_code=201)
async def register_shard(body: RegisterShardRequest, reg: ShardRegistry = Depends(get_registry)):
    """
    Register a commit shard. The server authority funds the new record, as
    the server wallet pays for registrations in the minting flow.
    """
    try:
        owner = decode_address(body.mint)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    handle = reg.register_shard(
        owner=owner,
        fingerprint=fingerprint_from_hex(body.sha),
        repo=body.repo,
        author=body.author,
        verified=body.github_verified,
        requester=settings.authority,
    )
    return handle.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
