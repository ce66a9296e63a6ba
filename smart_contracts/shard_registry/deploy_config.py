import logging
import os
from dataclasses import dataclass
from typing import Mapping

from .address import DEFAULT_REGISTRY_ID, decode_address, encode_address
from .contract import ShardRegistry
from .storage import InMemorySlotStore, SqliteSlotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    registry_id: bytes = DEFAULT_REGISTRY_ID
    store_path: str = ""        # empty -> in-memory store
    authority: bytes = DEFAULT_REGISTRY_ID
    log_level: str = "INFO"


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Read settings from the environment.

    SHARD_REGISTRY_ID, SHARD_AUTHORITY : base32 addresses
    SHARD_STORE_PATH                   : SQLite file, empty for in-memory
    SHARD_LOG_LEVEL                    : logging level name
    """
    env = os.environ if env is None else env

    registry_raw = env.get("SHARD_REGISTRY_ID", "").strip()
    registry_id = decode_address(registry_raw) if registry_raw else DEFAULT_REGISTRY_ID

    authority_raw = env.get("SHARD_AUTHORITY", "").strip()
    authority = decode_address(authority_raw) if authority_raw else registry_id

    return Settings(
        registry_id=registry_id,
        store_path=env.get("SHARD_STORE_PATH", "").strip(),
        authority=authority,
        log_level=env.get("SHARD_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def deploy(settings: Settings) -> ShardRegistry:
    """Build the slot store named by `settings` and the registry on top of it."""
    if settings.store_path:
        store = SqliteSlotStore(settings.store_path)
    else:
        store = InMemorySlotStore()

    registry = ShardRegistry(store, registry_id=settings.registry_id)

    logger.info("🚀 Shard Registry successfully deployed!")
    logger.info(f"Registry ID: {encode_address(registry.registry_id)}")
    logger.info(f"Store: {settings.store_path or 'in-memory'}")
    return registry
