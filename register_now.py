"""
One-shot registration of a commit shard.

Usage:
    SHARD_STORE_PATH=shards.db python3 register_now.py <sha> <repo> <author> [--verified] [--mint ADDR]
    python3 register_now.py <sha> <repo> <author> --api-url http://localhost:8000

Without --api-url the shard is written straight into the local store named by
SHARD_STORE_PATH. With it, the request goes to a running Shard Registry API.
"""
import argparse
import sys
from pathlib import Path

import requests
from dotenv import load_dotenv

from smart_contracts.shard_registry import (
    ShardError,
    StorageError,
    decode_address,
    encode_address,
    fingerprint_from_hex,
)
from smart_contracts.shard_registry.deploy_config import Settings, deploy, load_settings

ENV_PATH = Path(__file__).parent / ".env"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="register_now", description="Register a commit shard")
    parser.add_argument("sha", help="Commit SHA (hex)")
    parser.add_argument("repo", help="Repository, e.g. acme/widgets")
    parser.add_argument("author", help="Commit author")
    parser.add_argument("--verified", action="store_true", help="Mark the author as GitHub-verified")
    parser.add_argument("--mint", default="", help="Mint address of the shard NFT (defaults to the authority)")
    parser.add_argument("--api-url", default="", help="Register through a running API instead of the local store")
    return parser


def register_via_api(args: argparse.Namespace, mint: str) -> dict:
    r = requests.post(
        f"{args.api_url.rstrip('/')}/shards",
        json={
            "sha": args.sha,
            "repo": args.repo,
            "author": args.author,
            "github_verified": args.verified,
            "mint": mint,
        },
        timeout=15,
    )
    payload = r.json()
    if r.status_code != 201:
        raise RuntimeError(payload.get("message") or payload.get("detail") or f"HTTP {r.status_code}")
    return payload


def register_locally(args: argparse.Namespace, mint: str, settings: Settings) -> dict:
    registry = deploy(settings)
    handle = registry.register_shard(
        owner=decode_address(mint),
        fingerprint=fingerprint_from_hex(args.sha),
        repo=args.repo,
        author=args.author,
        verified=args.verified,
        requester=settings.authority,
    )
    return handle.to_dict()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # Load .env from the same directory as this file, regardless of cwd
    load_dotenv(ENV_PATH)
    settings = load_settings()
    mint = args.mint or encode_address(settings.authority)

    try:
        if args.api_url:
            result = register_via_api(args, mint)
        else:
            result = register_locally(args, mint, settings)
    except (ShardError, StorageError, RuntimeError, ValueError, requests.RequestException) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print()
    print("=" * 55)
    print("  ✅  Shard registered!")
    print(f"      SHA     : {result['sha']}")
    print(f"      Address : {result['address']}")
    print(f"      Bump    : {result['bump']}")
    print("=" * 55)
    return 0


if __name__ == "__main__":
    sys.exit(main())
