"""Command line entry point.

Usage:
    bridge-publisher publish --vault ~/notes --config bridge.yaml
    bridge-publisher publish --dry-run
    bridge-publisher upgrade
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from bridge_publisher.config import PublisherConfig
from bridge_publisher.core.models import BridgeError
from bridge_publisher.core.publisher import create_publisher_from_config
from bridge_publisher.logging_config import setup_logging
from bridge_publisher.sinks.blob_store import BlobStoreSink

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bridge-publisher",
        description="Publish a note vault to a static site and a private blob store",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the YAML config (default: ./bridge.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    publish = sub.add_parser("publish", help="Publish changed notes")
    publish.add_argument(
        "--vault",
        type=Path,
        default=None,
        help="Vault root (overrides vault_path from the config)",
    )
    publish.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify, diff and render without uploading or updating the ledger",
    )

    sub.add_parser("upgrade", help="Ask the blob store to upgrade itself")
    return parser


def run_publish(config: PublisherConfig, dry_run: bool) -> int:
    publisher = create_publisher_from_config(config, notify=print)
    result = asyncio.run(publisher.run(dry_run=dry_run))
    for failure in result.failures:
        logger.warning("%s: %s", failure.path, failure.error)
    return 0 if result.ok else 1


def run_upgrade(config: PublisherConfig) -> int:
    config.require_blob_store()
    sink = BlobStoreSink(config.blob_store_url, config.api_key, timeout=config.http_timeout)
    print(asyncio.run(sink.upgrade()))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = PublisherConfig.load(args.config)
        if args.command == "publish":
            if args.vault is not None:
                config = config.model_copy(update={"vault_path": args.vault})
            return run_publish(config, args.dry_run)
        return run_upgrade(config)
    except (BridgeError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
