"""Command-line interface for the DeFi position adapters."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

from .config import AppConfig, load_config
from .errors import AdapterError, ProtocolNotImplementedError
from .interfaces import MetadataBuilder, ProtocolAdapter
from .logging_setup import configure_logging
from .models import to_jsonable
from .services import AdapterRegistry

logger = logging.getLogger(__name__)


def _add_target_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--protocol", required=True, help="Protocol id, e.g. lido")
    parser.add_argument("--chain", required=True, help="Chain name or id")
    parser.add_argument("--product", required=True, help="Product id, e.g. wst-eth")


def _add_block_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--block", type=int, default=None, help="Block number (default: latest)"
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="defi-adapters",
        description="Read DeFi positions, rates and movements from EVM chains",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    positions = sub.add_parser("positions", help="Positions held by a user")
    positions.add_argument("--chain", required=True, help="Chain name or id")
    positions.add_argument("--user", required=True, help="User address")
    positions.add_argument(
        "--protocol", default=None, help="Only this protocol (default: all on chain)"
    )
    _add_block_arg(positions)

    for name, help_text in (
        ("deposits", "Deposits into a protocol token"),
        ("withdrawals", "Withdrawals from a protocol token"),
    ):
        movements = sub.add_parser(name, help=help_text)
        _add_target_args(movements)
        movements.add_argument("--user", required=True, help="User address")
        movements.add_argument("--token", required=True, help="Protocol token address")
        movements.add_argument("--from-block", type=int, required=True)
        movements.add_argument("--to-block", type=int, required=True)
        movements.add_argument("--token-id", default=None, help="NFT position id")

    for name, help_text in (
        ("apr", "Protocol token APR"),
        ("apy", "Protocol token APY"),
        ("rate", "Underlying amount per protocol token"),
    ):
        rate = sub.add_parser(name, help=help_text)
        _add_target_args(rate)
        rate.add_argument("--token", required=True, help="Protocol token address")
        _add_block_arg(rate)

    tvl = sub.add_parser("tvl", help="Total value locked per protocol token")
    _add_target_args(tvl)
    tvl.add_argument(
        "--token", action="append", default=None,
        help="Protocol token address (repeatable; default: all)",
    )
    _add_block_arg(tvl)

    sub.add_parser("build-metadata", help="Rebuild and persist cached adapter metadata")
    sub.add_parser("support", help="List supported protocols, chains and products")

    return parser


async def _positions(registry: AdapterRegistry, args: argparse.Namespace) -> list[dict]:
    if args.protocol:
        adapters = registry.list_adapters(args.protocol, args.chain)
    else:
        adapters = registry.list_chain_adapters(args.chain)

    async def read(adapter: ProtocolAdapter) -> dict[str, Any] | None:
        try:
            positions = await adapter.get_positions(args.user, args.block)
        except ProtocolNotImplementedError:
            return None
        if not positions:
            return None
        return {
            "protocol_id": adapter.protocol_id,
            "product_id": adapter.product_id,
            "chain_id": int(adapter.chain_id),
            "positions": positions,
        }

    results = await asyncio.gather(*(read(a) for a in adapters))
    return [r for r in results if r is not None]


async def _build_metadata(config: AppConfig) -> dict[str, int]:
    """Force a rebuild of every metadata-caching adapter on configured chains."""
    config = dataclasses.replace(
        config, metadata=dataclasses.replace(config.metadata, rebuild=True)
    )
    registry = AdapterRegistry.from_config(config)
    builders = [
        adapter
        for chain in config.chains
        for adapter in registry.list_chain_adapters(chain)
        if isinstance(adapter, MetadataBuilder)
    ]
    built = await asyncio.gather(*(b.build_metadata() for b in builders))

    summary: dict[str, int] = {}
    for adapter, metadata in zip(builders, built):
        label = f"{adapter.protocol_id}/{adapter.product_id}/{adapter.chain_id.slug}"
        summary[label] = len(metadata)
        logger.info("Built metadata for %s (%d entries)", label, len(metadata))
    return summary


async def _dispatch(config: AppConfig, args: argparse.Namespace) -> Any:
    if args.command == "build-metadata":
        return await _build_metadata(config)

    registry = AdapterRegistry.from_config(config)

    if args.command == "support":
        return registry.support()
    if args.command == "positions":
        return await _positions(registry, args)

    adapter = registry.get_adapter(args.protocol, args.chain, args.product)

    if args.command == "deposits":
        return await adapter.get_deposits(
            args.user, args.token, args.from_block, args.to_block, args.token_id
        )
    if args.command == "withdrawals":
        return await adapter.get_withdrawals(
            args.user, args.token, args.from_block, args.to_block, args.token_id
        )
    if args.command == "apr":
        return await adapter.get_apr(args.token, args.block)
    if args.command == "apy":
        return await adapter.get_apy(args.token, args.block)
    if args.command == "rate":
        return await adapter.get_protocol_token_to_underlying_token_rate(
            args.token, args.block
        )
    if args.command == "tvl":
        return await adapter.get_total_value_locked(args.token, args.block)
    raise ValueError(f"Unknown command: {args.command}")


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command, printing its result as JSON."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    try:
        result = await _dispatch(config, args)
    except AdapterError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1

    print(json.dumps(to_jsonable(result), indent=2))
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
