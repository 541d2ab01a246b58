"""Command-line entry point for the Solana connection."""

import argparse
import asyncio
import dataclasses
import sys

from solana_connection.config import get_connection_config
from solana_connection.connection import Connection
from solana_connection.logging_config import configure_logging, get_logger
from solana_connection.utils.errors import SolanaConnectionError

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solana-connection",
        description="Query a Solana fullnode and watch its slots"
    )
    parser.add_argument("--url", help="JSON RPC endpoint (default: $SOLANA_RPC_URL)")
    parser.add_argument("--log-level", default=None, help="Log level (default: $LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("version", help="Print the node version")
    subparsers.add_parser("slot", help="Print the current slot")

    balance = subparsers.add_parser("balance", help="Print the balance of an account in lamports")
    balance.add_argument("pubkey", help="Base58 public key of the account")

    watch = subparsers.add_parser("watch-slots", help="Print slot notifications")
    watch.add_argument("--count", type=int, default=10, help="Number of notifications to print")
    return parser


async def watch_slots(connection: Connection, count: int) -> None:
    """Print ``count`` slot notifications, then remove the listener."""
    done = asyncio.Event()
    seen = 0

    def on_slot(slot_info):
        nonlocal seen
        seen += 1
        print(f"slot={slot_info.slot} parent={slot_info.parent} root={slot_info.root}")
        if seen >= count:
            done.set()

    subscription_id = connection.on_slot_change(on_slot)
    try:
        await done.wait()
    finally:
        await connection.remove_slot_change_listener(subscription_id)


async def run(args: argparse.Namespace) -> int:
    config = get_connection_config()
    if args.url:
        config = dataclasses.replace(config, rpc_url=args.url, ws_url=None)

    async with Connection(config) as connection:
        if args.command == "version":
            version = await connection.get_version()
            print(version.solana_core)
        elif args.command == "slot":
            print(await connection.get_slot())
        elif args.command == "balance":
            print(await connection.get_balance(args.pubkey))
        elif args.command == "watch-slots":
            await watch_slots(connection, args.count)
    return 0


def main(argv=None) -> int:
    """Run the command line tool."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or get_connection_config().log_level)
    try:
        return asyncio.run(run(args))
    except SolanaConnectionError as e:
        logger.error(f"{e.code.value}: {e.message}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
