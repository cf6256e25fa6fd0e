"""Command-line interface for talking to a local ChainX signer.

The CLI is a thin façade over :class:`chainx_signer.client.SignerClient`: it
links to the signer, performs one query or signing call and prints the JSON
result, or stays connected and prints push events as they arrive.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Sequence

from .client import SignerClient
from .config import ConfigurationError, load_signer_config
from .errors import SignerError
from .events import ACCOUNT_CHANGE, NETWORK_CHANGE, NODE_CHANGE, TX_STATUS

logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")
WATCHED_EVENTS = (ACCOUNT_CHANGE, NODE_CHANGE, NETWORK_CHANGE, TX_STATUS)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ChainX signer client")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--plugin", default=None, help="Name presented to the signer")
    parser.add_argument("--ports", default=None, help="Ports to probe, e.g. 10013-10015")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("account", help="print the signer's current account")
    subparsers.add_parser("node", help="print the signer's current node")
    subparsers.add_parser("settings", help="print the signer's settings")

    sign_parser = subparsers.add_parser("sign", help="ask the signer to sign an extrinsic")
    sign_parser.add_argument("--address", required=True, help="Signing account address")
    sign_parser.add_argument("--data", required=True, help="Extrinsic hex (or JSON for --chainx2)")
    sign_parser.add_argument(
        "--send",
        action="store_true",
        help="Also submit the extrinsic and print status updates until finalized",
    )
    sign_parser.add_argument(
        "--chainx2", action="store_true", help="Use the chainx2 signing methods"
    )

    subparsers.add_parser("watch", help="print push events until interrupted")
    return parser


def _emit(data: Any) -> None:
    print(json.dumps(data, separators=COMPACT_JSON_SEPARATORS))


def _parse_sign_data(args: argparse.Namespace) -> Any:
    if not args.chainx2:
        return args.data
    try:
        return json.loads(args.data)
    except ValueError as exc:
        raise CLIError(f"--data must be JSON for chainx2 signing: {exc}") from exc


async def cmd_query(client: SignerClient, command: str) -> None:
    if command == "account":
        result = await client.get_current_account()
    elif command == "node":
        result = await client.get_current_node()
    else:
        result = await client.get_settings()
    _emit(result)


async def cmd_sign(client: SignerClient, args: argparse.Namespace) -> None:
    data = _parse_sign_data(args)

    def on_status(err: Any, status: Any) -> None:
        _emit({"err": err, "status": status})

    if args.send and args.chainx2:
        result = await client.sign_and_send_chainx2_extrinsic(args.address, data, on_status)
    elif args.send:
        result = await client.sign_and_send_extrinsic(args.address, data, on_status)
    elif args.chainx2:
        result = await client.sign_chainx2_extrinsic(args.address, data)
    else:
        result = await client.sign_extrinsic(args.address, data)
    _emit(result)


async def cmd_watch(client: SignerClient) -> None:
    for event in WATCHED_EVENTS:
        client.add_event_handler(event, lambda payload, name=event: _emit({"event": name, "payload": payload}))
    logger.info("Watching signer events; press Ctrl+C to stop")
    await asyncio.Event().wait()


async def run(args: argparse.Namespace) -> None:
    overrides = {}
    if args.plugin:
        overrides["plugin"] = args.plugin
    if args.ports:
        overrides["ports"] = args.ports
    config = load_signer_config(config_path=args.config, overrides=overrides)

    client = SignerClient.from_config(config)
    async with client:
        if args.command in {"account", "node", "settings"}:
            await cmd_query(client, args.command)
        elif args.command == "sign":
            await cmd_sign(client, args)
        elif args.command == "watch":
            await cmd_watch(client)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (CLIError, ConfigurationError, SignerError) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
