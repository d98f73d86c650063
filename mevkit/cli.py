"""The ``mev`` command line: utilities for block space."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Awaitable, Sequence

from mevkit.boost_service import BoostService
from mevkit.config import Config
from mevkit.errors import MevError, NoBidPreparedError
from mevkit.relay_mux import (
    AuctionContents,
    AuctionRequest,
    Relay,
    SignedBlindedBlock,
    SignedBuilderBid,
)
from mevkit.version import LONG_VERSION, SHORT_VERSION

logger = logging.getLogger("mevkit")

_PUBLIC_KEY_LENGTH = 48
_RELAY_REQUEST_TIMEOUT = 10.0


def _from_hex(value: str) -> bytes:
    return bytes.fromhex(value.removeprefix("0x"))


class _HttpRelay(Relay):
    """A relay reached over the builder API's JSON endpoints."""

    def __init__(self, public_key: bytes, base_url: str) -> None:
        super().__init__(public_key, base_url)
        self._base_url = base_url

    def _request(self, method: str, path: str, body: Any = None) -> tuple[int, Any]:
        data = None if body is None else json.dumps(body).encode()
        request = urllib.request.Request(
            self._base_url + path,
            data=data,
            method=method,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        try:
            with urllib.request.urlopen(request, timeout=_RELAY_REQUEST_TIMEOUT) as response:
                content = response.read()
                return response.status, json.loads(content) if content else None
        except urllib.error.HTTPError as err:
            raise MevError(f"relay {self} responded with status {err.code}") from err
        except urllib.error.URLError as err:
            raise MevError(f"could not reach relay {self}: {err.reason}") from err
        except json.JSONDecodeError as err:
            raise MevError(f"malformed response from relay {self}") from err

    async def _call(self, method: str, path: str, body: Any = None) -> tuple[int, Any]:
        return await asyncio.to_thread(self._request, method, path, body)

    async def register_validators(self, registrations: Sequence[Any]) -> None:
        await self._call("POST", "/eth/v1/builder/validators", list(registrations))

    async def fetch_best_bid(self, auction_request: AuctionRequest) -> SignedBuilderBid:
        path = (
            f"/eth/v1/builder/header/{auction_request.slot}"
            f"/0x{auction_request.parent_hash.hex()}/0x{auction_request.public_key.hex()}"
        )
        status, body = await self._call("GET", path)
        if status == 204 or body is None:
            raise NoBidPreparedError(auction_request)
        try:
            data = body["data"]
            message = data["message"]
            header = message["header"]
            return SignedBuilderBid(
                value=int(message["value"]),
                block_hash=_from_hex(header["block_hash"]),
                public_key=_from_hex(message["pubkey"]),
                signature=_from_hex(data["signature"]),
                parent_hash=_from_hex(header.get("parent_hash", "0x")),
            )
        except (KeyError, TypeError, ValueError) as err:
            raise MevError(f"malformed bid from relay {self}") from err

    async def open_bid(self, signed_block: SignedBlindedBlock) -> AuctionContents:
        block_body: dict[str, Any] = {
            "execution_payload_header": {"block_hash": "0x" + signed_block.block_hash.hex()}
        }
        if signed_block.blob_kzg_commitments is not None:
            block_body["blob_kzg_commitments"] = [
                "0x" + c.hex() for c in signed_block.blob_kzg_commitments
            ]
        request = {"message": {"slot": str(signed_block.slot), "body": block_body}}
        _, body = await self._call("POST", "/eth/v1/builder/blinded_blocks", request)
        try:
            data = body["data"]
            payload = data.get("execution_payload", data)
            bundle = data.get("blobs_bundle")
            commitments = (
                None if bundle is None else tuple(_from_hex(c) for c in bundle["commitments"])
            )
            return AuctionContents(
                block_hash=_from_hex(payload["block_hash"]),
                blob_commitments=commitments,
                execution_payload=payload,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as err:
            raise MevError(f"malformed payload from relay {self}") from err


def _relay_from_endpoint(endpoint: str) -> Relay:
    parts = urllib.parse.urlsplit(endpoint)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ValueError("relay endpoint must be an http(s) URL with a host")
    try:
        public_key = _from_hex(parts.username or "")
    except ValueError:
        raise ValueError("relay endpoint must carry the relay public key as its user") from None
    if len(public_key) != _PUBLIC_KEY_LENGTH:
        raise ValueError("relay endpoint must carry the relay public key as its user")
    host = f"[{parts.hostname}]" if ":" in parts.hostname else parts.hostname
    netloc = host if parts.port is None else f"{host}:{parts.port}"
    base_url = urllib.parse.urlunsplit((parts.scheme, netloc, parts.path.rstrip("/"), "", ""))
    return _HttpRelay(public_key, base_url)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser; config file arguments default to ``$CONFIG_FILE``."""
    env_config = os.environ.get("CONFIG_FILE")
    parser = argparse.ArgumentParser(prog="mev", description="utilities for block space")
    parser.add_argument("-V", "--version", action="version", version=f"mev {SHORT_VERSION}")
    parser.add_argument(
        "--long-version", action="version", version=LONG_VERSION, help="show build details"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    boost = commands.add_parser(
        "boost", help="connecting proposers to the external builder network"
    )
    boost.add_argument("config_file", nargs="?", default=env_config or "config.toml")

    config = commands.add_parser("config", help="(debug) utility to verify configuration")
    config.add_argument("config_file", nargs="?", default=env_config)
    return parser


def _setup_logging() -> None:
    name = os.environ.get("MEV_LOG", "info").upper()
    level = logging.getLevelNamesMapping().get(name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _run_until_signal(task: Awaitable[None]) -> None:
    async def runner() -> None:
        await task

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        logger.info("shutting down...")


async def _boost(config_file: str) -> None:
    config = Config.from_toml_file(config_file)
    if config.network is None:
        raise MevError("missing `network` from configuration")
    logger.info("configured for `%s`", config.network)
    if config.boost is None:
        raise MevError("missing boost config from file provided")
    service = BoostService(config.network, config.boost, _relay_from_endpoint)
    await service.run()


async def _show_config(config_file: str) -> None:
    config = Config.from_toml_file(config_file)
    logger.info("%r", config)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.config_file is None:
        parser.error("the following arguments are required: config_file")
    _setup_logging()
    try:
        if args.command == "boost":
            _run_until_signal(_boost(args.config_file))
        else:
            _run_until_signal(_show_config(args.config_file))
    except (MevError, ValueError, OSError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())