"""Multiplexes builder API calls over a set of relays and keeps the best bid."""

from __future__ import annotations

import abc
import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from mevkit.errors import (
    BidPublicKeyMismatchError,
    CouldNotRegisterError,
    InvalidPayloadBlobsError,
    InvalidPayloadHashError,
    MevError,
    MissingOpenBidError,
    MissingPayloadError,
    NoBidPreparedError,
    UnexpectedPayloadBlobsError,
)

logger = logging.getLogger(__name__)

# Track an auction for this many slots.
AUCTION_LIFETIME = 2
# Seconds relays get to process validator registrations.
VALIDATOR_REGISTRATION_TIME_OUT_SECS = 4.0
# Seconds relays get to return bids.
FETCH_BEST_BID_TIME_OUT_SECS = 1.0
# Seconds relays get to respond with a payload.
FETCH_PAYLOAD_TIME_OUT_SECS = 4.0

Verifier = Callable[["SignedBuilderBid", bytes], bool]


@dataclass(frozen=True)
class AuctionRequest:
    """A proposer's request for the best bid on top of ``parent_hash``."""

    slot: int
    parent_hash: bytes
    public_key: bytes

    def __str__(self) -> str:
        return f"slot {self.slot}, parent hash 0x{self.parent_hash.hex()}, public key 0x{self.public_key.hex()}"


@dataclass(frozen=True)
class SignedBuilderBid:
    """A builder bid as returned by a relay."""

    value: int
    block_hash: bytes
    public_key: bytes
    signature: bytes = b""
    parent_hash: bytes = b""


@dataclass(frozen=True)
class AuctionContents:
    """The execution payload (and optional blob commitments) revealed for a bid."""

    block_hash: bytes
    blob_commitments: tuple[bytes, ...] | None = None
    execution_payload: Any = None

    def __post_init__(self) -> None:
        if self.blob_commitments is not None:
            object.__setattr__(self, "blob_commitments", tuple(self.blob_commitments))


@dataclass(frozen=True)
class SignedBlindedBlock:
    """A signed blinded beacon block committing to an execution block hash."""

    slot: int
    block_hash: bytes
    blob_kzg_commitments: tuple[bytes, ...] | None = None

    def __post_init__(self) -> None:
        if self.blob_kzg_commitments is not None:
            object.__setattr__(self, "blob_kzg_commitments", tuple(self.blob_kzg_commitments))


class Relay(abc.ABC):
    """A relay reachable through the builder API."""

    def __init__(self, public_key: bytes, name: str | None = None) -> None:
        self.public_key = bytes(public_key)
        self.name = name or f"0x{self.public_key.hex()}"

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    @abc.abstractmethod
    async def register_validators(self, registrations: Sequence[Any]) -> None:
        """Forward validator registrations to the relay."""

    @abc.abstractmethod
    async def fetch_best_bid(self, auction_request: AuctionRequest) -> SignedBuilderBid:
        """Return the relay's best bid; raise ``NoBidPreparedError`` if it has none."""

    @abc.abstractmethod
    async def open_bid(self, signed_block: SignedBlindedBlock) -> AuctionContents:
        """Return the payload for a signed blinded block."""


@dataclass
class AuctionContext:
    """The relays that offered the winning bid of an auction."""

    slot: int
    relays: list[Relay] = field(default_factory=list)


def select_best_bids(bids: Iterable[tuple[int, int]]) -> list[int]:
    """Return the indices of the most valuable bids, in input order."""
    best_indices: list[int] = []
    best_value = 0
    for index, value in bids:
        if value > best_value:
            best_indices = [index]
            best_value = value
        elif value == best_value:
            best_indices.append(index)
    return best_indices


def validate_bid(bid: SignedBuilderBid, public_key: bytes, verifier: Verifier | None) -> None:
    """Check that ``bid`` is signed by ``public_key``; ``verifier`` checks the signature."""
    if bid.public_key != public_key:
        raise BidPublicKeyMismatchError(bid.public_key, public_key)
    if verifier is not None and not verifier(bid, public_key):
        raise MevError("invalid signature on builder bid")


def validate_payload(
    contents: AuctionContents,
    expected_block_hash: bytes,
    expected_commitments: Sequence[bytes] | None,
) -> None:
    """Check that revealed contents match the block hash and blob commitments committed to."""
    provided_block_hash = contents.block_hash
    if expected_block_hash != provided_block_hash:
        raise InvalidPayloadHashError(expected_block_hash, provided_block_hash)
    provided = contents.blob_commitments
    if expected_commitments is not None and provided is not None:
        if tuple(expected_commitments) != tuple(provided):
            raise InvalidPayloadBlobsError(expected_commitments, provided)
    elif expected_commitments is not None or provided is not None:
        raise UnexpectedPayloadBlobsError()


class RelayMux:
    """Fans builder API calls out to every relay and tracks the winning bids."""

    def __init__(self, relays: Iterable[Relay], verifier: Verifier | None = None) -> None:
        self.relays = list(relays)
        self._verifier = verifier
        self._outstanding_bids: dict[bytes, AuctionContext] = {}
        self.registration_timeout = VALIDATOR_REGISTRATION_TIME_OUT_SECS
        self.fetch_best_bid_timeout = FETCH_BEST_BID_TIME_OUT_SECS
        self.open_bid_timeout = FETCH_PAYLOAD_TIME_OUT_SECS

    @property
    def outstanding_bids(self) -> dict[bytes, AuctionContext]:
        """The open auctions, keyed by block hash."""
        return dict(self._outstanding_bids)

    def on_slot(self, slot: int) -> None:
        """Forget auctions older than the auction lifetime."""
        logger.debug("processing slot %s", slot)
        retain_slot = max(slot - AUCTION_LIFETIME, 0)
        self._outstanding_bids = {
            block_hash: auction
            for block_hash, auction in self._outstanding_bids.items()
            if auction.slot >= retain_slot
        }

    def _get_context(self, block_hash: bytes) -> AuctionContext:
        try:
            return self._outstanding_bids[block_hash]
        except KeyError:
            raise MissingOpenBidError(block_hash) from None

    async def register_validators(self, registrations: Sequence[Any]) -> None:
        """Send registrations to every relay; succeed if at least one accepts them."""

        async def attempt(relay: Relay) -> bool:
            try:
                await asyncio.wait_for(
                    relay.register_validators(registrations), self.registration_timeout
                )
            except TimeoutError:
                logger.warning("timeout when registering validator(s) with %s", relay)
                return False
            except Exception as err:
                logger.warning("failure when registering validator(s) with %s: %s", relay, err)
                return False
            return True

        results = await asyncio.gather(*(attempt(relay) for relay in self.relays))
        if not any(results):
            raise CouldNotRegisterError()
        logger.info("sent %d validator registrations", len(registrations))

    async def fetch_best_bid(self, auction_request: AuctionRequest) -> SignedBuilderBid:
        """Return the most valuable valid bid across relays and open an auction for it."""

        async def attempt(relay: Relay) -> tuple[Relay, SignedBuilderBid] | None:
            try:
                bid = await asyncio.wait_for(
                    relay.fetch_best_bid(auction_request), self.fetch_best_bid_timeout
                )
            except TimeoutError:
                logger.warning(
                    "timeout after %ss when fetching bid from %s", self.fetch_best_bid_timeout, relay
                )
                return None
            except NoBidPreparedError:
                logger.debug("relay %s did not have a bid prepared for %s", relay, auction_request)
                return None
            except Exception as err:
                logger.warning("failed to get a bid from %s: %s", relay, err)
                return None
            try:
                validate_bid(bid, relay.public_key, self._verifier)
            except MevError as err:
                logger.warning("invalid signed builder bid from %s: %s", relay, err)
                return None
            return relay, bid

        results = await asyncio.gather(*(attempt(relay) for relay in self.relays))
        bids = [result for result in results if result is not None]

        best_indices = select_best_bids(enumerate(bid.value for _, bid in bids))
        if not best_indices:
            logger.info("no relays had bids prepared for %s", auction_request)
            raise NoBidPreparedError(auction_request)

        # Break ties between distinct bids of equal value at random.
        random.shuffle(best_indices)
        best_index, *rest = best_indices
        best_relay, best_bid = bids[best_index]
        best_relays = [best_relay]
        best_relays.extend(
            bids[index][0] for index in rest if bids[index][1].block_hash == best_bid.block_hash
        )

        logger.info(
            "acquired best bid of %s for %s from %s",
            best_bid.value,
            auction_request,
            [str(relay) for relay in best_relays],
        )
        self._outstanding_bids[best_bid.block_hash] = AuctionContext(
            slot=auction_request.slot, relays=best_relays
        )
        return best_bid

    async def open_bid(self, signed_block: SignedBlindedBlock) -> AuctionContents:
        """Fetch the payload for a signed block from the relays that offered its bid."""
        expected_block_hash = signed_block.block_hash
        context = self._get_context(expected_block_hash)

        async def attempt(relay: Relay) -> tuple[Relay, AuctionContents] | None:
            try:
                contents = await asyncio.wait_for(relay.open_bid(signed_block), self.open_bid_timeout)
            except TimeoutError:
                logger.warning("timeout when opening bid with %s", relay)
                return None
            except Exception as err:
                logger.warning("error opening bid with %s: %s", relay, err)
                return None
            return relay, contents

        results = await asyncio.gather(*(attempt(relay) for relay in context.relays))
        for result in results:
            if result is None:
                continue
            relay, contents = result
            try:
                validate_payload(contents, expected_block_hash, signed_block.blob_kzg_commitments)
            except MevError as err:
                logger.warning("could not validate payload from %s: %s", relay, err)
                continue
            logger.info(
                "acquired payload for slot %s, block hash 0x%s, from %s",
                signed_block.slot,
                expected_block_hash.hex(),
                relay,
            )
            return contents

        raise MissingPayloadError(expected_block_hash)