"""The auctioneer: opens build auctions for scheduled proposers and submits bids."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, Sequence

from mevkit.attributes import BuilderPayloadBuilderAttributes, ProposalAttributes
from mevkit.auction_schedule import AuctionSchedule, Proposals, Proposer, RelayIndex
from mevkit.clock import ConsensusContext, NewEpoch, NewSlot, convert_timestamp_to_slot
from mevkit.errors import MevError

logger = logging.getLogger(__name__)

# Fetch proposer schedules at this fraction into the epoch; 2 means half-way.
PROPOSAL_SCHEDULE_INTERVAL = 2

DEFAULT_BUILDER_BIDDER_CHANNEL_SIZE = 16

PrepareSubmission = Callable[[Any, bytes, bytes, "BuildAuction", ConsensusContext], Any]


@dataclass
class AuctioneerConfig:
    """The builder's signing key and its public key."""

    secret_key: bytes
    public_key: bytes = b""


@dataclass
class BuildAuction:
    """An open auction for one proposer at one slot."""

    slot: int
    attributes: BuilderPayloadBuilderAttributes
    proposer: Proposer
    relays: set[RelayIndex] = field(default_factory=set)


async def _receive(queue: asyncio.Queue) -> AsyncIterator[Any]:
    while (item := await queue.get()) is not None:
        yield item


class Auctioneer:
    """Coordinates the payload builder, the bidder and the relays.

    ``relays`` provide ``get_proposal_schedule()`` and ``submit_bid(submission)``;
    ``builder`` provides ``new_payload(attributes)``; built payloads carry ``id``
    and ``fees``.
    """

    def __init__(
        self,
        relays: Sequence[Any],
        builder: Any,
        bidder: Any,
        config: AuctioneerConfig,
        context: ConsensusContext,
        genesis_time: int,
        prepare_submission: PrepareSubmission,
    ) -> None:
        self.relays = list(relays)
        self.builder = builder
        self.bidder = bidder
        self.config = config
        self.context = context
        self.genesis_time = genesis_time
        self._prepare_submission = prepare_submission
        self.auction_schedule = AuctionSchedule()
        self.open_auctions: dict[bytes, BuildAuction] = {}
        self._processed_payload_attributes: dict[int, set[bytes]] = {}

    async def fetch_proposer_schedules(self) -> None:
        """Fetch every relay's proposer schedule and record it."""
        for relay_index, relay in enumerate(self.relays):
            try:
                schedule = await relay.get_proposal_schedule()
            except Exception as err:
                logger.warning("error fetching proposer schedule from relay %s: %s", relay, err)
                continue
            slots = self.auction_schedule.process(relay_index, schedule)
            logger.info("processed proposer schedule from %s for slots %s", relay, slots)

    async def on_slot(self, slot: int) -> None:
        """Refresh proposer schedules at the configured point of each epoch."""
        logger.debug("processed slot %s", slot)
        if (slot * PROPOSAL_SCHEDULE_INTERVAL) % self.context.slots_per_epoch == 0:
            await self.fetch_proposer_schedules()

    async def on_epoch(self, epoch: int) -> None:
        """Drop state for slots before the start of ``epoch``."""
        logger.debug("processed epoch %s", epoch)
        retain_slot = epoch * self.context.slots_per_epoch
        self.auction_schedule.clear(retain_slot)
        self.open_auctions = {
            pid: auction for pid, auction in self.open_auctions.items() if auction.slot >= retain_slot
        }
        self._processed_payload_attributes = {
            slot: ids
            for slot, ids in self._processed_payload_attributes.items()
            if slot >= retain_slot
        }

    def _get_proposals(self, slot: int) -> Proposals | None:
        proposals = self.auction_schedule.get_matching_proposals(slot)
        if proposals is None:
            return None
        return {proposer: set(relays) for proposer, relays in proposals.items()}

    def _store_auction(self, auction: BuildAuction) -> BuildAuction:
        return self.open_auctions.setdefault(auction.attributes.payload_id, auction)

    async def _open_auction(
        self,
        slot: int,
        proposer: Proposer,
        relays: set[RelayIndex],
        attributes: BuilderPayloadBuilderAttributes,
    ) -> bytes | None:
        queue: asyncio.Queue = asyncio.Queue(maxsize=DEFAULT_BUILDER_BIDDER_CHANNEL_SIZE)
        proposal = ProposalAttributes(
            proposer_gas_limit=proposer.gas_limit,
            proposer_fee_recipient=proposer.fee_recipient,
            bidder=queue,
        )
        attributes.attach_proposal(proposal)
        auction = self._store_auction(
            BuildAuction(slot=slot, attributes=attributes, proposer=proposer, relays=relays)
        )
        try:
            await self.builder.new_payload(auction.attributes)
        except Exception as err:
            logger.warning("could not start build with payload builder: %s", err)
            return None
        self.bidder.start_bid(auction, _receive(queue))
        return auction.attributes.payload_id

    def observe_payload_id(self, slot: int, payload_id: bytes) -> bool:
        """Record ``payload_id`` for ``slot``; return whether it was new."""
        processed = self._processed_payload_attributes.setdefault(slot, set())
        if payload_id in processed:
            return False
        processed.add(payload_id)
        return True

    async def on_payload_attributes(self, attributes: BuilderPayloadBuilderAttributes) -> None:
        """Open an auction for every proposer scheduled at the attributes' slot."""
        slot = convert_timestamp_to_slot(
            attributes.timestamp, self.genesis_time, self.context.seconds_per_slot
        )
        if slot is None:
            raise ValueError("payload attributes are timestamped before genesis")
        if not self.observe_payload_id(slot, attributes.payload_id):
            logger.debug(
                "ignoring duplicate payload attributes 0x%s", attributes.payload_id.hex()
            )
            return
        proposals = self._get_proposals(slot)
        if not proposals:
            return
        for proposer, relays in proposals.items():
            payload_id = await self._open_auction(
                slot, proposer, relays, dataclasses.replace(attributes)
            )
            if payload_id is not None:
                self.observe_payload_id(slot, payload_id)

    async def submit_payload(self, payload: Any) -> list[RelayIndex]:
        """Submit a built payload to the auction's relays; return those that accepted it.

        Raises ``KeyError`` if no auction is open for the payload.
        """
        auction = self.open_auctions[payload.id]
        successful: list[RelayIndex] = []
        try:
            submission = self._prepare_submission(
                payload, self.config.secret_key, self.config.public_key, auction, self.context
            )
        except MevError as err:
            logger.warning("could not prepare submission for slot %s: %s", auction.slot, err)
            return successful
        for relay_index in sorted(auction.relays):
            if relay_index >= len(self.relays):
                logger.error("could not dispatch to unknown relay %s", relay_index)
                continue
            relay = self.relays[relay_index]
            try:
                await relay.submit_bid(submission)
            except Exception as err:
                logger.warning(
                    "could not submit payload for slot %s to %s: %s", auction.slot, relay, err
                )
                continue
            successful.append(relay_index)
        if successful:
            logger.info(
                "payload 0x%s submitted for slot %s with value %s to %s",
                payload.id.hex(),
                auction.slot,
                payload.fees,
                [str(self.relays[index]) for index in successful],
            )
        return successful

    async def process_clock(self, message: NewSlot | NewEpoch) -> None:
        """Dispatch a clock message."""
        match message:
            case NewSlot(slot=slot):
                await self.on_slot(slot)
            case NewEpoch(epoch=epoch):
                await self.on_epoch(epoch)

    async def _process_payload_event(self, event: Any) -> None:
        if isinstance(event, BuilderPayloadBuilderAttributes):
            await self.on_payload_attributes(event)

    async def run(
        self,
        clock_messages: AsyncIterable[NewSlot | NewEpoch],
        payload_events: AsyncIterable[Any],
        bids: AsyncIterable[Any],
    ) -> None:
        """Process clock messages, payload events and built payloads one at a time.

        Returns once all three sources are exhausted.
        """
        if not self.relays:
            logger.warning("no valid relays provided in config")
        else:
            logger.info("configured with %d relay(s)", len(self.relays))

        await self.fetch_proposer_schedules()

        queue: asyncio.Queue = asyncio.Queue()

        async def pump(handler: Callable[[Any], Awaitable[Any]], source: AsyncIterable[Any]) -> None:
            try:
                async for item in source:
                    await queue.put((handler, item))
            except Exception as err:
                logger.warning("error reading event source: %s", err)
            finally:
                queue.put_nowait(None)

        sources = [
            (self.process_clock, clock_messages),
            (self._process_payload_event, payload_events),
            (self.submit_payload, bids),
        ]
        tasks = [asyncio.create_task(pump(handler, source)) for handler, source in sources]
        remaining = len(tasks)
        try:
            while remaining:
                entry = await queue.get()
                if entry is None:
                    remaining -= 1
                    continue
                handler, item = entry
                await handler(item)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)