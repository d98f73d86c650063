"""Consensus networks, the slot clock and the clock message stream."""

from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable

DEFAULT_COMPONENT_CHANNEL_SIZE = 16


class Network(enum.Enum):
    """Named consensus networks."""

    MAINNET = "mainnet"
    SEPOLIA = "sepolia"
    HOLESKY = "holesky"

    def __str__(self) -> str:
        return self.value


def convert_timestamp_to_slot(timestamp: float, genesis_time: int, seconds_per_slot: int) -> int | None:
    """Return the slot containing ``timestamp``, or ``None`` before genesis."""
    if seconds_per_slot <= 0:
        raise ValueError("seconds_per_slot must be positive")
    if timestamp < genesis_time:
        return None
    return int((timestamp - genesis_time) // seconds_per_slot)


@dataclass
class SlotClock:
    """Maps wall-clock time to slots and epochs."""

    genesis_time: int
    seconds_per_slot: int = 12
    slots_per_epoch: int = 32
    now: Callable[[], float] = field(default=time.time, repr=False)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.seconds_per_slot <= 0 or self.slots_per_epoch <= 0:
            raise ValueError("seconds_per_slot and slots_per_epoch must be positive")

    def slot_at(self, timestamp: float) -> int | None:
        """Return the slot containing ``timestamp``, or ``None`` before genesis."""
        return convert_timestamp_to_slot(timestamp, self.genesis_time, self.seconds_per_slot)

    def epoch_for(self, slot: int) -> int:
        """Return the epoch containing ``slot``."""
        return slot // self.slots_per_epoch

    async def slots(self) -> AsyncIterator[int]:
        """Yield the current slot, then each new slot as it begins.

        Waits for genesis first if it has not yet passed.
        """
        while True:
            now = self.now()
            slot = self.slot_at(now)
            if slot is None:
                await self.sleep(self.genesis_time - now)
                continue
            yield slot
            next_start = self.genesis_time + (slot + 1) * self.seconds_per_slot
            delay = next_start - self.now()
            if delay > 0:
                await self.sleep(delay)


@dataclass(frozen=True)
class ConsensusContext:
    """The timing parameters of a consensus network."""

    network: Network
    genesis_time: int
    seconds_per_slot: int = 12
    slots_per_epoch: int = 32

    def clock_at(self, genesis_time: int | None = None) -> SlotClock:
        """Return a clock for this network, optionally with another genesis time."""
        return SlotClock(
            genesis_time=self.genesis_time if genesis_time is None else genesis_time,
            seconds_per_slot=self.seconds_per_slot,
            slots_per_epoch=self.slots_per_epoch,
        )


_GENESIS_TIMES = {
    Network.MAINNET: 1606824023,
    Network.SEPOLIA: 1655733600,
    Network.HOLESKY: 1695902400,
}


def network_context(network: Network | str) -> ConsensusContext:
    """Return the consensus context of a named network."""
    try:
        network = Network(network) if isinstance(network, str) else network
    except ValueError:
        raise ValueError(f"unknown network: {network}") from None
    return ConsensusContext(network=network, genesis_time=_GENESIS_TIMES[network])


@dataclass(frozen=True)
class NewSlot:
    """A new slot has begun."""

    slot: int


@dataclass(frozen=True)
class NewEpoch:
    """A new epoch has begun."""

    epoch: int


ClockMessage = NewSlot | NewEpoch


async def clock_messages(clock: SlotClock) -> AsyncIterator[ClockMessage]:
    """Yield a ``NewSlot`` per slot and a ``NewEpoch`` whenever the epoch advances.

    The first slot is followed by the epoch it falls in.
    """
    slots = clock.slots()
    try:
        try:
            current_slot = await anext(slots)
        except StopAsyncIteration:
            return
        current_epoch = clock.epoch_for(current_slot)
        yield NewSlot(current_slot)
        yield NewEpoch(current_epoch)
        async for slot in slots:
            yield NewSlot(slot)
            epoch = clock.epoch_for(slot)
            if epoch > current_epoch:
                current_epoch = epoch
                yield NewEpoch(epoch)
    finally:
        await slots.aclose()