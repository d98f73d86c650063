"""Which proposers expect bids at which slots, and through which relays."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

RelayIndex = int
RelaySet = set[RelayIndex]
Proposals = dict["Proposer", RelaySet]


@dataclass(frozen=True)
class Proposer:
    """A proposer's identity and preferences for a slot."""

    public_key: bytes
    fee_recipient: bytes
    gas_limit: int


@dataclass(frozen=True)
class ProposerSchedule:
    """One entry of a relay's proposer schedule."""

    slot: int
    validator_index: int
    public_key: bytes
    fee_recipient: bytes
    gas_limit: int


class AuctionSchedule:
    """Proposals per slot, each with the set of relays that announced it."""

    def __init__(self) -> None:
        self._schedule: dict[int, Proposals] = {}

    def clear(self, retain_slot: int) -> None:
        """Drop every slot earlier than ``retain_slot``."""
        self._schedule = {
            slot: proposals for slot, proposals in self._schedule.items() if slot >= retain_slot
        }

    def get_matching_proposals(self, slot: int) -> Proposals | None:
        """Return the proposals for ``slot``, or ``None`` if none are known."""
        return self._schedule.get(slot)

    def process(self, relay: RelayIndex, schedule: Iterable[ProposerSchedule]) -> list[int]:
        """Record a relay's schedule and return the slots it covered, in order."""
        slots = []
        for entry in schedule:
            slots.append(entry.slot)
            proposer = Proposer(
                public_key=bytes(entry.public_key),
                fee_recipient=bytes(entry.fee_recipient),
                gas_limit=entry.gas_limit,
            )
            proposals = self._schedule.setdefault(entry.slot, {})
            proposals.setdefault(proposer, set()).add(relay)
        return slots