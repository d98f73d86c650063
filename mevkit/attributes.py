"""Payload builder attributes and payload identifiers."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Sequence


def _require_length(name: str, value: bytes, length: int) -> None:
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(value)}")


@dataclass(frozen=True)
class Withdrawal:
    """A validator withdrawal included in an execution payload."""

    index: int
    validator_index: int
    address: bytes
    amount: int

    def __post_init__(self) -> None:
        _require_length("address", self.address, 20)


def _encode_length(length: int, offset: int) -> bytes:
    if length <= 55:
        return bytes([offset + length])
    encoded = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([offset + 55 + len(encoded)]) + encoded


def rlp_encode(item: Any) -> bytes:
    """RLP-encode bytes, non-negative integers, withdrawals and sequences of them."""
    if isinstance(item, Withdrawal):
        return rlp_encode([item.index, item.validator_index, item.address, item.amount])
    if isinstance(item, bool):
        raise TypeError("cannot RLP-encode a bool")
    if isinstance(item, int):
        if item < 0:
            raise ValueError("cannot RLP-encode a negative integer")
        return rlp_encode(item.to_bytes((item.bit_length() + 7) // 8, "big"))
    if isinstance(item, (bytes, bytearray)):
        data = bytes(item)
        if len(data) == 1 and data[0] < 0x80:
            return data
        return _encode_length(len(data), 0x80) + data
    if isinstance(item, (list, tuple)):
        payload = b"".join(rlp_encode(element) for element in item)
        return _encode_length(len(payload), 0xC0) + payload
    raise TypeError(f"cannot RLP-encode {type(item).__name__}")


@dataclass(frozen=True)
class PayloadAttributes:
    """Payload attributes as received over the engine API."""

    timestamp: int
    prev_randao: bytes
    suggested_fee_recipient: bytes
    withdrawals: tuple[Withdrawal, ...] | None = None
    parent_beacon_block_root: bytes | None = None

    def __post_init__(self) -> None:
        _require_length("prev_randao", self.prev_randao, 32)
        _require_length("suggested_fee_recipient", self.suggested_fee_recipient, 20)
        if self.parent_beacon_block_root is not None:
            _require_length("parent_beacon_block_root", self.parent_beacon_block_root, 32)
        if self.withdrawals is not None:
            object.__setattr__(self, "withdrawals", tuple(self.withdrawals))


def payload_id(parent: bytes, attributes: PayloadAttributes) -> bytes:
    """Derive the 8-byte payload id from the parent hash and the attributes."""
    _require_length("parent", parent, 32)
    hasher = hashlib.sha256()
    hasher.update(parent)
    hasher.update(attributes.timestamp.to_bytes(8, "big"))
    hasher.update(attributes.prev_randao)
    hasher.update(attributes.suggested_fee_recipient)
    if attributes.withdrawals is not None:
        hasher.update(rlp_encode(list(attributes.withdrawals)))
    if attributes.parent_beacon_block_root is not None:
        hasher.update(attributes.parent_beacon_block_root)
    return hasher.digest()[:8]


@dataclass
class ProposalAttributes:
    """The proposer's preferences and the channel to the bidder for one auction."""

    proposer_gas_limit: int
    proposer_fee_recipient: bytes
    bidder: Any = None

    def __post_init__(self) -> None:
        _require_length("proposer_fee_recipient", self.proposer_fee_recipient, 20)


def mix_proposal_into_payload_id(payload_id: bytes, proposal: ProposalAttributes) -> bytes:
    """Derive a payload id distinct per proposer from an existing one."""
    hasher = hashlib.sha256()
    hasher.update(payload_id)
    hasher.update(proposal.proposer_gas_limit.to_bytes(8, "big"))
    hasher.update(proposal.proposer_fee_recipient)
    return hasher.digest()[:8]


@dataclass
class BuilderPayloadBuilderAttributes:
    """Attributes for one payload build, optionally bound to a proposal."""

    payload_id: bytes
    parent: bytes
    timestamp: int
    suggested_fee_recipient: bytes
    prev_randao: bytes
    withdrawals: list[Withdrawal] = field(default_factory=list)
    parent_beacon_block_root: bytes | None = None
    proposal: ProposalAttributes | None = None

    @classmethod
    def from_rpc(cls, parent: bytes, attributes: PayloadAttributes) -> BuilderPayloadBuilderAttributes:
        """Build attributes for ``parent`` from engine API payload attributes."""
        withdrawals: Sequence[Withdrawal] = attributes.withdrawals or ()
        return cls(
            payload_id=payload_id(parent, attributes),
            parent=parent,
            timestamp=attributes.timestamp,
            suggested_fee_recipient=attributes.suggested_fee_recipient,
            prev_randao=attributes.prev_randao,
            withdrawals=list(withdrawals),
            parent_beacon_block_root=attributes.parent_beacon_block_root,
        )

    def attach_proposal(self, proposal: ProposalAttributes) -> None:
        """Bind a proposal and derive the payload id for it."""
        self.payload_id = mix_proposal_into_payload_id(self.payload_id, proposal)
        self.proposal = proposal