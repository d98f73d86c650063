"""Errors raised by the builder and the relay multiplexer."""

from __future__ import annotations

from typing import Any, Sequence


def _show(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


class MevError(Exception):
    """Base class for every error raised by this package."""


class UnsupportedForkError(MevError):
    """An operation was asked for a fork it does not handle."""

    def __init__(self, fork: Any) -> None:
        self.fork = fork
        super().__init__(f"fork {fork} is not supported for this operation")


class BidPublicKeyMismatchError(MevError):
    """A bid was signed under a key other than the relay's."""

    def __init__(self, bid: Any, relay: Any) -> None:
        self.bid = bid
        self.relay = relay
        super().__init__(
            f"bid public key {_show(bid)} does not match relay public key {_show(relay)}"
        )


class InvalidPayloadHashError(MevError):
    """A relay returned a payload whose block hash differs from the one committed to."""

    def __init__(self, expected: Any, provided: Any) -> None:
        self.expected = expected
        self.provided = provided
        super().__init__(
            f"payload block hash {_show(provided)} does not match expected {_show(expected)}"
        )


class InvalidPayloadBlobsError(MevError):
    """A relay returned blob commitments differing from those committed to."""

    def __init__(self, expected: Sequence[Any], provided: Sequence[Any]) -> None:
        self.expected = list(expected)
        self.provided = list(provided)
        super().__init__(
            f"payload blob commitments do not match: expected {len(self.expected)}, "
            f"provided {len(self.provided)}"
        )


class UnexpectedPayloadBlobsError(MevError):
    """Blobs were present where none were expected, or missing where some were."""

    def __init__(self) -> None:
        super().__init__("payload blobs present when not expected or missing when expected")


class MissingOpenBidError(MevError):
    """No bid is outstanding for the given block hash."""

    def __init__(self, block_hash: Any) -> None:
        self.block_hash = block_hash
        super().__init__(f"missing open bid for block hash {_show(block_hash)}")


class MissingPayloadError(MevError):
    """No relay produced a valid payload for the given block hash."""

    def __init__(self, block_hash: Any) -> None:
        self.block_hash = block_hash
        super().__init__(f"missing payload for block hash {_show(block_hash)}")


class CouldNotRegisterError(MevError):
    """No relay accepted the validator registrations."""

    def __init__(self) -> None:
        super().__init__("could not register with any relay")


class NoBidPreparedError(MevError):
    """No bid was available for the auction request."""

    def __init__(self, auction_request: Any) -> None:
        self.auction_request = auction_request
        super().__init__(f"no bid prepared for request {auction_request}")