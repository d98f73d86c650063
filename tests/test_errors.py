import pytest

from mevkit.errors import (
    BidPublicKeyMismatchError,
    InvalidPayloadBlobsError,
    InvalidPayloadHashError,
    MevError,
    MissingOpenBidError,
    MissingPayloadError,
    NoBidPreparedError,
    UnsupportedForkError,
)


def test_unsupported_fork_message():
    err = UnsupportedForkError("bellatrix")
    assert str(err) == "fork bellatrix is not supported for this operation"
    assert err.fork == "bellatrix"


@pytest.mark.parametrize(
    "cls, args, attribute, expected",
    [
        (UnsupportedForkError, ("phase0",), "fork", "phase0"),
        (BidPublicKeyMismatchError, (b"\x01", b"\x02"), "bid", b"\x01"),
        (InvalidPayloadHashError, (b"\x01", b"\x02"), "provided", b"\x02"),
        (InvalidPayloadBlobsError, ([b"a"], [b"b"]), "expected", [b"a"]),
        (MissingOpenBidError, (b"\x03",), "block_hash", b"\x03"),
        (MissingPayloadError, (b"\x04",), "block_hash", b"\x04"),
        (NoBidPreparedError, ("request",), "auction_request", "request"),
    ],
)
def test_errors_share_base_and_keep_fields(cls, args, attribute, expected):
    err = cls(*args)
    assert getattr(err, attribute) == expected
    assert isinstance(err, MevError)
    assert str(err) != ""


def test_mismatch_keeps_keys_and_shows_hex():
    err = BidPublicKeyMismatchError(b"\xab", b"\xcd")
    assert err.bid == b"\xab"
    assert err.relay == b"\xcd"
    assert "0xab" in str(err) and "0xcd" in str(err)


def test_hash_error_keeps_values():
    err = InvalidPayloadHashError(b"\x11", b"\x22")
    assert (err.expected, err.provided) == (b"\x11", b"\x22")


def test_blob_error_copies_sequences():
    expected = (b"x", b"y")
    err = InvalidPayloadBlobsError(expected, [])
    assert err.expected == [b"x", b"y"]
    assert err.provided == []


def test_missing_bid_and_payload_keep_hash():
    assert MissingOpenBidError(b"\x09").block_hash == b"\x09"
    assert MissingPayloadError(b"\x0a").block_hash == b"\x0a"


def test_no_bid_prepared_keeps_request():
    err = NoBidPreparedError({"slot": 5})
    assert err.auction_request == {"slot": 5}