import asyncio
import random

import pytest

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
from mevkit.relay_mux import (
    AuctionContents,
    AuctionRequest,
    Relay,
    RelayMux,
    SignedBlindedBlock,
    SignedBuilderBid,
    select_best_bids,
    validate_bid,
    validate_payload,
)

SIG = b"sig"


def verifier(bid, public_key):
    return bid.signature == SIG


class FakeRelay(Relay):
    def __init__(self, public_key, bid=None, contents=None, fail=False, delay=0.0, name=None):
        super().__init__(public_key, name)
        self.bid = bid
        self.contents = contents
        self.fail = fail
        self.delay = delay
        self.registered = []

    async def register_validators(self, registrations):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise MevError("boom")
        self.registered.extend(registrations)

    async def fetch_best_bid(self, auction_request):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise MevError("boom")
        if self.bid is None:
            raise NoBidPreparedError(auction_request)
        return self.bid

    async def open_bid(self, signed_block):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise MevError("boom")
        return self.contents


def key(n):
    return bytes([n]) * 48


def block_hash(n):
    return bytes([n]) * 32


def make_bid(n_key, value, n_hash, signature=SIG):
    return SignedBuilderBid(value=value, block_hash=block_hash(n_hash), public_key=key(n_key), signature=signature)


REQUEST = AuctionRequest(slot=10, parent_hash=block_hash(9), public_key=key(99))


@pytest.mark.parametrize(
    "values, expected",
    [
        ([], []),
        ([1], [0]),
        ([1, 1], [0, 1]),
        ([1, 2], [1]),
        ([1, 2, 3], [2]),
        ([2, 3, 1], [1]),
        ([3, 2, 1], [0]),
        ([3, 2, 3, 1], [0, 2]),
        ([4, 3, 2, 3, 2, 2, 2, 1], [0]),
        ([4, 4, 3, 2, 3, 2, 2, 2, 1], [0, 1]),
        ([4, 3, 2, 3, 2, 2, 2, 1, 4], [0, 8]),
        ([3, 2, 3, 2, 2, 4, 2, 1, 4], [5, 8]),
        ([3, 2, 2, 2, 2, 1, 3, 4, 4], [7, 8]),
    ],
)
def test_bid_selection_by_value(values, expected):
    best = select_best_bids(enumerate(values))
    assert best == expected
    if best:
        shuffled = list(values)
        random.shuffle(shuffled)
        first, *_ = best
        assert 0 <= first < len(shuffled)


def test_validate_bid_key_mismatch():
    with pytest.raises(BidPublicKeyMismatchError):
        validate_bid(make_bid(1, 5, 1), key(2), verifier)


def test_validate_bid_bad_signature():
    with pytest.raises(MevError):
        validate_bid(make_bid(1, 5, 1, signature=b"bad"), key(1), verifier)


def test_validate_bid_accepts_good_bid():
    assert validate_bid(make_bid(1, 5, 1), key(1), verifier) is None


def test_validate_payload_cases():
    assert validate_payload(AuctionContents(block_hash(1)), block_hash(1), None) is None
    with pytest.raises(InvalidPayloadHashError):
        validate_payload(AuctionContents(block_hash(2)), block_hash(1), None)
    with pytest.raises(InvalidPayloadBlobsError):
        validate_payload(AuctionContents(block_hash(1), (b"a",)), block_hash(1), [b"b"])
    with pytest.raises(UnexpectedPayloadBlobsError):
        validate_payload(AuctionContents(block_hash(1), (b"a",)), block_hash(1), None)
    with pytest.raises(UnexpectedPayloadBlobsError):
        validate_payload(AuctionContents(block_hash(1)), block_hash(1), [b"a"])
    assert validate_payload(AuctionContents(block_hash(1), [b"a"]), block_hash(1), (b"a",)) is None


@pytest.mark.asyncio
async def test_register_validators_partial_success():
    good = FakeRelay(key(1))
    bad = FakeRelay(key(2), fail=True)
    mux = RelayMux([good, bad], verifier)
    await mux.register_validators(["r1", "r2"])
    assert good.registered == ["r1", "r2"]


@pytest.mark.asyncio
async def test_register_validators_all_fail():
    mux = RelayMux([FakeRelay(key(1), fail=True)], verifier)
    with pytest.raises(CouldNotRegisterError):
        await mux.register_validators(["r1"])


@pytest.mark.asyncio
async def test_register_validators_timeout():
    mux = RelayMux([FakeRelay(key(1), delay=1.0)], verifier)
    mux.registration_timeout = 0.01
    with pytest.raises(CouldNotRegisterError):
        await mux.register_validators(["r1"])


@pytest.mark.asyncio
async def test_fetch_best_bid_picks_highest_valid():
    relays = [
        FakeRelay(key(1), bid=make_bid(1, 5, 1)),
        FakeRelay(key(2), bid=make_bid(2, 9, 2)),
        FakeRelay(key(3), bid=make_bid(3, 100, 3, signature=b"bad")),
        FakeRelay(key(4), bid=make_bid(5, 200, 4)),
        FakeRelay(key(6)),
        FakeRelay(key(7), fail=True),
    ]
    mux = RelayMux(relays, verifier)
    bid = await mux.fetch_best_bid(REQUEST)
    assert bid.value == 9
    assert bid.block_hash == block_hash(2)
    context = mux.outstanding_bids[block_hash(2)]
    assert context.slot == REQUEST.slot
    assert context.relays == [relays[1]]


@pytest.mark.asyncio
async def test_fetch_best_bid_groups_relays_with_same_block():
    relays = [
        FakeRelay(key(1), bid=make_bid(1, 7, 1)),
        FakeRelay(key(2), bid=make_bid(2, 7, 1)),
    ]
    mux = RelayMux(relays, verifier)
    bid = await mux.fetch_best_bid(REQUEST)
    assert bid.value == 7
    assert set(mux.outstanding_bids[block_hash(1)].relays) == set(relays)


@pytest.mark.asyncio
async def test_fetch_best_bid_none_prepared():
    mux = RelayMux([FakeRelay(key(1)), FakeRelay(key(2), fail=True)], verifier)
    with pytest.raises(NoBidPreparedError) as info:
        await mux.fetch_best_bid(REQUEST)
    assert info.value.auction_request == REQUEST


@pytest.mark.asyncio
async def test_fetch_best_bid_timeout_skipped():
    slow = FakeRelay(key(1), bid=make_bid(1, 50, 1), delay=1.0)
    fast = FakeRelay(key(2), bid=make_bid(2, 3, 2))
    mux = RelayMux([slow, fast], verifier)
    mux.fetch_best_bid_timeout = 0.01
    bid = await mux.fetch_best_bid(REQUEST)
    assert bid.block_hash == block_hash(2)


@pytest.mark.asyncio
async def test_open_bid_returns_valid_payload():
    good_contents = AuctionContents(block_hash(1), execution_payload="payload")
    relays = [
        FakeRelay(key(1), bid=make_bid(1, 7, 1), contents=AuctionContents(block_hash(5))),
        FakeRelay(key(2), bid=make_bid(2, 7, 1), contents=good_contents),
    ]
    mux = RelayMux(relays, verifier)
    await mux.fetch_best_bid(REQUEST)
    contents = await mux.open_bid(SignedBlindedBlock(slot=10, block_hash=block_hash(1)))
    assert contents == good_contents


@pytest.mark.asyncio
async def test_open_bid_missing_open_bid():
    mux = RelayMux([FakeRelay(key(1))], verifier)
    with pytest.raises(MissingOpenBidError):
        await mux.open_bid(SignedBlindedBlock(slot=10, block_hash=block_hash(1)))


@pytest.mark.asyncio
async def test_open_bid_no_valid_payload():
    relay = FakeRelay(key(1), bid=make_bid(1, 7, 1), contents=AuctionContents(block_hash(2)))
    mux = RelayMux([relay], verifier)
    await mux.fetch_best_bid(REQUEST)
    with pytest.raises(MissingPayloadError) as info:
        await mux.open_bid(SignedBlindedBlock(slot=10, block_hash=block_hash(1)))
    assert info.value.block_hash == block_hash(1)


@pytest.mark.asyncio
async def test_on_slot_prunes_old_auctions():
    relay = FakeRelay(key(1), bid=make_bid(1, 7, 1), contents=AuctionContents(block_hash(1)))
    mux = RelayMux([relay], verifier)
    await mux.fetch_best_bid(REQUEST)
    mux.on_slot(12)
    assert block_hash(1) in mux.outstanding_bids
    mux.on_slot(13)
    assert mux.outstanding_bids == {}
    with pytest.raises(MissingOpenBidError):
        await mux.open_bid(SignedBlindedBlock(slot=10, block_hash=block_hash(1)))


def test_on_slot_near_genesis_keeps_everything():
    mux = RelayMux([], verifier)
    mux.on_slot(0)
    assert mux.outstanding_bids == {}