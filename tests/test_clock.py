import pytest

from mevkit.clock import (
    ConsensusContext,
    Network,
    NewEpoch,
    NewSlot,
    SlotClock,
    clock_messages,
    convert_timestamp_to_slot,
    network_context,
)


class FakeTime:
    def __init__(self, start):
        self.current = start
        self.sleeps = []

    def now(self):
        return self.current

    async def sleep(self, delay):
        self.sleeps.append(delay)
        self.current += delay


def make_clock(start, genesis=1000):
    fake = FakeTime(start)
    clock = SlotClock(genesis_time=genesis, seconds_per_slot=12, slots_per_epoch=32, now=fake.now, sleep=fake.sleep)
    return clock, fake


def test_convert_before_genesis_is_none():
    assert convert_timestamp_to_slot(999, 1000, 12) is None


def test_convert_slot_boundaries():
    assert convert_timestamp_to_slot(1000, 1000, 12) == 0
    assert convert_timestamp_to_slot(1011, 1000, 12) == 0
    assert convert_timestamp_to_slot(1012, 1000, 12) == 1


def test_convert_rejects_zero_slot_length():
    with pytest.raises(ValueError):
        convert_timestamp_to_slot(5, 0, 0)


def test_epoch_for():
    clock, _ = make_clock(1000)
    assert clock.epoch_for(31) == 0
    assert clock.epoch_for(32) == 1


def test_slot_at_matches_convert():
    clock, _ = make_clock(1000)
    for ts in (1000, 1050, 4000):
        assert clock.slot_at(ts) == convert_timestamp_to_slot(ts, 1000, 12)


def test_network_context_by_name_and_enum():
    assert network_context("sepolia") == network_context(Network.SEPOLIA)
    ctx = network_context(Network.MAINNET)
    assert ctx.seconds_per_slot == 12
    assert ctx.slots_per_epoch == 32


def test_network_context_unknown():
    with pytest.raises(ValueError):
        network_context("nowhere")


def test_context_clock_override_genesis():
    ctx = ConsensusContext(network=Network.HOLESKY, genesis_time=50)
    assert ctx.clock_at().genesis_time == 50
    assert ctx.clock_at(77).genesis_time == 77


@pytest.mark.asyncio
async def test_slots_wait_for_genesis_then_tick():
    clock, fake = make_clock(990)
    slots = clock.slots()
    assert await anext(slots) == 0
    assert fake.sleeps[0] == 10
    assert await anext(slots) == 1
    assert fake.now() == 1012
    assert await anext(slots) == 2
    await slots.aclose()


@pytest.mark.asyncio
async def test_clock_messages_emit_epochs():
    clock, _ = make_clock(1000 + 31 * 12)
    stream = clock_messages(clock)
    received = [await anext(stream) for _ in range(5)]
    await stream.aclose()
    assert received == [NewSlot(31), NewEpoch(0), NewSlot(32), NewEpoch(1), NewSlot(33)]


@pytest.mark.asyncio
async def test_clock_messages_epoch_only_on_advance():
    clock, _ = make_clock(1000 + 40 * 12)
    stream = clock_messages(clock)
    received = [await anext(stream) for _ in range(6)]
    await stream.aclose()
    epochs = [m for m in received if isinstance(m, NewEpoch)]
    assert epochs == [NewEpoch(1)]