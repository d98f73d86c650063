# mevkit

Relay multiplexing for block proposers and bid auctions for block builders,
built on `asyncio` with no dependencies outside the standard library.

## What is in the package

- `mevkit.relay_mux`: `RelayMux` fans builder API calls out to a list of
  `Relay` objects. `register_validators` succeeds if at least one relay accepts
  the registrations; otherwise it raises `CouldNotRegisterError`.
  `fetch_best_bid` collects bids from every relay, drops invalid ones, and keeps
  the most valuable one, breaking ties at random. It remembers which relays
  offered that block hash. `open_bid` asks those relays for the payload and
  checks its block hash and blob commitments. `on_slot` forgets auctions older
  than two slots. `Relay` is an abstract base class that you subclass to reach
  a relay.
- `mevkit.boost_service`: `BoostConfig` (host, port, relays, beacon node URL)
  and `BoostService`. The service builds relays from endpoint strings through a
  factory you supply. Its `run(clock)` drives the multiplexer's `on_slot` from
  a slot clock.
- `mevkit.auctioneer`: `Auctioneer` records relay proposer schedules in an
  `AuctionSchedule`. For each payload attributes event, it opens a
  `BuildAuction` per scheduled proposer and starts the `Bidder` on it. It
  submits built payloads to the auction's relays through a `prepare_submission`
  callable you supply. On each new epoch it clears stale state.
- `mevkit.bidder` and `mevkit.strategy`: `Bidder.start_bid` answers each
  revenue update with a value from `BasicStrategy`. The value is a fraction of
  the revenue (`bid_percent`, clamped to 0–1, default 1.0) plus `subsidy_wei`.
- `mevkit.attributes`: `BuilderPayloadBuilderAttributes`, `payload_id`,
  `mix_proposal_into_payload_id` and a small `rlp_encode`.
- `mevkit.clock`: `Network` (mainnet, sepolia, holesky), `network_context`,
  `SlotClock`, `convert_timestamp_to_slot`, and `clock_messages`, which yields
  `NewSlot` and `NewEpoch`.
- `mevkit.config`: `Config.from_toml_file` reads the configuration file.
- `mevkit.errors`: `MevError` and its subclasses.
- `mevkit.version`: version strings.

## Installation

```
pip install .
```

## Command line

```
mev config config.toml     # parse a configuration file and log what was read
mev boost config.toml      # run the boost service for the configured network
mev --version
mev --long-version
```

If no file is given, the config file argument defaults to the `CONFIG_FILE`
environment variable. For `boost`, the fallback is `config.toml`.

The log level comes from the `MEV_LOG` environment variable and defaults to
`info`.

The configuration file is TOML. It has an optional `network` key and a `boost`
table:

```toml
network = "sepolia"

[boost]
host = "0.0.0.0"
port = 18550
relays = ["http://0x<48-byte relay public key in hex>@relay.example.com"]
```

Each relay endpoint must be an http(s) URL. Its user part must be the relay's
48-byte public key in hex. Invalid endpoints are skipped with a warning.

A `builder` table is accepted and kept as the parsed table, but no command
uses it.

## Library use

```python
from mevkit.strategy import BasicStrategy, StrategyConfig

strategy = BasicStrategy(StrategyConfig(bid_percent=0.9, subsidy_wei=1000))
strategy.compute_value(10_000)   # revenue * 90 // 100 + subsidy
```

```python
from mevkit.relay_mux import select_best_bids

select_best_bids(enumerate([3, 2, 3, 1]))   # [0, 2]
```

## What it does not do

- **No builder API server for proposers.** `mev boost` runs only the slot loop
  that expires old auctions. Bids reach the multiplexer only through
  `RelayMux` calls made from your own code.
- **No building of execution payloads.** The package does not execute
  transactions, compute state roots or produce blocks. It has no `build` or
  `relay` command.
- **No payload signing.** `Auctioneer` expects a payload builder object and a
  `prepare_submission` callable from the caller.
- **No bid signature check.** Bid signatures are checked only through an
  optional `verifier` callable.
- **No genesis time from a beacon node.** `beacon_node_url` is read from the
  configuration but not used. Genesis times are the fixed values for the named
  networks.