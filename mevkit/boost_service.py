"""The boost service: a relay multiplexer driven by the slot clock."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from mevkit.clock import Network, network_context
from mevkit.relay_mux import Relay, RelayMux, Verifier

logger = logging.getLogger(__name__)

DEFAULT_PORT = 18550


@dataclass
class BoostConfig:
    """Where the service listens, which relays it uses and an optional beacon node."""

    host: ipaddress.IPv4Address = field(default_factory=lambda: ipaddress.IPv4Address("0.0.0.0"))
    port: int = DEFAULT_PORT
    relays: list[str] = field(default_factory=list)
    beacon_node_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> BoostConfig:
        """Build a config from parsed configuration data, validating each field."""
        missing = [name for name in ("host", "port", "relays") if name not in data]
        if missing:
            raise ValueError(f"missing field(s) in boost config: {', '.join(missing)}")
        try:
            host = ipaddress.IPv4Address(data["host"])
        except (ipaddress.AddressValueError, ValueError, TypeError):
            raise ValueError(f"invalid host: {data['host']!r}") from None
        port = data["port"]
        if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF:
            raise ValueError(f"invalid port: {port!r}")
        relays = data["relays"]
        if isinstance(relays, str) or not all(isinstance(relay, str) for relay in relays):
            raise ValueError("relays must be a list of strings")
        beacon_node_url = data.get("beacon_node_url")
        if beacon_node_url is not None and not isinstance(beacon_node_url, str):
            raise ValueError("beacon_node_url must be a string")
        return cls(host=host, port=port, relays=list(relays), beacon_node_url=beacon_node_url)


class BoostService:
    """Connects proposers to relays and keeps the multiplexer's auctions current."""

    def __init__(
        self,
        network: Network | str,
        config: BoostConfig,
        relay_factory: Callable[[str], Relay],
        verifier: Verifier | None = None,
    ) -> None:
        self.context = network_context(network)
        self.network = self.context.network
        self.config = config
        self.host = config.host
        self.port = config.port
        self.relays: list[Relay] = []
        for endpoint in config.relays:
            try:
                self.relays.append(relay_factory(endpoint))
            except ValueError as err:
                logger.warning("skipping invalid relay endpoint %r: %s", endpoint, err)
        self.relay_mux = RelayMux(self.relays, verifier)

    async def run(self, clock: Any = None) -> None:
        """Advance the multiplexer on every slot of ``clock`` (the network's clock by default)."""
        if not self.relays:
            logger.warning("no valid relays provided in config")
        else:
            logger.info(
                "configured with %d relay(s): %s", len(self.relays), [str(r) for r in self.relays]
            )
        if clock is None:
            clock = self.context.clock_at()
        # Blocks until genesis if it has not yet passed.
        async for slot in clock.slots():
            self.relay_mux.on_slot(slot)