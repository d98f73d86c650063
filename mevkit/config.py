"""The configuration file shared by the commands."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from typing import Any, Mapping

from mevkit.boost_service import BoostConfig
from mevkit.clock import Network

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """The network and the per-component sections of a configuration file.

    The ``builder`` section is kept as its parsed table.
    """

    network: Network | None = None
    boost: BoostConfig | None = None
    builder: dict[str, Any] | None = None

    @classmethod
    def _from_mapping(cls, data: Mapping[str, Any]) -> Config:
        network = data.get("network")
        if network is not None:
            if not isinstance(network, str):
                raise ValueError("network must be a string")
            try:
                network = Network(network)
            except ValueError:
                raise ValueError(f"unknown network: {network}") from None
        boost = data.get("boost")
        if boost is not None:
            if not isinstance(boost, Mapping):
                raise ValueError("boost must be a table")
            boost = BoostConfig.from_mapping(boost)
        builder = data.get("builder")
        if builder is not None:
            if not isinstance(builder, Mapping):
                raise ValueError("builder must be a table")
            builder = dict(builder)
        return cls(network=network, boost=boost, builder=builder)

    @classmethod
    def from_toml_file(cls, path: str | os.PathLike[str]) -> Config:
        """Load a configuration file; raise ``ValueError`` if it cannot be read or parsed."""
        logger.debug("loading config from %s", path)
        try:
            with open(path, "rb") as file:
                data = tomllib.load(file)
            return cls._from_mapping(data)
        except (OSError, tomllib.TOMLDecodeError, ValueError, TypeError) as err:
            raise ValueError(f"could not parse TOML: {err}") from err