"""Relay multiplexing, build auctions, bidding and the ``mev`` command line."""

__version__ = "0.3.0"
__all__ = ["__version__"]