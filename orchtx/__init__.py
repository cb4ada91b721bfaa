"""Transaction building, broadcasting with retries, and response parsing for Cosmos-style chains."""

__version__ = "0.1.0"
__all__ = ["snapshots", "tx_broadcaster", "tx_builder", "tx_resp"]