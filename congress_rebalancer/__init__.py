"""Congress Rebalancer - turns congressional trade disclosures into rebalancing alerts."""

__version__ = "0.1.0"
