"""
Ledger indexer backends.

Available backends:
- WhatsOnChainBackend: public WhatsOnChain REST API (no setup required)
"""

from sharesweep.backends.base import IndexerBackend
from sharesweep.backends.whatsonchain import WhatsOnChainBackend

__all__ = [
    "IndexerBackend",
    "WhatsOnChainBackend",
]
