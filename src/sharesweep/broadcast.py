"""
Broadcast of signed transactions through the indexer.
"""

from __future__ import annotations

from loguru import logger

from sharesweep.backends.base import IndexerBackend
from sharesweep.models import NetworkType


class Broadcaster:
    def __init__(self, backend: IndexerBackend):
        self.backend = backend

    async def broadcast(self, network: NetworkType, raw_tx_hex: str) -> str:
        """
        Submit a raw transaction and return the txid assigned by the network.

        Raises:
            BroadcastError: The indexer rejected the transaction (fee too low,
                double spend, malformed, ...). Not retried; a caller usually
                retries with a fresh UTXO snapshot.
            NetworkError: The indexer could not be reached
        """
        logger.info(f"Broadcasting transaction ({len(raw_tx_hex) // 2} bytes) on {network.value}")
        txid = await self.backend.broadcast_transaction(network, raw_tx_hex)
        logger.info(f"Broadcast transaction: {txid}")
        return txid
