"""
Base indexer backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from sharesweep.models import NetworkType


class IndexerBackend(ABC):
    """
    Abstract ledger indexer interface.

    Implementations only speak the indexer's wire format; interpretation of
    the results belongs to the components consuming them.
    """

    @abstractmethod
    async def get_balance(self, network: NetworkType, address: str) -> dict[str, Any]:
        """Raw balance document: {confirmed, unconfirmed} in base units"""

    @abstractmethod
    async def get_unspent(self, network: NetworkType, address: str) -> list[dict[str, Any]]:
        """Raw unspent entries: [{tx_hash, tx_pos, value}]"""

    @abstractmethod
    async def get_output_script(self, network: NetworkType, txid: str, vout: int) -> str:
        """Locking script hex of a transaction output"""

    @abstractmethod
    async def broadcast_transaction(self, network: NetworkType, tx_hex: str) -> str:
        """Broadcast a raw transaction, returns txid"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
