"""
UTXO retrieval and locking-script enrichment.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from sharesweep.backends.base import IndexerBackend
from sharesweep.constants import ENRICH_BATCH_DELAY, ENRICH_BATCH_SIZE
from sharesweep.errors import NetworkError
from sharesweep.models import UTXO, NetworkType


class UTXOProvider:
    """
    Fetches the unspent outputs of an address and attaches their locking scripts.

    Script lookups are issued in fixed-size batches. Requests within a batch run
    concurrently, batches run one after another with a short pause in between
    so the indexer's rate limit is respected.
    """

    def __init__(
        self,
        backend: IndexerBackend,
        batch_size: int = ENRICH_BATCH_SIZE,
        batch_delay: float = ENRICH_BATCH_DELAY,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.backend = backend
        self.batch_size = batch_size
        self.batch_delay = batch_delay

    async def list_unspent(self, network: NetworkType, address: str) -> list[UTXO]:
        """Unspent outputs of ``address``; empty when the address holds no funds."""
        entries = await self.backend.get_unspent(network, address)

        utxos = []
        for entry in entries:
            try:
                utxos.append(
                    UTXO(
                        txid=entry["tx_hash"],
                        vout=int(entry["tx_pos"]),
                        value=int(entry["value"]),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise NetworkError(f"Malformed unspent entry from indexer: {entry!r}") from e

        logger.debug(f"Found {len(utxos)} UTXOs for {address}")
        return utxos

    async def enrich(self, network: NetworkType, utxos: list[UTXO]) -> list[UTXO]:
        """
        Attach the locking script to every UTXO, in place.

        Args:
            network: Network the UTXOs live on
            utxos: UTXOs to enrich

        Returns:
            The same UTXOs, each with ``script_hex`` set

        Raises:
            NetworkError: If any lookup fails. Remaining batches are not attempted.
        """
        batches = [utxos[i : i + self.batch_size] for i in range(0, len(utxos), self.batch_size)]

        for index, batch in enumerate(batches):
            logger.debug(f"Fetching scripts for batch {index + 1}/{len(batches)} ({len(batch)})")
            # Every lookup in the batch settles before the first failure is raised
            results = await asyncio.gather(
                *(self.backend.get_output_script(network, u.txid, u.vout) for u in batch),
                return_exceptions=True,
            )

            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                for extra in failures[1:]:
                    logger.debug(f"Additional script lookup failure: {extra}")
                first = failures[0]
                if isinstance(first, NetworkError) or not isinstance(first, Exception):
                    raise first
                raise NetworkError(f"Failed to fetch output scripts: {first}") from first

            for utxo, script_hex in zip(batch, results, strict=True):
                if not script_hex:
                    raise NetworkError(f"Indexer returned no script for {utxo.txid}:{utxo.vout}")
                utxo.script_hex = script_hex

            if index < len(batches) - 1:
                await self._pause()

        return utxos

    async def fetch(self, network: NetworkType, address: str) -> list[UTXO]:
        """List and enrich in one go; the snapshot a transfer is built from."""
        utxos = await self.list_unspent(network, address)
        if utxos:
            await self.enrich(network, utxos)
        return utxos

    async def _pause(self) -> None:
        await asyncio.sleep(self.batch_delay)
