"""
Address balances, unit conversion and explorer links.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from loguru import logger

from sharesweep.backends.base import IndexerBackend
from sharesweep.constants import BALANCE_POLL_INTERVAL, SATOSHIS_PER_COIN
from sharesweep.errors import NetworkError, TransferError
from sharesweep.models import BalanceSnapshot, NetworkType


def satoshis_to_coins(satoshis: int) -> float:
    return satoshis / SATOSHIS_PER_COIN


def coins_to_satoshis(coins: Decimal | str | float) -> int:
    """Convert a coin amount to base units, rounding half up."""
    try:
        value = Decimal(str(coins))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {coins!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {coins!r}")
    return int((value * SATOSHIS_PER_COIN).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_satoshis(satoshis: int) -> str:
    return f"{satoshis:,}"


def format_coins(coins: float) -> str:
    """Format a coin amount with up to 8 decimals, trailing zeros removed."""
    if coins == 0:
        return "0"
    if 0 < coins < 0.00000001:
        return "< 0.00000001"
    return f"{coins:.8f}".rstrip("0").rstrip(".")


def get_explorer_url(network: NetworkType, address: str) -> str:
    return f"{network.explorer_url}/address/{address}"


def get_tx_explorer_url(network: NetworkType, txid: str) -> str:
    return f"{network.explorer_url}/tx/{txid}"


def _base_units(value: Any) -> int:
    # Missing or null fields count as zero
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise NetworkError(f"Malformed balance value from indexer: {value!r}") from e


class BalanceAggregator:
    """Reads confirmed and unconfirmed totals for an address."""

    def __init__(self, backend: IndexerBackend):
        self.backend = backend

    async def fetch_balance(self, network: NetworkType, address: str) -> BalanceSnapshot:
        result = await self.backend.get_balance(network, address)

        confirmed = _base_units(result.get("confirmed"))
        unconfirmed = _base_units(result.get("unconfirmed"))
        snapshot = BalanceSnapshot(
            confirmed=confirmed,
            unconfirmed=unconfirmed,
            total=confirmed + unconfirmed,
        )
        logger.debug(f"Balance for {address}: {snapshot.total} sats")
        return snapshot


class PollHandle:
    """Handle of a running balance poll. Cancelling stops all further ticks."""

    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the poll task has fully stopped."""
        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class BalancePoller:
    """
    Refreshes a balance on a fixed interval.

    Each tick is independent and supersedes the previous snapshot. A failed
    tick is logged and the next one proceeds on schedule. Polling only reads,
    so it can be cancelled at any point.
    """

    def __init__(
        self,
        aggregator: BalanceAggregator,
        network: NetworkType,
        address: str,
        on_update: Callable[[BalanceSnapshot], None],
        interval: float = BALANCE_POLL_INTERVAL,
    ):
        if interval <= 0:
            raise ValueError("Poll interval must be positive")
        self.aggregator = aggregator
        self.network = network
        self.address = address
        self.on_update = on_update
        self.interval = interval

    def start(self) -> PollHandle:
        """Start polling on the running event loop. The first tick runs immediately."""
        handle = PollHandle()
        handle._task = asyncio.get_running_loop().create_task(self._run(handle))
        return handle

    async def _run(self, handle: PollHandle) -> None:
        while not handle.cancelled:
            try:
                snapshot = await self.aggregator.fetch_balance(self.network, self.address)
            except TransferError as e:
                logger.warning(f"Balance refresh failed: {e}")
            else:
                if handle.cancelled:
                    return
                try:
                    self.on_update(snapshot)
                except Exception as e:
                    logger.error(f"Balance update handler failed: {e}")

            await asyncio.sleep(self.interval)
