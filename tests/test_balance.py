"""
Tests for balance aggregation, polling and unit helpers.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from sharesweep.balance import (
    BalanceAggregator,
    BalancePoller,
    coins_to_satoshis,
    format_coins,
    format_satoshis,
    get_explorer_url,
    get_tx_explorer_url,
)
from sharesweep.errors import NetworkError
from sharesweep.models import BalanceSnapshot, NetworkType


class TestBalanceAggregator:
    @pytest.mark.asyncio
    async def test_totals(self, mock_backend) -> None:
        mock_backend.get_balance.return_value = {"confirmed": 120_000, "unconfirmed": 5_000}
        snapshot = await BalanceAggregator(mock_backend).fetch_balance(NetworkType.MAINNET, "1a")

        assert snapshot.confirmed == 120_000
        assert snapshot.unconfirmed == 5_000
        assert snapshot.total == 125_000
        assert snapshot.total_coins == pytest.approx(0.00125)
        assert snapshot.fetched_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_missing_fields_are_zero(self, mock_backend) -> None:
        mock_backend.get_balance.return_value = {"confirmed": 42}
        snapshot = await BalanceAggregator(mock_backend).fetch_balance(NetworkType.MAINNET, "1a")
        assert (snapshot.confirmed, snapshot.unconfirmed, snapshot.total) == (42, 0, 42)

        mock_backend.get_balance.return_value = {"confirmed": None}
        snapshot = await BalanceAggregator(mock_backend).fetch_balance(NetworkType.MAINNET, "1a")
        assert snapshot.total == 0

    @pytest.mark.asyncio
    async def test_pending_spend_reduces_total(self, mock_backend) -> None:
        mock_backend.get_balance.return_value = {"confirmed": 10_000, "unconfirmed": -4_000}
        snapshot = await BalanceAggregator(mock_backend).fetch_balance(NetworkType.MAINNET, "1a")
        assert snapshot.total == 6_000

    @pytest.mark.asyncio
    async def test_failure(self, mock_backend) -> None:
        mock_backend.get_balance.side_effect = NetworkError("HTTP 503", status_code=503)
        with pytest.raises(NetworkError):
            await BalanceAggregator(mock_backend).fetch_balance(NetworkType.MAINNET, "1a")

    @pytest.mark.asyncio
    async def test_malformed_value(self, mock_backend) -> None:
        mock_backend.get_balance.return_value = {"confirmed": "lots"}
        with pytest.raises(NetworkError, match="Malformed"):
            await BalanceAggregator(mock_backend).fetch_balance(NetworkType.MAINNET, "1a")


def make_aggregator(results):
    aggregator = MagicMock()
    aggregator.fetch_balance = AsyncMock(side_effect=results)
    return aggregator


class TestBalancePoller:
    @pytest.mark.asyncio
    async def test_ticks_until_cancelled(self) -> None:
        snapshots = [BalanceSnapshot(confirmed=i, unconfirmed=0, total=i) for i in range(100)]
        aggregator = make_aggregator(snapshots)
        received: list[BalanceSnapshot] = []

        poller = BalancePoller(
            aggregator, NetworkType.MAINNET, "1a", on_update=received.append, interval=0.01
        )
        handle = poller.start()
        while len(received) < 3:
            await asyncio.sleep(0.005)
        handle.cancel()
        await handle.wait()

        count = len(received)
        await asyncio.sleep(0.05)

        assert handle.cancelled
        assert len(received) == count
        assert [s.total for s in received] == list(range(count))

    @pytest.mark.asyncio
    async def test_no_delivery_after_cancel_mid_fetch(self) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_fetch(network, address):
            started.set()
            await release.wait()
            return BalanceSnapshot(confirmed=1, unconfirmed=0, total=1)

        aggregator = MagicMock()
        aggregator.fetch_balance = slow_fetch
        on_update = MagicMock()

        handle = BalancePoller(aggregator, NetworkType.MAINNET, "1a", on_update).start()
        await started.wait()
        handle.cancel()
        release.set()
        await handle.wait()

        on_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_tick_keeps_polling(self) -> None:
        ok = BalanceSnapshot(confirmed=5, unconfirmed=0, total=5)
        aggregator = make_aggregator([NetworkError("HTTP 500"), ok, ok, ok])
        received: list[BalanceSnapshot] = []

        handle = BalancePoller(
            aggregator, NetworkType.MAINNET, "1a", on_update=received.append, interval=0.01
        ).start()
        while not received:
            await asyncio.sleep(0.005)
        handle.cancel()
        await handle.wait()

        assert received[0] == ok

    @pytest.mark.asyncio
    async def test_failing_handler_keeps_polling(self) -> None:
        snapshots = [BalanceSnapshot(confirmed=i, unconfirmed=0, total=i) for i in range(100)]
        aggregator = make_aggregator(snapshots)
        received: list[BalanceSnapshot] = []

        def on_update(snapshot: BalanceSnapshot) -> None:
            if snapshot.total == 0:
                raise RuntimeError("display closed")
            received.append(snapshot)

        handle = BalancePoller(
            aggregator, NetworkType.MAINNET, "1a", on_update=on_update, interval=0.01
        ).start()

        async def two_updates() -> None:
            while len(received) < 2:
                await asyncio.sleep(0.005)

        await asyncio.wait_for(two_updates(), timeout=1.0)
        handle.cancel()
        await handle.wait()

        assert [s.total for s in received[:2]] == [1, 2]

    def test_invalid_interval(self) -> None:
        with pytest.raises(ValueError):
            BalancePoller(MagicMock(), NetworkType.MAINNET, "1a", print, interval=0)

    @pytest.mark.asyncio
    async def test_wait_without_start(self) -> None:
        from sharesweep.balance import PollHandle

        handle = PollHandle()
        handle.cancel()
        await handle.wait()
        assert handle.cancelled


class TestUnits:
    def test_coins_to_satoshis(self) -> None:
        assert coins_to_satoshis("0.0003") == 30_000
        assert coins_to_satoshis(Decimal("1")) == 100_000_000
        assert coins_to_satoshis(0.1) == 10_000_000
        assert coins_to_satoshis("0.000000015") == 2

    def test_coins_to_satoshis_invalid(self) -> None:
        with pytest.raises(ValueError):
            coins_to_satoshis("abc")
        with pytest.raises(ValueError):
            coins_to_satoshis("nan")

    def test_format_coins(self) -> None:
        assert format_coins(0) == "0"
        assert format_coins(0.000000001) == "< 0.00000001"
        assert format_coins(1.0) == "1"
        assert format_coins(0.0012) == "0.0012"

    def test_format_satoshis(self) -> None:
        assert format_satoshis(1234567) == "1,234,567"


def test_explorer_links() -> None:
    assert get_explorer_url(NetworkType.MAINNET, "1abc") == "https://whatsonchain.com/address/1abc"
    assert get_tx_explorer_url(NetworkType.TESTNET, "ff") == "https://test.whatsonchain.com/tx/ff"
