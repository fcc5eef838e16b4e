"""
Tests for the WhatsOnChain backend (mocked HTTP transport).
"""

from __future__ import annotations

import json

import httpx
import pytest

from sharesweep.backends.whatsonchain import WhatsOnChainBackend
from sharesweep.errors import BroadcastError, NetworkError
from sharesweep.models import NetworkType

BASE_URL = "https://indexer.test/v1/bsv"


def make_backend(handler) -> WhatsOnChainBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WhatsOnChainBackend(base_url=BASE_URL, user_agent="sharesweep-test", client=client)


class TestRequests:
    @pytest.mark.asyncio
    async def test_balance_url_and_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"confirmed": 1500, "unconfirmed": -200})

        backend = make_backend(handler)
        try:
            result = await backend.get_balance(NetworkType.MAINNET, "1addr")
        finally:
            await backend.close()

        assert result == {"confirmed": 1500, "unconfirmed": -200}
        assert str(seen[0].url) == f"{BASE_URL}/main/address/1addr/balance"
        assert seen[0].headers["User-Agent"] == "sharesweep-test"

    @pytest.mark.asyncio
    async def test_unspent_on_testnet(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/bsv/test/address/maddr/unspent"
            return httpx.Response(200, json=[{"tx_hash": "aa" * 32, "tx_pos": 0, "value": 10}])

        backend = make_backend(handler)
        try:
            result = await backend.get_unspent(NetworkType.TESTNET, "maddr")
        finally:
            await backend.close()

        assert result == [{"tx_hash": "aa" * 32, "tx_pos": 0, "value": 10}]

    @pytest.mark.asyncio
    async def test_output_script_is_plain_text(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/v1/bsv/main/tx/{'cc' * 32}/out/2/hex"
            return httpx.Response(200, text="76a914" + "00" * 20 + "88ac\n")

        backend = make_backend(handler)
        try:
            script = await backend.get_output_script(NetworkType.MAINNET, "cc" * 32, 2)
        finally:
            await backend.close()

        assert script == "76a914" + "00" * 20 + "88ac"

    @pytest.mark.asyncio
    async def test_non_success_status(self) -> None:
        backend = make_backend(lambda request: httpx.Response(404, text="Not Found"))
        try:
            with pytest.raises(NetworkError) as exc_info:
                await backend.get_unspent(NetworkType.MAINNET, "1addr")
        finally:
            await backend.close()

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend = make_backend(handler)
        try:
            with pytest.raises(NetworkError, match="unreachable"):
                await backend.get_balance(NetworkType.MAINNET, "1addr")
        finally:
            await backend.close()

    @pytest.mark.asyncio
    async def test_malformed_json(self) -> None:
        backend = make_backend(lambda request: httpx.Response(200, text="<html>"))
        try:
            with pytest.raises(NetworkError, match="Malformed"):
                await backend.get_balance(NetworkType.MAINNET, "1addr")
        finally:
            await backend.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method, body",
        [
            ("get_unspent", {"error": "rate limited"}),
            ("get_balance", ["unexpected"]),
        ],
    )
    async def test_wrong_json_shape(self, method, body) -> None:
        backend = make_backend(lambda request: httpx.Response(200, json=body))
        try:
            with pytest.raises(NetworkError, match="Malformed"):
                await getattr(backend, method)(NetworkType.MAINNET, "1addr")
        finally:
            await backend.close()


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_posts_txhex(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/v1/bsv/main/tx/raw"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json="dd" * 32)

        backend = make_backend(handler)
        try:
            txid = await backend.broadcast_transaction(NetworkType.MAINNET, "0100")
        finally:
            await backend.close()

        assert txid == "dd" * 32
        assert bodies == [{"txhex": "0100"}]

    @pytest.mark.asyncio
    async def test_txid_object_response(self) -> None:
        backend = make_backend(lambda request: httpx.Response(200, json={"txid": "ee" * 32}))
        try:
            assert await backend.broadcast_transaction(NetworkType.TESTNET, "0100") == "ee" * 32
        finally:
            await backend.close()

    @pytest.mark.asyncio
    async def test_rejection_carries_reason(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="257: txn-already-known")

        backend = make_backend(handler)
        try:
            with pytest.raises(BroadcastError, match="txn-already-known") as exc_info:
                await backend.broadcast_transaction(NetworkType.MAINNET, "0100")
        finally:
            await backend.close()

        assert exc_info.value.status_code == 400
        assert exc_info.value.reason == "257: txn-already-known"

    @pytest.mark.asyncio
    async def test_empty_txid(self) -> None:
        backend = make_backend(lambda request: httpx.Response(200, json={}))
        try:
            with pytest.raises(BroadcastError, match="no transaction id"):
                await backend.broadcast_transaction(NetworkType.MAINNET, "0100")
        finally:
            await backend.close()
