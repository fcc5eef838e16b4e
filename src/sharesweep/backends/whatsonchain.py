"""
WhatsOnChain indexer backend.

Endpoints (per network, ``main`` or ``test``):
- GET  /address/{addr}/balance
- GET  /address/{addr}/unspent
- GET  /tx/{txid}/out/{vout}/hex   (plain text)
- POST /tx/raw {"txhex": ...}

Every request carries a fixed User-Agent identifying the client.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from sharesweep.backends.base import IndexerBackend
from sharesweep.constants import INDEXER_URL, USER_AGENT
from sharesweep.errors import BroadcastError, NetworkError
from sharesweep.models import NetworkType


class WhatsOnChainBackend(IndexerBackend):
    def __init__(
        self,
        base_url: str = INDEXER_URL,
        user_agent: str = USER_AGENT,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the WhatsOnChain backend.

        Args:
            base_url: API root without the network segment
            user_agent: Client identifier sent with every request
            timeout: Request timeout in seconds
            client: Pre-built client (tests inject one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _url(self, network: NetworkType, endpoint: str) -> str:
        return f"{self.base_url}/{network.indexer_segment}/{endpoint}"

    async def _request(
        self,
        method: str,
        network: NetworkType,
        endpoint: str,
        data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = self._url(network, endpoint)
        headers = {"User-Agent": self.user_agent}

        try:
            if method == "GET":
                response = await self.client.get(url, headers=headers)
            elif method == "POST":
                response = await self.client.post(url, json=data, headers=headers)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.HTTPError as e:
            logger.error(f"Indexer request failed: {endpoint} - {e}")
            raise NetworkError(f"Indexer unreachable: {e}") from e

        logger.debug(f"{method} {endpoint} -> {response.status_code}")
        return response

    async def _get(self, network: NetworkType, endpoint: str) -> httpx.Response:
        response = await self._request("GET", network, endpoint)
        if response.is_error:
            logger.error(f"Indexer returned {response.status_code} for {endpoint}")
            raise NetworkError(
                f"Request to {endpoint} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"Malformed indexer response: {e}") from e

    async def get_balance(self, network: NetworkType, address: str) -> dict[str, Any]:
        response = await self._get(network, f"address/{quote(address, safe='')}/balance")
        result = self._json(response)
        if not isinstance(result, dict):
            raise NetworkError(f"Malformed indexer response: expected an object, got {result!r}")
        return result

    async def get_unspent(self, network: NetworkType, address: str) -> list[dict[str, Any]]:
        response = await self._get(network, f"address/{quote(address, safe='')}/unspent")
        result = self._json(response)
        if not isinstance(result, list):
            raise NetworkError(f"Malformed indexer response: expected a list, got {result!r}")
        return result

    async def get_output_script(self, network: NetworkType, txid: str, vout: int) -> str:
        response = await self._get(network, f"tx/{txid}/out/{vout}/hex")
        return response.text.strip().strip('"')

    async def broadcast_transaction(self, network: NetworkType, tx_hex: str) -> str:
        response = await self._request("POST", network, "tx/raw", data={"txhex": tx_hex})

        if response.is_error:
            reason = response.text.strip() or response.reason_phrase
            logger.error(f"Broadcast rejected: {response.status_code} {reason}")
            raise BroadcastError(reason, status_code=response.status_code)

        # Either {"txid": ...} or a bare (possibly JSON-quoted) id string
        try:
            result = response.json()
        except ValueError:
            result = response.text

        if isinstance(result, dict):
            txid = str(result.get("txid", ""))
        else:
            txid = str(result).strip().strip('"')

        if not txid:
            raise BroadcastError("Indexer returned no transaction id")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
