"""
Transfer orchestration: UTXOs -> draft -> signature -> broadcast.
"""

from __future__ import annotations

import math

from loguru import logger

from sharesweep.address import address_to_pubkey_hash
from sharesweep.backends.base import IndexerBackend
from sharesweep.broadcast import Broadcaster
from sharesweep.constants import ENRICH_BATCH_DELAY, ENRICH_BATCH_SIZE, FEE_MODEL_OUTPUT_COUNT
from sharesweep.errors import (
    InsufficientFundsError,
    InvalidAddressError,
    InvalidRequestError,
    NoFundsError,
)
from sharesweep.fees import estimate_fee
from sharesweep.keys import CoincurveKeyManager, KeyManager
from sharesweep.models import (
    FeeQuote,
    NetworkType,
    PreparedTransfer,
    TransferRequest,
    TransferResult,
)
from sharesweep.tx_builder import TransactionBuilder, compute_txid
from sharesweep.utxo import UTXOProvider


def validate_request(request: TransferRequest) -> None:
    """
    Check the request shape before anything touches the network.

    Raises:
        InvalidAddressError: Destination missing or not valid for the network
        InvalidRequestError: Bad fee rate, or not exactly one of amount / sweep
    """
    if not request.destination or not request.destination.strip():
        raise InvalidAddressError("Recipient address is required")
    address_to_pubkey_hash(request.destination, request.network)

    if not math.isfinite(request.fee_rate) or request.fee_rate <= 0:
        raise InvalidRequestError(f"Fee rate must be a positive number, got {request.fee_rate}")

    if request.sweep and request.amount is not None:
        raise InvalidRequestError("Specify either an amount or sweep, not both")
    if not request.sweep:
        if request.amount is None:
            raise InvalidRequestError("Amount is required when not sweeping all")
        if request.amount <= 0:
            raise InvalidRequestError("Amount must be a positive number")


def check_affordable(quote: FeeQuote, amount: int | None = None) -> None:
    """
    Gate a transfer on a fee quote. ``amount=None`` means sweep.

    Raises:
        NoFundsError: Nothing to spend
        InsufficientFundsError: Amount plus fee exceeds what is available
    """
    if quote.input_count == 0:
        raise NoFundsError("No UTXOs available to spend")
    if amount is None:
        if quote.available <= quote.fee:
            raise InsufficientFundsError("Insufficient balance to cover fee")
    elif amount + quote.fee > quote.available:
        raise InsufficientFundsError("Insufficient balance (including fee)")


class TransferOrchestrator:
    """
    Runs one transfer per call.

    Stages run strictly in order and each uses the previous one's output:
    fetch + enrich UTXOs, build, sign, broadcast. The UTXO snapshot is fetched
    once and used for both fee and build. Nothing is broadcast unless signing
    succeeded, and nothing is retried.

    ``prepare`` and ``commit`` split the flow at the signing boundary so a
    caller can show the exact fee and amount of the draft before it is signed.
    """

    def __init__(
        self,
        backend: IndexerBackend,
        key_manager: KeyManager | None = None,
        batch_size: int = ENRICH_BATCH_SIZE,
        batch_delay: float = ENRICH_BATCH_DELAY,
    ):
        self.key_manager = key_manager or CoincurveKeyManager()
        self.utxo_provider = UTXOProvider(backend, batch_size=batch_size, batch_delay=batch_delay)
        self.broadcaster = Broadcaster(backend)

    async def transfer(self, request: TransferRequest) -> TransferResult:
        prepared = await self.prepare(request)
        return await self.commit(prepared)

    async def prepare(self, request: TransferRequest) -> PreparedTransfer:
        """
        Validate, fetch the UTXO snapshot and build the unsigned draft.

        Raises:
            InvalidAddressError, InvalidRequestError: Before any network call
            NoFundsError: The source address holds no UTXOs
            InsufficientFundsError: The snapshot does not cover amount plus fee
            NetworkError: Listing or enrichment failed
        """
        validate_request(request)
        network = request.network

        source_address = self.key_manager.derive_address(request.source_key, network)
        mode = "sweep" if request.sweep else f"{request.amount} sats"
        logger.info(f"Transfer {mode} from {source_address} to {request.destination}")

        utxos = await self.utxo_provider.fetch(network, source_address)
        if not utxos:
            raise NoFundsError(f"No UTXOs available to spend at {source_address}")
        logger.info(f"Spending {len(utxos)} UTXOs ({sum(u.value for u in utxos)} sats)")

        draft = TransactionBuilder(network).build(
            utxos,
            source_address,
            request.destination.strip(),
            request.fee_rate,
            amount=None if request.sweep else request.amount,
        )
        return PreparedTransfer(request=request, source_address=source_address, draft=draft)

    async def commit(self, prepared: PreparedTransfer) -> TransferResult:
        """Sign the prepared draft and broadcast it."""
        request = prepared.request

        signed = self.key_manager.sign(request.source_key, prepared.draft)
        raw_tx_hex = signed.hex()
        logger.info(f"Signed transaction {compute_txid(signed)} (fee {prepared.fee} sats)")

        txid = await self.broadcaster.broadcast(request.network, raw_tx_hex)

        return TransferResult(
            txid=txid,
            raw_tx_hex=raw_tx_hex,
            fee=prepared.fee,
            total_sent=prepared.total_sent,
        )

    async def quote(
        self,
        address: str,
        network: NetworkType,
        fee_rate: float,
    ) -> FeeQuote:
        """
        Predict the fee of spending everything at ``address``.

        Uses the same 2-output size model as the builder, for sweeps too, so
        the prediction matches the fee the transfer will pay. The quote is the
        same for both modes; ``check_affordable`` applies the mode.
        """
        utxos = await self.utxo_provider.list_unspent(network, address)
        fee = estimate_fee(len(utxos), FEE_MODEL_OUTPUT_COUNT, fee_rate)
        return FeeQuote(
            input_count=len(utxos),
            output_count=FEE_MODEL_OUTPUT_COUNT,
            fee=fee,
            available=sum(u.value for u in utxos),
        )
