"""
sharesweep - transfer engine for keys recovered from backup shares

Fetches the UTXO set of a P2PKH address from an indexer, builds a fixed-amount
or sweep transaction, signs it and broadcasts it.
"""

__version__ = "0.1.0"

from sharesweep.balance import BalanceAggregator, BalancePoller, PollHandle
from sharesweep.broadcast import Broadcaster
from sharesweep.errors import (
    BroadcastError,
    InsufficientFundsError,
    InvalidAddressError,
    InvalidRequestError,
    KeyReconstructionError,
    NetworkError,
    NoFundsError,
    SigningError,
    TransferError,
)
from sharesweep.fees import estimate_fee, estimate_size, get_fee_rates
from sharesweep.keys import CoincurveKeyManager, KeyManager
from sharesweep.models import (
    UTXO,
    BalanceSnapshot,
    FeeQuote,
    FeeRates,
    NetworkType,
    PreparedTransfer,
    TransactionDraft,
    TransferRequest,
    TransferResult,
)
from sharesweep.transfer import TransferOrchestrator
from sharesweep.tx_builder import TransactionBuilder
from sharesweep.utxo import UTXOProvider

__all__ = [
    "BalanceAggregator",
    "BalancePoller",
    "BalanceSnapshot",
    "BroadcastError",
    "Broadcaster",
    "CoincurveKeyManager",
    "FeeQuote",
    "FeeRates",
    "InsufficientFundsError",
    "InvalidAddressError",
    "InvalidRequestError",
    "KeyManager",
    "KeyReconstructionError",
    "NetworkError",
    "NetworkType",
    "NoFundsError",
    "PollHandle",
    "PreparedTransfer",
    "SigningError",
    "TransactionBuilder",
    "TransactionDraft",
    "TransferError",
    "TransferOrchestrator",
    "TransferRequest",
    "TransferResult",
    "UTXO",
    "UTXOProvider",
    "estimate_fee",
    "estimate_size",
    "get_fee_rates",
]
