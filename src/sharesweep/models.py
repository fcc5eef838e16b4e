"""
Data models for the transfer engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from sharesweep.constants import (
    FEE_RATE_FAST,
    FEE_RATE_NORMAL,
    FEE_RATE_SLOW,
    SATOSHIS_PER_COIN,
    SEQUENCE_FINAL,
    SIGHASH_ALL_FORKID,
)

if TYPE_CHECKING:
    from coincurve import PrivateKey


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"

    @property
    def indexer_segment(self) -> str:
        """Path segment used by the indexer API."""
        return "main" if self == NetworkType.MAINNET else "test"

    @property
    def p2pkh_version(self) -> int:
        return 0x00 if self == NetworkType.MAINNET else 0x6F

    @property
    def wif_prefix(self) -> int:
        return 0x80 if self == NetworkType.MAINNET else 0xEF

    @property
    def explorer_url(self) -> str:
        if self == NetworkType.MAINNET:
            return "https://whatsonchain.com"
        return "https://test.whatsonchain.com"


class FeeRates(BaseModel):
    """Named fee rate presets in base units per byte."""

    slow: float = Field(default=FEE_RATE_SLOW, gt=0)
    normal: float = Field(default=FEE_RATE_NORMAL, gt=0)
    fast: float = Field(default=FEE_RATE_FAST, gt=0)

    model_config = {"frozen": True}


@dataclass
class UTXO:
    """Unspent output of the source address."""

    txid: str
    vout: int
    value: int
    script_hex: str | None = None  # Locking script, filled in by enrichment

    @property
    def outpoint(self) -> tuple[str, int]:
        return (self.txid, self.vout)


@dataclass
class DraftInput:
    """Reference to a UTXO plus the template used to unlock it."""

    utxo: UTXO
    sequence: int = SEQUENCE_FINAL
    sighash_type: int = SIGHASH_ALL_FORKID

    @property
    def value(self) -> int:
        return self.utxo.value

    @property
    def locking_script(self) -> bytes:
        if not self.utxo.script_hex:
            raise ValueError(f"UTXO {self.utxo.txid}:{self.utxo.vout} has no locking script")
        return bytes.fromhex(self.utxo.script_hex)


@dataclass
class DraftOutput:
    script: bytes
    value: int
    is_change: bool = False


@dataclass
class TransactionDraft:
    """
    Unsigned transaction ready for signing.

    A finalized draft always satisfies
    ``sum(input values) == sum(output values) + fee``.
    """

    inputs: list[DraftInput]
    outputs: list[DraftOutput]
    fee: int

    @property
    def total_input(self) -> int:
        return sum(inp.value for inp in self.inputs)

    @property
    def total_output(self) -> int:
        return sum(out.value for out in self.outputs)

    @property
    def change_output(self) -> DraftOutput | None:
        for out in self.outputs:
            if out.is_change:
                return out
        return None

    def is_balanced(self) -> bool:
        return self.total_input == self.total_output + self.fee


@dataclass(frozen=True)
class TransferRequest:
    """
    One transfer to perform.

    Exactly one of ``amount`` (fixed-amount mode) or ``sweep`` is active.
    The key is excluded from repr so it never ends up in logs.
    """

    source_key: PrivateKey = field(repr=False)
    destination: str
    network: NetworkType = NetworkType.MAINNET
    fee_rate: float = FEE_RATE_NORMAL
    amount: int | None = None
    sweep: bool = False


@dataclass(frozen=True)
class TransferResult:
    txid: str
    raw_tx_hex: str
    fee: int
    total_sent: int


@dataclass(frozen=True)
class PreparedTransfer:
    """A built, unsigned draft together with the request it was built for."""

    request: TransferRequest
    source_address: str
    draft: TransactionDraft

    @property
    def fee(self) -> int:
        return self.draft.fee

    @property
    def total_sent(self) -> int:
        return self.draft.outputs[0].value


@dataclass(frozen=True)
class BalanceSnapshot:
    confirmed: int
    unconfirmed: int
    total: int
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def confirmed_coins(self) -> float:
        return self.confirmed / SATOSHIS_PER_COIN

    @property
    def unconfirmed_coins(self) -> float:
        return self.unconfirmed / SATOSHIS_PER_COIN

    @property
    def total_coins(self) -> float:
        return self.total / SATOSHIS_PER_COIN


@dataclass(frozen=True)
class FeeQuote:
    """Fee predicted before building, used to gate a transfer."""

    input_count: int
    output_count: int
    fee: int
    available: int

    @property
    def max_sendable(self) -> int:
        return max(self.available - self.fee, 0)
