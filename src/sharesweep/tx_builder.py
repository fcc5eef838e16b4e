"""
Transaction builder for single-address transfers.

Builds a TransactionDraft from:
- every enriched UTXO of the source address (all of them are spent)
- the destination address
- a fixed amount (recipient + change outputs) or a sweep (single output)
- a fee rate

Also holds the raw transaction (de)serialization used by signing and broadcast.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

from loguru import logger

from sharesweep.address import address_to_scriptpubkey
from sharesweep.constants import FEE_MODEL_OUTPUT_COUNT, TX_LOCKTIME, TX_VERSION
from sharesweep.errors import InsufficientFundsError, InvalidRequestError, NoFundsError
from sharesweep.fees import estimate_fee
from sharesweep.models import UTXO, DraftInput, DraftOutput, NetworkType, TransactionDraft


@dataclass
class ParsedInput:
    txid: str
    vout: int
    script_sig: bytes
    sequence: int


@dataclass
class ParsedOutput:
    value: int
    script: bytes


@dataclass
class ParsedTransaction:
    version: int
    inputs: list[ParsedInput]
    outputs: list[ParsedOutput]
    locktime: int


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read varint at ``offset``, returns (value, new_offset)."""
    first = data[offset]
    if first < 0xFD:
        return first, offset + 1
    elif first == 0xFD:
        return struct.unpack("<H", data[offset + 1 : offset + 3])[0], offset + 3
    elif first == 0xFE:
        return struct.unpack("<I", data[offset + 1 : offset + 5])[0], offset + 5
    else:
        return struct.unpack("<Q", data[offset + 1 : offset + 9])[0], offset + 9


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in display format (big-endian), reversed for raw tx
    return bytes.fromhex(txid)[::-1] + struct.pack("<I", vout)


def serialize_output(value: int, script: bytes) -> bytes:
    return struct.pack("<Q", value) + varint(len(script)) + script


def serialize_transaction(
    draft: TransactionDraft, unlocking_scripts: list[bytes] | None = None
) -> bytes:
    """
    Serialize a draft in the legacy (non-witness) format.

    Args:
        draft: Transaction draft
        unlocking_scripts: scriptSig per input; empty scripts when omitted

    Returns:
        Raw transaction bytes
    """
    if unlocking_scripts is None:
        unlocking_scripts = [b""] * len(draft.inputs)
    if len(unlocking_scripts) != len(draft.inputs):
        raise ValueError("One unlocking script is required per input")

    result = struct.pack("<I", TX_VERSION)

    result += varint(len(draft.inputs))
    for inp, script_sig in zip(draft.inputs, unlocking_scripts, strict=True):
        result += serialize_outpoint(inp.utxo.txid, inp.utxo.vout)
        result += varint(len(script_sig)) + script_sig
        result += struct.pack("<I", inp.sequence)

    result += varint(len(draft.outputs))
    for out in draft.outputs:
        result += serialize_output(out.value, out.script)

    result += struct.pack("<I", TX_LOCKTIME)
    return result


def deserialize_transaction(tx_bytes: bytes) -> ParsedTransaction:
    """Parse a legacy-format raw transaction."""
    try:
        offset = 0
        version = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4

        input_count, offset = read_varint(tx_bytes, offset)
        inputs: list[ParsedInput] = []
        for _ in range(input_count):
            txid = tx_bytes[offset : offset + 32][::-1].hex()
            offset += 32
            vout = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            script_len, offset = read_varint(tx_bytes, offset)
            script_sig = tx_bytes[offset : offset + script_len]
            offset += script_len
            sequence = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            inputs.append(ParsedInput(txid, vout, script_sig, sequence))

        output_count, offset = read_varint(tx_bytes, offset)
        outputs: list[ParsedOutput] = []
        for _ in range(output_count):
            value = struct.unpack("<Q", tx_bytes[offset : offset + 8])[0]
            offset += 8
            script_len, offset = read_varint(tx_bytes, offset)
            script = tx_bytes[offset : offset + script_len]
            offset += script_len
            outputs.append(ParsedOutput(value, script))

        locktime = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4
    except (IndexError, struct.error) as e:
        raise ValueError(f"Failed to parse transaction: {e}") from e

    if offset != len(tx_bytes):
        raise ValueError(f"Trailing data after transaction: {len(tx_bytes) - offset} bytes")

    return ParsedTransaction(version, inputs, outputs, locktime)


def compute_txid(tx_bytes: bytes) -> str:
    """Double SHA256 of the raw transaction, in display order."""
    return hash256(tx_bytes)[::-1].hex()


class TransactionBuilder:
    """
    Assembles transaction drafts.

    All UTXOs passed in become inputs; there is no coin selection. Fees always
    use the 2-output size model, in sweep mode as well, so the fee matches the
    one predicted at balance time.
    """

    def __init__(self, network: NetworkType = NetworkType.MAINNET):
        self.network = network

    def build(
        self,
        utxos: list[UTXO],
        source_address: str,
        destination: str,
        fee_rate: float,
        amount: int | None = None,
    ) -> TransactionDraft:
        """Fixed-amount draft when ``amount`` is given, sweep draft otherwise."""
        if amount is None:
            return self.build_sweep(utxos, destination, fee_rate)
        return self.build_fixed(utxos, source_address, destination, amount, fee_rate)

    def build_fixed(
        self,
        utxos: list[UTXO],
        source_address: str,
        destination: str,
        amount: int,
        fee_rate: float,
    ) -> TransactionDraft:
        """
        Pay ``amount`` to ``destination`` and return the rest, minus fee, to the source.

        Raises:
            InvalidAddressError: If either address is invalid for the network
            NoFundsError: If there are no UTXOs
            InsufficientFundsError: If inputs do not cover amount plus fee
        """
        recipient_script = address_to_scriptpubkey(destination, self.network)
        change_script = address_to_scriptpubkey(source_address, self.network)
        if amount <= 0:
            raise InvalidRequestError(f"Amount must be positive, got {amount}")

        inputs = self._inputs(utxos)
        total_in = sum(inp.value for inp in inputs)
        fee = estimate_fee(len(inputs), FEE_MODEL_OUTPUT_COUNT, fee_rate)

        change = total_in - amount - fee
        if change < 0:
            raise InsufficientFundsError(
                f"Insufficient funds: need {amount + fee} sats "
                f"({amount} + {fee} fee), have {total_in}"
            )

        draft = TransactionDraft(
            inputs=inputs,
            outputs=[
                DraftOutput(script=recipient_script, value=amount),
                DraftOutput(script=change_script, value=change, is_change=True),
            ],
            fee=fee,
        )
        logger.debug(
            f"Built fixed draft: {len(inputs)} inputs, amount={amount}, "
            f"change={change}, fee={fee}"
        )
        return draft

    def build_sweep(self, utxos: list[UTXO], destination: str, fee_rate: float) -> TransactionDraft:
        """
        Send everything, minus fee, to ``destination`` in a single output.

        Raises:
            InvalidAddressError: If the destination is invalid for the network
            NoFundsError: If there are no UTXOs
            InsufficientFundsError: If the fee consumes the whole balance
        """
        recipient_script = address_to_scriptpubkey(destination, self.network)

        inputs = self._inputs(utxos)
        total_in = sum(inp.value for inp in inputs)
        fee = estimate_fee(len(inputs), FEE_MODEL_OUTPUT_COUNT, fee_rate)

        sweep_amount = total_in - fee
        if sweep_amount <= 0:
            raise InsufficientFundsError(
                f"Insufficient funds to sweep: fee {fee} sats, balance {total_in}"
            )

        draft = TransactionDraft(
            inputs=inputs,
            outputs=[DraftOutput(script=recipient_script, value=sweep_amount)],
            fee=fee,
        )
        logger.debug(f"Built sweep draft: {len(inputs)} inputs, amount={sweep_amount}, fee={fee}")
        return draft

    def _inputs(self, utxos: list[UTXO]) -> list[DraftInput]:
        if not utxos:
            raise NoFundsError("No UTXOs available to spend")

        for utxo in utxos:
            if not utxo.script_hex:
                raise ValueError(f"UTXO {utxo.txid}:{utxo.vout} has not been enriched")

        return [DraftInput(utxo=utxo) for utxo in utxos]
