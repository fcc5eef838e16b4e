"""
Transaction signing utilities for P2PKH inputs (SIGHASH_FORKID).
"""

from __future__ import annotations

import struct

from coincurve import PrivateKey

from sharesweep.address import hash160, p2pkh_script_hash
from sharesweep.constants import TX_LOCKTIME, TX_VERSION
from sharesweep.errors import SigningError
from sharesweep.models import TransactionDraft
from sharesweep.tx_builder import (
    hash256,
    serialize_outpoint,
    serialize_output,
    serialize_transaction,
    varint,
)

OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D


def push_data(data: bytes) -> bytes:
    """Minimal script push of ``data``."""
    if len(data) < OP_PUSHDATA1:
        return bytes([len(data)]) + data
    if len(data) <= 0xFF:
        return bytes([OP_PUSHDATA1, len(data)]) + data
    if len(data) <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + struct.pack("<H", len(data)) + data
    raise ValueError(f"Push data too large: {len(data)} bytes")


def compute_sighash_forkid(draft: TransactionDraft, input_index: int, sighash_type: int) -> bytes:
    """
    Compute the FORKID signature hash of one input.

    The preimage layout is the BIP143 one, with the UTXO's locking script as
    the script code and the sighash type carrying the FORKID bit.
    """
    if input_index >= len(draft.inputs):
        raise SigningError("Input index out of range")

    hash_prevouts = hash256(
        b"".join(serialize_outpoint(inp.utxo.txid, inp.utxo.vout) for inp in draft.inputs)
    )
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in draft.inputs))
    hash_outputs = hash256(
        b"".join(serialize_output(out.value, out.script) for out in draft.outputs)
    )

    target = draft.inputs[input_index]
    script_code = target.locking_script

    preimage = (
        struct.pack("<I", TX_VERSION)
        + hash_prevouts
        + hash_sequence
        + serialize_outpoint(target.utxo.txid, target.utxo.vout)
        + varint(len(script_code))
        + script_code
        + struct.pack("<Q", target.value)
        + struct.pack("<I", target.sequence)
        + hash_outputs
        + struct.pack("<I", TX_LOCKTIME)
        + struct.pack("<I", sighash_type)
    )

    return hash256(preimage)


def sign_p2pkh_input(
    draft: TransactionDraft, input_index: int, private_key: PrivateKey
) -> bytes:
    """Sign one input and return its unlocking script: <sig+hashtype> <pubkey>.

    Args:
        draft: The draft being signed
        input_index: Index of the input to sign
        private_key: coincurve PrivateKey instance

    Returns:
        scriptSig bytes
    """
    inp = draft.inputs[input_index]
    pubkey_bytes = private_key.public_key.format(compressed=True)

    try:
        locking_script = inp.locking_script
    except ValueError as e:
        raise SigningError(str(e)) from e

    locked_hash = p2pkh_script_hash(locking_script)
    if locked_hash is None:
        raise SigningError(
            f"Input {input_index} ({inp.utxo.txid}:{inp.utxo.vout}) is not a P2PKH output"
        )
    if locked_hash != hash160(pubkey_bytes):
        raise SigningError(
            f"Input {input_index} ({inp.utxo.txid}:{inp.utxo.vout}) is not locked to this key"
        )

    sighash = compute_sighash_forkid(draft, input_index, inp.sighash_type)

    # The sighash is already SHA256d, so skip coincurve's hashing
    signature = private_key.sign(sighash, hasher=None) + bytes([inp.sighash_type])

    return push_data(signature) + push_data(pubkey_bytes)


def sign_draft(draft: TransactionDraft, private_key: PrivateKey) -> bytes:
    """Sign every input of ``draft`` and return the serialized transaction."""
    if not draft.is_balanced():
        raise SigningError(
            f"Draft is not balanced: inputs {draft.total_input}, "
            f"outputs {draft.total_output}, fee {draft.fee}"
        )

    unlocking_scripts = [
        sign_p2pkh_input(draft, index, private_key) for index in range(len(draft.inputs))
    ]
    return serialize_transaction(draft, unlocking_scripts)
