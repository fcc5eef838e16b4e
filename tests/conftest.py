"""
Shared fixtures for sharesweep tests.
"""

from __future__ import annotations

import random
from unittest.mock import AsyncMock, MagicMock

import base58
import pytest
from coincurve import PrivateKey

from sharesweep.address import address_to_scriptpubkey
from sharesweep.keys import SECP256K1_P, CoincurveKeyManager, key_integrity
from sharesweep.models import UTXO, NetworkType

FUNDING_TXID = "a1" * 32


def fixed_rng(byte: int):
    """Deterministic randomness source for key generation."""
    return lambda n: bytes([byte]) * n


def make_backup_shares(
    private_key: PrivateKey, threshold: int, total: int, seed: int = 1
) -> list[str]:
    """Split a key into backup-format shares over the secp256k1 field prime."""
    rnd = random.Random(seed)
    secret = int.from_bytes(private_key.secret, "big")
    coefficients = [secret] + [rnd.randrange(1, SECP256K1_P) for _ in range(threshold - 1)]
    integrity = key_integrity(private_key)

    def encode(value: int) -> str:
        return base58.b58encode(value.to_bytes(32, "big")).decode("ascii")

    shares = []
    for _ in range(total):
        x = rnd.randrange(1, SECP256K1_P)
        y = sum(c * pow(x, k, SECP256K1_P) for k, c in enumerate(coefficients)) % SECP256K1_P
        shares.append(f"{encode(x)}.{encode(y)}.{threshold}.{integrity}")
    return shares


@pytest.fixture
def key_manager() -> CoincurveKeyManager:
    return CoincurveKeyManager(rng=fixed_rng(0x07))


@pytest.fixture
def private_key(key_manager: CoincurveKeyManager) -> PrivateKey:
    return key_manager.generate_private_key()


@pytest.fixture
def source_address(key_manager: CoincurveKeyManager, private_key: PrivateKey) -> str:
    return key_manager.derive_address(private_key, NetworkType.MAINNET)


@pytest.fixture
def destination_address() -> str:
    other = CoincurveKeyManager(rng=fixed_rng(0x09))
    return other.derive_address(other.generate_private_key(), NetworkType.MAINNET)


@pytest.fixture
def source_script_hex(source_address: str) -> str:
    return address_to_scriptpubkey(source_address).hex()


@pytest.fixture
def make_utxo(source_script_hex: str):
    """Factory for enriched UTXOs locked to the source key."""

    def _make(value: int, vout: int = 0, txid: str = FUNDING_TXID) -> UTXO:
        return UTXO(txid=txid, vout=vout, value=value, script_hex=source_script_hex)

    return _make


@pytest.fixture
def mock_backend(source_script_hex: str):
    """Indexer backend holding a single 100,000 sat UTXO for the source address."""
    backend = MagicMock()
    backend.get_unspent = AsyncMock(
        return_value=[{"tx_hash": FUNDING_TXID, "tx_pos": 0, "value": 100_000}]
    )
    backend.get_output_script = AsyncMock(return_value=source_script_hex)
    backend.get_balance = AsyncMock(return_value={"confirmed": 100_000, "unconfirmed": 0})
    backend.broadcast_transaction = AsyncMock(return_value="b2" * 32)
    backend.close = AsyncMock()
    return backend


@pytest.fixture
def make_shares():
    return make_backup_shares
