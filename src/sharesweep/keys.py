"""
Key management collaborator.

The transfer engine only depends on the KeyManager interface. The default
CoincurveKeyManager derives P2PKH addresses, rebuilds a key from backup shares
and signs drafts in memory.
"""

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from collections.abc import Callable

import base58
from coincurve import PrivateKey

from sharesweep.address import hash160, pubkey_to_address
from sharesweep.errors import KeyReconstructionError, SigningError
from sharesweep.models import NetworkType, TransactionDraft
from sharesweep.signing import sign_draft

# secp256k1 field prime; share points live in this field
SECP256K1_P = 2**256 - 2**32 - 977
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

INTEGRITY_LENGTH = 8


class KeyManager(ABC):
    """Key derivation, reconstruction and signing."""

    @abstractmethod
    def derive_address(self, private_key: PrivateKey, network: NetworkType) -> str:
        """P2PKH address controlled by the key"""

    @abstractmethod
    def derive_public_key(self, private_key: PrivateKey) -> str:
        """Compressed public key, hex"""

    @abstractmethod
    def reconstruct_from_shares(self, shares: list[str], threshold: int) -> PrivateKey:
        """Rebuild a private key from at least ``threshold`` backup shares"""

    @abstractmethod
    def sign(self, private_key: PrivateKey, draft: TransactionDraft) -> bytes:
        """Sign every input of the draft, returns raw transaction bytes"""


def private_key_from_wif(wif: str) -> tuple[PrivateKey, NetworkType]:
    """Decode a WIF string into a key and the network its prefix belongs to."""
    try:
        decoded = base58.b58decode_check(wif.strip())
    except ValueError as e:
        raise ValueError(f"Invalid WIF: {e}") from e

    prefix = decoded[0]
    payload = decoded[1:]
    if len(payload) == 33 and payload[-1] == 0x01:
        payload = payload[:-1]
    if len(payload) != 32:
        raise ValueError("Invalid WIF: unexpected key length")

    for network in NetworkType:
        if network.wif_prefix == prefix:
            return PrivateKey(payload), network
    raise ValueError(f"Invalid WIF: unknown prefix {prefix:#x}")


def private_key_to_wif(private_key: PrivateKey, network: NetworkType) -> str:
    """Compressed-key WIF encoding."""
    payload = bytes([network.wif_prefix]) + private_key.secret + b"\x01"
    return base58.b58encode_check(payload).decode("ascii")


def parse_backup_share(share: str) -> tuple[int, int, int, str]:
    """
    Parse a backup share of the form ``base58(x).base58(y).threshold.integrity``.

    Returns:
        (x, y, threshold, integrity)
    """
    parts = share.strip().split(".")
    if len(parts) != 4:
        raise KeyReconstructionError("Invalid share format: expected 4 dot-separated fields")

    try:
        x = int.from_bytes(base58.b58decode(parts[0]), "big")
        y = int.from_bytes(base58.b58decode(parts[1]), "big")
        threshold = int(parts[2])
    except ValueError as e:
        raise KeyReconstructionError(f"Invalid share format: {e}") from e

    return x, y, threshold, parts[3]


def interpolate_at_zero(points: list[tuple[int, int]], prime: int = SECP256K1_P) -> int:
    """Lagrange interpolation of the polynomial through ``points``, evaluated at 0."""
    result = 0
    for i, (xi, yi) in enumerate(points):
        numerator = 1
        denominator = 1
        for j, (xj, _) in enumerate(points):
            if i == j:
                continue
            numerator = numerator * xj % prime
            denominator = denominator * (xj - xi) % prime
        result = (result + yi * numerator * pow(denominator, -1, prime)) % prime
    return result


def key_integrity(private_key: PrivateKey) -> str:
    """Short fingerprint stored in each share to verify reconstruction."""
    pubkey_bytes = private_key.public_key.format(compressed=True)
    return hash160(pubkey_bytes).hex()[:INTEGRITY_LENGTH]


class CoincurveKeyManager(KeyManager):
    """
    coincurve-backed key manager.

    Randomness comes from the ``rng`` callable given at construction (bytes
    count -> bytes); no module or global state is touched.
    """

    def __init__(self, rng: Callable[[int], bytes] = secrets.token_bytes):
        self.rng = rng

    def generate_private_key(self) -> PrivateKey:
        while True:
            secret = self.rng(32)
            if 0 < int.from_bytes(secret, "big") < SECP256K1_N:
                return PrivateKey(secret)

    def derive_address(self, private_key: PrivateKey, network: NetworkType) -> str:
        return pubkey_to_address(private_key.public_key.format(compressed=True), network)

    def derive_public_key(self, private_key: PrivateKey) -> str:
        return private_key.public_key.format(compressed=True).hex()

    def reconstruct_from_shares(self, shares: list[str], threshold: int) -> PrivateKey:
        if threshold < 1:
            raise KeyReconstructionError("Threshold must be at least 1")

        valid_shares = [share for share in shares if share and share.strip()]
        if len(valid_shares) < threshold:
            raise KeyReconstructionError(
                f"Need at least {threshold} valid shares to recover. Got {len(valid_shares)}."
            )

        parsed = [parse_backup_share(share) for share in valid_shares[:threshold]]

        integrities = {integrity for _, _, _, integrity in parsed}
        if len(integrities) != 1:
            raise KeyReconstructionError("Shares belong to different keys")
        for _, _, share_threshold, _ in parsed:
            if share_threshold != threshold:
                raise KeyReconstructionError(
                    f"Share threshold {share_threshold} does not match requested {threshold}"
                )

        points = [(x, y) for x, y, _, _ in parsed]
        if len({x for x, _ in points}) != len(points):
            raise KeyReconstructionError("Duplicate shares supplied")

        secret = interpolate_at_zero(points)
        if not 0 < secret < SECP256K1_N:
            raise KeyReconstructionError("Shares do not reconstruct a valid private key")

        private_key = PrivateKey(secret.to_bytes(32, "big"))
        if key_integrity(private_key) != integrities.pop():
            raise KeyReconstructionError("Integrity check failed: shares are inconsistent")

        return private_key

    def sign(self, private_key: PrivateKey, draft: TransactionDraft) -> bytes:
        try:
            return sign_draft(draft, private_key)
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Failed to sign transaction: {e}") from e
