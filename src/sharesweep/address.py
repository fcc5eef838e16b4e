"""
P2PKH address and script utilities.
"""

from __future__ import annotations

import hashlib

import base58

from sharesweep.errors import InvalidAddressError
from sharesweep.models import NetworkType


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def pubkey_to_address(pubkey_bytes: bytes, network: NetworkType = NetworkType.MAINNET) -> str:
    """Base58Check P2PKH address of a compressed public key."""
    if len(pubkey_bytes) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey_bytes)}")
    payload = bytes([network.p2pkh_version]) + hash160(pubkey_bytes)
    return base58.b58encode_check(payload).decode("ascii")


def address_to_pubkey_hash(address: str, network: NetworkType = NetworkType.MAINNET) -> bytes:
    """
    Decode a P2PKH address and return its 20-byte pubkey hash.

    Raises:
        InvalidAddressError: If the address is malformed or belongs to another network
    """
    address = address.strip()
    if not address:
        raise InvalidAddressError("Destination address is required")

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid address {address!r}: {e}") from e

    if len(decoded) != 21:
        raise InvalidAddressError(f"Invalid address {address!r}: unexpected payload length")

    version = decoded[0]
    if version != network.p2pkh_version:
        raise InvalidAddressError(
            f"Address {address!r} is not a P2PKH address for {network.value}"
        )

    return decoded[1:]


def is_valid_address(address: str, network: NetworkType = NetworkType.MAINNET) -> bool:
    try:
        address_to_pubkey_hash(address, network)
    except InvalidAddressError:
        return False
    return True


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG"""
    return b"\x76\xa9\x14" + pubkey_hash + b"\x88\xac"


def address_to_scriptpubkey(address: str, network: NetworkType = NetworkType.MAINNET) -> bytes:
    return p2pkh_script(address_to_pubkey_hash(address, network))


def p2pkh_script_hash(script: bytes) -> bytes | None:
    """Return the pubkey hash locked by a P2PKH script, or None for other scripts."""
    if (
        len(script) == 25
        and script[:3] == b"\x76\xa9\x14"
        and script[23:] == b"\x88\xac"
    ):
        return script[3:23]
    return None
