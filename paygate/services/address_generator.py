"""
Receiving address generation for wallet-backed transactions.

A key pair is a fresh secp256k1 private key from the OS random source and
its pay-to-public-key-hash address:

    address = Base58Check(version || RIPEMD160(SHA256(compressed_pubkey)))
    wif     = Base58Check(wif_prefix || secret || 0x01)

The network is an argument of every call. Private keys must never be logged.
"""

import hashlib
from dataclasses import dataclass
from typing import Tuple

import base58
from Crypto.Hash import RIPEMD160
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from paygate.core.exceptions import UnsupportedCurrencyError
from paygate.schemas.records import CurrencyType, KeyPair, Network

SECRET_LENGTH = 32
COMPRESSED_SUFFIX = b"\x01"


@dataclass(frozen=True)
class AddressFormat:
    address_version: int
    wif_prefix: int


ADDRESS_FORMATS = {
    (CurrencyType.BITCOIN, Network.MAINNET): AddressFormat(0x00, 0x80),
    (CurrencyType.BITCOIN, Network.TESTNET): AddressFormat(0x6F, 0xEF),
    (CurrencyType.DOGE, Network.MAINNET): AddressFormat(0x1E, 0x9E),
    (CurrencyType.DOGE, Network.TESTNET): AddressFormat(0x71, 0xF1),
}

SUPPORTED_CURRENCIES = frozenset(currency for currency, _ in ADDRESS_FORMATS)


def address_format(currency: CurrencyType, network: Network) -> AddressFormat:
    try:
        return ADDRESS_FORMATS[(CurrencyType(currency), Network(network))]
    except (KeyError, ValueError):
        raise UnsupportedCurrencyError(str(getattr(currency, "value", currency)))


def hash160(data: bytes) -> bytes:
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def _p2pkh_address(public_key: ec.EllipticCurvePublicKey, fmt: AddressFormat) -> str:
    point = public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.CompressedPoint,
    )
    return base58.b58encode_check(bytes([fmt.address_version]) + hash160(point)).decode("ascii")


def encode_wif(secret: bytes, fmt: AddressFormat) -> str:
    return base58.b58encode_check(bytes([fmt.wif_prefix]) + secret + COMPRESSED_SUFFIX).decode("ascii")


def decode_wif(wif: str) -> Tuple[int, bytes]:
    """Return (prefix, secret) of a compressed-key WIF string."""
    raw = base58.b58decode_check(wif)
    if len(raw) != 1 + SECRET_LENGTH + 1 or raw[-1:] != COMPRESSED_SUFFIX:
        raise ValueError("Not a compressed-key WIF")
    return raw[0], raw[1:1 + SECRET_LENGTH]


def address_from_private_key(secret: bytes, currency: CurrencyType, network: Network) -> str:
    """Derive the receiving address for a 32-byte secret."""
    if len(secret) != SECRET_LENGTH:
        raise ValueError(f"Private key must be {SECRET_LENGTH} bytes")

    fmt = address_format(currency, network)
    private_key = ec.derive_private_key(int.from_bytes(secret, "big"), ec.SECP256K1())
    return _p2pkh_address(private_key.public_key(), fmt)


def generate_address(currency: CurrencyType, network: Network) -> KeyPair:
    """
    Create a new key pair for `currency` on `network`.

    Raises:
        UnsupportedCurrencyError: If the currency has no address format here
    """
    fmt = address_format(currency, network)

    private_key = ec.generate_private_key(ec.SECP256K1())
    secret = private_key.private_numbers().private_value.to_bytes(SECRET_LENGTH, "big")

    return KeyPair(
        public_key=_p2pkh_address(private_key.public_key(), fmt),
        private_key=encode_wif(secret, fmt),
    )
