import base64
import binascii
from hashlib import sha256
from typing import Optional

from bech32 import bech32_decode, bech32_encode, convertbits
from Crypto.Hash import RIPEMD160

from cosmos_exporter.models import ConsensusPubkey

ED25519_PUBKEY = '/cosmos.crypto.ed25519.PubKey'
SECP256K1_PUBKEY = '/cosmos.crypto.secp256k1.PubKey'
ADDRESS_LENGTH = 20


class ConsensusAddress:
    """Consensus address of a validator: the 20 byte hash of its consensus public key."""

    def __init__(self, raw: bytes, prefix: str) -> None:
        self.raw = raw
        self.prefix = prefix

    def __str__(self) -> str:
        return to_bech32(self.prefix, self.raw)

    def __repr__(self) -> str:
        return f'ConsensusAddress({str(self)!r})'

    @property
    def hex(self) -> str:
        return self.raw.hex().upper()


def to_bech32(prefix: str, raw: bytes) -> str:
    data = convertbits(raw, 8, 5)
    if data is None:
        raise ValueError('Failed to convert address bytes to bech32 format')
    return bech32_encode(prefix, data)


def from_bech32(address: str) -> Optional[tuple]:
    """Return ``(prefix, raw_bytes)`` of a bech32 string, or None if it does not decode."""
    prefix, data = bech32_decode(address)
    if prefix is None or data is None:
        return None
    raw = convertbits(data, 5, 8, False)
    if raw is None:
        return None
    return prefix, bytes(raw)


def consensus_address(pubkey: Optional[ConsensusPubkey], prefix: str) -> ConsensusAddress:
    """Derive the consensus address from a validator's ``consensus_pubkey``.

    Raises ValueError if the key is missing, is not valid base64, or has an unsupported type.
    """
    if pubkey is None:
        raise ValueError('validator has no consensus pubkey')
    try:
        key = base64.b64decode(pubkey.key, validate=True)
    except (binascii.Error, ValueError) as error:
        raise ValueError('Invalid base64 consensus public key') from error

    if pubkey.type_url == ED25519_PUBKEY:
        raw = sha256(key).digest()[:ADDRESS_LENGTH]
    elif pubkey.type_url == SECP256K1_PUBKEY:
        raw = RIPEMD160.new(sha256(key).digest()).digest()
    else:
        raise ValueError(f'Unsupported consensus pubkey type {pubkey.type_url}')
    return ConsensusAddress(raw, prefix)


def is_valid_address(address: str, prefix: str) -> bool:
    decoded = from_bech32(address or '')
    if decoded is None:
        return False
    address_prefix, raw = decoded
    return address_prefix == prefix and len(raw) == ADDRESS_LENGTH
