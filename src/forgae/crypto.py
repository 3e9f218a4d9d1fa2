"""
Identity provider and key codecs.

Keys follow the aeternity conventions:
- public keys are ``ak_`` + base58check(32 raw ed25519 bytes)
- secret keys are 128 hex chars (32 byte seed followed by the public key)
- binary payloads such as transactions and call data are ``tx_``/``cb_`` +
  base64check(payload)

Signing happens locally with ed25519; no key material leaves the process.
"""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from forgae.constants import SECRET_KEY_HEX_LENGTH
from forgae.errors import InvalidKeypairError

# Prefixes encoded with base58check; everything else uses base64check.
_BASE58_PREFIXES = frozenset({"ak", "ct", "th", "kh", "mh", "nm", "ok", "oq", "bk", "bs", "sg"})

SIGNED_TX_TAG = 11
SIGNED_TX_VERSION = 1


@dataclass(frozen=True)
class Keypair:
    public_key: str
    secret_key: str

    def to_dict(self) -> dict[str, str]:
        return {"publicKey": self.public_key, "secretKey": self.secret_key}


def _checksum(payload: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:4]


def encode(prefix: str, payload: bytes) -> str:
    """Encode raw bytes into the prefixed textual form used by the node API."""
    if prefix in _BASE58_PREFIXES:
        return f"{prefix}_{base58.b58encode_check(payload).decode('ascii')}"
    return f"{prefix}_{base64.b64encode(payload + _checksum(payload)).decode('ascii')}"


def decode(value: str) -> bytes:
    """
    Decode a prefixed ``xx_...`` string into raw bytes.

    Raises:
        ValueError: If the prefix is missing or the checksum does not match.
    """
    prefix, sep, body = value.partition("_")
    if not sep or not body:
        raise ValueError(f"Not a prefixed encoded value: {value!r}")

    if prefix in _BASE58_PREFIXES:
        return base58.b58decode_check(body)

    raw = base64.b64decode(body)
    payload, check = raw[:-4], raw[-4:]
    if _checksum(payload) != check:
        raise ValueError(f"Invalid checksum for {prefix}_ value")
    return payload


def key_to_hex(public_key: str) -> str:
    """Convert an ``ak_`` public key to the ``0x`` hex literal Sophia expects."""
    return "0x" + decode(public_key.strip()).hex()


def hex_to_address(value: int | str, prefix: str = "ak") -> str:
    """
    Re-encode a decoded address value into its public textual form.

    Values already in public form are returned untouched.
    """
    if isinstance(value, str):
        s = value.strip()
        if s.startswith(f"{prefix}_"):
            return s
        if s.startswith(("0x", "0X", "#")):
            s = s[1:] if s.startswith("#") else s[2:]
        raw = bytes.fromhex(s.rjust(64, "0"))
    else:
        raw = int(value).to_bytes(32, "big")
    return encode(prefix, raw)


def _public_bytes(seed: bytes) -> bytes:
    private = Ed25519PrivateKey.from_private_bytes(seed)
    return private.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def keypair_from_secret(secret_key: str) -> Keypair:
    """
    Derive the public key for a 128 hex char secret key.

    Raises:
        InvalidKeypairError: If the secret is not a 128 char hex string.
    """
    if not isinstance(secret_key, str):
        raise InvalidKeypairError(f"secret key must be a string, got {type(secret_key).__name__}")

    secret = secret_key.strip()
    if len(secret) != SECRET_KEY_HEX_LENGTH:
        raise InvalidKeypairError(f"secret key must be {SECRET_KEY_HEX_LENGTH} hex chars, got {len(secret)}")
    try:
        raw = bytes.fromhex(secret)
    except ValueError as e:
        raise InvalidKeypairError("secret key is not valid hex") from e

    public = _public_bytes(raw[:32])
    return Keypair(public_key=encode("ak", public), secret_key=secret)


def generate_keypair() -> Keypair:
    private = Ed25519PrivateKey.generate()
    seed = private.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public = _public_bytes(seed)
    return Keypair(public_key=encode("ak", public), secret_key=(seed + public).hex())


def is_keypair(obj: Any) -> bool:
    if isinstance(obj, Keypair):
        return True
    if isinstance(obj, Mapping):
        return isinstance(obj.get("publicKey"), str) and isinstance(obj.get("secretKey"), str)
    return False


def resolve_keypair(keypair_or_secret: Keypair | Mapping[str, str] | str) -> Keypair:
    """
    Accept a Keypair, a ``{"publicKey", "secretKey"}`` mapping or a raw secret.

    Fails fast with InvalidKeypairError; nothing touches the network here.
    """
    if isinstance(keypair_or_secret, Keypair):
        return keypair_or_secret
    if is_keypair(keypair_or_secret):
        derived = keypair_from_secret(keypair_or_secret["secretKey"])  # type: ignore[index]
        if derived.public_key != keypair_or_secret["publicKey"]:  # type: ignore[index]
            raise InvalidKeypairError("public key does not match secret key")
        return derived
    if isinstance(keypair_or_secret, str):
        return keypair_from_secret(keypair_or_secret)
    raise InvalidKeypairError(f"unsupported value of type {type(keypair_or_secret).__name__}")


# ---------------------------------------------------------------------------
# Transaction signing
# ---------------------------------------------------------------------------


def _rlp_int(n: int) -> bytes:
    return b"" if n == 0 else n.to_bytes((n.bit_length() + 7) // 8, "big")


def _rlp_length(length: int, offset: int) -> bytes:
    if length < 56:
        return bytes([offset + length])
    encoded = _rlp_int(length)
    return bytes([offset + 55 + len(encoded)]) + encoded


def rlp_encode(item: bytes | int | list) -> bytes:
    """RLP encode bytes, non-negative ints and nested lists of those."""
    if isinstance(item, int):
        item = _rlp_int(item)
    if isinstance(item, bytes):
        if len(item) == 1 and item[0] < 0x80:
            return item
        return _rlp_length(len(item), 0x80) + item
    body = b"".join(rlp_encode(x) for x in item)
    return _rlp_length(len(body), 0xC0) + body


def sign_transaction(tx: str, secret_key: str, network_id: str) -> tuple[str, str]:
    """
    Sign an encoded ``tx_`` transaction for `network_id`.

    Returns:
        (signed_tx, tx_hash) both in their prefixed textual forms.
    """
    tx_bytes = decode(tx)
    private = Ed25519PrivateKey.from_private_bytes(bytes.fromhex(secret_key.strip())[:32])
    signature = private.sign(network_id.encode("utf-8") + tx_bytes)

    signed = rlp_encode([SIGNED_TX_TAG, SIGNED_TX_VERSION, [signature], tx_bytes])
    tx_hash = encode("th", hashlib.blake2b(signed, digest_size=32).digest())
    return encode("tx", signed), tx_hash
