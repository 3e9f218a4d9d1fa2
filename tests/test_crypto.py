"""Tests for key codecs, keypair derivation and transaction signing."""

from __future__ import annotations

import base64
import hashlib

import hypothesis.strategies as st
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from hypothesis import given

from forgae.constants import DEFAULT_SECRET_KEY
from forgae.crypto import (
    Keypair,
    decode,
    encode,
    generate_keypair,
    hex_to_address,
    is_keypair,
    key_to_hex,
    keypair_from_secret,
    resolve_keypair,
    rlp_encode,
    sign_transaction,
)
from forgae.errors import InvalidKeypairError


@given(st.sampled_from(["ak", "ct", "th", "tx", "cb"]), st.binary(min_size=1, max_size=96))
def test_encode_decode_inverse(prefix: str, payload: bytes) -> None:
    encoded = encode(prefix, payload)
    assert encoded.startswith(f"{prefix}_")
    assert decode(encoded) == payload


def test_base64_checksum_is_verified() -> None:
    tampered = "cb_" + base64.b64encode(b"calldata" + b"\x00\x00\x00\x00").decode("ascii")
    with pytest.raises(ValueError, match="checksum"):
        decode(tampered)


@pytest.mark.parametrize("value", ["", "nounderscore", "ak_", "ak_0OIl"])
def test_decode_rejects_malformed(value: str) -> None:
    with pytest.raises(ValueError):
        decode(value)


def test_key_hex_address_round_trip() -> None:
    keypair = generate_keypair()
    hex_key = key_to_hex(keypair.public_key)

    assert hex_key.startswith("0x")
    assert len(hex_key) == 66
    assert hex_to_address(hex_key) == keypair.public_key
    assert hex_to_address("#" + hex_key[2:]) == keypair.public_key
    assert hex_to_address(int(hex_key, 16)) == keypair.public_key
    assert hex_to_address(keypair.public_key) == keypair.public_key


def test_hex_to_address_pads_short_values() -> None:
    assert decode(hex_to_address("0x1")) == bytes(31) + b"\x01"
    assert hex_to_address(5, prefix="ct").startswith("ct_")


def test_keypair_from_secret() -> None:
    keypair = keypair_from_secret(DEFAULT_SECRET_KEY)
    seed = bytes.fromhex(DEFAULT_SECRET_KEY)[:32]
    expected = Ed25519PrivateKey.from_private_bytes(seed).public_key().public_bytes_raw()

    assert keypair.secret_key == DEFAULT_SECRET_KEY
    assert decode(keypair.public_key) == expected


def test_generated_keypair_is_self_consistent() -> None:
    keypair = generate_keypair()
    assert len(keypair.secret_key) == 128
    assert keypair_from_secret(keypair.secret_key) == keypair
    assert keypair.secret_key.endswith(decode(keypair.public_key).hex())


@pytest.mark.parametrize("secret", ["", "abc", "zz" * 64, "00" * 63, 12345, None])
def test_invalid_secrets_are_rejected(secret) -> None:
    with pytest.raises(InvalidKeypairError) as exc_info:
        keypair_from_secret(secret)
    assert exc_info.value.message.startswith("Incorrect keypair or secret key passed")


def test_resolve_keypair_forms() -> None:
    keypair = generate_keypair()

    assert resolve_keypair(keypair) is keypair
    assert resolve_keypair(keypair.secret_key) == keypair
    assert resolve_keypair(keypair.to_dict()) == keypair
    assert is_keypair(keypair.to_dict())
    assert not is_keypair({"publicKey": keypair.public_key})


def test_resolve_keypair_rejects_mismatched_public_key() -> None:
    keypair, other = generate_keypair(), generate_keypair()
    with pytest.raises(InvalidKeypairError, match="does not match"):
        resolve_keypair({"publicKey": other.public_key, "secretKey": keypair.secret_key})

    with pytest.raises(InvalidKeypairError):
        resolve_keypair(42)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("item", "expected"),
    [
        (b"dog", b"\x83dog"),
        ([b"cat", b"dog"], b"\xc8\x83cat\x83dog"),
        (b"", b"\x80"),
        (0, b"\x80"),
        (15, b"\x0f"),
        (1024, b"\x82\x04\x00"),
        ([], b"\xc0"),
        ([[], [[]], [[], [[]]]], b"\xc7\xc0\xc1\xc0\xc3\xc0\xc1\xc0"),
        (b"a" * 56, b"\xb8\x38" + b"a" * 56),
    ],
)
def test_rlp_encode_vectors(item, expected: bytes) -> None:
    assert rlp_encode(item) == expected


def test_sign_transaction() -> None:
    keypair = generate_keypair()
    tx_bytes = rlp_encode([42, 1, b"payload"])
    tx = encode("tx", tx_bytes)

    signed, tx_hash = sign_transaction(tx, keypair.secret_key, "ae_devnet")

    private = Ed25519PrivateKey.from_private_bytes(bytes.fromhex(keypair.secret_key)[:32])
    signature = private.sign(b"ae_devnet" + tx_bytes)
    Ed25519PublicKey.from_public_bytes(decode(keypair.public_key)).verify(signature, b"ae_devnet" + tx_bytes)

    signed_bytes = rlp_encode([11, 1, [signature], tx_bytes])
    assert signed == encode("tx", signed_bytes)
    assert tx_hash == encode("th", hashlib.blake2b(signed_bytes, digest_size=32).digest())


def test_signature_depends_on_network_id() -> None:
    keypair = generate_keypair()
    tx = encode("tx", rlp_encode([42, 1]))

    assert sign_transaction(tx, keypair.secret_key, "ae_mainnet") != sign_transaction(tx, keypair.secret_key, "ae_uat")


def test_keypair_to_dict() -> None:
    assert Keypair("ak_x", "00").to_dict() == {"publicKey": "ak_x", "secretKey": "00"}
