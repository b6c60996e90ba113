"""
Cryptographic primitives used by the wallet container.

  - Password → 32-byte symmetric key (PBKDF2-HMAC-SHA256)
  - ChaCha20 stream cipher with an 8-byte nonce (self-inverse)
  - Ed25519 scalar / point helpers backed by libsodium

Secret keys are 32-byte little-endian scalars reduced modulo the group
order *L*; public keys are the compressed point ``secret * B``.
"""

from __future__ import annotations

import hashlib
import os

import nacl.bindings
import nacl.exceptions
from Crypto.Cipher import ChaCha20

KEY_SIZE = 32
NONCE_SIZE = 8
POINT_SIZE = 32
SCALAR_SIZE = 32

NULL_SECRET_KEY = b"\x00" * SCALAR_SIZE

# Ed25519 prime subgroup order (L)
CURVE_ORDER = 2**252 + 27742317777372353535851937790883648493

DEFAULT_KDF_ITERATIONS = 100_000

# The container has no room for a per-file salt, so the KDF salt is a
# fixed domain-separation tag.  Changing it makes every existing file
# unreadable.
_KDF_SALT = b"walletfile/container-key/v1"


# ---- symmetric layer ----

def derive_key(password: str, iterations: int = DEFAULT_KDF_ITERATIONS) -> bytes:
    """Derive the container key from *password*."""
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), _KDF_SALT, iterations, dklen=KEY_SIZE,
    )


def random_nonce() -> bytes:
    return os.urandom(NONCE_SIZE)


def stream_cipher(data: bytes, key: bytes, nonce: bytes) -> bytes:
    """
    XOR *data* with the ChaCha20 keystream for (*key*, *nonce*).

    Length-preserving; applying it twice with the same key and nonce
    returns the original bytes.
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    cipher = ChaCha20.new(key=key, nonce=nonce)
    return cipher.encrypt(bytes(data))


# ---- curve layer ----

# Compressed encoding of the neutral element (x=0, y=1).
IDENTITY_POINT = b"\x01" + b"\x00" * (POINT_SIZE - 1)

_FIELD_PRIME = 2**255 - 19


def is_valid_point(point: bytes) -> bool:
    """
    True if *point* is a canonical encoding of a point on the curve.

    Only decoding is checked: small-order and mixed-order points are
    accepted.
    """
    if len(point) != POINT_SIZE:
        return False
    if int.from_bytes(point, "little") & ((1 << 255) - 1) >= _FIELD_PRIME:
        return False
    try:
        nacl.bindings.crypto_core_ed25519_add(bytes(point), IDENTITY_POINT)
    except nacl.exceptions.RuntimeError:
        return False
    return True


def is_canonical_scalar(secret: bytes) -> bool:
    if len(secret) != SCALAR_SIZE:
        return False
    return int.from_bytes(secret, "little") < CURVE_ORDER


def derive_public_key(secret: bytes) -> bytes | None:
    """
    Return ``secret * B`` or ``None`` when *secret* is not a usable
    scalar (wrong length, not reduced mod L, or zero).
    """
    if not is_canonical_scalar(secret):
        return None
    try:
        return nacl.bindings.crypto_scalarmult_ed25519_base_noclamp(bytes(secret))
    except nacl.exceptions.RuntimeError:
        # identity result: the scalar was zero
        return None


def keys_match(secret: bytes, public: bytes) -> bool:
    """Check that *public* is the canonical public key of *secret*."""
    derived = derive_public_key(secret)
    return derived is not None and derived == public


def generate_keypair() -> tuple[bytes, bytes]:
    """Generate a random (secret, public) Ed25519 key pair."""
    while True:
        secret = nacl.bindings.crypto_core_ed25519_scalar_reduce(os.urandom(64))
        public = derive_public_key(secret)
        if public is not None:
            return secret, public
