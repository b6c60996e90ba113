"""
Password-protected wallet file codec.

Save:  keys + history + cache → plaintext payload → ChaCha20 → envelope
Load:  envelope → ChaCha20 → payload → verified keys + history + cache

The format has no MAC.  A wrong password is detected because the
decrypted key pairs stop being mathematically consistent (public key ≠
secret · B) or because the decrypted bytes no longer parse.

Payload layout (inside the ciphertext):

    keys {
      creation_timestamp : uint64
      spend_public_key   : byte[32]
      spend_secret_key   : byte[32]   (all zero for view-only wallets)
      view_public_key    : byte[32]
      view_secret_key    : byte[32]
    }
    has_details : bool
    details     : transaction history, present iff has_details
    cache       : bytes

The envelope ``version`` selects how ``details`` is read: ``1`` is the
legacy layout, every other value the current one.

Usage:
    serializer = WalletSerializer(account, history)
    serializer.serialize(stream, "password", save_detailed=True, cache=b"...")
    cache = serializer.deserialize(stream, "password")
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import BinaryIO

from walletfile_core.account import Account, Identity, identity_from_keys
from walletfile_core.config import ContainerConfig
from walletfile_core.container import Container, read_container, write_container
from walletfile_core.crypto_utils import (
    DEFAULT_KDF_ITERATIONS,
    POINT_SIZE,
    SCALAR_SIZE,
    derive_key,
    random_nonce,
    stream_cipher,
)
from walletfile_core.errors import WrongPasswordError
from walletfile_core.serialization import (
    BinaryInputSerializer,
    BinaryOutputSerializer,
    SerializationError,
    dumps,
)
from walletfile_core.transactions_cache import TransactionsCache

logger = logging.getLogger("walletfile.serializer")

LEGACY_V1_VERSION = 1
CURRENT_SERIALIZATION_VERSION = 2


class DetailLayout(Enum):
    LEGACY_V1 = "legacy_v1"
    CURRENT = "current"

    @classmethod
    def for_version(cls, version: int) -> DetailLayout:
        return cls.LEGACY_V1 if version == LEGACY_V1_VERSION else cls.CURRENT


# ===================================================================
#  Encryption
# ===================================================================

def encrypt(
    plain: bytes, password: str, iterations: int = DEFAULT_KDF_ITERATIONS,
) -> tuple[bytes, bytes]:
    """Encrypt *plain* under a fresh nonce. Returns (nonce, ciphertext)."""
    key = derive_key(password, iterations)
    nonce = random_nonce()
    return nonce, stream_cipher(plain, key, nonce)


def decrypt(
    cipher: bytes, password: str, nonce: bytes, iterations: int = DEFAULT_KDF_ITERATIONS,
) -> bytes:
    """Decrypt *cipher*.  Never fails on a wrong password; yields garbage."""
    key = derive_key(password, iterations)
    return stream_cipher(cipher, key, nonce)


# ===================================================================
#  Keys
# ===================================================================

def write_keys(s: BinaryOutputSerializer, identity: Identity) -> None:
    s.begin_object("keys")
    s.uint64(identity.creation_timestamp, "creation_timestamp")
    s.fixed(identity.spend_public_key, POINT_SIZE, "spend_public_key")
    s.fixed(identity.spend_secret_key, SCALAR_SIZE, "spend_secret_key")
    s.fixed(identity.view_public_key, POINT_SIZE, "view_public_key")
    s.fixed(identity.view_secret_key, SCALAR_SIZE, "view_secret_key")
    s.end_object()


def read_keys(s: BinaryInputSerializer) -> Identity:
    s.begin_object("keys")
    creation_timestamp = s.uint64("creation_timestamp")
    spend_public_key = s.fixed(POINT_SIZE, "spend_public_key")
    spend_secret_key = s.fixed(SCALAR_SIZE, "spend_secret_key")
    view_public_key = s.fixed(POINT_SIZE, "view_public_key")
    view_secret_key = s.fixed(SCALAR_SIZE, "view_secret_key")
    s.end_object()
    return identity_from_keys(
        spend_public_key,
        spend_secret_key,
        view_public_key,
        view_secret_key,
        creation_timestamp,
    )


# ===================================================================
#  Serializer
# ===================================================================

class WalletSerializer:
    """
    Saves and loads an account plus its transaction history.

    The serializer keeps references to the caller's ``account`` and
    ``transactions_cache``.  ``deserialize`` replaces their contents only
    after the whole payload has been decoded and the keys verified, so a
    failed load leaves both exactly as they were.
    """

    def __init__(
        self,
        account: Account,
        transactions_cache: TransactionsCache,
        kdf_iterations: int = DEFAULT_KDF_ITERATIONS,
        save_detailed: bool = True,
    ):
        self.account = account
        self.transactions_cache = transactions_cache
        self.kdf_iterations = kdf_iterations
        self.save_detailed = save_detailed
        self.serialization_version = CURRENT_SERIALIZATION_VERSION

    @classmethod
    def from_config(
        cls,
        account: Account,
        transactions_cache: TransactionsCache,
        cfg: ContainerConfig,
    ) -> WalletSerializer:
        return cls(
            account,
            transactions_cache,
            kdf_iterations=cfg.kdf_iterations,
            save_detailed=cfg.save_detailed,
        )

    # ---- save ----

    def serialize(
        self,
        stream: BinaryIO,
        password: str,
        save_detailed: bool | None = None,
        cache: bytes = b"",
    ) -> None:
        """
        Encrypt the wallet and write the envelope to *stream*.

        *save_detailed* defaults to the serializer's own setting.
        """
        if save_detailed is None:
            save_detailed = self.save_detailed
        identity = self.account.identity
        plain = dumps(lambda s: self._save_payload(s, identity, save_detailed, cache))
        nonce, cipher = encrypt(plain, password, self.kdf_iterations)
        write_container(stream, Container(self.serialization_version, nonce, cipher))
        logger.info(
            f"Wallet saved: version={self.serialization_version} "
            f"payload={len(plain)} bytes details={save_detailed}"
        )

    def _save_payload(
        self,
        s: BinaryOutputSerializer,
        identity: Identity,
        save_detailed: bool,
        cache: bytes,
    ) -> None:
        write_keys(s, identity)
        s.boolean(save_detailed, "has_details")
        if save_detailed:
            s.begin_object("details")
            self.transactions_cache.serialize(s)
            s.end_object()
        s.binary(cache, "cache")

    # ---- load ----

    def deserialize(self, stream: BinaryIO, password: str) -> bytes:
        """
        Read and decrypt a wallet from *stream*; return the cache blob.

        Raises
        ------
        MalformedContainerError  envelope cannot be parsed
        WrongPasswordError       payload unreadable or keys inconsistent
        WalletIOError            *stream* cannot be read
        """
        container = read_container(stream)
        layout = DetailLayout.for_version(container.version)
        plain = decrypt(container.ciphertext, password, container.nonce, self.kdf_iterations)

        identity, details, cache = self._load_payload(plain, layout)

        self.account.set_identity(identity)
        if details is not None:
            self.transactions_cache.replace_with(details)
        logger.info(
            f"Wallet loaded: version={container.version} layout={layout.value} "
            f"view_only={self.account.is_view_only}"
        )
        return cache

    def _load_payload(
        self, plain: bytes, layout: DetailLayout,
    ) -> tuple[Identity, TransactionsCache | None, bytes]:
        s = BinaryInputSerializer(plain)

        try:
            identity = read_keys(s)
        except SerializationError as exc:
            logger.warning("Wallet load failed: key block unreadable")
            raise WrongPasswordError() from exc

        if not identity.is_consistent():
            logger.warning("Wallet load failed: key pair mismatch")
            raise WrongPasswordError()

        try:
            details = None
            if s.boolean("has_details"):
                s.begin_object("details")
                if layout is DetailLayout.LEGACY_V1:
                    details = TransactionsCache.deserialize_legacy_v1(s)
                else:
                    details = TransactionsCache.deserialize(s)
                s.end_object()
            cache = s.binary("cache")
        except SerializationError as exc:
            logger.warning(f"Wallet load failed: payload unreadable ({exc})")
            raise WrongPasswordError() from exc

        return identity, details, cache
