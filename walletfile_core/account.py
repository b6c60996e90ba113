"""
Account identity for a wallet file.

An identity is a spend key pair, a view key pair and a creation
timestamp.  View-only identities carry no spend secret; on disk that is
written as the all-zero null key, in memory it is a separate type.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Union

from walletfile_core.crypto_utils import (
    NULL_SECRET_KEY,
    generate_keypair,
    is_valid_point,
    keys_match,
)

_UINT64_MAX = 2**64 - 1


def _check_fields(identity, key_fields: tuple[str, ...]) -> None:
    """Reject identities that cannot be written to a wallet file."""
    for name in key_fields:
        value = getattr(identity, name)
        if not isinstance(value, bytes) or len(value) != 32:
            raise ValueError(f"{name} must be 32 bytes")
    ts = identity.creation_timestamp
    if not isinstance(ts, int) or not 0 <= ts <= _UINT64_MAX:
        raise ValueError(f"creation_timestamp out of range: {ts!r}")


@dataclass(frozen=True)
class ViewOnlyIdentity:
    """Identity that can scan for incoming funds but cannot spend."""
    spend_public_key: bytes
    view_public_key: bytes
    view_secret_key: bytes
    creation_timestamp: int = 0

    def __post_init__(self):
        _check_fields(self, ("spend_public_key", "view_public_key", "view_secret_key"))

    @property
    def spend_secret_key(self) -> bytes:
        """Wire form of the missing spend secret."""
        return NULL_SECRET_KEY

    def is_consistent(self) -> bool:
        return (
            keys_match(self.view_secret_key, self.view_public_key)
            and is_valid_point(self.spend_public_key)
        )


@dataclass(frozen=True)
class FullIdentity:
    spend_public_key: bytes
    spend_secret_key: bytes
    view_public_key: bytes
    view_secret_key: bytes
    creation_timestamp: int = 0

    def __post_init__(self):
        _check_fields(self, (
            "spend_public_key", "spend_secret_key", "view_public_key", "view_secret_key",
        ))

    def is_consistent(self) -> bool:
        """True if both public keys are derived from their secrets."""
        return (
            keys_match(self.view_secret_key, self.view_public_key)
            and keys_match(self.spend_secret_key, self.spend_public_key)
        )

    def to_view_only(self) -> ViewOnlyIdentity:
        return ViewOnlyIdentity(
            spend_public_key=self.spend_public_key,
            view_public_key=self.view_public_key,
            view_secret_key=self.view_secret_key,
            creation_timestamp=self.creation_timestamp,
        )


Identity = Union[FullIdentity, ViewOnlyIdentity]


def identity_from_keys(
    spend_public_key: bytes,
    spend_secret_key: bytes,
    view_public_key: bytes,
    view_secret_key: bytes,
    creation_timestamp: int = 0,
) -> Identity:
    """Build the identity variant matching the wire keys."""
    if spend_secret_key == NULL_SECRET_KEY:
        return ViewOnlyIdentity(
            spend_public_key=spend_public_key,
            view_public_key=view_public_key,
            view_secret_key=view_secret_key,
            creation_timestamp=creation_timestamp,
        )
    return FullIdentity(
        spend_public_key=spend_public_key,
        spend_secret_key=spend_secret_key,
        view_public_key=view_public_key,
        view_secret_key=view_secret_key,
        creation_timestamp=creation_timestamp,
    )


class Account:
    """
    Caller-owned holder of a wallet identity.

    The identity is immutable; loading a wallet file swaps in a new one
    with a single assignment.
    """

    def __init__(self, identity: Identity | None = None):
        self._identity = identity

    @classmethod
    def create(cls) -> Account:
        """Generate a fresh account with random spend and view keys."""
        spend_sec, spend_pub = generate_keypair()
        view_sec, view_pub = generate_keypair()
        return cls(FullIdentity(
            spend_public_key=spend_pub,
            spend_secret_key=spend_sec,
            view_public_key=view_pub,
            view_secret_key=view_sec,
            creation_timestamp=int(time.time()),
        ))

    @property
    def identity(self) -> Identity:
        if self._identity is None:
            raise ValueError("Account has no keys")
        return self._identity

    def set_identity(self, identity: Identity) -> None:
        self._identity = identity

    @property
    def has_keys(self) -> bool:
        return self._identity is not None

    @property
    def is_view_only(self) -> bool:
        return isinstance(self._identity, ViewOnlyIdentity)

    @property
    def creation_timestamp(self) -> int:
        return self.identity.creation_timestamp

    def to_view_only(self) -> Account:
        """Return a new account holding only the view-capable keys."""
        identity = self.identity
        if isinstance(identity, FullIdentity):
            identity = identity.to_view_only()
        return Account(identity)

    def __repr__(self) -> str:
        if self._identity is None:
            return "Account(<empty>)"
        kind = "view-only" if self.is_view_only else "full"
        return f"Account({kind}, spend={self._identity.spend_public_key.hex()[:16]}…)"
