"""
Outer envelope of a wallet file.

    wallet {
      version : uint32 (varint)
      iv      : byte[8]
      data    : bytes (varint length + ciphertext)
    }

Nothing follows the object; trailing bytes make the envelope malformed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

from walletfile_core.crypto_utils import NONCE_SIZE
from walletfile_core.errors import MalformedContainerError, WalletIOError
from walletfile_core.serialization import (
    BinaryInputSerializer,
    BinaryOutputSerializer,
    SerializationError,
    dumps,
    loads,
)


@dataclass(frozen=True)
class Container:
    version: int
    nonce: bytes
    ciphertext: bytes


def _write(s: BinaryOutputSerializer, container: Container) -> None:
    s.begin_object("wallet")
    s.uint32(container.version, "version")
    s.fixed(container.nonce, NONCE_SIZE, "iv")
    s.binary(container.ciphertext, "data")
    s.end_object()


def _read(s: BinaryInputSerializer) -> Container:
    s.begin_object("wallet")
    version = s.uint32("version")
    nonce = s.fixed(NONCE_SIZE, "iv")
    ciphertext = s.binary("data")
    s.end_object()
    return Container(version, nonce, ciphertext)


def encode_container(container: Container) -> bytes:
    return dumps(lambda s: _write(s, container))


def decode_container(data: bytes) -> Container:
    """Parse an envelope; raises ``MalformedContainerError``."""
    try:
        return loads(data, _read)
    except SerializationError as exc:
        raise MalformedContainerError(f"Malformed wallet container: {exc}") from exc


def write_container(stream: BinaryIO, container: Container) -> None:
    """Write the envelope to *stream* and flush it."""
    blob = encode_container(container)
    try:
        stream.write(blob)
        stream.flush()
    except OSError as exc:
        raise WalletIOError(f"Failed to write wallet container: {exc}") from exc


def read_container(stream: BinaryIO) -> Container:
    try:
        data = stream.read()
    except OSError as exc:
        raise WalletIOError(f"Failed to read wallet container: {exc}") from exc
    return decode_container(data)
