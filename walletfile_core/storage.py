"""
Wallet file persistence.

Saves are atomic: the envelope is written to a temporary file in the
target directory and moved over the old file with ``os.replace``, so an
interrupted save never leaves a half-written wallet behind.

Usage:
    serializer = WalletSerializer(account, history)
    save_wallet_file("data/wallet.bin", serializer, "password")
    cache = load_wallet_file("data/wallet.bin", serializer, "password")

    # or, with the path taken from [storage] wallet_file
    save_wallet(cfg.storage, serializer, "password")
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
from pathlib import Path

from walletfile_core.config import StorageConfig
from walletfile_core.errors import WalletIOError
from walletfile_core.wallet_serializer import WalletSerializer

logger = logging.getLogger("walletfile.storage")


def save_wallet_file(
    path: str | os.PathLike,
    serializer: WalletSerializer,
    password: str,
    save_detailed: bool | None = None,
    cache: bytes = b"",
) -> None:
    buf = io.BytesIO()
    serializer.serialize(buf, password, save_detailed, cache)
    data = buf.getvalue()

    target = Path(path)
    tmp_name = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as exc:
        raise WalletIOError(f"Failed to write wallet file {target}: {exc}") from exc
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.debug(f"Could not remove temporary file {tmp_name}")
    logger.info(f"Wallet file written: {target} ({len(data)} bytes)")


def load_wallet_file(
    path: str | os.PathLike,
    serializer: WalletSerializer,
    password: str,
) -> bytes:
    """Load the wallet at *path* into *serializer*'s account; return the cache."""
    target = Path(path)
    try:
        data = target.read_bytes()
    except OSError as exc:
        raise WalletIOError(f"Failed to read wallet file {target}: {exc}") from exc
    return serializer.deserialize(io.BytesIO(data), password)


def save_wallet(
    cfg: StorageConfig,
    serializer: WalletSerializer,
    password: str,
    cache: bytes = b"",
) -> None:
    """Save to the configured wallet file using the serializer's defaults."""
    save_wallet_file(cfg.wallet_file, serializer, password, cache=cache)


def load_wallet(cfg: StorageConfig, serializer: WalletSerializer, password: str) -> bytes:
    return load_wallet_file(cfg.wallet_file, serializer, password)
