"""
walletfile - password-protected wallet container format.

Key features:
- Versioned binary envelope (version, nonce, ciphertext)
- ChaCha20 encryption under a password-derived key, fresh nonce per save
- Wrong-password detection through Ed25519 key pair consistency
- Full and view-only identities
- Backward-compatible reading of legacy v1 transaction history
"""

import logging

from walletfile_core.errors import (
    MalformedContainerError,
    WalletError,
    WalletErrorCode,
    WalletIOError,
    WrongPasswordError,
)

__version__ = "1.0.0"
__all__ = [
    "account",
    "config",
    "container",
    "crypto_utils",
    "errors",
    "logging_config",
    "serialization",
    "storage",
    "transactions_cache",
    "wallet_serializer",
    "MalformedContainerError",
    "WalletError",
    "WalletErrorCode",
    "WalletIOError",
    "WrongPasswordError",
]

logging.getLogger("walletfile").addHandler(logging.NullHandler())
