"""
Error types raised by the wallet container codecs.

Every public failure is a ``WalletError`` carrying a ``WalletErrorCode`` so
callers can branch on ``exc.code`` or on the concrete subclass.  A wrong
password is an expected outcome and is always distinguishable from a
damaged envelope or an I/O failure.
"""

from __future__ import annotations

from enum import IntEnum


class WalletErrorCode(IntEnum):
    WRONG_PASSWORD = 1
    MALFORMED_CONTAINER = 2
    IO_FAILURE = 3


class WalletError(Exception):
    """Base class for wallet container errors."""

    code: WalletErrorCode

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.name.replace("_", " ").lower())


class WrongPasswordError(WalletError):
    """Decrypted payload is unreadable or its key pairs are inconsistent."""

    code = WalletErrorCode.WRONG_PASSWORD


class MalformedContainerError(WalletError):
    """The outer envelope could not be parsed."""

    code = WalletErrorCode.MALFORMED_CONTAINER


class WalletIOError(WalletError):
    """The underlying byte source or sink failed."""

    code = WalletErrorCode.IO_FAILURE
