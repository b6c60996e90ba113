"""
TOML-based configuration for walletfile.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from walletfile_core.config import load_config
    cfg = load_config("walletfile.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib  # type: ignore[import]
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[import,no-redef]

from walletfile_core.crypto_utils import DEFAULT_KDF_ITERATIONS


@dataclass
class ContainerConfig:
    """Encryption settings.

    ``kdf_iterations`` feeds the password KDF.  Files are only readable
    with the iteration count they were written with.
    """
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    save_detailed: bool = True


@dataclass
class StorageConfig:
    """Wallet file location."""
    wallet_file: str = "data/wallet.bin"


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class WalletFileConfig:
    """Top-level configuration container."""
    container: ContainerConfig = field(default_factory=ContainerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> WalletFileConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        WALLETFILE_KDF_ITERATIONS -> container.kdf_iterations
        WALLETFILE_WALLET_FILE    -> storage.wallet_file
        WALLETFILE_LOG_LEVEL      -> logging.level
        WALLETFILE_LOG_FMT        -> logging.format
    """
    cfg = WalletFileConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("container", cfg.container),
                ("storage", cfg.storage),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("WALLETFILE_KDF_ITERATIONS"):
        cfg.container.kdf_iterations = int(v)
    if v := os.environ.get("WALLETFILE_WALLET_FILE"):
        cfg.storage.wallet_file = v
    if v := os.environ.get("WALLETFILE_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("WALLETFILE_LOG_FMT"):
        cfg.logging.format = v

    if cfg.container.kdf_iterations < 1:
        raise ValueError(f"kdf_iterations must be positive, got {cfg.container.kdf_iterations}")

    return cfg
