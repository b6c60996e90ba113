"""
Shared pytest fixtures for the walletfile test suite.
"""

import hashlib

import nacl.bindings
import pytest

from walletfile_core.account import Account, FullIdentity
from walletfile_core.crypto_utils import derive_public_key
from walletfile_core.transactions_cache import (
    TransactionsCache,
    UnconfirmedTransaction,
    WalletTransaction,
    WalletTransfer,
)
from walletfile_core.wallet_serializer import WalletSerializer

# Low iteration count keeps the KDF fast in tests.
TEST_KDF_ITERATIONS = 1_000


def keypair_from_seed(seed: bytes) -> tuple[bytes, bytes]:
    """Deterministic (secret, public) pair for fixtures."""
    secret = nacl.bindings.crypto_core_ed25519_scalar_reduce(hashlib.sha512(seed).digest())
    return secret, derive_public_key(secret)


# Field prime and twisted Edwards constant d, for building test points.
_P = 2**255 - 19
_D = -121665 * pow(121666, _P - 2, _P) % _P

# (0, -1): the point of order two
ORDER_TWO_POINT = (_P - 1).to_bytes(32, "little")


def off_curve_point() -> bytes:
    """Canonical encoding of a y with no matching x on the curve."""
    for y in range(2, 1_000):
        x2 = (y * y - 1) * pow(_D * y * y + 1, _P - 2, _P) % _P
        if pow(x2, (_P - 1) // 2, _P) not in (0, 1):
            return y.to_bytes(32, "little")
    raise AssertionError("no off-curve y found")


def mixed_order_point(public: bytes) -> bytes:
    """*public* shifted out of the prime-order subgroup."""
    return nacl.bindings.crypto_core_ed25519_add(public, ORDER_TWO_POINT)


def make_identity(name: str = "alice", creation_timestamp: int = 1000) -> FullIdentity:
    spend_sec, spend_pub = keypair_from_seed(f"{name}/spend".encode())
    view_sec, view_pub = keypair_from_seed(f"{name}/view".encode())
    return FullIdentity(
        spend_public_key=spend_pub,
        spend_secret_key=spend_sec,
        view_public_key=view_pub,
        view_secret_key=view_sec,
        creation_timestamp=creation_timestamp,
    )


def make_history() -> TransactionsCache:
    """History with an incoming, an outgoing and a coinbase transaction."""
    cache = TransactionsCache()
    cache.add_transaction(WalletTransaction(
        hash=b"\x11" * 32, total_amount=5_000, block_height=10, timestamp=1_600_000_000,
    ))
    out_id = cache.add_transaction(
        WalletTransaction(
            hash=b"\x22" * 32, total_amount=-3_010, fee=10, block_height=12,
            timestamp=1_600_000_100, extra=b"\x01\x02",
        ),
        [WalletTransfer("addr-bob", 2_000), WalletTransfer("addr-carol", 1_000)],
    )
    cache.add_transaction(WalletTransaction(
        hash=b"\x33" * 32, total_amount=70_000, is_coinbase=True, block_height=13,
    ))
    cache.unconfirmed.append(UnconfirmedTransaction(b"\x22" * 32, out_id, 3_010, 1_600_000_050))
    return cache


@pytest.fixture
def identity():
    return make_identity()


@pytest.fixture
def account(identity):
    return Account(identity)


@pytest.fixture
def history():
    return make_history()


@pytest.fixture
def serializer(account, history):
    return WalletSerializer(account, history, kdf_iterations=TEST_KDF_ITERATIONS)


@pytest.fixture
def empty_serializer():
    """Serializer over an empty account and history, ready to load into."""
    return WalletSerializer(Account(), TransactionsCache(), kdf_iterations=TEST_KDF_ITERATIONS)


def write_legacy_v1(s, cache: TransactionsCache) -> None:
    """Write *cache* in the first wallet-file history layout."""
    s.begin_array(len(cache.transactions), "transactions")
    for tx in cache.transactions:
        first = 0xFFFFFFFFFFFFFFFF if tx.first_transfer_id is None else tx.first_transfer_id
        s.uint64(first, "first_transfer_id")
        s.uint64(tx.transfer_count, "transfer_count")
        s.int64(tx.total_amount, "total_amount")
        s.uint64(tx.fee, "fee")
        s.fixed(tx.hash, 32, "hash")
        s.boolean(tx.is_coinbase, "is_coinbase")
        s.uint32(tx.block_height, "block_height")
        s.uint64(tx.timestamp, "timestamp")
        s.binary(tx.extra, "extra")
    s.end_array()
    s.begin_array(len(cache.transfers), "transfers")
    for tr in cache.transfers:
        tr.write(s)
    s.end_array()
    s.begin_array(len(cache.unconfirmed), "unconfirmed")
    for u in cache.unconfirmed:
        s.uint64(u.transaction_id, "transaction_id")
        s.fixed(u.hash, 32, "hash")
        s.uint64(u.sent_time, "sent_time")
        s.uint64(u.amount, "amount")
    s.end_array()
