"""
Tests for walletfile_core.transactions_cache: wallet history.

Covers:
  - add_transaction / transfer bookkeeping
  - current layout round-trip
  - dropping discarded transactions on save (with renumbering)
  - legacy v1 layout decoding
  - link validation on load
"""

from __future__ import annotations

import pytest

from tests.conftest import make_history, write_legacy_v1
from walletfile_core.serialization import SerializationError, dumps, loads
from walletfile_core.transactions_cache import (
    TransactionsCache,
    TransactionState,
    UnconfirmedTransaction,
    WalletTransaction,
    WalletTransfer,
)


def _roundtrip(cache: TransactionsCache) -> TransactionsCache:
    return loads(dumps(cache.serialize), TransactionsCache.deserialize)


# ═══════════════════════════════════════════════════════════════════
#  Bookkeeping
# ═══════════════════════════════════════════════════════════════════

class TestBookkeeping:
    def test_ids_are_sequential(self):
        cache = TransactionsCache()
        assert cache.add_transaction(WalletTransaction(b"\x01" * 32, 1)) == 0
        assert cache.add_transaction(WalletTransaction(b"\x02" * 32, 2)) == 1
        assert cache.transaction_count == 2

    def test_transfers_linked(self, history):
        out = history.get_transaction(1)
        assert out.first_transfer_id == 0
        assert out.transfer_count == 2
        assert [t.address for t in history.transfers_of(1)] == ["addr-bob", "addr-carol"]
        assert history.get_transfer(1).amount == 1_000
        assert history.transfer_count == 2

    def test_incoming_has_no_transfers(self, history):
        assert history.get_transaction(0).first_transfer_id is None
        assert history.transfers_of(0) == []

    def test_clear(self, history):
        history.clear()
        assert history == TransactionsCache()

    def test_replace_with(self, history):
        target = TransactionsCache()
        target.replace_with(history)
        assert target == history


# ═══════════════════════════════════════════════════════════════════
#  Current layout
# ═══════════════════════════════════════════════════════════════════

class TestCurrentLayout:
    def test_roundtrip(self, history):
        assert _roundtrip(history) == history

    def test_empty_roundtrip(self):
        assert _roundtrip(TransactionsCache()) == TransactionsCache()

    def test_empty_encoding(self):
        assert dumps(TransactionsCache().serialize) == b"\x00\x00\x00"

    def test_state_preserved(self, history):
        history.get_transaction(0).state = TransactionState.SENDING
        history.get_transaction(0).unlock_time = 99
        loaded = _roundtrip(history)
        assert loaded.get_transaction(0).state is TransactionState.SENDING
        assert loaded.get_transaction(0).unlock_time == 99

    def test_negative_amount(self, history):
        assert _roundtrip(history).get_transaction(1).total_amount == -3_010

    def test_unknown_state_rejected(self):
        cache = TransactionsCache()
        cache.add_transaction(WalletTransaction(b"\x01" * 32, 1))
        blob = bytearray(dumps(cache.serialize))
        # state byte is the last byte of the single transaction, before two empty arrays
        blob[-3] = 0x7F
        with pytest.raises(SerializationError, match="unknown transaction state"):
            loads(bytes(blob), TransactionsCache.deserialize)


class TestDiscardOnSave:
    def test_failed_transactions_dropped(self, history):
        history.get_transaction(0).state = TransactionState.FAILED
        loaded = _roundtrip(history)
        assert loaded.transaction_count == 2
        assert loaded.get_transaction(0).hash == b"\x22" * 32

    def test_transfers_renumbered(self):
        cache = TransactionsCache()
        cache.add_transaction(
            WalletTransaction(b"\x01" * 32, -10, state=TransactionState.CANCELLED),
            [WalletTransfer("a", 10)],
        )
        cache.add_transaction(WalletTransaction(b"\x02" * 32, -20), [WalletTransfer("b", 20)])
        loaded = _roundtrip(cache)
        assert loaded.transfers == [WalletTransfer("b", 20)]
        assert loaded.get_transaction(0).first_transfer_id == 0
        assert loaded.transfers_of(0) == [WalletTransfer("b", 20)]

    def test_unconfirmed_remapped(self, history):
        history.get_transaction(0).state = TransactionState.DELETED
        loaded = _roundtrip(history)
        assert loaded.unconfirmed[0].transaction_id == 0
        assert loaded.get_transaction(0).hash == b"\x22" * 32

    def test_unconfirmed_of_dropped_tx_removed(self, history):
        history.get_transaction(1).state = TransactionState.FAILED
        assert _roundtrip(history).unconfirmed == []

    def test_save_does_not_mutate(self, history):
        history.get_transaction(0).state = TransactionState.FAILED
        dumps(history.serialize)
        assert history.transaction_count == 3


# ═══════════════════════════════════════════════════════════════════
#  Legacy v1 layout
# ═══════════════════════════════════════════════════════════════════

class TestLegacyLayout:
    def test_matches_current_layout(self):
        history = make_history()
        legacy = loads(dumps(lambda s: write_legacy_v1(s, history)),
                       TransactionsCache.deserialize_legacy_v1)
        assert legacy == _roundtrip(history)

    def test_defaults_for_missing_fields(self, history):
        legacy = loads(dumps(lambda s: write_legacy_v1(s, history)),
                       TransactionsCache.deserialize_legacy_v1)
        for tx in legacy.transactions:
            assert tx.state is TransactionState.ACTIVE
            assert tx.unlock_time == 0

    def test_layouts_differ_on_wire(self, history):
        assert dumps(lambda s: write_legacy_v1(s, history)) != dumps(history.serialize)

    def test_legacy_unconfirmed_order(self):
        cache = TransactionsCache()
        cache.add_transaction(WalletTransaction(b"\x05" * 32, -1))
        cache.unconfirmed.append(UnconfirmedTransaction(b"\x05" * 32, 0, 7, 1234))
        legacy = loads(dumps(lambda s: write_legacy_v1(s, cache)),
                       TransactionsCache.deserialize_legacy_v1)
        assert legacy.unconfirmed == cache.unconfirmed


# ═══════════════════════════════════════════════════════════════════
#  Link validation
# ═══════════════════════════════════════════════════════════════════

class TestLinks:
    def test_transfer_range_past_end(self):
        cache = TransactionsCache()
        cache.transactions.append(
            WalletTransaction(b"\x01" * 32, -5, first_transfer_id=0, transfer_count=3)
        )
        blob = dumps(lambda s: write_legacy_v1(s, cache))
        with pytest.raises(SerializationError, match="past the end"):
            loads(blob, TransactionsCache.deserialize_legacy_v1)

    def test_unconfirmed_unknown_transaction(self):
        cache = TransactionsCache()
        cache.unconfirmed.append(UnconfirmedTransaction(b"\x01" * 32, 4, 1, 1))
        blob = dumps(lambda s: write_legacy_v1(s, cache))
        with pytest.raises(SerializationError, match="unknown transaction"):
            loads(blob, TransactionsCache.deserialize_legacy_v1)
