"""
Wallet transaction history cache.

Holds the user-visible history of a wallet:
  - transactions (incoming, outgoing, coinbase)
  - transfers (per-destination amounts of outgoing transactions)
  - unconfirmed outgoing transactions awaiting inclusion in a block

The cache knows two on-disk layouts.  ``serialize`` / ``deserialize``
speak the current layout; ``deserialize_legacy_v1`` reads the layout
written by the first wallet file version, which lacked ``unlock_time``
and ``state`` on transactions and stored unconfirmed entries with a
different field order.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum

from walletfile_core.serialization import (
    BinaryInputSerializer,
    BinaryOutputSerializer,
    SerializationError,
)

HASH_SIZE = 32


class TransactionState(IntEnum):
    ACTIVE = 0
    DELETED = 1
    SENDING = 2
    CANCELLED = 3
    FAILED = 4


# States that are dropped when the cache is saved.
_DISCARDED_ON_SAVE = frozenset({
    TransactionState.DELETED,
    TransactionState.CANCELLED,
    TransactionState.FAILED,
})


@dataclass
class WalletTransfer:
    address: str
    amount: int

    def write(self, s: BinaryOutputSerializer) -> None:
        s.string(self.address, "address")
        s.int64(self.amount, "amount")

    @classmethod
    def read(cls, s: BinaryInputSerializer) -> WalletTransfer:
        address = s.string("address")
        amount = s.int64("amount")
        return cls(address, amount)


@dataclass
class WalletTransaction:
    """One wallet transaction.  Outgoing ones own a run of transfers."""
    hash: bytes
    total_amount: int
    fee: int = 0
    first_transfer_id: int | None = None
    transfer_count: int = 0
    is_coinbase: bool = False
    block_height: int = 0
    timestamp: int = 0
    unlock_time: int = 0
    extra: bytes = b""
    state: TransactionState = TransactionState.ACTIVE

    def write(self, s: BinaryOutputSerializer) -> None:
        # "no transfers" is stored as UINT64_MAX
        first = 0xFFFFFFFFFFFFFFFF if self.first_transfer_id is None else self.first_transfer_id
        s.uint64(first, "first_transfer_id")
        s.uint64(self.transfer_count, "transfer_count")
        s.int64(self.total_amount, "total_amount")
        s.uint64(self.fee, "fee")
        s.fixed(self.hash, HASH_SIZE, "hash")
        s.boolean(self.is_coinbase, "is_coinbase")
        s.uint32(self.block_height, "block_height")
        s.uint64(self.timestamp, "timestamp")
        s.uint64(self.unlock_time, "unlock_time")
        s.binary(self.extra, "extra")
        s.uint8(int(self.state), "state")

    @classmethod
    def read(cls, s: BinaryInputSerializer) -> WalletTransaction:
        tx = cls._read_common(s)
        tx.unlock_time = s.uint64("unlock_time")
        tx.extra = s.binary("extra")
        raw_state = s.uint8("state")
        try:
            tx.state = TransactionState(raw_state)
        except ValueError as exc:
            raise SerializationError(f"unknown transaction state {raw_state}") from exc
        return tx

    @classmethod
    def read_legacy_v1(cls, s: BinaryInputSerializer) -> WalletTransaction:
        tx = cls._read_common(s)
        tx.extra = s.binary("extra")
        return tx

    @classmethod
    def _read_common(cls, s: BinaryInputSerializer) -> WalletTransaction:
        first = s.uint64("first_transfer_id")
        transfer_count = s.uint64("transfer_count")
        total_amount = s.int64("total_amount")
        fee = s.uint64("fee")
        tx_hash = s.fixed(HASH_SIZE, "hash")
        is_coinbase = s.boolean("is_coinbase")
        block_height = s.uint32("block_height")
        timestamp = s.uint64("timestamp")
        return cls(
            hash=tx_hash,
            total_amount=total_amount,
            fee=fee,
            first_transfer_id=None if first == 0xFFFFFFFFFFFFFFFF else first,
            transfer_count=transfer_count,
            is_coinbase=is_coinbase,
            block_height=block_height,
            timestamp=timestamp,
        )


@dataclass
class UnconfirmedTransaction:
    hash: bytes
    transaction_id: int
    amount: int
    sent_time: int

    def write(self, s: BinaryOutputSerializer) -> None:
        s.fixed(self.hash, HASH_SIZE, "hash")
        s.uint64(self.transaction_id, "transaction_id")
        s.uint64(self.amount, "amount")
        s.uint64(self.sent_time, "sent_time")

    @classmethod
    def read(cls, s: BinaryInputSerializer) -> UnconfirmedTransaction:
        tx_hash = s.fixed(HASH_SIZE, "hash")
        transaction_id = s.uint64("transaction_id")
        amount = s.uint64("amount")
        sent_time = s.uint64("sent_time")
        return cls(tx_hash, transaction_id, amount, sent_time)

    @classmethod
    def read_legacy_v1(cls, s: BinaryInputSerializer) -> UnconfirmedTransaction:
        transaction_id = s.uint64("transaction_id")
        tx_hash = s.fixed(HASH_SIZE, "hash")
        sent_time = s.uint64("sent_time")
        amount = s.uint64("amount")
        return cls(tx_hash, transaction_id, amount, sent_time)


@dataclass
class TransactionsCache:
    """In-memory transaction history of one wallet."""
    transactions: list[WalletTransaction] = field(default_factory=list)
    transfers: list[WalletTransfer] = field(default_factory=list)
    unconfirmed: list[UnconfirmedTransaction] = field(default_factory=list)

    # ---- queries / mutation ----

    def add_transaction(
        self,
        tx: WalletTransaction,
        transfers: list[WalletTransfer] | None = None,
    ) -> int:
        """Append *tx* and its *transfers*; return the new transaction id."""
        transfers = list(transfers or [])
        if transfers:
            tx.first_transfer_id = len(self.transfers)
            tx.transfer_count = len(transfers)
            self.transfers.extend(transfers)
        self.transactions.append(tx)
        return len(self.transactions) - 1

    def get_transaction(self, tx_id: int) -> WalletTransaction:
        return self.transactions[tx_id]

    def get_transfer(self, transfer_id: int) -> WalletTransfer:
        return self.transfers[transfer_id]

    def transfers_of(self, tx_id: int) -> list[WalletTransfer]:
        tx = self.transactions[tx_id]
        if tx.first_transfer_id is None:
            return []
        return self.transfers[tx.first_transfer_id:tx.first_transfer_id + tx.transfer_count]

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def transfer_count(self) -> int:
        return len(self.transfers)

    def clear(self) -> None:
        self.transactions = []
        self.transfers = []
        self.unconfirmed = []

    def replace_with(self, other: TransactionsCache) -> None:
        """Take over the contents of *other*."""
        self.transactions, self.transfers, self.unconfirmed = (
            other.transactions, other.transfers, other.unconfirmed,
        )

    # ---- persistence ----

    def _good_items(self) -> tuple[list[WalletTransaction], list[WalletTransfer], dict[int, int]]:
        """
        Drop discarded transactions and renumber the surviving transfers.

        Returns the kept transactions, the kept transfers and a map from
        old to new transaction ids.
        """
        txs: list[WalletTransaction] = []
        transfers: list[WalletTransfer] = []
        id_map: dict[int, int] = {}
        for old_id, tx in enumerate(self.transactions):
            if tx.state in _DISCARDED_ON_SAVE:
                continue
            own = self.transfers_of(old_id)
            kept = replace(tx, first_transfer_id=None, transfer_count=0)
            if own:
                kept.first_transfer_id = len(transfers)
                kept.transfer_count = len(own)
                transfers.extend(own)
            id_map[old_id] = len(txs)
            txs.append(kept)
        return txs, transfers, id_map

    def serialize(self, s: BinaryOutputSerializer) -> None:
        txs, transfers, id_map = self._good_items()
        unconfirmed = [
            UnconfirmedTransaction(u.hash, id_map[u.transaction_id], u.amount, u.sent_time)
            for u in self.unconfirmed
            if u.transaction_id in id_map
        ]

        s.begin_array(len(txs), "transactions")
        for tx in txs:
            tx.write(s)
        s.end_array()

        s.begin_array(len(transfers), "transfers")
        for tr in transfers:
            tr.write(s)
        s.end_array()

        s.begin_array(len(unconfirmed), "unconfirmed")
        for u in unconfirmed:
            u.write(s)
        s.end_array()

    @classmethod
    def deserialize(cls, s: BinaryInputSerializer) -> TransactionsCache:
        """Read the current layout into a fresh cache."""
        cache = cls()
        for _ in range(s.begin_array("transactions")):
            cache.transactions.append(WalletTransaction.read(s))
        s.end_array()
        for _ in range(s.begin_array("transfers")):
            cache.transfers.append(WalletTransfer.read(s))
        s.end_array()
        for _ in range(s.begin_array("unconfirmed")):
            cache.unconfirmed.append(UnconfirmedTransaction.read(s))
        s.end_array()
        cache._check_links()
        return cache

    @classmethod
    def deserialize_legacy_v1(cls, s: BinaryInputSerializer) -> TransactionsCache:
        """Read the first-version layout into a fresh cache."""
        cache = cls()
        for _ in range(s.begin_array("transactions")):
            cache.transactions.append(WalletTransaction.read_legacy_v1(s))
        s.end_array()
        for _ in range(s.begin_array("transfers")):
            cache.transfers.append(WalletTransfer.read(s))
        s.end_array()
        for _ in range(s.begin_array("unconfirmed")):
            cache.unconfirmed.append(UnconfirmedTransaction.read_legacy_v1(s))
        s.end_array()
        cache._check_links()
        return cache

    def _check_links(self) -> None:
        for tx_id, tx in enumerate(self.transactions):
            if tx.first_transfer_id is None:
                continue
            if tx.first_transfer_id + tx.transfer_count > len(self.transfers):
                raise SerializationError(
                    f"transaction {tx_id} references transfers past the end of the list"
                )
        for u in self.unconfirmed:
            if u.transaction_id >= len(self.transactions):
                raise SerializationError(
                    f"unconfirmed entry references unknown transaction {u.transaction_id}"
                )
