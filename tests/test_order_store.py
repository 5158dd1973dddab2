"""
Tests for OrderStore integrity checks and retention.
"""

import pytest

from conftest import make_order
from swapengine.errors import OrderIntegrityError
from swapengine.execution.order_store import OrderStore
from swapengine.models import LogType, SwapStatus


@pytest.fixture
def store():
    s = OrderStore()
    s.insert(make_order("AAAA0001"))
    return s


class TestReadsAndWrites:
    def test_get_returns_copy(self, store):
        order = store.get("AAAA0001")
        order.status = SwapStatus.SENDING
        order.append_log("local only")
        stored = store.get("AAAA0001")
        assert stored.status == SwapStatus.AWAITING_DEPOSIT
        assert len(stored.logs) == 1

    def test_get_unknown(self, store):
        assert store.get("NOPE") is None
        assert "NOPE" not in store

    def test_duplicate_insert_rejected(self, store):
        with pytest.raises(OrderIntegrityError):
            store.insert(make_order("AAAA0001"))
        assert len(store) == 1

    def test_replace_is_idempotent(self, store):
        order = store.get("AAAA0001")
        order.status = SwapStatus.CONFIRMING
        order.append_log("deposit seen", LogType.NETWORK)
        store.replace(order)
        store.replace(order)
        stored = store.get("AAAA0001")
        assert stored.status == SwapStatus.CONFIRMING
        assert len(stored.logs) == 2

    def test_replace_unknown_rejected(self, store):
        with pytest.raises(OrderIntegrityError):
            store.replace(make_order("ZZZZ9999"))


class TestInvariants:
    def test_confirmations_capped(self, store):
        order = store.get("AAAA0001")
        order.confirmations = 4
        with pytest.raises(OrderIntegrityError, match="exceed"):
            store.replace(order)
        assert store.get("AAAA0001").confirmations == 0

    def test_confirmations_never_decrease(self, store):
        order = store.get("AAAA0001")
        order.confirmations = 2
        store.replace(order)
        order.confirmations = 1
        with pytest.raises(OrderIntegrityError, match="decreased"):
            store.replace(order)

    def test_required_confirmations_fixed(self, store):
        order = store.get("AAAA0001")
        order.required_confirmations = 1
        with pytest.raises(OrderIntegrityError):
            store.replace(order)

    def test_log_append_only(self, store):
        order = store.get("AAAA0001")
        order.logs = []
        with pytest.raises(OrderIntegrityError, match="append-only"):
            store.replace(order)

        order = store.get("AAAA0001")
        order.logs[0] = type(order.logs[0])(timestamp=1, message="rewritten")
        with pytest.raises(OrderIntegrityError, match="append-only"):
            store.replace(order)

    def test_terminal_frozen_without_force(self, store):
        order = store.get("AAAA0001")
        order.status = SwapStatus.EXPIRED
        store.replace(order, force=True)

        frozen = store.get("AAAA0001")
        store.replace(frozen)

        tampered = store.get("AAAA0001")
        tampered.to_amount = "999"
        tampered.tx_hash_out = "0xforged"
        tampered.destination_address = "0xelsewhere"
        with pytest.raises(OrderIntegrityError, match="terminal"):
            store.replace(tampered)

        tampered = store.get("AAAA0001")
        tampered.append_log("late write", LogType.NETWORK)
        with pytest.raises(OrderIntegrityError, match="terminal"):
            store.replace(tampered)
        assert store.get("AAAA0001") == frozen

        order = store.get("AAAA0001")
        order.status = SwapStatus.CONFIRMING
        with pytest.raises(OrderIntegrityError, match="terminal"):
            store.replace(order)

        store.replace(order, force=True)
        assert store.get("AAAA0001").status == SwapStatus.CONFIRMING


class TestPruning:
    def test_prunes_only_old_terminal(self):
        store = OrderStore()
        now = 1_700_000_000_000
        store.insert(make_order("OLDDONE1", status=SwapStatus.COMPLETED, created_at=now - 120_000))
        store.insert(make_order("OLDLIVE1", status=SwapStatus.SENDING, created_at=now - 120_000))
        store.insert(make_order("NEWDONE1", status=SwapStatus.EXPIRED, created_at=now - 1_000))

        pruned = store.prune_terminal(60_000, now=now)

        assert pruned == ["OLDDONE1"]
        assert sorted(store.ids()) == ["NEWDONE1", "OLDLIVE1"]

    def test_zero_retention_is_noop(self):
        store = OrderStore()
        store.insert(make_order("OLDDONE1", status=SwapStatus.COMPLETED, created_at=1))
        assert store.prune_terminal(0) == []
        assert len(store) == 1
