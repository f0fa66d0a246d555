"""
Unit tests for the entity cache store and the staleness policy.

Tests cover:
- is_stale() pure policy, including the boundary
- set_collection / set_loading / set_error independence per collection
- upsert_one / remove_one local mutation
- invalidate, snapshot immutability, apply_reconciled
- change listeners and stats
"""

import pytest
from pydantic import ValidationError

from invest_sync.core.exceptions import UnknownCollectionError
from invest_sync.models import CollectionName, Investment
from invest_sync.services.reconciler import reconcile
from invest_sync.store import is_stale

from .conftest import make_investment, make_position, make_user


class TestStalenessPolicy:
    def test_never_fetched_is_stale(self):
        assert is_stale(None, now=1000.0, max_age=300.0)

    def test_fresh_within_max_age(self):
        assert not is_stale(1000.0, now=1299.0, max_age=300.0)

    def test_boundary_is_not_stale(self):
        assert not is_stale(1000.0, now=1300.0, max_age=300.0)

    def test_older_than_max_age_is_stale(self):
        assert is_stale(1000.0, now=1300.5, max_age=300.0)


class TestEntityStoreCollections:
    def test_initial_state(self, store):
        state = store.get_collection("investments")
        assert state == {"items": [], "loading": False, "error": None, "last_fetched_at": None}
        assert store.is_stale("investments")

    def test_set_collection_normalizes_and_stamps(self, store, clock):
        store.set_error("investments", "boom")
        store.set_collection("investments", [{"id": 1, "name": "A"}])

        state = store.get_collection(CollectionName.INVESTMENTS)
        assert isinstance(state["items"][0], Investment)
        assert state["items"][0].id == "1"
        assert state["error"] is None
        assert state["last_fetched_at"] == clock.now
        assert not store.is_stale("investments")

    def test_staleness_follows_clock(self, store, clock):
        store.set_collection("users", [])
        clock.advance(301)
        assert store.is_stale("users")
        assert not store.is_stale("users", max_age=600)

    def test_invalid_records_leave_previous_items(self, store):
        store.set_collection("investments", [make_investment()])
        with pytest.raises(ValidationError):
            store.set_collection("investments", [{"name": "no id"}])
        assert [inv.id for inv in store.items("investments")] == ["inv-1"]

    def test_loading_and_error_are_independent(self, store):
        store.set_loading("investments", True)
        store.set_error("users", "users failed")

        assert store.get_collection("investments")["loading"] is True
        assert store.get_collection("investments")["error"] is None
        assert store.get_collection("users")["loading"] is False
        assert store.get_collection("users")["error"] == "users failed"

    def test_clear_errors(self, store):
        store.set_error("users", "a")
        store.set_error("assets", "b")
        store.clear_error("users")
        assert store.get_collection("users")["error"] is None
        store.clear_all_errors()
        assert store.get_collection("assets")["error"] is None

    def test_unknown_collection(self, store):
        with pytest.raises(UnknownCollectionError):
            store.get_collection("funds")


class TestEntityStoreLocalMutation:
    def test_upsert_appends_new(self, store):
        store.set_collection("investments", [make_investment(id="a")])
        stamped = store.get_collection("investments")["last_fetched_at"]

        store.upsert_one("investments", {"id": "b", "name": "B"})

        assert [inv.id for inv in store.items("investments")] == ["a", "b"]
        assert store.get_collection("investments")["last_fetched_at"] == stamped

    def test_upsert_replaces_in_place(self, store):
        store.set_collection("investments", [make_investment(id="a"), make_investment(id="b")])
        store.upsert_one("investments", make_investment(id="a", name="Renamed"))
        items = store.items("investments")
        assert [inv.id for inv in items] == ["a", "b"]
        assert items[0].name == "Renamed"

    def test_remove_one(self, store):
        store.set_collection("users", [make_user(id="u1"), make_user(id="u2")])
        assert store.remove_one("users", "u1") is True
        assert store.remove_one("users", "missing") is False
        assert [u.id for u in store.items("users")] == ["u2"]

    def test_invalidate_forces_stale(self, store):
        store.set_collection("assets", [])
        store.invalidate("assets")
        assert store.is_stale("assets")


class TestSnapshot:
    def test_snapshot_not_affected_by_later_writes(self, store):
        store.set_collection("investments", [make_investment(id="a")])
        snap = store.snapshot()
        store.upsert_one("investments", make_investment(id="b"))
        assert [inv.id for inv in snap.investments] == ["a"]

    def test_apply_reconciled_keeps_fetch_time(self, store):
        store.set_collection("investments", [make_investment()])
        store.set_collection("investor_investments", [make_position(amount_invested=300)])
        stamped = store.get_collection("investments")["last_fetched_at"]

        store.apply_reconciled(reconcile(store.snapshot()))

        inv = store.items("investments")[0]
        assert inv.total_invested == 300
        assert inv.total_investors == 1
        assert store.get_collection("investments")["last_fetched_at"] == stamped


class TestChangeListeners:
    def test_listener_receives_collection_name(self, store):
        seen = []
        store.on_change(seen.append)
        store.set_collection("users", [])
        store.set_loading("assets", True)
        assert seen == [CollectionName.USERS, CollectionName.ASSETS]

    def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.on_change(seen.append)
        unsubscribe()
        store.set_collection("users", [])
        assert seen == []

    def test_failing_listener_does_not_block_others(self, store):
        seen = []

        def broken(_name):
            raise RuntimeError("listener bug")

        store.on_change(broken)
        store.on_change(seen.append)
        store.set_error("users", "x")
        assert seen == [CollectionName.USERS]


class TestStats:
    def test_get_stats(self, store, clock):
        store.set_collection("investments", [make_investment()])
        clock.advance(10)
        stats = store.get_stats()
        assert stats["investments"]["size"] == 1
        assert stats["investments"]["stale"] is False
        assert stats["investments"]["age_seconds"] == 10
        assert stats["users"]["stale"] is True
        assert stats["users"]["age_seconds"] is None
