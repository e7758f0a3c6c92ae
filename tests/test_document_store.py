import pytest

from live_quiz.core.store import InMemoryDocumentStore, RecordNotFound


def test_records_are_copied_in_and_out():
    store = InMemoryDocumentStore()
    data = {"name": "Ada", "tags": ["a"]}
    record_id = store.add("people", data)

    data["tags"].append("b")
    fetched = store.get("people", record_id)
    fetched["name"] = "changed"

    assert store.get("people", record_id) == {"id": record_id, "name": "Ada", "tags": ["a"]}


def test_duplicate_add_is_rejected():
    store = InMemoryDocumentStore()
    store.add("people", {"name": "Ada"}, record_id="p1")

    with pytest.raises(ValueError):
        store.add("people", {"name": "Bo"}, record_id="p1")


def test_update_of_missing_record_raises():
    with pytest.raises(RecordNotFound):
        InMemoryDocumentStore().update("people", "ghost", {"name": "x"})


def test_query_filters_and_orders():
    store = InMemoryDocumentStore()
    store.add("people", {"team": "a", "rank": 2}, record_id="p1")
    store.add("people", {"team": "b", "rank": 1}, record_id="p2")
    store.add("people", {"team": "a", "rank": 1}, record_id="p3")
    store.add("people", {"team": "c", "rank": 0}, record_id="p4")

    assert [r["id"] for r in store.query("people", {"team": "a"}, order_by="rank")] == ["p3", "p1"]
    assert {r["id"] for r in store.query("people", {"team": ("a", "b")})} == {"p1", "p2", "p3"}
    assert [r["id"] for r in store.query("people", order_by="rank", descending=True)][0] == "p1"


def test_query_subscription_receives_initial_and_changed_results():
    store = InMemoryDocumentStore()
    store.add("people", {"team": "a"}, record_id="p1")
    pushes = []

    unsubscribe = store.subscribe_query("people", pushes.append, where={"team": "a"})
    store.add("people", {"team": "b"}, record_id="p2")
    store.add("people", {"team": "a"}, record_id="p3")
    unsubscribe()
    store.add("people", {"team": "a"}, record_id="p4")

    assert [[r["id"] for r in push] for push in pushes] == [["p1"], ["p1", "p3"]]
    assert store.subscription_count() == 0


def test_record_subscription_reports_deletion_as_none():
    store = InMemoryDocumentStore()
    store.add("people", {"name": "Ada"}, record_id="p1")
    pushes = []

    store.subscribe_record("people", "p1", pushes.append)
    store.update("people", "p1", {"name": "Ada L."})
    store.delete("people", "p1")

    assert [push and push["name"] for push in pushes] == ["Ada", "Ada L.", None]


def test_failing_subscriber_does_not_undo_the_write():
    store = InMemoryDocumentStore()

    def explode(records):
        if records:
            raise RuntimeError("listener bug")

    store.subscribe_query("people", explode)
    store.add("people", {"name": "Ada"}, record_id="p1")

    assert store.get("people", "p1") is not None


def test_ordering_tolerates_mixed_timestamp_shapes():
    store = InMemoryDocumentStore()
    store.add("events", {"at": "2024-05-01T09:00:00.000000+00:00"}, record_id="iso")
    store.add("events", {"at": 1714550400000}, record_id="millis")
    store.add("events", {"at": {"seconds": 1714557600}}, record_id="timestamp")
    store.add("events", {}, record_id="unset")

    ordered = [r["id"] for r in store.query("events", order_by="at")]

    assert ordered == ["unset", "millis", "iso", "timestamp"]
    assert [r["id"] for r in store.query("events", order_by="at", descending=True)][0] == "timestamp"
