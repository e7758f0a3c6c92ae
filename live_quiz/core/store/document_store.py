"""Shared document store with change subscriptions.

Every client of a session (presenter screen, participant phones, the HTTP
server) coordinates only through this store: records are written, and
subscribers are pushed the full current result of their query whenever it
changes. The core relies on nothing beyond the :class:`DocumentStore`
protocol, so a hosted realtime database can be swapped in behind it.

Architecture note:
    Notifications are delivered synchronously on the writing thread, after
    the store lock is released. A subscriber is told about every committed
    change to its query exactly once, but it may miss intermediate states
    when several writes land before it reads, which is why sessions also
    poll (see ``session_handle``).
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Mapping, Protocol
from uuid import uuid4

from live_quiz.core.schema import SchemaError, parse_instant

Record = dict[str, Any]
QueryCallback = Callable[[list[Record]], None]
RecordCallback = Callable[[Record | None], None]

logger = logging.getLogger(__name__)


class Unsubscribe(Protocol):
    def __call__(self) -> None: ...


class DocumentStore(Protocol):
    """The subset of a realtime document database the core depends on."""

    def add(self, collection: str, data: Mapping[str, Any], record_id: str | None = None) -> str: ...

    def set(self, collection: str, record_id: str, data: Mapping[str, Any]) -> None: ...

    def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> Record: ...

    def get(self, collection: str, record_id: str) -> Record | None: ...

    def delete(self, collection: str, record_id: str) -> bool: ...

    def query(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Record]: ...

    def subscribe_query(
        self,
        collection: str,
        callback: QueryCallback,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
    ) -> Unsubscribe: ...

    def subscribe_record(self, collection: str, record_id: str, callback: RecordCallback) -> Unsubscribe: ...


@dataclass(slots=True)
class _QuerySubscription:
    collection: str
    callback: QueryCallback
    where: Mapping[str, Any] | None
    order_by: str | None
    last_result: list[Record] | None = None
    active: bool = True


@dataclass(slots=True)
class _RecordSubscription:
    collection: str
    record_id: str
    callback: RecordCallback
    last_record: Record | None = None
    active: bool = True


@dataclass(slots=True)
class _Collection:
    records: dict[str, Record] = field(default_factory=dict)


class RecordNotFound(KeyError):
    """Raised by ``update`` when the target record does not exist."""


def matches(record: Mapping[str, Any], where: Mapping[str, Any] | None) -> bool:
    """Equality filter; a set, frozenset or tuple value means membership."""
    if not where:
        return True
    for field_name, expected in where.items():
        actual = record.get(field_name)
        if isinstance(expected, (set, frozenset, tuple)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


def _sortable(value: Any) -> tuple[int, Any]:
    # Instants in any stored shape (ISO text, epoch milliseconds, timestamp
    # dicts) compare chronologically with each other; other values group by kind.
    try:
        instant = parse_instant(value)
    except (SchemaError, OverflowError, OSError, TypeError, ValueError):
        instant = None
    if instant is not None:
        return (0, instant)
    if isinstance(value, str):
        return (1, value)
    return (2, repr(value))


def _sort_key(order_by: str) -> Callable[[Record], tuple]:
    # Records missing the field sort first, like unset server timestamps.
    def key(record: Record) -> tuple:
        value = record.get(order_by)
        if value is None:
            return (False,)
        return (True, _sortable(value))

    return key


class InMemoryDocumentStore:
    """Thread-safe in-process implementation of :class:`DocumentStore`."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._collections: dict[str, _Collection] = {}
        self._query_subscriptions: list[_QuerySubscription] = []
        self._record_subscriptions: list[_RecordSubscription] = []

    # --- Writes ---

    def add(self, collection: str, data: Mapping[str, Any], record_id: str | None = None) -> str:
        new_id = record_id or uuid4().hex
        with self._lock:
            records = self._collection(collection).records
            if new_id in records:
                raise ValueError(f"Record {collection}/{new_id} already exists.")
            records[new_id] = self._stamp(new_id, data)
        self._notify(collection, new_id)
        return new_id

    def set(self, collection: str, record_id: str, data: Mapping[str, Any]) -> None:
        with self._lock:
            self._collection(collection).records[record_id] = self._stamp(record_id, data)
        self._notify(collection, record_id)

    def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> Record:
        with self._lock:
            records = self._collection(collection).records
            current = records.get(record_id)
            if current is None:
                raise RecordNotFound(f"{collection}/{record_id}")
            current.update(copy.deepcopy(dict(changes)))
            current["id"] = record_id
            updated = copy.deepcopy(current)
        self._notify(collection, record_id)
        return updated

    def delete(self, collection: str, record_id: str) -> bool:
        with self._lock:
            removed = self._collection(collection).records.pop(record_id, None)
        if removed is None:
            return False
        self._notify(collection, record_id)
        return True

    # --- Reads ---

    def get(self, collection: str, record_id: str) -> Record | None:
        with self._lock:
            record = self._collection(collection).records.get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def query(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Record]:
        with self._lock:
            return self._run_query(collection, where, order_by, descending)

    # --- Subscriptions ---

    def subscribe_query(
        self,
        collection: str,
        callback: QueryCallback,
        where: Mapping[str, Any] | None = None,
        order_by: str | None = None,
    ) -> Unsubscribe:
        """Push the full result set now and after every change to it."""
        subscription = _QuerySubscription(collection, callback, where, order_by)
        with self._lock:
            self._query_subscriptions.append(subscription)
            subscription.last_result = self._run_query(collection, where, order_by, False)
            initial = copy.deepcopy(subscription.last_result)
        self._deliver(subscription.callback, initial)

        def unsubscribe() -> None:
            with self._lock:
                subscription.active = False
                if subscription in self._query_subscriptions:
                    self._query_subscriptions.remove(subscription)

        return unsubscribe

    def subscribe_record(self, collection: str, record_id: str, callback: RecordCallback) -> Unsubscribe:
        """Push the record now and after every change; ``None`` means it no longer exists."""
        subscription = _RecordSubscription(collection, record_id, callback)
        with self._lock:
            self._record_subscriptions.append(subscription)
            current = self._collection(collection).records.get(record_id)
            subscription.last_record = copy.deepcopy(current) if current is not None else None
            initial = copy.deepcopy(subscription.last_record)
        self._deliver(subscription.callback, initial)

        def unsubscribe() -> None:
            with self._lock:
                subscription.active = False
                if subscription in self._record_subscriptions:
                    self._record_subscriptions.remove(subscription)

        return unsubscribe

    def subscription_count(self) -> int:
        with self._lock:
            return len(self._query_subscriptions) + len(self._record_subscriptions)

    # --- Internals ---

    def _collection(self, name: str) -> _Collection:
        collection = self._collections.get(name)
        if collection is None:
            collection = _Collection()
            self._collections[name] = collection
        return collection

    @staticmethod
    def _stamp(record_id: str, data: Mapping[str, Any]) -> Record:
        record = copy.deepcopy(dict(data))
        record["id"] = record_id
        return record

    def _run_query(
        self,
        collection: str,
        where: Mapping[str, Any] | None,
        order_by: str | None,
        descending: bool,
    ) -> list[Record]:
        records = [r for r in self._collection(collection).records.values() if matches(r, where)]
        if order_by:
            records.sort(key=_sort_key(order_by), reverse=descending)
        return copy.deepcopy(records)

    def _notify(self, collection: str, record_id: str) -> None:
        pending: list[tuple[Callable[[Any], None], Any]] = []
        with self._lock:
            for subscription in self._query_subscriptions:
                if subscription.collection != collection:
                    continue
                result = self._run_query(collection, subscription.where, subscription.order_by, False)
                if result == subscription.last_result:
                    continue
                subscription.last_result = result
                pending.append((subscription.callback, copy.deepcopy(result)))
            for record_subscription in self._record_subscriptions:
                if record_subscription.collection != collection or record_subscription.record_id != record_id:
                    continue
                current = self._collection(collection).records.get(record_id)
                snapshot = copy.deepcopy(current) if current is not None else None
                if snapshot == record_subscription.last_record:
                    continue
                record_subscription.last_record = snapshot
                pending.append((record_subscription.callback, copy.deepcopy(snapshot)))
        for callback, payload in pending:
            self._deliver(callback, payload)

    @staticmethod
    def _deliver(callback: Callable[[Any], None], payload: Any) -> None:
        try:
            callback(payload)
        except Exception:  # a failing listener must not undo a committed write
            logger.exception("Subscriber callback failed")
