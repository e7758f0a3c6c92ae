import pytest

from live_quiz.core.errors import StoreError, StoreUnavailableError
from live_quiz.core.services.session_repository import SessionRepository
from live_quiz.core.store import InMemoryDocumentStore
from live_quiz.utils.retry import call_with_retries


class FlakyStore(InMemoryDocumentStore):
    """Fails the first ``failures`` reads."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    def get(self, collection, record_id):
        self.calls += 1
        if self.calls <= self.failures:
            raise StoreError("connection reset")
        return super().get(collection, record_id)


def test_transient_errors_are_retried():
    store = FlakyStore(failures=2)
    repository = SessionRepository(store, retry_attempts=3)

    assert repository.get_session("missing") is None
    assert store.calls == 3


def test_exhausted_retries_surface_as_unavailable():
    store = FlakyStore(failures=5)
    repository = SessionRepository(store, retry_attempts=3)

    with pytest.raises(StoreUnavailableError):
        repository.get_session("missing")
    assert store.calls == 3


def test_other_errors_are_not_retried():
    calls = []

    def broken():
        calls.append(1)
        raise KeyError("bug")

    with pytest.raises(KeyError):
        call_with_retries(broken, description="read", delay_seconds=0)
    assert len(calls) == 1


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        call_with_retries(lambda: None, description="read", attempts=0)
