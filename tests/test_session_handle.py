from live_quiz.core.events import ParticipantRemoved, RosterChanged, SessionCompleted, SessionStarted, SessionUpdated
from live_quiz.core.models import SessionStatus
from live_quiz.core.session_handle import PARTICIPANT, PRESENTER, SessionHandle


def collect(handle, event_type):
    received = []
    handle.events.subscribe(event_type, received.append)
    return received


def test_handle_mirrors_the_broadcast_countdown(manager, session, store, clock):
    with SessionHandle(store, session.id) as presenter_view:
        started = collect(presenter_view, SessionStarted)
        manager.start_session(session.id)
        clock.advance(7.9)
        manager.broadcast_time_remaining(session.id)

        assert presenter_view.role == PRESENTER
        assert presenter_view.status is SessionStatus.ACTIVE
        assert presenter_view.time_remaining == 53
        assert len(started) == 1


def test_participant_learns_about_its_own_removal(manager, session, store):
    ada = manager.join_session(session.join_code, "Ada")
    bo = manager.join_session(session.join_code, "Bo")

    with SessionHandle(store, session.id, participant_id=ada.id) as ada_view, SessionHandle(
        store, session.id, participant_id=bo.id
    ) as bo_view:
        ada_removed = collect(ada_view, ParticipantRemoved)
        bo_removed = collect(bo_view, ParticipantRemoved)
        bo_roster = collect(bo_view, RosterChanged)

        manager.kick_participant(session.id, ada.id)

        assert ada_view.role == PARTICIPANT
        assert ada_view.kicked is True
        assert len(ada_removed) == 1
        assert bo_view.kicked is False
        assert bo_removed == []
        assert bo_roster[-1].participant_ids == (bo.id,)


def test_polling_after_pushes_changes_nothing(manager, session, store, clock):
    manager.join_session(session.join_code, "Ada")
    with SessionHandle(store, session.id) as view:
        manager.start_session(session.id)
        clock.advance(3)
        manager.broadcast_time_remaining(session.id)
        updates = collect(view, SessionUpdated)
        roster = collect(view, RosterChanged)

        view.poll()
        view.poll()

        assert updates == []
        assert roster == []


def test_stale_snapshots_are_ignored(manager, session, store, clock):
    with SessionHandle(store, session.id) as view:
        waiting = manager.get_session(session.id)
        manager.start_session(session.id)
        clock.advance(5)
        manager.broadcast_time_remaining(session.id)
        early_tick = manager.get_session(session.id)
        clock.advance(5)
        manager.broadcast_time_remaining(session.id)

        assert view.apply_session_snapshot(waiting) is False
        assert view.apply_session_snapshot(early_tick) is False
        assert view.status is SessionStatus.ACTIVE
        assert view.time_remaining == 50


def test_completion_is_announced_once(manager, session, store):
    with SessionHandle(store, session.id) as view:
        completed = collect(view, SessionCompleted)
        manager.start_session(session.id)
        manager.stop_session(session.id)
        manager.stop_session(session.id)
        view.poll()

        assert len(completed) == 1


def test_closing_releases_every_subscription(manager, session, store):
    ada = manager.join_session(session.join_code, "Ada")
    handle = SessionHandle(store, session.id, participant_id=ada.id)

    with handle:
        assert handle.is_open
        assert store.subscription_count() == 3

    assert not handle.is_open
    assert store.subscription_count() == 0


def test_deleted_session_is_reported(manager, session, store):
    with SessionHandle(store, session.id) as view:
        store.delete("sessions", session.id)

        assert view.session_deleted is True
