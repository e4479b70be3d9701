"""Parent-call lifecycle under the monthly quota."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from tutorhub.common.errors import InvalidStateTransition, NotFound, QuotaExceeded
from tutorhub.common.timeutil import as_utc
from tutorhub.services.parent_calls.models import ParentCall
from tutorhub.services.parent_calls.quota import QuotaEngine
from tutorhub.services.parent_calls.service import ParentCallService


@pytest.fixture()
def calls(session_factory, clock):
    return ParentCallService(session_factory, QuotaEngine(session_factory, clock=clock), clock=clock)


def _load(session_factory, call_id) -> ParentCall:
    with session_factory() as db:
        return db.execute(select(ParentCall).where(ParentCall.call_id == call_id)).scalar_one()


def test_quota_scenario_max_one(calls, seed_enrollment, set_call_max):
    """Create succeeds, second create is rejected, cancel frees the slot."""

    enrollment_id = seed_enrollment()
    set_call_max(1)

    first = calls.create(enrollment_id)
    assert first.status == "scheduled"
    assert calls.quota.check(enrollment_id).remaining == 0

    with pytest.raises(QuotaExceeded) as excinfo:
        calls.create(enrollment_id)
    assert excinfo.value.quota.remaining == 0
    assert excinfo.value.quota.used == 1

    calls.cancel(first.call_id)
    third = calls.create(enrollment_id)
    assert third.status == "scheduled"


def test_rejected_create_inserts_nothing(calls, session_factory, seed_enrollment, set_call_max):
    enrollment_id = seed_enrollment()
    set_call_max(0)

    with pytest.raises(QuotaExceeded):
        calls.create(enrollment_id)
    with session_factory() as db:
        assert db.execute(select(ParentCall)).first() is None


def test_used_monotonic_and_cancel_decrements(calls, seed_enrollment, set_call_max):
    enrollment_id = seed_enrollment()
    set_call_max(3)

    created = []
    for expected_used in (1, 2, 3):
        created.append(calls.create(enrollment_id))
        assert calls.quota.check(enrollment_id).used == expected_used

    calls.cancel(created[1].call_id)
    assert calls.quota.check(enrollment_id).used == 2


def test_create_unknown_enrollment(calls):
    with pytest.raises(NotFound):
        calls.create("enr_missing")


def test_complete_sets_completed_at_and_notes(calls, session_factory, seed_enrollment, clock):
    call = calls.create(seed_enrollment())
    clock.now = clock.now + timedelta(hours=2)

    done = calls.complete(call.call_id, notes="Discussed reading goals")

    assert done.status == "completed"
    assert done.notes == "Discussed reading goals"
    assert as_utc(done.completed_at) == clock.now
    row = _load(session_factory, call.call_id)
    assert row.status == "completed"


def test_complete_twice_rejected(calls, seed_enrollment):
    call = calls.create(seed_enrollment())
    calls.complete(call.call_id)

    with pytest.raises(InvalidStateTransition, match="already completed"):
        calls.complete(call.call_id)


def test_complete_cancelled_call_rejected_and_unchanged(calls, session_factory, seed_enrollment):
    call = calls.create(seed_enrollment(), notes="please call after 6pm")
    calls.cancel(call.call_id)
    before = _load(session_factory, call.call_id)

    with pytest.raises(InvalidStateTransition, match="cannot complete a cancelled call"):
        calls.complete(call.call_id, notes="should not stick")

    after = _load(session_factory, call.call_id)
    assert (after.status, after.completed_at, after.notes, after.cancelled_at) == (
        before.status,
        before.completed_at,
        before.notes,
        before.cancelled_at,
    )
    assert after.status == "cancelled"
    assert after.completed_at is None


def test_cancel_completed_call_rejected(calls, seed_enrollment):
    call = calls.create(seed_enrollment())
    calls.complete(call.call_id)

    with pytest.raises(InvalidStateTransition):
        calls.cancel(call.call_id)


def test_transition_unknown_call(calls):
    with pytest.raises(NotFound):
        calls.complete("call_missing")
    with pytest.raises(NotFound):
        calls.cancel("call_missing")


def test_list_orders_newest_first_with_quota(calls, seed_enrollment, set_call_max, clock):
    enrollment_id = seed_enrollment()
    set_call_max(3)
    older = calls.create(enrollment_id, initiated_by="coach")
    clock.now = clock.now + timedelta(days=1)
    newer = calls.create(enrollment_id)

    listed, quota = calls.list(enrollment_id)

    assert [call.call_id for call in listed] == [newer.call_id, older.call_id]
    assert listed[1].initiated_by == "coach"
    assert (quota.used, quota.max, quota.remaining) == (2, 3, 1)


def test_check_then_insert_race_can_overshoot(session_factory, seed_enrollment, set_call_max, clock):
    """Two requests that both pass the check both insert; the overshoot is accepted."""

    enrollment_id = seed_enrollment()
    set_call_max(1)
    quota = QuotaEngine(session_factory, clock=clock)
    service = ParentCallService(session_factory, quota, clock=clock)

    snapshots = [quota.check(enrollment_id), quota.check(enrollment_id)]
    # Both racing requests observed a free slot before either inserted.
    assert all(snapshot.remaining == 1 for snapshot in snapshots)
    stale = iter(snapshots)
    service.quota = type("StaleQuota", (), {"check": lambda self, _id: next(stale)})()
    service.create(enrollment_id)
    service.create(enrollment_id)

    assert quota.check(enrollment_id).used == 2


def test_complete_without_notes_keeps_request_notes(calls, session_factory, seed_enrollment):
    call = calls.create(seed_enrollment(), notes="please call after 6pm")

    done = calls.complete(call.call_id)

    assert done.notes == "please call after 6pm"
    assert _load(session_factory, call.call_id).notes == "please call after 6pm"
