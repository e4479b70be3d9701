"""Parent-call lifecycle: request, complete, cancel, list.

`create` checks the quota and then inserts in a separate step. Two concurrent
requests near the limit can both pass the check and both insert, briefly
exceeding the configured maximum by the number of racing requests. That
overshoot is accepted; completions and cancellations, by contrast, are
conditional single-row updates and cannot overwrite a terminal state.
"""

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from tutorhub.common.errors import InvalidStateTransition, NotFound, QuotaExceeded, UpstreamStoreFailure
from tutorhub.common.logging import log_context, logger
from tutorhub.common.metrics import (
    parent_call_requests_total,
    parent_call_transitions_total,
    store_failures_total,
)
from tutorhub.common.state_machine import PARENT_CALL_TRANSITIONS, validate_transition
from tutorhub.common.timeutil import utcnow
from tutorhub.services.parent_calls.models import Enrollment, ParentCall
from tutorhub.services.parent_calls.quota import QuotaEngine, QuotaSnapshot


_REJECTIONS = {
    ("completed", "completed"): "call already completed",
    ("cancelled", "completed"): "cannot complete a cancelled call",
    ("cancelled", "cancelled"): "call already cancelled",
    ("completed", "cancelled"): "cannot cancel a completed call",
}


class ParentCallService:
    """Creates parent calls under the monthly quota and applies terminal transitions."""

    def __init__(self, session_factory, quota: QuotaEngine, service_name: str = "parent-calls", clock=utcnow) -> None:
        self.session_factory = session_factory
        self.quota = quota
        self.service_name = service_name
        self.clock = clock

    def _store_failure(self, operation: str, exc: SQLAlchemyError) -> UpstreamStoreFailure:
        store_failures_total.labels(service=self.service_name, operation=operation).inc()
        return UpstreamStoreFailure(operation, exc)

    def create(self, enrollment_id: str, initiated_by: str = "parent", notes: str | None = None) -> ParentCall:
        """Insert a scheduled call unless the enrollment's quota is used up."""

        with log_context(entity_id=enrollment_id):
            try:
                with self.session_factory() as db:
                    if db.get(Enrollment, enrollment_id) is None:
                        parent_call_requests_total.labels(service=self.service_name, outcome="not_found").inc()
                        raise NotFound(f"enrollment {enrollment_id} not found")
            except SQLAlchemyError as exc:
                raise self._store_failure("load_enrollment", exc) from exc

            quota = self.quota.check(enrollment_id)
            if quota.remaining <= 0:
                parent_call_requests_total.labels(service=self.service_name, outcome="quota_exceeded").inc()
                logger.info(
                    "parent call rejected: quota exceeded enrollment=%s used=%s max=%s",
                    enrollment_id,
                    quota.used,
                    quota.max,
                )
                raise QuotaExceeded(quota)

            call = ParentCall(
                enrollment_id=enrollment_id,
                initiated_by=initiated_by,
                status="scheduled",
                requested_at=self.clock(),
                notes=notes,
            )
            try:
                with self.session_factory() as db:
                    db.add(call)
                    db.commit()
            except SQLAlchemyError as exc:
                raise self._store_failure("create_call", exc) from exc
            parent_call_requests_total.labels(service=self.service_name, outcome="created").inc()
            logger.info("parent call created call=%s enrollment=%s by=%s", call.call_id, enrollment_id, initiated_by)
            return call

    def _finish(self, call_id: str, target: str, values: dict) -> ParentCall:
        """Apply `scheduled -> target`, guarded on the row still being scheduled."""

        with self.session_factory() as db:
            call = db.get(ParentCall, call_id)
            if call is None:
                raise NotFound(f"parent call {call_id} not found")
            if call.status != "scheduled":
                self._reject(call, target)
            validate_transition(PARENT_CALL_TRANSITIONS, call.status, target)

            result = db.execute(
                update(ParentCall)
                .where(ParentCall.call_id == call_id, ParentCall.status == "scheduled")
                .values(status=target, **values)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            if result.rowcount != 1:
                # Lost a race with another terminal transition.
                db.refresh(call)
                self._reject(call, target)
            db.refresh(call)

        parent_call_transitions_total.labels(service=self.service_name, to_state=target).inc()
        logger.info("parent call transition call=%s to=%s", call_id, target)
        return call

    def _reject(self, call: ParentCall, target: str) -> None:
        message = _REJECTIONS.get((call.status, target), f"cannot move call from {call.status} to {target}")
        logger.info("parent call transition rejected call=%s status=%s target=%s", call.call_id, call.status, target)
        raise InvalidStateTransition(message, current=call.status, target=target)

    def complete(self, call_id: str, notes: str | None = None) -> ParentCall:
        values = {"completed_at": self.clock()}
        if notes:
            values["notes"] = notes
        try:
            return self._finish(call_id, "completed", values)
        except SQLAlchemyError as exc:
            raise self._store_failure("complete_call", exc) from exc

    def cancel(self, call_id: str, reason: str | None = None) -> ParentCall:
        """Cancel a scheduled call; the slot is free again on the next quota check."""

        values = {"cancelled_at": self.clock()}
        if reason:
            values["notes"] = reason
        try:
            return self._finish(call_id, "cancelled", values)
        except SQLAlchemyError as exc:
            raise self._store_failure("cancel_call", exc) from exc

    def list(self, enrollment_id: str) -> tuple[list[ParentCall], QuotaSnapshot]:
        """All calls for the enrollment, newest request first, plus the quota snapshot."""

        try:
            with self.session_factory() as db:
                calls = list(
                    db.execute(
                        select(ParentCall)
                        .where(ParentCall.enrollment_id == enrollment_id)
                        .order_by(ParentCall.requested_at.desc())
                    ).scalars()
                )
        except SQLAlchemyError as exc:
            raise self._store_failure("list_calls", exc) from exc
        return calls, self.quota.check(enrollment_id)
