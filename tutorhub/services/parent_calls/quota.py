"""Monthly parent-call quota.

The quota month is a calendar month in a fixed-offset local timezone (IST,
UTC+5:30). Usage is counted straight from `parent_calls` on every check:
there is no counter to roll over, so a call from last month simply falls
outside the current window.
"""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from tutorhub.common.errors import UpstreamStoreFailure
from tutorhub.common.logging import logger
from tutorhub.common.metrics import store_failures_total
from tutorhub.common.timeutil import utcnow
from tutorhub.services.parent_calls.models import ParentCall, SiteSetting


IST_OFFSET_MINUTES = 330
MAX_PER_MONTH_KEY = "parent_call_max_per_month"


class QuotaSnapshot(BaseModel):
    used: int
    max: int
    remaining: int


def month_window_start(now: datetime, offset_minutes: int = IST_OFFSET_MINUTES) -> datetime:
    """UTC instant of local midnight on the first day of `now`'s local month.

    Naive `now` values are taken to be UTC.
    """

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    offset = timedelta(minutes=offset_minutes)
    local = now.astimezone(timezone.utc) + offset
    local_month_start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return local_month_start - offset


def _parse_max(raw, default: int) -> int:
    # JSON values may be stored as 2 or "2"; booleans are never a valid limit.
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("invalid %s setting value=%r; using default=%s", MAX_PER_MONTH_KEY, raw, default)
        return default
    if value < 0:
        logger.warning("negative %s setting value=%s; using default=%s", MAX_PER_MONTH_KEY, value, default)
        return default
    return value


class QuotaEngine:
    """Counts non-cancelled calls in the current window against the configured max."""

    def __init__(
        self,
        session_factory,
        offset_minutes: int = IST_OFFSET_MINUTES,
        default_max: int = 1,
        clock=utcnow,
        service_name: str = "parent-calls",
    ) -> None:
        self.session_factory = session_factory
        self.offset_minutes = offset_minutes
        self.default_max = default_max
        self.clock = clock
        self.service_name = service_name

    def window_start(self) -> datetime:
        return month_window_start(self.clock(), self.offset_minutes)

    def max_per_month(self, db) -> int:
        """Read the limit fresh; it may change between any two checks."""

        setting = db.get(SiteSetting, MAX_PER_MONTH_KEY)
        return _parse_max(setting.value if setting is not None else None, self.default_max)

    def count_used(self, db, enrollment_id: str, since: datetime) -> int:
        return db.execute(
            select(func.count())
            .select_from(ParentCall)
            .where(
                ParentCall.enrollment_id == enrollment_id,
                ParentCall.requested_at >= since,
                ParentCall.status != "cancelled",
            )
        ).scalar_one()

    def check(self, enrollment_id: str) -> QuotaSnapshot:
        since = self.window_start()
        try:
            with self.session_factory() as db:
                used = self.count_used(db, enrollment_id, since)
                limit = self.max_per_month(db)
        except SQLAlchemyError as exc:
            store_failures_total.labels(service=self.service_name, operation="quota_check").inc()
            raise UpstreamStoreFailure("quota_check", exc) from exc
        return QuotaSnapshot(used=used, max=limit, remaining=max(0, limit - used))
