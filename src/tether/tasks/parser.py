"""Parse and evaluate cron schedules in a task's timezone."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterError, croniter

# Upper bound on candidates examined around DST transitions
_MAX_CANDIDATES = 1000


class InvalidScheduleError(ValueError):
    """Cron expression or timezone rejected before anything is stored."""


def parse_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name.

    Raises:
        InvalidScheduleError: If the zone is unknown or malformed
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidScheduleError(f"Unknown timezone: {name!r}") from e


@dataclass(frozen=True)
class CronSchedule:
    """A validated cron expression bound to a timezone.

    Accepts 5 fields (minute hour day month weekday) or 6 fields with a
    leading seconds field.

    On a fall-back night, schedules with a wildcard hour fire in both
    passes of the repeated hour; schedules naming the hour fire once, in
    the first pass.
    """

    expression: str
    timezone: str
    zone: ZoneInfo = field(repr=False, compare=False)
    _croniter_expr: str = field(repr=False, compare=False)
    _wildcard_hour: bool = field(repr=False, compare=False)

    @classmethod
    def parse(cls, expression: str, tz_name: str) -> "CronSchedule":
        """
        Validate a cron expression and timezone.

        Raises:
            InvalidScheduleError: If the expression or zone is invalid
        """
        zone = parse_timezone(tz_name)

        fields = expression.split()
        if len(fields) not in (5, 6):
            raise InvalidScheduleError(
                f"Invalid cron expression {expression!r}: expected 5 or 6 fields, got {len(fields)}"
            )

        # croniter expects seconds as the trailing field
        if len(fields) == 6:
            fields = fields[1:] + fields[:1]
        croniter_expr = " ".join(fields)

        try:
            # Also rejects satisfiable-looking dates that never occur (Feb 30)
            croniter(croniter_expr, datetime(2000, 1, 1)).get_next(datetime)
        except (CroniterError, ValueError) as e:
            raise InvalidScheduleError(f"Invalid cron expression {expression!r}: {e}") from e

        return cls(
            expression=" ".join(expression.split()),
            timezone=tz_name,
            zone=zone,
            _croniter_expr=croniter_expr,
            _wildcard_hour=fields[1].startswith("*"),
        )

    def next_after(self, after: datetime) -> datetime:
        """
        First fire instant strictly after `after`.

        Evaluated on the zone's wall clock, so "0 9 * * *" stays at 09:00
        local across DST changes. Wall-clock times skipped by spring-forward
        resolve with the pre-transition offset. Naive input is taken as
        system local time.

        Returns:
            Timezone-aware datetime in the schedule's zone
        """
        after_utc = after.astimezone(timezone.utc)
        local = after_utc.astimezone(self.zone)
        wall = local.replace(tzinfo=None)
        best = self._scan(wall, after_utc)

        if self._wildcard_hour and local.fold == 0 and self._is_repeated(wall):
            # First pass of a repeated hour: the second pass may come sooner
            start = self._repeat_start(local)
            naive = croniter(self._croniter_expr, start - timedelta(seconds=1)).get_next(datetime)
            if self._is_repeated(naive):
                repeat = naive.replace(tzinfo=self.zone, fold=1)
                # Same-zone comparisons ignore fold
                if repeat.astimezone(timezone.utc) < best.astimezone(timezone.utc):
                    best = repeat

        return best

    def _scan(self, start: datetime, after_utc: datetime) -> datetime:
        itr = croniter(self._croniter_expr, start)
        for _ in range(_MAX_CANDIDATES):
            naive = itr.get_next(datetime)
            candidate = naive.replace(tzinfo=self.zone)
            if candidate.astimezone(timezone.utc) > after_utc:
                return candidate
            if self._wildcard_hour and self._is_repeated(naive):
                candidate = candidate.replace(fold=1)
                if candidate.astimezone(timezone.utc) > after_utc:
                    return candidate

        raise InvalidScheduleError(f"No upcoming occurrence for {self.expression!r}")

    def _is_repeated(self, naive: datetime) -> bool:
        """True if the wall-clock time occurs twice (fall-back hour)."""
        first = naive.replace(tzinfo=self.zone)
        second = naive.replace(tzinfo=self.zone, fold=1)
        if first.utcoffset() == second.utcoffset():
            return False
        # Skipped spring-forward times also differ by fold but do not round-trip
        round_trip = second.astimezone(timezone.utc).astimezone(self.zone)
        return round_trip.replace(tzinfo=None) == naive

    def _repeat_start(self, local: datetime) -> datetime:
        """Naive wall-clock time at which the repeated hour's second pass begins.

        `local` must lie in the first pass. Transitions fall on whole
        seconds, so a bisection over epoch seconds finds the exact instant.
        """
        before = local.utcoffset()
        repeated = local.replace(fold=1).utcoffset()
        lo = int(local.timestamp())
        hi = lo + int((before - repeated).total_seconds())
        while hi - lo > 1:
            mid = (lo + hi) // 2
            if datetime.fromtimestamp(mid, self.zone).utcoffset() == before:
                lo = mid
            else:
                hi = mid
        return datetime.fromtimestamp(hi, timezone.utc).replace(tzinfo=None) + repeated

    def next_run(self, now: datetime | None = None) -> datetime:
        """Next fire instant after now."""
        return self.next_after(now or datetime.now(timezone.utc))
