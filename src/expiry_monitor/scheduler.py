"""
Cron scheduler for the periodic expiry check.

Expressions use the standard five cron fields (minute, hour, day of month,
month, day of week with 0 or 7 = Sunday); a leading seconds field is
accepted and ignored. The @hourly, @daily, @weekly, @monthly and @yearly
shortcuts are supported. Schedules are evaluated in UTC.

A failing task is logged and the loop keeps running, so one bad run never
stops the next trigger.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger

DEFAULT_CRON = "0 0 * * *"

ALIASES = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}


class CronParseError(ValueError):
    """Raised when a cron expression cannot be parsed."""

    def __init__(self, message: str, expression: str) -> None:
        self.message = message
        self.expression = expression
        super().__init__(f"{message}: '{expression}'")


@dataclass
class CronField:
    """Allowed values of one cron field."""

    values: frozenset[int]
    min_value: int
    max_value: int

    @property
    def is_wildcard(self) -> bool:
        return len(self.values) == self.max_value - self.min_value + 1

    def matches(self, value: int) -> bool:
        return value in self.values


@dataclass
class CronSchedule:
    """A parsed cron expression."""

    minute: CronField
    hour: CronField
    day_of_month: CronField
    month: CronField
    day_of_week: CronField  # 0 = Sunday
    expression: str

    def matches(self, dt: datetime) -> bool:
        """Check whether the minute containing ``dt`` is a firing minute."""
        if not (
            self.minute.matches(dt.minute)
            and self.hour.matches(dt.hour)
            and self.month.matches(dt.month)
        ):
            return False

        cron_weekday = (dt.weekday() + 1) % 7
        dom_match = self.day_of_month.matches(dt.day)
        dow_match = self.day_of_week.matches(cron_weekday)

        # Restricting both day fields means either may match
        if self.day_of_month.is_wildcard and self.day_of_week.is_wildcard:
            return True
        if self.day_of_month.is_wildcard:
            return dow_match
        if self.day_of_week.is_wildcard:
            return dom_match
        return dom_match or dow_match

    def next_run(self, after: datetime, limit_days: int = 366 * 5) -> datetime:
        """
        First matching minute strictly after ``after``.

        Raises:
            CronParseError: If nothing matches within ``limit_days``
                (e.g. ``0 0 31 2 *``)
        """
        candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
        end = candidate + timedelta(days=limit_days)
        while candidate < end:
            if not self.month.matches(candidate.month):
                candidate = _first_of_next_month(candidate)
                continue
            if not self.hour.matches(candidate.hour):
                candidate = candidate.replace(minute=0) + timedelta(hours=1)
                continue
            if self.matches(candidate):
                return candidate
            candidate += timedelta(minutes=1)
        raise CronParseError("Schedule never fires", self.expression)


def _first_of_next_month(dt: datetime) -> datetime:
    if dt.month == 12:
        return dt.replace(year=dt.year + 1, month=1, day=1, hour=0, minute=0)
    return dt.replace(month=dt.month + 1, day=1, hour=0, minute=0)


class CronParser:
    """Parser for cron expressions."""

    # (min, max, name)
    FIELD_DEFS = [
        (0, 59, "minute"),
        (0, 23, "hour"),
        (1, 31, "day_of_month"),
        (1, 12, "month"),
        (0, 7, "day_of_week"),
    ]

    MONTH_NAMES = {
        "jan": 1, "feb": 2, "mar": 3, "apr": 4,
        "may": 5, "jun": 6, "jul": 7, "aug": 8,
        "sep": 9, "oct": 10, "nov": 11, "dec": 12,
    }

    DOW_NAMES = {
        "sun": 0, "mon": 1, "tue": 2, "wed": 3,
        "thu": 4, "fri": 5, "sat": 6,
    }

    def parse(self, expression: str) -> CronSchedule:
        """
        Parse a cron expression.

        Supports ``*``, lists (``,``), ranges (``-``), steps (``/``),
        month and weekday names, and the ``@`` shortcuts.

        Raises:
            CronParseError: If the expression is invalid
        """
        original = expression
        expression = expression.strip()
        if not expression:
            raise CronParseError("Empty cron expression", original)

        expression = ALIASES.get(expression.lower(), expression)
        if expression.startswith("@"):
            raise CronParseError("Unknown cron shortcut", original)

        fields = expression.split()
        if len(fields) == 6:
            fields = fields[1:]
        elif len(fields) != 5:
            raise CronParseError(
                f"Invalid number of fields (expected 5 or 6, got {len(fields)})",
                original,
            )

        parsed = []
        for text, (min_val, max_val, name) in zip(fields, self.FIELD_DEFS):
            try:
                parsed.append(self._parse_field(text, min_val, max_val, name))
            except ValueError as e:
                raise CronParseError(f"Invalid {name} field: {e}", original) from e

        dow = parsed[4]
        if 7 in dow.values:
            # 7 is an alias for Sunday
            dow = CronField(frozenset((dow.values - {7}) | {0}), 0, 6)
        else:
            dow = CronField(dow.values, 0, 6)

        return CronSchedule(
            minute=parsed[0],
            hour=parsed[1],
            day_of_month=parsed[2],
            month=parsed[3],
            day_of_week=dow,
            expression=original.strip(),
        )

    def _resolve_name(self, token: str, field_name: str) -> int:
        names = {}
        if field_name == "month":
            names = self.MONTH_NAMES
        elif field_name == "day_of_week":
            names = self.DOW_NAMES
        key = token.lower()
        if key in names:
            return names[key]
        try:
            return int(token)
        except ValueError:
            raise ValueError(f"Invalid value: {token}")

    def _parse_field(
        self, text: str, min_val: int, max_val: int, field_name: str
    ) -> CronField:
        values: set[int] = set()

        for part in text.split(","):
            part = part.strip()
            if not part:
                raise ValueError("Empty list element")

            step = 1
            if "/" in part:
                part, step_text = part.split("/", 1)
                try:
                    step = int(step_text)
                except ValueError:
                    raise ValueError(f"Invalid step value: {step_text}")
                if step < 1:
                    raise ValueError(f"Step must be >= 1, got {step}")

            if part == "*":
                start, end = min_val, max_val
            elif "-" in part:
                start_text, end_text = part.split("-", 1)
                start = self._resolve_name(start_text, field_name)
                end = self._resolve_name(end_text, field_name)
                if start > end:
                    raise ValueError(f"Range start {start} > end {end}")
            else:
                start = self._resolve_name(part, field_name)
                # "5/15" means from 5 to the end in steps of 15
                end = max_val if step > 1 else start

            for bound in (start, end):
                if bound < min_val or bound > max_val:
                    raise ValueError(f"Value {bound} out of bounds [{min_val}-{max_val}]")

            values.update(range(start, end + 1, step))

        return CronField(values=frozenset(values), min_value=min_val, max_value=max_val)


@dataclass
class ScheduledTask:
    """A named cron task."""

    name: str
    schedule: CronSchedule
    callback: Callable[[], Awaitable[object]]
    last_run: Optional[datetime] = None
    enabled: bool = True
    failures: int = 0


class Scheduler:
    """Runs async callbacks on cron schedules, once per matching minute."""

    COMPONENT = "scheduler"

    def __init__(
        self,
        logger: Optional[AuditLogger] = None,
        check_interval_seconds: float = 60.0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Args:
            logger: Optional audit logger for task failures
            check_interval_seconds: Polling interval of the run loop
            clock: Source of the current UTC time (for tests)
        """
        self._parser = CronParser()
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False
        self._logger = logger
        self._check_interval_seconds = check_interval_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def schedule(
        self,
        name: str,
        cron_expression: str,
        callback: Callable[[], Awaitable[object]],
    ) -> CronSchedule:
        """
        Register a task.

        Raises:
            CronParseError: If the expression is invalid
            ValueError: If a task with the same name exists
        """
        if name in self._tasks:
            raise ValueError(f"Task '{name}' already exists")
        schedule = self._parser.parse(cron_expression)
        self._tasks[name] = ScheduledTask(name=name, schedule=schedule, callback=callback)
        return schedule

    def unschedule(self, name: str) -> bool:
        return self._tasks.pop(name, None) is not None

    def get_task(self, name: str) -> Optional[ScheduledTask]:
        return self._tasks.get(name)

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    def parse_cron(self, expression: str) -> CronSchedule:
        """Parse an expression without scheduling it (for validation)."""
        return self._parser.parse(expression)

    async def tick(self, now: Optional[datetime] = None) -> list[str]:
        """
        Run every enabled task due in the current minute.

        Each task runs at most once per minute. Exceptions raised by a task
        are logged and counted, never propagated.

        Returns:
            Names of the tasks that ran
        """
        current = now or self._clock()
        minute = current.replace(second=0, microsecond=0)
        ran = []

        for task in list(self._tasks.values()):
            if not task.enabled or not task.schedule.matches(minute):
                continue
            if task.last_run is not None and task.last_run >= minute:
                continue

            task.last_run = minute
            ran.append(task.name)
            try:
                await task.callback()
            except Exception as e:
                task.failures += 1
                if self._logger:
                    self._logger.log_error(
                        self.COMPONENT,
                        "Scheduled task failed",
                        error=e,
                        additional_data={"task": task.name, "minute": minute.isoformat()},
                    )
        return ran

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Run the scheduler loop until ``stop()`` is called or ``stop_event``
        is set.
        """
        self._running = True
        if self._logger:
            self._logger.info(self.COMPONENT, "Scheduler started", {
                "tasks": {t.name: t.schedule.expression for t in self._tasks.values()},
            })

        try:
            while self._running:
                await self.tick()
                if stop_event is None:
                    await asyncio.sleep(self._check_interval_seconds)
                    continue
                try:
                    await asyncio.wait_for(stop_event.wait(), self._check_interval_seconds)
                except asyncio.TimeoutError:
                    continue
                break
        finally:
            self._running = False
            if self._logger:
                self._logger.info(self.COMPONENT, "Scheduler stopped")

    def stop(self) -> None:
        self._running = False

    def is_running(self) -> bool:
        return self._running
