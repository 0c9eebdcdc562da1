"""
Clinic scheduling rules.

Pure checks on a proposed appointment start time. No I/O: the policy and the
evaluation instant are both passed in, so results are deterministic.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import FrozenSet, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .results import Result, RuleViolation, RuleViolationKind

WEEKDAY_NAMES = {
    1: "Monday", 2: "Tuesday", 3: "Wednesday", 4: "Thursday",
    5: "Friday", 6: "Saturday", 7: "Sunday",
}


def _parse_hhmm(value: str) -> time:
    hour, minute = value.strip().split(":")
    return time(int(hour), int(minute))


def _parse_window(value: Optional[str]) -> Optional[Tuple[time, time]]:
    if value is None or not str(value).strip():
        return None
    start, end = str(value).split("-")
    return _parse_hhmm(start), _parse_hhmm(end)


@dataclass(frozen=True)
class ClinicPolicy:
    """
    Per-deployment scheduling policy.

    Attributes:
        operating_weekdays: ISO weekday numbers the clinic books (1=Monday, 7=Sunday)
        opening_time: first bookable local time
        closing_time: end of the bookable window, exclusive
        excluded_window: optional interior [start, end) window, e.g. lunch
        slot_minutes: start minutes must be a multiple of this, counted from the top of the hour
        timezone: IANA zone used to read wall-clock time
        max_advance_days: optional limit on how far ahead a booking may be
    """
    operating_weekdays: FrozenSet[int] = frozenset({1, 2, 3, 4, 5, 6})
    opening_time: time = time(9, 0)
    closing_time: time = time(15, 0)
    excluded_window: Optional[Tuple[time, time]] = (time(12, 0), time(13, 0))
    slot_minutes: int = 30
    timezone: str = "America/Mexico_City"
    max_advance_days: Optional[int] = None

    def __post_init__(self):
        if not self.operating_weekdays or not set(self.operating_weekdays) <= set(WEEKDAY_NAMES):
            raise ValueError(f"operating_weekdays must be ISO weekday numbers 1-7, got {sorted(self.operating_weekdays)}")
        if self.opening_time >= self.closing_time:
            raise ValueError("opening_time must be before closing_time")
        if self.excluded_window is not None:
            start, end = self.excluded_window
            if start >= end:
                raise ValueError("excluded_window start must be before its end")
        if self.slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        if self.max_advance_days is not None and self.max_advance_days < 0:
            raise ValueError("max_advance_days cannot be negative")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {self.timezone!r}") from e

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def localize(self, value: datetime) -> datetime:
        """Clinic wall-clock view of ``value``; naive values are taken as clinic-local."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.zone)
        return value.astimezone(self.zone)

    @classmethod
    def from_config(cls, cfg: Mapping) -> "ClinicPolicy":
        """Build a policy from the CLINIC_* keys of a Flask config (or any mapping)."""
        weekdays = cfg.get("CLINIC_OPERATING_WEEKDAYS", "1,2,3,4,5,6")
        if isinstance(weekdays, str):
            weekdays = [int(d) for d in weekdays.split(",") if d.strip()]
        max_advance = cfg.get("CLINIC_MAX_ADVANCE_DAYS")
        if isinstance(max_advance, str):
            max_advance = int(max_advance) if max_advance.strip() else None
        excluded = cfg.get("CLINIC_EXCLUDED_WINDOW")
        if isinstance(excluded, str):
            excluded = _parse_window(excluded)
        return cls(
            operating_weekdays=frozenset(weekdays),
            opening_time=_parse_hhmm(cfg.get("CLINIC_OPENING_TIME", "09:00")),
            closing_time=_parse_hhmm(cfg.get("CLINIC_CLOSING_TIME", "15:00")),
            excluded_window=excluded,
            slot_minutes=int(cfg.get("CLINIC_SLOT_MINUTES", 30)),
            timezone=cfg.get("CLINIC_TIMEZONE", "America/Mexico_City"),
            max_advance_days=max_advance,
        )


def _violation(kind: RuleViolationKind, reason: str) -> Result:
    return Result.failure(RuleViolation(kind=kind, reason=reason))


def evaluate(scheduled_at: datetime, policy: ClinicPolicy, now: Optional[datetime] = None) -> Result:
    """
    Check a proposed start time against the clinic policy.

    Checks run in a fixed order and the first failure wins: not in the past,
    operating weekday, business hours, excluded window, slot granularity and,
    when configured, maximum advance.

    Args:
        scheduled_at: proposed start; naive values are read as clinic-local time
        policy: the clinic policy to apply
        now: evaluation instant; defaults to the current time

    Returns:
        Result.success() or Result.failure(RuleViolation)
    """
    local = policy.localize(scheduled_at)
    current = policy.localize(now) if now is not None else datetime.now(policy.zone)

    if local < current:
        return _violation(RuleViolationKind.NOT_IN_PAST, "Appointments cannot be scheduled in the past")

    weekday = local.isoweekday()
    if weekday not in policy.operating_weekdays:
        return _violation(
            RuleViolationKind.WEEKDAY_DISALLOWED,
            f"The clinic does not book appointments on {WEEKDAY_NAMES[weekday]}",
        )

    time_of_day = local.time()
    if not (policy.opening_time <= time_of_day < policy.closing_time):
        return _violation(
            RuleViolationKind.OUTSIDE_BUSINESS_HOURS,
            f"Outside business hours ({policy.opening_time:%H:%M}-{policy.closing_time:%H:%M})",
        )

    if policy.excluded_window is not None:
        start, end = policy.excluded_window
        if start <= time_of_day < end:
            return _violation(
                RuleViolationKind.WITHIN_EXCLUDED_WINDOW,
                f"Not available during the lunch break ({start:%H:%M}-{end:%H:%M})",
            )

    if local.minute % policy.slot_minutes != 0 or local.second or local.microsecond:
        return _violation(
            RuleViolationKind.INVALID_SLOT_GRANULARITY,
            f"Start time must fall on {policy.slot_minutes}-minute intervals",
        )

    if policy.max_advance_days is not None:
        if local > current + timedelta(days=policy.max_advance_days):
            return _violation(
                RuleViolationKind.EXCEEDS_MAX_ADVANCE,
                f"Appointments can only be booked up to {policy.max_advance_days} days in advance",
            )

    return Result.success()


def generate_time_slots(day: date, policy: ClinicPolicy) -> List[datetime]:
    """
    All slot start times the policy allows on ``day`` (clinic-local, tz-aware).

    Ignores "now"; use ``evaluate`` or ``available_slots`` to drop past slots.
    """
    if day.isoweekday() not in policy.operating_weekdays:
        return []

    zone = policy.zone
    slots = []
    for hour in range(policy.opening_time.hour, 24):
        for minute in range(0, 60, policy.slot_minutes):
            slot_time = time(hour, minute)
            if slot_time < policy.opening_time:
                continue
            if slot_time >= policy.closing_time:
                return slots
            if policy.excluded_window is not None:
                start, end = policy.excluded_window
                if start <= slot_time < end:
                    continue
            slots.append(datetime.combine(day, slot_time, tzinfo=zone))
    return slots
