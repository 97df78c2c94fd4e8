"""User alert preferences: on/off switch, crime-type allow-list and active window."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import FrozenSet, Optional

SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY = range(7)


@dataclass(slots=True)
class AlertPreferences:
    alerts_enabled: bool = True
    # empty means every crime type
    enabled_crime_types: FrozenSet[str] = field(default_factory=frozenset)
    active_hours_start: Optional[time] = None
    active_hours_end: Optional[time] = None
    # 0 = Sunday .. 6 = Saturday; empty means every day
    active_days: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self.enabled_crime_types = frozenset(self.enabled_crime_types)
        self.active_days = frozenset(day for day in self.active_days if 0 <= day <= 6)

    def is_crime_type_enabled(self, crime_type: Optional[str]) -> bool:
        if not self.enabled_crime_types or crime_type is None:
            return True
        return crime_type in self.enabled_crime_types

    def is_active_on_day(self, moment: datetime) -> bool:
        if not self.active_days:
            return True
        # datetime.weekday() is Monday-based
        return (moment.weekday() + 1) % 7 in self.active_days

    def is_active_at_hour(self, moment: datetime) -> bool:
        if self.active_hours_start is None or self.active_hours_end is None:
            return True
        current = moment.time().replace(second=0, microsecond=0)
        start, end = self.active_hours_start, self.active_hours_end
        if start > end:
            # overnight window such as 22:00-06:00
            return current >= start or current <= end
        return start <= current <= end

    def is_active_at(self, moment: datetime) -> bool:
        if self.active_hours_start is None and self.active_hours_end is None and not self.active_days:
            return True
        return self.is_active_on_day(moment) and self.is_active_at_hour(moment)

    @classmethod
    def night_only(cls, **kwargs) -> "AlertPreferences":
        return cls(active_hours_start=time(18, 0), active_hours_end=time(6, 0), **kwargs)

    @classmethod
    def weekend_only(cls, **kwargs) -> "AlertPreferences":
        return cls(active_days=frozenset({SATURDAY, SUNDAY}), **kwargs)
