"""
Restaurant configuration: business calendar and reservation policy.
Both are plain immutable values passed into the engine explicitly.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import pytz

from core.utils_datetime import MINUTES_PER_DAY, parse_hhmm, time_to_minutes, format_hhmm
from domain.enums import DayOfWeek


logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when restaurant configuration cannot support bookings."""
    pass


@dataclass(frozen=True)
class DayHours:
    """Opening hours for one weekday."""
    open: time
    close: time
    closed: bool = False

    def __post_init__(self):
        if not self.closed and self.open >= self.close:
            raise ConfigurationError(
                f"Opening time {format_hhmm(self.open)} must be before closing time {format_hhmm(self.close)}"
            )

    @property
    def open_minutes(self) -> int:
        return time_to_minutes(self.open)

    @property
    def close_minutes(self) -> int:
        return time_to_minutes(self.close)

    @property
    def length_minutes(self) -> int:
        """Minutes between opening and closing (0 for closed days)."""
        if self.closed:
            return 0
        return self.close_minutes - self.open_minutes

    @classmethod
    def closed_day(cls) -> "DayHours":
        return cls(open=time(0, 0), close=time(0, 0), closed=True)

    @classmethod
    def parse(cls, value: Union["DayHours", str, Mapping[str, Any]]) -> "DayHours":
        """
        Build DayHours from the admin settings representations.

        Accepts {"open": "11:00", "close": "22:00", "closed": false},
        "11:00-22:00", or "closed".
        """
        if isinstance(value, DayHours):
            return value
        try:
            if isinstance(value, str):
                if value.strip().lower() == "closed":
                    return cls.closed_day()
                open_text, close_text = value.split("-", 1)
                return cls(open=parse_hhmm(open_text), close=parse_hhmm(close_text))
            if value.get("closed"):
                return cls.closed_day()
            return cls(open=parse_hhmm(value["open"]), close=parse_hhmm(value["close"]))
        except (KeyError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Invalid opening hours {value!r}: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "open": format_hhmm(self.open),
            "close": format_hhmm(self.close),
            "closed": self.closed,
        }


@dataclass(frozen=True)
class BusinessCalendar:
    """Opening hours for exactly seven weekdays, indexed by DayOfWeek."""
    days: Tuple[DayHours, ...]

    def __post_init__(self):
        if len(self.days) != len(DayOfWeek):
            raise ConfigurationError(
                f"Business calendar needs {len(DayOfWeek)} weekdays, got {len(self.days)}"
            )

    @classmethod
    def from_mapping(cls, hours: Mapping[Union[DayOfWeek, str], Any]) -> "BusinessCalendar":
        """
        Build a calendar from a weekday-keyed mapping.

        Raises:
            ConfigurationError: If any weekday is missing or unknown
        """
        by_day: Dict[DayOfWeek, DayHours] = {}
        for key, value in hours.items():
            try:
                day = key if isinstance(key, DayOfWeek) else DayOfWeek.from_name(key)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            by_day[day] = DayHours.parse(value)

        missing = [day.name.lower() for day in DayOfWeek if day not in by_day]
        if missing:
            raise ConfigurationError(f"Opening hours missing for: {', '.join(missing)}")

        return cls(days=tuple(by_day[day] for day in DayOfWeek))

    @classmethod
    def uniform(cls, hours: DayHours) -> "BusinessCalendar":
        return cls(days=tuple(hours for _ in DayOfWeek))

    def hours_for(self, day: date) -> DayHours:
        """Hours for the weekday of `day`."""
        return self.days[day.weekday()]

    def hours_for_weekday(self, weekday: DayOfWeek) -> DayHours:
        return self.days[weekday]

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {day.name.lower(): self.days[day].to_dict() for day in DayOfWeek}


@dataclass(frozen=True)
class ReservationPolicy:
    """Booking window and slot shape."""
    max_days_in_advance: int = 30
    min_hours_in_advance: int = 2
    time_slot_interval: int = 30  # minutes
    default_reservation_duration: int = 90  # minutes

    def __post_init__(self):
        if self.max_days_in_advance < 1:
            raise ConfigurationError("max_days_in_advance must be at least 1")
        if self.min_hours_in_advance < 0:
            raise ConfigurationError("min_hours_in_advance cannot be negative")
        if self.time_slot_interval <= 0 or MINUTES_PER_DAY % self.time_slot_interval != 0:
            raise ConfigurationError(
                f"time_slot_interval must divide a day evenly (got {self.time_slot_interval})"
            )
        if self.default_reservation_duration <= 0:
            raise ConfigurationError("default_reservation_duration must be positive")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReservationPolicy":
        """Build a policy from the admin `reservation_settings` block."""
        defaults = cls()
        try:
            return cls(
                max_days_in_advance=int(data.get("max_days_in_advance", defaults.max_days_in_advance)),
                min_hours_in_advance=int(data.get("min_hours_in_advance", defaults.min_hours_in_advance)),
                time_slot_interval=int(data.get("time_slot_interval", defaults.time_slot_interval)),
                default_reservation_duration=int(
                    data.get("default_reservation_duration", defaults.default_reservation_duration)
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid reservation settings: {e}") from e

    def to_dict(self) -> Dict[str, int]:
        return {
            "max_days_in_advance": self.max_days_in_advance,
            "min_hours_in_advance": self.min_hours_in_advance,
            "time_slot_interval": self.time_slot_interval,
            "default_reservation_duration": self.default_reservation_duration,
        }


DEFAULT_OPENING_HOURS: Dict[str, Dict[str, Any]] = {
    "monday": {"open": "11:00", "close": "22:00", "closed": False},
    "tuesday": {"open": "11:00", "close": "22:00", "closed": False},
    "wednesday": {"open": "11:00", "close": "22:00", "closed": False},
    "thursday": {"open": "11:00", "close": "22:00", "closed": False},
    "friday": {"open": "11:00", "close": "23:00", "closed": False},
    "saturday": {"open": "10:00", "close": "23:00", "closed": False},
    "sunday": {"open": "10:00", "close": "22:00", "closed": False},
}


@dataclass(frozen=True)
class RestaurantConfig:
    """Complete restaurant configuration consulted by the engine."""
    calendar: BusinessCalendar
    policy: ReservationPolicy = field(default_factory=ReservationPolicy)
    name: str = "Savoria"
    timezone: str = "Europe/Bratislava"

    @property
    def tz(self) -> pytz.BaseTzInfo:
        """Get the timezone object."""
        try:
            return pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigurationError(f"Unknown timezone '{self.timezone}'") from e

    def problems(self) -> List[str]:
        """Describe every open day on which no reservation fits."""
        duration = self.policy.default_reservation_duration
        issues = []
        for day in DayOfWeek:
            hours = self.calendar.hours_for_weekday(day)
            if not hours.closed and hours.length_minutes < duration:
                issues.append(
                    f"{day.name.lower()}: open {hours.length_minutes} minutes, "
                    f"shorter than the {duration}-minute reservation duration"
                )
        return issues

    def validate(self) -> "RestaurantConfig":
        """
        Check cross-field invariants.

        Raises:
            ConfigurationError: If a reservation cannot fit on some open day,
                or the timezone is unknown
        """
        if self.tz is None:
            raise ConfigurationError("Restaurant timezone is not set")
        issues = self.problems()
        if issues:
            raise ConfigurationError("; ".join(issues))
        return self

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        name: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> "RestaurantConfig":
        """Build from the admin settings document shape."""
        if "opening_hours" not in data:
            raise ConfigurationError("Restaurant settings have no opening_hours")
        return cls(
            calendar=BusinessCalendar.from_mapping(data["opening_hours"]),
            policy=ReservationPolicy.from_dict(data.get("reservation_settings") or {}),
            name=name or data.get("restaurant_name", "Savoria"),
            timezone=timezone or data.get("timezone", "Europe/Bratislava"),
        ).validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restaurant_name": self.name,
            "timezone": self.timezone,
            "opening_hours": self.calendar.to_dict(),
            "reservation_settings": self.policy.to_dict(),
        }


def get_default_restaurant_config(
    name: str = "Savoria",
    timezone: str = "Europe/Bratislava",
) -> RestaurantConfig:
    """Get the default restaurant configuration."""
    return RestaurantConfig.from_dict(
        {"opening_hours": DEFAULT_OPENING_HOURS},
        name=name,
        timezone=timezone,
    )


def load_restaurant_config(
    path: Union[str, Path],
    name: Optional[str] = None,
    timezone: Optional[str] = None,
) -> RestaurantConfig:
    """
    Load restaurant configuration from a JSON settings file.

    Args:
        path: JSON file with `opening_hours` and `reservation_settings`
        name: Overrides the restaurant name in the file
        timezone: Overrides the timezone in the file

    Returns:
        Validated RestaurantConfig

    Raises:
        ConfigurationError: If the file is unreadable or the configuration invalid
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read restaurant settings from {path}: {e}") from e

    config = RestaurantConfig.from_dict(data, name=name, timezone=timezone)
    logger.info(f"Loaded restaurant configuration from {path}")
    return config
