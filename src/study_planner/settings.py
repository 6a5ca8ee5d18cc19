"""Planning parameters: defaults and validation."""
import calendar
from datetime import date, datetime

from study_planner.errors import ValidationError
from study_planner.models import StudyConfig, UserSettings

TIME_FORMAT = "%H:%M:%S"
DEFAULT_SETTINGS = UserSettings()
DEFAULT_DAILY_HOURS = 2.0
DEFAULT_WINDOW_MONTHS = 3


def _add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    # 31 Jan + 1 month -> last day of Feb
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def default_config(today: str) -> StudyConfig:
    start = date.fromisoformat(today)
    return StudyConfig(
        start_date=today,
        end_date=_add_months(start, DEFAULT_WINDOW_MONTHS).isoformat(),
        daily_study_hours=DEFAULT_DAILY_HOURS,
    )


def _parse_time(value: str, label: str) -> datetime:
    try:
        return datetime.strptime(value, TIME_FORMAT)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be HH:MM:SS, got {value!r}")


def _parse_date(value: str, label: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be YYYY-MM-DD, got {value!r}")


def validate_settings(settings: UserSettings) -> UserSettings:
    start = _parse_time(settings.study_start_time, "Study start time")
    end = _parse_time(settings.study_end_time, "Study end time")
    if end <= start:
        raise ValidationError("Study end time must be after the start time")
    if settings.break_duration_minutes < 0:
        raise ValidationError("Break duration cannot be negative")
    return settings


def validate_config(config: StudyConfig) -> StudyConfig:
    start = _parse_date(config.start_date, "Start date")
    end = _parse_date(config.end_date, "End date")
    if end < start:
        raise ValidationError("End date must not be before the start date")
    if config.daily_study_hours < 0:
        raise ValidationError("Daily study hours cannot be negative")
    return config


def study_window_minutes(settings: UserSettings) -> int:
    """Minutes available per day: the study window less one break."""
    start = _parse_time(settings.study_start_time, "Study start time")
    end = _parse_time(settings.study_end_time, "Study end time")
    window = int((end - start).total_seconds() // 60) - settings.break_duration_minutes
    return max(0, window)
