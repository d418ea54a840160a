# src/timesync_client/timesheet.py

"""
Timesheet duration math.

Billable time is recorded in decimal hours using the fixed rounding table the office
bills by, so 7 minutes is 0.12 hours and 45 minutes is 0.75 hours.
"""

import logging
from typing import Any, Dict

from .errors import InvalidInput

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

MINUTES_TO_DECIMAL: Dict[int, float] = {
    1: 0.02, 2: 0.03, 3: 0.05, 4: 0.07, 5: 0.08, 6: 0.10,
    7: 0.12, 8: 0.13, 9: 0.15, 10: 0.17, 11: 0.18, 12: 0.20,
    13: 0.22, 14: 0.23, 15: 0.25, 16: 0.27, 17: 0.28, 18: 0.30,
    19: 0.32, 20: 0.33, 21: 0.35, 22: 0.37, 23: 0.38, 24: 0.40,
    25: 0.42, 26: 0.43, 27: 0.45, 28: 0.47, 29: 0.48, 30: 0.50,
    31: 0.52, 32: 0.53, 33: 0.55, 34: 0.57, 35: 0.58, 36: 0.60,
    37: 0.62, 38: 0.63, 39: 0.65, 40: 0.67, 41: 0.68, 42: 0.70,
    43: 0.72, 44: 0.73, 45: 0.75, 46: 0.77, 47: 0.78, 48: 0.80,
    49: 0.82, 50: 0.83, 51: 0.85, 52: 0.87, 53: 0.88, 54: 0.90,
    55: 0.92, 56: 0.93, 57: 0.95, 58: 0.97, 59: 0.98, 60: 1.00,
}


def minutes_to_decimal(minutes: int) -> float:
    if minutes < 0:
        raise InvalidInput(f"Minutes cannot be negative: {minutes}")
    hours, remainder = divmod(int(minutes), 60)
    return round(hours + MINUTES_TO_DECIMAL.get(remainder, 0.0), 2)


def elapsed_minutes(start_minutes: int, end_minutes: int) -> int:
    # An end before the start means the work ran past midnight.
    if start_minutes > end_minutes:
        return MINUTES_PER_DAY - start_minutes + end_minutes
    return end_minutes - start_minutes


def calculate_total_hours(start_minutes: int, end_minutes: int) -> float:
    return minutes_to_decimal(elapsed_minutes(start_minutes, end_minutes))


def time_to_minutes(time_str: str) -> int:
    """Parses "HH:MM" into minutes after midnight."""
    try:
        hours_str, minutes_str = str(time_str).strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except ValueError:
        raise InvalidInput(f"Expected a time as HH:MM, got {time_str!r}")
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise InvalidInput(f"Time out of range: {time_str!r}")
    return hours * 60 + minutes


def minutes_to_time_string(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    return f"{hours:02d}:{mins:02d}"


def hours_between(start_time: str, end_time: str) -> float:
    return calculate_total_hours(time_to_minutes(start_time), time_to_minutes(end_time))


def annotate_hour_log(record: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a copy of an hour-log record carrying its duration as `decimal_hours`."""
    start, end = record.get("start_time"), record.get("end_time")
    if start and end:
        try:
            return {**record, "decimal_hours": hours_between(start, end)}
        except InvalidInput as e:
            logger.debug("Timesheet: Unusable times on log %s: %s", record.get("id"), e)
    total = record.get("totalsum")
    if isinstance(total, (int, float)) and not isinstance(total, bool):
        return {**record, "decimal_hours": round(float(total), 2)}
    return record
