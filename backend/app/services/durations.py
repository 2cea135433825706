"""
Duration Parser - turns human-readable duration strings into minutes.

Meeting exports write durations in several shapes:
    "1:02:30"      clock, H:MM:SS
    "45:00"        short clock, MM:SS
    "2h 25m"       unit-suffixed, any subset/order of h, m, s;
                   amounts may be decimal ("1.5h")
    "42"           bare minutes

Each shape is handled by an independent strategy that returns None when
it does not apply. parse_minutes() runs them in order and stops at the
first match. The result is None for empty or unparseable input, never 0,
because 0 is a legitimate attended duration. Results outside
0..MAX_MINUTES are treated as unparseable so they always fit the
Integer columns they are stored in.
"""

import math
import re
from fractions import Fraction
from typing import Callable, List, Optional, Union

MAX_MINUTES = 2 ** 31 - 1

CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")
SHORT_CLOCK_PATTERN = re.compile(r"^(\d{1,3}):(\d{2})$")
UNIT_AMOUNT = r"(\d+(?:\.\d+)?)\s*"
HOURS_PATTERN = re.compile(UNIT_AMOUNT + "h", re.IGNORECASE)
MINUTES_PATTERN = re.compile(UNIT_AMOUNT + "m", re.IGNORECASE)
SECONDS_PATTERN = re.compile(UNIT_AMOUNT + "s", re.IGNORECASE)


def round_half_up(value: Union[float, Fraction]) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + Fraction(1, 2)))


def within_range(minutes: int) -> Optional[int]:
    return minutes if 0 <= minutes <= MAX_MINUTES else None


def parse_clock(value: str) -> Optional[int]:
    """H:MM:SS or HH:MM:SS -> minutes."""
    match = CLOCK_PATTERN.match(value)
    if not match:
        return None
    hours, minutes, seconds = (int(g) for g in match.groups())
    return within_range(round_half_up(hours * 60 + minutes + Fraction(seconds, 60)))


def parse_short_clock(value: str) -> Optional[int]:
    """MM:SS -> minutes. "45:00" is read as 45 minutes, not 45 hours."""
    match = SHORT_CLOCK_PATTERN.match(value)
    if not match:
        return None
    minutes, seconds = (int(g) for g in match.groups())
    return within_range(round_half_up(minutes + Fraction(seconds, 60)))


def parse_unit_suffixed(value: str) -> Optional[int]:
    """
    "2h 25m", "2h25m", "49m 21s", "1h", "55m", "1.5h" -> minutes.

    Units that are not present contribute zero. Returns None when no unit
    matched at all, so "0m 0s" is a valid zero. Amounts are summed exactly,
    however many digits they have.
    """
    hours = HOURS_PATTERN.search(value)
    minutes = MINUTES_PATTERN.search(value)
    seconds = SECONDS_PATTERN.search(value)
    if not (hours or minutes or seconds):
        return None

    total = Fraction(0)
    if hours:
        total += Fraction(hours.group(1)) * 60
    if minutes:
        total += Fraction(minutes.group(1))
    if seconds:
        total += Fraction(seconds.group(1)) / 60
    return within_range(round_half_up(total))


def parse_bare_number(value: str) -> Optional[int]:
    """A plain decimal number of minutes, e.g. "42" or "42.6"."""
    try:
        number = float(value)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return within_range(round_half_up(number))


STRATEGIES: List[Callable[[str], Optional[int]]] = [
    parse_clock,
    parse_short_clock,
    parse_unit_suffixed,
    parse_bare_number,
]


def parse_minutes(value: Optional[str]) -> Optional[int]:
    """
    Convert a duration string to whole minutes.

    Args:
        value: Raw duration text from the export (may be None)

    Returns:
        Rounded minutes, or None when the value is empty, matches no
        known shape, or is out of range
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    for strategy in STRATEGIES:
        minutes = strategy(text)
        if minutes is not None:
            return minutes
    return None
