"""
Reads the shutdown policy a user authored on an instance through its tags.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from auto_shutdown.commons import (
    MAX_STOP_AFTER_MINUTES,
    STOP_AFTER_MINUTES_TAG,
    TERMINATE_TAG,
    TERMINATE_TAG_VALUE,
)


class PolicyStatus(Enum):
    SCHEDULED = "scheduled"
    MISSING = "missing"
    INVALID = "invalid"


@dataclass(frozen=True)
class Policy:
    status: PolicyStatus
    stop_after_minutes: Optional[int] = None
    terminate_on_shutdown: bool = False
    raw_stop_after_minutes: Optional[str] = None

    @property
    def should_schedule(self) -> bool:
        return self.status is PolicyStatus.SCHEDULED


def parse_stop_after_minutes(value) -> Optional[int]:
    """
    Parse a relative minute count.

    Surrounding whitespace and a leading ``+`` are accepted, otherwise only
    ASCII digits are. Negative numbers, fractions, values above
    ``MAX_STOP_AFTER_MINUTES`` and anything else yield ``None``.

    Parameters
    ----------
    value : str or int
        The tag (or message field) value.

    Returns
    -------
    int or None
        The number of minutes, or None if the value is not usable.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 <= value <= MAX_STOP_AFTER_MINUTES else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.startswith("+"):
        text = text[1:]

    if not text or not text.isascii() or not text.isdigit():
        return None

    minutes = int(text)
    if minutes > MAX_STOP_AFTER_MINUTES:
        return None

    return minutes


def terminate_on_shutdown(tags: Mapping[str, str]) -> bool:
    value = tags.get(TERMINATE_TAG)
    if value is None:
        return False
    return value.casefold() == TERMINATE_TAG_VALUE.casefold()


def read_policy(tags: Mapping[str, str]) -> Policy:
    terminate = terminate_on_shutdown(tags)

    raw = tags.get(STOP_AFTER_MINUTES_TAG)
    if raw is None:
        return Policy(status=PolicyStatus.MISSING, terminate_on_shutdown=terminate)

    minutes = parse_stop_after_minutes(raw)
    if minutes is None:
        return Policy(
            status=PolicyStatus.INVALID,
            terminate_on_shutdown=terminate,
            raw_stop_after_minutes=raw,
        )

    return Policy(
        status=PolicyStatus.SCHEDULED,
        stop_after_minutes=minutes,
        terminate_on_shutdown=terminate,
        raw_stop_after_minutes=raw,
    )
