"""
Wire formats of the messages exchanged over SNS.

The JSON field names are the public contract with other publishers and
subscribers and are kept independent of the Python attribute names.
"""
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from dateutil import tz
from dateutil.parser import isoparse

from auto_shutdown.commons import NAME_TAG
from auto_shutdown.errors import DeadlineParseError, MessageDecodeError
from auto_shutdown.models import Instance
from auto_shutdown.policy import parse_stop_after_minutes


def format_deadline(deadline: datetime) -> str:
    """
    Render a deadline as an ISO-8601 UTC timestamp that ``parse_deadline``
    reads back to the same instant.
    """
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=tz.tzutc())
    return deadline.astimezone(tz.tzutc()).isoformat()


def parse_deadline(value: str) -> datetime:
    """
    Parse a stored deadline.

    Timestamps without an offset are read as UTC. Fractional seconds longer
    than microseconds are truncated.

    Raises
    ------
    DeadlineParseError
        If the value is not an ISO-8601 timestamp.
    """
    try:
        deadline = isoparse(value.strip())
        if deadline.tzinfo is None:
            return deadline.replace(tzinfo=tz.tzutc())
        # Offsets near the ends of the datetime range overflow when moved to UTC
        return deadline.astimezone(tz.tzutc())
    except (ValueError, OverflowError):
        raise DeadlineParseError(value) from None


def _load_object(text) -> dict:
    if isinstance(text, (bytes, bytearray)):
        text = text.decode("utf-8")
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MessageDecodeError(f"Message is not valid JSON: {e}") from None

    if not isinstance(payload, dict):
        raise MessageDecodeError(f"Message must be a JSON object, got {payload!r}")

    return payload


@dataclass(frozen=True)
class ScheduleRequest:
    """
    Ask for an instance to be shut down ``stop_after_minutes`` from the
    moment the request is processed.
    """

    SCHEMA_VERSION = 1

    instance_id: str
    stop_after_minutes: int

    def encode(self) -> str:
        return json.dumps(
            {
                "InstanceId": self.instance_id,
                "StopAfterMinutes": self.stop_after_minutes,
            }
        )

    @classmethod
    def decode(cls, text) -> "ScheduleRequest":
        payload = _load_object(text)

        instance_id = payload.get("InstanceId")
        if not isinstance(instance_id, str) or not instance_id.strip():
            raise MessageDecodeError(f"InstanceId missing or invalid in {payload!r}")

        minutes = parse_stop_after_minutes(payload.get("StopAfterMinutes"))
        if minutes is None:
            raise MessageDecodeError(
                f"StopAfterMinutes missing or invalid in {payload!r}"
            )

        return cls(instance_id=instance_id.strip(), stop_after_minutes=minutes)

    def deadline_from(self, received_at: datetime) -> datetime:
        return received_at + timedelta(minutes=self.stop_after_minutes)


@dataclass(frozen=True)
class ShutdownNotification:
    """
    Published after an instance has been stopped or terminated.
    """

    SCHEMA_VERSION = 1

    instance_id: str
    terminated: bool
    launch_time: Optional[datetime]
    on_duration_minutes: float
    name: Optional[str]
    instance_type: Optional[str]

    def encode(self) -> str:
        return json.dumps(
            {
                "InstanceId": self.instance_id,
                "Terminated": self.terminated,
                "LaunchTime": (
                    format_deadline(self.launch_time) if self.launch_time else None
                ),
                "OnDuration": self.on_duration_minutes,
                "Name": self.name,
                "InstanceType": self.instance_type,
            }
        )

    @classmethod
    def decode(cls, text) -> "ShutdownNotification":
        payload = _load_object(text)

        try:
            launch_time = payload.get("LaunchTime")
            return cls(
                instance_id=payload["InstanceId"],
                terminated=bool(payload["Terminated"]),
                launch_time=parse_deadline(launch_time) if launch_time else None,
                on_duration_minutes=float(payload.get("OnDuration") or 0.0),
                name=payload.get("Name"),
                instance_type=payload.get("InstanceType"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MessageDecodeError(f"Invalid shutdown notification: {e}") from None


def build_shutdown_notification(
    instance: Instance, terminated: bool, now: datetime
) -> ShutdownNotification:
    if instance.launch_time is not None:
        on_duration = (now - instance.launch_time).total_seconds() / 60
    else:
        on_duration = 0.0

    return ShutdownNotification(
        instance_id=instance.instance_id,
        terminated=terminated,
        launch_time=instance.launch_time,
        on_duration_minutes=on_duration,
        name=instance.tag(NAME_TAG),
        instance_type=instance.instance_type,
    )
