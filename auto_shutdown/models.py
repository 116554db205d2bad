from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from dateutil import tz
from dateutil.parser import isoparse


def _as_utc(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = isoparse(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz.tzutc())
    return value.astimezone(tz.tzutc())


@dataclass
class Instance:
    """
    The parts of an EC2 instance the shutdown and DNS flows look at.
    """

    instance_id: str
    state: str
    tags: Dict[str, str] = field(default_factory=dict)
    launch_time: Optional[datetime] = None
    instance_type: Optional[str] = None
    public_ip_address: Optional[str] = None

    @classmethod
    def from_boto(cls, item: Dict[str, Any]) -> "Instance":
        """
        Convert an item of ``DescribeInstances`` ``Reservations[].Instances``.
        """
        return cls(
            instance_id=item["InstanceId"],
            state=item.get("State", {}).get("Name", ""),
            tags={tag["Key"]: tag.get("Value", "") for tag in item.get("Tags", [])},
            launch_time=_as_utc(item.get("LaunchTime")),
            instance_type=item.get("InstanceType"),
            public_ip_address=item.get("PublicIpAddress"),
        )

    def tag(self, key: str) -> Optional[str]:
        return self.tags.get(key)


@dataclass(frozen=True)
class InstanceStateChange:
    """
    An "EC2 Instance State-change Notification" delivered by EventBridge.
    """

    instance_id: str
    state: str
    source: Optional[str] = None
    region: Optional[str] = None
    detail_type: Optional[str] = None

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> "InstanceStateChange":
        detail = event.get("detail") or {}
        instance_id = detail.get("instance-id")
        state = detail.get("state")
        if not instance_id or not state:
            raise ValueError(
                f"Event is not an instance state change notification: {event!r}"
            )

        return cls(
            instance_id=instance_id,
            state=state,
            source=event.get("source"),
            region=event.get("region"),
            detail_type=event.get("detail-type"),
        )
