from __future__ import annotations

import fnmatch
from datetime import datetime, timedelta

import pytest
from dateutil import tz

from auto_shutdown.clients import InventoryClient, MessageBus
from auto_shutdown.config import Settings
from auto_shutdown.errors import InstanceNotFoundError
from auto_shutdown.models import Instance

SCHEDULE_TOPIC = "arn:aws:sns:eu-west-1:123456789012:schedule"
NOTIFY_TOPIC = "arn:aws:sns:eu-west-1:123456789012:notify"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class InMemoryInventory(InventoryClient):
    """
    Inventory backed by a dict, with the EC2 filter semantics the flows use.
    """

    def __init__(self, instances=()):
        self.instances = {instance.instance_id: instance for instance in instances}
        self.calls = []
        self.failures = {}
        self.find_calls = []

    def add(self, instance_id, state="running", tags=None, **kwargs) -> Instance:
        instance = Instance(instance_id=instance_id, state=state, tags=dict(tags or {}), **kwargs)
        self.instances[instance_id] = instance
        return instance

    def fail(self, operation, instance_id, error):
        self.failures[(operation, instance_id)] = error

    def _record(self, operation, instance_id, *args):
        self.calls.append((operation, instance_id) + args)
        error = self.failures.get((operation, instance_id))
        if error is not None:
            raise error
        if instance_id not in self.instances:
            raise InstanceNotFoundError(instance_id)

    def get_instance(self, instance_id):
        if instance_id not in self.instances:
            raise InstanceNotFoundError(instance_id)
        instance = self.instances[instance_id]
        # Hand out a copy like a fresh API response would
        return Instance(
            instance_id=instance.instance_id,
            state=instance.state,
            tags=dict(instance.tags),
            launch_time=instance.launch_time,
            instance_type=instance.instance_type,
            public_ip_address=instance.public_ip_address,
        )

    def _matches(self, instance, filters):
        for name, values in filters.items():
            if name == "instance-state-name":
                if instance.state not in values:
                    return False
            elif name.startswith("tag:"):
                value = instance.tags.get(name[len("tag:"):])
                if value is None:
                    return False
                if not any(fnmatch.fnmatchcase(value, pattern) for pattern in values):
                    return False
            else:
                raise ValueError(f"Unsupported filter {name}")
        return True

    def find_instances(self, filters, max_results):
        self.find_calls.append((filters, max_results))
        matches = [
            self.get_instance(instance.instance_id)
            for instance in self.instances.values()
            if self._matches(instance, filters)
        ]
        return matches[:max_results]

    def set_tag(self, instance_id, key, value):
        self._record("set_tag", instance_id, key, value)
        self.instances[instance_id].tags[key] = value

    def stop(self, instance_id):
        self._record("stop", instance_id)
        self.instances[instance_id].state = "stopped"

    def terminate(self, instance_id):
        self._record("terminate", instance_id)
        self.instances[instance_id].state = "terminated"

    def actions(self, instance_id=None):
        return [
            call
            for call in self.calls
            if call[0] in ("stop", "terminate")
            and (instance_id is None or call[1] == instance_id)
        ]


class RecordingBus(MessageBus):
    def __init__(self):
        self.messages = []
        self.error = None

    def publish(self, topic, message):
        if self.error is not None:
            raise self.error
        self.messages.append((topic, message))


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 2, 0, 0, 0, tzinfo=tz.tzutc()))


@pytest.fixture
def inventory():
    return InMemoryInventory()


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def settings():
    return Settings(schedule_topic=SCHEDULE_TOPIC, notify_topic=NOTIFY_TOPIC)
