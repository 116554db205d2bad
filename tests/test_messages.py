import json
from datetime import datetime, timedelta

import pytest
from dateutil import tz

from auto_shutdown.errors import DeadlineParseError, MessageDecodeError
from auto_shutdown.messages import (
    ScheduleRequest,
    ShutdownNotification,
    build_shutdown_notification,
    format_deadline,
    parse_deadline,
)
from auto_shutdown.models import Instance

UTC = tz.tzutc()


class TestDeadlineFormat:
    def test_format_is_utc_iso8601(self):
        deadline = datetime(2024, 1, 1, 0, 30, tzinfo=UTC)

        assert format_deadline(deadline) == "2024-01-01T00:30:00+00:00"

    def test_format_converts_other_offsets_to_utc(self):
        deadline = datetime(2024, 1, 1, 2, 30, tzinfo=tz.tzoffset(None, 7200))

        assert format_deadline(deadline) == "2024-01-01T00:30:00+00:00"

    def test_format_parses_back_to_the_same_instant(self):
        deadline = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=UTC)

        assert parse_deadline(format_deadline(deadline)) == deadline

    @pytest.mark.parametrize(
        "value",
        [
            "2024-01-01T00:00:00Z",
            "2024-01-01T00:00:00+00:00",
            "2024-01-01T00:00:00.0000000Z",
            "2024-01-01T00:00:00",
            "2024-01-01T01:00:00+01:00",
        ],
    )
    def test_parse_accepted_forms(self, value):
        assert parse_deadline(value) == datetime(2024, 1, 1, tzinfo=UTC)

    @pytest.mark.parametrize("value", ["tomorrow", "2024-13-45T00:00:00Z", "", "12:00"])
    def test_parse_rejects_garbage(self, value):
        with pytest.raises(DeadlineParseError):
            parse_deadline(value)

    @pytest.mark.parametrize(
        "value", ["9999-12-31T23:59:59-05:00", "0001-01-01T00:00:00+05:00"]
    )
    def test_parse_rejects_instants_outside_the_datetime_range(self, value):
        with pytest.raises(DeadlineParseError):
            parse_deadline(value)


class TestScheduleRequest:
    def test_encode_uses_wire_field_names(self):
        message = ScheduleRequest(instance_id="i-123", stop_after_minutes=30).encode()

        assert json.loads(message) == {"InstanceId": "i-123", "StopAfterMinutes": 30}

    def test_decode(self):
        request = ScheduleRequest.decode('{"InstanceId": "i-123", "StopAfterMinutes": 45}')

        assert request == ScheduleRequest(instance_id="i-123", stop_after_minutes=45)

    def test_decode_accepts_digit_strings_and_ignores_extra_fields(self):
        request = ScheduleRequest.decode(
            '{"InstanceId": "i-123", "StopAfterMinutes": "15", "RequestedBy": "ops"}'
        )

        assert request.stop_after_minutes == 15

    @pytest.mark.parametrize(
        "message",
        [
            "not json",
            "[1, 2]",
            '{"StopAfterMinutes": 10}',
            '{"InstanceId": "", "StopAfterMinutes": 10}',
            '{"InstanceId": "i-123"}',
            '{"InstanceId": "i-123", "StopAfterMinutes": -1}',
            '{"InstanceId": "i-123", "StopAfterMinutes": true}',
            '{"InstanceId": "i-123", "StopAfterMinutes": "soon"}',
            None,
        ],
    )
    def test_decode_rejects_invalid_messages(self, message):
        with pytest.raises(MessageDecodeError):
            ScheduleRequest.decode(message)

    def test_deadline_is_relative_to_receipt_time(self):
        received_at = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        request = ScheduleRequest(instance_id="i-123", stop_after_minutes=90)

        assert request.deadline_from(received_at) == received_at + timedelta(minutes=90)

    def test_decode_rejects_minutes_beyond_32_bits(self):
        with pytest.raises(MessageDecodeError):
            ScheduleRequest.decode(
                '{"InstanceId": "i-123", "StopAfterMinutes": 99999999999}'
            )

    def test_largest_minutes_still_give_a_deadline(self):
        request = ScheduleRequest.decode(
            '{"InstanceId": "i-123", "StopAfterMinutes": "2147483647"}'
        )
        received_at = datetime(2026, 1, 1, tzinfo=UTC)

        deadline = request.deadline_from(received_at)

        assert deadline == received_at + timedelta(minutes=2**31 - 1)
        assert parse_deadline(format_deadline(deadline)) == deadline


class TestShutdownNotification:
    def test_build_from_instance(self):
        launch_time = datetime(2024, 1, 1, 22, 0, tzinfo=UTC)
        instance = Instance(
            instance_id="i-123",
            state="running",
            tags={"Name": "build-box"},
            launch_time=launch_time,
            instance_type="t3.micro",
        )

        notification = build_shutdown_notification(
            instance, terminated=True, now=launch_time + timedelta(minutes=150)
        )

        assert notification == ShutdownNotification(
            instance_id="i-123",
            terminated=True,
            launch_time=launch_time,
            on_duration_minutes=150.0,
            name="build-box",
            instance_type="t3.micro",
        )

    def test_build_without_name_or_launch_time(self):
        instance = Instance(instance_id="i-123", state="running")

        notification = build_shutdown_notification(
            instance, terminated=False, now=datetime(2024, 1, 1, tzinfo=UTC)
        )

        assert notification.name is None
        assert notification.on_duration_minutes == 0.0

    def test_encode(self):
        notification = ShutdownNotification(
            instance_id="i-123",
            terminated=False,
            launch_time=datetime(2024, 1, 1, tzinfo=UTC),
            on_duration_minutes=12.5,
            name=None,
            instance_type="m5.large",
        )

        assert json.loads(notification.encode()) == {
            "InstanceId": "i-123",
            "Terminated": False,
            "LaunchTime": "2024-01-01T00:00:00+00:00",
            "OnDuration": 12.5,
            "Name": None,
            "InstanceType": "m5.large",
        }

    def test_decode_reads_encoded_message(self):
        notification = ShutdownNotification(
            instance_id="i-123",
            terminated=True,
            launch_time=datetime(2024, 1, 1, tzinfo=UTC),
            on_duration_minutes=60.0,
            name="web",
            instance_type="t3.micro",
        )

        assert ShutdownNotification.decode(notification.encode()) == notification

    def test_decode_rejects_missing_fields(self):
        with pytest.raises(MessageDecodeError):
            ShutdownNotification.decode('{"InstanceId": "i-123"}')
