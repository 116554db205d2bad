from typing import Optional

from auto_shutdown.clients import InventoryClient, MessageBus
from auto_shutdown.commons import RUNNING_STATE, STOP_AFTER_MINUTES_TAG
from auto_shutdown.config import Settings
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.messages import ScheduleRequest
from auto_shutdown.models import InstanceStateChange
from auto_shutdown.policy import PolicyStatus, read_policy

logger = get_logger()


class DeadlineScheduler:
    """
    Decides whether an instance that has just started should be shut down
    later and, if so, publishes a ``ScheduleRequest`` for it.

    Only the relative number of minutes is sent. The absolute deadline is
    worked out by whoever processes the request, at processing time.
    """

    def __init__(self, settings: Settings, inventory: InventoryClient, bus: MessageBus):
        self.settings = settings
        self.inventory = inventory
        self.bus = bus

    def handle_state_change(
        self, state_change: InstanceStateChange
    ) -> Optional[ScheduleRequest]:
        logger.info(
            f"Source: {state_change.source}, Region: {state_change.region}, "
            f"DetailType: {state_change.detail_type}, "
            f"InstanceId: {state_change.instance_id}, State: {state_change.state}"
        )

        if state_change.state != RUNNING_STATE:
            logger.info(f"No action for state: {state_change.state}")
            return None

        return self.schedule(state_change.instance_id)

    def schedule(self, instance_id: str) -> Optional[ScheduleRequest]:
        """
        Read the instance policy and publish a schedule request if it asks
        for one.

        Parameters
        ----------
        instance_id : str
            The instance that is now running.

        Returns
        -------
        ScheduleRequest or None
            The published request, or None when nothing was published.

        Raises
        ------
        InstanceNotFoundError
            If the inventory does not know the instance.
        """
        # Tags are read live on every call, a policy is never cached.
        instance = self.inventory.get_instance(instance_id)
        policy = read_policy(instance.tags)

        if policy.status is PolicyStatus.MISSING:
            logger.info(
                f"Instance {instance_id} does not have a "
                f"'{STOP_AFTER_MINUTES_TAG}' tag. Ignoring"
            )
            return None

        if policy.status is PolicyStatus.INVALID:
            logger.info(
                f"Instance {instance_id} has invalid time "
                f"{policy.raw_stop_after_minutes!r} for "
                f"'{STOP_AFTER_MINUTES_TAG}' tag. Ignoring"
            )
            return None

        request = ScheduleRequest(
            instance_id=instance_id, stop_after_minutes=policy.stop_after_minutes
        )

        if not self.settings.schedule_topic:
            logger.warning(
                f"No schedule topic configured, not scheduling instance {instance_id}"
            )
            return None

        message = request.encode()
        logger.info(
            f"Publishing schedule request to topic {self.settings.schedule_topic}. "
            f"Message: {message}"
        )
        self.bus.publish(self.settings.schedule_topic, message)
        logger.info("Published!")

        return request
