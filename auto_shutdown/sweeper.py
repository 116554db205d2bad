"""
Periodic enforcement of the shutdown deadlines stored on instances.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from auto_shutdown.clients import InventoryClient, MessageBus
from auto_shutdown.commons import RUNNING_STATE, SHUTDOWN_AFTER_TAG
from auto_shutdown.config import Settings
from auto_shutdown.errors import DeadlineParseError
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.messages import (
    build_shutdown_notification,
    format_deadline,
    parse_deadline,
)
from auto_shutdown.models import Instance
from auto_shutdown.policy import terminate_on_shutdown
from auto_shutdown.utils.clock import utc_now

logger = get_logger()


class Outcome(Enum):
    NOT_DUE = "not_due"
    STOPPED = "stopped"
    TERMINATED = "terminated"
    INVALID_DEADLINE = "invalid_deadline"
    FAILED = "failed"


@dataclass
class InstanceResult:
    instance_id: str
    outcome: Outcome
    deadline: Optional[datetime] = None
    notified: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.instance_id,
            "status": self.outcome.value,
            "deadline": format_deadline(self.deadline) if self.deadline else None,
            "notified": self.notified,
            "error": self.error,
        }


@dataclass
class SweepReport:
    started_at: datetime
    results: List[InstanceResult] = field(default_factory=list)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    @property
    def actioned(self) -> List[InstanceResult]:
        return [
            result
            for result in self.results
            if result.outcome in (Outcome.STOPPED, Outcome.TERMINATED)
        ]

    @property
    def failed(self) -> List[InstanceResult]:
        return [result for result in self.results if result.outcome is Outcome.FAILED]

    def to_dict(self) -> dict:
        return {
            "started_at": format_deadline(self.started_at),
            "evaluated": len(self.results),
            "counts": {outcome.value: self.count(outcome) for outcome in Outcome},
            "instances": [result.to_dict() for result in self.results],
        }


class ShutdownSweeper:
    """
    Stops or terminates running instances whose ``ShutdownAfter`` deadline
    has passed.

    Every matched instance is handled on its own: a failure is recorded in
    the report and the sweep moves on. Nothing is retried within a sweep; an
    instance whose tag could not be cleared is simply found again by the
    next one.

    An unparseable deadline is treated as not due. The instance keeps
    running, its tag is left as it is and the result is reported as
    ``Outcome.INVALID_DEADLINE``.
    """

    def __init__(
        self,
        settings: Settings,
        inventory: InventoryClient,
        bus: MessageBus,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.inventory = inventory
        self.bus = bus
        self.clock = clock or utc_now

    def find_candidates(self) -> List[Instance]:
        # Note: only the first `max_results` matches are considered, the
        # rest keep their tag and state and are picked up by a later sweep.
        return self.inventory.find_instances(
            {
                f"tag:{SHUTDOWN_AFTER_TAG}": ["*"],
                "instance-state-name": [RUNNING_STATE],
            },
            max_results=self.settings.max_results,
        )[: self.settings.max_results]

    def sweep(self) -> SweepReport:
        report = SweepReport(started_at=self.clock())

        instances = self.find_candidates()
        logger.info(f"Found {len(instances)} tagged instances")

        if self.settings.sweep_workers > 1 and len(instances) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.sweep_workers) as pool:
                report.results = list(pool.map(self.process_instance, instances))
        else:
            report.results = [self.process_instance(instance) for instance in instances]

        logger.info(
            f"Sweep finished: {len(report.actioned)} shut down, "
            f"{len(report.failed)} failed, "
            f"{report.count(Outcome.INVALID_DEADLINE)} invalid deadlines, "
            f"{report.count(Outcome.NOT_DUE)} not due"
        )
        return report

    def evaluate(self, instance: Instance, now: datetime) -> Optional[datetime]:
        """
        Return the deadline of an instance if it has passed, otherwise None.

        Raises
        ------
        DeadlineParseError
            If the stored deadline is not a valid timestamp.
        """
        value = instance.tag(SHUTDOWN_AFTER_TAG)

        # The tag can be blank if it was cleared after the query matched it
        if value is None or not value.strip():
            return None

        deadline = parse_deadline(value)
        logger.info(f"Shutdown after {deadline} for instance {instance.instance_id}")

        if deadline < now:
            return deadline
        return None

    def process_instance(self, instance: Instance) -> InstanceResult:
        instance_id = instance.instance_id

        try:
            now = self.clock()
            deadline = self.evaluate(instance, now)
            if deadline is None:
                return InstanceResult(instance_id, Outcome.NOT_DUE)

            result = self.shutdown(instance, deadline)
        except DeadlineParseError as e:
            logger.warning(f"Leaving instance {instance_id} running: {e}")
            return InstanceResult(instance_id, Outcome.INVALID_DEADLINE, error=str(e))
        except Exception as e:
            logger.exception(f"Error trying to shutdown instance: {instance_id}")
            return InstanceResult(instance_id, Outcome.FAILED, error=str(e))

        self.notify(instance, result)
        return result

    def shutdown(self, instance: Instance, deadline: datetime) -> InstanceResult:
        instance_id = instance.instance_id
        # Hibernation is not supported
        terminate = terminate_on_shutdown(instance.tags)

        if terminate:
            logger.warning(f"*** Terminating instance!!! {instance_id}")
            self.inventory.terminate(instance_id)
        else:
            logger.info(f"*** Stopping instance {instance_id}")
            self.inventory.stop(instance_id)

        # Re-arm: a stale deadline would shut the instance down again as
        # soon as it is next started.
        self.inventory.clear_tag(instance_id, SHUTDOWN_AFTER_TAG)
        logger.info(f"Shutdown for instance {instance_id} requested.")

        return InstanceResult(
            instance_id,
            Outcome.TERMINATED if terminate else Outcome.STOPPED,
            deadline=deadline,
        )

    def notify(self, instance: Instance, result: InstanceResult):
        topic = self.settings.notify_topic
        if not topic:
            return

        notification = build_shutdown_notification(
            instance, result.outcome is Outcome.TERMINATED, self.clock()
        )

        logger.info(f"Publishing shutdown message to SNS Topic: {topic}")
        try:
            self.bus.publish(topic, notification.encode())
            result.notified = True
        except Exception as e:
            # The instance is already down and re-armed, so only the
            # notification is lost.
            logger.exception(
                f"Failed to publish shutdown message for instance {result.instance_id}"
            )
            result.error = str(e)
