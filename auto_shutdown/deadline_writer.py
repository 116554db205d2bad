from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from auto_shutdown.clients import InventoryClient
from auto_shutdown.commons import SHUTDOWN_AFTER_TAG
from auto_shutdown.errors import MessageDecodeError
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.messages import ScheduleRequest, format_deadline
from auto_shutdown.utils.clock import utc_now

logger = get_logger()


@dataclass
class WriteResult:
    message_id: Optional[str]
    instance_id: Optional[str] = None
    deadline: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DeadlineWriter:
    """
    Stores the shutdown deadline asked for by a ``ScheduleRequest`` on the
    instance itself.

    Requests may come from the start-up scheduler or from anyone else who
    wants to extend or shorten a deadline. The latest request always wins:
    the tag is overwritten without looking at what was there before.
    """

    def __init__(
        self,
        inventory: InventoryClient,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.inventory = inventory
        self.clock = clock or utc_now

    def apply(self, request: ScheduleRequest) -> datetime:
        deadline = request.deadline_from(self.clock())
        value = format_deadline(deadline)

        logger.info(
            f"Setting shutdown time for instance: {request.instance_id} as {value}"
        )
        self.inventory.set_tag(request.instance_id, SHUTDOWN_AFTER_TAG, value)
        logger.info(f"{SHUTDOWN_AFTER_TAG} tag set.")

        return deadline

    def handle_sns_event(self, event: Dict[str, Any]) -> List[WriteResult]:
        """
        Apply every schedule request of an SNS delivery.

        A record that cannot be decoded or written is logged and reported in
        the returned list. It does not stop the other records, and it is not
        retried here.
        """
        results = []
        for record in event.get("Records", []):
            sns = record.get("Sns", {})
            result = WriteResult(message_id=sns.get("MessageId"))

            try:
                request = ScheduleRequest.decode(sns.get("Message"))
                result.instance_id = request.instance_id
                result.deadline = self.apply(request)
            except MessageDecodeError as e:
                logger.error(f"Ignoring invalid schedule request: {e}")
                result.error = str(e)
            except Exception as e:
                logger.exception(
                    f"Failed to set shutdown time for instance {result.instance_id}"
                )
                result.error = str(e)

            results.append(result)

        return results
