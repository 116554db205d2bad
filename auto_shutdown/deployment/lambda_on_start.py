from auto_shutdown.clients import Ec2InventoryClient, SnsMessageBus
from auto_shutdown.deployment.utils import get_settings, response
from auto_shutdown.errors import InstanceNotFoundError
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.models import InstanceStateChange
from auto_shutdown.scheduler import DeadlineScheduler

logger = get_logger()


def lambda_handler(event, context):
    settings = get_settings()
    logger.info("EC2 State Change event triggered.")

    try:
        state_change = InstanceStateChange.from_event(event)
    except ValueError as e:
        logger.error(str(e))
        return response(400, {"error": str(e)})

    scheduler = DeadlineScheduler(
        settings, Ec2InventoryClient(settings), SnsMessageBus(settings)
    )

    try:
        request = scheduler.handle_state_change(state_change)
    except InstanceNotFoundError as e:
        logger.error(f"**** InstanceId Not Found: {e.instance_id}")
        return response(404, {"error": str(e)})
    except Exception as e:
        logger.exception(f"Failed to schedule instance {state_change.instance_id}")
        return response(500, {"error": str(e)})

    return response(
        200,
        {
            "instance_id": state_change.instance_id,
            "scheduled": request is not None,
            "stop_after_minutes": request.stop_after_minutes if request else None,
        },
    )
