from auto_shutdown.clients import Ec2InventoryClient, Route53DnsClient
from auto_shutdown.deployment.utils import get_settings, response
from auto_shutdown.dns_updater import DnsUpdater
from auto_shutdown.errors import InstanceNotFoundError
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.models import InstanceStateChange

logger = get_logger()


def lambda_handler(event, context):
    settings = get_settings()
    logger.info("EC2 State Change event triggered.")

    try:
        state_change = InstanceStateChange.from_event(event)
    except ValueError as e:
        logger.error(str(e))
        return response(400, {"error": str(e)})

    logger.info(
        f"InstanceId: {state_change.instance_id}, State: {state_change.state}"
    )
    updater = DnsUpdater(Ec2InventoryClient(settings), Route53DnsClient(settings))

    try:
        record_name = updater.handle_state_change(state_change)
    except InstanceNotFoundError as e:
        logger.error(f"**** InstanceId Not Found: {e.instance_id}")
        return response(404, {"error": str(e)})
    except Exception as e:
        logger.exception(f"Failed to update DNS for {state_change.instance_id}")
        return response(500, {"error": str(e)})

    return response(
        200, {"instance_id": state_change.instance_id, "record": record_name}
    )
