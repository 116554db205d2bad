from auto_shutdown.clients import Ec2InventoryClient, SnsMessageBus
from auto_shutdown.deployment.utils import get_settings, response
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.sweeper import ShutdownSweeper

logger = get_logger()


def lambda_handler(event, context):
    # The scheduled event only triggers the sweep, its content is not used
    settings = get_settings()

    sweeper = ShutdownSweeper(
        settings, Ec2InventoryClient(settings), SnsMessageBus(settings)
    )

    try:
        report = sweeper.sweep()
    except Exception as e:
        logger.exception("Failed to query tagged instances")
        return response(500, {"error": str(e)})

    return response(200, report.to_dict())
