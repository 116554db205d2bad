from auto_shutdown.clients import Ec2InventoryClient
from auto_shutdown.deadline_writer import DeadlineWriter
from auto_shutdown.deployment.utils import get_settings, response
from auto_shutdown.helpers.logging.log_config import get_logger
from auto_shutdown.messages import format_deadline

logger = get_logger()


def lambda_handler(event, context):
    settings = get_settings()

    writer = DeadlineWriter(Ec2InventoryClient(settings))

    try:
        results = writer.handle_sns_event(event)
    except Exception as e:
        logger.exception("Failed to process schedule requests")
        return response(500, {"error": str(e)})

    return response(
        200,
        [
            {
                "message_id": result.message_id,
                "instance_id": result.instance_id,
                "deadline": (
                    format_deadline(result.deadline) if result.deadline else None
                ),
                "status": "success" if result.ok else "failed",
                "error": result.error,
            }
            for result in results
        ],
    )
