import json
from functools import lru_cache

from auto_shutdown.config import Settings
from auto_shutdown.helpers.logging.log_config import setup_logging


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """
    Read the configuration once per Lambda container.
    """
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    return settings


def response(status_code: int, body) -> dict:
    return {"statusCode": status_code, "body": json.dumps(body)}
