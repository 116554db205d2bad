import os
from dataclasses import dataclass
from typing import Mapping, Optional

from botocore.config import Config

from auto_shutdown.commons import DEFAULT_MAX_RESULTS
from auto_shutdown.errors import ConfigurationError

# Environment keys, with the names used by the earlier deployments as fallbacks
SCHEDULE_TOPIC_KEYS = ("ScheduleTopic", "TopicArn")
NOTIFY_TOPIC_KEYS = ("NotifyTopic", "PublishTopicArn")
MAX_RESULTS_KEY = "MaxResults"
REGION_KEY = "AwsRegion"
CONNECT_TIMEOUT_KEY = "ConnectTimeout"
READ_TIMEOUT_KEY = "ReadTimeout"
MAX_ATTEMPTS_KEY = "MaxAttempts"
SWEEP_WORKERS_KEY = "SweepWorkers"
LOG_LEVEL_KEY = "LogLevel"

DEFAULT_CONNECT_TIMEOUT = 5
DEFAULT_READ_TIMEOUT = 30
DEFAULT_MAX_ATTEMPTS = 1
DEFAULT_SWEEP_WORKERS = 1
DEFAULT_LOG_LEVEL = "INFO"


def _first_value(environ: Mapping[str, str], keys) -> Optional[str]:
    for key in keys:
        value = environ.get(key)
        if value is not None and value.strip():
            return value.strip()
    return None


def _positive_number(environ: Mapping[str, str], key: str, default, cast=int):
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default

    try:
        value = cast(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None

    if value <= 0:
        raise ConfigurationError(f"{key} must be greater than zero, got {raw!r}")

    return value


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration, built once per process and handed to every
    component that needs it.
    """

    schedule_topic: Optional[str] = None
    notify_topic: Optional[str] = None
    max_results: int = DEFAULT_MAX_RESULTS
    region: Optional[str] = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    sweep_workers: int = DEFAULT_SWEEP_WORKERS
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build the settings from environment style key/value pairs.

        Parameters
        ----------
        environ : Mapping[str, str], optional
            The variables to read. Defaults to ``os.environ``.

        Returns
        -------
        Settings
            The parsed settings.

        Raises
        ------
        ConfigurationError
            If a numeric option is not a positive number.
        """
        if environ is None:
            environ = os.environ

        return cls(
            schedule_topic=_first_value(environ, SCHEDULE_TOPIC_KEYS),
            notify_topic=_first_value(environ, NOTIFY_TOPIC_KEYS),
            max_results=_positive_number(environ, MAX_RESULTS_KEY, DEFAULT_MAX_RESULTS),
            region=_first_value(environ, (REGION_KEY,)),
            connect_timeout=_positive_number(
                environ, CONNECT_TIMEOUT_KEY, DEFAULT_CONNECT_TIMEOUT, cast=float
            ),
            read_timeout=_positive_number(
                environ, READ_TIMEOUT_KEY, DEFAULT_READ_TIMEOUT, cast=float
            ),
            max_attempts=_positive_number(
                environ, MAX_ATTEMPTS_KEY, DEFAULT_MAX_ATTEMPTS
            ),
            sweep_workers=_positive_number(
                environ, SWEEP_WORKERS_KEY, DEFAULT_SWEEP_WORKERS
            ),
            log_level=(
                _first_value(environ, (LOG_LEVEL_KEY,)) or DEFAULT_LOG_LEVEL
            ).upper(),
        )

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.notify_topic)

    def botocore_config(self) -> Config:
        return Config(
            region_name=self.region,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            retries={"total_max_attempts": self.max_attempts, "mode": "standard"},
            max_pool_connections=max(10, self.sweep_workers + 2),
        )
