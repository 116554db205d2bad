import logging

AUTO_SHUTDOWN_LOGGER_NAME = "auto_shutdown"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger() -> logging.Logger:
    """
    Returns the package logger, configuring it on first use when nothing
    else (such as the Lambda runtime) has installed a handler yet.

    Returns
    -------
    logging.Logger
        The auto_shutdown logger.
    """
    logger = logging.getLogger(AUTO_SHUTDOWN_LOGGER_NAME)

    if not logger.hasHandlers():
        setup_logging()

    return logger


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Sets the level of the auto_shutdown logger and, unless the root logger
    already has a handler (the Lambda runtime installs one), gives it a
    stream handler.

    Lambda containers are re-used between invocations, so calling this more
    than once only updates the level.

    Parameters
    ----------
    log_level : str
        Name of the level, e.g. "INFO" or "DEBUG".

    Returns
    -------
    logging.Logger
        The auto_shutdown logger.
    """
    logger = logging.getLogger(AUTO_SHUTDOWN_LOGGER_NAME)
    logger.setLevel(log_level)

    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(log_level)

    return logger
