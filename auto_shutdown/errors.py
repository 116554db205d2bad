class AutoShutdownError(Exception):
    """
    Base class for the errors raised by the auto_shutdown package.
    """


class ConfigurationError(AutoShutdownError):
    pass


class InstanceNotFoundError(AutoShutdownError):
    def __init__(self, instance_id: str):
        super().__init__(f"Instance {instance_id} not found")
        self.instance_id = instance_id


class MessageDecodeError(AutoShutdownError, ValueError):
    pass


class DeadlineParseError(AutoShutdownError, ValueError):
    def __init__(self, value: str):
        super().__init__(f"Invalid {value!r} shutdown deadline")
        self.value = value
