STOP_AFTER_MINUTES_TAG = "StopAfterMinutes"
TERMINATE_TAG = "Terminate"
SHUTDOWN_AFTER_TAG = "ShutdownAfter"
NAME_TAG = "Name"

# DNS updater tags
ZONE_ID_TAG = "ZoneId"
HOST_NAME_TAG = "HostName"

TERMINATE_TAG_VALUE = "Terminate"

RUNNING_STATE = "running"
STOPPING_STATE = "stopping"

# DescribeInstances accepts MaxResults between 5 and 1000
DEFAULT_MAX_RESULTS = 1000
MIN_DESCRIBE_RESULTS = 5

DNS_RECORD_TTL = 60

# Largest StopAfterMinutes accepted (32-bit signed int); keeps the deadline
# within the datetime range.
MAX_STOP_AFTER_MINUTES = 2**31 - 1
