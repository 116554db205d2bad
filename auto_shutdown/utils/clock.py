from datetime import datetime

from dateutil import tz


def utc_now() -> datetime:
    return datetime.now(tz.tzutc())
