"""UTC helpers.

Event dates are stored in UTC. SQLite hands DateTime values back without
tzinfo, so anything read from the store goes through `to_utc` before it is
compared with an aware timestamp.
"""
from datetime import datetime
from typing import Optional

import pytz


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return `value` as an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)
