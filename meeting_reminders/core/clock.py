import datetime


def utcnow() -> datetime.datetime:
    """Naive UTC now, matching how timestamps are stored."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
