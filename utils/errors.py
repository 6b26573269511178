"""
Error taxonomy for the Smart Calendar engine
"""


class SmartCalendarError(Exception):
    """Base class for all engine errors"""


class FormatError(SmartCalendarError, ValueError):
    """Malformed date/time input, rejected before any store access"""


class RangeError(FormatError):
    """Time components outside 00:00-23:59"""


class NotFoundError(SmartCalendarError):
    """Referenced event or changeset does not exist"""


class NoDataError(SmartCalendarError):
    """Persona analysis requested with zero eligible events"""


class StorageError(SmartCalendarError):
    """The injected store failed a read or write"""


class ConcurrencyTimeout(SmartCalendarError):
    """Too many drift detections queued behind the persona lock"""
