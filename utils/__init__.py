"""
Utility modules for the Smart Calendar engine
"""

from .logger import SmartCalendarLogger
from .errors import (
    SmartCalendarError, FormatError, RangeError, NotFoundError,
    NoDataError, StorageError, ConcurrencyTimeout,
)

__all__ = [
    'SmartCalendarLogger', 'SmartCalendarError', 'FormatError', 'RangeError',
    'NotFoundError', 'NoDataError', 'StorageError', 'ConcurrencyTimeout',
]
