"""
This module defines common Pydantic models and helpers used across API modules.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional, TypeVar, Generic, Any, Dict
import re

from dateutil import parser as date_parser
from pydantic import BaseModel

MONTH_MAP = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12
}
CONSOLE_TIMESTAMP = re.compile(r"(\w+) (\d+), (\d+) (\d+):(\d+):(\d+) ([AP]M)")


def parse_timestamp(value: Any) -> Any:
    """
    Parse the timestamp shapes found in backend rows.

    Accepts datetime objects (including Firestore timestamps), dates,
    ISO strings with or without offset, date-only strings and the console
    export format 'Apr 12, 2025 9:20:43 PM'. Anything unparseable is
    returned unchanged so the model validator reports it.
    """
    if value is None or isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None

        match = CONSOLE_TIMESTAMP.match(value)
        if match:
            month_str, day, year, hour, minute, second, am_pm = match.groups()
            hour = int(hour)

            # Convert to 24-hour format
            if am_pm == "PM" and hour < 12:
                hour += 12
            elif am_pm == "AM" and hour == 12:
                hour = 0

            return datetime(int(year), MONTH_MAP.get(month_str, 1), int(day),
                            hour, int(minute), int(second))

        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            try:
                return date_parser.parse(value)
            except (ValueError, OverflowError):
                pass

    return value


class JSendStatus(str, Enum):
    """
    JSend status options.
    """
    SUCCESS = "success"
    FAIL = "fail"
    ERROR = "error"


T = TypeVar('T')


class JSendResponse(BaseModel, Generic[T]):
    """
    Base JSend response format as per https://github.com/omniti-labs/jsend
    """
    status: JSendStatus
    data: Optional[T] = None
    message: Optional[str] = None
    code: Optional[int] = None  # For error responses

    @classmethod
    def success(cls, data: Any = None) -> 'JSendResponse':
        """Create a success response with data"""
        return cls(status=JSendStatus.SUCCESS, data=data)

    @classmethod
    def fail(cls, data: Dict[str, Any]) -> 'JSendResponse':
        """Create a fail response with validation errors or other data-related failures"""
        return cls(status=JSendStatus.FAIL, data=data)

    @classmethod
    def error(cls, message: str, code: Optional[int] = None, data: Any = None) -> 'JSendResponse':
        """Create an error response for system or unexpected errors"""
        return cls(status=JSendStatus.ERROR, message=message, code=code, data=data)
