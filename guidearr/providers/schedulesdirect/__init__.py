"""Schedules Direct guide provider."""

from guidearr.providers.schedulesdirect.client import SchedulesDirectClient
from guidearr.providers.schedulesdirect.provider import SchedulesDirectProvider

__all__ = ["SchedulesDirectClient", "SchedulesDirectProvider"]
