"""
Temporal buckets for bookings.

A visit date is compared to "today" as a calendar date only; any time of
day carried by either side is dropped before comparing. The Upcoming list
holds today's and future bookings, the Past list strictly earlier ones.
"""
from datetime import date, datetime
from enum import Enum

from django.utils import timezone


class Bucket(str, Enum):
    PAST = "past"
    TODAY = "today"
    UPCOMING = "upcoming"


def start_of_day(value) -> date:
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


def current_day() -> date:
    return timezone.localdate()


def classify(visit_date, today) -> Bucket:
    visit_day = start_of_day(visit_date)
    today = start_of_day(today)
    if visit_day < today:
        return Bucket.PAST
    if visit_day == today:
        return Bucket.TODAY
    return Bucket.UPCOMING


def is_past(visit_date, today) -> bool:
    return classify(visit_date, today) is Bucket.PAST


def is_upcoming(visit_date, today) -> bool:
    """True for today and any later day."""
    return not is_past(visit_date, today)


def partition(bookings, today):
    """Split bookings into (upcoming, past), preserving their order."""
    upcoming, past = [], []
    for booking in bookings:
        if is_past(booking.visit_date, today):
            past.append(booking)
        else:
            upcoming.append(booking)
    return upcoming, past
