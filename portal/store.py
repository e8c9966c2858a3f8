import logging
from dataclasses import dataclass
from typing import List, Optional

from django.utils import timezone

from .domain import Booking
from .exceptions import RemoteFailure
from .timeline import current_day, partition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Buckets:
    upcoming: List[Booking]
    past: List[Booking]


class BookingStore:
    """In-memory copy of the visitor's bookings.

    The collection is only ever replaced as a whole by ``refresh``; the
    last refresh to finish wins.
    """

    def __init__(self, bookings=()):
        self._bookings = tuple(bookings)
        self.refreshed_at = None
        self.last_error: Optional[RemoteFailure] = None

    @property
    def bookings(self):
        return list(self._bookings)

    def __len__(self):
        return len(self._bookings)

    def __iter__(self):
        return iter(self._bookings)

    def replace(self, bookings):
        self._bookings = tuple(bookings)
        self.refreshed_at = timezone.now()

    async def refresh(self, client):
        """Re-fetch from the backend. A failed fetch leaves the store empty."""
        try:
            bookings = await client.my_bookings()
        except RemoteFailure as exc:
            logger.warning("Booking refresh failed, showing no bookings", extra={'error': exc.message})
            self.last_error = exc
            bookings = []
        else:
            self.last_error = None
        self.replace(bookings)
        return self.bookings

    def get(self, booking_id):
        for booking in self._bookings:
            if booking.booking_id == booking_id:
                return booking
        return None

    def for_place(self, place_id):
        return [booking for booking in self._bookings if booking.place_id == place_id]

    def buckets(self, today=None):
        upcoming, past = partition(self._bookings, today or current_day())
        return Buckets(upcoming=upcoming, past=past)
