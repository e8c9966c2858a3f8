import asyncio
import logging
from decimal import Decimal

from .domain import PlaceStats
from .exceptions import RemoteFailure

logger = logging.getLogger(__name__)


def place_stats(place, bookings) -> PlaceStats:
    """Count every booking; only paid ones earn revenue, at the place's price."""
    revenue = sum(
        (place.price * booking.quantity for booking in bookings if booking.payment_confirmed),
        Decimal('0'),
    )
    return PlaceStats(place_id=place.place_id, total_bookings=len(bookings), revenue=revenue)


class RevenueReport:
    def __init__(self, places=()):
        self.places = list(places)
        self.stats = {}
        self.failures = {}

    def add(self, stats):
        self.stats[stats.place_id] = stats

    def fail(self, place, error):
        self.failures[place.place_id] = error

    def stats_for(self, place_id):
        return self.stats.get(place_id) or PlaceStats(place_id=place_id)

    @property
    def total_visitors(self):
        return sum(stats.total_bookings for stats in self.stats.values())

    @property
    def total_revenue(self):
        return sum((stats.revenue for stats in self.stats.values()), Decimal('0'))

    @property
    def settled(self):
        return len(self.stats) + len(self.failures) == len(self.places)

    def as_dict(self):
        return {
            'total_visitors': self.total_visitors,
            'total_revenue': str(self.total_revenue),
            'places': [
                {
                    'place_id': place.place_id,
                    'name': place.name,
                    'location': place.location,
                    'timings': place.timings,
                    'total_bookings': self.stats_for(place.place_id).total_bookings,
                    'revenue': str(self.stats_for(place.place_id).revenue),
                    'error': self.failures[place.place_id].message if place.place_id in self.failures else None,
                }
                for place in self.places
            ],
        }


async def aggregate_revenue(client, places=None, on_progress=None):
    """Fetch bookings for each owned place concurrently and fold them into a report.

    ``on_progress(report, stats)`` is called as each place settles, so
    partial totals can be shown; a place whose fetch fails is recorded in
    ``report.failures`` and does not affect the others.
    """
    if places is None:
        places = await client.my_places()
    report = RevenueReport(places)

    async def collect(place):
        try:
            bookings = await client.place_bookings(place.place_id)
        except RemoteFailure as exc:
            logger.warning("Bookings fetch failed for place", extra={'place_id': place.place_id, 'error': exc.message})
            report.fail(place, exc)
            return
        stats = place_stats(place, bookings)
        report.add(stats)
        if on_progress is not None:
            on_progress(report, stats)

    await asyncio.gather(*(collect(place) for place in places))
    return report
