import asyncio
import itertools
from decimal import Decimal

import httpx
import pytest

from portal.domain import Booking, Place
from portal.exceptions import AuthorizationFailure
from portal.revenue import aggregate_revenue, place_stats

from .conftest import booking_payload, place_payload


def delayed(payload, delay):
    async def handler(request):
        await asyncio.sleep(delay)
        return httpx.Response(200, json=payload)
    return handler


def _booking(booking_id, quantity, paid):
    return Booking(booking_id=booking_id, place_id=1, visit_date=None, quantity=quantity, payment_confirmed=paid)


class TestPlaceStats:
    def test_counts_all_bookings_but_only_paid_revenue(self):
        place = Place(place_id=1, name='Fort', price=Decimal('250'))
        bookings = [
            _booking(1, quantity=2, paid=True),
            _booking(2, quantity=3, paid=False),
        ]

        stats = place_stats(place, bookings)

        assert stats.total_bookings == 2
        assert stats.revenue == Decimal('500')


class TestAggregateRevenue:
    @pytest.mark.asyncio
    async def test_two_places_one_unpaid(self, make_client, owner, fake_backend):
        fake_backend.on('GET', '/Places/my', json=[
            place_payload(1, 'Fort', price=200),
            place_payload(2, 'Lake', price=100),
        ])
        fake_backend.on('GET', '/Bookings/place/1', json=[booking_payload(10, place_id=1, quantity=1, paid=True)])
        fake_backend.on('GET', '/Bookings/place/2', json=[booking_payload(11, place_id=2, quantity=3, paid=False)])

        report = await aggregate_revenue(make_client(owner))

        assert report.total_visitors == 2
        assert report.total_revenue == Decimal('200')
        assert report.settled
        assert report.as_dict()['total_revenue'] == '200'

    @pytest.mark.asyncio
    async def test_totals_do_not_depend_on_arrival_order(self, make_client, owner, fake_backend):
        places = [place_payload(1, price=200), place_payload(2, price=100), place_payload(3, price=50)]
        bookings = {
            1: [booking_payload(10, place_id=1, quantity=2, paid=True)],
            2: [booking_payload(11, place_id=2, quantity=1, paid=True), booking_payload(12, place_id=2, paid=False)],
            3: [],
        }
        fake_backend.on('GET', '/Places/my', json=places)

        results = set()
        for delays in itertools.permutations([0.0, 0.01, 0.02]):
            for place_id, delay in zip((1, 2, 3), delays):
                fake_backend.on('GET', f'/Bookings/place/{place_id}', handler=delayed(bookings[place_id], delay))
            report = await aggregate_revenue(make_client(owner))
            results.add((report.total_visitors, report.total_revenue))

        assert results == {(3, Decimal('500'))}

    @pytest.mark.asyncio
    async def test_one_failing_place_does_not_hide_the_others(self, make_client, owner, fake_backend):
        fake_backend.on('GET', '/Places/my', json=[place_payload(1, price=200), place_payload(2, price=100)])
        fake_backend.on('GET', '/Bookings/place/1', status=500, text='Database timeout')
        fake_backend.on('GET', '/Bookings/place/2', json=[booking_payload(11, place_id=2, quantity=2, paid=True)])

        report = await aggregate_revenue(make_client(owner))

        assert report.settled
        assert report.failures[1].message == 'Database timeout'
        assert report.stats_for(1).total_bookings == 0
        assert report.stats_for(2).revenue == Decimal('200')
        assert report.total_revenue == Decimal('200')
        places = {entry['place_id']: entry for entry in report.as_dict()['places']}
        assert places[1]['error'] == 'Database timeout'
        assert places[2]['error'] is None

    @pytest.mark.asyncio
    async def test_progress_is_reported_per_place(self, make_client, owner, fake_backend):
        fake_backend.on('GET', '/Places/my', json=[place_payload(1, price=200), place_payload(2, price=100)])
        fake_backend.on('GET', '/Bookings/place/1', json=[booking_payload(10, place_id=1, paid=True)])
        fake_backend.on('GET', '/Bookings/place/2', json=[booking_payload(11, place_id=2, paid=True)])
        seen = []

        await aggregate_revenue(make_client(owner), on_progress=lambda report, stats: seen.append(stats.place_id))

        assert sorted(seen) == [1, 2]

    @pytest.mark.asyncio
    async def test_expired_session_propagates(self, make_client, owner, fake_backend):
        fake_backend.on('GET', '/Places/my', json=[place_payload(1)])
        fake_backend.on('GET', '/Bookings/place/1', status=401)

        with pytest.raises(AuthorizationFailure):
            await aggregate_revenue(make_client(owner))
        assert not owner.is_authenticated

    @pytest.mark.asyncio
    async def test_no_places(self, make_client, owner, fake_backend):
        fake_backend.on('GET', '/Places/my', json=[])

        report = await aggregate_revenue(make_client(owner))

        assert report.total_visitors == 0
        assert report.total_revenue == Decimal('0')
        assert report.as_dict()['places'] == []
