from datetime import date
from decimal import Decimal

import httpx
import pytest

from portal.clients import BackendClient, error_message
from portal.exceptions import AuthorizationFailure, RemoteFailure
from portal.serializers import BookingSerializer, PlaceSerializer, is_maps_url, load
from portal.session import SessionContext

from .conftest import BASE_URL, booking_payload, place_payload


class TestErrorMessage:
    def test_plain_text_body(self):
        assert error_message(httpx.Response(400, text='Sold out')) == 'Sold out'

    @pytest.mark.parametrize('body', [
        {'message': 'Sold out'},
        {'error': 'Sold out'},
        {'title': 'Sold out', 'status': 400},
        'Sold out',
    ])
    def test_json_body(self, body):
        assert error_message(httpx.Response(400, json=body)) == 'Sold out'

    def test_nothing_useful(self):
        assert error_message(httpx.Response(500)) is None
        assert error_message(httpx.Response(500, json={'errors': []})) is None


class TestBackendClient:
    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, make_client, visitor, fake_backend):
        fake_backend.on('GET', '/Bookings/my', json=[])

        await make_client(visitor).my_bookings()

        assert fake_backend.calls[0]['authorization'] == 'Bearer visitor-token'

    @pytest.mark.asyncio
    async def test_anonymous_call_has_no_token(self, make_client, fake_backend):
        fake_backend.on('GET', '/Places', json=[])

        await make_client(SessionContext()).list_places(location='Jaipur', max_price='300')

        assert fake_backend.calls[0]['authorization'] is None
        assert fake_backend.calls[0]['params'] == {'location': 'Jaipur', 'maxPrice': '300'}

    @pytest.mark.asyncio
    async def test_unauthorized_clears_session(self, make_client, fake_backend):
        cleared = []
        session = SessionContext(token='stale', role='Visitor', on_clear=lambda: cleared.append(True))
        fake_backend.on('GET', '/Bookings/my', status=401, json={'message': 'Token expired'})

        with pytest.raises(AuthorizationFailure):
            await make_client(session).my_bookings()

        assert cleared == [True]
        assert session.token is None
        assert session.role is None

    @pytest.mark.asyncio
    async def test_other_failures_keep_session(self, make_client, visitor, fake_backend):
        fake_backend.on('GET', '/Places/3', status=404)

        with pytest.raises(RemoteFailure) as excinfo:
            await make_client(visitor).get_place(3)

        assert excinfo.value.message == 'Place not found.'
        assert excinfo.value.detail == {'status': 404}
        assert visitor.is_authenticated

    @pytest.mark.asyncio
    async def test_unreachable_backend(self, visitor):
        def refuse(request):
            raise httpx.ConnectError('connection refused', request=request)

        client = BackendClient(visitor, base_url=BASE_URL, transport=httpx.MockTransport(refuse))

        with pytest.raises(RemoteFailure, match='Unable to reach'):
            await client.my_bookings()

    @pytest.mark.asyncio
    async def test_malformed_payload(self, make_client, visitor, fake_backend):
        fake_backend.on('GET', '/Bookings/my', json=[{'bookingId': 'x'}])

        with pytest.raises(RemoteFailure, match='Unexpected response'):
            await make_client(visitor).my_bookings()

    @pytest.mark.asyncio
    async def test_login(self, make_client, fake_backend):
        fake_backend.on('POST', '/Auth/login', json={'token': 'abc', 'role': 'Owner', 'name': 'Ravi', 'userId': 3})

        auth = await make_client(SessionContext()).login('ravi@example.com', 'secret')

        assert auth['token'] == 'abc'
        assert auth['role'] == 'Owner'
        assert auth['user_id'] == '3'
        assert fake_backend.calls[0]['body'] == {'email': 'ravi@example.com', 'password': 'secret'}

    @pytest.mark.asyncio
    async def test_update_place_without_body_refetches(self, make_client, owner, fake_backend):
        fake_backend.on('PUT', '/Places/4', status=204)
        fake_backend.on('GET', '/Places/4', json=place_payload(4, 'Lake', price=80))

        place = await make_client(owner).update_place(4, {'name': 'Lake'})

        assert place.name == 'Lake'
        assert place.price == Decimal('80')


class TestBookingPayload:
    def test_midnight_datetime_is_a_calendar_day(self):
        booking = load(BookingSerializer, booking_payload(1, visit_date='2026-03-11T00:00:00'))

        assert booking.visit_date == date(2026, 3, 11)

    def test_place_id_falls_back_to_nested_place(self):
        data = booking_payload(1, place_id=8)
        del data['placeId']

        assert load(BookingSerializer, data).place_id == 8

    def test_missing_place_id_is_rejected(self):
        data = booking_payload(1)
        del data['placeId']
        data['place'] = None

        with pytest.raises(RemoteFailure):
            load(BookingSerializer, data)

    def test_thumbnail_prefers_booking_thumb(self):
        data = booking_payload(1)
        data['placeThumbUrl'] = 'https://img.test/thumb.jpg'
        data['place']['thumbnailUrl'] = 'https://img.test/place-thumb.jpg'

        assert load(BookingSerializer, data).place.thumbnail_url == 'https://img.test/thumb.jpg'

    def test_thumbnail_falls_back_to_place_image(self):
        assert load(BookingSerializer, booking_payload(1)).place.thumbnail_url == 'https://img.test/fort.jpg'

    def test_null_payment_flag_means_unpaid(self):
        data = booking_payload(1)
        data['paymentConfirmed'] = None

        booking = load(BookingSerializer, data)

        assert booking.payment_confirmed is False
        assert booking.status_label == 'Payment Pending'

    def test_total_is_price_times_quantity(self):
        booking = load(BookingSerializer, booking_payload(1, quantity=2, price=500))

        assert booking.total == Decimal('1000')


class TestPlacePayload:
    def test_images_sorted_by_sort_order(self):
        data = place_payload(images=[
            {'url': 'c.jpg', 'sortOrder': 3},
            {'url': 'a.jpg', 'sortOrder': 1},
            {'url': 'b.jpg', 'sortOrder': 1},
        ])

        place = load(PlaceSerializer, data)

        assert place.gallery == ['a.jpg', 'b.jpg', 'c.jpg']

    def test_gallery_falls_back_to_main_image(self):
        place = load(PlaceSerializer, place_payload(imageUrl='main.jpg'))

        assert place.gallery == ['main.jpg']

    def test_unrecognised_maps_link_is_dropped(self):
        place = load(PlaceSerializer, place_payload(googleMapsUrl='https://example.com/maps/fort'))

        assert place.maps_url is None

    def test_reviews_default_author(self):
        place = load(PlaceSerializer, place_payload(reviews=[{'rating': 4, 'comment': 'Nice'}]))

        assert place.reviews[0].author == 'Visitor'


class TestMapsUrl:
    @pytest.mark.parametrize('url', [
        'https://maps.app.goo.gl/abc123',
        'https://www.google.com/maps/place/Amber+Fort',
        'https://maps.google.com/maps?q=fort',
        'https://www.google.co.in/maps/@26.98,75.85,15z',
        'https://goo.gl/maps/xyz',
    ])
    def test_accepted(self, url):
        assert is_maps_url(url)

    @pytest.mark.parametrize('url', [
        'https://example.com/maps',
        'https://www.google.com/search?q=fort',
        'ftp://maps.google.com/maps',
        'https://goo.gl/xyz',
        'not a url',
        '',
    ])
    def test_rejected(self, url):
        assert not is_maps_url(url)
