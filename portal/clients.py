import logging

import httpx
from django.conf import settings

from .exceptions import AuthorizationFailure, RemoteFailure
from .serializers import (
    AuthSessionSerializer, BookingOrderSerializer, BookingSerializer,
    PlaceSerializer, ReviewSerializer, load,
)

logger = logging.getLogger(__name__)


def error_message(response):
    """Best message the backend gave us for a failed call, if any."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:500] or None

    if isinstance(body, str):
        return body or None
    if isinstance(body, dict):
        for key in ('message', 'error', 'detail', 'title'):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class BackendClient:
    """Async client for the booking REST backend.

    Every call goes through ``_request``, which is where the session guard
    lives: a 401 clears the session context and raises
    ``AuthorizationFailure``; everything else that fails is a
    ``RemoteFailure``.
    """

    def __init__(self, session, base_url=None, timeout=None, transport=None):
        self.session = session
        self.base_url = (base_url or settings.BOOKING_BASE_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else settings.BOOKING_HTTP_TIMEOUT
        self._transport = transport

    async def _request(self, method, path, *, json=None, params=None, fallback=None):
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method, url, json=json, params=params, headers=self.session.auth_headers()
                )
        except httpx.RequestError as exc:
            logger.warning("Booking service unreachable", extra={'method': method, 'path': path, 'error': str(exc)})
            raise RemoteFailure("Unable to reach the booking service.", detail=str(exc))

        if response.status_code == 401:
            logger.warning("Booking service rejected the session", extra={'method': method, 'path': path})
            self.session.clear()
            raise AuthorizationFailure()

        if response.status_code >= 400:
            message = error_message(response)
            logger.warning(
                "Booking service call failed",
                extra={'method': method, 'path': path, 'status': response.status_code, 'body': response.text[:500]},
            )
            raise RemoteFailure(message or fallback, detail={"status": response.status_code})

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # --- auth ---------------------------------------------------------------

    async def login(self, email, password):
        data = await self._request(
            'POST', '/Auth/login', json={'email': email, 'password': password}, fallback="Login failed."
        )
        serializer = AuthSessionSerializer(data=data)
        if not serializer.is_valid():
            raise RemoteFailure("Unexpected response from the booking service.", detail=serializer.errors)
        return serializer.validated_data

    # --- places -------------------------------------------------------------

    async def list_places(self, location=None, max_price=None):
        params = {}
        if location:
            params['location'] = location
        if max_price not in (None, ''):
            params['maxPrice'] = max_price
        data = await self._request('GET', '/Places', params=params, fallback="Unable to load places right now.")
        return load(PlaceSerializer, data or [], many=True)

    async def get_place(self, place_id):
        data = await self._request('GET', f'/Places/{place_id}', fallback="Place not found.")
        return load(PlaceSerializer, data)

    async def my_places(self):
        data = await self._request('GET', '/Places/my', fallback="Unable to load your places.")
        return load(PlaceSerializer, data or [], many=True)

    async def create_place(self, payload):
        data = await self._request('POST', '/Places', json=payload, fallback="Could not save the place.")
        return load(PlaceSerializer, data)

    async def update_place(self, place_id, payload):
        data = await self._request('PUT', f'/Places/{place_id}', json=payload, fallback="Could not save the place.")
        if not data:
            return await self.get_place(place_id)
        return load(PlaceSerializer, data)

    # --- bookings -----------------------------------------------------------

    async def create_booking(self, payload):
        """Create the booking row and its provider order in one request."""
        data = await self._request('POST', '/Bookings', json=payload, fallback="Could not start payment.")
        return load(BookingOrderSerializer, data)

    async def verify_payment(self, booking_id, confirmation):
        return await self._request(
            'POST',
            '/Bookings/verifyPayment',
            json={
                'bookingId': booking_id,
                'orderId': confirmation.order_id,
                'paymentId': confirmation.payment_id,
                'signature': confirmation.signature,
            },
            fallback="Payment verification failed.",
        )

    async def my_bookings(self):
        data = await self._request('GET', '/Bookings/my', fallback="Unable to load your bookings.")
        return load(BookingSerializer, data or [], many=True)

    async def place_bookings(self, place_id):
        data = await self._request(
            'GET', f'/Bookings/place/{place_id}', fallback="Unable to load bookings for this place."
        )
        return load(BookingSerializer, data or [], many=True)

    # --- reviews ------------------------------------------------------------

    async def create_review(self, place_id, rating, comment):
        data = await self._request(
            'POST',
            '/Reviews',
            json={'placeId': place_id, 'rating': rating, 'comment': comment},
            fallback="Could not submit your review.",
        )
        if isinstance(data, dict):
            return load(ReviewSerializer, data)
        return None
