import json
from datetime import date

import httpx
import pytest

from portal.checkout import checkout_loader
from portal.clients import BackendClient
from portal.payments import checkouts
from portal.session import SessionContext

BASE_URL = 'http://backend.test/api'
TODAY = date(2026, 3, 10)


class FakeBackend:
    """Stands in for the REST backend behind an httpx.MockTransport."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, method, path, status=200, json=None, text=None, handler=None):
        self.routes[(method, path)] = (status, json, text, handler)
        return self

    def __call__(self, request):
        path = request.url.path
        if path.startswith('/api'):
            path = path[len('/api'):]
        body = json.loads(request.content) if request.content else None
        self.calls.append({
            'method': request.method,
            'path': path,
            'body': body,
            'params': dict(request.url.params),
            'authorization': request.headers.get('authorization'),
        })
        try:
            status, payload, text, handler = self.routes[(request.method, path)]
        except KeyError:
            return httpx.Response(404, json={'message': f'No route for {request.method} {path}'})
        if handler is not None:
            return handler(request)
        if text is not None:
            return httpx.Response(status, text=text)
        return httpx.Response(status, json=payload)

    @property
    def transport(self):
        return httpx.MockTransport(self)

    def called(self, method, path):
        return [call for call in self.calls if call['method'] == method and call['path'] == path]


def booking_payload(booking_id, place_id=1, visit_date='2026-03-11', quantity=1, paid=False, price=100, name='Fort'):
    return {
        'bookingId': booking_id,
        'placeId': place_id,
        'visitDate': visit_date,
        'quantity': quantity,
        'paymentConfirmed': paid,
        'place': {'placeId': place_id, 'name': name, 'price': price, 'imageUrl': 'https://img.test/fort.jpg'},
    }


def place_payload(place_id=1, name='Fort', price=100, **extra):
    data = {
        'placeId': place_id,
        'name': name,
        'description': 'Old fort on the hill',
        'location': 'Jaipur',
        'timings': '9am - 5pm',
        'price': price,
    }
    data.update(extra)
    return data


@pytest.fixture(autouse=True)
def portal_settings(settings):
    settings.BOOKING_BASE_URL = BASE_URL
    settings.CHECKOUT_PUBLIC_KEY = 'rzp_test_public'
    settings.CHECKOUT_BACKEND = 'portal.checkout.HostedCheckout'
    settings.PAYMENT_RETRY_MODE = 'recreate'
    settings.PAYMENT_CALLBACK_TIMEOUT = None
    checkouts.clear()
    checkout_loader.reset()
    yield settings
    checkouts.clear()
    checkout_loader.reset()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def visitor():
    return SessionContext(token='visitor-token', role='Visitor', name='Asha', user_id='7')


@pytest.fixture
def owner():
    return SessionContext(token='owner-token', role='Owner', name='Ravi', user_id='3')


@pytest.fixture
def make_client(fake_backend):
    def factory(session):
        return BackendClient(session, base_url=BASE_URL, transport=fake_backend.transport)
    return factory
