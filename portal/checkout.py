import asyncio
import logging

from django.conf import settings
from django.utils.module_loading import import_string

from .exceptions import CheckoutUnavailable, ValidationFailure

logger = logging.getLogger(__name__)


def public_key():
    """The merchant's public checkout key; missing or blank stops checkout."""
    key = (getattr(settings, 'CHECKOUT_PUBLIC_KEY', '') or '').strip()
    if not key:
        raise ValidationFailure("Checkout key is not configured.")
    return key


class HostedCheckout:
    """Checkout widget rendered by the provider's script in the browser.

    Opening it means handing the browser the options the widget is
    constructed with; the widget then reports back through the callback
    and dismiss endpoints.
    """

    def __init__(self):
        self.script_url = settings.CHECKOUT_SCRIPT_URL
        self.merchant_name = settings.CHECKOUT_MERCHANT_NAME
        self.theme_color = settings.CHECKOUT_THEME_COLOR

    def open(self, payment_session, prefill_name=''):
        return {
            'script': self.script_url,
            'key': payment_session.public_key,
            'amount': payment_session.amount,
            'currency': payment_session.currency,
            'name': self.merchant_name,
            'description': payment_session.description,
            'order_id': payment_session.order_id,
            'prefill': {'name': prefill_name, 'email': ''},
            'theme': {'color': self.theme_color},
        }


class CheckoutLoader:
    """Imports the configured checkout backend on first use and keeps it."""

    def __init__(self, path=None):
        self.path = path
        self._checkout = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self):
        return self._checkout is not None

    async def load(self):
        if self._checkout is not None:
            return self._checkout
        async with self._lock:
            if self._checkout is None:
                path = self.path or settings.CHECKOUT_BACKEND
                try:
                    checkout_class = import_string(path)
                    self._checkout = checkout_class()
                except Exception as exc:  # noqa: BLE001
                    logger.error("Checkout backend could not be loaded", extra={'backend': path, 'error': str(exc)})
                    raise CheckoutUnavailable(detail=str(exc))
                logger.info("Checkout backend loaded", extra={'backend': path})
        return self._checkout

    def reset(self):
        self._checkout = None
        self._lock = asyncio.Lock()


checkout_loader = CheckoutLoader()
