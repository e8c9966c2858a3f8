"""
Payment orchestration for a single "Book & Pay" / "Pay Now" attempt.

    REQUESTED -> AWAITING_CHECKOUT -> VERIFYING -> CONFIRMED
         \               |    \            \
          `-> FAILED <---'     `-> ABANDONED `-> FAILED

The booking row and its provider order are created by one backend call
before the checkout is opened, so verification is never attempted without
an order. The provider's callback is delivered through ``CheckoutRegistry``:
each open attempt owns a single-shot future keyed by booking id that
resolves to a ``PaymentConfirmation`` or to ``AttemptState.ABANDONED``.
Only the visitor who opened the checkout can settle it; anyone else is
told there is nothing waiting. A booking left unconfirmed by a failed or
abandoned attempt stays listed and can be paid again, and every "Pay Now"
abandons whatever checkout was still open for that booking.
"""
import asyncio
import logging
from enum import Enum

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .checkout import checkout_loader, public_key
from .domain import BookingOrder, Notice, PaymentSession
from .exceptions import AuthorizationFailure, NotFound, PortalError, RemoteFailure
from .serializers import ReservationSerializer, clean
from .timeline import current_day

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    REQUESTED = "requested"
    AWAITING_CHECKOUT = "awaiting_checkout"
    VERIFYING = "verifying"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    ABANDONED = "abandoned"


TRANSITIONS = {
    AttemptState.REQUESTED: {AttemptState.AWAITING_CHECKOUT, AttemptState.FAILED},
    AttemptState.AWAITING_CHECKOUT: {AttemptState.VERIFYING, AttemptState.ABANDONED, AttemptState.FAILED},
    AttemptState.VERIFYING: {AttemptState.CONFIRMED, AttemptState.FAILED},
}

TERMINAL_STATES = {AttemptState.CONFIRMED, AttemptState.FAILED, AttemptState.ABANDONED}


class RetryMode(str, Enum):
    RECREATE = "recreate"
    RESUME = "resume"


class PaymentAttempt:
    def __init__(self, place_id, visit_date, quantity, place_name='', owner=None, retry_of=None):
        self.place_id = place_id
        self.visit_date = visit_date
        self.quantity = quantity
        self.place_name = place_name or ''
        # identity of the visitor whose checkout this is
        self.owner = owner
        # booking id the visitor pressed "Pay Now" on, if this is a retry
        self.retry_of = retry_of
        self.state = AttemptState.REQUESTED
        self.history = [AttemptState.REQUESTED]
        self.order = None
        self.payment_session = None
        self.checkout_options = None
        self.notice = None
        self.error = None
        self.resumed = False
        self.outcome = None
        self.task = None

    @property
    def booking_id(self):
        return self.order.booking_id if self.order else None

    @property
    def is_terminal(self):
        return self.state in TERMINAL_STATES

    def _move(self, state):
        if state not in TRANSITIONS.get(self.state, ()):
            raise RuntimeError(f"Cannot move payment attempt from {self.state.value} to {state.value}")
        logger.info(
            "Payment attempt %s -> %s", self.state.value, state.value,
            extra={'booking_id': self.booking_id, 'order_id': self.order.order_id if self.order else None},
        )
        self.state = state
        self.history.append(state)

    def open_checkout(self, payment_session, options):
        self.payment_session = payment_session
        self.checkout_options = options
        self.outcome = asyncio.get_running_loop().create_future()
        self._move(AttemptState.AWAITING_CHECKOUT)

    def resolve(self, result):
        """Settle the callback future once; later calls are ignored."""
        if self.outcome is None or self.outcome.done():
            return False
        self.outcome.set_result(result)
        return True

    def verifying(self):
        self._move(AttemptState.VERIFYING)

    def confirm(self):
        self.notice = Notice('success', "Payment successful! Booking confirmed.")
        self._move(AttemptState.CONFIRMED)

    def abandon(self, message="Payment window closed."):
        self.notice = Notice('info', message)
        self._move(AttemptState.ABANDONED)

    def fail(self, error):
        self.error = error
        self.notice = Notice('error', error.message)
        self.payment_session = None
        self.checkout_options = None
        self._move(AttemptState.FAILED)

    def as_dict(self):
        return {
            'state': self.state.value,
            'booking_id': self.booking_id,
            'order_id': self.order.order_id if self.order else None,
            'resumed': self.resumed,
            'checkout': self.checkout_options,
            'notice': self.notice.as_dict() if self.notice else None,
        }

    def __repr__(self):
        return f'<PaymentAttempt booking={self.booking_id} state={self.state.value}>'


class CheckoutRegistry:
    """Open checkout attempts and their payment sessions, keyed by booking id."""

    def __init__(self):
        self._attempts = {}
        self._sessions = {}

    def __len__(self):
        return len(self._attempts)

    def __contains__(self, booking_id):
        return booking_id in self._attempts

    def register(self, attempt):
        previous = self._attempts.get(attempt.booking_id)
        if previous is not None and previous is not attempt:
            # a reopened checkout supersedes the one still waiting
            previous.resolve(AttemptState.ABANDONED)
        self._attempts[attempt.booking_id] = attempt
        self._sessions[attempt.booking_id] = attempt.payment_session

    def get(self, booking_id):
        return self._attempts.get(booking_id)

    def session_for(self, booking_id):
        return self._sessions.get(booking_id)

    def _settle(self, booking_id, owner, result):
        attempt = self._attempts.get(booking_id)
        # another visitor's checkout looks exactly like a missing one
        if attempt is None or owner is None or attempt.owner != owner or not attempt.resolve(result):
            raise NotFound("No checkout is waiting for this booking.")
        return attempt

    def resolve(self, booking_id, confirmation, owner):
        return self._settle(booking_id, owner, confirmation)

    def dismiss(self, booking_id, owner):
        return self._settle(booking_id, owner, AttemptState.ABANDONED)

    def supersede(self, booking_id):
        """Abandon every open checkout for ``booking_id`` or for an earlier retry of it."""
        stale = [
            attempt for attempt in self._attempts.values()
            if booking_id in (attempt.booking_id, attempt.retry_of)
        ]
        for attempt in stale:
            del self._attempts[attempt.booking_id]
            self._sessions.pop(attempt.booking_id, None)
            attempt.resolve(AttemptState.ABANDONED)
        if stale:
            logger.info("Superseded open checkouts", extra={'booking_id': booking_id, 'count': len(stale)})
        return stale

    def release(self, attempt, keep_session=False):
        if self._attempts.get(attempt.booking_id) is not attempt:
            return
        del self._attempts[attempt.booking_id]
        if not (keep_session and attempt.state is AttemptState.ABANDONED):
            self._sessions.pop(attempt.booking_id, None)

    def clear(self):
        self._attempts.clear()
        self._sessions.clear()


checkouts = CheckoutRegistry()


class PaymentOrchestrator:
    def __init__(self, client, store, *, registry=None, loader=None, retry_mode=None,
                 callback_timeout=None, clock=current_day):
        self.client = client
        self.store = store
        self.registry = registry if registry is not None else checkouts
        self.loader = loader or checkout_loader
        mode = retry_mode or settings.PAYMENT_RETRY_MODE
        try:
            self.retry_mode = RetryMode(mode)
        except ValueError:
            raise ImproperlyConfigured(f"Unknown PAYMENT_RETRY_MODE {mode!r}")
        if callback_timeout is None:
            callback_timeout = settings.PAYMENT_CALLBACK_TIMEOUT
        self.callback_timeout = callback_timeout
        self.clock = clock

    async def book(self, place_id, visit_date, quantity, place_name=''):
        """Start a new booking. Without ``place_name`` the place is looked up once the input is valid."""
        attempt = PaymentAttempt(place_id, visit_date, quantity, place_name, owner=self.client.session.identity)
        return await self._open(attempt)

    async def pay_now(self, booking):
        """Retry payment for an unconfirmed booking. Its visit date is not re-checked."""
        attempt = PaymentAttempt(
            booking.place_id, booking.visit_date, booking.quantity, booking.place.name,
            owner=self.client.session.identity, retry_of=booking.booking_id,
        )
        resume_from = None
        if self.retry_mode is RetryMode.RESUME:
            resume_from = self.registry.session_for(booking.booking_id)
        self.registry.supersede(booking.booking_id)
        return await self._open(attempt, resume_from, check_date=False)

    async def pay(self, place_id, visit_date, quantity, place_name=''):
        attempt = await self.book(place_id, visit_date, quantity, place_name)
        return await self.complete(attempt)

    async def _open(self, attempt, resume_from=None, check_date=True):
        data = {
            'place_id': attempt.place_id,
            'visit_date': attempt.visit_date,
            'quantity': attempt.quantity,
        }
        try:
            reservation = clean(ReservationSerializer, data, today=self.clock() if check_date else None)
            key = public_key()
            checkout = await self.loader.load()
            if not attempt.place_name:
                attempt.place_name = (await self.client.get_place(attempt.place_id)).name
            if resume_from is not None:
                attempt.resumed = True
                attempt.order = BookingOrder(
                    booking_id=resume_from.booking_id,
                    order_id=resume_from.order_id,
                    amount=resume_from.amount,
                    currency=resume_from.currency,
                )
            else:
                attempt.order = await self.client.create_booking(reservation.to_payload())
            payment_session = PaymentSession(
                order_id=attempt.order.order_id,
                amount=attempt.order.amount,
                currency=attempt.order.currency,
                public_key=key,
                booking_id=attempt.order.booking_id,
                description=f"Booking #{attempt.order.booking_id} - {attempt.place_name}",
            )
            attempt.open_checkout(payment_session, checkout.open(payment_session, self.client.session.name))
        except AuthorizationFailure as exc:
            attempt.fail(exc)
            raise
        except PortalError as exc:
            attempt.fail(exc)
            return attempt

        self.registry.register(attempt)
        return attempt

    async def _wait_for_checkout(self, attempt):
        if not self.callback_timeout:
            return await attempt.outcome
        try:
            return await asyncio.wait_for(asyncio.shield(attempt.outcome), self.callback_timeout)
        except asyncio.TimeoutError:
            logger.info("Checkout callback timed out", extra={'booking_id': attempt.booking_id})
            return None

    async def complete(self, attempt):
        """Wait for the provider, verify with the backend, refresh bookings."""
        if attempt.state is not AttemptState.AWAITING_CHECKOUT:
            return attempt
        try:
            result = await self._wait_for_checkout(attempt)
            if result is None:
                attempt.abandon("Payment window timed out.")
                return attempt
            if result is AttemptState.ABANDONED:
                attempt.abandon()
                return attempt

            attempt.verifying()
            try:
                await self.client.verify_payment(attempt.booking_id, result)
            except AuthorizationFailure as exc:
                attempt.fail(exc)
                raise
            except RemoteFailure as exc:
                attempt.fail(exc)
                return attempt

            attempt.confirm()
            await self.store.refresh(self.client)
            return attempt
        finally:
            self.registry.release(attempt, keep_session=self.retry_mode is RetryMode.RESUME)

    def watch(self, attempt):
        """Run ``complete`` in the background so the caller can return the checkout."""
        if attempt.state is AttemptState.AWAITING_CHECKOUT and attempt.task is None:
            attempt.task = asyncio.ensure_future(self.complete(attempt))
        return attempt
