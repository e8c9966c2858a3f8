import asyncio
import logging

from rest_framework import status
from rest_framework.response import Response

from .clients import BackendClient
from .domain import Notice
from .eligibility import ReviewEligibility, can_review, review_eligibility, submit_review
from .exceptions import AuthorizationFailure, NotFound, RemoteFailure, ValidationFailure
from .payments import AttemptState, PaymentOrchestrator, checkouts
from .permissions import IsOwner, IsVisitor
from .revenue import RevenueReport, aggregate_revenue
from .serializers import LoginSerializer, PaymentCallbackSerializer, PlaceWriteSerializer, clean
from .session import SessionContext, SessionGuardView
from .store import BookingStore
from .timeline import classify, current_day

logger = logging.getLogger(__name__)


def backend(session):
    return BackendClient(session)


def booking_json(booking, today):
    return {
        'booking_id': booking.booking_id,
        'place_id': booking.place_id,
        'place_name': booking.place.name,
        'visit_date': booking.visit_date,
        'quantity': booking.quantity,
        'total': str(booking.total),
        'payment_confirmed': booking.payment_confirmed,
        'status': booking.status_label,
        'bucket': classify(booking.visit_date, today).value,
        'thumbnail_url': booking.place.thumbnail_url,
        'maps_url': booking.place.maps_url,
        'can_pay': not booking.payment_confirmed,
        'can_review': can_review(booking, today),
    }


def place_json(place, detail=False):
    data = {
        'place_id': place.place_id,
        'name': place.name,
        'description': place.description,
        'location': place.location,
        'timings': place.timings,
        'price': str(place.price),
        'image_url': place.gallery[0] if place.gallery else None,
        'maps_url': place.maps_url,
    }
    if detail:
        data['images'] = place.gallery
        data['reviews'] = [
            {
                'review_id': review.review_id,
                'rating': review.rating,
                'comment': review.comment,
                'created_at': review.created_at,
                'author': review.author,
            }
            for review in place.reviews
        ]
    return data


def attempt_response(attempt):
    if attempt.state is AttemptState.FAILED:
        code = status.HTTP_400_BAD_REQUEST if isinstance(attempt.error, ValidationFailure) else status.HTTP_502_BAD_GATEWAY
    elif attempt.state is AttemptState.AWAITING_CHECKOUT:
        code = status.HTTP_201_CREATED
    else:
        code = status.HTTP_200_OK
    return Response(attempt.as_dict(), status=code)


# --- session ----------------------------------------------------------------

class LoginView(SessionGuardView):
    async def post(self, request):
        credentials = clean(LoginSerializer, request.data).validated_data
        try:
            auth = await backend(self.get_session(request)).login(credentials['email'], credentials['password'])
        except AuthorizationFailure:
            raise ValidationFailure("Invalid credentials.")

        request.session.cycle_key()
        session = SessionContext(
            token=auth['token'], role=auth['role'], name=auth.get('name'), user_id=auth.get('user_id'),
        )
        session.store(request._request)
        logger.info("Signed in", extra={'role': session.role})
        return Response({'role': session.role, 'name': session.name})


class LogoutView(SessionGuardView):
    async def post(self, request):
        self.get_session(request).clear()
        return Response({'status': 'signed_out'})


# --- places -----------------------------------------------------------------

class PlaceListView(SessionGuardView):
    async def get(self, request):
        notice = None
        try:
            places = await backend(self.get_session(request)).list_places(
                location=request.query_params.get('location'), max_price=request.query_params.get('maxPrice'),
            )
        except RemoteFailure as exc:
            places = []
            notice = Notice('error', exc.message)
        return Response({
            'places': [place_json(place) for place in places],
            'notice': notice.as_dict() if notice else None,
        })


class PlaceDetailView(SessionGuardView):
    async def get(self, request, place_id):
        session = self.get_session(request)
        client = backend(session)
        place = await client.get_place(place_id)
        eligibility = await review_eligibility(session, client, place_id)
        return Response({
            'place': place_json(place, detail=True),
            'review_eligibility': eligibility.value,
            'can_review': eligibility is ReviewEligibility.ELIGIBLE,
            'hint': (
                "You can write a review after your visit."
                if eligibility is ReviewEligibility.PENDING_VISIT else None
            ),
        })


class PlaceBookView(SessionGuardView):
    permission_classes = [IsVisitor]

    async def post(self, request, place_id):
        orchestrator = PaymentOrchestrator(backend(self.get_session(request)), BookingStore())
        attempt = await orchestrator.book(place_id, request.data.get('visit_date'), request.data.get('quantity'))
        orchestrator.watch(attempt)
        return attempt_response(attempt)


class PlaceReviewView(SessionGuardView):
    permission_classes = [IsVisitor]

    async def post(self, request, place_id):
        session = self.get_session(request)
        review = await submit_review(session, backend(session), place_id, request.data)
        return Response({
            'status': 'created',
            'review_id': review.review_id if review else None,
        }, status=status.HTTP_201_CREATED)


# --- visitor bookings -------------------------------------------------------

class BookingListView(SessionGuardView):
    permission_classes = [IsVisitor]

    async def get(self, request):
        store = BookingStore()
        await store.refresh(backend(self.get_session(request)))
        today = current_day()
        buckets = store.buckets(today)
        return Response({
            'upcoming': [booking_json(booking, today) for booking in buckets.upcoming],
            'past': [booking_json(booking, today) for booking in buckets.past],
            'notice': Notice('error', store.last_error.message).as_dict() if store.last_error else None,
        })


class BookingPayView(SessionGuardView):
    permission_classes = [IsVisitor]

    async def post(self, request, booking_id):
        client = backend(self.get_session(request))
        store = BookingStore()
        await store.refresh(client)
        booking = store.get(booking_id)
        if booking is None:
            raise NotFound("Booking not found.")
        if booking.payment_confirmed:
            raise ValidationFailure("This booking is already paid.")

        orchestrator = PaymentOrchestrator(client, store)
        attempt = await orchestrator.pay_now(booking)
        orchestrator.watch(attempt)
        return attempt_response(attempt)


# --- checkout provider ------------------------------------------------------

class CheckoutSettleView(SessionGuardView):
    """Hands the checkout widget's outcome to the attempt waiting on it."""
    permission_classes = [IsVisitor]

    def settle(self, request, booking_id, identity):
        raise NotImplementedError

    async def post(self, request, booking_id):
        attempt = self.settle(request, booking_id, self.get_session(request).identity)
        if attempt.task is not None:
            await asyncio.shield(attempt.task)
        return attempt_response(attempt)


class CheckoutCallbackView(CheckoutSettleView):
    def settle(self, request, booking_id, identity):
        confirmation = clean(PaymentCallbackSerializer, request.data).save()
        return checkouts.resolve(booking_id, confirmation, identity)


class CheckoutDismissView(CheckoutSettleView):
    def settle(self, request, booking_id, identity):
        return checkouts.dismiss(booking_id, identity)


# --- owner ------------------------------------------------------------------

class OwnerDashboardView(SessionGuardView):
    permission_classes = [IsOwner]

    async def get(self, request):
        client = backend(self.get_session(request))
        notice = None
        try:
            places = await client.my_places()
        except RemoteFailure as exc:
            places = []
            notice = Notice('error', exc.message)
        report = await aggregate_revenue(client, places) if places else RevenueReport()
        data = report.as_dict()
        data['notice'] = notice.as_dict() if notice else None
        return Response(data)


class OwnerPlaceBookingsView(SessionGuardView):
    permission_classes = [IsOwner]

    async def get(self, request, place_id):
        notice = None
        try:
            bookings = await backend(self.get_session(request)).place_bookings(place_id)
        except RemoteFailure as exc:
            bookings = []
            notice = Notice('error', exc.message)
        return Response({
            'place_id': place_id,
            'bookings': [
                {
                    'booking_id': booking.booking_id,
                    'visitor': booking.visitor,
                    'visit_date': booking.visit_date,
                    'quantity': booking.quantity,
                    'paid': booking.payment_confirmed,
                }
                for booking in bookings
            ],
            'notice': notice.as_dict() if notice else None,
        })


class OwnerPlaceCreateView(SessionGuardView):
    permission_classes = [IsOwner]

    async def post(self, request):
        serializer = clean(PlaceWriteSerializer, request.data)
        place = await backend(self.get_session(request)).create_place(serializer.to_payload())
        return Response(place_json(place, detail=True), status=status.HTTP_201_CREATED)


class OwnerPlaceUpdateView(SessionGuardView):
    permission_classes = [IsOwner]

    async def put(self, request, place_id):
        serializer = clean(PlaceWriteSerializer, request.data)
        place = await backend(self.get_session(request)).update_place(place_id, serializer.to_payload())
        return Response(place_json(place, detail=True))
