import logging
from enum import Enum

from .exceptions import RemoteFailure, ValidationFailure
from .serializers import ReviewCreateSerializer, clean
from .timeline import current_day, is_past, is_upcoming

logger = logging.getLogger(__name__)


class ReviewEligibility(str, Enum):
    ELIGIBLE = "eligible"
    PENDING_VISIT = "pending_visit"
    NOT_ELIGIBLE = "not_eligible"


def can_review(booking, today) -> bool:
    """A paid booking whose visit day is over."""
    return booking.payment_confirmed and is_past(booking.visit_date, today)


def evaluate(bookings, place_id, today) -> ReviewEligibility:
    mine = [booking for booking in bookings if booking.place_id == place_id]
    if any(can_review(booking, today) for booking in mine):
        return ReviewEligibility.ELIGIBLE
    if any(is_upcoming(booking.visit_date, today) for booking in mine):
        return ReviewEligibility.PENDING_VISIT
    return ReviewEligibility.NOT_ELIGIBLE


async def review_eligibility(session, client, place_id, today=None) -> ReviewEligibility:
    """Fetch the visitor's bookings and evaluate them for ``place_id``."""
    if not session.is_visitor:
        return ReviewEligibility.NOT_ELIGIBLE
    try:
        bookings = await client.my_bookings()
    except RemoteFailure as exc:
        logger.info("Could not evaluate review eligibility", extra={'place_id': place_id, 'error': exc.message})
        return ReviewEligibility.NOT_ELIGIBLE
    return evaluate(bookings, place_id, today or current_day())


async def submit_review(session, client, place_id, data, today=None):
    serializer = clean(ReviewCreateSerializer, data)
    eligibility = await review_eligibility(session, client, place_id, today)
    if eligibility is not ReviewEligibility.ELIGIBLE:
        if eligibility is ReviewEligibility.PENDING_VISIT:
            raise ValidationFailure("You can write a review after your visit.")
        raise ValidationFailure("Only visitors with a paid, completed visit can review this place.")

    review = await client.create_review(
        place_id, serializer.validated_data['rating'], serializer.validated_data['comment']
    )
    logger.info("Review submitted", extra={'place_id': place_id})
    return review
