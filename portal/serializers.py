from datetime import datetime
from decimal import Decimal
from urllib.parse import urlparse

from django.utils.dateparse import parse_datetime
from rest_framework import serializers

from .domain import (
    Booking, BookingOrder, PaymentConfirmation, Place, PlaceImage,
    PlaceSnapshot, Review,
)
from .exceptions import RemoteFailure, ValidationFailure
from .timeline import start_of_day


def is_maps_url(url) -> bool:
    """Accept only Google Maps links (maps.google.com, google.*/maps, maps.app.goo.gl)."""
    try:
        parsed = urlparse(str(url).strip())
        host = (parsed.hostname or '').lower()
    except ValueError:
        return False
    if parsed.scheme not in ('http', 'https') or not host:
        return False

    if host == 'maps.app.goo.gl':
        return True
    if host in ('goo.gl', 'goo.gle'):
        return parsed.path.startswith('/maps')
    if host.endswith('google.com') or '.google.' in host:
        return parsed.path.startswith('/maps')
    return False


def validate_maps_url(value):
    if value and not is_maps_url(value):
        raise serializers.ValidationError(
            "Please provide a Google Maps link (maps.google.com or maps.app.goo.gl)."
        )
    return value


class VisitDateField(serializers.DateField):
    """Date field that also takes the backend's midnight datetimes ("2025-10-20T00:00:00")."""

    def to_internal_value(self, value):
        if isinstance(value, datetime):
            return start_of_day(value)
        if isinstance(value, str) and 'T' in value:
            try:
                parsed = parse_datetime(value)
            except ValueError:
                parsed = None
            if parsed is not None:
                return start_of_day(parsed)
        return super().to_internal_value(value)


def money_field(**kwargs):
    return serializers.DecimalField(
        max_digits=None, decimal_places=None, min_value=Decimal('0'), **kwargs
    )


# --- backend payloads -------------------------------------------------------

class PlaceImageSerializer(serializers.Serializer):
    placeImageId = serializers.IntegerField(source='image_id', required=False, allow_null=True)
    url = serializers.CharField()
    sortOrder = serializers.IntegerField(source='sort_order', required=False, allow_null=True)

    def create(self, validated_data):
        return PlaceImage(
            url=validated_data['url'],
            image_id=validated_data.get('image_id'),
            sort_order=validated_data.get('sort_order') or 0,
        )


class VisitorSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ReviewSerializer(serializers.Serializer):
    reviewId = serializers.IntegerField(source='review_id', required=False, allow_null=True)
    placeId = serializers.IntegerField(source='place_id', required=False, allow_null=True)
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', required=False, allow_null=True)
    user = VisitorSerializer(required=False, allow_null=True)

    def create(self, validated_data):
        user = validated_data.get('user') or {}
        return Review(
            rating=validated_data['rating'],
            comment=validated_data.get('comment') or '',
            review_id=validated_data.get('review_id'),
            place_id=validated_data.get('place_id'),
            created_at=validated_data.get('created_at'),
            author=user.get('name') or 'Visitor',
        )


class PlaceSerializer(serializers.Serializer):
    placeId = serializers.IntegerField(source='place_id')
    name = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    location = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    timings = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    price = money_field()
    imageUrl = serializers.CharField(source='image_url', required=False, allow_blank=True, allow_null=True)
    googleMapsUrl = serializers.CharField(source='maps_url', required=False, allow_blank=True, allow_null=True)
    images = PlaceImageSerializer(many=True, required=False, allow_null=True)
    reviews = ReviewSerializer(many=True, required=False, allow_null=True)

    def create(self, validated_data):
        maps_url = validated_data.get('maps_url')
        return Place(
            place_id=validated_data['place_id'],
            name=validated_data['name'],
            price=validated_data['price'],
            description=validated_data.get('description') or '',
            location=validated_data.get('location') or '',
            timings=validated_data.get('timings') or '',
            image_url=validated_data.get('image_url') or None,
            maps_url=maps_url if maps_url and is_maps_url(maps_url) else None,
            images=[PlaceImageSerializer().create(image) for image in validated_data.get('images') or []],
            reviews=[ReviewSerializer().create(review) for review in validated_data.get('reviews') or []],
        )


class PlaceSnapshotSerializer(serializers.Serializer):
    placeId = serializers.IntegerField(source='place_id', required=False, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    price = money_field(required=False, allow_null=True)
    thumbnailUrl = serializers.CharField(source='thumbnail_url', required=False, allow_blank=True, allow_null=True)
    imageUrl = serializers.CharField(source='image_url', required=False, allow_blank=True, allow_null=True)
    googleMapsUrl = serializers.CharField(source='maps_url', required=False, allow_blank=True, allow_null=True)


class BookingSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(source='booking_id')
    placeId = serializers.IntegerField(source='place_id', required=False, allow_null=True)
    visitDate = VisitDateField(source='visit_date')
    quantity = serializers.IntegerField(min_value=1)
    paymentConfirmed = serializers.BooleanField(source='payment_confirmed', default=False, allow_null=True)
    placeThumbUrl = serializers.CharField(source='place_thumb_url', required=False, allow_blank=True, allow_null=True)
    place = PlaceSnapshotSerializer(required=False, allow_null=True)
    user = VisitorSerializer(required=False, allow_null=True)
    userId = serializers.CharField(source='user_id', required=False, allow_null=True)

    def validate(self, attrs):
        place = attrs.get('place') or {}
        if attrs.get('place_id') is None:
            attrs['place_id'] = place.get('place_id')
        if attrs['place_id'] is None:
            raise serializers.ValidationError("Booking has no placeId.")
        return attrs

    def create(self, validated_data):
        place = validated_data.get('place') or {}
        user = validated_data.get('user') or {}
        maps_url = place.get('maps_url')
        snapshot = PlaceSnapshot(
            place_id=validated_data['place_id'],
            name=place.get('name') or 'Place',
            price=place.get('price') or Decimal('0'),
            thumbnail_url=(
                validated_data.get('place_thumb_url')
                or place.get('thumbnail_url')
                or place.get('image_url')
                or None
            ),
            maps_url=maps_url if maps_url and is_maps_url(maps_url) else None,
        )
        return Booking(
            booking_id=validated_data['booking_id'],
            place_id=validated_data['place_id'],
            visit_date=validated_data['visit_date'],
            quantity=validated_data['quantity'],
            payment_confirmed=bool(validated_data.get('payment_confirmed')),
            place=snapshot,
            visitor=user.get('name') or validated_data.get('user_id') or '',
        )


class BookingOrderSerializer(serializers.Serializer):
    bookingId = serializers.IntegerField(source='booking_id')
    orderId = serializers.CharField(source='order_id')
    amount = serializers.IntegerField(min_value=0)
    currency = serializers.CharField(default='INR')

    def create(self, validated_data):
        return BookingOrder(**validated_data)


class AuthSessionSerializer(serializers.Serializer):
    token = serializers.CharField()
    role = serializers.CharField()
    name = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    userId = serializers.CharField(source='user_id', required=False, allow_null=True)


# --- visitor input ----------------------------------------------------------

class LoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)


class ReservationSerializer(serializers.Serializer):
    place_id = serializers.IntegerField()
    visit_date = serializers.DateField()
    quantity = serializers.IntegerField(min_value=1)

    def validate_visit_date(self, value):
        today = self.context.get('today')
        if today is not None and value < today:
            raise serializers.ValidationError("Please choose today or a future date.")
        return value

    def to_payload(self):
        data = self.validated_data
        return {
            'placeId': data['place_id'],
            'visitDate': data['visit_date'].isoformat(),
            'quantity': data['quantity'],
        }


class PaymentCallbackSerializer(serializers.Serializer):
    """Values the checkout widget hands to its success handler."""

    razorpay_order_id = serializers.CharField(source='order_id')
    razorpay_payment_id = serializers.CharField(source='payment_id')
    razorpay_signature = serializers.CharField(source='signature')

    def create(self, validated_data):
        return PaymentConfirmation(**validated_data)


class ReviewCreateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class PlaceWriteSerializer(serializers.Serializer):
    name = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True, default='')
    location = serializers.CharField()
    timings = serializers.CharField()
    price = money_field()
    imageUrl = serializers.URLField(required=False, allow_blank=True, default='')
    googleMapsUrl = serializers.CharField(
        required=False, allow_blank=True, default='', validators=[validate_maps_url]
    )

    def to_payload(self):
        data = dict(self.validated_data)
        data['price'] = float(data['price'])
        return data


# --- helpers ----------------------------------------------------------------

def first_error(errors):
    if isinstance(errors, dict):
        for value in errors.values():
            message = first_error(value)
            if message:
                return message
    elif isinstance(errors, (list, tuple)):
        for value in errors:
            message = first_error(value)
            if message:
                return message
    elif errors:
        return str(errors)
    return None


def load(serializer_class, data, many=False):
    """Deserialize a backend response into domain objects."""
    serializer = serializer_class(data=data, many=many)
    if not serializer.is_valid():
        raise RemoteFailure(
            "Unexpected response from the booking service.",
            detail=serializer.errors,
        )
    return serializer.save()


def clean(serializer_class, data, **context):
    """Validate visitor input; returns the bound serializer."""
    serializer = serializer_class(data=data, context=context)
    if not serializer.is_valid():
        raise ValidationFailure(first_error(serializer.errors), detail=serializer.errors)
    return serializer
