from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional


@dataclass(frozen=True)
class PlaceImage:
    url: str
    image_id: Optional[int] = None
    sort_order: int = 0


@dataclass(frozen=True)
class Review:
    rating: int
    comment: str = ""
    review_id: Optional[int] = None
    place_id: Optional[int] = None
    created_at: Optional[datetime] = None
    author: str = "Visitor"


@dataclass
class Place:
    place_id: int
    name: str
    price: Decimal
    description: str = ""
    location: str = ""
    timings: str = ""
    image_url: Optional[str] = None
    maps_url: Optional[str] = None
    images: List[PlaceImage] = field(default_factory=list)
    reviews: List[Review] = field(default_factory=list)

    def __post_init__(self):
        # sorted() is stable, so images sharing a sort order keep backend order
        self.images = sorted(self.images, key=lambda image: image.sort_order)

    @property
    def gallery(self) -> List[str]:
        if self.images:
            return [image.url for image in self.images]
        if self.image_url:
            return [self.image_url]
        return []


@dataclass(frozen=True)
class PlaceSnapshot:
    """Place fields the backend denormalizes onto each booking."""

    place_id: Optional[int] = None
    name: str = "Place"
    price: Decimal = Decimal("0")
    thumbnail_url: Optional[str] = None
    maps_url: Optional[str] = None


@dataclass(frozen=True)
class Booking:
    booking_id: int
    place_id: int
    visit_date: date
    quantity: int
    payment_confirmed: bool = False
    place: PlaceSnapshot = field(default_factory=PlaceSnapshot)
    visitor: str = ""

    @property
    def total(self) -> Decimal:
        return self.place.price * self.quantity

    @property
    def status_label(self) -> str:
        return "Paid" if self.payment_confirmed else "Payment Pending"


@dataclass(frozen=True)
class BookingOrder:
    """Result of POST /Bookings: the booking row and its provider order."""

    booking_id: int
    order_id: str
    amount: int
    currency: str = "INR"


@dataclass(frozen=True)
class PaymentSession:
    order_id: str
    amount: int
    currency: str
    public_key: str
    booking_id: int
    description: str = ""


@dataclass(frozen=True)
class PaymentConfirmation:
    order_id: str
    payment_id: str
    signature: str


@dataclass(frozen=True)
class PlaceStats:
    place_id: int
    total_bookings: int = 0
    revenue: Decimal = Decimal("0")


@dataclass(frozen=True)
class Notice:
    level: str
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"level": self.level, "message": self.message}
