from django.urls import path

from . import views

urlpatterns = [
    path('session/login/', views.LoginView.as_view(), name='session-login'),
    path('session/logout/', views.LogoutView.as_view(), name='session-logout'),

    path('places/', views.PlaceListView.as_view(), name='place-list'),
    path('places/<int:place_id>/', views.PlaceDetailView.as_view(), name='place-detail'),
    path('places/<int:place_id>/book/', views.PlaceBookView.as_view(), name='place-book'),
    path('places/<int:place_id>/reviews/', views.PlaceReviewView.as_view(), name='place-review'),

    path('bookings/', views.BookingListView.as_view(), name='booking-list'),
    path('bookings/<int:booking_id>/pay/', views.BookingPayView.as_view(), name='booking-pay'),

    # Provider checkout widget
    path('checkout/<int:booking_id>/callback/', views.CheckoutCallbackView.as_view(), name='checkout-callback'),
    path('checkout/<int:booking_id>/dismiss/', views.CheckoutDismissView.as_view(), name='checkout-dismiss'),

    path('owner/dashboard/', views.OwnerDashboardView.as_view(), name='owner-dashboard'),
    path('owner/places/', views.OwnerPlaceCreateView.as_view(), name='owner-place-create'),
    path('owner/places/<int:place_id>/', views.OwnerPlaceUpdateView.as_view(), name='owner-place-update'),
    path('owner/places/<int:place_id>/bookings/', views.OwnerPlaceBookingsView.as_view(), name='owner-place-bookings'),
]
