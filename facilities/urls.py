from django.urls import path

from .api import (
    availability_api,
    bookings_api,
    cancel_booking_api,
    decide_booking_api,
    facilities_api,
)


app_name = "facilities"

urlpatterns = [
    path("api/facilities/", facilities_api, name="facilities_api"),
    path("api/availability/", availability_api, name="availability_api"),
    path("api/bookings/", bookings_api, name="bookings_api"),
    path(
        "api/bookings/<uuid:booking_id>/cancel/",
        cancel_booking_api,
        name="cancel_booking_api",
    ),
    path(
        "api/bookings/<uuid:booking_id>/decision/",
        decide_booking_api,
        name="decide_booking_api",
    ),
]
