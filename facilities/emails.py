from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_type
from datetime import time

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import EmailMultiAlternatives
from django.db import DatabaseError
from django.template.loader import render_to_string

from .scheduler import BookingRecord


logger = logging.getLogger(__name__)

EVENTS = ("submitted", "approved", "rejected", "cancelled")


@dataclass(frozen=True)
class BookingEmailPayload:
    to_email: str
    event: str  # submitted|approved|rejected|cancelled
    facility_name: str
    date: date_type
    start_time: time
    end_time: time
    pax: int

    @property
    def time_label(self) -> str:
        return f"{self.start_time:%H:%M}–{self.end_time:%H:%M}"

    @classmethod
    def for_booking(cls, booking: BookingRecord, event: str, to_email: str = "") -> "BookingEmailPayload":
        if not to_email:
            user = get_user_model().objects.filter(pk=booking.user_id).only("email").first()
            to_email = getattr(user, "email", "") or ""
        return cls(
            to_email=to_email,
            event=event,
            facility_name=booking.facility_name,
            date=booking.date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            pax=booking.pax,
        )


def send_booking_email(payload: BookingEmailPayload) -> bool:
    """
    Send a booking notification. Returns True if attempted, False if skipped.
    Never raises (logs on failure).
    """
    if not payload.to_email or payload.event not in EVENTS:
        return False

    context = {
        "facility_name": payload.facility_name,
        "date": payload.date,
        "time_label": payload.time_label,
        "pax": payload.pax,
    }

    try:
        subject = render_to_string(f"emails/booking_{payload.event}_subject.txt", context).strip()
        text_body = render_to_string(f"emails/booking_{payload.event}.txt", context)

        msg = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[payload.to_email],
        )
        msg.send(fail_silently=False)
        return True
    except Exception:
        logger.exception("Failed to send booking email (%s) to %s", payload.event, payload.to_email)
        return True


def notify(booking: BookingRecord, event: str) -> bool:
    """
    Email the booking's owner about `event`. Never raises; the booking is
    already committed by the time this runs.
    """
    try:
        payload = BookingEmailPayload.for_booking(booking, event)
    except DatabaseError:
        logger.exception("Could not load the recipient for booking %s (%s)", booking.id, event)
        return False
    return send_booking_email(payload)
