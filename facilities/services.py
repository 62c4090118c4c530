from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_type
from datetime import time
from typing import Any

from django.conf import settings
from django.db import transaction

from . import scheduler
from .clock import default_clock
from .scheduler import BookingRecord, BookingRequest, NotPermittedError
from .store import BookingStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpeningHours:
    open_hour: int
    close_hour: int
    slot_minutes: int

    @classmethod
    def from_settings(cls) -> "OpeningHours":
        return cls(
            open_hour=settings.FACILITY_OPEN_HOUR,
            close_hour=settings.FACILITY_CLOSE_HOUR,
            slot_minutes=settings.FACILITY_SLOT_MINUTES,
        )


@dataclass(frozen=True)
class AvailableSlots:
    facility_id: str
    date: date_type
    start_times: list[time]
    end_times: list[time]


def create_booking(*, user, data: BookingRequest, clock=None, store: BookingStore | None = None) -> BookingRecord:
    """
    Admit a booking request and persist it as pending.

    - Locks the target Facility row so concurrent requests for it serialize.
    - Re-reads that facility's bookings for the day inside the transaction.
    - Relies on the partial unique constraint as the final guard.
    """
    clock = clock or default_clock
    store = store or BookingStore()
    if data.user_id != user.pk:
        raise NotPermittedError("Bookings can only be made for yourself.")

    with transaction.atomic():
        facility = store.lock_facility(data.facility_id)
        existing = store.list_bookings(facility_id=data.facility_id, date=data.date)
        record = scheduler.propose_booking(
            data,
            existing,
            {facility.id: facility},
            clock.now(),
        )
        record = store.insert_booking(record)

    logger.info(
        "Booking %s created: facility=%s date=%s %s-%s pax=%s user=%s",
        record.id,
        record.facility_id,
        record.date,
        record.start_time,
        record.end_time,
        record.pax,
        record.user_id,
    )
    return record


def decide_booking(*, actor, booking_id: Any, decision: str, store: BookingStore | None = None) -> BookingRecord:
    """
    Approve or reject a pending booking (staff only).
    """
    store = store or BookingStore()
    if not getattr(actor, "is_staff", False):
        raise NotPermittedError("Only staff can approve or reject bookings.")

    with transaction.atomic():
        booking = store.get_booking(booking_id, for_update=True)
        updated = scheduler.decide(booking.id, decision, [booking])
        store.update_booking_status(updated.id, updated.status)

    logger.info("Booking %s %s by %s", updated.id, updated.status, actor.pk)
    return updated


def cancel_booking(*, user, booking_id: Any, store: BookingStore | None = None) -> BookingRecord:
    """
    Cancel (delete) a pending booking (owner-only).
    """
    store = store or BookingStore()
    with transaction.atomic():
        booking = store.get_booking(booking_id, for_update=True)
        cancelled = scheduler.cancel(booking.id, user.pk, [booking])
        store.delete_booking(cancelled.id)

    logger.info("Booking %s cancelled by owner %s", cancelled.id, user.pk)
    return cancelled


def list_user_bookings(*, user, upcoming_only: bool = False, clock=None, store: BookingStore | None = None):
    clock = clock or default_clock
    store = store or BookingStore()
    bookings = store.list_bookings(user_id=user.pk)
    if upcoming_only:
        today = clock.now().date()
        bookings = [b for b in bookings if b.date >= today]
    return bookings


def list_facilities(*, store: BookingStore | None = None):
    store = store or BookingStore()
    return list(store.facility_catalog().values())


def available_slots(
    *,
    facility_id: str,
    date: date_type,
    start_time: time | None = None,
    clock=None,
    hours: OpeningHours | None = None,
    store: BookingStore | None = None,
) -> AvailableSlots:
    """
    Start times still bookable for a facility on a day, and, when start_time is
    given, the end times that keep the interval conflict-free.
    """
    clock = clock or default_clock
    hours = hours or OpeningHours.from_settings()
    store = store or BookingStore()

    catalog = store.facility_catalog()
    facility = catalog.get(facility_id)
    if facility is None:
        raise scheduler.UnknownFacilityError()

    if date.isoweekday() in facility.closed_weekdays:
        return AvailableSlots(facility_id=facility_id, date=date, start_times=[], end_times=[])

    existing = store.list_bookings(facility_id=facility_id, date=date)
    start_times = scheduler.available_start_times(
        facility_id,
        date,
        hours.slot_minutes,
        hours.open_hour,
        hours.close_hour,
        existing,
        clock.now(),
    )

    end_times: list[time] = []
    if start_time is not None and start_time in start_times:
        end_times = scheduler.available_end_times(
            facility_id,
            date,
            start_time,
            hours.slot_minutes,
            hours.close_hour,
            existing,
        )

    return AvailableSlots(facility_id=facility_id, date=date, start_times=start_times, end_times=end_times)
