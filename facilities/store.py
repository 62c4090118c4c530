from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import date as date_type
from typing import Any

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .models import Booking, Facility
from .scheduler import (
    BookingNotFoundError,
    BookingRecord,
    FacilitySpec,
    SlotConflictError,
    UnknownFacilityError,
)


logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    """
    The booking store could not be reached or failed mid-operation.
    Kept apart from BookingError: callers should retry, not fix their input.
    """


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except IntegrityError:
        raise
    except DatabaseError as exc:
        logger.error("Booking store failure during %s: %s", operation, exc)
        raise StoreUnavailableError("The booking store is unavailable. Please try again later.") from exc


class BookingStore:
    """
    Row-level access to facilities and bookings.
    Callers wanting atomic check-then-write wrap calls in transaction.atomic().
    """

    def facility_catalog(self) -> dict[str, FacilitySpec]:
        with _store_errors("facility_catalog"):
            return {f.id: f.to_spec() for f in Facility.objects.filter(is_active=True)}

    def lock_facility(self, facility_id: str) -> FacilitySpec:
        with _store_errors("lock_facility"):
            try:
                facility = Facility.objects.select_for_update().get(id=facility_id, is_active=True)
            except Facility.DoesNotExist as exc:
                raise UnknownFacilityError() from exc
        return facility.to_spec()

    def list_bookings(
        self,
        *,
        facility_id: str | None = None,
        date: date_type | None = None,
        user_id: Any = None,
    ) -> list[BookingRecord]:
        qs = Booking.objects.select_related("facility")
        if facility_id is not None:
            qs = qs.filter(facility_id=facility_id)
        if date is not None:
            qs = qs.filter(date=date)
        if user_id is not None:
            qs = qs.filter(user_id=user_id)

        with _store_errors("list_bookings"):
            return [b.to_record() for b in qs.order_by("-date", "start_time", "-created_at")]

    def get_booking(self, booking_id: Any, *, for_update: bool = False) -> BookingRecord:
        qs = Booking.objects.all()
        if for_update:
            # lock only the booking row, not the joined facility
            qs = qs.select_for_update(of=("self",))
        with _store_errors("get_booking"):
            try:
                booking = qs.select_related("facility").get(id=booking_id)
            except Booking.DoesNotExist as exc:
                raise BookingNotFoundError() from exc
        return booking.to_record()

    def insert_booking(self, record: BookingRecord) -> BookingRecord:
        booking = Booking(
            facility_id=record.facility_id,
            user_id=record.user_id,
            date=record.date,
            start_time=record.start_time,
            end_time=record.end_time,
            pax=record.pax,
            status=record.status,
        )
        if record.id is not None:
            booking.id = record.id
        if record.created_at is not None:
            booking.created_at = record.created_at

        try:
            with _store_errors("insert_booking"), transaction.atomic():
                booking.save(force_insert=True)
        except IntegrityError as exc:
            raise SlotConflictError("That time slot was just booked. Please pick another.") from exc

        return replace(record, id=booking.id, created_at=booking.created_at)

    def update_booking_status(self, booking_id: Any, status: str) -> None:
        with _store_errors("update_booking_status"):
            updated = Booking.objects.filter(id=booking_id).update(status=status, updated_at=timezone.now())
        if not updated:
            raise BookingNotFoundError()

    def delete_booking(self, booking_id: Any) -> None:
        with _store_errors("delete_booking"):
            deleted, _ = Booking.objects.filter(id=booking_id).delete()
        if not deleted:
            raise BookingNotFoundError()
