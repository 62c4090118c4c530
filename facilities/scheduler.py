from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import date as date_type
from datetime import datetime, time, timedelta
from typing import Any, Callable, Iterable, Mapping

from django.db import models


class BookingStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


# Tuples, not sets: enum members hash by name, so plain strings would miss.
BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)
DECISIONS = (BookingStatus.APPROVED, BookingStatus.REJECTED)


class BookingError(Exception):
    """Base error type for booking domain errors."""

    code = "booking_error"
    default_message = "The booking could not be processed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidTimeRangeError(BookingError):
    code = "invalid_time_range"
    default_message = "End time must be after start time."


class InvalidPartySizeError(BookingError):
    code = "invalid_party_size"
    default_message = "Number of people must be at least 1."


class CapacityExceededError(BookingError):
    code = "capacity_exceeded"
    default_message = "Requested number of people exceeds the facility capacity."


class PastBookingError(BookingError):
    code = "past_booking"
    default_message = "You cannot book a time that has already passed."


class FacilityClosedError(BookingError):
    code = "facility_closed"
    default_message = "The facility is closed on that day."


class SlotConflictError(BookingError):
    """Raised when the requested interval overlaps a pending or approved booking."""

    code = "slot_conflict"
    default_message = "This facility is already booked for the selected time slot."

    def __init__(self, message: str | None = None, *, conflict: BookingRecord | None = None):
        super().__init__(message)
        self.conflict = conflict


class InvalidTransitionError(BookingError):
    code = "invalid_transition"
    default_message = "Only pending bookings can be approved or rejected."


class NotPermittedError(BookingError):
    code = "not_permitted"
    default_message = "You do not have permission to change this booking."


class UnknownFacilityError(BookingError):
    code = "unknown_facility"
    default_message = "Facility not found."


class BookingNotFoundError(BookingError):
    code = "booking_not_found"
    default_message = "Booking not found."


@dataclass(frozen=True)
class FacilitySpec:
    id: str
    name: str
    capacity: int
    # ISO weekday numbers, Monday=1 .. Sunday=7
    closed_weekdays: frozenset[int] = frozenset()


@dataclass(frozen=True)
class BookingRequest:
    facility_id: str
    date: date_type
    start_time: time
    end_time: time
    pax: int
    user_id: Any


@dataclass(frozen=True)
class BookingRecord:
    id: Any
    facility_id: str
    facility_name: str
    date: date_type
    start_time: time
    end_time: time
    pax: int
    user_id: Any
    status: str
    created_at: datetime

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_STATUSES


def _new_booking_id() -> uuid.UUID:
    return uuid.uuid4()


def overlaps(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """
    Half-open interval overlap: [10:00, 11:00) and [11:00, 12:00) do not overlap.
    """
    return start_a < end_b and end_a > start_b


def _blocking_for(
    bookings: Iterable[BookingRecord],
    facility_id: str,
    date_value: date_type,
    exclude_id: Any = None,
) -> list[BookingRecord]:
    return [
        b
        for b in bookings
        if b.facility_id == facility_id
        and b.date == date_value
        and b.is_blocking
        and (exclude_id is None or b.id != exclude_id)
    ]


def find_conflict(
    *,
    facility_id: str,
    date_value: date_type,
    start_time: time,
    end_time: time,
    bookings: Iterable[BookingRecord],
    exclude_id: Any = None,
) -> BookingRecord | None:
    """
    Return the first pending/approved booking on the same facility and day
    whose interval overlaps [start_time, end_time), or None.
    """
    for existing in _blocking_for(bookings, facility_id, date_value, exclude_id):
        if overlaps(start_time, end_time, existing.start_time, existing.end_time):
            return existing
    return None


def propose_booking(
    candidate: BookingRequest,
    existing_bookings: Iterable[BookingRecord],
    facility_catalog: Mapping[str, FacilitySpec],
    now: datetime,
    new_id: Callable[[], Any] = _new_booking_id,
) -> BookingRecord:
    """
    Validate a booking request and build the pending record to persist.

    Rules are checked in a fixed order and the first failure is raised:
    time range, party size/capacity, past start, closed weekday, overlap.
    Nothing is written; the caller stores the returned record.
    """
    facility = facility_catalog.get(candidate.facility_id)
    if facility is None:
        raise UnknownFacilityError()

    if candidate.start_time >= candidate.end_time:
        raise InvalidTimeRangeError()

    if candidate.pax < 1:
        raise InvalidPartySizeError()
    if candidate.pax > facility.capacity:
        raise CapacityExceededError(f"Maximum capacity is {facility.capacity} PAX.")

    start_at = datetime.combine(candidate.date, candidate.start_time, tzinfo=now.tzinfo)
    if start_at < now:
        raise PastBookingError()

    if candidate.date.isoweekday() in facility.closed_weekdays:
        raise FacilityClosedError(f"{facility.name} is closed on {candidate.date:%A}s.")

    conflict = find_conflict(
        facility_id=candidate.facility_id,
        date_value=candidate.date,
        start_time=candidate.start_time,
        end_time=candidate.end_time,
        bookings=existing_bookings,
    )
    if conflict is not None:
        raise SlotConflictError(conflict=conflict)

    return BookingRecord(
        id=new_id(),
        facility_id=facility.id,
        facility_name=facility.name,
        date=candidate.date,
        start_time=candidate.start_time,
        end_time=candidate.end_time,
        pax=candidate.pax,
        user_id=candidate.user_id,
        status=BookingStatus.PENDING,
        created_at=now,
    )


def _aligned_times(first: time, last: time, granularity: int, *, include_last: bool) -> list[time]:
    # grid runs from `first` in steps of `granularity` minutes
    if granularity <= 0:
        raise ValueError("granularity must be a positive number of minutes.")

    step = timedelta(minutes=granularity)
    cursor = datetime.combine(date_type.min, first)
    limit = datetime.combine(date_type.min, last)

    times = []
    while cursor < limit or (include_last and cursor == limit):
        times.append(cursor.time())
        cursor += step
    return times


def _validate_hours(open_hour: int, close_hour: int) -> None:
    if not 0 <= open_hour < close_hour <= 23:
        raise ValueError("Opening hours must satisfy 0 <= open_hour < close_hour <= 23.")


def available_start_times(
    facility_id: str,
    date_value: date_type,
    granularity: int,
    open_hour: int,
    close_hour: int,
    existing_bookings: Iterable[BookingRecord],
    now: datetime,
) -> list[time]:
    """
    Start times a user may still pick for a facility on a given day.

    Times already passed today, and times falling inside a pending or
    approved booking, are left out.
    """
    _validate_hours(open_hour, close_hour)
    today = now.date()
    if date_value < today:
        return []

    candidates = _aligned_times(time(hour=open_hour), time(hour=close_hour), granularity, include_last=False)
    if date_value == today:
        current = now.time()
        candidates = [t for t in candidates if t > current]

    blocking = _blocking_for(existing_bookings, facility_id, date_value)
    return [t for t in candidates if not any(b.start_time <= t < b.end_time for b in blocking)]


def available_end_times(
    facility_id: str,
    date_value: date_type,
    start_time: time,
    granularity: int,
    close_hour: int,
    existing_bookings: Iterable[BookingRecord],
) -> list[time]:
    """
    End times that give a conflict-free interval starting at start_time.
    """
    blocking = _blocking_for(existing_bookings, facility_id, date_value)
    if any(b.start_time <= start_time < b.end_time for b in blocking):
        return []

    if not 0 < close_hour <= 23:
        raise ValueError("close_hour must be between 1 and 23.")

    limit = time(hour=close_hour)
    next_starts = [b.start_time for b in blocking if b.start_time > start_time]
    if next_starts:
        limit = min(limit, min(next_starts))

    if granularity <= 0:
        raise ValueError("granularity must be a positive number of minutes.")
    first_end = datetime.combine(date_type.min, start_time) + timedelta(minutes=granularity)
    if first_end.date() != date_type.min:
        return []
    return _aligned_times(first_end.time(), limit, granularity, include_last=True)


def _get(bookings: Iterable[BookingRecord], booking_id: Any) -> BookingRecord:
    for booking in bookings:
        if booking.id == booking_id:
            return booking
    raise BookingNotFoundError()


def decide(booking_id: Any, decision: str, bookings: Iterable[BookingRecord]) -> BookingRecord:
    """
    Approve or reject a pending booking. Returns the updated record.
    """
    if decision not in DECISIONS:
        raise InvalidTransitionError(f"Unknown decision: {decision!r}.")

    booking = _get(bookings, booking_id)
    if booking.status != BookingStatus.PENDING:
        raise InvalidTransitionError(f"Booking is already {booking.status}.")

    return replace(booking, status=BookingStatus(decision))


def cancel(booking_id: Any, requester_id: Any, bookings: Iterable[BookingRecord]) -> BookingRecord:
    """
    Check that requester_id may cancel the booking and return the record to delete.
    Only the owner may cancel, and only while the booking is still pending.
    """
    booking = _get(bookings, booking_id)
    if booking.user_id != requester_id:
        raise NotPermittedError("You do not have permission to cancel this booking.")
    if booking.status != BookingStatus.PENDING:
        raise NotPermittedError("Only pending bookings can be cancelled.")
    return booking
