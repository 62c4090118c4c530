from __future__ import annotations

import json
from datetime import date as date_type
from datetime import time

from django.http import JsonResponse
from django.views.decorators.http import require_GET
from django.views.decorators.http import require_http_methods
from django.views.decorators.http import require_POST

from .emails import notify
from .scheduler import (
    BookingError,
    BookingNotFoundError,
    BookingRecord,
    BookingRequest,
    InvalidTransitionError,
    NotPermittedError,
    SlotConflictError,
    UnknownFacilityError,
)
from .services import available_slots, cancel_booking, create_booking, decide_booking, list_facilities, list_user_bookings
from .store import StoreUnavailableError


ERROR_STATUS = {
    NotPermittedError: 403,
    UnknownFacilityError: 404,
    BookingNotFoundError: 404,
    SlotConflictError: 409,
    InvalidTransitionError: 409,
}


def _parse_date(value: str) -> date_type:
    return date_type.fromisoformat(value)


def _parse_time(value: str) -> time:
    """
    Accepts HH:MM on the half hour ("09:00", "14:30").
    """
    parsed = time.fromisoformat(value)
    if len(value) != 5 or parsed.minute not in (0, 30):
        raise ValueError(value)
    return parsed


def _fmt_time(value: time) -> str:
    return value.strftime("%H:%M")


def _booking_json(booking: BookingRecord) -> dict:
    return {
        "id": str(booking.id),
        "facility_id": booking.facility_id,
        "facility_name": booking.facility_name,
        "date": booking.date.isoformat(),
        "start_time": _fmt_time(booking.start_time),
        "end_time": _fmt_time(booking.end_time),
        "pax": booking.pax,
        "user_id": booking.user_id,
        "status": str(booking.status),
        "created_at": booking.created_at.isoformat(),
    }


def _error_response(exc: Exception) -> JsonResponse:
    if isinstance(exc, StoreUnavailableError):
        return JsonResponse({"error": str(exc), "code": "store_unavailable"}, status=503)

    status = 400
    for error_type, error_status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status = error_status
            break
    return JsonResponse({"error": exc.message, "code": exc.code}, status=status)


def _auth_required():
    return JsonResponse({"error": "Authentication required."}, status=401)


def _load_json(request) -> dict | None:
    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


@require_GET
def facilities_api(request):
    """
    GET /api/facilities/
    """
    if not request.user.is_authenticated:
        return _auth_required()

    try:
        facilities = list_facilities()
    except StoreUnavailableError as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            "facilities": [
                {
                    "id": f.id,
                    "name": f.name,
                    "capacity": f.capacity,
                    "closed_weekdays": sorted(f.closed_weekdays),
                }
                for f in facilities
            ]
        }
    )


@require_GET
def availability_api(request):
    """
    GET /api/availability/?facility_id=meeting-a&date=YYYY-MM-DD[&start_time=HH:MM]

    Returns the start times still bookable, plus end times for start_time if given.
    """
    if not request.user.is_authenticated:
        return _auth_required()

    facility_id = request.GET.get("facility_id", "").strip()
    if not facility_id:
        return JsonResponse({"error": "Missing required query param: facility_id"}, status=400)

    date_str = request.GET.get("date", "").strip()
    if not date_str:
        return JsonResponse({"error": "Missing required query param: date"}, status=400)
    try:
        target_date = _parse_date(date_str)
    except ValueError:
        return JsonResponse({"error": "Invalid date. Expected YYYY-MM-DD."}, status=400)

    start_time = None
    start_str = request.GET.get("start_time", "").strip()
    if start_str:
        try:
            start_time = _parse_time(start_str)
        except ValueError:
            return JsonResponse({"error": "Invalid start_time. Expected HH:MM on the hour or half hour."}, status=400)

    try:
        slots = available_slots(facility_id=facility_id, date=target_date, start_time=start_time)
    except (BookingError, StoreUnavailableError) as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            "facility_id": slots.facility_id,
            "date": slots.date.isoformat(),
            "start_times": [_fmt_time(t) for t in slots.start_times],
            "end_times": [_fmt_time(t) for t in slots.end_times],
        }
    )


@require_http_methods(["GET", "POST"])
def bookings_api(request):
    """
    GET  /api/bookings/[?upcoming=1]  -> the caller's bookings
    POST /api/bookings/               -> request a booking
    """
    if request.method == "POST":
        return _create_booking(request)
    return _list_bookings(request)


def _list_bookings(request):
    if not request.user.is_authenticated:
        return _auth_required()

    upcoming_only = request.GET.get("upcoming", "") in ("1", "true")
    try:
        bookings = list_user_bookings(user=request.user, upcoming_only=upcoming_only)
    except StoreUnavailableError as exc:
        return _error_response(exc)

    return JsonResponse({"bookings": [_booking_json(b) for b in bookings]})


def _create_booking(request):
    """
    Payload (JSON):
      - facility_id: str
      - date: YYYY-MM-DD
      - start_time: HH:MM
      - end_time: HH:MM
      - pax: int
    """
    if not request.user.is_authenticated:
        return _auth_required()

    payload = _load_json(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON payload."}, status=400)

    facility_id = payload.get("facility_id")
    date_str = str(payload.get("date") or "").strip()
    start_str = str(payload.get("start_time") or "").strip()
    end_str = str(payload.get("end_time") or "").strip()
    pax = payload.get("pax", 1)

    if not isinstance(facility_id, str) or not facility_id:
        return JsonResponse({"error": "facility_id is required."}, status=400)
    if not date_str:
        return JsonResponse({"error": "date is required."}, status=400)
    if not start_str or not end_str:
        return JsonResponse({"error": "start_time and end_time are required."}, status=400)
    if not isinstance(pax, int) or isinstance(pax, bool):
        return JsonResponse({"error": "pax must be an integer."}, status=400)

    try:
        target_date = _parse_date(date_str)
    except ValueError:
        return JsonResponse({"error": "Invalid date. Expected YYYY-MM-DD."}, status=400)
    try:
        start_time = _parse_time(start_str)
        end_time = _parse_time(end_str)
    except ValueError:
        return JsonResponse({"error": "Invalid time. Expected HH:MM on the hour or half hour."}, status=400)

    try:
        booking = create_booking(
            user=request.user,
            data=BookingRequest(
                facility_id=facility_id,
                date=target_date,
                start_time=start_time,
                end_time=end_time,
                pax=pax,
                user_id=request.user.pk,
            ),
        )
    except (BookingError, StoreUnavailableError) as exc:
        return _error_response(exc)

    notify(booking, "submitted")
    return JsonResponse(
        {
            "success": True,
            "booking": _booking_json(booking),
            "message": "Booking submitted for approval.",
        },
        status=201,
    )


@require_POST
def cancel_booking_api(request, booking_id):
    """
    POST /api/bookings/<id>/cancel/
    """
    if not request.user.is_authenticated:
        return _auth_required()

    try:
        booking = cancel_booking(user=request.user, booking_id=booking_id)
    except (BookingError, StoreUnavailableError) as exc:
        return _error_response(exc)

    notify(booking, "cancelled")
    return JsonResponse({"success": True, "message": "Booking cancelled."})


@require_POST
def decide_booking_api(request, booking_id):
    """
    POST /api/bookings/<id>/decision/
    Payload (JSON):
      - decision: "approved" | "rejected"
    """
    if not request.user.is_authenticated:
        return _auth_required()

    payload = _load_json(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON payload."}, status=400)

    decision = payload.get("decision")
    if not isinstance(decision, str) or not decision:
        return JsonResponse({"error": "decision is required."}, status=400)

    try:
        booking = decide_booking(actor=request.user, booking_id=booking_id, decision=decision)
    except (BookingError, StoreUnavailableError) as exc:
        return _error_response(exc)

    notify(booking, str(booking.status))
    return JsonResponse({"success": True, "booking": _booking_json(booking)})
