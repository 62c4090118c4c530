from datetime import date, datetime, time, timezone

import pytest

from facilities.clock import FixedClock
from facilities.models import Facility
from facilities.scheduler import BookingRecord, BookingStatus, FacilitySpec


# 2024-06-10 is a Monday
DAY = date(2024, 6, 10)


@pytest.fixture
def catalog():
    return {
        "meeting-a": FacilitySpec(id="meeting-a", name="Meeting Room A", capacity=6),
        "desk-1": FacilitySpec(id="desk-1", name="Quiet Desk 1", capacity=1),
        "pod-sun": FacilitySpec(id="pod-sun", name="Weekday Pod", capacity=2, closed_weekdays=frozenset({7})),
    }


@pytest.fixture
def now():
    return datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc)


def make_record(
    start: str,
    end: str,
    *,
    status=BookingStatus.APPROVED,
    facility_id="meeting-a",
    day=DAY,
    user_id=1,
    booking_id=None,
) -> BookingRecord:
    return BookingRecord(
        id=booking_id or f"{facility_id}-{day}-{start}-{status}",
        facility_id=facility_id,
        facility_name=facility_id,
        date=day,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        pax=1,
        user_id=user_id,
        status=status,
        created_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def facility(db):
    return Facility.objects.create(id="meeting-a", name="Meeting Room A", capacity=6)


@pytest.fixture
def sunday_closed_facility(db):
    return Facility.objects.create(id="pod-1", name="Discussion Pod", capacity=2, closed_weekdays=[7])


@pytest.fixture
def member(django_user_model):
    return django_user_model.objects.create_user(username="reader", email="reader@example.com", password="pw")


@pytest.fixture
def other_member(django_user_model):
    return django_user_model.objects.create_user(username="other", email="other@example.com", password="pw")


@pytest.fixture
def staff(django_user_model):
    return django_user_model.objects.create_user(
        username="librarian", email="librarian@example.com", password="pw", is_staff=True
    )


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def record():
    return make_record


@pytest.fixture
def day():
    return DAY
