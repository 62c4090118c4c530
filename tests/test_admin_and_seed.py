from datetime import date, time

import pytest
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import IntegrityError, OperationalError, transaction
from django.urls import reverse

from facilities.emails import BookingEmailPayload, notify, send_booking_email
from facilities.models import Booking, Facility
from facilities.scheduler import BookingStatus
from facilities.store import BookingStore
from facilities.seed import DEFAULT_FACILITIES, seed_default_facilities


DAY = date(2030, 6, 10)


def make_booking(user, facility, start, end, status=BookingStatus.PENDING, pax=1):
    return Booking.objects.create(
        user=user,
        facility=facility,
        date=DAY,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        pax=pax,
        status=status,
    )


@pytest.mark.django_db
def test_seed_is_idempotent():
    first = seed_default_facilities()
    second = seed_default_facilities()

    assert first.created == [seed.id for seed in DEFAULT_FACILITIES]
    assert second.created == []
    assert len(second.unchanged) == len(DEFAULT_FACILITIES)
    assert Facility.objects.get(id="meeting-a").capacity == 6
    assert Facility.objects.get(id="pod-1").name == "Discussion Pod"


@pytest.mark.django_db
def test_seed_update_existing_restores_defaults():
    seed_default_facilities()
    Facility.objects.filter(id="desk-1").update(capacity=3)

    result = seed_default_facilities(update_existing=True)

    assert result.updated == ["desk-1"]
    assert len(result.unchanged) == len(DEFAULT_FACILITIES) - 1
    assert Facility.objects.get(id="desk-1").capacity == 1


@pytest.mark.django_db
def test_seed_command(capsys):
    call_command("seed_facilities")
    out = capsys.readouterr().out
    assert "created=5" in out
    assert "meeting-a, meeting-b, desk-1, desk-2, pod-1" in out


@pytest.mark.django_db
def test_seed_command_leaves_edits_without_flag(capsys):
    seed_default_facilities()
    Facility.objects.filter(id="pod-1").update(capacity=5)

    call_command("seed_facilities")
    assert "updated=0" in capsys.readouterr().out
    assert Facility.objects.get(id="pod-1").capacity == 5

    call_command("seed_facilities", "--update-existing")
    assert "updated: pod-1" in capsys.readouterr().out
    assert Facility.objects.get(id="pod-1").capacity == 2


@pytest.mark.django_db
def test_model_validation_blocks_overlap(facility, member):
    make_booking(member, facility, "10:00", "11:00", status=BookingStatus.APPROVED)

    overlapping = Booking(
        user=member, facility=facility, date=DAY, start_time=time(10, 30), end_time=time(11, 30), pax=1
    )
    with pytest.raises(ValidationError):
        overlapping.full_clean()

    touching = Booking(user=member, facility=facility, date=DAY, start_time=time(11, 0), end_time=time(12, 0), pax=1)
    touching.full_clean()


@pytest.mark.django_db
def test_model_validation_ignores_rejected(facility, member):
    make_booking(member, facility, "10:00", "11:00", status=BookingStatus.REJECTED)

    booking = Booking(user=member, facility=facility, date=DAY, start_time=time(10, 0), end_time=time(11, 0), pax=1)
    booking.full_clean()


@pytest.mark.django_db
def test_model_validation_checks_capacity_and_range(facility, member):
    too_many = Booking(user=member, facility=facility, date=DAY, start_time=time(10, 0), end_time=time(11, 0), pax=7)
    with pytest.raises(ValidationError):
        too_many.full_clean()

    backwards = Booking(user=member, facility=facility, date=DAY, start_time=time(11, 0), end_time=time(10, 0), pax=1)
    with pytest.raises(ValidationError):
        backwards.full_clean()


@pytest.mark.django_db
def test_model_validation_requires_a_party(facility, member):
    empty = Booking(user=member, facility=facility, date=DAY, start_time=time(10, 0), end_time=time(11, 0), pax=0)
    with pytest.raises(ValidationError) as exc:
        empty.full_clean()
    assert "pax" in exc.value.message_dict


@pytest.mark.django_db
def test_database_rejects_empty_party(facility, member):
    with pytest.raises(IntegrityError), transaction.atomic():
        make_booking(member, facility, "10:00", "11:00", pax=0)


@pytest.mark.django_db
def test_model_validation_new_bookings_are_pending_and_upcoming(facility, member):
    decided = Booking(
        user=member,
        facility=facility,
        date=DAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        pax=1,
        status=BookingStatus.APPROVED,
    )
    with pytest.raises(ValidationError):
        decided.full_clean()

    past = Booking(user=member, facility=facility, date=date(2001, 1, 1), start_time=time(10, 0), end_time=time(11, 0), pax=1)
    with pytest.raises(ValidationError) as exc:
        past.full_clean()
    assert "date" in exc.value.message_dict


@pytest.mark.django_db
def test_facility_closed_weekdays_validation():
    facility = Facility(id="pod-9", name="Pod 9", capacity=2, closed_weekdays=[0, 8])
    with pytest.raises(ValidationError):
        facility.full_clean()


@pytest.mark.django_db
def test_admin_approve_action(client, admin_user, facility, member, other_member, mailoutbox):
    pending = make_booking(member, facility, "10:00", "11:00")
    decided = make_booking(other_member, facility, "12:00", "13:00", status=BookingStatus.REJECTED)

    client.force_login(admin_user)
    response = client.post(
        reverse("admin:facilities_booking_changelist"),
        {"action": "approve_selected", "_selected_action": [str(pending.pk), str(decided.pk)]},
        follow=True,
    )

    assert response.status_code == 200
    pending.refresh_from_db()
    decided.refresh_from_db()
    assert pending.status == BookingStatus.APPROVED
    assert decided.status == BookingStatus.REJECTED
    assert len(mailoutbox) == 1
    assert mailoutbox[0].subject.startswith("Booking approved")


@pytest.mark.django_db
def test_admin_add_form_enforces_booking_rules(client, admin_user, facility, member):
    client.force_login(admin_user)
    url = reverse("admin:facilities_booking_add")
    form = {
        "user": member.pk,
        "facility": facility.pk,
        "date": "2001-01-01",
        "start_time": "10:00",
        "end_time": "11:00",
        "pax": 0,
        "status": BookingStatus.APPROVED,
    }

    response = client.post(url, form)
    assert response.status_code == 200
    assert not Booking.objects.exists()

    response = client.post(url, {**form, "date": DAY.isoformat(), "pax": 2})
    assert response.status_code == 302
    booking = Booking.objects.get()
    assert booking.pax == 2
    assert booking.status == BookingStatus.PENDING


@pytest.mark.django_db
def test_admin_change_form_cannot_edit_status(client, admin_user, facility, member):
    booking = make_booking(member, facility, "10:00", "11:00")
    client.force_login(admin_user)
    url = reverse("admin:facilities_booking_change", args=[booking.pk])

    response = client.post(
        url,
        {
            "user": member.pk,
            "facility": facility.pk,
            "date": DAY.isoformat(),
            "start_time": "10:00",
            "end_time": "11:00",
            "pax": 1,
            "status": BookingStatus.APPROVED,
        },
    )

    assert response.status_code == 302
    booking.refresh_from_db()
    assert booking.status == BookingStatus.PENDING


@pytest.mark.django_db
def test_admin_change_form_blocks_overlap(client, admin_user, facility, member, other_member):
    make_booking(other_member, facility, "10:00", "11:00", status=BookingStatus.APPROVED)
    booking = make_booking(member, facility, "12:00", "13:00")
    client.force_login(admin_user)

    response = client.post(
        reverse("admin:facilities_booking_change", args=[booking.pk]),
        {
            "user": member.pk,
            "facility": facility.pk,
            "date": DAY.isoformat(),
            "start_time": "10:30",
            "end_time": "11:30",
            "pax": 1,
        },
    )

    assert response.status_code == 200
    assert "already booked" in response.content.decode()
    booking.refresh_from_db()
    assert booking.start_time == time(12, 0)


@pytest.mark.django_db
def test_admin_changelist_renders(client, admin_user, facility, member):
    make_booking(member, facility, "10:00", "11:00")
    client.force_login(admin_user)

    assert client.get(reverse("admin:facilities_booking_changelist")).status_code == 200
    assert client.get(reverse("admin:facilities_booking_changelist"), {"when": "upcoming"}).status_code == 200
    assert client.get(reverse("admin:facilities_facility_changelist")).status_code == 200


def test_email_skipped_without_recipient():
    payload = BookingEmailPayload(
        to_email="",
        event="approved",
        facility_name="Meeting Room A",
        date=DAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        pax=2,
    )
    assert send_booking_email(payload) is False


def test_email_failure_is_logged_not_raised(monkeypatch, caplog):
    def broken_send(self, fail_silently=False):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr("django.core.mail.EmailMultiAlternatives.send", broken_send)
    payload = BookingEmailPayload(
        to_email="reader@example.com",
        event="rejected",
        facility_name="Meeting Room A",
        date=DAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        pax=2,
    )

    assert send_booking_email(payload) is True
    assert "Failed to send booking email" in caplog.text


@pytest.mark.django_db
def test_notify_survives_recipient_lookup_failure(facility, member, monkeypatch, caplog, mailoutbox):
    booking = make_booking(member, facility, "10:00", "11:00")
    record = BookingStore().get_booking(booking.pk)

    def broken(*args, **kwargs):
        raise OperationalError("connection lost")

    monkeypatch.setattr(type(member).objects, "filter", broken)

    assert notify(record, "approved") is False
    assert mailoutbox == []
    assert "Could not load the recipient" in caplog.text
