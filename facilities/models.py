import uuid
from datetime import datetime

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .scheduler import BookingRecord, BookingStatus, FacilitySpec, find_conflict


def _local_now() -> datetime:
    return timezone.localtime().replace(tzinfo=None)


class FacilityKind(models.TextChoices):
    CONFERENCE = "conference", "Conference"
    INDIVIDUAL = "individual", "Individual"
    COLLAB = "collab", "Collab"


class Facility(models.Model):
    id = models.SlugField(primary_key=True, max_length=40)
    name = models.CharField(max_length=80, unique=True)
    kind = models.CharField(max_length=20, choices=FacilityKind.choices, default=FacilityKind.CONFERENCE)
    capacity = models.PositiveSmallIntegerField()
    closed_weekdays = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "name"]
        verbose_name_plural = "facilities"
        constraints = [
            models.CheckConstraint(condition=Q(capacity__gte=1), name="facility_capacity_positive"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    def clean(self) -> None:
        super().clean()
        days = self.closed_weekdays or []
        if not isinstance(days, list) or any(not isinstance(d, int) or not 1 <= d <= 7 for d in days):
            raise ValidationError({"closed_weekdays": "Use ISO weekday numbers 1 (Monday) to 7 (Sunday)."})

    def to_spec(self) -> FacilitySpec:
        return FacilitySpec(
            id=self.id,
            name=self.name,
            capacity=self.capacity,
            closed_weekdays=frozenset(int(d) for d in self.closed_weekdays or []),
        )


class Booking(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="facility_bookings",
    )
    facility = models.ForeignKey(Facility, on_delete=models.PROTECT, related_name="bookings")
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    pax = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(max_length=10, choices=BookingStatus.choices, default=BookingStatus.PENDING)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(start_time__lt=F("end_time")),
                name="booking_start_before_end",
            ),
            models.CheckConstraint(condition=Q(pax__gte=1), name="booking_pax_positive"),
            models.UniqueConstraint(
                fields=["facility", "date", "start_time"],
                condition=~Q(status=BookingStatus.REJECTED),
                name="unique_active_booking_facility_date_start",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "date"], name="idx_booking_user_date"),
            models.Index(fields=["facility", "date"], name="idx_booking_facility_date"),
        ]
        ordering = ["-date", "start_time", "-created_at"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.facility_id} · {self.date} · {self.start_time:%H:%M}-{self.end_time:%H:%M} · {self.user}"

    def to_record(self) -> BookingRecord:
        """
        Plain record for the scheduler. Expects `facility` to be loaded (select_related).
        """
        return BookingRecord(
            id=self.id,
            facility_id=self.facility_id,
            facility_name=self.facility.name,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            pax=self.pax,
            user_id=self.user_id,
            status=self.status,
            created_at=self.created_at,
        )

    def clean(self) -> None:
        """
        Mirror the booking rules at the model validation layer so admin edits get
        the same protection as bookings made through the API.
        """
        super().clean()
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError({"end_time": "End time must be after start time."})
        if self.pax is not None and self.pax < 1:
            raise ValidationError({"pax": "Party size must be at least 1."})
        if self.facility_id and self.pax and self.pax > self.facility.capacity:
            raise ValidationError({"pax": f"Maximum capacity is {self.facility.capacity} PAX."})

        if self._state.adding:
            if self.status != BookingStatus.PENDING:
                raise ValidationError("New bookings start as pending; use the approve or reject actions.")
            if self.date and self.start_time and datetime.combine(self.date, self.start_time) < _local_now():
                raise ValidationError({"date": "Cannot book a time in the past."})

        if self.status == BookingStatus.REJECTED or not (self.facility_id and self.date and self.start_time and self.end_time):
            return

        others = Booking.objects.select_related("facility").filter(facility_id=self.facility_id, date=self.date)
        conflict = find_conflict(
            facility_id=self.facility_id,
            date_value=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            bookings=[b.to_record() for b in others],
            exclude_id=self.pk,
        )
        if conflict is not None:
            raise ValidationError(
                {"start_time": "This facility is already booked for an overlapping time on that date."}
            )
