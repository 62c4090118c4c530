from __future__ import annotations

from datetime import datetime

from django.utils import timezone


class SystemClock:
    """
    Current local time in the project's TIME_ZONE.
    """

    def now(self) -> datetime:
        return timezone.localtime()


class FixedClock:
    def __init__(self, moment: datetime):
        if timezone.is_naive(moment):
            moment = timezone.make_aware(moment, timezone.get_current_timezone())
        self.moment = moment

    def now(self) -> datetime:
        return timezone.localtime(self.moment)


default_clock = SystemClock()
