from django.contrib import admin, messages
from django.db.models import Q
from django.utils import timezone
from django.utils.html import format_html

from .emails import notify
from .models import Booking, Facility
from .scheduler import BookingError, BookingStatus
from .services import decide_booking
from .store import StoreUnavailableError


admin.site.site_header = "Library Facilities Admin"
admin.site.site_title = "Library Facilities Admin"
admin.site.index_title = "Facility Booking Controls"

STATUS_COLORS = {
    BookingStatus.PENDING: "#d97706",
    BookingStatus.APPROVED: "#16a34a",
    BookingStatus.REJECTED: "#dc2626",
}


class BookingWhenFilter(admin.SimpleListFilter):
    title = "when"
    parameter_name = "when"

    def lookups(self, request, model_admin):
        return (("upcoming", "Upcoming"), ("past", "Past"))

    def queryset(self, request, queryset):
        value = self.value()
        if not value:
            return queryset

        now = timezone.localtime()
        today = now.date()
        current_time = now.time()

        if value == "upcoming":
            return queryset.filter(Q(date__gt=today) | Q(date=today, end_time__gt=current_time))
        if value == "past":
            return queryset.filter(Q(date__lt=today) | Q(date=today, end_time__lte=current_time))
        return queryset


@admin.register(Facility)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ("name", "id", "kind", "capacity_label", "is_active", "display_order")
    list_filter = ("is_active", "kind")
    search_fields = ("name", "id")
    ordering = ("display_order", "name")

    @admin.display(description="Capacity", ordering="capacity")
    def capacity_label(self, obj: Facility) -> str:
        return f"{obj.capacity} Pax"


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("facility", "user_label", "date", "time_range", "pax", "status_badge", "created_at")
    list_filter = ("status", "facility", "date", BookingWhenFilter)
    search_fields = ("user__email", "user__username", "facility__name")
    ordering = ("-date", "start_time")
    # status only changes through the approve/reject actions
    readonly_fields = ("id", "status", "created_at", "updated_at")
    autocomplete_fields = ("user", "facility")
    list_select_related = ("user", "facility")
    actions = ("approve_selected", "reject_selected")

    @admin.display(description="Booked by", ordering="user__username")
    def user_label(self, obj: Booking) -> str:
        return obj.user.get_full_name() or obj.user.email or obj.user.username

    @admin.display(description="Time", ordering="start_time")
    def time_range(self, obj: Booking) -> str:
        return f"{obj.start_time:%H:%M}–{obj.end_time:%H:%M}"

    @admin.display(description="Status", ordering="status")
    def status_badge(self, obj: Booking) -> str:
        return format_html(
            '<span style="padding:3px 8px;border-radius:6px;'
            "color: {};"
            'font-weight: 700; font-size: 10px; text-transform: uppercase;">{}</span>',
            STATUS_COLORS.get(obj.status, "#78716c"),
            obj.get_status_display(),
        )

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj and obj.status != BookingStatus.PENDING:
            # decisions are final; use the actions on pending bookings only
            readonly.extend(["user", "facility", "date", "start_time", "end_time", "pax"])
        return readonly

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop("delete_selected", None)
        return actions

    def _decide_selected(self, request, queryset, decision: str):
        done = 0
        pending = list(queryset.filter(status=BookingStatus.PENDING))
        skipped = queryset.count() - len(pending)
        for booking in pending:
            try:
                record = decide_booking(actor=request.user, booking_id=booking.id, decision=decision)
            except (BookingError, StoreUnavailableError) as exc:
                self.message_user(request, f"{booking}: {exc}", level=messages.ERROR)
                continue
            notify(record, decision)
            done += 1

        self.message_user(request, f"{done} booking(s) {decision}.", level=messages.SUCCESS)
        if skipped:
            self.message_user(request, f"{skipped} booking(s) were not pending and were skipped.", level=messages.WARNING)

    @admin.action(description="Approve selected pending bookings")
    def approve_selected(self, request, queryset):
        self._decide_selected(request, queryset, BookingStatus.APPROVED)

    @admin.action(description="Reject selected pending bookings")
    def reject_selected(self, request, queryset):
        self._decide_selected(request, queryset, BookingStatus.REJECTED)
