from __future__ import annotations

from dataclasses import dataclass, field

from django.db import transaction

from .models import Facility, FacilityKind


@dataclass(frozen=True)
class FacilitySeed:
    id: str
    name: str
    kind: str
    capacity: int
    display_order: int
    closed_weekdays: list[int] = field(default_factory=list)


DEFAULT_FACILITIES: list[FacilitySeed] = [
    FacilitySeed(id="meeting-a", name="Meeting Room A", kind=FacilityKind.CONFERENCE, capacity=6, display_order=10),
    FacilitySeed(id="meeting-b", name="Meeting Room B", kind=FacilityKind.CONFERENCE, capacity=4, display_order=20),
    FacilitySeed(id="desk-1", name="Quiet Desk 1", kind=FacilityKind.INDIVIDUAL, capacity=1, display_order=30),
    FacilitySeed(id="desk-2", name="Quiet Desk 2", kind=FacilityKind.INDIVIDUAL, capacity=1, display_order=40),
    FacilitySeed(id="pod-1", name="Discussion Pod", kind=FacilityKind.COLLAB, capacity=2, display_order=50),
]


@dataclass
class SeedResult:
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    def summary(self) -> str:
        lines = [f"created={len(self.created)} updated={len(self.updated)} unchanged={len(self.unchanged)}"]
        if self.created:
            lines.append(f"  created: {', '.join(self.created)}")
        if self.updated:
            lines.append(f"  updated: {', '.join(self.updated)}")
        return "\n".join(lines)


def _seed_values(seed: FacilitySeed) -> dict:
    return {
        "name": seed.name,
        "kind": seed.kind,
        "capacity": seed.capacity,
        "closed_weekdays": list(seed.closed_weekdays),
        "display_order": seed.display_order,
        "is_active": True,
    }


def seed_default_facilities(*, update_existing: bool = False) -> SeedResult:
    """
    Make sure every default facility exists.

    Facilities an admin has edited are left alone unless update_existing is
    set, in which case only rows that drifted from the defaults are rewritten.
    """
    result = SeedResult()

    with transaction.atomic():
        existing = {f.id: f for f in Facility.objects.filter(id__in=[s.id for s in DEFAULT_FACILITIES])}
        for seed in DEFAULT_FACILITIES:
            values = _seed_values(seed)
            facility = existing.get(seed.id)
            if facility is None:
                Facility.objects.create(id=seed.id, **values)
                result.created.append(seed.id)
                continue

            drifted = [name for name, value in values.items() if getattr(facility, name) != value]
            if update_existing and drifted:
                for name in drifted:
                    setattr(facility, name, values[name])
                facility.save(update_fields=[*drifted, "updated_at"])
                result.updated.append(seed.id)
            else:
                result.unchanged.append(seed.id)

    return result
