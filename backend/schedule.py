"""
Semester/slot plan model for the degree builder.

A Schedule is an ordered list of Semesters; semester order is the temporal
order used for prerequisite checks. Each Semester owns a fixed region of base
slots plus a growable region of supplemental slots. Base slots are never
removed; supplemental slots are removed only explicitly (or when a course is
moved out of one).

Every mutator is a no-op on out-of-range indices and returns False in that
case, True when the schedule changed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from normalizer import normalize_code

SEMESTERS_DEFAULT = [
    "Summer 0",
    "Fall 1",
    "Spring 1",
    "Summer 1",
    "Fall 2",
    "Spring 2",
    "Summer 2",
    "Fall 3",
    "Spring 3",
    "Summer 3",
    "Fall 4",
    "Spring 4",
]

BASE_SLOT_COUNT = 8
MIN_SEMESTER_COUNT = len(SEMESTERS_DEFAULT)

SOURCE_MANUAL = "manual"
SOURCE_PRESET = "preset"
VALID_SOURCES = {SOURCE_MANUAL, SOURCE_PRESET}


def semester_name(idx: int) -> str:
    if 0 <= idx < len(SEMESTERS_DEFAULT):
        return SEMESTERS_DEFAULT[idx]
    return f"Semester {idx + 1}"


def _is_valid_source(source) -> bool:
    return isinstance(source, str) and source in VALID_SOURCES


def _first_present(raw: dict, keys: tuple[str, ...]):
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _clean_code(code) -> Optional[str]:
    if code is None:
        return None
    text = str(code).strip()
    return text if normalize_code(text) else None


@dataclass(eq=False)
class Slot:
    course_code: Optional[str] = None
    source: Optional[str] = None
    preset_id: Optional[str] = None
    is_supplemental: bool = False
    added_by_preset: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.course_code

    def assign(
        self,
        course_code: str,
        source: str = SOURCE_MANUAL,
        preset_id: Optional[str] = None,
        added_by_preset: bool = False,
    ) -> None:
        self.course_code = course_code
        self.source = source if _is_valid_source(source) else SOURCE_MANUAL
        self.preset_id = preset_id if self.source == SOURCE_PRESET else None
        self.added_by_preset = bool(added_by_preset) and self.source == SOURCE_PRESET

    def clear(self) -> None:
        self.course_code = None
        self.source = None
        self.preset_id = None
        self.added_by_preset = False

    def contents(self) -> Optional[dict]:
        """The movable part of a slot: its course and provenance."""
        if self.is_empty:
            return None
        return {
            "course_code": self.course_code,
            "source": self.source,
            "preset_id": self.preset_id,
            "added_by_preset": self.added_by_preset and self.source == SOURCE_PRESET,
        }

    def set_contents(self, data: Optional[dict]) -> None:
        if not data or not data.get("course_code"):
            self.clear()
            return
        self.assign(
            data["course_code"],
            source=data.get("source") or SOURCE_MANUAL,
            preset_id=data.get("preset_id"),
            added_by_preset=data.get("added_by_preset", False),
        )

    def to_dict(self) -> dict:
        return {
            "course_code": self.course_code,
            "source": self.source,
            "preset_id": self.preset_id,
            "is_supplemental": self.is_supplemental,
            "added_by_preset": self.added_by_preset,
        }

    @classmethod
    def from_dict(cls, raw, is_supplemental: bool = False) -> "Slot":
        """Normalizes a persisted slot. Accepts snake_case or camelCase keys."""
        slot = cls(is_supplemental=is_supplemental)
        if not isinstance(raw, dict):
            return slot
        code = _clean_code(_first_present(raw, ("course_code", "courseCode", "courseId")))
        if code is None:
            return slot
        source = raw.get("source")
        if not _is_valid_source(source):
            source = SOURCE_MANUAL
        preset_id = _first_present(raw, ("preset_id", "presetId"))
        if not isinstance(preset_id, str) or not preset_id:
            preset_id = None
        added = _first_present(raw, ("added_by_preset", "addedByPreset"))
        slot.assign(code, source=source, preset_id=preset_id, added_by_preset=bool(added))
        return slot


class Semester:
    """One column of the plan: base slots followed by supplemental slots."""

    def __init__(self, name: str, base_slot_count: int = BASE_SLOT_COUNT):
        self.name = name
        self.base_slots: list[Slot] = [Slot() for _ in range(max(0, base_slot_count))]
        self.extra_slots: list[Slot] = []

    @property
    def slots(self) -> tuple[Slot, ...]:
        return tuple(self.base_slots) + tuple(self.extra_slots)

    def slot(self, slot_idx) -> Optional[Slot]:
        if not isinstance(slot_idx, int) or isinstance(slot_idx, bool) or slot_idx < 0:
            return None
        if slot_idx < len(self.base_slots):
            return self.base_slots[slot_idx]
        extra_idx = slot_idx - len(self.base_slots)
        if extra_idx < len(self.extra_slots):
            return self.extra_slots[extra_idx]
        return None

    def first_empty_index(self) -> Optional[int]:
        for idx, slot in enumerate(self.slots):
            if slot.is_empty:
                return idx
        return None

    def add_supplemental_slot(self) -> int:
        self.extra_slots.append(Slot(is_supplemental=True))
        return len(self.base_slots) + len(self.extra_slots) - 1

    def discard_slot(self, slot: Slot) -> bool:
        """Removes a supplemental slot by identity; base slots are never removed."""
        for idx, candidate in enumerate(self.extra_slots):
            if candidate is slot:
                del self.extra_slots[idx]
                return True
        return False

    def filled_slots(self) -> Iterator[tuple[int, Slot]]:
        for idx, slot in enumerate(self.slots):
            if not slot.is_empty:
                yield idx, slot


class Schedule:
    """Ordered semesters; the plan a student is assembling."""

    def __init__(
        self,
        semester_count: Optional[int] = None,
        base_slot_count: int = BASE_SLOT_COUNT,
        min_semesters: int = MIN_SEMESTER_COUNT,
        preset_id: str = "",
    ):
        self.base_slot_count = max(0, int(base_slot_count))
        self.min_semesters = max(1, int(min_semesters))
        count = self.min_semesters if semester_count is None else max(int(semester_count), self.min_semesters)
        self.semesters: list[Semester] = [
            Semester(semester_name(i), self.base_slot_count) for i in range(count)
        ]
        self.preset_id = preset_id or ""

    def __len__(self) -> int:
        return len(self.semesters)

    # ── Lookup ────────────────────────────────────────────────────────────────

    def semester(self, sem_idx) -> Optional[Semester]:
        if not isinstance(sem_idx, int) or isinstance(sem_idx, bool):
            return None
        if 0 <= sem_idx < len(self.semesters):
            return self.semesters[sem_idx]
        return None

    def slot(self, sem_idx, slot_idx) -> Optional[Slot]:
        sem = self.semester(sem_idx)
        return sem.slot(slot_idx) if sem is not None else None

    def filled_slots(self) -> Iterator[tuple[int, int, Slot]]:
        """(semester_index, slot_index, slot) for every slot holding a course."""
        for sem_idx, sem in enumerate(self.semesters):
            for slot_idx, slot in sem.filled_slots():
                yield sem_idx, slot_idx, slot

    def selected_codes_ordered(self) -> list[str]:
        """Distinct placed codes (by canonical form), first occurrence in semester order."""
        ordered: list[str] = []
        seen: set[str] = set()
        for _, _, slot in self.filled_slots():
            canon = normalize_code(slot.course_code)
            if not canon or canon in seen:
                continue
            seen.add(canon)
            ordered.append(slot.course_code)
        return ordered

    def selected_code_set(self) -> set[str]:
        return {normalize_code(code) for code in self.selected_codes_ordered()}

    # ── Mutations ─────────────────────────────────────────────────────────────

    def select_course(
        self,
        sem_idx,
        slot_idx,
        course_code,
        source: str = SOURCE_MANUAL,
        preset_id: Optional[str] = None,
    ) -> bool:
        slot = self.slot(sem_idx, slot_idx)
        if slot is None:
            return False
        code = _clean_code(course_code)
        if code is None:
            return self.clear_course(sem_idx, slot_idx)
        slot.assign(code, source=source, preset_id=preset_id)
        return True

    def clear_course(self, sem_idx, slot_idx) -> bool:
        slot = self.slot(sem_idx, slot_idx)
        if slot is None:
            return False
        slot.clear()
        return True

    def add_supplemental_slot(self, sem_idx) -> Optional[int]:
        sem = self.semester(sem_idx)
        if sem is None:
            return None
        return sem.add_supplemental_slot()

    def remove_supplemental_slot(self, sem_idx, slot_idx) -> bool:
        """Only empty supplemental slots can be removed; clear first, then remove."""
        sem = self.semester(sem_idx)
        slot = self.slot(sem_idx, slot_idx)
        if sem is None or slot is None:
            return False
        if not slot.is_supplemental or not slot.is_empty:
            return False
        return sem.discard_slot(slot)

    def move_course(self, from_sem, from_slot, to_sem, to_slot=None) -> bool:
        """
        Relocates a course.

        With no target slot, the first empty slot of to_sem is used (a new
        supplemental slot is created when the semester is full). An occupied
        target swaps the two courses. An empty target takes the course and the
        source is cleared, or removed if it was a supplemental slot.
        """
        source = self.slot(from_sem, from_slot)
        if source is None or source.is_empty:
            return False
        if from_sem == to_sem and from_slot == to_slot:
            return False
        target_sem = self.semester(to_sem)
        if target_sem is None:
            return False

        if to_slot is None:
            to_slot = target_sem.first_empty_index()
            if to_slot is None:
                to_slot = target_sem.add_supplemental_slot()
        target = target_sem.slot(to_slot)
        if target is None:
            return False

        moving = source.contents()
        displaced = target.contents()
        target.set_contents(moving)
        if displaced is not None:
            source.set_contents(displaced)
        elif source.is_supplemental:
            self.semesters[from_sem].discard_slot(source)
        else:
            source.clear()
        return True

    def append_semester(self) -> int:
        idx = len(self.semesters)
        self.semesters.append(Semester(semester_name(idx), self.base_slot_count))
        return idx

    def remove_last_semester(self) -> bool:
        if len(self.semesters) <= self.min_semesters:
            return False
        self.semesters.pop()
        return True

    # ── Persistence shape ─────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "preset_id": self.preset_id,
            "semesters": [
                {"name": sem.name, "slots": [slot.to_dict() for slot in sem.slots]}
                for sem in self.semesters
            ],
        }

    @classmethod
    def from_dict(
        cls,
        raw,
        base_slot_count: int = BASE_SLOT_COUNT,
        min_semesters: int = MIN_SEMESTER_COUNT,
    ) -> "Schedule":
        """
        Rebuilds a schedule from persisted state, normalizing as it goes.

        Anything unusable falls back to defaults: a non-dict gives an empty
        default schedule, malformed semesters become empty semesters, slots
        past the base count become supplemental.
        """
        if not isinstance(raw, dict):
            return cls(base_slot_count=base_slot_count, min_semesters=min_semesters)

        raw_semesters = raw.get("semesters")
        if not isinstance(raw_semesters, list):
            raw_semesters = []
        preset_id = _first_present(raw, ("preset_id", "presetId"))
        schedule = cls(
            semester_count=len(raw_semesters),
            base_slot_count=base_slot_count,
            min_semesters=min_semesters,
            preset_id=preset_id if isinstance(preset_id, str) else "",
        )

        for sem_idx, raw_sem in enumerate(raw_semesters):
            if not isinstance(raw_sem, dict) or not isinstance(raw_sem.get("slots"), list):
                continue
            sem = schedule.semesters[sem_idx]
            for slot_idx, raw_slot in enumerate(raw_sem["slots"]):
                if slot_idx < len(sem.base_slots):
                    sem.base_slots[slot_idx] = Slot.from_dict(raw_slot)
                else:
                    sem.extra_slots.append(Slot.from_dict(raw_slot, is_supplemental=True))
        return schedule
