from typing import Optional

from catalog import CatalogIndex
from normalizer import normalize_code
from schedule import SEMESTERS_DEFAULT, SOURCE_PRESET, Schedule

YEAR_INDEX = {
    "freshman": 0,
    "sophomore": 1,
    "junior": 2,
    "senior": 3,
}

# Matched by prefix, so "Fall", "fall term", "Spring 2" all resolve.
TERM_PREFIXES = (
    ("fall", 0),
    ("spring", 1),
    ("summer", 2),
)

PRESET_CODE_KEYS = ("course_code", "courseCode", "code")


def semester_index_from_row(year, semester, semester_count: int = len(SEMESTERS_DEFAULT)) -> Optional[int]:
    """
    Maps a preset row's (year, semester) to a schedule semester index.

    Index 0 is the pre-freshman summer; freshman fall is 1, freshman spring 2,
    freshman summer 3, and so on. Senior summer has no semester.
    """
    y = str(year or "").strip().lower()
    s = str(semester or "").strip().lower()

    y_idx = YEAR_INDEX.get(y)
    if y_idx is None:
        return None

    s_idx = next((idx for prefix, idx in TERM_PREFIXES if s.startswith(prefix)), None)
    if s_idx is None:
        return None

    if s_idx == 2 and y_idx >= 3:
        return None  # no Summer 4

    idx = 1 + y_idx * 3 + s_idx
    return idx if 0 <= idx < semester_count else None


def preset_row_code(row: dict) -> str:
    for key in PRESET_CODE_KEYS:
        val = row.get(key)
        if val:
            return str(val).strip()
    return ""


def clear_preset_selections(schedule: Schedule) -> None:
    """
    Undoes a previously applied preset.

    Supplemental slots the preset created (still holding its course) are
    dropped; any other preset-filled slot is emptied. Manual entries stay.
    """
    for sem in schedule.semesters:
        sem.extra_slots = [
            slot for slot in sem.extra_slots
            if not (slot.added_by_preset and slot.source == SOURCE_PRESET)
        ]
        for slot in sem.slots:
            if slot.source == SOURCE_PRESET:
                slot.clear()


def assign_course_to_semester(schedule: Schedule, sem_idx: int, course_code: str, preset_id: str) -> Optional[int]:
    """Places a preset course in the first empty slot, growing the semester if full."""
    sem = schedule.semester(sem_idx)
    if sem is None:
        return None
    slot_idx = sem.first_empty_index()
    if slot_idx is None:
        slot_idx = sem.add_supplemental_slot()
    slot = sem.slot(slot_idx)
    # A supplemental slot filled by a preset belongs to that preset from now on.
    slot.assign(
        course_code,
        source=SOURCE_PRESET,
        preset_id=preset_id,
        added_by_preset=slot.is_supplemental,
    )
    return slot_idx


def apply_preset(
    schedule: Schedule,
    preset_id: str,
    rows: list,
    catalog: CatalogIndex,
) -> dict:
    """
    Replaces the schedule's preset courses with the rows of another preset.

    The previous preset is always cleared first; an empty preset_id just
    clears. Courses already placed anywhere in the schedule are not added
    again.

    Returns:
      {
        "preset_id": "cs",
        "applied": [{"course_code": "CS 101", "semester_index": 1, "slot_index": 0}],
        "skipped": [{"course_code": "XX 1", "reason": "not_in_catalog"}]
      }
    """
    preset_id = preset_id or ""
    clear_preset_selections(schedule)
    schedule.preset_id = preset_id

    report = {"preset_id": preset_id, "applied": [], "skipped": []}
    if not preset_id:
        return report

    selected = schedule.selected_code_set()
    for row in rows or []:
        if not isinstance(row, dict):
            continue
        raw_code = preset_row_code(row)
        sem_idx = semester_index_from_row(row.get("year"), row.get("semester"))
        if sem_idx is None or sem_idx >= len(schedule.semesters):
            report["skipped"].append({"course_code": raw_code, "reason": "unmapped_semester"})
            continue

        record = catalog.lookup(raw_code)
        if record is None:
            report["skipped"].append({"course_code": raw_code, "reason": "not_in_catalog"})
            continue

        canon = normalize_code(record.code)
        if canon in selected:
            report["skipped"].append({"course_code": record.code, "reason": "already_selected"})
            continue
        selected.add(canon)

        slot_idx = assign_course_to_semester(schedule, sem_idx, record.code, preset_id)
        report["applied"].append({
            "course_code": record.code,
            "semester_index": sem_idx,
            "slot_index": slot_idx,
        })

    return report
