"""
Prerequisite validation over a planned schedule.
Pure helpers: no Flask or data-loader imports.
"""

from typing import Dict, List, Tuple

from catalog import CatalogIndex
from normalizer import normalize_code
from prereq_parser import missing_prereqs
from schedule import Schedule


def build_earliest_semester_map(schedule: Schedule) -> Dict[str, int]:
    """
    Canonical code -> earliest semester index where it is placed.

    Duplicates resolve to the minimum index, so a course placed in both
    semester 1 and semester 4 counts as taken in semester 1.
    """
    earliest: Dict[str, int] = {}
    for sem_idx, _, slot in schedule.filled_slots():
        canon = normalize_code(slot.course_code)
        if not canon:
            continue
        if canon not in earliest or earliest[canon] > sem_idx:
            earliest[canon] = sem_idx
    return earliest


def codes_available_before(earliest: Dict[str, int], sem_idx: int) -> set:
    """Codes placed in a semester strictly earlier than sem_idx."""
    return {code for code, idx in earliest.items() if idx < sem_idx}


def find_prereq_failures(
    schedule: Schedule,
    catalog: CatalogIndex,
) -> Dict[Tuple[int, int], List[str]]:
    """
    Returns {(semester_index, slot_index): [missing canonical codes]} for every
    placed course whose prerequisites are not met by strictly earlier
    semesters. Courses without a formula (no text, unknown course, nothing
    parseable) never appear.
    """
    earliest = build_earliest_semester_map(schedule)
    available_by_sem: Dict[int, set] = {}
    failures: Dict[Tuple[int, int], List[str]] = {}

    for sem_idx, slot_idx, slot in schedule.filled_slots():
        groups = catalog.formula(slot.course_code)
        if not groups:
            continue
        if sem_idx not in available_by_sem:
            available_by_sem[sem_idx] = codes_available_before(earliest, sem_idx)
        missing = missing_prereqs(groups, available_by_sem[sem_idx])
        if missing:
            failures[(sem_idx, slot_idx)] = missing
    return failures


def format_missing_message(missing: List[str], catalog: CatalogIndex) -> str:
    codes = [catalog.display_code(code) for code in missing]
    return f"You are missing the following prerequisites: {', '.join(codes)}"


def describe_prereq_failures(
    schedule: Schedule,
    catalog: CatalogIndex,
) -> List[dict]:
    """
    JSON-friendly failure rows, in schedule order.

    Each item:
      {"semester_index": 3, "slot_index": 0, "course_code": "CS 201",
       "missing": ["MA111", "MA113"], "message": "You are missing ..."}
    """
    failures = find_prereq_failures(schedule, catalog)
    rows: List[dict] = []
    for (sem_idx, slot_idx), missing in sorted(failures.items()):
        slot = schedule.slot(sem_idx, slot_idx)
        rows.append({
            "semester_index": sem_idx,
            "slot_index": slot_idx,
            "course_code": slot.course_code if slot is not None else "",
            "missing": missing,
            "message": format_missing_message(missing, catalog),
        })
    return rows
