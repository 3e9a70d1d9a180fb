from catalog import CatalogIndex
from normalizer import normalize_code, round_credits
from requirements import (
    CATEGORY_LABELS,
    CATEGORY_ORDER,
    CREDIT_TOLERANCE,
    DEGREE_ELECTIVES,
    ENGINEERING_ELECTIVES,
    FREE_ELECTIVES,
    HSS_ELECTIVES,
    REQUIRED_COURSEWORK,
    RequirementTable,
    empty_credit_map,
)
from schedule import Schedule


def _empty_result(major_id: str = "", label: str = "") -> dict:
    return {
        "major_id": major_id,
        "major_label": label,
        "selected_credits": empty_credit_map(),
        "required_credits": empty_credit_map(),
        "missing_required": [],
        "total_selected": 0.0,
        "total_required": 0.0,
        "category_order": list(CATEGORY_ORDER),
        "category_labels": dict(CATEGORY_LABELS),
        "assignments": [],
    }


def allocate_credits(
    schedule: Schedule,
    catalog: CatalogIndex,
    requirement_table: RequirementTable | None,
    major_id: str,
) -> dict:
    """
    Deterministically bucket the plan's credits into the five requirement
    categories for one major.

    Each distinct course (first occurrence in semester order) is processed
    once:
      - required_coursework counts only if the major is in required_for_majors
      - humanities and free electives are uncapped
      - engineering electives from a non-engineering department go to free
      - engineering electives from the major's own department fill
        degree_electives, then engineering_electives, then free_electives
      - engineering electives from another engineering department fill
        engineering_electives, then free_electives

    No major or no requirement table gives all-zero buckets.
    """
    if requirement_table is None or not major_id:
        return _empty_result(major_id or "")

    major = requirement_table.major(major_id)
    result = _empty_result(major_id, major.label if major is not None else major_id)
    caps = {key: (major.cap(key) if major is not None else 0.0) for key in CATEGORY_ORDER}
    result["required_credits"] = {key: round_credits(caps[key]) for key in CATEGORY_ORDER}

    selected = result["selected_credits"]
    assignments = result["assignments"]
    major_dept = requirement_table.major_department(major_id)

    def add(course_code: str, category: str, amount: float) -> None:
        selected[category] = round_credits(selected[category] + amount)
        assignments.append({
            "course_code": course_code,
            "category": category,
            "credits": round_credits(amount),
        })

    def offer(course_code: str, category: str, amount: float) -> float:
        """Credits what fits under the category cap; returns the overflow."""
        room = max(0.0, caps[category] - selected[category])
        if amount <= room + CREDIT_TOLERANCE:
            add(course_code, category, amount)
            return 0.0
        if room > CREDIT_TOLERANCE:
            add(course_code, category, room)
        return round_credits(amount - room)

    for course_code in schedule.selected_codes_ordered():
        record = catalog.lookup(course_code)
        dept = record.department if record is not None else None
        credits = round_credits(record.credits) if record is not None else 0.0
        display_code = record.code if record is not None else normalize_code(course_code)

        entry = requirement_table.entry(course_code)
        requirement_type = entry.requirement_type if entry is not None else ""
        if not requirement_type or not entry.applies_to_major(major_id):
            requirement_type = requirement_table.fallback_requirement_type(dept)

        if requirement_type == REQUIRED_COURSEWORK:
            if entry is not None and entry.is_required_for(major_id):
                add(display_code, REQUIRED_COURSEWORK, credits)
            continue

        if requirement_type in (HSS_ELECTIVES, FREE_ELECTIVES):
            add(display_code, requirement_type, credits)
            continue

        # Engineering elective candidates.
        if not requirement_table.is_engineering_dept(dept or ""):
            add(display_code, FREE_ELECTIVES, credits)
            continue

        remaining = credits
        if major_dept and dept == major_dept:
            remaining = offer(display_code, DEGREE_ELECTIVES, remaining)
        if remaining > CREDIT_TOLERANCE:
            remaining = offer(display_code, ENGINEERING_ELECTIVES, remaining)
        if remaining > CREDIT_TOLERANCE:
            add(display_code, FREE_ELECTIVES, remaining)

    for key in CATEGORY_ORDER:
        selected[key] = round_credits(selected[key])

    selected_set = schedule.selected_code_set()
    result["missing_required"] = [
        code for code in requirement_table.required_course_codes(major_id)
        if normalize_code(code) and normalize_code(code) not in selected_set
    ]
    result["total_selected"] = round_credits(sum(selected.values()))
    result["total_required"] = round_credits(sum(result["required_credits"].values()))
    return result
