from catalog import CatalogIndex
from normalizer import round_credits
from schedule import SOURCE_PRESET, Schedule


def is_undergrad_level(level) -> bool:
    if not level:
        return False
    return "undergraduate" in str(level).lower()


def semester_credit_summary(schedule: Schedule, catalog: CatalogIndex, sem_idx: int) -> dict:
    """
    Credit totals for one semester column.

    Returns:
        {"total_credits": 15.0, "undergrad_credits": 12.0}
    """
    sem = schedule.semester(sem_idx)
    if sem is None:
        return {"total_credits": 0.0, "undergrad_credits": 0.0}
    total = 0.0
    undergrad = 0.0
    for _, slot in sem.filled_slots():
        record = catalog.lookup(slot.course_code)
        credits = record.credits if record is not None else 0.0
        total += credits
        if record is not None and is_undergrad_level(record.level):
            undergrad += credits
    return {
        "total_credits": round_credits(total),
        "undergrad_credits": round_credits(undergrad),
    }


def build_schedule_summary(schedule: Schedule, catalog: CatalogIndex) -> dict:
    """
    Flat, export-ready view of the plan.

    Every placed slot is listed (duplicates included); unknown courses show
    with an empty title and 0 credits.

    Returns:
        {
          "semesters": [
            {"name": "Fall 1", "courses": [{"code", "title", "department",
             "credits", "source", "preset_id"}], "total_credits": 16.0,
             "undergrad_credits": 16.0}
          ],
          "total_credits": 128.0,
        }
    """
    semesters = []
    for sem_idx, sem in enumerate(schedule.semesters):
        courses = []
        for _, slot in sem.filled_slots():
            record = catalog.lookup(slot.course_code)
            courses.append({
                "code": slot.course_code,
                "title": record.title if record is not None else "",
                "department": record.department if record is not None else "",
                "credits": record.credits if record is not None else 0.0,
                "source": SOURCE_PRESET if slot.source == SOURCE_PRESET else "manual",
                "preset_id": slot.preset_id or "",
            })
        semesters.append({
            "name": sem.name,
            "courses": courses,
            **semester_credit_summary(schedule, catalog, sem_idx),
        })

    return {
        "semesters": semesters,
        "total_credits": round_credits(sum(s["total_credits"] for s in semesters)),
    }
