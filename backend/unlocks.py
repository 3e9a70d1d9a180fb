from catalog import CatalogIndex
from normalizer import normalize_code
from prereq_parser import prereq_course_codes


def build_reverse_prereq_map(catalog: CatalogIndex) -> dict[str, list[str]]:
    """
    Builds a reverse prerequisite map: for each canonical code, which catalog
    courses mention it anywhere in their prerequisite formula.

    Returns: {"CS101": ["CS 201", "CS 202"], ...}

    Only direct prerequisites (one level deep). No transitive graph traversal.
    """
    reverse: dict[str, list[str]] = {}

    for record in catalog:
        for prereq_code in prereq_course_codes(catalog.formula(record.code)):
            dependents = reverse.setdefault(prereq_code, [])
            if record.code not in dependents:
                dependents.append(record.code)

    return reverse


def get_direct_unlocks(
    course_code: str,
    reverse_map: dict[str, list[str]],
    limit: int = 5,
) -> list[str]:
    """
    Returns up to `limit` courses directly unlocked by taking `course_code`.
    A course is "unlocked" if its formula mentions `course_code`.
    """
    return reverse_map.get(normalize_code(course_code), [])[:limit]
