from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from normalizer import normalize_code, parse_credits

REQUIRED_COURSEWORK = "required_coursework"
DEGREE_ELECTIVES = "degree_electives"
ENGINEERING_ELECTIVES = "engineering_electives"
FREE_ELECTIVES = "free_electives"
HSS_ELECTIVES = "humanities_social_science_electives"

# Display order of the five credit buckets.
CATEGORY_ORDER = [
    REQUIRED_COURSEWORK,
    DEGREE_ELECTIVES,
    ENGINEERING_ELECTIVES,
    FREE_ELECTIVES,
    HSS_ELECTIVES,
]

CATEGORY_LABELS = {
    REQUIRED_COURSEWORK: "Required Coursework",
    DEGREE_ELECTIVES: "Degree Electives",
    ENGINEERING_ELECTIVES: "Engineering Electives",
    FREE_ELECTIVES: "Free Electives",
    HSS_ELECTIVES: "Humanities Electives",
}

# Types a course entry may declare. degree_electives is never declared; it is
# carved out of engineering electives from the major's own department.
ALLOWED_REQUIREMENT_TYPES = {
    REQUIRED_COURSEWORK,
    ENGINEERING_ELECTIVES,
    FREE_ELECTIVES,
    HSS_ELECTIVES,
}

# Slack when comparing accumulated credits against a cap.
CREDIT_TOLERANCE = 1e-6

ENGINEERING_DEPARTMENTS = frozenset({
    "Biology",
    "Chemical Engineering",
    "Chemistry",
    "Civil Engineering",
    "Computer Science",
    "Electrical and Computer Engineering",
    "Engineering Sciences",
    "Interdisciplinary Engineering",
    "Mathematics",
    "Mechanical Engineering",
    "Physics",
})

HUMANITIES_SOCIAL_DEPARTMENTS = frozenset({
    "Humanities",
    "Social Sciences",
    "History and Theory of Art",
})

# Home department per major id, used when the requirements file omits one.
MAJOR_DEPARTMENTS = {
    "me": "Mechanical Engineering",
    "cive": "Civil Engineering",
    "cs": "Computer Science",
    "ee1": "Electrical and Computer Engineering",
    "ee2": "Electrical and Computer Engineering",
    "cheme": "Chemical Engineering",
}


def _string_list(val) -> list[str]:
    if isinstance(val, str):
        val = val.split("|")
    if not isinstance(val, (list, tuple)):
        return []
    return [str(v).strip() for v in val if v is not None and str(v).strip()]


def empty_credit_map() -> dict[str, float]:
    return {key: 0.0 for key in CATEGORY_ORDER}


@dataclass(frozen=True)
class RequirementEntry:
    code: str
    requirement_type: str = ""
    required_for_majors: tuple[str, ...] = ()
    elective_for_majors: tuple[str, ...] = ()

    def is_required_for(self, major_id: str) -> bool:
        return bool(major_id) and major_id in self.required_for_majors

    def applies_to_major(self, major_id: str) -> bool:
        """
        An entry with no major lists applies to every major; otherwise the
        major must be listed as required or elective.
        """
        if not major_id:
            return False
        if not self.required_for_majors and not self.elective_for_majors:
            return True
        return major_id in self.required_for_majors or major_id in self.elective_for_majors

    @classmethod
    def from_dict(cls, canon: str, raw: dict) -> "RequirementEntry":
        rtype = str(raw.get("requirement_type", "") or "").strip()
        return cls(
            code=str(raw.get("code") or canon).strip(),
            requirement_type=rtype if rtype in ALLOWED_REQUIREMENT_TYPES else "",
            required_for_majors=tuple(_string_list(raw.get("required_for_majors"))),
            elective_for_majors=tuple(_string_list(raw.get("elective_for_majors"))),
        )


@dataclass(frozen=True)
class MajorRequirements:
    major_id: str
    label: str
    credits: dict = field(default_factory=empty_credit_map)
    department: str = ""

    def cap(self, category: str) -> float:
        return float(self.credits.get(category, 0.0) or 0.0)

    @property
    def total_required(self) -> float:
        return round(sum(self.cap(key) for key in CATEGORY_ORDER), 2)

    @classmethod
    def from_dict(cls, major_id: str, raw: dict) -> "MajorRequirements":
        raw_credits = raw.get("credits") if isinstance(raw.get("credits"), dict) else {}
        credits = {key: max(0.0, parse_credits(raw_credits.get(key))) for key in CATEGORY_ORDER}
        department = str(raw.get("department", "") or "").strip() or MAJOR_DEPARTMENTS.get(major_id, "")
        return cls(
            major_id=major_id,
            label=str(raw.get("label") or major_id),
            credits=credits,
            department=department,
        )


class RequirementTable:
    """Majors' credit caps plus per-course requirement entries."""

    def __init__(
        self,
        majors: dict[str, MajorRequirements],
        course_requirements: dict[str, RequirementEntry],
        engineering_departments=ENGINEERING_DEPARTMENTS,
        humanities_departments=HUMANITIES_SOCIAL_DEPARTMENTS,
    ):
        self.majors = majors
        self.course_requirements = course_requirements
        self.engineering_departments = frozenset(engineering_departments)
        self.humanities_departments = frozenset(humanities_departments)

    @classmethod
    def from_dict(cls, raw) -> Optional["RequirementTable"]:
        """
        Builds a table from the requirements.json shape:
          {"majors": {id: {"label", "credits": {...}}},
           "courseRequirements": {CANON: {"code", "requirement_type",
                                          "required_for_majors", "elective_for_majors"}}}
        Returns None for anything that is not a dict.
        """
        if not isinstance(raw, dict):
            return None
        majors: dict[str, MajorRequirements] = {}
        raw_majors = raw.get("majors")
        if isinstance(raw_majors, dict):
            for major_id, major_raw in raw_majors.items():
                if not major_id or not isinstance(major_raw, dict):
                    continue
                majors[str(major_id)] = MajorRequirements.from_dict(str(major_id), major_raw)

        course_requirements: dict[str, RequirementEntry] = {}
        raw_courses = raw.get("courseRequirements", raw.get("course_requirements"))
        if isinstance(raw_courses, dict):
            for key, entry_raw in raw_courses.items():
                if not isinstance(entry_raw, dict):
                    continue
                canon = normalize_code(key) or normalize_code(entry_raw.get("code"))
                if not canon:
                    continue
                course_requirements[canon] = RequirementEntry.from_dict(canon, entry_raw)

        kwargs = {}
        if isinstance(raw.get("engineering_departments"), list):
            kwargs["engineering_departments"] = _string_list(raw["engineering_departments"])
        if isinstance(raw.get("humanities_departments"), list):
            kwargs["humanities_departments"] = _string_list(raw["humanities_departments"])
        return cls(majors, course_requirements, **kwargs)

    def entry(self, code) -> Optional[RequirementEntry]:
        return self.course_requirements.get(normalize_code(code))

    def major(self, major_id: str) -> Optional[MajorRequirements]:
        return self.majors.get(major_id) if major_id else None

    def major_department(self, major_id: str) -> str:
        major = self.major(major_id)
        if major is not None:
            return major.department
        return MAJOR_DEPARTMENTS.get(major_id, "")

    def is_engineering_dept(self, dept: str) -> bool:
        return bool(dept) and dept in self.engineering_departments

    def is_humanities_social_dept(self, dept: str) -> bool:
        return bool(dept) and dept in self.humanities_departments

    def fallback_requirement_type(self, dept: Optional[str]) -> str:
        """Bucket for a course without an applicable entry, by department."""
        if dept is None:
            return FREE_ELECTIVES
        if self.is_humanities_social_dept(dept):
            return HSS_ELECTIVES
        if self.is_engineering_dept(dept):
            return ENGINEERING_ELECTIVES
        return FREE_ELECTIVES

    def required_course_codes(self, major_id: str) -> list[str]:
        """Display codes of required coursework for a major, sorted."""
        codes = [
            entry.code
            for entry in self.course_requirements.values()
            if entry.requirement_type == REQUIRED_COURSEWORK and entry.is_required_for(major_id)
        ]
        return sorted(codes)
