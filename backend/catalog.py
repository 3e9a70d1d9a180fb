"""
Read-only course catalog keyed by canonical course code.

Records are normalized once when the index is built; lookups canonicalize
their argument, so "cs 101", "CS-101" and "CS101" all find the same course.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import pandas as pd

from normalizer import normalize_code, parse_credits
from prereq_parser import parse_prereq_groups


# Accepted source column names per field, first match wins.
CODE_KEYS = ("code", "course_code", "courseCode", "id")
TITLE_KEYS = ("title", "courseTitle", "course_title", "course_name", "name")
DEPT_KEYS = ("department", "dept")
LEVEL_KEYS = ("level", "course_level")
CREDIT_KEYS = ("credits", "credit", "units")
PREREQ_KEYS = ("prerequisite_text", "prerequisiteText", "prereqText", "prereq_text", "prerequisites", "prereqs")


@dataclass(frozen=True)
class CourseRecord:
    code: str
    title: str = ""
    department: str = ""
    level: str = ""
    credits: float = 0.0
    prereq_text: str = ""

    @property
    def canonical_code(self) -> str:
        return normalize_code(self.code)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "title": self.title,
            "department": self.department,
            "level": self.level,
            "credits": self.credits,
            "prerequisite_text": self.prereq_text,
        }


def _first_text(row: dict, keys: tuple[str, ...]) -> str:
    for key in keys:
        if key not in row:
            continue
        val = row.get(key)
        if val is None or (isinstance(val, float) and pd.isna(val)):
            continue
        text = str(val).strip()
        if text:
            return text
    return ""


def course_record_from_row(row: dict) -> Optional[CourseRecord]:
    """Builds a CourseRecord from a loosely-shaped row; None if it has no usable code."""
    code = _first_text(row, CODE_KEYS)
    if not normalize_code(code):
        return None
    credits_raw = None
    for key in CREDIT_KEYS:
        if key in row:
            credits_raw = row.get(key)
            break
    return CourseRecord(
        code=code,
        title=_first_text(row, TITLE_KEYS),
        department=_first_text(row, DEPT_KEYS),
        level=_first_text(row, LEVEL_KEYS),
        credits=parse_credits(credits_raw),
        prereq_text=_first_text(row, PREREQ_KEYS),
    )


class CatalogIndex:
    """Immutable lookup from canonical code to CourseRecord."""

    def __init__(self, records: Iterable[CourseRecord]):
        by_code: dict[str, CourseRecord] = {}
        for record in records:
            canon = record.canonical_code
            # First occurrence wins for duplicate codes.
            if canon and canon not in by_code:
                by_code[canon] = record
        self._by_code = by_code
        self._formulas: dict[str, list[list[str]]] = {}

    @classmethod
    def from_rows(cls, rows: Iterable[dict]) -> "CatalogIndex":
        records = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            record = course_record_from_row(row)
            if record is not None:
                records.append(record)
        return cls(records)

    @classmethod
    def from_dataframe(cls, courses_df: pd.DataFrame) -> "CatalogIndex":
        if courses_df is None or len(courses_df) == 0:
            return cls([])
        return cls.from_rows(courses_df.to_dict(orient="records"))

    def __len__(self) -> int:
        return len(self._by_code)

    def __contains__(self, code) -> bool:
        return normalize_code(code) in self._by_code

    def __iter__(self):
        return iter(self._by_code.values())

    @property
    def codes(self) -> set[str]:
        return set(self._by_code)

    def lookup(self, code) -> Optional[CourseRecord]:
        return self._by_code.get(normalize_code(code))

    def credits(self, code) -> float:
        record = self.lookup(code)
        return record.credits if record is not None else 0.0

    def display_code(self, code) -> str:
        """Catalog spelling of a code when known, else the canonical form."""
        record = self.lookup(code)
        return record.code if record is not None else normalize_code(code)

    def formula(self, code) -> list[list[str]]:
        """Parsed DNF prerequisite groups for a course, cached per course."""
        canon = normalize_code(code)
        if canon in self._formulas:
            return self._formulas[canon]
        record = self._by_code.get(canon)
        groups = parse_prereq_groups(record.prereq_text) if record is not None else []
        self._formulas[canon] = groups
        return groups
