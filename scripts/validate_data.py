"""
Data-quality gate for a degree builder data directory.

Checks the catalog, preset index and requirements together before they are
published. Importable for tests and runnable as a standalone CLI.

Usage:
    python scripts/validate_data.py
    python scripts/validate_data.py --path path/to/data
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from data_loader import PRESET_INDEX_FILE, load_data  # noqa: E402
from prereq_parser import is_fallback_formula  # noqa: E402
from presets import preset_row_code, semester_index_from_row  # noqa: E402
from requirements import CATEGORY_ORDER  # noqa: E402


# ── Validation result ─────────────────────────────────────────────────────────

class ValidationResult:
    """Collects errors and warnings for one data directory."""

    def __init__(self, data_path: str):
        self.data_path = data_path
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] Data '{self.data_path}'"]
        for e in self.errors:
            lines.append(f"  [ERROR] {e}")
        for w in self.warnings:
            lines.append(f"  [WARN]  {w}")
        if self.passed and not self.warnings:
            lines.append("  All checks passed.")
        return "\n".join(lines)


# ── Individual checks ─────────────────────────────────────────────────────────

def check_prereq_formulas(catalog, result: ValidationResult) -> None:
    """Prerequisite text that did not parse cleanly degrades to 'all codes required'."""
    for record in catalog:
        if is_fallback_formula(record.prereq_text):
            result.warn(
                f"Course '{record.code}' has malformed prerequisite text "
                f"'{record.prereq_text}'; every mentioned course will be required."
            )


def check_requirement_courses(requirements, catalog, result: ValidationResult) -> None:
    if requirements is None:
        return
    for canon, entry in sorted(requirements.course_requirements.items()):
        if canon not in catalog:
            result.error(f"Requirement entry '{entry.code}' is not in the course catalog.")


def check_major_caps(requirements, result: ValidationResult) -> None:
    if requirements is None:
        return
    for major in requirements.majors.values():
        if all(major.cap(key) <= 0 for key in CATEGORY_ORDER):
            result.warn(f"Major '{major.major_id}' has no credit requirements (all caps are 0).")


def check_preset_index(data_path: str, result: ValidationResult) -> None:
    """Every index entry must name an existing preset file."""
    index_path = os.path.join(data_path, PRESET_INDEX_FILE)
    if not os.path.isfile(index_path):
        return
    with open(index_path, encoding="utf-8") as fh:
        index = json.load(fh)
    if not isinstance(index, list):
        result.error("Preset index must be a JSON list.")
        return
    for entry in index:
        if not isinstance(entry, dict):
            continue
        pid = entry.get("id") or "?"
        file_ref = entry.get("file")
        if not isinstance(file_ref, str) or not file_ref:
            result.error(f"Preset '{pid}' has no file.")
            continue
        candidates = (
            os.path.join(data_path, "presets", file_ref.lstrip("/")),
            os.path.join(data_path, file_ref.lstrip("/")),
        )
        if not any(os.path.isfile(c) for c in candidates):
            result.error(f"Preset '{pid}' file not found: {file_ref}")


def check_preset_rows(presets: dict, catalog, result: ValidationResult) -> None:
    for pid, preset in presets.items():
        for row in preset["rows"]:
            code = preset_row_code(row)
            if not code:
                result.warn(f"Preset '{pid}' has a row without a course code.")
                continue
            if code not in catalog:
                result.error(f"Preset '{pid}' course '{code}' is not in the course catalog.")
            if semester_index_from_row(row.get("year"), row.get("semester")) is None:
                result.warn(
                    f"Preset '{pid}' course '{code}' has no matching semester "
                    f"(year={row.get('year')!r}, semester={row.get('semester')!r})."
                )


def validate_data(data_path: str, data: dict | None = None) -> ValidationResult:
    result = ValidationResult(data_path)
    if data is None:
        try:
            data = load_data(data_path)
        except (FileNotFoundError, ValueError) as exc:
            result.error(str(exc))
            return result

    catalog = data["catalog"]
    if len(catalog) == 0:
        result.error("Course catalog is empty.")

    check_prereq_formulas(catalog, result)
    check_requirement_courses(data.get("requirements"), catalog, result)
    check_major_caps(data.get("requirements"), result)
    check_preset_index(data_path, result)
    check_preset_rows(data.get("presets", {}), catalog, result)
    return result


# ── CLI entry point ───────────────────────────────────────────────────────────

def main(args=None):
    parser = argparse.ArgumentParser(description="Validate degree builder data before publishing.")
    parser.add_argument(
        "--path", type=str,
        default=os.path.join(os.path.dirname(__file__), "..", "data"),
        help="Path to the data directory.",
    )
    opts = parser.parse_args(args)

    result = validate_data(opts.path)
    print(result.summary())
    return 0 if result.passed else 1


if __name__ == "__main__":
    sys.exit(main())
