"""
Build data/requirements.json from the requirement CSVs.

Inputs:
  - course requirements CSV: course_code, requirement_type,
    required_for_majors, elective_for_majors (majors separated by "|")
  - major caps CSV: major_id, label, required_coursework, degree_electives,
    engineering_electives, free_electives, humanities_social_science_electives
  - optional majors JSON: [{"id": "ee1", "label": "Electrical Engineering"}]

Usage:
    python scripts/build_requirements_data.py
    python scripts/build_requirements_data.py --courses reqs.csv --majors caps.csv --out data/requirements.json
"""

import argparse
import json
import os
import sys
from datetime import datetime, timezone

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from normalizer import normalize_code, parse_credits  # noqa: E402
from requirements import ALLOWED_REQUIREMENT_TYPES, CATEGORY_ORDER, empty_credit_map  # noqa: E402

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
DEFAULT_COURSES_CSV = os.path.join(REPO_ROOT, "requirements_scaffold.csv")
DEFAULT_MAJORS_CSV = os.path.join(REPO_ROOT, "major_requirements.csv")
DEFAULT_MAJORS_JSON = os.path.join(REPO_ROOT, "majors.json")
DEFAULT_OUT = os.path.join(REPO_ROOT, "data", "requirements.json")


def read_csv_rows(path: str) -> pd.DataFrame:
    """Every cell as a stripped string; blanks stay ''."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    return df


def split_majors(val) -> list[str]:
    return [part.strip() for part in str(val or "").split("|") if part.strip()]


def build_majors(majors_df: pd.DataFrame, majors_list=None) -> dict:
    """
    Majors from the optional JSON list start with zero caps; rows in the caps
    CSV add new majors or overwrite the caps of listed ones.
    """
    majors: dict = {}
    for m in majors_list or []:
        if not isinstance(m, dict) or not isinstance(m.get("id"), str) or not m["id"]:
            continue
        label = m.get("label") if isinstance(m.get("label"), str) else m["id"]
        majors[m["id"]] = {"label": label, "credits": empty_credit_map()}

    for row in majors_df.to_dict(orient="records"):
        major_id = str(row.get("major_id", "") or "").strip()
        if not major_id:
            continue
        if major_id not in majors:
            majors[major_id] = {
                "label": str(row.get("label", "") or "").strip() or major_id,
                "credits": empty_credit_map(),
            }
        department = str(row.get("department", "") or "").strip()
        if department:
            majors[major_id]["department"] = department
        for key in CATEGORY_ORDER:
            majors[major_id]["credits"][key] = parse_credits(row.get(key))
    return majors


def build_course_requirements(courses_df: pd.DataFrame) -> dict:
    """Canonical code -> requirement entry. Later rows for the same course win."""
    entries: dict = {}
    for row in courses_df.to_dict(orient="records"):
        code = str(row.get("course_code", "") or "").strip()
        canon = normalize_code(code)
        if not canon:
            continue
        rtype = str(row.get("requirement_type", "") or "").strip()
        entries[canon] = {
            "code": code,
            "requirement_type": rtype if rtype in ALLOWED_REQUIREMENT_TYPES else "",
            "required_for_majors": split_majors(row.get("required_for_majors")),
            "elective_for_majors": split_majors(row.get("elective_for_majors")),
        }
    return entries


def build_requirements(courses_df: pd.DataFrame, majors_df: pd.DataFrame, majors_list=None) -> dict:
    return {
        "majors": build_majors(majors_df, majors_list),
        "courseRequirements": build_course_requirements(courses_df),
        "meta": {"generated_at": datetime.now(timezone.utc).isoformat()},
    }


def main(args=None) -> int:
    parser = argparse.ArgumentParser(description="Build requirements.json from requirement CSVs.")
    parser.add_argument("--courses", default=DEFAULT_COURSES_CSV, help="Course requirements CSV")
    parser.add_argument("--majors", default=DEFAULT_MAJORS_CSV, help="Major credit caps CSV")
    parser.add_argument("--majors-json", default=DEFAULT_MAJORS_JSON, help="Optional majors list JSON")
    parser.add_argument("--out", default=DEFAULT_OUT, help="Output requirements.json path")
    opts = parser.parse_args(args)

    for label, path in (("Requirements CSV", opts.courses), ("Major requirements CSV", opts.majors)):
        if not os.path.isfile(path):
            print(f"[FATAL] {label} not found: {path}", file=sys.stderr)
            return 1

    majors_list = []
    if opts.majors_json and os.path.isfile(opts.majors_json):
        with open(opts.majors_json, encoding="utf-8") as fh:
            raw = json.load(fh)
        if isinstance(raw, list):
            majors_list = raw

    out = build_requirements(read_csv_rows(opts.courses), read_csv_rows(opts.majors), majors_list)

    os.makedirs(os.path.dirname(os.path.abspath(opts.out)), exist_ok=True)
    with open(opts.out, "w", encoding="utf-8") as fh:
        json.dump(out, fh, indent=2)
        fh.write("\n")
    print(
        f"[OK] Wrote {opts.out} ({len(out['majors'])} majors, "
        f"{len(out['courseRequirements'])} course entries)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
