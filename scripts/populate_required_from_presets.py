"""
Mark every course in a major's preset as required coursework for that major.

Rewrites both requirement CSVs in place:
  - course requirements CSV: rows whose course appears in any preset get
    requirement_type=required_coursework and required_for_majors set to the
    sorted "|"-joined preset ids
  - major caps CSV: required_coursework becomes the summed credits of the
    preset's distinct courses (majors without a row get one)

Usage:
    python scripts/populate_required_from_presets.py
    python scripts/populate_required_from_presets.py --data data --requirements reqs.csv --majors caps.csv
"""

import argparse
import os
import sys

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from data_loader import load_data  # noqa: E402
from normalizer import normalize_code, round_credits  # noqa: E402
from presets import preset_row_code  # noqa: E402
from requirements import CATEGORY_ORDER, REQUIRED_COURSEWORK  # noqa: E402

from build_requirements_data import (  # noqa: E402
    DEFAULT_COURSES_CSV,
    DEFAULT_MAJORS_CSV,
    read_csv_rows,
)

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def required_codes_by_major(presets: dict, preset_order: list) -> dict[str, set]:
    """Preset id -> canonical codes listed in that preset."""
    by_major: dict[str, set] = {}
    for pid in preset_order:
        codes = set()
        for row in presets[pid]["rows"]:
            canon = normalize_code(preset_row_code(row))
            if canon:
                codes.add(canon)
        by_major[pid] = codes
    return by_major


def mark_required_courses(requirements_df: pd.DataFrame, by_major: dict[str, set]) -> pd.DataFrame:
    df = requirements_df.copy()
    for col in ("course_code", "requirement_type", "required_for_majors", "elective_for_majors"):
        if col not in df.columns:
            df[col] = ""

    for idx, code in df["course_code"].items():
        canon = normalize_code(code)
        majors = sorted(pid for pid, codes in by_major.items() if canon in codes)
        if majors:
            df.at[idx, "requirement_type"] = REQUIRED_COURSEWORK
            df.at[idx, "required_for_majors"] = "|".join(majors)
    return df


def update_required_caps(majors_df: pd.DataFrame, by_major: dict[str, set], catalog) -> pd.DataFrame:
    df = majors_df.copy()
    for col in ("major_id", *CATEGORY_ORDER):
        if col not in df.columns:
            df[col] = "0" if col != "major_id" else ""

    for pid, codes in by_major.items():
        total = round_credits(sum(catalog.credits(canon) for canon in codes))
        mask = df["major_id"] == pid
        if not mask.any():
            new_row = {col: "" for col in df.columns}
            new_row.update({key: "0" for key in CATEGORY_ORDER})
            new_row["major_id"] = pid
            df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
            mask = df["major_id"] == pid
        # "12.0" -> "12", "7.5" stays
        df.loc[mask, REQUIRED_COURSEWORK] = f"{total:g}"
    return df


def populate(data_path: str, requirements_csv: str, majors_csv: str) -> dict[str, set]:
    data = load_data(data_path)
    by_major = required_codes_by_major(data["presets"], data["preset_order"])

    requirements_df = mark_required_courses(read_csv_rows(requirements_csv), by_major)
    requirements_df.to_csv(requirements_csv, index=False)
    print(f"[OK] Updated {requirements_csv}")

    majors_df = update_required_caps(read_csv_rows(majors_csv), by_major, data["catalog"])
    majors_df.to_csv(majors_csv, index=False)
    print(f"[OK] Updated {majors_csv}")
    return by_major


def main(args=None) -> int:
    parser = argparse.ArgumentParser(description="Populate required coursework from presets.")
    parser.add_argument("--data", default=os.path.join(REPO_ROOT, "data"), help="Data directory")
    parser.add_argument("--requirements", default=DEFAULT_COURSES_CSV, help="Course requirements CSV")
    parser.add_argument("--majors", default=DEFAULT_MAJORS_CSV, help="Major credit caps CSV")
    opts = parser.parse_args(args)

    for label, path in (("Requirements CSV", opts.requirements), ("Major requirements CSV", opts.majors)):
        if not os.path.isfile(path):
            print(f"[FATAL] {label} not found: {path}", file=sys.stderr)
            return 1

    by_major = populate(opts.data, opts.requirements, opts.majors)
    for pid, codes in by_major.items():
        print(f"[INFO] {pid}: {len(codes)} required course(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
