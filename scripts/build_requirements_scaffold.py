"""
Generate the editable inputs for build_requirements_data.py from the catalog
and presets in a data directory.

Writes:
  - requirements_scaffold.csv: one row per catalog course; courses listed in a
    preset are pre-filled as required_coursework for those preset ids
  - majors.json: [{"id", "label"}] from the presets index
  - major_requirements.csv: one row per preset with every cap at 0

Existing outputs are left alone unless --force is given, since the later
pipeline steps edit these files in place.

Usage:
    python scripts/build_requirements_scaffold.py
    python scripts/build_requirements_scaffold.py --data data --force
"""

import argparse
import json
import os
import sys

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from data_loader import load_data  # noqa: E402
from normalizer import normalize_code  # noqa: E402
from requirements import CATEGORY_ORDER, REQUIRED_COURSEWORK  # noqa: E402

from build_requirements_data import (  # noqa: E402
    DEFAULT_COURSES_CSV,
    DEFAULT_MAJORS_CSV,
    DEFAULT_MAJORS_JSON,
)
from populate_required_from_presets import required_codes_by_major  # noqa: E402

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

SCAFFOLD_COLUMNS = ["course_code", "title", "requirement_type", "required_for_majors", "elective_for_majors"]


def build_scaffold_frame(courses_df: pd.DataFrame, by_major: dict[str, set]) -> pd.DataFrame:
    """One row per distinct catalog course, in catalog order."""
    rows = []
    seen: set[str] = set()
    for record in courses_df.to_dict(orient="records"):
        code = str(record.get("code", "") or "").strip()
        canon = normalize_code(code)
        if not canon or canon in seen:
            continue
        seen.add(canon)
        majors = sorted(pid for pid, codes in by_major.items() if canon in codes)
        rows.append({
            "course_code": code,
            "title": str(record.get("title", "") or ""),
            "requirement_type": REQUIRED_COURSEWORK if majors else "",
            "required_for_majors": "|".join(majors),
            "elective_for_majors": "",
        })
    return pd.DataFrame(rows, columns=SCAFFOLD_COLUMNS)


def build_majors_list(presets: dict, preset_order: list) -> list[dict]:
    return [{"id": pid, "label": presets[pid]["label"]} for pid in preset_order]


def build_major_caps_frame(majors_list: list[dict]) -> pd.DataFrame:
    rows = [
        {"major_id": m["id"], "label": m["label"], **{key: "0" for key in CATEGORY_ORDER}}
        for m in majors_list
    ]
    return pd.DataFrame(rows, columns=["major_id", "label", *CATEGORY_ORDER])


def build_scaffold(data_path: str, out_csv: str, out_majors: str, out_major_reqs: str) -> dict:
    data = load_data(data_path)
    by_major = required_codes_by_major(data["presets"], data["preset_order"])
    scaffold_df = build_scaffold_frame(data["courses_df"], by_major)
    majors_list = build_majors_list(data["presets"], data["preset_order"])
    caps_df = build_major_caps_frame(majors_list)

    for path in (out_csv, out_majors, out_major_reqs):
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    scaffold_df.to_csv(out_csv, index=False)
    with open(out_majors, "w", encoding="utf-8") as fh:
        json.dump(majors_list, fh, indent=2)
        fh.write("\n")
    caps_df.to_csv(out_major_reqs, index=False)

    return {
        "courses": len(scaffold_df),
        "required": int((scaffold_df["requirement_type"] == REQUIRED_COURSEWORK).sum()),
        "majors": len(majors_list),
    }


def main(args=None) -> int:
    parser = argparse.ArgumentParser(description="Generate requirement CSV scaffolds from catalog and presets.")
    parser.add_argument("--data", default=os.path.join(REPO_ROOT, "data"), help="Data directory")
    parser.add_argument("--out-csv", default=DEFAULT_COURSES_CSV, help="Course requirements CSV to write")
    parser.add_argument("--out-majors", default=DEFAULT_MAJORS_JSON, help="Majors list JSON to write")
    parser.add_argument("--out-major-reqs", default=DEFAULT_MAJORS_CSV, help="Major caps CSV to write")
    parser.add_argument("--force", action="store_true", help="Overwrite existing output files")
    opts = parser.parse_args(args)

    outputs = (opts.out_csv, opts.out_majors, opts.out_major_reqs)
    existing = [path for path in outputs if os.path.exists(path)]
    if existing and not opts.force:
        print(f"[FATAL] Refusing to overwrite {existing}; pass --force.", file=sys.stderr)
        return 1

    try:
        counts = build_scaffold(opts.data, *outputs)
    except (FileNotFoundError, ValueError) as exc:
        print(f"[FATAL] {exc}", file=sys.stderr)
        return 1

    for path in outputs:
        print(f"[OK] Wrote {path}")
    print(
        f"[INFO] {counts['courses']} courses ({counts['required']} pre-filled as required), "
        f"{counts['majors']} majors"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
