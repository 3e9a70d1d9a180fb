"""
Export a saved degree plan to an .xlsx workbook.

The plan file is the JSON produced by Schedule.to_dict() (or the "schedule"
field of any /api/plan/* response).

Usage:
    python scripts/export_plan.py --plan my_plan.json
    python scripts/export_plan.py --plan my_plan.json --major ee1 --out degree-builder.xlsx
"""

import argparse
import json
import os
import sys
from datetime import datetime

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from allocator import allocate_credits  # noqa: E402
from data_loader import load_data  # noqa: E402
from plan_summary import build_schedule_summary  # noqa: E402
from schedule import Schedule  # noqa: E402

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
PLAN_SHEET = "Degree Plan"
REQUIREMENTS_SHEET = "Requirements"
HEADER = ["Semester", "Course", "Title", "Department", "Credits"]


def build_sheet_rows(summary: dict, generated: str | None = None) -> list[list]:
    """Plan sheet rows: title block, then one block per semester, then the degree total."""
    generated = generated or datetime.now().strftime("%Y-%m-%d %H:%M")
    rows: list[list] = [
        ["Degree Builder Export"],
        [f"Generated: {generated}"],
        [],
        list(HEADER),
    ]
    for sem in summary["semesters"]:
        rows.append([sem["name"]])
        if not sem["courses"]:
            rows.append(["", "(empty)", "", "", 0.0])
        for course in sem["courses"]:
            rows.append(["", course["code"], course["title"], course["department"], course["credits"]])
        rows.append(["", "", "", "Semester total", sem["total_credits"]])
        rows.append([])
    rows.append(["", "", "", "Degree total", summary["total_credits"]])
    return rows


def build_requirement_rows(report: dict) -> list[list]:
    rows: list[list] = [["Category", "Selected", "Required"]]
    for key in report["category_order"]:
        rows.append([
            report["category_labels"].get(key, key),
            report["selected_credits"][key],
            report["required_credits"][key],
        ])
    rows.append(["Total Credits", report["total_selected"], report["total_required"]])
    if report["missing_required"]:
        rows.append([])
        rows.append(["Missing required courses", ", ".join(report["missing_required"])])
    return rows


def _frame(rows: list[list]) -> pd.DataFrame:
    width = max((len(r) for r in rows), default=0)
    return pd.DataFrame([r + [None] * (width - len(r)) for r in rows])


def write_plan_workbook(path: str, sheets: dict[str, list[list]]) -> None:
    """Write each sheet's rows verbatim (no pandas header/index) to an xlsx file."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            _frame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)


def export_plan(plan_path: str, out_path: str, data_path: str, major_id: str | None = None) -> dict:
    with open(plan_path, encoding="utf-8") as fh:
        raw = json.load(fh)
    if isinstance(raw, dict) and isinstance(raw.get("schedule"), dict):
        raw = raw["schedule"]

    data = load_data(data_path)
    schedule = Schedule.from_dict(raw)
    summary = build_schedule_summary(schedule, data["catalog"])

    sheets = {PLAN_SHEET: build_sheet_rows(summary)}
    major = major_id or schedule.preset_id
    if major and data.get("requirements") is not None:
        report = allocate_credits(schedule, data["catalog"], data["requirements"], major)
        sheets[REQUIREMENTS_SHEET] = build_requirement_rows(report)

    write_plan_workbook(out_path, sheets)
    return summary


def main(args=None) -> int:
    parser = argparse.ArgumentParser(description="Export a saved degree plan to xlsx.")
    parser.add_argument("--plan", required=True, help="Saved plan JSON")
    parser.add_argument("--out", default="degree-builder.xlsx", help="Output workbook path")
    parser.add_argument("--data", default=os.path.join(REPO_ROOT, "data"), help="Data directory")
    parser.add_argument("--major", default=None, help="Major id for the requirements sheet")
    opts = parser.parse_args(args)

    if not os.path.isfile(opts.plan):
        print(f"[export-plan] ERROR: plan file not found: {opts.plan}", file=sys.stderr)
        return 1

    summary = export_plan(opts.plan, opts.out, opts.data, opts.major)
    print(f"[export-plan] Wrote {opts.out} ({summary['total_credits']:g} credits)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
