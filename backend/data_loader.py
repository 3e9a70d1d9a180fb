import json
import os
import sys

import pandas as pd

from catalog import (
    CODE_KEYS,
    CREDIT_KEYS,
    DEPT_KEYS,
    LEVEL_KEYS,
    PREREQ_KEYS,
    TITLE_KEYS,
    CatalogIndex,
)
from normalizer import normalize_code, parse_credits
from prereq_parser import is_fallback_formula
from presets import preset_row_code, semester_index_from_row
from requirements import RequirementTable

COURSE_FILES = ("courses.json", "courses.csv", "courses.xlsx")
PRESET_INDEX_FILE = os.path.join("presets", "presets.json")
REQUIREMENTS_FILE = "requirements.json"

# Source column aliases -> canonical column names, in the same priority
# order CourseRecord rows are read with.
COURSE_COLUMN_ALIASES = {
    alias: column
    for column, aliases in (
        ("code", CODE_KEYS),
        ("title", TITLE_KEYS),
        ("department", DEPT_KEYS),
        ("level", LEVEL_KEYS),
        ("credits", CREDIT_KEYS),
        ("prerequisite_text", PREREQ_KEYS),
    )
    for alias in aliases
    if alias != column
}

COURSE_COLUMNS = ["code", "title", "department", "level", "credits", "prerequisite_text"]


def _read_json(path: str):
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def _find_courses_file(data_path: str) -> str:
    for name in COURSE_FILES:
        candidate = os.path.join(data_path, name)
        if os.path.isfile(candidate):
            return candidate
    raise FileNotFoundError(
        f"No course catalog ({', '.join(COURSE_FILES)}) found in {data_path}"
    )


def _read_courses_frame(path: str) -> pd.DataFrame:
    if path.endswith(".csv"):
        return pd.read_csv(path, dtype=str, keep_default_na=False)
    if path.endswith(".xlsx"):
        xl = pd.ExcelFile(path)
        sheet = "courses" if "courses" in xl.sheet_names else xl.sheet_names[0]
        return xl.parse(sheet, dtype=str).fillna("")
    raw = _read_json(path)
    if isinstance(raw, dict):
        raw = raw.get("courses", [])
    if not isinstance(raw, list):
        raise ValueError(f"Course catalog JSON must be a list: {path}")
    return pd.DataFrame([r for r in raw if isinstance(r, dict)])


def _normalize_courses_df(courses_df: pd.DataFrame) -> pd.DataFrame:
    """Rename known aliases, fill missing columns, and coerce credits to float."""
    courses_df = courses_df.copy()

    rename_map = {}
    for src, dst in COURSE_COLUMN_ALIASES.items():
        if src not in courses_df.columns or dst in courses_df.columns:
            continue
        if dst in rename_map.values():
            continue  # first alias wins
        rename_map[src] = dst
    if rename_map:
        courses_df = courses_df.rename(columns=rename_map)

    if "code" not in courses_df.columns:
        raise ValueError("Course catalog has no code column (code/course_code/id).")

    for col in COURSE_COLUMNS:
        if col not in courses_df.columns:
            courses_df[col] = ""

    courses_df = courses_df[COURSE_COLUMNS].copy()
    for col in ["code", "title", "department", "level", "prerequisite_text"]:
        courses_df[col] = courses_df[col].fillna("").astype(str).str.strip()
    courses_df["credits"] = courses_df["credits"].apply(parse_credits)
    courses_df = courses_df[courses_df["code"].apply(lambda c: bool(normalize_code(c)))]
    return courses_df.reset_index(drop=True)


def _resolve_preset_file(data_path: str, file_ref: str) -> str:
    file_ref = file_ref.lstrip("/")
    candidates = [
        os.path.join(data_path, "presets", file_ref),
        os.path.join(data_path, file_ref),
    ]
    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    return candidates[0]


def load_presets(data_path: str, catalog: CatalogIndex) -> tuple[dict, list]:
    """
    Load the preset index and every preset's rows.

    Returns (presets_by_id, preset_order). Duplicate ids keep the first entry;
    index entries missing id/label/file are ignored.
    """
    index_path = os.path.join(data_path, PRESET_INDEX_FILE)
    if not os.path.isfile(index_path):
        print(f"[INFO] No preset index at {index_path}; presets disabled.")
        return {}, []

    index = _read_json(index_path)
    if not isinstance(index, list):
        raise ValueError(f"Preset index JSON must be a list: {index_path}")

    presets: dict = {}
    order: list = []
    for entry in index:
        if not isinstance(entry, dict):
            continue
        pid, label, file_ref = entry.get("id"), entry.get("label"), entry.get("file")
        if not all(isinstance(v, str) and v for v in (pid, label, file_ref)):
            continue
        if pid in presets:
            print(
                f"[WARN] Duplicate preset id '{pid}' in presets.json; only the first is used.",
                file=sys.stderr,
            )
            continue

        preset_path = _resolve_preset_file(data_path, file_ref)
        rows: list = []
        if os.path.isfile(preset_path):
            raw_rows = _read_json(preset_path)
            if isinstance(raw_rows, list):
                rows = [r for r in raw_rows if isinstance(r, dict)]
            else:
                print(f"[WARN] Preset file is not a JSON list: {preset_path}", file=sys.stderr)
        else:
            print(f"[WARN] Missing preset file for '{pid}': {preset_path}", file=sys.stderr)

        unknown = sorted({
            preset_row_code(r) for r in rows
            if preset_row_code(r) and preset_row_code(r) not in catalog
        })
        if unknown:
            print(f"[WARN] Preset '{pid}': {len(unknown)} course(s) not in catalog: {unknown}")
        unmapped = [
            r for r in rows
            if semester_index_from_row(r.get("year"), r.get("semester")) is None
        ]
        if unmapped:
            print(f"[WARN] Preset '{pid}': {len(unmapped)} row(s) with no matching semester.")

        presets[pid] = {"id": pid, "label": label, "file": file_ref, "rows": rows}
        order.append(pid)
    return presets, order


def load_requirements(data_path: str, catalog: CatalogIndex) -> RequirementTable | None:
    path = os.path.join(data_path, REQUIREMENTS_FILE)
    if not os.path.isfile(path):
        print(f"[INFO] No requirements data at {path}; credit tracking disabled.")
        return None
    table = RequirementTable.from_dict(_read_json(path))
    if table is None:
        print(f"[WARN] Requirements data is not a JSON object: {path}", file=sys.stderr)
        return None
    orphaned = sorted(c for c in table.course_requirements if c not in catalog)
    if orphaned:
        print(f"[WARN] {len(orphaned)} requirement entr(ies) not found in course catalog: {orphaned}")
    return table


def load_data(data_path: str) -> dict:
    """Load the catalog, presets and requirements from a data directory. Raises on file/schema errors."""
    if not os.path.isdir(data_path):
        raise FileNotFoundError(f"Data directory not found: {data_path}")

    courses_path = _find_courses_file(data_path)
    courses_df = _normalize_courses_df(_read_courses_frame(courses_path))
    catalog = CatalogIndex.from_dataframe(courses_df)
    print(f"[INFO] Course catalog source: {courses_path}")

    # Parse every formula once up front.
    prereq_map = {normalize_code(record.code): catalog.formula(record.code) for record in catalog}

    fallback = sorted(
        record.code for record in catalog
        if is_fallback_formula(record.prereq_text)
    )
    if fallback:
        print(f"[WARN] {len(fallback)} course(s) have malformed prerequisite text (all codes treated as required): {fallback}")

    presets, preset_order = load_presets(data_path, catalog)
    requirements = load_requirements(data_path, catalog)

    return {
        "courses_df": courses_df,
        "catalog": catalog,
        "catalog_codes": catalog.codes,
        "prereq_map": prereq_map,
        "presets": presets,
        "preset_order": preset_order,
        "requirements": requirements,
    }
