import os
import sys
import time
import threading
import hashlib
import json
from collections import OrderedDict

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import pandas as pd
from flask import Flask, g, jsonify, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from allocator import allocate_credits
from data_loader import load_data
from normalizer import normalize_code, normalize_input
from plan_summary import build_schedule_summary
from prereq_parser import (
    dnf_from_rpn,
    is_fallback_formula,
    parse_prereq_groups,
    prereq_course_codes,
    rpn_from_tokens,
    tokenize_prereqs,
)
from presets import apply_preset
from requirements import CATEGORY_ORDER
from schedule import BASE_SLOT_COUNT, MIN_SEMESTER_COUNT, Schedule
from unlocks import build_reverse_prereq_map, get_direct_unlocks
from validators import describe_prereq_failures

load_dotenv()

app = Flask(__name__)

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_env_data_path = os.environ.get("DATA_PATH")
if not _env_data_path:
    DATA_PATH = _DEFAULT_DATA_PATH
elif not os.path.isabs(_env_data_path):
    DATA_PATH = os.path.join(PROJECT_ROOT, _env_data_path)
else:
    DATA_PATH = _env_data_path
_data_lock = threading.Lock()
_data_mtime = None

_DATA_FILE_EXTENSIONS = (".json", ".csv", ".xlsx")


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
_REQUEST_CACHE_SIZE = _env_int("REQUEST_CACHE_SIZE", 128, minimum=1)
_BASE_SLOTS = _env_int("PLANNER_BASE_SLOTS", BASE_SLOT_COUNT, minimum=1)
_MIN_SEMESTERS = _env_int("PLANNER_MIN_SEMESTERS", MIN_SEMESTER_COUNT, minimum=1)


class _LruResponseCache:
    """Thread-safe bounded in-memory cache for JSON-serializable responses."""

    def __init__(self, max_size: int):
        self.max_size = max(1, int(max_size))
        self._lock = threading.Lock()
        self._items: OrderedDict[str, dict] = OrderedDict()

    def get(self, key: str):
        with self._lock:
            if key not in self._items:
                return None
            value = self._items.pop(key)
            self._items[key] = value
            return value

    def set(self, key: str, value: dict) -> None:
        with self._lock:
            if key in self._items:
                self._items.pop(key)
            self._items[key] = value
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


_evaluate_response_cache = _LruResponseCache(_REQUEST_CACHE_SIZE)


def _cache_enabled() -> bool:
    return not app.config.get("TESTING", False)


def _stable_payload_hash(payload) -> str:
    normalized = payload if payload is not None else {}
    encoded = json.dumps(
        normalized,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _data_version_tag() -> str:
    return "none" if _data_mtime is None else str(_data_mtime)


def _request_cache_key(prefix: str, payload) -> str:
    return f"{prefix}:{_data_version_tag()}:{_stable_payload_hash(payload)}"


def _clear_request_caches() -> None:
    _evaluate_response_cache.clear()


def _data_file_mtime(path: str):
    """Newest mtime of any data file under path (presets/ included)."""
    try:
        if os.path.isdir(path):
            mtimes = []
            for root, _dirs, files in os.walk(path):
                for name in files:
                    if name.endswith(_DATA_FILE_EXTENSIONS):
                        mtimes.append(os.path.getmtime(os.path.join(root, name)))
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


# ── Startup data load ──────────────────────────────────────────────────────────
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded {len(_data['catalog_codes'])} courses from {DATA_PATH}")
except FileNotFoundError:
    # A stale DATA_PATH falls back to the repo data directory.
    if DATA_PATH != _DEFAULT_DATA_PATH and os.path.exists(_DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default data directory ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded {len(_data['catalog_codes'])} courses from {DATA_PATH}")
    else:
        print(f"[FATAL] Data directory not found: {DATA_PATH}", file=sys.stderr)
        sys.exit(1)
except Exception as exc:
    print(f"[FATAL] Failed to load data: {exc}", file=sys.stderr)
    sys.exit(1)

_reverse_map = build_reverse_prereq_map(_data["catalog"])


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload catalog, presets and requirements when DATA_PATH changes on disk.

    Returns True when a reload occurred, else False.
    """
    global _data, _reverse_map, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
            new_reverse_map = build_reverse_prereq_map(new_data["catalog"])
        except Exception as exc:
            print(f"[WARN] Data reload failed; keeping previous dataset: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _reverse_map = new_reverse_map
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        _clear_request_caches()
        print(f"[OK] Reloaded {len(new_data['catalog_codes'])} courses from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Data reload check failed: {exc}", file=sys.stderr)


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": "1.0.0",
        "courses_loaded": len(_data["catalog_codes"]) if _data else 0,
        "requirements_loaded": bool(_data and _data.get("requirements") is not None),
    })


# -- Error envelopes ---------------------------------------------------------
def _error_response(error_code: str, message: str, status: int):
    return jsonify({
        "mode": "error",
        "error": {
            "error_code": error_code,
            "message": message,
        },
    }), status


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return _error_response(e.name.upper().replace(" ", "_"), e.description or e.name, e.code or 500)
    return _error_response("SERVER_ERROR", "An unexpected server error occurred.", 500)


# -- Input validation ------------------------------------------------------
EDIT_ACTIONS = {
    "select": ("semester_index", "slot_index"),
    "clear": ("semester_index", "slot_index"),
    "add_slot": ("semester_index",),
    "remove_slot": ("semester_index", "slot_index"),
    "move": ("from_semester", "from_slot", "to_semester"),
    "add_semester": (),
    "remove_semester": (),
}


def _is_index(val) -> bool:
    return isinstance(val, int) and not isinstance(val, bool)


def _validate_plan_body(body):
    """Returns (error_code, message) on invalid input, (None, None) on success."""
    if body is None or not isinstance(body, dict):
        return "INVALID_INPUT", "Request body must be a JSON object."
    schedule = body.get("schedule")
    if schedule is not None and not isinstance(schedule, dict):
        return "INVALID_INPUT", "schedule must be an object."
    major_id = body.get("major_id")
    if major_id is not None and not isinstance(major_id, str):
        return "INVALID_INPUT", "major_id must be a string."
    return None, None


def _validate_edit_body(body):
    error_code, message = _validate_plan_body(body)
    if error_code:
        return error_code, message
    action = body.get("action")
    if action not in EDIT_ACTIONS:
        return "INVALID_INPUT", f"action must be one of: {', '.join(sorted(EDIT_ACTIONS))}."
    for key in EDIT_ACTIONS[action]:
        if not _is_index(body.get(key)):
            return "INVALID_INPUT", f"{key} must be an integer."
    if action == "move" and body.get("to_slot") is not None and not _is_index(body.get("to_slot")):
        return "INVALID_INPUT", "to_slot must be an integer or null."
    if action == "select":
        code = body.get("course_code")
        if not isinstance(code, str) or not normalize_code(code):
            return "INVALID_INPUT", "course_code must contain letters or digits."
    return None, None


def _schedule_from_body(body: dict) -> Schedule:
    return Schedule.from_dict(
        body.get("schedule"),
        base_slot_count=_BASE_SLOTS,
        min_semesters=_MIN_SEMESTERS,
    )


def _evaluate_schedule(schedule: Schedule, major_id: str | None) -> dict:
    """Full recomputation: prerequisite failures, credit buckets, summary."""
    catalog = _data["catalog"]
    major = major_id if major_id is not None else schedule.preset_id
    return {
        "prereq_failures": describe_prereq_failures(schedule, catalog),
        "requirements": allocate_credits(schedule, catalog, _data.get("requirements"), major),
        "summary": build_schedule_summary(schedule, catalog),
    }


def _apply_edit(schedule: Schedule, body: dict) -> bool:
    action = body["action"]
    if action == "select":
        record = _data["catalog"].lookup(body["course_code"])
        code = record.code if record is not None else body["course_code"].strip()
        return schedule.select_course(body["semester_index"], body["slot_index"], code)
    if action == "clear":
        return schedule.clear_course(body["semester_index"], body["slot_index"])
    if action == "add_slot":
        return schedule.add_supplemental_slot(body["semester_index"]) is not None
    if action == "remove_slot":
        return schedule.remove_supplemental_slot(body["semester_index"], body["slot_index"])
    if action == "move":
        return schedule.move_course(
            body["from_semester"],
            body["from_slot"],
            body["to_semester"],
            body.get("to_slot"),
        )
    if action == "add_semester":
        schedule.append_semester()
        return True
    return schedule.remove_last_semester()


# ── Routes ─────────────────────────────────────────────────────────────────────
def get_courses():
    _refresh_data_if_needed()
    if not _data:
        return jsonify({"error": "Data not loaded"}), 500
    df = _data["courses_df"].copy()
    # Convert to object dtype so None survives instead of being re-coerced to NaN.
    df = df.astype(object).where(pd.notna(df), None)
    return jsonify({"courses": df.to_dict(orient="records")})


def get_course_detail(code):
    _refresh_data_if_needed()
    catalog = _data["catalog"]
    record = catalog.lookup(code)
    if record is None:
        return _error_response("UNKNOWN_COURSE", f"Course '{code}' is not in the catalog.", 404)
    limit = request.args.get("limit", default=5, type=int)
    groups = catalog.formula(record.code)
    return jsonify({
        "course": record.to_dict(),
        "canonical_code": record.canonical_code,
        "prereq_groups": groups,
        "prereq_codes": [catalog.display_code(c) for c in prereq_course_codes(groups)],
        "fallback_formula": is_fallback_formula(record.prereq_text),
        "unlocks": get_direct_unlocks(record.code, _reverse_map, limit=max(0, limit)),
    })


def resolve_courses():
    """Resolves a pasted comma/newline/semicolon list of codes against the catalog."""
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("codes"), str):
        return _error_response("INVALID_INPUT", "Body must be {\"codes\": <string>}.", 400)
    _refresh_data_if_needed()
    catalog = _data["catalog"]
    result = normalize_input(body["codes"], catalog.codes)
    result["courses"] = [catalog.lookup(code).to_dict() for code in result["valid"]]
    return jsonify(result)


def get_presets():
    """Preset curricula available for the preset selector, in index order."""
    _refresh_data_if_needed()
    presets = _data.get("presets", {})
    return jsonify({
        "presets": [
            {
                "id": pid,
                "label": presets[pid]["label"],
                "course_count": len(presets[pid]["rows"]),
            }
            for pid in _data.get("preset_order", [])
        ]
    })


def get_majors():
    _refresh_data_if_needed()
    table = _data.get("requirements")
    if table is None:
        return jsonify({"majors": [], "category_order": list(CATEGORY_ORDER)})
    majors = [
        {
            "id": major.major_id,
            "label": major.label,
            "department": major.department,
            "credits": major.credits,
            "total_required": major.total_required,
        }
        for major in table.majors.values()
    ]
    return jsonify({"majors": majors, "category_order": list(CATEGORY_ORDER)})


def parse_prereqs_endpoint():
    """Debug view of the tokenize -> RPN -> DNF pipeline for a prerequisite string."""
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("text"), str):
        return _error_response("INVALID_INPUT", "Body must be {\"text\": <string>}.", 400)
    text = body["text"]
    tokens = tokenize_prereqs(text)
    rpn = rpn_from_tokens(tokens)
    return jsonify({
        "text": text,
        "tokens": tokens,
        "rpn": rpn,
        "well_formed": not tokens or dnf_from_rpn(rpn) is not None,
        "groups": parse_prereq_groups(text),
    })


def evaluate_plan():
    _refresh_data_if_needed()
    body = request.get_json(force=True, silent=True)
    error_code, message = _validate_plan_body(body)
    if error_code:
        return _error_response(error_code, message, 400)

    cache_key = _request_cache_key("evaluate", body)
    if _cache_enabled():
        cached = _evaluate_response_cache.get(cache_key)
        if cached is not None:
            return jsonify(cached)

    schedule = _schedule_from_body(body)
    payload = {
        "mode": "evaluate",
        "schedule": schedule.to_dict(),
        **_evaluate_schedule(schedule, body.get("major_id")),
    }
    if _cache_enabled():
        _evaluate_response_cache.set(cache_key, payload)
    return jsonify(payload)


def edit_plan():
    _refresh_data_if_needed()
    body = request.get_json(force=True, silent=True)
    error_code, message = _validate_edit_body(body)
    if error_code:
        return _error_response(error_code, message, 400)

    schedule = _schedule_from_body(body)
    applied = _apply_edit(schedule, body)
    return jsonify({
        "mode": "edit",
        "action": body["action"],
        "applied": applied,
        "schedule": schedule.to_dict(),
        **_evaluate_schedule(schedule, body.get("major_id")),
    })


def apply_preset_endpoint():
    _refresh_data_if_needed()
    body = request.get_json(force=True, silent=True)
    error_code, message = _validate_plan_body(body)
    if error_code:
        return _error_response(error_code, message, 400)
    preset_id = body.get("preset_id") or ""
    if not isinstance(preset_id, str):
        return _error_response("INVALID_INPUT", "preset_id must be a string.", 400)

    presets = _data.get("presets", {})
    if preset_id and preset_id not in presets:
        return _error_response("UNKNOWN_PRESET", f"Preset '{preset_id}' not found.", 404)

    schedule = _schedule_from_body(body)
    rows = presets[preset_id]["rows"] if preset_id else []
    report = apply_preset(schedule, preset_id, rows, _data["catalog"])
    return jsonify({
        "mode": "apply_preset",
        "report": report,
        "schedule": schedule.to_dict(),
        **_evaluate_schedule(schedule, body.get("major_id")),
    })


app.add_url_rule("/api/health", endpoint="api_health", view_func=health_endpoint, methods=["GET"])
app.add_url_rule("/api/courses", endpoint="api_courses", view_func=get_courses, methods=["GET"])
app.add_url_rule("/api/courses/resolve", endpoint="api_courses_resolve", view_func=resolve_courses, methods=["POST"])
app.add_url_rule("/api/courses/<path:code>", endpoint="api_course_detail", view_func=get_course_detail, methods=["GET"])
app.add_url_rule("/api/presets", endpoint="api_presets", view_func=get_presets, methods=["GET"])
app.add_url_rule("/api/majors", endpoint="api_majors", view_func=get_majors, methods=["GET"])
app.add_url_rule("/api/prereqs/parse", endpoint="api_prereqs_parse", view_func=parse_prereqs_endpoint, methods=["POST"])
app.add_url_rule("/api/plan/evaluate", endpoint="api_plan_evaluate", view_func=evaluate_plan, methods=["POST"])
app.add_url_rule("/api/plan/edit", endpoint="api_plan_edit", view_func=edit_plan, methods=["POST"])
app.add_url_rule("/api/plan/apply-preset", endpoint="api_plan_apply_preset", view_func=apply_preset_endpoint, methods=["POST"])


# -- API catch-all (404 for unknown /api/* routes) -------------------
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    return _error_response("NOT_FOUND", f"/api/{rest} not found", 404)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
