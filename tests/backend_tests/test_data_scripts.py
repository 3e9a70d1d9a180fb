"""
Tests for the data maintenance scripts: requirements scaffold and build, preset-driven
required coursework, plan export, and the data validation gate.
"""

import json
import shutil
from pathlib import Path

import pandas as pd

import build_requirements_data
import build_requirements_scaffold
import export_plan
import populate_required_from_presets
import run_local
import validate_data
from presets import apply_preset
from schedule import Schedule


class TestBuildRequirementsData:
    def _write_inputs(self, tmp_path):
        pd.DataFrame([
            {"course_code": "MA 111", "requirement_type": "required_coursework",
             "required_for_majors": "ee1|me", "elective_for_majors": ""},
            {"course_code": "ECE 365", "requirement_type": "engineering_electives",
             "required_for_majors": "", "elective_for_majors": " ee1 | ee2 "},
            {"course_code": "XX 1", "requirement_type": "made_up",
             "required_for_majors": "", "elective_for_majors": ""},
            {"course_code": "", "requirement_type": "free_electives",
             "required_for_majors": "", "elective_for_majors": ""},
        ]).to_csv(tmp_path / "reqs.csv", index=False)
        pd.DataFrame([
            {"major_id": "ee1", "label": "Electrical Engineering", "required_coursework": "41",
             "degree_electives": "3", "engineering_electives": "six", "free_electives": "9",
             "humanities_social_science_electives": "12"},
        ]).to_csv(tmp_path / "caps.csv", index=False)
        (tmp_path / "majors.json").write_text(json.dumps([
            {"id": "ee1", "label": "EE (listed)"},
            {"id": "cs", "label": "Computer Science"},
        ]))

    def test_main_writes_requirements_json(self, tmp_path):
        self._write_inputs(tmp_path)
        out = tmp_path / "out" / "requirements.json"
        status = build_requirements_data.main([
            "--courses", str(tmp_path / "reqs.csv"),
            "--majors", str(tmp_path / "caps.csv"),
            "--majors-json", str(tmp_path / "majors.json"),
            "--out", str(out),
        ])
        assert status == 0

        data = json.loads(out.read_text())
        assert data["majors"]["ee1"]["label"] == "EE (listed)"
        assert data["majors"]["ee1"]["credits"] == {
            "required_coursework": 41.0,
            "degree_electives": 3.0,
            "engineering_electives": 0.0,
            "free_electives": 9.0,
            "humanities_social_science_electives": 12.0,
        }
        assert set(data["majors"]["cs"]["credits"].values()) == {0.0}
        assert set(data["courseRequirements"]) == {"MA111", "ECE365", "XX1"}
        assert data["courseRequirements"]["ECE365"]["elective_for_majors"] == ["ee1", "ee2"]
        assert data["courseRequirements"]["MA111"]["required_for_majors"] == ["ee1", "me"]
        assert data["courseRequirements"]["XX1"]["requirement_type"] == ""
        assert "generated_at" in data["meta"]

    def test_missing_input(self, tmp_path, capsys):
        status = build_requirements_data.main([
            "--courses", str(tmp_path / "nope.csv"),
            "--majors", str(tmp_path / "nope2.csv"),
        ])
        assert status == 1
        assert "[FATAL]" in capsys.readouterr().err


class TestBuildRequirementsScaffold:
    def _outputs(self, tmp_path):
        return {
            "csv": tmp_path / "requirements_scaffold.csv",
            "majors": tmp_path / "majors.json",
            "caps": tmp_path / "major_requirements.csv",
        }

    def _args(self, data_dir, out):
        return [
            "--data", str(data_dir),
            "--out-csv", str(out["csv"]),
            "--out-majors", str(out["majors"]),
            "--out-major-reqs", str(out["caps"]),
        ]

    def test_scaffold_from_sample_data(self, tmp_path, sample_data_dir):
        out = self._outputs(tmp_path)
        assert build_requirements_scaffold.main(self._args(sample_data_dir, out)) == 0

        scaffold = pd.read_csv(out["csv"], dtype=str, keep_default_na=False)
        assert list(scaffold.columns) == build_requirements_scaffold.SCAFFOLD_COLUMNS
        assert len(scaffold) == 21
        rows = scaffold.set_index("course_code")
        assert rows.loc["MA 111", "requirement_type"] == "required_coursework"
        assert rows.loc["MA 111", "required_for_majors"] == "ee1|me"
        # Preset row spelled with the "code" key, and one with no mappable semester.
        assert rows.loc["ECE 365", "required_for_majors"] == "ee1"
        assert rows.loc["ECE 467", "required_for_majors"] == "ee1"
        assert rows.loc["ME 360", "required_for_majors"] == "me"
        assert rows.loc["CE 120", "requirement_type"] == ""
        assert (scaffold["requirement_type"] == "required_coursework").sum() == 16
        assert "ECE 999" not in rows.index

        assert json.loads(out["majors"].read_text()) == [
            {"id": "ee1", "label": "Electrical Engineering"},
            {"id": "me", "label": "Mechanical Engineering"},
        ]
        caps = pd.read_csv(out["caps"], dtype=str, keep_default_na=False)
        assert caps["major_id"].tolist() == ["ee1", "me"]
        assert set(caps["free_electives"]) == {"0"}

    def test_scaffold_feeds_requirements_build(self, tmp_path, sample_data_dir):
        out = self._outputs(tmp_path)
        assert build_requirements_scaffold.main(self._args(sample_data_dir, out)) == 0
        req_json = tmp_path / "requirements.json"
        status = build_requirements_data.main([
            "--courses", str(out["csv"]),
            "--majors", str(out["caps"]),
            "--majors-json", str(out["majors"]),
            "--out", str(req_json),
        ])
        assert status == 0
        data = json.loads(req_json.read_text())
        assert data["majors"]["me"]["label"] == "Mechanical Engineering"
        assert data["courseRequirements"]["PH112"]["required_for_majors"] == ["ee1", "me"]
        assert data["courseRequirements"]["SS347"]["requirement_type"] == ""

    def test_refuses_to_overwrite_without_force(self, tmp_path, sample_data_dir, capsys):
        out = self._outputs(tmp_path)
        out["csv"].write_text("hand edited\n")
        assert build_requirements_scaffold.main(self._args(sample_data_dir, out)) == 1
        assert out["csv"].read_text() == "hand edited\n"
        assert "--force" in capsys.readouterr().err

        assert build_requirements_scaffold.main(self._args(sample_data_dir, out) + ["--force"]) == 0
        assert out["csv"].read_text().startswith("course_code,")

    def test_missing_data_dir(self, tmp_path):
        out = self._outputs(tmp_path)
        assert build_requirements_scaffold.main(self._args(tmp_path / "nope", out)) == 1


class TestPopulateRequiredFromPresets:
    def test_marks_preset_courses_required(self, tmp_path, sample_data_dir):
        reqs = tmp_path / "reqs.csv"
        caps = tmp_path / "caps.csv"
        pd.DataFrame([
            {"course_code": "MA 111", "requirement_type": "", "required_for_majors": "", "elective_for_majors": ""},
            {"course_code": "ME 250", "requirement_type": "engineering_electives",
             "required_for_majors": "", "elective_for_majors": "ee1"},
            {"course_code": "FA 101", "requirement_type": "free_electives",
             "required_for_majors": "", "elective_for_majors": ""},
        ]).to_csv(reqs, index=False)
        pd.DataFrame([
            {"major_id": "me", "label": "Mechanical", "required_coursework": "0",
             "degree_electives": "6", "engineering_electives": "6", "free_electives": "6",
             "humanities_social_science_electives": "12"},
        ]).to_csv(caps, index=False)

        status = populate_required_from_presets.main([
            "--data", sample_data_dir, "--requirements", str(reqs), "--majors", str(caps),
        ])
        assert status == 0

        req_df = pd.read_csv(reqs, dtype=str, keep_default_na=False).set_index("course_code")
        assert req_df.loc["MA 111", "requirement_type"] == "required_coursework"
        assert req_df.loc["MA 111", "required_for_majors"] == "ee1|me"
        assert req_df.loc["ME 250", "required_for_majors"] == "me"
        assert req_df.loc["FA 101", "requirement_type"] == "free_electives"

        caps_df = pd.read_csv(caps, dtype=str, keep_default_na=False).set_index("major_id")
        # me preset: MA 111 4, CH 110 3, HSS 1 3, MA 113 4, PH 112 4, ME 250 3, ME 360 3
        assert caps_df.loc["me", "required_coursework"] == "24"
        assert caps_df.loc["me", "degree_electives"] == "6"
        # ee1 row created; ECE 999 is not in the catalog and counts 0.
        assert caps_df.loc["ee1", "required_coursework"] == "46"


class TestExportPlan:
    def test_workbook_layout(self, tmp_path, sample_data, sample_data_dir):
        schedule = Schedule()
        apply_preset(schedule, "me", sample_data["presets"]["me"]["rows"], sample_data["catalog"])
        plan = tmp_path / "plan.json"
        plan.write_text(json.dumps({"schedule": schedule.to_dict()}))
        out = tmp_path / "plan.xlsx"

        status = export_plan.main(["--plan", str(plan), "--out", str(out), "--data", sample_data_dir])
        assert status == 0

        sheets = pd.read_excel(out, sheet_name=None, header=None, engine="openpyxl")
        assert set(sheets) == {export_plan.PLAN_SHEET, export_plan.REQUIREMENTS_SHEET}

        plan_rows = sheets[export_plan.PLAN_SHEET].astype(object).where(
            pd.notna(sheets[export_plan.PLAN_SHEET]), None
        ).values.tolist()
        assert plan_rows[0][0] == "Degree Builder Export"
        assert export_plan.HEADER in plan_rows
        assert ["Summer 0", None, None, None, None] in plan_rows
        assert [None, "(empty)", None, None, 0] in plan_rows
        assert [None, "ME 250", "Thermodynamics I", "Mechanical Engineering", 3] in plan_rows
        assert plan_rows[-1] == [None, None, None, "Degree total", 24]

        req_rows = sheets[export_plan.REQUIREMENTS_SHEET].values.tolist()
        assert req_rows[0][:3] == ["Category", "Selected", "Required"]
        assert req_rows[1][:3] == ["Required Coursework", 21, 24]

    def test_sheet_rows_without_requirements(self):
        summary = {
            "semesters": [{"name": "Fall 1", "courses": [], "total_credits": 0.0, "undergrad_credits": 0.0}],
            "total_credits": 0.0,
        }
        rows = export_plan.build_sheet_rows(summary, generated="2024-01-01 09:00")
        assert rows[1] == ["Generated: 2024-01-01 09:00"]
        assert rows[4:7] == [["Fall 1"], ["", "(empty)", "", "", 0.0], ["", "", "", "Semester total", 0.0]]

    def test_missing_plan_file(self, tmp_path):
        assert export_plan.main(["--plan", str(tmp_path / "missing.json")]) == 1


class TestValidateData:
    def test_sample_data_flags_unknown_preset_course(self, sample_data_dir):
        result = validate_data.validate_data(sample_data_dir)
        assert result.passed is False
        assert result.errors == ["Preset 'ee1' course 'ECE 999' is not in the course catalog."]
        assert any("ECE 300" in w for w in result.warnings)
        assert any("ECE 467" in w and "no matching semester" in w for w in result.warnings)

    def test_clean_directory_passes(self, tmp_path, sample_data_dir):
        data_dir = tmp_path / "data"
        shutil.copytree(sample_data_dir, data_dir)
        rows = json.loads((data_dir / "presets" / "ee1.json").read_text())
        rows = [r for r in rows if r.get("course_code") not in ("ECE 999", "ECE 467")]
        (data_dir / "presets" / "ee1.json").write_text(json.dumps(rows))
        courses = json.loads((data_dir / "courses.json").read_text())
        for c in courses:
            if c["code"] in ("ECE 300", "PH 112"):
                c["prerequisiteText"] = ""
        (data_dir / "courses.json").write_text(json.dumps(courses))

        result = validate_data.validate_data(str(data_dir))
        assert result.passed is True
        assert result.warnings == []
        assert "All checks passed." in result.summary()

    def test_missing_preset_file_and_zero_caps(self, tmp_path, sample_data_dir):
        data_dir = tmp_path / "data"
        shutil.copytree(sample_data_dir, data_dir)
        index = json.loads((data_dir / "presets" / "presets.json").read_text())
        index.append({"id": "cs", "label": "Computer Science", "file": "cs.json"})
        (data_dir / "presets" / "presets.json").write_text(json.dumps(index))
        reqs = json.loads((data_dir / "requirements.json").read_text())
        reqs["majors"]["cs"] = {"label": "Computer Science", "credits": {}}
        (data_dir / "requirements.json").write_text(json.dumps(reqs))

        result = validate_data.validate_data(str(data_dir))
        assert "Preset 'cs' file not found: cs.json" in result.errors
        assert "Major 'cs' has no credit requirements (all caps are 0)." in result.warnings

    def test_missing_directory(self, tmp_path):
        result = validate_data.validate_data(str(tmp_path / "nope"))
        assert result.passed is False

    def test_cli_exit_code(self, sample_data_dir):
        assert validate_data.main(["--path", sample_data_dir]) == 1


def test_loaded_sample_presets_reference_real_files(sample_data):
    assert all(p["rows"] for p in sample_data["presets"].values())


class TestRunLocal:
    def test_passes_port_and_data_to_server(self, monkeypatch, sample_data_dir):
        seen = {}

        class _Done:
            returncode = 0

        def fake_run(cmd, cwd, env):
            seen["cmd"] = cmd
            seen["env"] = env
            return _Done()

        monkeypatch.setattr(run_local.subprocess, "run", fake_run)
        assert run_local.main(["--port", "5055", "--data", sample_data_dir]) == 0
        assert seen["cmd"][-1] == str(run_local.BACKEND_ENTRYPOINT)
        assert seen["env"]["PORT"] == "5055"
        assert seen["env"]["DATA_PATH"] == str(Path(sample_data_dir).resolve())

    def test_missing_data_dir(self, tmp_path, capsys):
        assert run_local.main(["--data", str(tmp_path / "nope")]) == 1
        assert "data directory not found" in capsys.readouterr().err
