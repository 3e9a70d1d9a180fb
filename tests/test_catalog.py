import pandas as pd
import pytest
from catalog import CatalogIndex, CourseRecord, course_record_from_row


class TestCourseRecordFromRow:
    def test_alias_keys(self):
        record = course_record_from_row({
            "course_code": "cs 101",
            "courseTitle": "Intro",
            "dept": "Computer Science",
            "credits": "3 credits",
            "prereqText": "MA 111",
        })
        assert record == CourseRecord(
            code="cs 101",
            title="Intro",
            department="Computer Science",
            credits=3.0,
            prereq_text="MA 111",
        )
        assert record.canonical_code == "CS101"

    def test_row_without_code(self):
        assert course_record_from_row({"title": "Orphan"}) is None

    def test_unparsable_credits_are_zero(self):
        assert course_record_from_row({"code": "CE 120", "credits": "TBA"}).credits == 0.0

    def test_nan_fields_are_blank(self):
        record = course_record_from_row({"code": "CE 120", "title": float("nan")})
        assert record.title == ""


class TestCatalogIndex:
    @pytest.fixture
    def catalog(self):
        return CatalogIndex.from_rows([
            {"code": "CS 101", "title": "Intro", "credits": 3},
            {"code": "CS 201", "title": "Data Structures", "credits": 4, "prerequisite_text": "CS 101"},
            {"code": "cs-101", "title": "Duplicate", "credits": 9},
            {"title": "No code"},
            "not a row",
        ])

    def test_first_duplicate_wins(self, catalog):
        assert len(catalog) == 2
        assert catalog.lookup("CS101").title == "Intro"

    def test_lookup_canonicalizes(self, catalog):
        assert catalog.lookup("cs 201").code == "CS 201"
        assert "cs-201" in catalog
        assert "CS 999" not in catalog
        assert catalog.lookup("CS 999") is None

    def test_codes(self, catalog):
        assert catalog.codes == {"CS101", "CS201"}

    def test_credits(self, catalog):
        assert catalog.credits("CS 201") == 4.0
        assert catalog.credits("CS 999") == 0.0

    def test_display_code(self, catalog):
        assert catalog.display_code("cs201") == "CS 201"
        assert catalog.display_code("xx 1") == "XX1"

    def test_formula_parsed_and_cached(self, catalog):
        first = catalog.formula("CS 201")
        assert first == [["CS101"]]
        assert catalog.formula("cs-201") is first

    def test_formula_for_unknown_course(self, catalog):
        assert catalog.formula("CS 999") == []

    def test_iterates_records(self, catalog):
        assert [r.code for r in catalog] == ["CS 101", "CS 201"]

    def test_from_dataframe(self):
        df = pd.DataFrame([{"code": "MA 111", "credits": 4.0, "prerequisite_text": ""}])
        catalog = CatalogIndex.from_dataframe(df)
        assert catalog.lookup("MA111").credits == 4.0

    def test_from_empty_dataframe(self):
        assert len(CatalogIndex.from_dataframe(pd.DataFrame())) == 0


def test_record_to_dict_round_trips_through_rows():
    record = CourseRecord(code="PH 112", title="Physics", department="Physics", credits=4.0)
    assert course_record_from_row(record.to_dict()) == record
