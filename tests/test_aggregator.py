"""Unit tests for services.aggregator."""

from __future__ import annotations

import pytest

from conftest import faculty_ref, rating_record
from feedback_portal.exceptions import InvalidFilterError
from feedback_portal.services.aggregator import aggregate, grouping_for

FIVE = {f"q{i}": 4 for i in range(1, 6)}


def test_division_grouping_splits_theory_by_division():
    fac = faculty_ref(1)
    records = [
        rating_record(theory=[(fac, FIVE)], division="A"),
        rating_record(theory=[(fac, FIVE)], division="B"),
        rating_record(theory=[(fac, FIVE)], division="A"),
    ]

    units = aggregate(records, "division")

    assert list(units) == [(1, "A"), (1, "B")]
    assert units[(1, "A")].total_feedbacks == 2
    assert units[(1, "B")].total_feedbacks == 1


def test_practical_units_are_split_by_batch():
    fac = faculty_ref(2, subject="Lab")
    records = [
        rating_record(practical=[(fac, FIVE)], batch="A1"),
        rating_record(practical=[(fac, FIVE)], batch="A2"),
    ]

    units = aggregate(records, "division")

    assert set(units) == {(2, "A", "A1"), (2, "A", "A2")}
    assert units[(2, "A", "A2")].batch == "A2"


def test_class_grouping_keys_include_subject():
    fac = faculty_ref(3, subject="Networks")
    units = aggregate([rating_record(theory=[(fac, FIVE)], class_name="TE")], "class")

    assert list(units) == [(3, "TE", "Networks")]


def test_section_blocks_become_named_units():
    records = [rating_record(library={"q1": 5, "q2": 3}, facilities={"q1": 2})]

    units = aggregate(records, "division")

    library = units[("library", "A")]
    assert library.faculty_name == "Library"
    assert library.subject_name == "General"
    assert units[("other_facilities", "A")].faculty_name == "Other Facilities"


def test_faculty_grouping_suppresses_sections():
    fac = faculty_ref(1)
    records = [rating_record(theory=[(fac, FIVE)], library={"q1": 5})]

    units = aggregate(records, "faculty")

    assert list(units) == [("Dr. X",)]


def test_faculty_grouping_merges_same_assignment_across_records():
    fac = faculty_ref(1)
    records = [
        rating_record(theory=[(fac, {"q1": 5})], sid=1),
        rating_record(theory=[(fac, {"q1": 3})], sid=2),
    ]

    unit = aggregate(records, "faculty")[("Dr. X",)]

    assert len(unit.theory_units) == 1
    tally = next(iter(unit.theory_units.values()))
    assert (tally.sum, tally.count) == (8, 2)


def test_faculty_grouping_separates_assignments():
    maths = faculty_ref(1, subject="Maths", class_name="SE")
    physics = faculty_ref(2, subject="Physics", class_name="TE")
    records = [
        rating_record(theory=[(maths, {"q1": 5})], class_name="SE"),
        rating_record(theory=[(physics, {"q1": 1})], class_name="TE"),
    ]

    unit = aggregate(records, "faculty")[("Dr. X",)]

    assert set(unit.theory_units) == {("SE", "A", "Maths", "-"), ("TE", "A", "Physics", "-")}


def test_faculty_grouping_keeps_divisions_as_separate_assignments():
    fac_a = faculty_ref(1, division="A")
    fac_b = faculty_ref(2, division="B")
    records = [
        rating_record(theory=[(fac_a, {"q1": 5})], division="A", sid=1),
        rating_record(theory=[(fac_b, {"q1": 3})], division="B", sid=2),
    ]

    unit = aggregate(records, "faculty")[("Dr. X",)]

    assert set(unit.theory_units) == {("SE", "A", "Maths", "-"), ("SE", "B", "Maths", "-")}
    assert unit.total_feedbacks == 2


def test_feedback_type_limits_sections():
    fac = faculty_ref(1)
    records = [rating_record(theory=[(fac, FIVE)], practical=[(fac, FIVE)], library={"q1": 4})]

    units = aggregate(records, "division", "library")

    assert list(units) == [("library", "A")]


def test_unresolved_faculty_is_skipped():
    record = rating_record(theory=[(faculty_ref(1), FIVE)])
    record.theory_entries[0].faculty = None

    assert aggregate([record], "division") == {}


def test_empty_ratings_still_count_feedback():
    fac = faculty_ref(1)
    unit = aggregate([rating_record(theory=[(fac, {})])], "division")[(1, "A")]

    assert unit.total_feedbacks == 1
    assert unit.total_score_sum == 0
    assert unit.question_scores == {}


def test_aggregate_does_not_mutate_input():
    fac = faculty_ref(1)
    record = rating_record(theory=[(fac, FIVE)])
    before = record.to_dict()

    aggregate([record], "faculty")

    assert record.to_dict() == before


def test_unknown_grouping_is_rejected():
    assert grouping_for(None).name == "division"
    with pytest.raises(InvalidFilterError):
        grouping_for("semester")
