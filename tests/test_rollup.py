"""Unit tests for services.rollup."""

from __future__ import annotations

import pytest

from conftest import faculty_ref, rating_record
from feedback_portal.services.aggregator import aggregate
from feedback_portal.services.rollup import ReportRow, analyze, finalize, question_averages


def _row(name, theory, practical):
    return ReportRow(faculty_id=name, faculty_name=name, subject_name="S", division="A",
                     class_name="SE", batch="-", total_feedbacks=1, average_rating=0,
                     theory_average=theory, practical_average=practical)


def test_question_averages_per_unit():
    fac = faculty_ref(1)
    records = [
        rating_record(theory=[(fac, {"q1": 5, "q2": 4})], sid=1),
        rating_record(theory=[(fac, {"q1": 4, "q2": 2})], sid=2),
        rating_record(theory=[(fac, {"q1": 4})], sid=3),
    ]

    [row] = finalize(aggregate(records, "division"), "division")

    assert row.question_average_ratings == {"q1": 4.33, "q2": 3.0}
    assert row.total_feedbacks == 3
    assert row.theory_average == pytest.approx(round((4.5 + 3.0 + 4.0) / 3, 2))
    assert row.practical_average is None


def test_average_rating_uses_block_averages():
    fac = faculty_ref(1)
    records = [
        rating_record(theory=[(fac, {"q1": 5, "q2": 5})], sid=1),
        rating_record(theory=[(fac, {"q1": 2, "q2": 3})], sid=2),
    ]

    [row] = finalize(aggregate(records, "division"))

    assert row.average_rating == 3.75


def test_half_up_rounding():
    fac = faculty_ref(1)
    # 1.125 rounds half-up to 1.13
    records = [rating_record(theory=[(fac, {"q1": v})], sid=i)
               for i, v in enumerate([1, 1, 1, 1, 1, 1, 2, 1], 1)]

    [row] = finalize(aggregate(records, "division"))

    assert row.question_average_ratings["q1"] == 1.13


def test_finalize_is_idempotent():
    fac = faculty_ref(1)
    lab = faculty_ref(2, subject="Lab")
    records = [
        rating_record(theory=[(fac, {"q1": 5, "q3": 2})], practical=[(lab, {"q2": 4})], sid=1),
        rating_record(theory=[(fac, {"q1": 3})], library={"q1": 4}, sid=2, division="B"),
    ]

    for group_by in ("division", "class", "faculty"):
        first = [r.to_dict() for r in finalize(aggregate(records, group_by), group_by)]
        second = [r.to_dict() for r in finalize(aggregate(records, group_by), group_by)]
        assert first == second


def test_faculty_average_is_unweighted_across_assignments():
    se = faculty_ref(1, subject="Maths", class_name="SE")
    te = faculty_ref(2, subject="Maths", class_name="TE")
    # Three SE students rate 5, one TE student rates 1
    records = [rating_record(theory=[(se, {"q1": 5})], class_name="SE", sid=i) for i in range(1, 4)]
    records.append(rating_record(theory=[(te, {"q1": 1})], class_name="TE", sid=4))

    [row] = finalize(aggregate(records, "faculty"), "faculty")

    assert row.theory_average == 3.0
    # The flat running average stays submission weighted
    assert row.average_rating == 4.0


def test_faculty_without_practical_has_null_practical_average():
    fac = faculty_ref(1)
    [row] = finalize(aggregate([rating_record(theory=[(fac, {"q1": 4})])], "faculty"), "faculty")

    assert row.practical_average is None
    assert row.to_dict()["practicalAverage"] is None


def test_finalize_empty_input():
    assert finalize(aggregate([], "division")) == []


def test_unit_with_no_ratings_has_zero_average():
    fac = faculty_ref(1)
    [row] = finalize(aggregate([rating_record(theory=[(fac, {})])], "division"))

    assert row.average_rating == 0
    assert row.theory_average is None


def test_standard_deviation_example():
    rows = [_row("A", 4.0, 4.0), _row("B", 3.0, 3.0), _row("C", 5.0, 5.0)]

    report = analyze(rows)

    assert report.stats.grand_mean == pytest.approx(4.0)
    assert [r.z for r in report.rows] == pytest.approx([0.0, 1.0, 1.0])
    assert report.stats.total_z == pytest.approx(2.0)
    assert report.stats.total_entries == 6
    assert report.stats.to_dict()["sd"] == 0.5774


def test_analysis_x_uses_only_present_cells():
    report = analyze([_row("A", 4.0, None), _row("B", None, None)])

    assert report.rows[0].x == 4.0
    assert report.rows[1].x == 0.0
    assert report.rows[1].z == 0.0
    assert report.stats.total_entries == 1
    assert report.stats.grand_mean == 4.0


def test_analysis_of_nothing():
    report = analyze([])

    assert report.rows == []
    assert report.stats.standard_deviation == 0.0


def test_flat_question_averages():
    averages = question_averages([{"q1": 5, "q2": 3}, {"q1": 4}, {}])

    assert averages == {"q1": 4.5, "q2": 3.0}
