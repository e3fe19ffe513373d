"""Tests for services.report_service over a seeded database."""

from __future__ import annotations

import pytest

from conftest import theory_payload
from feedback_portal.exceptions import AccessScopeError, InvalidFilterError, NotFoundError
from feedback_portal.models.records import Principal
from feedback_portal.services.report_service import ReportService
from feedback_portal.services.scope_filter import ReportFilters
from feedback_portal.services.submission_service import SubmissionGate


@pytest.fixture
def seeded(make_student, make_faculty, open_session):
    """Two AIML students and one CS student with theory, practical and library ratings."""
    open_session("1")
    fac = make_faculty()
    lab = make_faculty(name="Prof. Nikhil Desai", subject="DS Lab", practical=True, batches="A1")
    cs_fac = make_faculty(name="Dr. Iyer", department="CS")

    gate = SubmissionGate()
    s1 = make_student()
    gate.submit(s1.id, {
        "theory": [{"faculty": fac.id, "ratings": {"q1": 5, "q2": 4}}],
        "practical": [{"faculty": lab.id, "ratings": {"q1": 4, "q2": 4}}],
        "library": {"ratings": {"q1": 3, "q2": 4}},
    })
    s2 = make_student()
    gate.submit(s2.id, {
        "theory": [{"faculty": fac.id, "ratings": {"q1": 3, "q2": 3}, "comments": "slow"}],
    })
    s3 = make_student(department="CS")
    gate.submit(s3.id, {"theory": theory_payload(cs_fac, score=2)})

    return {"fac": fac, "lab": lab, "cs_fac": cs_fac, "students": (s1, s2, s3)}


def test_summary_is_scoped_to_principal_department(seeded, admin):
    rows = ReportService().summary(admin, ReportFilters(department="CS"))

    names = {r.faculty_name for r in rows}
    assert "Dr. Iyer" not in names
    assert {"Dr. Meera Rao", "Prof. Nikhil Desai", "Library"} <= names


def test_summary_rows_for_division_grouping(seeded, admin):
    rows = {r.faculty_name: r for r in ReportService().summary(admin)}

    theory = rows["Dr. Meera Rao"]
    assert theory.total_feedbacks == 2
    assert theory.question_average_ratings == {"q1": 4.0, "q2": 3.5}
    assert theory.average_rating == 3.75
    assert theory.batch == "-"

    lab = rows["Prof. Nikhil Desai"]
    assert lab.batch == "A1"
    assert lab.practical_average == 4.0
    assert lab.theory_average is None


def test_super_admin_sees_every_department(seeded, super_admin):
    rows = ReportService().summary(super_admin, group_by="faculty")

    assert {r.faculty_name for r in rows} == {"Dr. Meera Rao", "Prof. Nikhil Desai", "Dr. Iyer"}


def test_analysis_uses_faculty_rows(seeded, admin):
    report = ReportService().analysis(admin)

    assert [item.row.faculty_name for item in report.rows] == ["Dr. Meera Rao", "Prof. Nikhil Desai"]
    assert report.stats.total_entries == 2
    assert report.stats.grand_mean == pytest.approx((3.75 + 4.0) / 2)


def test_unknown_group_by_is_rejected(seeded, admin):
    with pytest.raises(InvalidFilterError):
        ReportService().summary(admin, group_by="semester")


def test_faculty_detail_lists_entries_and_flat_averages(seeded, admin):
    detail = ReportService().faculty_detail(seeded["fac"].id, principal=admin)

    assert detail["faculty"]["facultyName"] == "Dr. Meera Rao"
    assert len(detail["entries"]) == 2
    assert {e["comments"] for e in detail["entries"]} == {"", "slow"}
    assert detail["averageRatings"] == {"q1": 4.0, "q2": 3.5}


def test_faculty_detail_errors(seeded, admin):
    service = ReportService()
    with pytest.raises(NotFoundError):
        service.faculty_detail(9999)
    with pytest.raises(AccessScopeError):
        service.faculty_detail(seeded["cs_fac"].id, principal=admin)

    assert service.faculty_detail(seeded["fac"].id, feedback_round="2")["entries"] == []


def test_export_round_trip_matches_summary(seeded, admin):
    service = ReportService()
    exported = service.export_rows(admin, ReportFilters(feedback_type="theory"))
    summary = service.summary(admin, ReportFilters(feedback_type="theory"))

    by_faculty = {}
    for row in exported:
        for key, value in row["ratings"].items():
            by_faculty.setdefault(row["facultyName"], {}).setdefault(key, []).append(value)
    recomputed = {
        name: {k: round(sum(v) / len(v), 2) for k, v in questions.items()}
        for name, questions in by_faculty.items()
    }

    assert recomputed == {r.faculty_name: r.question_average_ratings for r in summary}


def test_export_rows_for_library(seeded, admin):
    rows = ReportService().export_rows(admin, ReportFilters(feedback_type="library"))

    assert len(rows) == 2
    assert {r["facultyName"] for r in rows} == {"N/A"}
    assert rows[0]["ratings"] == {"q1": 3, "q2": 4}


def test_dashboard_statistics(seeded, admin, super_admin):
    service = ReportService()

    stats = service.overall_stats(admin)
    assert stats["totalFeedback"] == 2
    assert stats["totalStudents"] == 2
    assert stats["totalFaculty"] == 2
    assert stats["theoryAvg"] == 3.75
    assert stats["practicalAvg"] == 4.0

    distribution = {d["department"]: d["count"] for d in service.department_distribution(super_admin)}
    assert distribution == {"AIML": 2, "CS": 1}

    top = service.top_faculty(super_admin, limit=2)
    assert [t["name"] for t in top] == ["Prof. Nikhil Desai", "Dr. Meera Rao"]


def test_reports_on_empty_store(admin):
    service = ReportService()

    assert service.summary(admin) == []
    assert service.analysis(admin).stats.standard_deviation == 0.0
    assert service.overall_stats(admin)["theoryAvg"] == 0


def test_scoped_principal_cannot_widen_with_all(seeded):
    principal = Principal(id="cs", role="admin", department="CS")
    rows = ReportService().summary(principal, ReportFilters(department="All"))

    assert {r.faculty_name for r in rows} == {"Dr. Iyer"}
