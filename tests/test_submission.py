"""Tests for the submission gate against a temporary database."""

from __future__ import annotations

import pytest

from conftest import theory_payload
from feedback_portal.exceptions import (
    AccessScopeError,
    DuplicateSubmissionError,
    NotFoundError,
    ValidationError,
)
from feedback_portal.models.feedback import FeedbackStore
from feedback_portal.models.records import Principal
from feedback_portal.models.database import get_db
from feedback_portal.services.submission_service import SubmissionGate, validate_ratings


def _flags(student_id):
    with get_db() as conn:
        row = conn.execute(
            'SELECT feedback_given_theory, feedback_given_practical FROM students WHERE id = ?',
            (student_id,),
        ).fetchone()
        return tuple(row)


def test_submit_stores_record_for_active_round(make_student, make_faculty, open_session):
    open_session("1")
    student = make_student()
    fac = make_faculty()

    record = SubmissionGate().submit(student.id, {
        "theory": theory_payload(fac, score=5),
        "library": {"ratings": {"q1": 4, "q2": 3}, "comments": "  quiet  please "},
    })

    assert record.id is not None
    assert record.feedback_round == "1"
    assert record.theory_entries[0].subject_name == "Data Structures"
    assert record.library.comments == "quiet please"
    assert _flags(student.id) == (1, 1)
    assert FeedbackStore().exists(student.id, "1")


def test_second_submission_in_same_round_is_rejected(make_student, make_faculty, open_session):
    open_session("1")
    student = make_student()
    fac = make_faculty()
    gate = SubmissionGate()
    gate.submit(student.id, {"theory": theory_payload(fac)})

    with pytest.raises(DuplicateSubmissionError):
        gate.submit(student.id, {"theory": theory_payload(fac)})

    open_session("2")
    second = gate.submit(student.id, {"theory": theory_payload(fac)})
    assert second.feedback_round == "2"


def test_store_unique_index_guards_double_insert(make_student, make_faculty, open_session):
    open_session("1")
    student = make_student()
    fac = make_faculty()
    first = SubmissionGate().submit(student.id, {"theory": theory_payload(fac)})

    first.id = None
    first.submitted_at = None
    with pytest.raises(DuplicateSubmissionError):
        FeedbackStore().insert(first)


def test_inactive_session_rejects_submission(make_student, make_faculty):
    student = make_student()
    fac = make_faculty()

    with pytest.raises(ValidationError):
        SubmissionGate().submit(student.id, {"theory": theory_payload(fac)})


def test_unknown_student_and_faculty(make_student, open_session):
    open_session()
    with pytest.raises(NotFoundError):
        SubmissionGate().submit(9999, {})

    student = make_student()
    with pytest.raises(NotFoundError):
        SubmissionGate().submit(student.id, {"theory": [{"faculty": 4242, "ratings": {"q1": 3}}]})


@pytest.mark.parametrize("ratings, field", [
    ({"q6": 3}, "theory[0].ratings.q6"),
    ({"q1": 0}, "theory[0].ratings.q1"),
    ({"q1": 6}, "theory[0].ratings.q1"),
    ({"q1": 3.5}, "theory[0].ratings.q1"),
    ({"q1": "good"}, "theory[0].ratings.q1"),
])
def test_invalid_ratings_report_field(make_student, make_faculty, open_session, ratings, field):
    open_session()
    student = make_student()
    fac = make_faculty()

    with pytest.raises(ValidationError) as excinfo:
        SubmissionGate().submit(student.id, {"theory": [{"faculty": fac.id, "ratings": ratings}]})

    assert excinfo.value.field == field
    assert not FeedbackStore().exists(student.id)


def test_facilities_accept_twelve_questions():
    ratings = {f"q{i}": 3 for i in range(1, 13)}
    assert validate_ratings(ratings, "other_facilities", "facilities.ratings") == ratings
    with pytest.raises(ValidationError):
        validate_ratings({"q5": 3}, "library", "library.ratings")


def test_reset_clears_record_and_flags(make_student, make_faculty, open_session):
    open_session()
    student = make_student()
    fac = make_faculty()
    gate = SubmissionGate()
    gate.submit(student.id, {"theory": theory_payload(fac)})

    assert gate.reset(student.id) == 1
    assert _flags(student.id) == (0, 0)
    assert not FeedbackStore().exists(student.id)

    with pytest.raises(NotFoundError):
        gate.reset(student.id)

    # Resubmission is allowed after a reset
    gate.submit(student.id, {"theory": theory_payload(fac)})


def test_reset_without_round_keeps_earlier_rounds(make_student, make_faculty, open_session):
    student = make_student()
    fac = make_faculty()
    gate = SubmissionGate()
    store = FeedbackStore()

    open_session("1")
    gate.submit(student.id, {"theory": theory_payload(fac)})
    open_session("2")
    gate.submit(student.id, {"theory": theory_payload(fac)})

    assert gate.reset(student.id) == 1
    assert store.exists(student.id, "1")
    assert not store.exists(student.id, "2")


def test_reset_with_explicit_round(make_student, make_faculty, open_session):
    student = make_student()
    fac = make_faculty()
    gate = SubmissionGate()

    open_session("1")
    gate.submit(student.id, {"theory": theory_payload(fac)})
    open_session("2")

    with pytest.raises(NotFoundError):
        gate.reset(student.id)

    assert gate.reset(student.id, "1") == 1
    assert not FeedbackStore().exists(student.id)


def test_admin_reset_is_scoped_to_department(make_student, make_faculty, open_session):
    open_session()
    student = make_student(department="CS")
    fac = make_faculty(department="CS")
    gate = SubmissionGate()
    gate.submit(student.id, {"theory": theory_payload(fac)})

    with pytest.raises(AccessScopeError):
        gate.admin_reset(Principal(id="a", role="admin", department="AIML"), student.id)

    deleted = gate.admin_reset(Principal(id="b", role="admin", department="CS"), student.id, "1")
    assert deleted == 1


def test_form_data_filters_practical_faculty_by_batch(make_student, make_faculty, open_session):
    open_session()
    student = make_student(practical_batch="A1")
    make_faculty(name="Theory Teacher")
    make_faculty(name="Lab A1", subject="DS Lab", practical=True, batches="A1")
    make_faculty(name="Lab A2", subject="DS Lab", practical=True, batches=["A2"])
    make_faculty(name="Other Division", division="B")

    data = SubmissionGate().form_data(student.id)

    assert [f["facultyName"] for f in data["theoryFaculty"]] == ["Theory Teacher"]
    assert [f["facultyName"] for f in data["practicalFaculty"]] == ["Lab A1"]
    assert data["session"] == {"isActive": True, "activeRound": "1"}
    assert data["isSubmitted"] is False
