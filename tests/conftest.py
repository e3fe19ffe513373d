"""Shared fixtures: a fresh sqlite database per test plus seed helpers."""

from __future__ import annotations

import itertools

import pytest

from feedback_portal.models import database
from feedback_portal.models.config_store import FeedbackSession
from feedback_portal.models.faculty import Faculty
from feedback_portal.models.records import (
    FacultyRef,
    Principal,
    RatingBlock,
    RatingEntry,
    RatingRecord,
    StudentRef,
)
from feedback_portal.models.student import Student

_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def db(tmp_path, monkeypatch):
    """Point the store at a temporary database file and create the schema."""
    monkeypatch.setattr(database, "DATABASE_PATH", str(tmp_path / "feedback.db"))
    database.init_db()
    return tmp_path / "feedback.db"


@pytest.fixture
def make_student():
    def _make(department="AIML", class_name="SE", division="A", practical_batch="A1",
              eligibility=True, **overrides):
        n = next(_counter)
        gr_no = overrides.get("gr_no", f"GR{n:04d}")
        username = overrides.get("username", f"student{n}")
        student_id = Student.add(gr_no, username, department, class_name, division,
                                 practical_batch, eligibility=eligibility)
        return Student.get(student_id)

    return _make


@pytest.fixture
def make_faculty():
    def _make(name="Dr. Meera Rao", subject="Data Structures", department="AIML",
              class_name="SE", division="A", practical=False, batches=None):
        faculty_id = Faculty.add(name, department, subject, class_name, division,
                                 is_practical_faculty=practical, practical_batches=batches)
        return Faculty.get(faculty_id)

    return _make


@pytest.fixture
def open_session():
    def _open(feedback_round="1"):
        return FeedbackSession().toggle(True, feedback_round)

    return _open


@pytest.fixture
def admin():
    return Principal(id="admin-1", role="admin", department="AIML")


@pytest.fixture
def super_admin():
    return Principal(id="root", role="admin", department="All")


# -- in-memory records for the pure aggregation tests --------------------------

def faculty_ref(fid, name="Dr. X", subject="Maths", class_name="SE", division="A"):
    return FacultyRef(id=fid, name=name, subject_name=subject, department="AIML",
                      class_name=class_name, division=division)


def student_ref(sid=1, class_name="SE", division="A", batch="A1"):
    return StudentRef(id=sid, gr_no=f"GR{sid}", username=f"s{sid}", department="AIML",
                      class_name=class_name, division=division, practical_batch=batch)


def rating_record(theory=(), practical=(), library=None, facilities=None, class_name="SE",
                  division="A", batch="A1", feedback_round="1", sid=1, department="AIML"):
    """theory/practical are sequences of (FacultyRef, ratings) pairs."""
    return RatingRecord(
        student_id=sid,
        department=department,
        class_name=class_name,
        division=division,
        feedback_round=feedback_round,
        theory_entries=[RatingEntry(faculty_id=f.id, subject_name=f.subject_name,
                                    ratings=dict(r), faculty=f) for f, r in theory],
        practical_entries=[RatingEntry(faculty_id=f.id, subject_name=f.subject_name,
                                       ratings=dict(r), faculty=f) for f, r in practical],
        library=RatingBlock(ratings=dict(library or {})),
        facilities=RatingBlock(ratings=dict(facilities or {})),
        student=student_ref(sid, class_name, division, batch),
    )


def theory_payload(*faculty, score=4):
    return [{"faculty": f.id, "ratings": {f"q{i}": score for i in range(1, 6)}} for f in faculty]
