"""
Submission gate: validates a student's consolidated feedback and enforces one
rating record per student per round.
"""

import logging
from typing import Dict, List, Mapping, Optional

from feedback_portal.config import (
    FEEDBACK_ROUNDS,
    LIBRARY,
    MAX_RATING,
    MIN_RATING,
    OTHER_FACILITIES,
    PRACTICAL,
    THEORY,
    question_keys,
)
from feedback_portal.exceptions import (
    AccessScopeError,
    DuplicateSubmissionError,
    NotFoundError,
    ValidationError,
)
from feedback_portal.models.config_store import FeedbackSession
from feedback_portal.models.faculty import Faculty
from feedback_portal.models.feedback import FeedbackStore
from feedback_portal.models.records import RatingBlock, RatingEntry, RatingRecord
from feedback_portal.models.student import Student
from feedback_portal.utils import clean_text

logger = logging.getLogger(__name__)


def validate_ratings(ratings, feedback_type: str, field: str) -> Dict[str, int]:
    """
    Check a ratings mapping against the question set of *feedback_type*.

    Keys must be one of q1..qN for the category and values whole numbers
    between MIN_RATING and MAX_RATING.
    """
    if ratings is None:
        return {}
    if not isinstance(ratings, Mapping):
        raise ValidationError("Ratings must be an object of question keys", field=field)

    allowed = question_keys(feedback_type)
    cleaned = {}
    for key, value in ratings.items():
        if key not in allowed:
            raise ValidationError(f"Unknown question '{key}' for {feedback_type}", field=f"{field}.{key}")
        if isinstance(value, bool):
            raise ValidationError(f"Rating for {key} must be a number", field=f"{field}.{key}")
        try:
            score = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Rating for {key} must be a number", field=f"{field}.{key}")
        if score != value and str(score) != str(value).strip():
            raise ValidationError(f"Rating for {key} must be a whole number", field=f"{field}.{key}")
        if not MIN_RATING <= score <= MAX_RATING:
            raise ValidationError(
                f"Rating for {key} must be between {MIN_RATING} and {MAX_RATING}",
                field=f"{field}.{key}",
            )
        cleaned[key] = score
    return cleaned


def _block(payload, feedback_type: str, field: str) -> RatingBlock:
    if not payload:
        return RatingBlock()
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{field} must be an object", field=field)
    return RatingBlock(
        ratings=validate_ratings(payload.get('ratings'), feedback_type, f"{field}.ratings"),
        comments=clean_text(payload.get('comments')),
    )


def _entries(payload, feedback_type: str) -> List[RatingEntry]:
    if not payload:
        return []
    if not isinstance(payload, list):
        raise ValidationError(f"{feedback_type} must be a list", field=feedback_type)

    entries = []
    for index, item in enumerate(payload):
        field = f"{feedback_type}[{index}]"
        if not isinstance(item, Mapping):
            raise ValidationError("Each entry must be an object", field=field)
        faculty_id = item.get('faculty') or item.get('facultyId')
        if faculty_id in (None, ''):
            raise ValidationError("Faculty is required", field=f"{field}.faculty")
        try:
            faculty_id = int(faculty_id)
        except (TypeError, ValueError):
            raise ValidationError("Faculty id must be numeric", field=f"{field}.faculty")
        entries.append(RatingEntry(
            faculty_id=faculty_id,
            subject_name=clean_text(item.get('subject')),
            ratings=validate_ratings(item.get('ratings'), feedback_type, f"{field}.ratings"),
            comments=clean_text(item.get('comments')),
        ))
    return entries


class SubmissionGate:
    def __init__(self, feedback_session=None, record_store=None):
        self.feedback_session = feedback_session or FeedbackSession()
        self.record_store = record_store or FeedbackStore()

    def submit(self, student_id, payload: Mapping) -> RatingRecord:
        """Validate and store one student's feedback for the active round."""
        student = Student.get(student_id)
        if student is None:
            raise NotFoundError("Student not found")

        status = self.feedback_session.status()
        if not status.is_active:
            raise ValidationError("Feedback session is not active")

        if self.record_store.exists(student.id, status.active_round):
            raise DuplicateSubmissionError("Feedback already submitted.")

        payload = payload or {}
        theory = _entries(payload.get(THEORY), THEORY)
        practical = _entries(payload.get(PRACTICAL), PRACTICAL)

        # One lookup for every referenced faculty
        referenced = {e.faculty_id for e in theory + practical}
        known = Faculty.get_many(referenced)
        missing = sorted(referenced - set(known))
        if missing:
            raise NotFoundError(f"Faculty not found: {', '.join(str(m) for m in missing)}")
        for entry in theory + practical:
            entry.faculty = known[entry.faculty_id]
            if not entry.subject_name:
                entry.subject_name = entry.faculty.subject_name

        record = RatingRecord(
            student_id=student.id,
            department=student.department,
            class_name=student.class_name,
            division=student.division,
            feedback_round=status.active_round,
            theory_entries=theory,
            practical_entries=practical,
            library=_block(payload.get(LIBRARY), LIBRARY, LIBRARY),
            facilities=_block(payload.get('facilities'), OTHER_FACILITIES, 'facilities'),
            student=student,
        )
        # The unique index still guards concurrent double submits
        stored = self.record_store.insert(record)
        logger.info(f"Feedback submitted by {student.gr_no} for round {status.active_round}")
        return stored

    def reset(self, student_id, feedback_round: Optional[str] = None) -> int:
        """Student-initiated reset of their own submission.

        Without an explicit round only the active round is withdrawn; records
        from earlier rounds stay.
        """
        feedback_round = _round_or_none(feedback_round) or self.feedback_session.status().active_round
        deleted = self.record_store.delete_for_student(student_id, feedback_round)
        if deleted == 0:
            raise NotFoundError("No feedback found to reset.")
        return deleted

    def admin_reset(self, principal, student_id, feedback_round: Optional[str] = None) -> int:
        """Admin reset of a student's feedback, limited to the admin's department."""
        student = Student.get(student_id)
        if student is None:
            raise NotFoundError("Student not found")
        if not principal.can_access(student.department):
            raise AccessScopeError(
                f"Access denied. You can only manage students of {principal.department} department."
            )
        deleted = self.record_store.delete_for_student(student.id, _round_or_none(feedback_round))
        if deleted == 0:
            Student.set_feedback_flags(student.id, False)
        logger.info(f"Admin {principal.id} reset feedback for {student.gr_no} ({deleted} record(s))")
        return deleted

    def form_data(self, student_id) -> dict:
        """Faculty lists and submission state for a student's feedback form."""
        student = Student.get(student_id)
        if student is None:
            raise NotFoundError("Student not found")

        status = self.feedback_session.status()
        theory = Faculty.get_by_section(student.department, student.class_name,
                                        student.division, is_practical=False)
        practical = [
            f for f in Faculty.get_by_section(student.department, student.class_name,
                                              student.division, is_practical=True)
            if not f.practical_batches or student.practical_batch in f.practical_batches
        ]
        return {
            'theoryFaculty': [f.to_dict() for f in theory],
            'practicalFaculty': [f.to_dict() for f in practical],
            'studentInfo': {
                'name': student.username,
                'class': student.class_name,
                'division': student.division,
                'department': student.department,
                'practicalBatch': student.practical_batch,
            },
            'session': status.to_dict(),
            'isSubmitted': self.record_store.exists(student.id, status.active_round),
        }


def _round_or_none(feedback_round):
    if feedback_round in (None, ''):
        return None
    feedback_round = str(feedback_round)
    if feedback_round not in FEEDBACK_ROUNDS:
        raise ValidationError(
            f"Feedback round must be one of: {', '.join(FEEDBACK_ROUNDS)}", field='feedbackRound'
        )
    return feedback_round
