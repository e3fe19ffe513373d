"""Domain types shared by the stores and the reporting engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from feedback_portal.config import ALL, NO_BATCH


@dataclass(slots=True, frozen=True)
class Principal:
    """Already-authenticated caller with its department scope claim."""

    id: str
    role: str
    department: str

    @property
    def unrestricted(self) -> bool:
        return self.department == ALL

    def can_access(self, department: str) -> bool:
        return self.unrestricted or self.department == department


@dataclass(slots=True, frozen=True)
class FacultyRef:
    id: int
    name: str
    subject_name: str
    department: str = ''
    class_name: str = ''
    division: str = ''
    is_practical_faculty: bool = False
    is_elective: bool = False
    practical_batches: FrozenSet[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'facultyName': self.name,
            'subjectName': self.subject_name,
            'department': self.department,
            'class': self.class_name,
            'division': self.division,
            'isPracticalFaculty': self.is_practical_faculty,
            'isElective': self.is_elective,
            'practicalBatches': sorted(self.practical_batches),
        }


@dataclass(slots=True, frozen=True)
class StudentRef:
    id: int
    gr_no: str
    username: str
    department: str
    class_name: str
    division: str
    practical_batch: str = NO_BATCH
    eligibility: bool = True

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'grNo': self.gr_no,
            'username': self.username,
            'department': self.department,
            'class': self.class_name,
            'division': self.division,
            'practicalBatch': self.practical_batch,
            'eligibility': self.eligibility,
        }


@dataclass(slots=True)
class RatingBlock:
    """Ratings for one block (library, facilities) keyed q1..qN."""

    ratings: Dict[str, int] = field(default_factory=dict)
    comments: str = ''


@dataclass(slots=True)
class RatingEntry:
    """One theory or practical faculty block inside a submission."""

    faculty_id: Optional[int]
    subject_name: str = ''
    ratings: Dict[str, int] = field(default_factory=dict)
    comments: str = ''
    # Resolved by the store; None when the faculty no longer exists
    faculty: Optional[FacultyRef] = None


@dataclass(slots=True)
class RatingRecord:
    """One student's consolidated submission for one round."""

    student_id: int
    department: str
    class_name: str
    division: str
    feedback_round: str
    submitted_at: Optional[datetime] = None
    theory_entries: List[RatingEntry] = field(default_factory=list)
    practical_entries: List[RatingEntry] = field(default_factory=list)
    library: RatingBlock = field(default_factory=RatingBlock)
    facilities: RatingBlock = field(default_factory=RatingBlock)
    id: Optional[int] = None
    student: Optional[StudentRef] = None

    @property
    def practical_batch(self) -> str:
        if self.student is None or not self.student.practical_batch:
            return NO_BATCH
        return self.student.practical_batch

    def to_dict(self) -> dict:
        def entry_dict(entry: RatingEntry) -> dict:
            return {
                'facultyId': entry.faculty_id,
                'subject': entry.subject_name,
                'ratings': dict(entry.ratings),
                'comments': entry.comments,
            }

        return {
            'id': self.id,
            'studentId': self.student_id,
            'department': self.department,
            'class': self.class_name,
            'division': self.division,
            'feedbackRound': self.feedback_round,
            'submittedAt': self.submitted_at.isoformat() if self.submitted_at else None,
            'theory': [entry_dict(e) for e in self.theory_entries],
            'practical': [entry_dict(e) for e in self.practical_entries],
            'library': {'ratings': dict(self.library.ratings), 'comments': self.library.comments},
            'facilities': {'ratings': dict(self.facilities.ratings), 'comments': self.facilities.comments},
        }


@dataclass(slots=True, frozen=True)
class FeedbackSessionStatus:
    is_active: bool = False
    active_round: str = '1'

    def to_dict(self) -> dict:
        return {'isActive': self.is_active, 'activeRound': self.active_round}
