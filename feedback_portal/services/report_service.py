"""
Report orchestration: one batch read from the record store, then in-memory
aggregation and formatting for the report views.
"""

import logging
from collections import Counter, OrderedDict
from typing import List, Optional

from feedback_portal.config import (
    GROUP_BY_FACULTY,
    LIBRARY,
    PRACTICAL,
    THEORY,
)
from feedback_portal.exceptions import AccessScopeError, NotFoundError
from feedback_portal.models.faculty import Faculty
from feedback_portal.models.feedback import FeedbackStore
from feedback_portal.models.records import Principal
from feedback_portal.models.student import Student
from feedback_portal.services.aggregator import ScoreTally, aggregate, grouping_for
from feedback_portal.services.rollup import AnalysisReport, ReportRow, analyze, finalize, question_averages
from feedback_portal.services.scope_filter import ReportFilters, ScopePredicate, build_predicate
from feedback_portal.utils import is_unrestricted, round2

logger = logging.getLogger(__name__)

NOT_APPLICABLE = 'N/A'
UNKNOWN = 'Unknown'


class ReportService:
    def __init__(self, record_store=None):
        self.record_store = record_store or FeedbackStore()

    def _records(self, predicate: ScopePredicate):
        records = self.record_store.find(predicate)
        logger.info(f"Loaded {len(records)} feedback records for report")
        return records

    def summary(self, principal: Principal, filters: Optional[ReportFilters] = None,
                group_by=None) -> List[ReportRow]:
        """Per-unit averages for everything the principal may see."""
        strategy = grouping_for(group_by)
        predicate = build_predicate(principal, filters)
        units = aggregate(self._records(predicate), strategy, predicate.feedback_type)
        return finalize(units, strategy)

    def analysis(self, principal: Principal, filters: Optional[ReportFilters] = None) -> AnalysisReport:
        """Department analysis report: faculty rows plus the SD statistics."""
        rows = self.summary(principal, filters, GROUP_BY_FACULTY)
        report = analyze(rows)
        logger.info(
            f"Analysis over {len(rows)} faculty: mean={report.stats.grand_mean:.2f} "
            f"sd={report.stats.standard_deviation:.4f}"
        )
        return report

    def faculty_detail(self, faculty_id, feedback_round: Optional[str] = None,
                       principal: Optional[Principal] = None) -> dict:
        """Every theory/practical entry naming one faculty, with flat question averages."""
        faculty = Faculty.get(faculty_id)
        if faculty is None:
            raise NotFoundError("Faculty not found")
        if principal is not None and not principal.can_access(faculty.department):
            raise AccessScopeError(
                f"Access denied. You can only view faculty of {principal.department} department."
            )

        feedback_round = None if is_unrestricted(feedback_round) else str(feedback_round)
        entries = []
        for record in self.record_store.find_by_faculty(faculty.id, feedback_round):
            for section in (record.theory_entries, record.practical_entries):
                match = next((e for e in section if e.faculty_id == faculty.id), None)
                if match is None:
                    continue
                entries.append({
                    'student': {
                        'grNo': record.student.gr_no if record.student else None,
                        'username': record.student.username if record.student else None,
                    },
                    'ratings': dict(match.ratings),
                    'comments': match.comments,
                    'submittedAt': record.submitted_at.isoformat() if record.submitted_at else None,
                })

        return {
            'faculty': faculty.to_dict(),
            'entries': entries,
            'averageRatings': question_averages(e['ratings'] for e in entries),
        }

    def export_rows(self, principal: Principal, filters: Optional[ReportFilters] = None) -> List[dict]:
        """Flat, one-row-per-block export of the requested feedback type (theory by default)."""
        predicate = build_predicate(principal, filters)
        feedback_type = predicate.feedback_type or THEORY

        rows = []
        for record in self._records(predicate):
            student = record.student
            base = {
                'studentGrNo': student.gr_no if student else NOT_APPLICABLE,
                'studentUsername': student.username if student else NOT_APPLICABLE,
                'department': record.department,
                'class': record.class_name,
                'division': record.division,
                'feedbackType': feedback_type,
                'submittedAt': record.submitted_at.isoformat() if record.submitted_at else None,
            }
            if feedback_type in (THEORY, PRACTICAL):
                entries = record.theory_entries if feedback_type == THEORY else record.practical_entries
                for entry in entries:
                    if entry.faculty is None:
                        continue
                    rows.append(dict(
                        base,
                        facultyName=entry.faculty.name or UNKNOWN,
                        subject=entry.faculty.subject_name or entry.subject_name or UNKNOWN,
                        ratings=dict(entry.ratings),
                        comments=entry.comments,
                    ))
            else:
                block = record.library if feedback_type == LIBRARY else record.facilities
                rows.append(dict(
                    base,
                    facultyName=NOT_APPLICABLE,
                    subject=NOT_APPLICABLE,
                    ratings=dict(block.ratings),
                    comments=block.comments,
                ))
        return rows

    # -- dashboard statistics --------------------------------------------------

    def overall_stats(self, principal: Principal) -> dict:
        predicate = build_predicate(principal)
        records = self._records(predicate)
        department = predicate.department

        theory, practical = ScoreTally(), ScoreTally()
        for record in records:
            for entry in record.theory_entries:
                for value in entry.ratings.values():
                    theory.add(value)
            for entry in record.practical_entries:
                for value in entry.ratings.values():
                    practical.add(value)

        return {
            'totalFeedback': len(records),
            'totalStudents': Student.count(department),
            'totalFaculty': Faculty.count(department),
            'theoryAvg': round2(theory.mean) if theory.count else 0,
            'practicalAvg': round2(practical.mean) if practical.count else 0,
        }

    def department_distribution(self, principal: Principal) -> List[dict]:
        counts = Counter(r.department for r in self._records(build_predicate(principal)))
        return [{'department': dept, 'count': count} for dept, count in counts.items()]

    def top_faculty(self, principal: Principal, limit: int = 5) -> List[dict]:
        """Faculty ranked by the mean of every rating value given to them."""
        tallies = OrderedDict()
        for record in self._records(build_predicate(principal)):
            for entry in record.theory_entries + record.practical_entries:
                if entry.faculty is None:
                    continue
                tally = tallies.setdefault(entry.faculty.id, (entry.faculty, ScoreTally()))[1]
                for value in entry.ratings.values():
                    tally.add(value)

        ranked = [
            {
                'id': faculty.id,
                'name': faculty.name,
                'subject': faculty.subject_name,
                'avgRating': round2(tally.mean),
            }
            for faculty, tally in tallies.values()
            if tally.count
        ]
        ranked.sort(key=lambda item: item['avgRating'], reverse=True)
        return ranked[:limit]
