"""
Turns a principal's department scope plus optional report filters into a
predicate over rating records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Mapping, Optional, Tuple

from feedback_portal.config import FEEDBACK_TYPES
from feedback_portal.exceptions import InvalidFilterError
from feedback_portal.models.records import Principal, RatingRecord
from feedback_portal.utils import clean_text, format_timestamp, is_unrestricted, parse_day

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReportFilters:
    """Optional query filters as sent by the report views."""

    department: Optional[str] = None
    class_name: Optional[str] = None
    division: Optional[str] = None
    feedback_type: Optional[str] = None
    feedback_round: Optional[str] = None
    from_date: Optional[object] = None
    to_date: Optional[object] = None

    @classmethod
    def from_mapping(cls, args: Mapping) -> "ReportFilters":
        """Build filters from request args using the API's camelCase names."""
        return cls(
            department=args.get('department') or None,
            class_name=args.get('class') or None,
            division=args.get('division') or None,
            feedback_type=args.get('feedbackType') or None,
            feedback_round=args.get('feedbackRound') or None,
            from_date=args.get('fromDate') or None,
            to_date=args.get('toDate') or None,
        )


@dataclass(slots=True, frozen=True)
class ScopePredicate:
    """Match conditions for rating records. None means unrestricted."""

    department: Optional[str] = None
    class_name: Optional[str] = None
    division: Optional[str] = None
    feedback_round: Optional[str] = None
    submitted_from: Optional[datetime] = None
    submitted_to: Optional[datetime] = None
    feedback_type: Optional[str] = None

    def matches(self, record: RatingRecord) -> bool:
        if self.department is not None and record.department != self.department:
            return False
        if self.class_name is not None and record.class_name != self.class_name:
            return False
        if self.division is not None and record.division != self.division:
            return False
        if self.feedback_round is not None and record.feedback_round != self.feedback_round:
            return False
        if self.submitted_from is not None or self.submitted_to is not None:
            if record.submitted_at is None:
                return False
            if self.submitted_from is not None and record.submitted_at < self.submitted_from:
                return False
            if self.submitted_to is not None and record.submitted_at > self.submitted_to:
                return False
        return True

    def to_sql(self, alias: str = 'f') -> Tuple[str, List]:
        """Render the predicate as a WHERE clause over the feedback table."""
        clauses = []
        params: List = []
        for column, value in (
            ('department', self.department),
            ('class', self.class_name),
            ('division', self.division),
            ('feedback_round', self.feedback_round),
        ):
            if value is not None:
                clauses.append(f'{alias}.{column} = ?')
                params.append(value)
        if self.submitted_from is not None:
            clauses.append(f'{alias}.submitted_at >= ?')
            params.append(format_timestamp(self.submitted_from))
        if self.submitted_to is not None:
            clauses.append(f'{alias}.submitted_at <= ?')
            params.append(format_timestamp(self.submitted_to))
        return (' AND '.join(clauses) or '1 = 1'), params


def validate_feedback_type(feedback_type: Optional[str]) -> Optional[str]:
    if is_unrestricted(feedback_type):
        return None
    feedback_type = clean_text(feedback_type)
    if feedback_type not in FEEDBACK_TYPES:
        raise InvalidFilterError(
            f"Unknown feedback type '{feedback_type}'. Expected one of: {', '.join(FEEDBACK_TYPES)}"
        )
    return feedback_type


def build_predicate(principal: Principal, filters: Optional[ReportFilters] = None) -> ScopePredicate:
    """Build the record predicate for *principal* and *filters*.

    A department-scoped principal is always pinned to its own department;
    the query's department filter only applies to unrestricted principals.
    """
    filters = filters or ReportFilters()

    if not principal.unrestricted:
        department = principal.department
        if filters.department and clean_text(filters.department) != department:
            logger.info(
                f"Ignoring department filter '{filters.department}' outside scope of {principal.department}"
            )
    elif not is_unrestricted(filters.department):
        department = clean_text(filters.department)
    else:
        department = None

    submitted_from = parse_day(filters.from_date, 'fromDate')
    submitted_to = parse_day(filters.to_date, 'toDate', end_of_day=True)
    if submitted_from and submitted_to and submitted_from > submitted_to:
        raise InvalidFilterError("fromDate must not be later than toDate")

    return ScopePredicate(
        department=department,
        class_name=None if is_unrestricted(filters.class_name) else clean_text(filters.class_name),
        division=None if is_unrestricted(filters.division) else clean_text(filters.division),
        feedback_round=None if is_unrestricted(filters.feedback_round) else clean_text(filters.feedback_round),
        submitted_from=submitted_from,
        submitted_to=submitted_to,
        feedback_type=validate_feedback_type(filters.feedback_type),
    )
