"""Group rating records into aggregation units.

Each grouping strategy decides the identity of a unit. Keys are tuples, so a
theory key never collides with a practical or section key of another shape.

    ==========  ===============================  =====================================
    groupBy     theory / practical key           library / facilities key
    ==========  ===============================  =====================================
    division    (faculty, division[, batch])     (section, division)
    class       (faculty, class, subject[,b])    (section, class)
    faculty     faculty display name             suppressed
    ==========  ===============================  =====================================
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Tuple

from feedback_portal.config import (
    FACILITIES_UNIT_NAME,
    GROUP_BY_CLASS,
    GROUP_BY_DIVISION,
    GROUP_BY_FACULTY,
    GROUP_BY_OPTIONS,
    LIBRARY,
    LIBRARY_UNIT_NAME,
    NO_BATCH,
    OTHER_FACILITIES,
    PRACTICAL,
    THEORY,
)
from feedback_portal.exceptions import InvalidFilterError
from feedback_portal.models.records import RatingEntry, RatingRecord

logger = logging.getLogger(__name__)

SECTION_SUBJECT = 'General'


@dataclass(slots=True)
class ScoreTally:
    sum: float = 0.0
    count: int = 0

    def add(self, value: float) -> None:
        self.sum += value
        self.count += 1

    @property
    def mean(self) -> Optional[float]:
        return self.sum / self.count if self.count else None


@dataclass(slots=True)
class AggregationUnit:
    """Running counters for one grouped bucket of submissions."""

    key: Tuple
    faculty_id: object
    faculty_name: str
    subject_name: str
    division: str
    class_name: str
    batch: str = NO_BATCH
    total_feedbacks: int = 0
    total_score_sum: float = 0.0
    question_scores: Dict[str, ScoreTally] = field(default_factory=dict)
    theory: ScoreTally = field(default_factory=ScoreTally)
    practical: ScoreTally = field(default_factory=ScoreTally)
    # Only filled by the faculty strategy: one tally per teaching assignment
    theory_units: Dict[Tuple, ScoreTally] = field(default_factory=dict)
    practical_units: Dict[Tuple, ScoreTally] = field(default_factory=dict)


class GroupingStrategy:
    name = ''
    tracks_assignments = False
    includes_sections = True

    def theory_key(self, entry: RatingEntry, record: RatingRecord) -> Tuple:
        raise NotImplementedError

    def practical_key(self, entry: RatingEntry, record: RatingRecord, batch: str) -> Tuple:
        raise NotImplementedError

    def section_key(self, section: str, record: RatingRecord) -> Tuple:
        raise NotImplementedError


class ByDivision(GroupingStrategy):
    name = GROUP_BY_DIVISION

    def theory_key(self, entry, record):
        return (entry.faculty.id, record.division)

    def practical_key(self, entry, record, batch):
        return (entry.faculty.id, record.division, batch)

    def section_key(self, section, record):
        return (section, record.division)


class ByClass(GroupingStrategy):
    name = GROUP_BY_CLASS

    def theory_key(self, entry, record):
        return (entry.faculty.id, record.class_name, _subject(entry))

    def practical_key(self, entry, record, batch):
        return (entry.faculty.id, record.class_name, _subject(entry), batch)

    def section_key(self, section, record):
        return (section, record.class_name)


class ByFaculty(GroupingStrategy):
    """Merge everything sharing a faculty display name into one unit."""

    name = GROUP_BY_FACULTY
    tracks_assignments = True
    includes_sections = False

    def theory_key(self, entry, record):
        return (entry.faculty.name,)

    def practical_key(self, entry, record, batch):
        return (entry.faculty.name,)

    def section_key(self, section, record):
        return None


STRATEGIES = {
    GROUP_BY_DIVISION: ByDivision(),
    GROUP_BY_CLASS: ByClass(),
    GROUP_BY_FACULTY: ByFaculty(),
}


def grouping_for(group_by: Optional[str]) -> GroupingStrategy:
    """Resolve a groupBy value; empty means the division default."""
    if isinstance(group_by, GroupingStrategy):
        return group_by
    if not group_by:
        return STRATEGIES[GROUP_BY_DIVISION]
    try:
        return STRATEGIES[group_by]
    except KeyError:
        raise InvalidFilterError(
            f"Unknown groupBy '{group_by}'. Expected one of: {', '.join(GROUP_BY_OPTIONS)}"
        )


def _subject(entry: RatingEntry) -> str:
    return entry.faculty.subject_name or entry.subject_name


def accumulate(
    units: "OrderedDict[Tuple, AggregationUnit]",
    key: Tuple,
    *,
    faculty_id,
    name: str,
    subject: str,
    division: str,
    class_name: str,
    ratings: Mapping[str, int],
    batch: str = NO_BATCH,
    category: Optional[str] = None,
    tracks_assignments: bool = False,
) -> AggregationUnit:
    """Add one rating block to the unit at *key*, creating it on first use."""
    unit = units.get(key)
    if unit is None:
        unit = AggregationUnit(
            key=key,
            faculty_id=faculty_id,
            faculty_name=name,
            subject_name=subject,
            division=division,
            class_name=class_name,
            batch=batch,
        )
        units[key] = unit

    unit.total_feedbacks += 1

    values = list(ratings.values()) if ratings else []
    if values:
        block_average = sum(values) / len(values)
        unit.total_score_sum += block_average

        if category == THEORY:
            unit.theory.add(block_average)
        elif category == PRACTICAL:
            unit.practical.add(block_average)

        if tracks_assignments and category in (THEORY, PRACTICAL):
            assignment = (class_name, division, subject, batch)
            target = unit.theory_units if category == THEORY else unit.practical_units
            target.setdefault(assignment, ScoreTally()).add(block_average)

        for question_key, value in ratings.items():
            unit.question_scores.setdefault(question_key, ScoreTally()).add(value)

    return unit


def aggregate(
    records: Iterable[RatingRecord],
    group_by=GROUP_BY_DIVISION,
    feedback_type: Optional[str] = None,
) -> "OrderedDict[Tuple, AggregationUnit]":
    """Fan *records* out into aggregation units keyed by the grouping strategy.

    Entries whose faculty could not be resolved are skipped. The input is
    not mutated; units come back in first-seen order.
    """
    strategy = grouping_for(group_by)
    units: "OrderedDict[Tuple, AggregationUnit]" = OrderedDict()

    def wants(section: str) -> bool:
        return feedback_type is None or feedback_type == section

    for record in records:
        if wants(THEORY):
            for entry in record.theory_entries:
                if entry.faculty is None:
                    continue
                accumulate(
                    units,
                    strategy.theory_key(entry, record),
                    faculty_id=entry.faculty.id,
                    name=entry.faculty.name,
                    subject=_subject(entry),
                    division=record.division,
                    class_name=record.class_name,
                    ratings=entry.ratings,
                    batch=NO_BATCH,
                    category=THEORY,
                    tracks_assignments=strategy.tracks_assignments,
                )

        if wants(PRACTICAL):
            batch = record.practical_batch
            for entry in record.practical_entries:
                if entry.faculty is None:
                    continue
                accumulate(
                    units,
                    strategy.practical_key(entry, record, batch),
                    faculty_id=entry.faculty.id,
                    name=entry.faculty.name,
                    subject=_subject(entry),
                    division=record.division,
                    class_name=record.class_name,
                    ratings=entry.ratings,
                    batch=batch,
                    category=PRACTICAL,
                    tracks_assignments=strategy.tracks_assignments,
                )

        if not strategy.includes_sections:
            continue

        for section, block, unit_name in (
            (LIBRARY, record.library, LIBRARY_UNIT_NAME),
            (OTHER_FACILITIES, record.facilities, FACILITIES_UNIT_NAME),
        ):
            if not wants(section) or not block.ratings:
                continue
            accumulate(
                units,
                strategy.section_key(section, record),
                faculty_id=section,
                name=unit_name,
                subject=SECTION_SUBJECT,
                division=record.division,
                class_name=record.class_name,
                ratings=block.ratings,
                batch=NO_BATCH,
                category=section,
            )

    logger.debug(f"Aggregated into {len(units)} units (groupBy={strategy.name})")
    return units
