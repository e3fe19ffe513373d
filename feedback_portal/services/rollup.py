"""Turn aggregation units into report rows and department statistics."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from feedback_portal.config import NO_BATCH
from feedback_portal.services.aggregator import AggregationUnit, ScoreTally, grouping_for
from feedback_portal.utils import round2


@dataclass(slots=True)
class ReportRow:
    faculty_id: object
    faculty_name: str
    subject_name: str
    division: str
    class_name: str
    batch: str
    total_feedbacks: int
    average_rating: float
    theory_average: Optional[float]
    practical_average: Optional[float]
    question_average_ratings: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'facultyId': self.faculty_id,
            'facultyName': self.faculty_name,
            'subjectName': self.subject_name,
            'division': self.division,
            'class': self.class_name,
            'batch': self.batch,
            'totalFeedbacks': self.total_feedbacks,
            'averageRating': self.average_rating,
            'theoryAverage': self.theory_average,
            'practicalAverage': self.practical_average,
            'questionAverageRatings': dict(self.question_average_ratings),
        }


def _unweighted_mean(tallies: Mapping) -> Optional[float]:
    """Mean of per-assignment means; every teaching assignment weighs the same."""
    means = [t.mean for t in tallies.values() if t.count]
    if not means:
        return None
    return round2(sum(means) / len(means))


def _running_mean(tally: ScoreTally) -> Optional[float]:
    return round2(tally.mean) if tally.count else None


def finalize(units: Mapping[object, AggregationUnit], group_by=None) -> List[ReportRow]:
    """Compute averages for every unit, keeping the units' order."""
    strategy = grouping_for(group_by)
    rows = []
    for unit in units.values():
        question_averages = {
            key: round2(tally.sum / tally.count)
            for key, tally in unit.question_scores.items()
            if tally.count
        }
        average = round2(unit.total_score_sum / unit.total_feedbacks) if unit.total_feedbacks else 0

        if strategy.tracks_assignments:
            theory_average = _unweighted_mean(unit.theory_units)
            practical_average = _unweighted_mean(unit.practical_units)
        else:
            theory_average = _running_mean(unit.theory)
            practical_average = _running_mean(unit.practical)

        rows.append(ReportRow(
            faculty_id=unit.faculty_id,
            faculty_name=unit.faculty_name,
            subject_name=unit.subject_name,
            division=unit.division,
            class_name=unit.class_name,
            batch=unit.batch or NO_BATCH,
            total_feedbacks=unit.total_feedbacks,
            average_rating=average,
            theory_average=theory_average,
            practical_average=practical_average,
            question_average_ratings=question_averages,
        ))
    return rows


# -- Department analysis report ------------------------------------------------

@dataclass(slots=True)
class AnalysisRow:
    row: ReportRow
    x: float
    y: float
    z: float
    total_score: float

    def to_dict(self) -> dict:
        data = self.row.to_dict()
        data.update({
            'th': self.row.theory_average,
            'pr': self.row.practical_average,
            'totalScore': round2(self.total_score),
            'x': self.x,
            'y': self.y,
            'z': self.z,
        })
        return data


@dataclass(slots=True)
class AnalysisStats:
    grand_mean: float = 0.0
    total_z: float = 0.0
    standard_deviation: float = 0.0
    total_entries: int = 0

    def to_dict(self) -> dict:
        return {
            'grandMean': round2(self.grand_mean),
            'totalZ': round(self.total_z, 4),
            'sd': round(self.standard_deviation, 4),
            'totalFaculty': self.total_entries,
        }


@dataclass(slots=True)
class AnalysisReport:
    rows: List[AnalysisRow] = field(default_factory=list)
    stats: AnalysisStats = field(default_factory=AnalysisStats)

    def to_dict(self) -> dict:
        return {
            'rows': [r.to_dict() for r in self.rows],
            'stats': self.stats.to_dict(),
        }


def analyze(rows: Sequence[ReportRow]) -> AnalysisReport:
    """Standard-deviation analysis over faculty rows.

    x is the mean of whichever of the theory/practical averages exist. The
    divisor n counts filled score cells (up to two per row), not rows.
    """
    filled_cells = 0
    prepared = []
    for row in rows:
        cells = [v for v in (row.theory_average, row.practical_average) if v is not None]
        filled_cells += len(cells)
        x = sum(cells) / len(cells) if cells else 0.0
        prepared.append((row, x, sum(cells)))

    scored = [x for _, x, _ in prepared if x > 0]
    grand_mean = sum(scored) / len(scored) if scored else 0.0

    sum_z = 0.0
    analysis_rows = []
    for row, x, total_score in prepared:
        if x > 0:
            y = x - grand_mean
            z = y * y
            sum_z += z
        else:
            y = z = 0.0
        analysis_rows.append(AnalysisRow(row=row, x=x, y=y, z=z, total_score=total_score))

    sd = math.sqrt(sum_z / filled_cells) if filled_cells else 0.0
    return AnalysisReport(
        rows=analysis_rows,
        stats=AnalysisStats(
            grand_mean=grand_mean,
            total_z=sum_z,
            standard_deviation=sd,
            total_entries=filled_cells,
        ),
    )


def question_averages(ratings_list: Iterable[Mapping[str, int]]) -> Dict[str, float]:
    """Flat per-question mean over rating maps, every submission weighted equally."""
    tallies: Dict[str, ScoreTally] = {}
    for ratings in ratings_list:
        for key, value in (ratings or {}).items():
            tallies.setdefault(key, ScoreTally()).add(value)
    return {key: round2(t.sum / t.count) for key, t in tallies.items()}
