"""Unit tests for services.scope_filter."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import rating_record
from feedback_portal.exceptions import InvalidFilterError, ValidationError
from feedback_portal.models.records import Principal
from feedback_portal.services.scope_filter import ReportFilters, ScopePredicate, build_predicate


def test_scoped_principal_ignores_foreign_department_filter():
    principal = Principal(id="a1", role="admin", department="AIML")
    predicate = build_predicate(principal, ReportFilters(department="CS"))

    assert predicate.department == "AIML"
    assert predicate.matches(rating_record(department="AIML"))
    assert not predicate.matches(rating_record(department="CS"))


def test_unrestricted_principal_uses_department_filter():
    principal = Principal(id="root", role="admin", department="All")

    assert build_predicate(principal, ReportFilters(department="CS")).department == "CS"
    assert build_predicate(principal, ReportFilters(department="All")).department is None
    assert build_predicate(principal).department is None


def test_all_sentinel_means_unrestricted():
    principal = Principal(id="root", role="admin", department="All")
    predicate = build_predicate(
        principal, ReportFilters(class_name="All", division="", feedback_round="All")
    )

    assert predicate.class_name is None
    assert predicate.division is None
    assert predicate.feedback_round is None


def test_date_only_bounds_are_inclusive():
    principal = Principal(id="root", role="admin", department="All")
    predicate = build_predicate(
        principal, ReportFilters(from_date="2024-03-01", to_date="2024-03-01")
    )

    record = rating_record()
    record.submitted_at = datetime(2024, 3, 1, 23, 59, 59)
    assert predicate.matches(record)

    record.submitted_at = datetime(2024, 3, 2, 0, 0, 0)
    assert not predicate.matches(record)


def test_offset_timestamps_are_converted_to_local_time():
    principal = Principal(id="root", role="admin", department="All")
    predicate = build_predicate(principal, ReportFilters(from_date="2026-10-19T10:00:00+05:30"))

    aware = datetime(2026, 10, 19, 10, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    assert predicate.submitted_from == aware.astimezone().replace(tzinfo=None)
    assert predicate.submitted_from.tzinfo is None


def test_inverted_date_range_is_rejected():
    principal = Principal(id="root", role="admin", department="All")
    with pytest.raises(InvalidFilterError):
        build_predicate(principal, ReportFilters(from_date="2024-05-01", to_date="2024-04-01"))


def test_malformed_date_reports_field():
    principal = Principal(id="root", role="admin", department="All")
    with pytest.raises(ValidationError) as excinfo:
        build_predicate(principal, ReportFilters(from_date="yesterday"))
    assert excinfo.value.field == "fromDate"


def test_unknown_feedback_type_is_rejected():
    principal = Principal(id="root", role="admin", department="All")
    with pytest.raises(InvalidFilterError):
        build_predicate(principal, ReportFilters(feedback_type="sports"))


def test_from_mapping_reads_api_names():
    filters = ReportFilters.from_mapping({
        "department": "AIML", "class": "SE", "division": "B",
        "feedbackType": "practical", "feedbackRound": "2",
    })

    assert filters.class_name == "SE"
    assert filters.division == "B"
    assert filters.feedback_type == "practical"
    assert filters.feedback_round == "2"


def test_to_sql_renders_only_set_fields():
    where, params = ScopePredicate(department="AIML", feedback_round="2").to_sql("f")
    assert where == "f.department = ? AND f.feedback_round = ?"
    assert params == ["AIML", "2"]

    assert ScopePredicate().to_sql("f") == ("1 = 1", [])
