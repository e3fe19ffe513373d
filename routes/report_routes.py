from flask import Blueprint, request, jsonify, make_response
from datetime import datetime
import os
import logging

from feedback_portal.auth import current_principal, require_role
from feedback_portal.config import UPLOAD_FOLDER
from feedback_portal.exceptions import ValidationError
from feedback_portal.services.export_service import EXPORT_FORMATS, write_export
from feedback_portal.services.report_service import ReportService
from feedback_portal.services.scope_filter import ReportFilters, build_predicate
from report_generator import generate_analysis_report, generate_summary_report
from report_non_submission import find_non_submissions, generate_non_submission_report

logger = logging.getLogger(__name__)

report_bp = Blueprint('report', __name__)

EXPORT_MIMETYPES = {
    'csv': 'text/csv',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}


def _filters():
    return ReportFilters.from_mapping(request.args)


def _file_response(path, mimetype, inline=False):
    """Read a generated file into a response and remove it from disk."""
    with open(path, 'rb') as f:
        content = f.read()

    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"Could not remove generated file {path}: {e}")

    response = make_response(content)
    response.headers['Content-Type'] = mimetype
    disposition = 'inline' if inline else 'attachment'
    response.headers['Content-Disposition'] = f'{disposition}; filename={os.path.basename(path)}'
    return response


def _output_path(prefix, extension):
    os.makedirs(UPLOAD_FOLDER, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    return os.path.join(UPLOAD_FOLDER, f"{prefix}_{timestamp}.{extension}")


@report_bp.route('/feedback/summary', methods=['GET'])
@require_role('admin')
def feedback_summary():
    rows = ReportService().summary(current_principal(), _filters(), request.args.get('groupBy'))
    return jsonify({'success': True, 'data': [row.to_dict() for row in rows]})


@report_bp.route('/feedback/analysis', methods=['GET'])
@require_role('admin')
def feedback_analysis():
    report = ReportService().analysis(current_principal(), _filters())
    return jsonify({'success': True, **report.to_dict()})


@report_bp.route('/feedback/faculty/<int:faculty_id>', methods=['GET'])
@require_role('admin')
def faculty_feedback(faculty_id):
    detail = ReportService().faculty_detail(
        faculty_id, request.args.get('feedbackRound'), current_principal()
    )
    return jsonify({'success': True, **detail})


@report_bp.route('/feedback/export', methods=['GET'])
@require_role('admin')
def export_feedback():
    fmt = (request.args.get('format') or 'json').lower()
    if fmt != 'json' and fmt not in EXPORT_FORMATS:
        raise ValidationError(f"Unsupported export format '{fmt}'", field='format')

    rows = ReportService().export_rows(current_principal(), _filters())
    if fmt == 'json':
        return jsonify({'success': True, 'data': rows})

    path = write_export(rows, _output_path('feedback_export', fmt), fmt)
    return _file_response(path, EXPORT_MIMETYPES[fmt])


@report_bp.route('/reports/stats', methods=['GET'])
@require_role('admin')
def overall_stats():
    return jsonify({'success': True, 'data': ReportService().overall_stats(current_principal())})


@report_bp.route('/reports/department-distribution', methods=['GET'])
@require_role('admin')
def department_distribution():
    data = ReportService().department_distribution(current_principal())
    return jsonify({'success': True, 'data': data})


@report_bp.route('/reports/top-faculty', methods=['GET'])
@require_role('admin')
def top_faculty():
    try:
        limit = int(request.args.get('limit', 5))
    except ValueError:
        raise ValidationError('limit must be a number', field='limit')
    data = ReportService().top_faculty(current_principal(), limit)
    return jsonify({'success': True, 'data': data})


@report_bp.route('/reports/summary.pdf', methods=['GET'])
@require_role('admin')
def summary_pdf():
    principal = current_principal()
    filters = _filters()
    predicate = build_predicate(principal, filters)
    rows = ReportService().summary(principal, filters, request.args.get('groupBy'))
    path = generate_summary_report(rows, predicate.department, predicate.feedback_round,
                                   output_path=_output_path('feedback_report', 'pdf'))
    return _file_response(path, 'application/pdf', inline=request.args.get('inline') == '1')


@report_bp.route('/reports/analysis.pdf', methods=['GET'])
@require_role('admin')
def analysis_pdf():
    principal = current_principal()
    filters = _filters()
    predicate = build_predicate(principal, filters)
    report = ReportService().analysis(principal, filters)
    path = generate_analysis_report(report, predicate.department, predicate.feedback_round,
                                    output_path=_output_path('analysis_report', 'pdf'))
    return _file_response(path, 'application/pdf', inline=request.args.get('inline') == '1')


def _non_submission_scope():
    predicate = build_predicate(current_principal(), _filters())
    if predicate.department is None:
        raise ValidationError('department is required', field='department')
    return predicate


@report_bp.route('/reports/non-submission', methods=['GET'])
@require_role('admin')
def non_submission():
    predicate = _non_submission_scope()
    students, pending = find_non_submissions(predicate.department, predicate.class_name,
                                             predicate.division, predicate.feedback_round)
    return jsonify({
        'success': True,
        'total': len(students),
        'submitted': len(students) - len(pending),
        'students': [s.to_dict() for s in pending],
    })


@report_bp.route('/reports/non-submission.pdf', methods=['GET'])
@require_role('admin')
def non_submission_pdf():
    predicate = _non_submission_scope()
    path = generate_non_submission_report(predicate.department, predicate.class_name,
                                          predicate.division, predicate.feedback_round,
                                          output_path=_output_path('non_submission_report', 'pdf'))
    return _file_response(path, 'application/pdf', inline=request.args.get('inline') == '1')
