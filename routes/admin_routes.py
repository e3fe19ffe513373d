from flask import Blueprint, request, jsonify, send_file
from werkzeug.utils import secure_filename
import os
import logging

from feedback_portal.auth import current_principal, require_role
from feedback_portal.config import UPLOAD_FOLDER, ALLOWED_EXTENSIONS, MAX_FILE_SIZE
from feedback_portal.exceptions import AccessScopeError, NotFoundError, ValidationError
from feedback_portal.models.config_store import FeedbackSession
from feedback_portal.models.faculty import Faculty
from feedback_portal.models.student import Student
from feedback_portal.services.excel_service import process_student_excel, create_sample_excel
from feedback_portal.services.mapping_service import process_faculty_excel, create_sample_faculty_excel
from feedback_portal.services.submission_service import SubmissionGate
from feedback_portal.utils import clean_text

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


def allowed_file(filename):
    """Check if file has an allowed extension."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def _require_fields(data, *fields):
    for name in fields:
        if not clean_text(data.get(name)):
            raise ValidationError(f"{name} is required", field=name)


def _check_scope(principal, department, noun):
    if not principal.can_access(department):
        raise AccessScopeError(
            f"Access denied. You can only manage {noun} of {principal.department} department."
        )


def _save_upload():
    """Validate and store the uploaded Excel file. Returns its path."""
    if 'file' not in request.files:
        raise ValidationError('No file uploaded', field='file')

    file = request.files['file']

    if file.filename == '':
        raise ValidationError('No file selected', field='file')

    if not allowed_file(file.filename):
        raise ValidationError('Invalid file type. Please upload an Excel file (.xlsx or .xls)', field='file')

    # Check file size
    file.seek(0, os.SEEK_END)
    file_size = file.tell()
    file.seek(0)

    if file_size > MAX_FILE_SIZE:
        raise ValidationError(
            f'File too large. Maximum size is {MAX_FILE_SIZE / (1024*1024):.0f}MB', field='file'
        )

    os.makedirs(UPLOAD_FOLDER, exist_ok=True)
    filepath = os.path.join(UPLOAD_FOLDER, secure_filename(file.filename))
    file.save(filepath)
    return filepath


def _import(processor, *args):
    filepath = _save_upload()
    try:
        success, message, stats = processor(filepath, *args)
    finally:
        try:
            os.remove(filepath)
        except OSError as e:
            logger.warning(f"Could not remove uploaded file {filepath}: {e}")

    return jsonify({
        'success': success,
        'message': message,
        'stats': stats
    }), 200 if success else 400


@admin_bp.route('/config/toggle-feedback', methods=['POST'])
@require_role('admin')
def toggle_feedback():
    data = request.get_json(silent=True) or {}
    status = FeedbackSession().toggle(data.get('isActive'), data.get('activeRound'))
    return jsonify({
        'success': True,
        'message': f"Feedback session {'activated' if status.is_active else 'deactivated'} "
                   f"for round {status.active_round}",
        **status.to_dict(),
    })


@admin_bp.route('/students/register', methods=['POST'])
@require_role('admin')
def register_student():
    principal = current_principal()
    data = request.get_json(silent=True) or {}
    _require_fields(data, 'grNo', 'username', 'department', 'class', 'division')
    _check_scope(principal, clean_text(data['department']), 'students')

    added, _, _ = Student.bulk_add([data])
    if not added:
        raise ValidationError('Student with this GR number or username already exists', field='grNo')

    student = Student.get_by_gr_no(data['grNo'])
    logger.info(f"Registered student {student.gr_no} in {student.department}")
    return jsonify({
        'success': True,
        'message': 'Student registered successfully',
        'student': student.to_dict(),
    }), 201


@admin_bp.route('/students/upload', methods=['POST'])
@require_role('admin')
def upload_students_excel():
    """Upload students via Excel file."""
    return _import(process_student_excel)


@admin_bp.route('/students/<int:student_id>', methods=['DELETE'])
@require_role('admin')
def delete_student(student_id):
    student = Student.get(student_id)
    if student is None:
        raise NotFoundError('Student not found')
    _check_scope(current_principal(), student.department, 'students')

    Student.delete(student_id)
    return jsonify({
        'success': True,
        'message': f'Student {student.gr_no} deleted successfully'
    })


@admin_bp.route('/students/<int:student_id>/reset-feedback', methods=['PATCH'])
@require_role('admin')
def admin_reset_feedback(student_id):
    data = request.get_json(silent=True) or {}
    feedback_round = data.get('feedbackRound') or request.args.get('feedbackRound')
    deleted = SubmissionGate().admin_reset(current_principal(), student_id, feedback_round)
    return jsonify({
        'success': True,
        'message': 'Student feedback reset successfully',
        'deleted': deleted,
    })


@admin_bp.route('/students/download-sample')
@require_role('admin')
def download_sample():
    """Download a sample Excel file."""
    sample_path = os.path.abspath(os.path.join(UPLOAD_FOLDER, 'sample_students.xlsx'))
    os.makedirs(UPLOAD_FOLDER, exist_ok=True)
    create_sample_excel(sample_path)
    return send_file(sample_path, as_attachment=True, download_name='sample_students.xlsx')


@admin_bp.route('/faculty/register', methods=['POST'])
@require_role('admin')
def register_faculty():
    principal = current_principal()
    data = request.get_json(silent=True) or {}
    _require_fields(data, 'facultyName', 'department', 'subjectName', 'class', 'division')
    _check_scope(principal, clean_text(data['department']), 'faculty')

    faculty_id = Faculty.add(
        data['facultyName'], data['department'], data['subjectName'],
        data['class'], data['division'],
        is_elective=data.get('isElective', False),
        is_practical_faculty=data.get('isPracticalFaculty', False),
        practical_batches=data.get('practicalBatches'),
    )
    faculty = Faculty.get(faculty_id)
    logger.info(f"Registered faculty {faculty.name} ({faculty.subject_name}) in {faculty.department}")
    return jsonify({
        'success': True,
        'message': 'Faculty registered successfully',
        'faculty': faculty.to_dict(),
    }), 201


@admin_bp.route('/faculty/upload', methods=['POST'])
@require_role('admin')
def upload_faculty_excel():
    """Upload faculty teaching assignments via Excel file."""
    return _import(process_faculty_excel, current_principal())


@admin_bp.route('/faculty/<int:faculty_id>', methods=['DELETE'])
@require_role('admin')
def delete_faculty(faculty_id):
    faculty = Faculty.get(faculty_id)
    if faculty is None:
        raise NotFoundError('Faculty not found')
    _check_scope(current_principal(), faculty.department, 'faculty')

    Faculty.delete(faculty_id)
    return jsonify({
        'success': True,
        'message': f'Faculty {faculty.name} deleted successfully'
    })


@admin_bp.route('/faculty/download-sample')
@require_role('admin')
def download_faculty_sample():
    sample_path = os.path.abspath(os.path.join(UPLOAD_FOLDER, 'sample_faculty.xlsx'))
    os.makedirs(UPLOAD_FOLDER, exist_ok=True)
    create_sample_faculty_excel(sample_path)
    return send_file(sample_path, as_attachment=True, download_name='sample_faculty.xlsx')
