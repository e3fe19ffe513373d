from flask import Blueprint, request, jsonify
import logging

from feedback_portal.auth import current_principal, require_role
from feedback_portal.models.config_store import FeedbackSession
from feedback_portal.services.submission_service import SubmissionGate

logger = logging.getLogger(__name__)

student_bp = Blueprint('student', __name__)


@student_bp.route('/config/feedback-status', methods=['GET'])
def feedback_status():
    """Current session state, readable by any signed-in user."""
    current_principal()
    status = FeedbackSession().status()
    return jsonify({'success': True, **status.to_dict()})


@student_bp.route('/feedback/form-data', methods=['GET'])
@require_role('student')
def form_data():
    data = SubmissionGate().form_data(current_principal().id)
    return jsonify({'success': True, **data})


@student_bp.route('/feedback/submit', methods=['POST'])
@require_role('student')
def submit_feedback():
    payload = request.get_json(silent=True) or {}
    record = SubmissionGate().submit(current_principal().id, payload)
    return jsonify({
        'success': True,
        'message': 'Feedback submitted successfully',
        'feedback': record.to_dict(),
    }), 201


@student_bp.route('/feedback/reset', methods=['DELETE'])
@require_role('student')
def reset_feedback():
    """Students may withdraw their own submission."""
    deleted = SubmissionGate().reset(current_principal().id, request.args.get('feedbackRound'))
    return jsonify({
        'success': True,
        'message': 'Feedback reset successfully',
        'deleted': deleted,
    })
