from flask import Blueprint, request, jsonify
from reviewflow.services.review_service import ReviewService
from reviewflow.services.evaluation_service import EvaluationService
from reviewflow.services.notification_service import NotificationService
from reviewflow.middleware.auth import require_auth, require_role, require_advisor, require_reviewer, require_student
from reviewflow.errors import ServiceError
from reviewflow.utils.logger import get_logger

bp = Blueprint('reviews', __name__)
logger = get_logger(__name__)
notification_service = NotificationService()
review_service = ReviewService(notification_service)
evaluation_service = EvaluationService(notification_service)


# Advisor endpoints

@bp.route('', methods=['POST'])
@require_auth
@require_advisor
def create_review(current_user):
    """Schedule a review; online meeting links are generated server-side"""
    try:
        review = review_service.create_review(current_user['user_id'], request.get_json(silent=True))
        return jsonify({'message': 'Review scheduled successfully', 'review': review}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error creating review: {str(e)}")
        return jsonify({'error': 'Failed to create review'}), 500


@bp.route('/advisor', methods=['GET'])
@require_auth
@require_advisor
def get_advisor_reviews(current_user):
    try:
        reviews = review_service.get_advisor_reviews(current_user['user_id'])
        return jsonify({'reviews': reviews}), 200

    except Exception as e:
        logger.error(f"Error getting advisor reviews: {str(e)}")
        return jsonify({'error': 'Failed to get reviews'}), 500


@bp.route('/advisor/completed', methods=['GET'])
@require_auth
@require_advisor
def get_completed_reviews(current_user):
    """Completed reviews awaiting a final score"""
    try:
        reviews = review_service.get_completed_reviews_for_advisor(current_user['user_id'])
        return jsonify({'completed_reviews': reviews}), 200

    except Exception as e:
        logger.error(f"Error getting completed reviews: {str(e)}")
        return jsonify({'error': 'Failed to get reviews'}), 500


@bp.route('/<int:review_id>/reschedule', methods=['PATCH'])
@require_auth
@require_advisor
def reschedule_review(review_id, current_user):
    try:
        review = review_service.reschedule_review(review_id, current_user['user_id'], request.get_json(silent=True))
        return jsonify({'message': 'Review rescheduled successfully', 'review': review}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error rescheduling review: {str(e)}")
        return jsonify({'error': 'Failed to reschedule review'}), 500


@bp.route('/<int:review_id>/cancel', methods=['PATCH'])
@require_auth
@require_advisor
def cancel_review(review_id, current_user):
    try:
        review = review_service.cancel_review(review_id, current_user['user_id'], request.get_json(silent=True))
        return jsonify({'message': 'Review cancelled', 'review': review}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error cancelling review: {str(e)}")
        return jsonify({'error': 'Failed to cancel review'}), 500


@bp.route('/<int:review_id>', methods=['PATCH'])
@require_auth
@require_advisor
def update_review_details(review_id, current_user):
    """Edit time, mode or location"""
    try:
        review = review_service.update_review_details(
            review_id, current_user['user_id'], request.get_json(silent=True)
        )
        return jsonify({'message': 'Review updated', 'review': review}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error updating review: {str(e)}")
        return jsonify({'error': 'Failed to update review'}), 500


@bp.route('/<int:review_id>/final-score', methods=['PATCH'])
@require_auth
@require_advisor
def submit_final_score(review_id, current_user):
    try:
        result = evaluation_service.submit_final_score(
            review_id, current_user['user_id'], request.get_json(silent=True)
        )
        return jsonify({'message': 'Final score submitted successfully', **result}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error submitting final score: {str(e)}")
        return jsonify({'error': 'Failed to submit final score'}), 500


# Reviewer endpoints

@bp.route('/reviewer', methods=['GET'])
@require_auth
@require_reviewer
def get_reviewer_reviews(current_user):
    try:
        reviews = review_service.get_reviewer_reviews(current_user['user_id'], request.args.get('status'))
        return jsonify({'reviews': reviews}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error getting reviewer reviews: {str(e)}")
        return jsonify({'error': 'Failed to get reviews'}), 500


@bp.route('/<int:review_id>/accept', methods=['PATCH'])
@require_auth
@require_reviewer
def accept_review(review_id, current_user):
    try:
        review = review_service.accept_review(review_id, current_user['user_id'])
        return jsonify({'message': 'Review accepted', 'review': review}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error accepting review: {str(e)}")
        return jsonify({'error': 'Failed to accept review'}), 500


@bp.route('/<int:review_id>/reject', methods=['PATCH'])
@require_auth
@require_reviewer
def reject_review(review_id, current_user):
    try:
        review = review_service.reject_review(review_id, current_user['user_id'], request.get_json(silent=True))
        return jsonify({'message': 'Review rejected', 'review': review}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error rejecting review: {str(e)}")
        return jsonify({'error': 'Failed to reject review'}), 500


@bp.route('/<int:review_id>/complete', methods=['PATCH'])
@require_auth
@require_reviewer
def complete_review(review_id, current_user):
    """Mark an accepted review completed with the reviewer's scores"""
    try:
        result = evaluation_service.submit_reviewer_evaluation(
            review_id, current_user['user_id'], request.get_json(silent=True)
        )
        return jsonify({'message': 'Review marked as completed and evaluation submitted', **result}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error completing review: {str(e)}")
        return jsonify({'error': 'Failed to complete review'}), 500


# Student endpoints

@bp.route('/student/upcoming', methods=['GET'])
@require_auth
@require_student
def get_student_upcoming(current_user):
    try:
        reviews = review_service.get_student_upcoming(current_user['user_id'])
        return jsonify({'upcoming_reviews': reviews}), 200

    except Exception as e:
        logger.error(f"Error getting upcoming reviews: {str(e)}")
        return jsonify({'error': 'Failed to get reviews'}), 500


@bp.route('/student/history', methods=['GET'])
@require_auth
@require_student
def get_student_history(current_user):
    try:
        reviews = review_service.get_student_history(current_user['user_id'])
        return jsonify({'review_history': reviews}), 200

    except Exception as e:
        logger.error(f"Error getting review history: {str(e)}")
        return jsonify({'error': 'Failed to get reviews'}), 500


# Shared endpoints

@bp.route('/<int:review_id>', methods=['GET'])
@require_auth
@require_role(['advisor', 'reviewer'])
def get_review(review_id, current_user):
    try:
        if current_user['role'] == 'advisor':
            review = review_service.get_review_for_advisor(review_id, current_user['user_id'])
        else:
            review = review_service.get_review_for_reviewer(review_id, current_user['user_id'])
        return jsonify({'review': review}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error getting review: {str(e)}")
        return jsonify({'error': 'Failed to get review'}), 500


@bp.route('/<int:review_id>/evaluations', methods=['GET'])
@require_auth
def get_review_evaluations(review_id, current_user):
    """Role-filtered evaluations of one review"""
    try:
        result = evaluation_service.get_review_evaluations(review_id, current_user['user_id'])
        return jsonify(result), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error getting evaluations: {str(e)}")
        return jsonify({'error': 'Failed to get evaluations'}), 500
