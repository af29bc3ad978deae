from flask import Blueprint, request, jsonify
from reviewflow.services.availability_service import AvailabilityService
from reviewflow.middleware.auth import require_auth, require_role, require_reviewer, require_advisor
from reviewflow.errors import ServiceError, ValidationError
from reviewflow.utils.timeslots import parse_date
from reviewflow.utils.validators import require_int
from reviewflow.utils.logger import get_logger

bp = Blueprint('availability', __name__)
logger = get_logger(__name__)
availability_service = AvailabilityService()


@bp.route('', methods=['POST'])
@require_auth
@require_reviewer
def create_availability(current_user):
    """Create a recurring or one-off bookable window"""
    try:
        window = availability_service.create_window(current_user['user_id'], request.get_json(silent=True))
        return jsonify({'message': 'Availability created successfully', 'availability': window}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error creating availability: {str(e)}")
        return jsonify({'error': 'Failed to create availability'}), 500


@bp.route('/breaks', methods=['POST'])
@require_auth
@require_reviewer
def create_break(current_user):
    """Create a non-bookable break block"""
    try:
        window = availability_service.create_break(current_user['user_id'], request.get_json(silent=True))
        return jsonify({'message': 'Break created', 'break': window}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error creating break: {str(e)}")
        return jsonify({'error': 'Failed to create break'}), 500


@bp.route('/me', methods=['GET'])
@require_auth
@require_reviewer
def get_my_availability(current_user):
    try:
        return jsonify(availability_service.get_my_availability(current_user['user_id'])), 200

    except Exception as e:
        logger.error(f"Error getting availability: {str(e)}")
        return jsonify({'error': 'Failed to get availability'}), 500


@bp.route('/weekly', methods=['GET'])
@require_auth
@require_reviewer
def get_weekly_grid(current_user):
    try:
        return jsonify(availability_service.get_weekly_grid(current_user['user_id'])), 200

    except Exception as e:
        logger.error(f"Error getting weekly availability: {str(e)}")
        return jsonify({'error': 'Failed to get availability'}), 500


@bp.route('/by-date', methods=['GET'])
@require_auth
@require_role(['advisor', 'reviewer'])
def get_availability_by_date(current_user):
    """Bookable windows for a date, each flagged is_booked"""
    try:
        date_param = request.args.get('date')
        if not date_param:
            raise ValidationError("date is required", 'date')
        try:
            target_date = parse_date(date_param)
        except ValueError:
            raise ValidationError("Invalid date format. Use YYYY-MM-DD", 'date')

        reviewer_id = request.args.get('reviewer_id')
        if reviewer_id:
            reviewer_id = require_int(reviewer_id, 'reviewer_id', minimum=1)

        slots = availability_service.get_windows_by_date(target_date, reviewer_id=reviewer_id)
        return jsonify({'date': target_date.isoformat(), 'slots': slots}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error getting availability by date: {str(e)}")
        return jsonify({'error': 'Failed to get availability'}), 500


@bp.route('/<int:window_id>', methods=['DELETE'])
@require_auth
@require_reviewer
def delete_availability(window_id, current_user):
    try:
        availability_service.delete_window(current_user['user_id'], window_id)
        return jsonify({'message': 'Availability deleted'}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error deleting availability: {str(e)}")
        return jsonify({'error': 'Failed to delete availability'}), 500


@bp.route('/reviewers', methods=['GET'])
@require_auth
@require_advisor
def get_reviewers_with_availability(current_user):
    """Active reviewers with their windows and next free slot"""
    try:
        reviewers = availability_service.get_reviewers_with_availability()
        return jsonify({'reviewers': reviewers}), 200

    except Exception as e:
        logger.error(f"Error getting reviewers: {str(e)}")
        return jsonify({'error': 'Failed to get reviewers'}), 500
