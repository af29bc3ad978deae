from flask import Blueprint, request, jsonify
from reviewflow.services.notification_service import NotificationService
from reviewflow.middleware.auth import require_auth
from reviewflow.errors import ServiceError
from reviewflow.utils.logger import get_logger

bp = Blueprint('notifications', __name__)
logger = get_logger(__name__)
notification_service = NotificationService()


@bp.route('', methods=['GET'])
@require_auth
def list_notifications(current_user):
    try:
        unread_only = request.args.get('unread', 'false').lower() == 'true'
        notifications = notification_service.list_notifications(current_user['user_id'], unread_only=unread_only)
        return jsonify({'notifications': notifications}), 200

    except Exception as e:
        logger.error(f"Error listing notifications: {str(e)}")
        return jsonify({'error': 'Failed to get notifications'}), 500


@bp.route('/<int:notification_id>/read', methods=['PATCH'])
@require_auth
def mark_notification_read(notification_id, current_user):
    try:
        notification = notification_service.mark_read(notification_id, current_user['user_id'])
        return jsonify({'notification': notification}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error marking notification read: {str(e)}")
        return jsonify({'error': 'Failed to update notification'}), 500
