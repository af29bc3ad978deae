from functools import wraps
from flask import request, jsonify
from reviewflow.utils.security import verify_token
from reviewflow.utils.logger import get_logger

logger = get_logger(__name__)


def require_auth(f):
    """Decorator to require a bearer token carrying ``user_id`` and ``role``"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        # Get token from Authorization header
        auth_header = request.headers.get('Authorization')

        if not auth_header:
            return jsonify({'error': 'Authorization header missing'}), 401

        # Check format
        parts = auth_header.split()
        if len(parts) != 2 or parts[0] != 'Bearer':
            return jsonify({'error': 'Invalid authorization header format'}), 401

        token = parts[1]

        # Verify token
        payload = verify_token(token)
        if not payload or 'user_id' not in payload or 'role' not in payload:
            return jsonify({'error': 'Invalid or expired token'}), 401

        # Add user info to kwargs
        return f(current_user=payload, *args, **kwargs)

    return decorated_function


def require_role(allowed_roles):
    """Decorator to require specific roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(current_user, *args, **kwargs):
            if current_user.get('role') not in allowed_roles:
                logger.info(f"User {current_user.get('user_id')} with role {current_user.get('role')} refused")
                return jsonify({'error': 'Insufficient permissions'}), 403
            return f(current_user=current_user, *args, **kwargs)
        return decorated_function
    return decorator


def require_advisor(f):
    """Decorator to require advisor role"""
    return require_role(['advisor'])(f)


def require_reviewer(f):
    """Decorator to require reviewer role"""
    return require_role(['reviewer'])(f)


def require_student(f):
    """Decorator to require student role"""
    return require_role(['student'])(f)
