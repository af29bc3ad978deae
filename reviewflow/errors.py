"""
Service-level errors.

Services raise these for expected business outcomes; the routes turn them
into JSON responses with ``to_dict()`` and ``status_code``.
"""
from typing import Dict, Optional


class ServiceError(Exception):
    """Base class for errors surfaced to the caller"""
    status_code = 400
    code = 'SERVICE_ERROR'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> Dict:
        return {}

    def to_dict(self) -> Dict:
        payload = {'error': self.message, 'code': self.code}
        payload.update(self.details())
        return payload


class ValidationError(ServiceError):
    """Malformed or missing input"""
    code = 'VALIDATION_ERROR'

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def details(self):
        return {'field': self.field}


class ConflictError(ServiceError):
    """Booking overlap/duplicate or a second submission of a one-off record"""
    status_code = 409
    code = 'CONFLICT'

    def __init__(self, message: str, conflict_type: str, existing: Optional[Dict] = None):
        super().__init__(message)
        self.conflict_type = conflict_type
        self.existing = existing

    def details(self):
        return {'conflict_type': self.conflict_type, 'existing': self.existing}


class StateError(ServiceError):
    """Transition not allowed from the current status"""
    code = 'INVALID_STATE'

    def __init__(self, message: str, current_status):
        super().__init__(message)
        self.current_status = current_status

    def details(self):
        status = getattr(self.current_status, 'value', self.current_status)
        return {'current_status': status}


class AuthorizationError(ServiceError):
    status_code = 403
    code = 'FORBIDDEN'

    def __init__(self, message: str = 'You do not have permission to perform this action'):
        super().__init__(message)


class NotFoundError(ServiceError):
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")
        self.resource = resource

    def details(self):
        return {'resource': self.resource}
