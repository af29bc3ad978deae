from .user import User
from .availability import AvailabilityWindow, RecurringWindow, SpecificWindow
from .review_session import ReviewSession
from .evaluation import ReviewerEvaluation, FinalEvaluation
from .notification import Notification

__all__ = [
    'User', 'AvailabilityWindow', 'RecurringWindow', 'SpecificWindow',
    'ReviewSession', 'ReviewerEvaluation', 'FinalEvaluation', 'Notification'
]
