from .logger import setup_logger, get_logger
from .security import generate_token, verify_token, build_meeting_link
from .timeslots import TimeOfDay, TimeRange, day_of_week, find_conflict, next_available_slot, format_slot_label
from .scoring import validate_score, compute_average_score

__all__ = [
    'setup_logger', 'get_logger',
    'generate_token', 'verify_token', 'build_meeting_link',
    'TimeOfDay', 'TimeRange', 'day_of_week', 'find_conflict',
    'next_available_slot', 'format_slot_label',
    'validate_score', 'compute_average_score'
]
