"""
Input validation for availability and review requests.

Each ``validate_*`` function takes the raw request payload, raises
``ValidationError`` naming the offending field, and returns the cleaned
values. Nothing here touches the database.
"""
from datetime import date, datetime
from typing import Dict, Optional
from config.config import Config
from reviewflow.errors import ValidationError
from reviewflow.models.review_session import ReviewMode
from reviewflow.utils.scoring import validate_score, dimension_label
from reviewflow.utils.timeslots import TimeOfDay, TimeRange, parse_date


def require_int(value, field: str, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    """Accept an int or a string of digits"""
    if isinstance(value, bool) or value is None or value == '':
        raise ValidationError(f"{field} is required", field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field)
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be an integer", field)
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field)
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be at most {maximum}", field)
    return number


def parse_datetime(value, field: str) -> datetime:
    """Parse an ISO 8601 timestamp into a naive local datetime"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"Invalid {field}. Use ISO format", field)
    else:
        raise ValidationError(f"{field} is required", field)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed.replace(second=0, microsecond=0)


def validate_text(value, field: str, required: bool = False,
                  min_length: int = 0, max_length: Optional[int] = None) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required", field)
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be text", field)

    text = value.strip()
    if len(text) < min_length:
        raise ValidationError(f"{field} must be at least {min_length} characters", field)
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field)
    return text


def validate_time_range(data: Dict) -> TimeRange:
    start_time, end_time = data.get('start_time'), data.get('end_time')
    if not start_time:
        raise ValidationError("start_time is required", 'start_time')
    if not end_time:
        raise ValidationError("end_time is required", 'end_time')

    bounds = {}
    for field, value in (('start_time', start_time), ('end_time', end_time)):
        try:
            bounds[field] = TimeOfDay.parse(value)
        except ValueError:
            raise ValidationError("Invalid time format. Use HH:MM (e.g., 09:00, 14:30)", field)

    if bounds['start_time'] >= bounds['end_time']:
        raise ValidationError("start_time must be before end_time", 'end_time')
    return TimeRange(bounds['start_time'], bounds['end_time'])


def validate_window(data: Dict, today: date) -> Dict:
    """
    Validate a window payload. A ``date`` makes a one-off window,
    a ``day_of_week`` (0=Sunday .. 6=Saturday) a weekly one.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    time_range = validate_time_range(data)
    kind = data.get('kind')

    cleaned = {
        'time_range': time_range,
        'notes': validate_text(data.get('notes'), 'notes', max_length=500),
        'label': validate_text(data.get('label'), 'label', max_length=100),
    }

    if data.get('date') is not None or kind == 'specific':
        if not data.get('date'):
            raise ValidationError("date is required for specific date windows", 'date')
        try:
            specific_date = parse_date(data['date'])
        except ValueError:
            raise ValidationError("Invalid date format. Use YYYY-MM-DD", 'date')
        if specific_date < today:
            raise ValidationError("Cannot create availability for past dates", 'date')
        cleaned.update(kind='specific', specific_date=specific_date)

    elif data.get('day_of_week') is not None or kind == 'recurring':
        cleaned.update(
            kind='recurring',
            day_of_week=require_int(data.get('day_of_week'), 'day_of_week', 0, 6)
        )

    else:
        raise ValidationError("Either 'date' (YYYY-MM-DD) or 'day_of_week' (0-6) is required", 'date')

    return cleaned


def validate_mode(data: Dict) -> Dict:
    mode = data.get('mode')
    if not mode:
        raise ValidationError("mode is required", 'mode')
    try:
        mode = ReviewMode(mode)
    except ValueError:
        raise ValidationError("Invalid review mode. Must be 'online' or 'offline'", 'mode')

    location = validate_text(data.get('location'), 'location', max_length=500)
    if mode == ReviewMode.OFFLINE and not location:
        raise ValidationError("location is required for offline reviews", 'location')

    return {'mode': mode, 'location': location if mode == ReviewMode.OFFLINE else None}


def validate_future(scheduled_at: datetime, now: datetime, field: str = 'scheduled_at'):
    if scheduled_at <= now:
        raise ValidationError(f"{field} must be in the future", field)


def validate_create_review(data: Dict, now: datetime) -> Dict:
    """Meeting links are generated server-side, so any supplied one is ignored"""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    student_id = require_int(data.get('student_id'), 'student_id', minimum=1)
    reviewer_id = require_int(data.get('reviewer_id'), 'reviewer_id', minimum=1)
    week = require_int(data.get('week'), 'week', minimum=1)
    scheduled_at = parse_datetime(data.get('scheduled_at'), 'scheduled_at')
    validate_future(scheduled_at, now)

    cleaned = {
        'student_id': student_id,
        'reviewer_id': reviewer_id,
        'week': week,
        'scheduled_at': scheduled_at,
    }
    cleaned.update(validate_mode(data))
    return cleaned


def validate_reschedule(data: Dict, now: datetime) -> Dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    scheduled_at = parse_datetime(data.get('scheduled_at'), 'scheduled_at')
    validate_future(scheduled_at, now)

    reviewer_id = data.get('reviewer_id')
    return {
        'scheduled_at': scheduled_at,
        'reviewer_id': require_int(reviewer_id, 'reviewer_id', minimum=1) if reviewer_id else None,
    }


def validate_edit_review(data: Dict, now: datetime) -> Dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    cleaned = {}
    if data.get('scheduled_at'):
        cleaned['scheduled_at'] = parse_datetime(data['scheduled_at'], 'scheduled_at')
        validate_future(cleaned['scheduled_at'], now)
    if data.get('mode'):
        cleaned.update(validate_mode(data))
    elif data.get('location') is not None:
        cleaned['location'] = validate_text(data['location'], 'location', max_length=500)

    if not cleaned:
        raise ValidationError("Nothing to update", 'scheduled_at')
    return cleaned


def validate_reason(data: Dict, required: bool) -> Optional[str]:
    data = data if isinstance(data, dict) else {}
    return validate_text(data.get('reason'), 'reason', required=required, max_length=1000)


def validate_reviewer_evaluation(data: Dict) -> Dict:
    """Stage-1 payload: four dimension scores, feedback and optional remarks"""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    scores = data.get('scores')
    if not isinstance(scores, dict):
        raise ValidationError("scores are required", 'scores')

    cleaned_scores = {}
    for dimension in Config.SCORE_DIMENSIONS:
        value = scores.get(dimension)
        if value is None:
            raise ValidationError(f"Score for {dimension} is required", f"scores.{dimension}")
        valid, error = validate_score(value, f"Score for {dimension_label(dimension).lower()}")
        if not valid:
            raise ValidationError(error, f"scores.{dimension}")
        cleaned_scores[dimension] = float(value)

    feedback = validate_text(
        data.get('feedback'), 'feedback', required=True,
        min_length=Config.FEEDBACK_MIN_LENGTH, max_length=Config.FEEDBACK_MAX_LENGTH
    )
    remarks = validate_text(data.get('remarks'), 'remarks', max_length=Config.REMARKS_MAX_LENGTH)

    return {'scores': cleaned_scores, 'feedback': feedback, 'remarks': remarks}


def validate_final_evaluation(data: Dict) -> Dict:
    """Stage-2 payload: final score, optional attendance/discipline/adjusted scores"""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    final_score = data.get('final_score')
    if final_score is None:
        raise ValidationError("final_score is required", 'final_score')

    cleaned = {}
    for field, label in (('final_score', 'Final score'), ('attendance', 'Attendance'), ('discipline', 'Discipline')):
        value = data.get(field)
        if value is None:
            cleaned[field] = 0.0
            continue
        valid, error = validate_score(value, label)
        if not valid:
            raise ValidationError(error, field)
        cleaned[field] = float(value)

    adjusted = data.get('adjusted_scores') or {}
    if not isinstance(adjusted, dict):
        raise ValidationError("adjusted_scores must be an object", 'adjusted_scores')
    cleaned_adjusted = {}
    for dimension, value in adjusted.items():
        if dimension not in Config.SCORE_DIMENSIONS:
            raise ValidationError(f"Unknown score dimension: {dimension}", f"adjusted_scores.{dimension}")
        if value is None:
            continue
        valid, error = validate_score(value, f"Adjusted {dimension_label(dimension).lower()}")
        if not valid:
            raise ValidationError(error, f"adjusted_scores.{dimension}")
        cleaned_adjusted[dimension] = float(value)
    cleaned['adjusted_scores'] = cleaned_adjusted or None

    cleaned['final_remarks'] = validate_text(
        data.get('final_remarks'), 'final_remarks', max_length=Config.FINAL_REMARKS_MAX_LENGTH
    )
    return cleaned
