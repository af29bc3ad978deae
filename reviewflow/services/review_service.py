from datetime import datetime, timedelta
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from reviewflow.database import get_db
from reviewflow.errors import ConflictError, NotFoundError, AuthorizationError, StateError, ValidationError
from reviewflow.models import User, AvailabilityWindow, ReviewSession
from reviewflow.models.availability import SlotType
from reviewflow.models.review_session import (
    ReviewStatus, ReviewMode, TRANSITIONS, ACTIVE_STATUSES, EDITABLE_STATUSES
)
from reviewflow.models.user import UserRole
from reviewflow.services.availability_service import day_keys_for
from reviewflow.services.notification_service import NotificationService
from reviewflow.utils.security import build_meeting_link
from reviewflow.utils.timeslots import TimeOfDay
from reviewflow.utils.validators import (
    validate_create_review, validate_reschedule, validate_edit_review, validate_reason
)
from reviewflow.utils.logger import get_logger

logger = get_logger(__name__)


def load_review(db, review_id: int) -> ReviewSession:
    review = db.get(ReviewSession, review_id)
    if not review:
        raise NotFoundError('Review')
    return review


def authorize(review: ReviewSession, actor_id: int, party: str):
    """``party`` is 'advisor' or 'reviewer'; anyone else is refused"""
    if getattr(review, f"{party}_id") != actor_id:
        logger.warning(f"User {actor_id} refused access to review {review.id}")
        raise AuthorizationError()


def apply_transition(review: ReviewSession, action: str) -> ReviewStatus:
    """Move a review along ``action`` or raise StateError leaving it untouched"""
    allowed_from, target = TRANSITIONS[action]
    if review.status not in allowed_from:
        logger.info(f"Review {review.id}: {action} refused in status {review.status.value}")
        raise StateError(
            f"Cannot {action} a review with status: {review.status.value}", review.status
        )
    review.status = target
    return target


def format_when(moment: datetime) -> str:
    return moment.strftime('%B %d, %Y at %I:%M %p')


def event_payload(review: ReviewSession, **extra) -> Dict:
    payload = {
        'review_id': review.id,
        'week': review.week,
        'scheduled_at': format_when(review.scheduled_at),
        'mode': review.mode.value,
        'meeting_link': review.meeting_link,
        'location': review.location,
    }
    payload.update(extra)
    return payload


def serialize_review(review: ReviewSession, include_marks: bool = True) -> Dict:
    """Review with the participants' summaries; call while the session is open"""
    data = review.to_dict(include_marks=include_marks)
    data['student'] = review.student.to_summary() if review.student else None
    data['advisor'] = review.advisor.to_summary() if review.advisor else None
    data['reviewer'] = review.reviewer.to_summary() if review.reviewer else None
    return data


class ReviewService:
    """Service for the review session lifecycle"""

    def __init__(self, notification_service: NotificationService = None):
        self.notification_service = notification_service or NotificationService()

    def _notify_all(self, notifications):
        for event, recipient_id, payload in notifications:
            self.notification_service.notify(event, recipient_id, payload)

    def _ensure_reviewer_free(self, db, reviewer_id: int, scheduled_at: datetime,
                              exclude_review_id: Optional[int] = None):
        """Refuse a time the reviewer is already booked for"""
        same_instant = db.query(ReviewSession).filter(
            ReviewSession.reviewer_id == reviewer_id,
            ReviewSession.scheduled_at == scheduled_at,
            ReviewSession.status.in_(ACTIVE_STATUSES)
        )
        if exclude_review_id:
            same_instant = same_instant.filter(ReviewSession.id != exclude_review_id)
        clash = same_instant.first()
        if clash:
            raise ConflictError(
                "Reviewer already has a review at this time", 'booked', clash.to_dict(include_marks=False)
            )

        # A bookable window holds one session at a time
        moment = TimeOfDay.from_time(scheduled_at)
        windows = db.query(AvailabilityWindow).filter(
            AvailabilityWindow.reviewer_id == reviewer_id,
            AvailabilityWindow.slot_type == SlotType.BOOKABLE,
            AvailabilityWindow.day_key.in_(day_keys_for(scheduled_at.date()))
        ).all()
        windows = [w for w in windows if w.time_range.contains(moment)]
        if not windows:
            return

        day_start = datetime.combine(scheduled_at.date(), datetime.min.time())
        same_day = db.query(ReviewSession).filter(
            ReviewSession.reviewer_id == reviewer_id,
            ReviewSession.status.in_(ACTIVE_STATUSES),
            ReviewSession.scheduled_at >= day_start,
            ReviewSession.scheduled_at < day_start + timedelta(days=1)
        )
        if exclude_review_id:
            same_day = same_day.filter(ReviewSession.id != exclude_review_id)

        for other in same_day.all():
            other_moment = TimeOfDay.from_time(other.scheduled_at)
            for window in windows:
                if window.time_range.contains(other_moment):
                    raise ConflictError(
                        f"Reviewer's {window.start_time} - {window.end_time} slot is already booked",
                        'booked', other.to_dict(include_marks=False)
                    )

    def _active_reviewer(self, db, reviewer_id: int) -> User:
        reviewer = db.query(User).filter_by(id=reviewer_id, role=UserRole.REVIEWER, is_active=True).first()
        if not reviewer:
            raise NotFoundError('Reviewer')
        return reviewer

    # Advisor operations

    def create_review(self, advisor_id: int, data: Dict, now: datetime = None) -> Dict:
        """Schedule a review for one of the advisor's students. Starts Pending."""
        cleaned = validate_create_review(data, now or datetime.now())

        try:
            with get_db() as db:
                student = db.query(User).filter_by(id=cleaned['student_id'], role=UserRole.STUDENT).first()
                if not student:
                    raise NotFoundError('Student')
                if student.advisor_id != advisor_id:
                    logger.warning(f"Advisor {advisor_id} is not the advisor of student {student.id}")
                    raise AuthorizationError()

                reviewer = self._active_reviewer(db, cleaned['reviewer_id'])
                self._ensure_reviewer_free(db, reviewer.id, cleaned['scheduled_at'])

                review = ReviewSession(
                    student_id=student.id,
                    advisor_id=advisor_id,
                    reviewer_id=reviewer.id,
                    week=cleaned['week'],
                    scheduled_at=cleaned['scheduled_at'],
                    mode=cleaned['mode'],
                    location=cleaned['location'],
                    status=ReviewStatus.PENDING
                )
                db.add(review)
                db.flush()

                # The room key is derived from the id, so it needs the flush first
                if review.mode == ReviewMode.ONLINE:
                    review.meeting_link = build_meeting_link(review.id)
                db.flush()

                result = serialize_review(review)
                payload = event_payload(review, student_name=student.name, reviewer_name=reviewer.name)
                notifications = [
                    ('review_scheduled', reviewer.id, payload),
                    ('review_scheduled', student.id, payload),
                ]

        except IntegrityError:
            raise ConflictError("Reviewer already has a review at this time", 'booked')

        logger.info(f"Review {result['id']} created by advisor {advisor_id} for student {result['student_id']}")
        self._notify_all(notifications)
        return result

    def reschedule_review(self, review_id: int, advisor_id: int, data: Dict, now: datetime = None) -> Dict:
        """Move a review to a new time, optionally to another reviewer. Becomes Scheduled."""
        cleaned = validate_reschedule(data, now or datetime.now())

        try:
            with get_db() as db:
                review = load_review(db, review_id)
                authorize(review, advisor_id, 'advisor')
                apply_transition(review, 'reschedule')

                reviewer_id = cleaned['reviewer_id'] or review.reviewer_id
                reviewer = self._active_reviewer(db, reviewer_id)
                self._ensure_reviewer_free(db, reviewer.id, cleaned['scheduled_at'], exclude_review_id=review.id)

                previous_reviewer_id = review.reviewer_id
                review.reviewer_id = reviewer.id
                review.scheduled_at = cleaned['scheduled_at']
                db.flush()

                result = serialize_review(review)
                payload = event_payload(review, reviewer_name=reviewer.name)
                notifications = [
                    ('review_rescheduled', reviewer.id, payload),
                    ('review_rescheduled', review.student_id, payload),
                ]
                if previous_reviewer_id != reviewer.id:
                    notifications.append((
                        'review_cancelled', previous_reviewer_id,
                        event_payload(review, reason='Reassigned to another reviewer')
                    ))

        except IntegrityError:
            raise ConflictError("Reviewer already has a review at this time", 'booked')

        logger.info(f"Review {review_id} rescheduled by advisor {advisor_id} to {result['scheduled_at']}")
        self._notify_all(notifications)
        return result

    def cancel_review(self, review_id: int, advisor_id: int, data: Dict) -> Dict:
        reason = validate_reason(data, required=True)

        with get_db() as db:
            review = load_review(db, review_id)
            authorize(review, advisor_id, 'advisor')
            apply_transition(review, 'cancel')
            review.feedback = f"Cancelled: {reason}"
            db.flush()

            result = serialize_review(review)
            payload = event_payload(review, reason=reason)
            notifications = [
                ('review_cancelled', review.reviewer_id, payload),
                ('review_cancelled', review.student_id, payload),
            ]

        logger.info(f"Review {review_id} cancelled by advisor {advisor_id}")
        self._notify_all(notifications)
        return result

    def update_review_details(self, review_id: int, advisor_id: int, data: Dict, now: datetime = None) -> Dict:
        """Edit time, mode or location without changing the status"""
        cleaned = validate_edit_review(data, now or datetime.now())

        try:
            with get_db() as db:
                review = load_review(db, review_id)
                authorize(review, advisor_id, 'advisor')
                if review.status not in EDITABLE_STATUSES:
                    raise StateError(
                        f"Cannot edit a review with status: {review.status.value}", review.status
                    )

                moved = 'scheduled_at' in cleaned and cleaned['scheduled_at'] != review.scheduled_at
                if moved:
                    self._ensure_reviewer_free(
                        db, review.reviewer_id, cleaned['scheduled_at'], exclude_review_id=review.id
                    )
                    review.scheduled_at = cleaned['scheduled_at']

                if 'mode' in cleaned:
                    review.mode = cleaned['mode']
                    review.location = cleaned['location']
                    review.meeting_link = (
                        build_meeting_link(review.id) if review.mode == ReviewMode.ONLINE else None
                    )
                elif 'location' in cleaned:
                    if review.mode != ReviewMode.OFFLINE:
                        raise ValidationError("location only applies to offline reviews", 'location')
                    if not cleaned['location']:
                        raise ValidationError("location is required for offline reviews", 'location')
                    review.location = cleaned['location']

                db.flush()
                result = serialize_review(review)
                notifications = []
                if moved:
                    payload = event_payload(review)
                    notifications = [
                        ('review_rescheduled', review.reviewer_id, payload),
                        ('review_rescheduled', review.student_id, payload),
                    ]

        except IntegrityError:
            raise ConflictError("Reviewer already has a review at this time", 'booked')

        logger.info(f"Review {review_id} details updated by advisor {advisor_id}")
        self._notify_all(notifications)
        return result

    def get_advisor_reviews(self, advisor_id: int) -> List[Dict]:
        """Newest first"""
        with get_db() as db:
            reviews = db.query(ReviewSession).filter_by(advisor_id=advisor_id).order_by(
                ReviewSession.scheduled_at.desc()
            ).all()
            return [serialize_review(r) for r in reviews]

    def get_review_for_advisor(self, review_id: int, advisor_id: int) -> Dict:
        with get_db() as db:
            review = load_review(db, review_id)
            authorize(review, advisor_id, 'advisor')
            return serialize_review(review)

    def get_completed_reviews_for_advisor(self, advisor_id: int) -> List[Dict]:
        """Completed reviews waiting for the advisor's final score"""
        with get_db() as db:
            reviews = db.query(ReviewSession).filter_by(
                advisor_id=advisor_id, status=ReviewStatus.COMPLETED
            ).order_by(ReviewSession.scheduled_at.asc()).all()

            results = []
            for review in reviews:
                data = serialize_review(review)
                evaluation = review.reviewer_evaluation
                data['average_score'] = evaluation.average_score if evaluation else None
                results.append(data)
            return results

    # Reviewer operations

    def accept_review(self, review_id: int, reviewer_id: int) -> Dict:
        with get_db() as db:
            review = load_review(db, review_id)
            authorize(review, reviewer_id, 'reviewer')
            apply_transition(review, 'accept')
            db.flush()

            result = serialize_review(review)
            notifications = [(
                'review_accepted', review.advisor_id,
                event_payload(review, reviewer_name=review.reviewer.name)
            )]

        logger.info(f"Review {review_id} accepted by reviewer {reviewer_id}")
        self._notify_all(notifications)
        return result

    def reject_review(self, review_id: int, reviewer_id: int, data: Dict = None) -> Dict:
        reason = validate_reason(data, required=False)

        with get_db() as db:
            review = load_review(db, review_id)
            authorize(review, reviewer_id, 'reviewer')
            apply_transition(review, 'reject')
            if reason:
                review.feedback = f"Rejected: {reason}"
            db.flush()

            result = serialize_review(review)
            notifications = [(
                'review_rejected', review.advisor_id,
                event_payload(review, reviewer_name=review.reviewer.name, reason=reason or 'none given')
            )]

        logger.info(f"Review {review_id} rejected by reviewer {reviewer_id}")
        self._notify_all(notifications)
        return result

    def get_reviewer_reviews(self, reviewer_id: int, status: str = None) -> List[Dict]:
        with get_db() as db:
            query = db.query(ReviewSession).filter_by(reviewer_id=reviewer_id)
            if status:
                try:
                    query = query.filter(ReviewSession.status == ReviewStatus(status))
                except ValueError:
                    raise ValidationError(f"Unknown status: {status}", 'status')
            reviews = query.order_by(ReviewSession.scheduled_at.desc()).all()
            return [serialize_review(r) for r in reviews]

    def get_review_for_reviewer(self, review_id: int, reviewer_id: int) -> Dict:
        with get_db() as db:
            review = load_review(db, review_id)
            authorize(review, reviewer_id, 'reviewer')
            return serialize_review(review)

    # Student views

    def get_student_upcoming(self, student_id: int, now: datetime = None) -> List[Dict]:
        """Soonest first"""
        now = now or datetime.now()
        with get_db() as db:
            reviews = db.query(ReviewSession).filter(
                ReviewSession.student_id == student_id,
                ReviewSession.status.in_(ACTIVE_STATUSES),
                ReviewSession.scheduled_at >= now
            ).order_by(ReviewSession.scheduled_at.asc()).all()
            return [serialize_review(r, include_marks=False) for r in reviews]

    def get_student_history(self, student_id: int) -> List[Dict]:
        """Marks are only shown once the review is scored"""
        with get_db() as db:
            reviews = db.query(ReviewSession).filter(
                ReviewSession.student_id == student_id,
                ReviewSession.status.in_((ReviewStatus.COMPLETED, ReviewStatus.SCORED))
            ).order_by(ReviewSession.scheduled_at.desc()).all()
            return [
                serialize_review(r, include_marks=r.status == ReviewStatus.SCORED) for r in reviews
            ]
