from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from reviewflow.database import get_db
from reviewflow.errors import NotFoundError
from reviewflow.models import User, Notification
from reviewflow.integrations import TwilioClient, SendGridClient
from config.config import Config
from reviewflow.utils.logger import get_logger

logger = get_logger(__name__)

# event -> (title, message template filled from the payload)
EVENT_TEMPLATES = {
    'review_scheduled': (
        'Review scheduled',
        'A week {week} review has been scheduled for {scheduled_at}.'
    ),
    'review_rescheduled': (
        'Review rescheduled',
        'Your week {week} review has been moved to {scheduled_at}.'
    ),
    'review_cancelled': (
        'Review cancelled',
        'Your week {week} review on {scheduled_at} was cancelled. Reason: {reason}'
    ),
    'review_accepted': (
        'Review accepted',
        '{reviewer_name} accepted the week {week} review on {scheduled_at}.'
    ),
    'review_rejected': (
        'Review rejected',
        '{reviewer_name} rejected the week {week} review on {scheduled_at}. Reason: {reason}'
    ),
    'review_completed': (
        'Review completed',
        '{reviewer_name} completed the week {week} review and submitted scores. '
        'It is waiting for your final score.'
    ),
    'final_score_published': (
        'Final score published',
        'Your week {week} review has been scored: {marks}/10.'
    ),
}


class _PayloadDefaults(dict):
    def __missing__(self, key):
        return 'n/a'


class NotificationService:
    """
    Single emission point for review lifecycle events.

    ``notify`` never raises: the in-app record, email and SMS are all best
    effort, and a failure is logged without touching the caller's transaction.
    """

    _executor = None

    def __init__(self):
        self.twilio = TwilioClient()
        self.sendgrid = SendGridClient()

    @classmethod
    def _get_executor(cls) -> ThreadPoolExecutor:
        if cls._executor is None:
            cls._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='notify')
        return cls._executor

    def notify(self, event: str, recipient_id: int, payload: Optional[Dict] = None):
        """Dispatch an event to one recipient without waiting for delivery"""
        payload = dict(payload or {})
        if Config.NOTIFY_ASYNC:
            try:
                self._get_executor().submit(self.dispatch, event, recipient_id, payload)
            except RuntimeError as e:
                logger.error(f"Could not queue {event} notification for user {recipient_id}: {str(e)}")
            return None
        return self.dispatch(event, recipient_id, payload)

    def dispatch(self, event: str, recipient_id: int, payload: Dict, now: datetime = None) -> Optional[Dict]:
        """Persist the in-app notification and deliver it over the recipient's channels"""
        now = now or datetime.utcnow()
        try:
            title, message = self.render(event, payload)
            review_id = payload.get('review_id')

            with get_db() as db:
                recipient = db.get(User, recipient_id)
                if not recipient:
                    logger.warning(f"Notification {event} dropped, user {recipient_id} not found")
                    return None

                if self._is_duplicate(db, recipient_id, event, review_id, now):
                    logger.info(f"Suppressed duplicate {event} notification for user {recipient_id}")
                    return None

                notification = Notification(
                    recipient_id=recipient_id,
                    event=event,
                    title=title,
                    message=message,
                    review_session_id=review_id,
                    data=payload,
                    created_at=now,
                    updated_at=now,
                )
                db.add(notification)
                db.flush()
                result = notification.to_dict()

                preferences = recipient.notification_preferences or {}
                contact = {
                    'name': recipient.name,
                    'email': recipient.email if preferences.get('email', True) else None,
                    'phone': recipient.phone if preferences.get('sms', False) else None,
                }

            self._deliver(contact, title, message, payload)
            logger.info(f"Sent {event} notification to user {recipient_id}")
            return result

        except Exception as e:
            logger.error(f"Error sending {event} notification to user {recipient_id}: {str(e)}")
            return None

    def render(self, event: str, payload: Dict):
        if event not in EVENT_TEMPLATES:
            raise ValueError(f"Unknown notification event: {event}")
        title, template = EVENT_TEMPLATES[event]
        return title, template.format_map(_PayloadDefaults(payload))

    def _is_duplicate(self, db, recipient_id: int, event: str, review_id: Optional[int], now: datetime) -> bool:
        if not Config.NOTIFICATION_DEDUP_SECONDS:
            return False
        since = now - timedelta(seconds=Config.NOTIFICATION_DEDUP_SECONDS)
        return db.query(Notification).filter(
            Notification.recipient_id == recipient_id,
            Notification.event == event,
            Notification.review_session_id == review_id,
            Notification.created_at >= since
        ).first() is not None

    def _deliver(self, contact: Dict, title: str, message: str, payload: Dict):
        review_link = f"{Config.APP_URL}/reviews/{payload.get('review_id', '')}"
        details = {
            'Week': payload.get('week'),
            'When': payload.get('scheduled_at'),
            'Mode': payload.get('mode'),
            'Meeting link': payload.get('meeting_link'),
            'Location': payload.get('location'),
        }

        if contact['email']:
            self.sendgrid.send_review_notification(
                contact['email'], contact['name'], title, message, details, review_link
            )
        if contact['phone']:
            self.twilio.send_review_update(contact['phone'], title, payload.get('scheduled_at'))

    def list_notifications(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Dict]:
        """Newest first"""
        with get_db() as db:
            query = db.query(Notification).filter(Notification.recipient_id == user_id)
            if unread_only:
                query = query.filter(Notification.is_read == False)  # noqa: E712
            notifications = query.order_by(
                Notification.created_at.desc(), Notification.id.desc()
            ).limit(limit).all()
            return [n.to_dict() for n in notifications]

    def mark_read(self, notification_id: int, user_id: int) -> Dict:
        with get_db() as db:
            notification = db.query(Notification).filter_by(
                id=notification_id, recipient_id=user_id
            ).first()
            if not notification:
                raise NotFoundError('Notification')

            if not notification.is_read:
                notification.is_read = True
                notification.read_at = datetime.utcnow()
            db.flush()
            return notification.to_dict()
