from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from reviewflow.database import get_db
from reviewflow.errors import ConflictError, NotFoundError, AuthorizationError, ValidationError
from reviewflow.models import User, AvailabilityWindow, RecurringWindow, SpecificWindow, ReviewSession
from reviewflow.models.availability import SlotType, WindowKind
from reviewflow.models.review_session import BOOKING_STATUSES
from reviewflow.models.user import UserRole
from reviewflow.utils.timeslots import (
    TimeOfDay, DAY_SHORT_NAMES, day_of_week, find_conflict, next_available_slot, format_slot_label
)
from reviewflow.utils.validators import validate_window
from reviewflow.utils.logger import get_logger

logger = get_logger(__name__)


def day_keys_for(target_date: date) -> List[str]:
    """Keys of every window that can apply to a calendar date"""
    return [f"dow:{day_of_week(target_date)}", f"date:{target_date.isoformat()}"]


class AvailabilityService:
    """Service for reviewer availability windows and slot lookup"""

    def create_window(self, reviewer_id: int, data: Dict, now: datetime = None) -> Dict:
        """Create a bookable window"""
        return self._create(reviewer_id, data, SlotType.BOOKABLE, now or datetime.now())

    def create_break(self, reviewer_id: int, data: Dict, now: datetime = None) -> Dict:
        """Create a break block; breaks are never offered for booking"""
        return self._create(reviewer_id, data, SlotType.BREAK, now or datetime.now())

    def _create(self, reviewer_id: int, data: Dict, slot_type: SlotType, now: datetime) -> Dict:
        cleaned = validate_window(data, now.date())
        time_range = cleaned['time_range']

        if cleaned['kind'] == WindowKind.SPECIFIC.value:
            window = SpecificWindow(specific_date=cleaned['specific_date'])
        else:
            window = RecurringWindow(day_of_week=cleaned['day_of_week'])

        window.reviewer_id = reviewer_id
        window.start_time = str(time_range.start)
        window.end_time = str(time_range.end)
        window.slot_type = slot_type
        window.notes = cleaned['notes']
        if slot_type == SlotType.BREAK:
            window.label = cleaned['label'] or 'Break'
        window.day_key = window.compute_day_key()

        try:
            with get_db() as db:
                reviewer = db.get(User, reviewer_id)
                if not reviewer or reviewer.role != UserRole.REVIEWER:
                    raise AuthorizationError()

                # Breaks only collide with breaks, bookable windows with bookable ones
                existing = db.query(AvailabilityWindow).filter(
                    AvailabilityWindow.reviewer_id == reviewer_id,
                    AvailabilityWindow.day_key == window.day_key,
                    AvailabilityWindow.slot_type == slot_type
                ).all()

                conflict = find_conflict(time_range, [(w, w.time_range) for w in existing])
                if conflict:
                    self._raise_conflict(*conflict, requested=time_range)

                db.add(window)
                db.flush()
                result = window.to_dict()

        except IntegrityError:
            # Lost a race with an identical insert
            logger.info(f"Duplicate window for reviewer {reviewer_id} rejected by unique constraint")
            raise ConflictError(
                f"This time slot already exists ({time_range.start} - {time_range.end})", 'duplicate'
            )

        logger.info(f"Reviewer {reviewer_id} added {slot_type.value} window {result['id']} ({window.day_key} {time_range})")
        return result

    def _raise_conflict(self, conflict_type: str, existing: AvailabilityWindow, requested):
        if conflict_type == 'duplicate':
            message = f"This time slot already exists ({requested.start} - {requested.end})"
        else:
            message = (
                f"This time slot overlaps with an existing availability "
                f"({existing.start_time} - {existing.end_time})"
            )
        logger.info(f"Window {requested} rejected: {conflict_type} of window {existing.id}")
        raise ConflictError(message, conflict_type, existing.to_dict())

    def delete_window(self, reviewer_id: int, window_id: int) -> None:
        """Windows are never updated in place; delete and recreate instead"""
        with get_db() as db:
            window = db.query(AvailabilityWindow).filter_by(id=window_id, reviewer_id=reviewer_id).first()
            if not window:
                raise NotFoundError('Availability')
            db.delete(window)

        logger.info(f"Reviewer {reviewer_id} deleted window {window_id}")

    def get_my_availability(self, reviewer_id: int) -> Dict:
        """All of a reviewer's windows, split by kind"""
        with get_db() as db:
            windows = db.query(AvailabilityWindow).filter_by(reviewer_id=reviewer_id).all()

        windows.sort(key=self._sort_key)
        all_windows = [w.to_dict() for w in windows]
        return {
            'recurring': [w for w in all_windows if w['kind'] == WindowKind.RECURRING.value],
            'specific': [w for w in all_windows if w['kind'] == WindowKind.SPECIFIC.value],
            'all': all_windows,
        }

    def get_weekly_grid(self, reviewer_id: int) -> Dict:
        """Bookable windows and breaks for the reviewer's calendar view"""
        with get_db() as db:
            windows = db.query(AvailabilityWindow).filter_by(reviewer_id=reviewer_id).all()

        windows.sort(key=self._sort_key)
        return {
            'availability': [w.to_dict() for w in windows if w.is_bookable],
            'breaks': [w.to_dict() for w in windows if not w.is_bookable],
        }

    @staticmethod
    def _sort_key(window: AvailabilityWindow):
        if window.kind == WindowKind.RECURRING.value:
            return (0, window.day_of_week, '', window.start_time)
        return (1, 0, window.specific_date.isoformat(), window.start_time)

    def get_windows_by_date(self, target_date: date, reviewer_id: Optional[int] = None,
                            now: datetime = None) -> List[Dict]:
        """
        Bookable windows that apply to ``target_date``, ordered by start time.

        Each entry carries ``is_booked``: true when a pending or scheduled
        session of the same reviewer starts inside the window on that date.
        Windows that already started are dropped when the date is today.
        """
        now = now or datetime.now()
        if not isinstance(target_date, date):
            raise ValidationError("Invalid date format. Use YYYY-MM-DD", 'date')

        with get_db() as db:
            query = db.query(AvailabilityWindow).filter(
                AvailabilityWindow.slot_type == SlotType.BOOKABLE,
                AvailabilityWindow.day_key.in_(day_keys_for(target_date))
            )
            if reviewer_id:
                query = query.filter(AvailabilityWindow.reviewer_id == reviewer_id)
            windows = query.all()

            if target_date == now.date():
                current_time = str(TimeOfDay.from_time(now))
                windows = [w for w in windows if w.start_time > current_time]

            reviewer_ids = {w.reviewer_id for w in windows}
            reviewers = {}
            booked_times = {}
            if reviewer_ids:
                reviewers = {
                    u.id: u for u in db.query(User).filter(User.id.in_(reviewer_ids)).all()
                }
                day_start = datetime.combine(target_date, datetime.min.time())
                sessions = db.query(ReviewSession).filter(
                    ReviewSession.reviewer_id.in_(reviewer_ids),
                    ReviewSession.status.in_(BOOKING_STATUSES),
                    ReviewSession.scheduled_at >= day_start,
                    ReviewSession.scheduled_at < day_start + timedelta(days=1)
                ).all()
                for session in sessions:
                    booked_times.setdefault(session.reviewer_id, []).append(
                        TimeOfDay.from_time(session.scheduled_at)
                    )

        slots = []
        for window in sorted(windows, key=lambda w: (w.start_time, w.end_time, w.reviewer_id, w.id)):
            slot = window.to_dict()
            slot['date'] = target_date.isoformat()
            slot['is_booked'] = any(
                window.time_range.contains(moment) for moment in booked_times.get(window.reviewer_id, [])
            )
            reviewer = reviewers.get(window.reviewer_id)
            slot['reviewer'] = reviewer.to_summary() if reviewer else None
            slots.append(slot)

        return slots

    def next_available_label(self, windows: List[AvailabilityWindow], now: datetime) -> str:
        """Label of the next bookable window start after ``now``"""
        recurring = [
            (w.day_of_week, TimeOfDay.parse(w.start_time))
            for w in windows if w.is_bookable and w.kind == WindowKind.RECURRING.value
        ]
        specific = [
            (w.specific_date, TimeOfDay.parse(w.start_time))
            for w in windows if w.is_bookable and w.kind == WindowKind.SPECIFIC.value
        ]

        slot = next_available_slot(recurring, specific, now)
        if not slot:
            return "No slots available"
        slot_date, start = slot
        return format_slot_label(slot_date, start, now.date())

    def get_reviewers_with_availability(self, now: datetime = None) -> List[Dict]:
        """Scheduling overview of every active reviewer"""
        now = now or datetime.now()
        today = now.date()

        with get_db() as db:
            reviewers = db.query(User).filter(
                User.role == UserRole.REVIEWER,
                User.is_active == True  # noqa: E712
            ).order_by(User.name).all()

            windows_by_reviewer = {r.id: [] for r in reviewers}
            if reviewers:
                windows = db.query(AvailabilityWindow).filter(
                    AvailabilityWindow.reviewer_id.in_(windows_by_reviewer.keys()),
                    AvailabilityWindow.slot_type == SlotType.BOOKABLE,
                    or_(
                        AvailabilityWindow.kind == WindowKind.RECURRING.value,
                        AvailabilityWindow.__table__.c.specific_date >= today
                    )
                ).all()
                current_time = str(TimeOfDay.from_time(now))
                for window in windows:
                    # One-off windows that already started today are gone
                    if (window.kind == WindowKind.SPECIFIC.value and window.specific_date == today
                            and window.start_time <= current_time):
                        continue
                    windows_by_reviewer[window.reviewer_id].append(window)

        summaries = []
        for reviewer in reviewers:
            windows = sorted(windows_by_reviewer[reviewer.id], key=self._sort_key)
            days = []
            for window in windows:
                name = DAY_SHORT_NAMES[window.to_dict()['day_of_week']]
                if name not in days:
                    days.append(name)

            summary = reviewer.to_summary()
            summary.update({
                'title': reviewer.domain or 'Reviewer',
                'availability': days,
                'slots': [w.to_dict() for w in windows],
                'next_slot': self.next_available_label(windows, now),
                'status': 'Available' if windows else 'No Slots',
                'total_slots': len(windows),
            })
            summaries.append(summary)

        return summaries
