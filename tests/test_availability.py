import pytest
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from reviewflow.database import get_db
from reviewflow.errors import ConflictError, ValidationError, NotFoundError, AuthorizationError
from reviewflow.models import RecurringWindow
from reviewflow.models.review_session import ReviewStatus
from reviewflow.services.availability_service import AvailabilityService
from reviewflow.services.review_service import ReviewService


def monday_window(start='09:00', end='11:00', **extra):
    data = {'day_of_week': 1, 'start_time': start, 'end_time': end}
    data.update(extra)
    return data


class TestCreateWindow:
    """Test window creation and conflict detection"""

    def test_create_recurring_window(self, people, now):
        service = AvailabilityService()
        window = service.create_window(people['reviewer'].id, monday_window('9:00', '11:00'), now=now)

        assert window['id'] is not None
        assert window['kind'] == 'recurring'
        assert window['day_of_week'] == 1
        assert window['day_name'] == 'Monday'
        assert window['start_time'] == '09:00'
        assert window['slot_type'] == 'bookable'

    def test_create_specific_window(self, people, now, monday):
        service = AvailabilityService()
        window = service.create_window(
            people['reviewer'].id,
            {'date': monday.isoformat(), 'start_time': '14:00', 'end_time': '15:30', 'notes': 'One-off'},
            now=now
        )

        assert window['kind'] == 'specific'
        assert window['date'] == '2030-01-07'
        assert window['day_of_week'] == 1
        assert window['notes'] == 'One-off'

    def test_overlap_rejected_and_existing_untouched(self, people, now):
        """Monday 09:00-11:00 then Monday 10:00-12:00"""
        service = AvailabilityService()
        reviewer_id = people['reviewer'].id
        first = service.create_window(reviewer_id, monday_window('09:00', '11:00'), now=now)

        with pytest.raises(ConflictError) as exc:
            service.create_window(reviewer_id, monday_window('10:00', '12:00'), now=now)

        assert exc.value.conflict_type == 'overlap'
        assert exc.value.existing['id'] == first['id']
        assert exc.value.status_code == 409

        windows = service.get_my_availability(reviewer_id)['all']
        assert len(windows) == 1
        assert (windows[0]['start_time'], windows[0]['end_time']) == ('09:00', '11:00')

    def test_exact_duplicate_rejected(self, people, now):
        service = AvailabilityService()
        reviewer_id = people['reviewer'].id
        service.create_window(reviewer_id, monday_window(), now=now)

        with pytest.raises(ConflictError) as exc:
            service.create_window(reviewer_id, monday_window(), now=now)

        assert exc.value.conflict_type == 'duplicate'
        assert exc.value.to_dict()['conflict_type'] == 'duplicate'

    def test_touching_windows_allowed(self, people, now):
        service = AvailabilityService()
        reviewer_id = people['reviewer'].id
        service.create_window(reviewer_id, monday_window('09:00', '11:00'), now=now)
        service.create_window(reviewer_id, monday_window('11:00', '12:00'), now=now)
        service.create_window(reviewer_id, monday_window('08:00', '09:00'), now=now)

        assert len(service.get_my_availability(reviewer_id)['all']) == 3

    def test_same_time_other_day_or_reviewer_allowed(self, people, now, monday):
        service = AvailabilityService()
        service.create_window(people['reviewer'].id, monday_window(), now=now)
        service.create_window(people['reviewer'].id, {'day_of_week': 2, 'start_time': '09:00', 'end_time': '11:00'}, now=now)
        service.create_window(people['second_reviewer'].id, monday_window(), now=now)

        # A one-off date never collides with a weekly window
        service.create_window(
            people['reviewer'].id,
            {'date': monday.isoformat(), 'start_time': '09:00', 'end_time': '11:00'},
            now=now
        )

    def test_past_date_rejected(self, people, now):
        service = AvailabilityService()
        with pytest.raises(ValidationError) as exc:
            service.create_window(
                people['reviewer'].id,
                {'date': '2029-12-31', 'start_time': '09:00', 'end_time': '10:00'},
                now=now
            )
        assert exc.value.field == 'date'

    @pytest.mark.parametrize('data, field', [
        ({'day_of_week': 1, 'start_time': '9am', 'end_time': '11:00'}, 'start_time'),
        ({'day_of_week': 1, 'start_time': '11:00', 'end_time': '09:00'}, 'end_time'),
        ({'day_of_week': 7, 'start_time': '09:00', 'end_time': '11:00'}, 'day_of_week'),
        ({'start_time': '09:00', 'end_time': '11:00'}, 'date'),
        ({'date': '07-01-2030', 'start_time': '09:00', 'end_time': '11:00'}, 'date'),
        ({'day_of_week': 1, 'end_time': '11:00'}, 'start_time'),
    ])
    def test_invalid_input(self, people, now, data, field):
        service = AvailabilityService()
        with pytest.raises(ValidationError) as exc:
            service.create_window(people['reviewer'].id, data, now=now)
        assert exc.value.field == field

    def test_only_reviewers_own_windows(self, people, now):
        service = AvailabilityService()
        with pytest.raises(AuthorizationError):
            service.create_window(people['advisor'].id, monday_window(), now=now)

    def test_storage_rejects_identical_window(self, people):
        """The unique constraint holds even without the service pre-check"""
        reviewer_id = people['reviewer'].id
        with get_db() as db:
            db.add(RecurringWindow(reviewer_id=reviewer_id, day_of_week=1, start_time='09:00', end_time='11:00'))

        with pytest.raises(IntegrityError):
            with get_db() as db:
                db.add(RecurringWindow(reviewer_id=reviewer_id, day_of_week=1, start_time='09:00', end_time='11:00'))


class TestBreaks:
    """Test break blocks"""

    def test_break_does_not_conflict_with_bookable(self, people, now):
        service = AvailabilityService()
        reviewer_id = people['reviewer'].id
        service.create_window(reviewer_id, monday_window('09:00', '13:00'), now=now)
        brk = service.create_break(reviewer_id, monday_window('12:00', '12:30'), now=now)

        assert brk['slot_type'] == 'break'
        assert brk['label'] == 'Break'

    def test_breaks_conflict_with_breaks(self, people, now):
        service = AvailabilityService()
        reviewer_id = people['reviewer'].id
        service.create_break(reviewer_id, monday_window('12:00', '13:00', label='Lunch'), now=now)

        with pytest.raises(ConflictError) as exc:
            service.create_break(reviewer_id, monday_window('12:30', '13:30'), now=now)
        assert exc.value.conflict_type == 'overlap'

    def test_weekly_grid_splits_breaks(self, people, now):
        service = AvailabilityService()
        reviewer_id = people['reviewer'].id
        service.create_window(reviewer_id, monday_window('09:00', '13:00'), now=now)
        service.create_break(reviewer_id, monday_window('12:00', '12:30', label='Lunch'), now=now)

        grid = service.get_weekly_grid(reviewer_id)
        assert [w['start_time'] for w in grid['availability']] == ['09:00']
        assert [w['label'] for w in grid['breaks']] == ['Lunch']


class TestWindowsByDate:
    """Test the by-date query and its is_booked flags"""

    def test_booked_window(self, people, now, monday, notifier):
        """Monday 09:00-11:00 with a pending review at 09:30 shows as booked"""
        availability = AvailabilityService()
        reviews = ReviewService(notifier)
        availability.create_window(people['reviewer'].id, monday_window('09:00', '11:00'), now=now)
        availability.create_window(people['reviewer'].id, monday_window('14:00', '16:00'), now=now)

        reviews.create_review(people['advisor'].id, {
            'student_id': people['student'].id,
            'reviewer_id': people['reviewer'].id,
            'week': 2,
            'scheduled_at': '2030-01-07T09:30:00',
            'mode': 'online',
        }, now=now)

        slots = availability.get_windows_by_date(monday, now=now)
        assert [(s['start_time'], s['is_booked']) for s in slots] == [('09:00', True), ('14:00', False)]
        assert slots[0]['reviewer']['id'] == people['reviewer'].id
        assert slots[0]['date'] == '2030-01-07'

    def test_query_is_idempotent(self, people, now, monday, make_review):
        availability = AvailabilityService()
        availability.create_window(people['reviewer'].id, monday_window(), now=now)
        make_review(status=ReviewStatus.SCHEDULED)

        first = availability.get_windows_by_date(monday, now=now)
        second = availability.get_windows_by_date(monday, now=now)
        assert first == second
        assert first[0]['is_booked'] is True

    def test_cancelled_review_frees_window(self, people, now, monday, make_review):
        availability = AvailabilityService()
        availability.create_window(people['reviewer'].id, monday_window(), now=now)
        make_review(status=ReviewStatus.CANCELLED)

        assert availability.get_windows_by_date(monday, now=now)[0]['is_booked'] is False

    def test_review_at_window_end_does_not_book_it(self, people, now, monday, make_review):
        availability = AvailabilityService()
        availability.create_window(people['reviewer'].id, monday_window('09:00', '11:00'), now=now)
        make_review(scheduled_at=datetime(2030, 1, 7, 11, 0))

        assert availability.get_windows_by_date(monday, now=now)[0]['is_booked'] is False

    def test_other_reviewers_sessions_ignored(self, people, now, monday, make_review):
        availability = AvailabilityService()
        availability.create_window(people['second_reviewer'].id, monday_window(), now=now)
        make_review()

        slots = availability.get_windows_by_date(monday, now=now)
        assert slots[0]['is_booked'] is False

    def test_today_drops_started_windows(self, people, now, monday):
        availability = AvailabilityService()
        availability.create_window(people['reviewer'].id, monday_window('09:00', '11:00'), now=now)
        availability.create_window(people['reviewer'].id, monday_window('14:00', '16:00'), now=now)

        slots = availability.get_windows_by_date(monday, now=datetime(2030, 1, 7, 10, 0))
        assert [s['start_time'] for s in slots] == ['14:00']

    def test_specific_and_recurring_merge_sorted(self, people, now, monday):
        availability = AvailabilityService()
        availability.create_window(people['reviewer'].id, monday_window('13:00', '14:00'), now=now)
        availability.create_window(
            people['second_reviewer'].id,
            {'date': monday.isoformat(), 'start_time': '08:30', 'end_time': '09:30'},
            now=now
        )
        availability.create_window(
            people['second_reviewer'].id,
            {'date': '2030-01-08', 'start_time': '08:00', 'end_time': '09:00'},
            now=now
        )

        slots = availability.get_windows_by_date(monday, now=now)
        assert [(s['kind'], s['start_time']) for s in slots] == [('specific', '08:30'), ('recurring', '13:00')]

        only_first = availability.get_windows_by_date(monday, reviewer_id=people['reviewer'].id, now=now)
        assert [s['start_time'] for s in only_first] == ['13:00']

    def test_breaks_never_offered(self, people, now, monday):
        availability = AvailabilityService()
        availability.create_break(people['reviewer'].id, monday_window('12:00', '13:00'), now=now)

        assert availability.get_windows_by_date(monday, now=now) == []


class TestManageWindows:
    """Test listing, deletion and reviewer summaries"""

    def test_my_availability_sorted(self, people, now, monday):
        service = AvailabilityService()
        reviewer_id = people['reviewer'].id
        service.create_window(reviewer_id, {'day_of_week': 3, 'start_time': '09:00', 'end_time': '10:00'}, now=now)
        service.create_window(reviewer_id, {'date': monday.isoformat(), 'start_time': '09:00', 'end_time': '10:00'}, now=now)
        service.create_window(reviewer_id, monday_window('14:00', '15:00'), now=now)
        service.create_window(reviewer_id, monday_window('08:00', '09:00'), now=now)

        result = service.get_my_availability(reviewer_id)
        assert [(w['day_of_week'], w['start_time']) for w in result['recurring']] == [
            (1, '08:00'), (1, '14:00'), (3, '09:00')
        ]
        assert [w['date'] for w in result['specific']] == ['2030-01-07']
        assert len(result['all']) == 4

    def test_delete_only_by_owner(self, people, now):
        service = AvailabilityService()
        window = service.create_window(people['reviewer'].id, monday_window(), now=now)

        with pytest.raises(NotFoundError):
            service.delete_window(people['second_reviewer'].id, window['id'])

        service.delete_window(people['reviewer'].id, window['id'])
        assert service.get_my_availability(people['reviewer'].id)['all'] == []

        with pytest.raises(NotFoundError):
            service.delete_window(people['reviewer'].id, window['id'])

    def test_reviewer_summaries(self, people, now):
        service = AvailabilityService()
        service.create_window(people['reviewer'].id, monday_window('09:00', '11:00'), now=now)
        service.create_window(people['reviewer'].id, {'day_of_week': 3, 'start_time': '10:00', 'end_time': '11:00'}, now=now)
        service.create_break(people['reviewer'].id, {'day_of_week': 2, 'start_time': '12:00', 'end_time': '13:00'}, now=now)

        # Tuesday 08:00: the next window is Wednesday's
        summaries = {s['id']: s for s in service.get_reviewers_with_availability(now=now)}

        rita = summaries[people['reviewer'].id]
        assert rita['availability'] == ['Mon', 'Wed']
        assert rita['total_slots'] == 2
        assert rita['status'] == 'Available'
        assert rita['next_slot'] == 'Tomorrow 10:00'

        remy = summaries[people['second_reviewer'].id]
        assert remy['status'] == 'No Slots'
        assert remy['next_slot'] == 'No slots available'
        assert people['advisor'].id not in summaries

    def test_summary_drops_started_one_off_windows(self, people, now, monday):
        service = AvailabilityService()
        reviewer_id = people['reviewer'].id
        service.create_window(reviewer_id, {'date': monday.isoformat(), 'start_time': '09:00', 'end_time': '10:30'}, now=now)
        service.create_window(reviewer_id, {'date': monday.isoformat(), 'start_time': '14:00', 'end_time': '15:00'}, now=now)

        summaries = {s['id']: s for s in service.get_reviewers_with_availability(now=datetime(2030, 1, 7, 10, 0))}

        rita = summaries[reviewer_id]
        assert rita['total_slots'] == 1
        assert [w['start_time'] for w in rita['slots']] == ['14:00']
        assert rita['next_slot'] == 'Today 14:00'
