import os

# Must be set before config.config is imported anywhere
os.environ['DATABASE_URL'] = 'sqlite:///test_reviewflow.db'
os.environ['LOG_FILE'] = 'logs/test_reviewflow.log'
os.environ['NOTIFY_ASYNC'] = 'false'
os.environ['SENDGRID_API_KEY'] = ''
os.environ['TWILIO_ACCOUNT_SID'] = ''
os.environ['TWILIO_AUTH_TOKEN'] = ''

from datetime import date, datetime
from unittest.mock import Mock

import pytest

from reviewflow.database import drop_db, init_db, DatabaseManager
from reviewflow.models import User, ReviewSession
from reviewflow.models.review_session import ReviewStatus, ReviewMode
from reviewflow.models.user import UserRole
from reviewflow.services.notification_service import NotificationService

# Tuesday; the following Monday is 2030-01-07
NOW = datetime(2030, 1, 1, 8, 0)
MONDAY = date(2030, 1, 7)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def people():
    """Fresh database with one advisor's cohort and two reviewers"""
    init_db()

    user_db = DatabaseManager(User)

    advisor = user_db.create(
        email='advisor@test.com', name='Ada Advisor', role=UserRole.ADVISOR, is_active=True
    )
    other_advisor = user_db.create(
        email='advisor2@test.com', name='Otto Advisor', role=UserRole.ADVISOR, is_active=True
    )
    reviewer = user_db.create(
        email='reviewer@test.com', phone='+15551230001', name='Rita Reviewer',
        role=UserRole.REVIEWER, domain='Python', is_active=True,
        notification_preferences={'email': True, 'sms': True}
    )
    second_reviewer = user_db.create(
        email='reviewer2@test.com', name='Remy Reviewer',
        role=UserRole.REVIEWER, domain='MERN', is_active=True
    )
    student = user_db.create(
        email='student@test.com', name='Sam Student', role=UserRole.STUDENT,
        advisor_id=advisor.id, is_active=True
    )
    other_student = user_db.create(
        email='student2@test.com', name='Sid Student', role=UserRole.STUDENT,
        advisor_id=other_advisor.id, is_active=True
    )

    yield {
        'advisor': advisor,
        'other_advisor': other_advisor,
        'reviewer': reviewer,
        'second_reviewer': second_reviewer,
        'student': student,
        'other_student': other_student,
    }

    drop_db()


@pytest.fixture
def notifier():
    """Stand-in dispatcher recording notify() calls"""
    return Mock(spec=NotificationService)


@pytest.fixture
def make_review(people):
    """Insert a review directly in a given status"""
    review_db = DatabaseManager(ReviewSession)

    def _make(status=ReviewStatus.PENDING, scheduled_at=datetime(2030, 1, 7, 9, 30), **overrides):
        fields = dict(
            student_id=people['student'].id,
            advisor_id=people['advisor'].id,
            reviewer_id=people['reviewer'].id,
            week=3,
            scheduled_at=scheduled_at,
            mode=ReviewMode.OFFLINE,
            location='Room 4',
            status=status,
        )
        fields.update(overrides)
        return review_db.create(**fields)

    return _make


@pytest.fixture
def evaluation_payload():
    """Valid stage-1 submission averaging 7.75"""
    return {
        'scores': {
            'technical_understanding': 8,
            'task_completion': 7.5,
            'communication': 9,
            'problem_solving': 6.5,
        },
        'feedback': 'Solid grasp of closures, needs more practice with async flows',
        'remarks': 'Revisit promises',
    }
