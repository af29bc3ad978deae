#!/usr/bin/env python3
"""
Script to seed the database with sample data for local development
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import date, timedelta
from reviewflow.database import init_db, drop_db, get_db
from reviewflow.models import User, RecurringWindow, SpecificWindow
from reviewflow.models.availability import SlotType
from reviewflow.models.user import UserRole
from reviewflow.utils.security import generate_token
import random

DOMAINS = ['Python', 'MERN', 'Data Science', 'Flutter']


def create_users(db):
    """Create sample advisors, reviewers and students"""

    advisors = []
    for i in range(2):
        advisor = User(
            email=f'advisor{i+1}@reviewflow.app',
            phone=f'+1555555010{i}',
            name=f'Advisor {i+1}',
            role=UserRole.ADVISOR,
            domain=DOMAINS[i],
            is_active=True
        )
        db.add(advisor)
        advisors.append(advisor)

    reviewers = []
    for i in range(5):
        reviewer = User(
            email=f'reviewer{i+1}@reviewflow.app',
            phone=f'+1555555020{i}',
            name=f'Reviewer {i+1}',
            role=UserRole.REVIEWER,
            domain=random.choice(DOMAINS),
            is_active=True,
            notification_preferences={'email': True, 'sms': i % 2 == 0}
        )
        db.add(reviewer)
        reviewers.append(reviewer)

    # Advisors need ids before students can point at them
    db.flush()

    students = []
    for i in range(8):
        student = User(
            email=f'student{i+1}@reviewflow.app',
            name=f'Student {i+1}',
            role=UserRole.STUDENT,
            domain=advisors[i % 2].domain,
            advisor_id=advisors[i % 2].id,
            is_active=True
        )
        db.add(student)
        students.append(student)

    db.flush()
    return {
        'advisors': advisors,
        'reviewers': reviewers,
        'students': students
    }


def create_availability(db, reviewers):
    """Weekday mornings or afternoons, a lunch break, and one extra date per reviewer"""
    window_count = 0
    for idx, reviewer in enumerate(reviewers):
        start, end = ('09:00', '12:00') if idx % 2 == 0 else ('14:00', '17:00')
        for dow in random.sample(range(1, 6), 3):
            db.add(RecurringWindow(
                reviewer_id=reviewer.id, day_of_week=dow,
                start_time=start, end_time=end, slot_type=SlotType.BOOKABLE
            ))
            window_count += 1

        db.add(RecurringWindow(
            reviewer_id=reviewer.id, day_of_week=3,
            start_time='12:30', end_time='13:30',
            slot_type=SlotType.BREAK, label='Lunch'
        ))

        db.add(SpecificWindow(
            reviewer_id=reviewer.id, specific_date=date.today() + timedelta(days=idx + 7),
            start_time='18:00', end_time='20:00', slot_type=SlotType.BOOKABLE,
            notes='Evening slot'
        ))
        window_count += 1

    db.flush()
    print(f"Created {window_count} availability windows")


def main():
    """Main seeding function"""
    print("Dropping existing database...")
    drop_db()

    print("Initializing new database...")
    init_db()

    # Use a single session for all operations
    with get_db() as db:
        print("Creating users...")
        users = create_users(db)

        print("Creating availability...")
        create_availability(db, users['reviewers'])

        tokens = {
            group: [(u.email, generate_token({'user_id': u.id, 'role': u.role.value})) for u in members[:1]]
            for group, members in users.items()
        }

    print("\nDatabase seeded successfully!")
    print(f"Created:")
    print(f"- {len(users['advisors'])} Advisors")
    print(f"- {len(users['reviewers'])} Reviewers with weekly availability")
    print(f"- {len(users['students'])} Students")

    print("\nSample bearer tokens:")
    for group, pairs in tokens.items():
        for email, token in pairs:
            print(f"- {email}: {token}")


if __name__ == "__main__":
    main()
