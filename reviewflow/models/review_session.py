from sqlalchemy import Column, String, Integer, Float, ForeignKey, DateTime, Enum, Index, text
from sqlalchemy.orm import relationship
import enum
from .base import BaseModel


class ReviewStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    SCORED = "scored"
    CANCELLED = "cancelled"


class ReviewMode(enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


# Statuses that hold the reviewer's time
ACTIVE_STATUSES = (ReviewStatus.PENDING, ReviewStatus.ACCEPTED, ReviewStatus.SCHEDULED)

# Statuses that mark an availability window as booked
BOOKING_STATUSES = (ReviewStatus.SCHEDULED, ReviewStatus.PENDING)

# action -> (statuses it may start from, resulting status)
TRANSITIONS = {
    'accept': ((ReviewStatus.PENDING,), ReviewStatus.ACCEPTED),
    'reject': ((ReviewStatus.PENDING,), ReviewStatus.REJECTED),
    'reschedule': (ACTIVE_STATUSES, ReviewStatus.SCHEDULED),
    'cancel': (ACTIVE_STATUSES, ReviewStatus.CANCELLED),
    'complete': ((ReviewStatus.ACCEPTED,), ReviewStatus.COMPLETED),
    'score': ((ReviewStatus.COMPLETED,), ReviewStatus.SCORED),
}

# Details (time, mode, location) may still be edited in these statuses
EDITABLE_STATUSES = ACTIVE_STATUSES + (ReviewStatus.COMPLETED,)


class ReviewSession(BaseModel):
    __tablename__ = 'review_sessions'

    student_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    advisor_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    week = Column(Integer, nullable=False)

    # Schedule
    scheduled_at = Column(DateTime, nullable=False, index=True)
    mode = Column(Enum(ReviewMode), nullable=False)
    meeting_link = Column(String(500))
    location = Column(String(500))

    # Status
    status = Column(Enum(ReviewStatus), default=ReviewStatus.PENDING, nullable=False, index=True)

    # Outcome
    marks = Column(Float)
    feedback = Column(String(2000))

    # Relationships
    student = relationship("User", foreign_keys=[student_id])
    advisor = relationship("User", foreign_keys=[advisor_id])
    reviewer = relationship("User", foreign_keys=[reviewer_id])
    reviewer_evaluation = relationship("ReviewerEvaluation", back_populates="review_session", uselist=False)
    final_evaluation = relationship("FinalEvaluation", back_populates="review_session", uselist=False)

    __table_args__ = (
        Index('ix_review_sessions_student_week', 'student_id', 'week'),
        # A reviewer cannot hold two active sessions at the same instant
        Index(
            'uq_review_sessions_reviewer_slot', 'reviewer_id', 'scheduled_at',
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'ACCEPTED', 'SCHEDULED')"),
            postgresql_where=text("status IN ('PENDING', 'ACCEPTED', 'SCHEDULED')"),
        ),
    )

    def to_dict(self, include_marks: bool = True):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'advisor_id': self.advisor_id,
            'reviewer_id': self.reviewer_id,
            'week': self.week,
            'scheduled_at': self.scheduled_at.isoformat(),
            'mode': self.mode.value,
            'meeting_link': self.meeting_link,
            'location': self.location,
            'status': self.status.value,
            'marks': self.marks if include_marks else None,
            'feedback': self.feedback,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
