from sqlalchemy import Column, String, Integer, Date, ForeignKey, Enum, UniqueConstraint, CheckConstraint, event
from sqlalchemy.orm import relationship
import enum
from .base import BaseModel
from reviewflow.utils.timeslots import TimeRange, DAY_NAMES, day_of_week


class WindowKind(enum.Enum):
    RECURRING = "recurring"
    SPECIFIC = "specific"


class SlotType(enum.Enum):
    BOOKABLE = "bookable"
    BREAK = "break"


class AvailabilityWindow(BaseModel):
    """
    A reviewer's declared time window.

    Stored in one table, discriminated by ``kind``: a weekly
    ``RecurringWindow`` keyed by day of week, or a one-off ``SpecificWindow``
    keyed by calendar date. Times are normalised ``HH:MM`` strings so they
    also sort correctly in SQL.
    """
    __tablename__ = 'availability_windows'

    reviewer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    kind = Column(String(20), nullable=False)

    # 'dow:<n>' or 'date:<YYYY-MM-DD>', set before insert
    day_key = Column(String(20), nullable=False)

    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    slot_type = Column(Enum(SlotType), default=SlotType.BOOKABLE, nullable=False)
    label = Column(String(100))
    notes = Column(String(500))

    # Relationships
    reviewer = relationship("User", back_populates="availability_windows")

    __table_args__ = (
        UniqueConstraint('reviewer_id', 'day_key', 'slot_type', 'start_time', 'end_time',
                         name='uq_availability_window_slot'),
        CheckConstraint('start_time < end_time', name='ck_availability_window_range'),
    )

    # Load both payload shapes with every base query
    __mapper_args__ = {'polymorphic_on': kind, 'with_polymorphic': '*'}

    @property
    def time_range(self) -> TimeRange:
        return TimeRange.of(self.start_time, self.end_time)

    @property
    def is_bookable(self) -> bool:
        return self.slot_type == SlotType.BOOKABLE

    def compute_day_key(self) -> str:
        raise NotImplementedError

    def to_dict(self):
        return {
            'id': self.id,
            'reviewer_id': self.reviewer_id,
            'kind': self.kind,
            'day_of_week': None,
            'day_name': None,
            'date': None,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'slot_type': self.slot_type.value,
            'label': self.label,
            'notes': self.notes,
        }


class RecurringWindow(AvailabilityWindow):
    day_of_week = Column(Integer, CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_availability_window_dow'))

    __mapper_args__ = {'polymorphic_identity': WindowKind.RECURRING.value}

    def compute_day_key(self):
        return f"dow:{self.day_of_week}"

    def to_dict(self):
        data = super().to_dict()
        data['day_of_week'] = self.day_of_week
        data['day_name'] = DAY_NAMES[self.day_of_week]
        return data


class SpecificWindow(AvailabilityWindow):
    specific_date = Column(Date, index=True)

    __mapper_args__ = {'polymorphic_identity': WindowKind.SPECIFIC.value}

    def compute_day_key(self):
        return f"date:{self.specific_date.isoformat()}"

    def to_dict(self):
        data = super().to_dict()
        data['date'] = self.specific_date.isoformat()
        data['day_of_week'] = day_of_week(self.specific_date)
        data['day_name'] = DAY_NAMES[data['day_of_week']]
        return data


@event.listens_for(AvailabilityWindow, 'before_insert', propagate=True)
def _assign_day_key(mapper, connection, target):
    target.day_key = target.compute_day_key()
