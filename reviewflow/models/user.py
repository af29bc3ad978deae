from sqlalchemy import Column, String, Boolean, Enum, JSON, Integer, ForeignKey
from sqlalchemy.orm import relationship
import enum
from .base import BaseModel


class UserRole(enum.Enum):
    ADVISOR = "advisor"
    REVIEWER = "reviewer"
    STUDENT = "student"
    ADMIN = "admin"


class User(BaseModel):
    """Directory entry for a program participant.

    Accounts are issued and maintained by the identity provider; this table
    only mirrors what scheduling needs: role, contact details, the advisor a
    student belongs to and notification preferences.
    """
    __tablename__ = 'users'

    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20))
    name = Column(String(200), nullable=False)
    role = Column(Enum(UserRole), nullable=False)
    domain = Column(String(100))

    is_active = Column(Boolean, default=True)

    # Student-specific fields
    advisor_id = Column(Integer, ForeignKey('users.id'), index=True)

    # Preferences
    notification_preferences = Column(JSON, default=lambda: {"sms": False, "email": True})

    # Relationships
    availability_windows = relationship("AvailabilityWindow", back_populates="reviewer", lazy='dynamic')
    notifications = relationship("Notification", back_populates="recipient", lazy='dynamic')

    def to_summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'domain': self.domain,
        }
