from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, DateTime, JSON
from sqlalchemy.orm import relationship
from .base import BaseModel


class Notification(BaseModel):
    """In-app notification produced by a review lifecycle event"""
    __tablename__ = 'notifications'

    recipient_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    event = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(String(1000), nullable=False)

    # Review the event refers to, used for duplicate suppression
    review_session_id = Column(Integer, ForeignKey('review_sessions.id'), index=True)
    data = Column(JSON)

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime)

    # Relationships
    recipient = relationship("User", back_populates="notifications")

    def to_dict(self):
        return {
            'id': self.id,
            'event': self.event,
            'title': self.title,
            'message': self.message,
            'review_session_id': self.review_session_id,
            'data': self.data or {},
            'is_read': self.is_read,
            'read_at': self.read_at.isoformat() if self.read_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
