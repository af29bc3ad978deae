from sqlalchemy import Column, String, Integer, Float, ForeignKey, JSON, event
from sqlalchemy.orm import relationship
from .base import BaseModel
from reviewflow.utils.scoring import compute_average_score


class ReviewerEvaluation(BaseModel):
    """Stage-1 evaluation: the reviewer's task-wise scores for one session"""
    __tablename__ = 'reviewer_evaluations'

    review_session_id = Column(Integer, ForeignKey('review_sessions.id'), nullable=False, unique=True)
    reviewer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Task-wise scores (0-10, 0.5 step)
    technical_understanding = Column(Float, nullable=False)
    task_completion = Column(Float, nullable=False)
    communication = Column(Float, nullable=False)
    problem_solving = Column(Float, nullable=False)

    # Derived from the four scores on every save
    average_score = Column(Float, nullable=False)

    feedback = Column(String(2000), nullable=False)
    remarks = Column(String(500))

    # Relationships
    review_session = relationship("ReviewSession", back_populates="reviewer_evaluation")
    reviewer = relationship("User")

    @property
    def scores(self):
        return {
            'technical_understanding': self.technical_understanding,
            'task_completion': self.task_completion,
            'communication': self.communication,
            'problem_solving': self.problem_solving,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'review_session_id': self.review_session_id,
            'reviewer_id': self.reviewer_id,
            'scores': self.scores,
            'average_score': self.average_score,
            'feedback': self.feedback,
            'remarks': self.remarks,
            'submitted_at': self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(ReviewerEvaluation, 'before_insert')
@event.listens_for(ReviewerEvaluation, 'before_update')
def _recompute_average_score(mapper, connection, target):
    target.average_score = compute_average_score(target.scores)


class FinalEvaluation(BaseModel):
    """Stage-2 evaluation: the advisor's authoritative score for one session"""
    __tablename__ = 'final_evaluations'

    review_session_id = Column(Integer, ForeignKey('review_sessions.id'), nullable=False, unique=True)
    advisor_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    reviewer_evaluation_id = Column(Integer, ForeignKey('reviewer_evaluations.id'), nullable=False)

    final_score = Column(Float, nullable=False)
    attendance = Column(Float, default=0, nullable=False)
    discipline = Column(Float, default=0, nullable=False)

    # Optional advisor overrides of the stage-1 dimensions
    adjusted_scores = Column(JSON)

    final_remarks = Column(String(1000))

    # Relationships
    review_session = relationship("ReviewSession", back_populates="final_evaluation")
    reviewer_evaluation = relationship("ReviewerEvaluation")
    advisor = relationship("User")

    def to_dict(self):
        return {
            'id': self.id,
            'review_session_id': self.review_session_id,
            'advisor_id': self.advisor_id,
            'final_score': self.final_score,
            'attendance': self.attendance,
            'discipline': self.discipline,
            'adjusted_scores': self.adjusted_scores or {},
            'final_remarks': self.final_remarks,
            'submitted_at': self.created_at.isoformat() if self.created_at else None,
        }
