from typing import Dict
from sqlalchemy.exc import IntegrityError
from reviewflow.database import get_db
from reviewflow.errors import ConflictError, AuthorizationError, StateError
from reviewflow.models import ReviewerEvaluation, FinalEvaluation
from reviewflow.models.review_session import ReviewStatus
from reviewflow.services.notification_service import NotificationService
from reviewflow.services.review_service import (
    load_review, authorize, apply_transition, event_payload, serialize_review
)
from reviewflow.utils.validators import validate_reviewer_evaluation, validate_final_evaluation
from reviewflow.utils.logger import get_logger

logger = get_logger(__name__)


class EvaluationService:
    """
    Two-stage scoring of a review.

    Stage 1: the assigned reviewer completes an accepted review with four
    dimension scores. Stage 2: the owning advisor publishes the final score,
    which becomes the review's marks.
    """

    def __init__(self, notification_service: NotificationService = None):
        self.notification_service = notification_service or NotificationService()

    def submit_reviewer_evaluation(self, review_id: int, reviewer_id: int, data: Dict) -> Dict:
        """Complete an accepted review with the reviewer's scores"""
        cleaned = validate_reviewer_evaluation(data)

        try:
            with get_db() as db:
                review = load_review(db, review_id)
                authorize(review, reviewer_id, 'reviewer')

                existing = db.query(ReviewerEvaluation).filter_by(review_session_id=review.id).first()
                if existing:
                    raise ConflictError(
                        "Evaluation already submitted for this review", 'already_submitted', existing.to_dict()
                    )

                apply_transition(review, 'complete')

                evaluation = ReviewerEvaluation(
                    review_session_id=review.id,
                    reviewer_id=reviewer_id,
                    feedback=cleaned['feedback'],
                    remarks=cleaned['remarks'],
                    **cleaned['scores']
                )
                db.add(evaluation)
                review.feedback = cleaned['feedback']
                db.flush()

                result = {
                    'review': serialize_review(review),
                    'evaluation': evaluation.to_dict(),
                }
                payload = event_payload(review, reviewer_name=review.reviewer.name)
                advisor_id = review.advisor_id

        except IntegrityError:
            raise ConflictError("Evaluation already submitted for this review", 'already_submitted')

        logger.info(
            f"Review {review_id} completed by reviewer {reviewer_id}, "
            f"average score {result['evaluation']['average_score']}"
        )
        self.notification_service.notify('review_completed', advisor_id, payload)
        return result

    def submit_final_score(self, review_id: int, advisor_id: int, data: Dict) -> Dict:
        """Publish the advisor's final score; the review becomes Scored"""
        cleaned = validate_final_evaluation(data)

        try:
            with get_db() as db:
                review = load_review(db, review_id)
                authorize(review, advisor_id, 'advisor')

                existing = db.query(FinalEvaluation).filter_by(review_session_id=review.id).first()
                if existing:
                    raise ConflictError(
                        "Final score already submitted for this review", 'already_submitted', existing.to_dict()
                    )

                reviewer_evaluation = review.reviewer_evaluation
                if review.status == ReviewStatus.COMPLETED and not reviewer_evaluation:
                    raise StateError(
                        "Reviewer evaluation not found. Reviewer must complete evaluation first.",
                        review.status
                    )
                apply_transition(review, 'score')

                final_evaluation = FinalEvaluation(
                    review_session_id=review.id,
                    advisor_id=advisor_id,
                    reviewer_evaluation_id=reviewer_evaluation.id,
                    **cleaned
                )
                db.add(final_evaluation)
                review.marks = cleaned['final_score']
                db.flush()

                result = {
                    'review': serialize_review(review),
                    'final_evaluation': final_evaluation.to_dict(),
                }
                payload = event_payload(review, marks=review.marks)
                recipients = (review.student_id, review.reviewer_id)

        except IntegrityError:
            raise ConflictError("Final score already submitted for this review", 'already_submitted')

        logger.info(f"Review {review_id} scored {cleaned['final_score']} by advisor {advisor_id}")
        for recipient_id in recipients:
            self.notification_service.notify('final_score_published', recipient_id, payload)
        return result

    def get_review_evaluations(self, review_id: int, user_id: int) -> Dict:
        """
        Evaluations of a review, filtered by who is asking.

        Advisor: everything. Reviewer: stage 1 and the published final score.
        Student: only the final score and final remarks.
        """
        with get_db() as db:
            review = load_review(db, review_id)

            is_advisor = review.advisor_id == user_id
            is_reviewer = review.reviewer_id == user_id
            is_student = review.student_id == user_id
            if not (is_advisor or is_reviewer or is_student):
                logger.warning(f"User {user_id} refused evaluations of review {review_id}")
                raise AuthorizationError()

            data = serialize_review(review, include_marks=review.status == ReviewStatus.SCORED)
            response = {
                'review': {
                    key: data[key]
                    for key in ('id', 'status', 'week', 'scheduled_at', 'marks', 'student', 'reviewer', 'advisor')
                },
                'reviewer_evaluation': None,
                'final_evaluation': None,
            }

            if (is_advisor or is_reviewer) and review.reviewer_evaluation:
                response['reviewer_evaluation'] = review.reviewer_evaluation.to_dict()

            final_evaluation = review.final_evaluation
            if final_evaluation:
                full = final_evaluation.to_dict()
                if is_advisor:
                    response['final_evaluation'] = full
                else:
                    response['final_evaluation'] = {
                        key: full[key] for key in ('id', 'final_score', 'final_remarks', 'submitted_at')
                    }

            return response
