"""
Feedback store: messages residents leave for the administrators.
"""

import logging

from ktv.core.entities import Feedback, ensure_utc, utcnow
from ktv.core.errors import NotFound
from ktv.models import FeedbackModel
from .base import BaseStore

logger = logging.getLogger(__name__)


def feedback_from_row(row):
    return Feedback(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        type=row.type,
        content=row.content,
        created_at=ensure_utc(row.created_at),
        is_read=bool(row.is_read),
    )


class FeedbackStore(BaseStore):
    table = "feedbacks"

    def fetch_all(self):
        """Newest first."""
        with self.session("fetching feedback") as db:
            rows = db.query(FeedbackModel).order_by(FeedbackModel.created_at.desc(), FeedbackModel.id.desc()).all()
            return [feedback_from_row(row) for row in rows]

    def add(self, feedback):
        with self.session(f"saving feedback from {feedback.email}") as db:
            row = FeedbackModel(
                user_id=feedback.user_id,
                name=feedback.name,
                email=feedback.email,
                phone=feedback.phone,
                type=feedback.type,
                content=feedback.content,
                created_at=feedback.created_at or utcnow(),
                is_read=False,
            )
            db.add(row)
            db.flush()
            saved = feedback_from_row(row)
        self.changed()
        logger.info(f"New {saved.type} feedback #{saved.id}")
        return saved

    def mark_read(self, feedback_id, is_read=True):
        with self.session(f"marking feedback {feedback_id}") as db:
            row = db.get(FeedbackModel, feedback_id)
            if row is None:
                raise NotFound("Feedback", feedback_id)
            row.is_read = is_read
        self.changed()

    def delete(self, feedback_id):
        with self.session(f"deleting feedback {feedback_id}") as db:
            row = db.get(FeedbackModel, feedback_id)
            if row is None:
                raise NotFound("Feedback", feedback_id)
            db.delete(row)
        self.changed()
