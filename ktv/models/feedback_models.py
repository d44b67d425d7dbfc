"""
Resident feedback models for KTV Request Hub.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean
from .database_config import Base


class FeedbackModel(Base):
    __tablename__ = "feedbacks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=True)
    name = Column(String(80), nullable=False)
    email = Column(String(120), nullable=False)
    phone = Column(String(32), nullable=False)
    type = Column(String(16), nullable=False, default="other")  # 'issue', 'suggestion', 'praise' or 'other'
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    is_read = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<Feedback {self.type} from {self.name}>"
