"""
Song request models for KTV Request Hub.
"""

from sqlalchemy import Column, Integer, String, DateTime
from .database_config import Base


class SongRequestModel(Base):
    __tablename__ = "requests"

    # Insertion order, used to break ties between identical timestamps
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), unique=True, nullable=False, index=True)
    # Loose references: deleted songs and users keep their history readable
    song_id = Column(String(32), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    requested_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(16), nullable=False, default="queued")  # 'queued', 'played' or 'cancelled'
    key_shift = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<SongRequest {self.id} {self.song_id} ({self.status})>"
