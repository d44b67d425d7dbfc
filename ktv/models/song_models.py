"""
Song catalog models for KTV Request Hub.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Boolean, JSON
from .database_config import Base


class SongModel(Base):
    __tablename__ = "songs"

    # Catalog number from the song book, assigned by the admin
    id = Column(String(32), primary_key=True)
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=False, index=True)
    language = Column(String(32), nullable=False, default="Unknown", index=True)
    tags = Column(JSON, nullable=False, default=list)
    added_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    is_deleted = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<Song {self.id} {self.title}>"
