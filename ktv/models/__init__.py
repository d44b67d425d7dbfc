"""
Database models for KTV Request Hub
"""

from .database_config import Base, SessionLocal, configure_engine, init_db, drop_db, get_db
from .song_models import SongModel
from .request_models import SongRequestModel
from .user_models import UserModel
from .feedback_models import FeedbackModel

__all__ = [
    'Base', 'SessionLocal', 'configure_engine', 'init_db', 'drop_db', 'get_db',
    'SongModel', 'SongRequestModel', 'UserModel', 'FeedbackModel',
]
