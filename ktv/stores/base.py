"""
Shared plumbing for the SQLAlchemy-backed stores.
"""

import logging
from contextlib import contextmanager
from sqlalchemy.exc import SQLAlchemyError

from ktv.core.errors import BackendUnavailable
from ktv.models import get_db

logger = logging.getLogger(__name__)


class BaseStore:
    table = None

    def __init__(self, channel=None):
        self.channel = channel

    @contextmanager
    def session(self, action):
        """A committed session; database failures surface as BackendUnavailable."""
        try:
            with get_db() as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Error {action}: {e}")
            raise BackendUnavailable(f"Storage unavailable while {action}") from e

    def changed(self):
        if self.channel is not None:
            self.channel.notify(self.table)
