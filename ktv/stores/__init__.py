from .notifications import ChangeChannel, Subscription, TABLES
from .base import BaseStore
from .catalog_store import CatalogStore, BulkResult
from .request_store import RequestStore
from .user_store import UserStore
from .feedback_store import FeedbackStore

__all__ = [
    "ChangeChannel",
    "Subscription",
    "TABLES",
    "BaseStore",
    "CatalogStore",
    "BulkResult",
    "RequestStore",
    "UserStore",
    "FeedbackStore",
]
