"""
Change notification channel for KTV Request Hub.

Stores call notify(table) after every committed write. Subscribers get no
payload and are expected to re-fetch the whole table.
"""

import logging
import threading

logger = logging.getLogger(__name__)

TABLES = ("songs", "requests", "users", "feedbacks")


class Subscription:
    def __init__(self, channel, table, callback):
        self.channel = channel
        self.table = table
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        if self.active:
            self.channel._remove(self)
            self.active = False


class ChangeChannel:
    def __init__(self):
        self._subscribers = {}
        self._lock = threading.Lock()

    def subscribe(self, table, callback):
        subscription = Subscription(self, table, callback)
        with self._lock:
            self._subscribers.setdefault(table, []).append(subscription)
        return subscription

    def _remove(self, subscription):
        with self._lock:
            subscribers = self._subscribers.get(subscription.table, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def subscriber_count(self, table):
        with self._lock:
            return len(self._subscribers.get(table, []))

    def notify(self, table):
        with self._lock:
            subscribers = list(self._subscribers.get(table, []))

        for subscription in subscribers:
            try:
                subscription.callback()
            except Exception as e:
                # One broken listener must not starve the others
                logger.error(f"Change listener for '{table}' failed: {e}")
