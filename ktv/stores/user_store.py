"""
User store: resident accounts, favorites and login bookkeeping.
"""

import logging
import uuid
from datetime import datetime, timezone

from ktv.core.entities import Role, User, ensure_utc, utcnow
from ktv.core.errors import NotFound, ValidationFailed
from ktv.models import SongRequestModel, UserModel
from .base import BaseStore

logger = logging.getLogger(__name__)


def user_from_row(row):
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        building=row.building,
        floor=row.floor,
        door=row.door,
        role=Role(row.role),
        is_suspended=bool(row.is_suspended),
        favorites=set(row.favorites or []),
        login_count=row.login_count or 0,
        last_login=ensure_utc(row.last_login),
    )


def new_user_id():
    return str(uuid.uuid4())


class UserStore(BaseStore):
    table = "users"

    def fetch_all(self):
        with self.session("fetching users") as db:
            return [user_from_row(row) for row in db.query(UserModel).order_by(UserModel.created_at).all()]

    def get(self, user_id):
        with self.session(f"fetching user {user_id}") as db:
            row = db.get(UserModel, user_id)
            return user_from_row(row) if row else None

    def get_by_email(self, email):
        with self.session("fetching user by email") as db:
            row = db.query(UserModel).filter(UserModel.email == email.strip().lower()).first()
            return user_from_row(row) if row else None

    def check_credentials(self, email, password):
        """Return the matching user when the password is right, otherwise None."""
        with self.session("checking credentials") as db:
            row = db.query(UserModel).filter(UserModel.email == email.strip().lower()).first()
            if row is None or not row.check_password(password):
                return None
            return user_from_row(row)

    def create(self, user, password):
        email = user.email.strip().lower()
        with self.session(f"creating user {email}") as db:
            if db.query(UserModel).filter(UserModel.email == email).first():
                raise ValidationFailed("Email already registered")
            row = UserModel(id=user.id or new_user_id(), email=email)
            self._apply(row, user)
            row.set_password(password)
            db.add(row)
            db.flush()
            created = user_from_row(row)
        self.changed()
        logger.info(f"Created user {created.email} ({created.role.value})")
        return created

    def save(self, user, password=None):
        """Update an existing account; the password changes only when one is given."""
        with self.session(f"saving user {user.id}") as db:
            row = db.get(UserModel, user.id)
            if row is None:
                raise NotFound("User", user.id)
            email = user.email.strip().lower()
            clash = db.query(UserModel).filter(UserModel.email == email, UserModel.id != user.id).first()
            if clash:
                raise ValidationFailed("Email already registered")
            row.email = email
            self._apply(row, user)
            if password:
                row.set_password(password)
            saved = user_from_row(row)
        self.changed()
        return saved

    @staticmethod
    def _apply(row, user):
        row.name = user.name
        row.building = user.building
        row.floor = user.floor
        row.door = user.door
        row.role = Role(user.role).value
        row.is_suspended = user.is_suspended
        row.favorites = sorted(user.favorites)
        row.login_count = user.login_count
        row.last_login = user.last_login

    def set_password(self, user_id, password):
        with self.session(f"resetting password of {user_id}") as db:
            row = db.get(UserModel, user_id)
            if row is None:
                raise NotFound("User", user_id)
            row.set_password(password)

    def set_suspended(self, user_id, suspended):
        with self.session(f"updating suspension of {user_id}") as db:
            row = db.get(UserModel, user_id)
            if row is None:
                raise NotFound("User", user_id)
            row.is_suspended = suspended
            updated = user_from_row(row)
        self.changed()
        return updated

    def record_login(self, user_id, now=None):
        with self.session(f"recording login of {user_id}") as db:
            row = db.get(UserModel, user_id)
            if row is None:
                raise NotFound("User", user_id)
            row.login_count = (row.login_count or 0) + 1
            row.last_login = now or utcnow()
            updated = user_from_row(row)
        self.changed()
        return updated

    def toggle_favorite(self, user_id, song_id):
        """Read-modify-write of the favorites list in one transaction.

        Concurrent toggles are last-writer-wins. Returns the new favorites set.
        """
        with self.session(f"toggling favorite {song_id} for {user_id}") as db:
            row = db.get(UserModel, user_id)
            if row is None:
                raise NotFound("User", user_id)
            favorites = list(row.favorites or [])
            if song_id in favorites:
                favorites = [f for f in favorites if f != song_id]
            else:
                favorites.append(song_id)
            # Reassign so the JSON column is flagged dirty
            row.favorites = favorites
            result = set(favorites)
        self.changed()
        return result

    def delete(self, user_id):
        """Delete an account together with its requests."""
        with self.session(f"deleting user {user_id}") as db:
            row = db.get(UserModel, user_id)
            if row is None:
                raise NotFound("User", user_id)
            db.query(SongRequestModel).filter(SongRequestModel.user_id == user_id).delete(synchronize_session=False)
            db.delete(row)
        self.changed()
        if self.channel is not None:
            self.channel.notify("requests")
        logger.info(f"Deleted user {user_id} and their requests")

    def fix_duplicate_users(self):
        """Keep one account per email: the admin if any, else the most recent login.

        Returns the ids that were removed.
        """
        by_email = {}
        for user in self.fetch_all():
            by_email.setdefault(user.email.lower(), []).append(user)

        never = datetime.min.replace(tzinfo=timezone.utc)
        removed = []
        for email, accounts in by_email.items():
            if len(accounts) < 2:
                continue
            admins = [u for u in accounts if u.is_admin]
            winner = admins[0] if admins else max(accounts, key=lambda u: u.last_login or never)
            for loser in accounts:
                if loser.id != winner.id:
                    logger.warning(f"Removing duplicate account {loser.id} for {email}")
                    self.delete(loser.id)
                    removed.append(loser.id)
        return removed

    def seed_admin(self, email, password, name="系統管理員"):
        """Make sure the configured administrator exists and holds the ADMIN role."""
        existing = self.get_by_email(email)
        if existing:
            if not existing.is_admin:
                logger.info(f"Promoting {email} to ADMIN")
                existing.role = Role.ADMIN
                return self.save(existing)
            return existing

        admin = User(id=new_user_id(), email=email, name=name, building="A", floor="1", door="1", role=Role.ADMIN)
        return self.create(admin, password)
