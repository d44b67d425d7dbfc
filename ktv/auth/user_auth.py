"""
User authentication routes for KTV Request Hub.
Handles resident registration, login, identity verification and password reset.
"""

import logging
import re
import secrets
from flask import Blueprint, current_app, jsonify, request, session

from ktv.core.entities import Role, User
from ktv.core.errors import Forbidden, Unauthenticated, ValidationFailed
from ktv.stores.user_store import new_user_id

logger = logging.getLogger(__name__)

user_auth_bp = Blueprint('user_auth', __name__)

BUILDINGS = ("A", "B")
MIN_PASSWORD_LENGTH = 6


def is_valid_email(email):
    """Validate email format"""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def current_user():
    """Resolve the logged-in user from the session, or None.

    Suspended accounts are logged out on their next request.
    """
    user_id = session.get('user_id')
    if not user_id:
        return None
    user = current_app.user_store.get(user_id)
    if user is None or user.is_suspended:
        session.clear()
        return None
    return user


def require_login():
    user = current_user()
    if user is None:
        raise Unauthenticated()
    return user


def require_admin():
    user = require_login()
    if not user.is_admin:
        raise Forbidden("Administrator access required")
    return user


def _json():
    return request.get_json(silent=True) or {}


def residence_from_form(data):
    building = (data.get('building') or '').strip().upper()
    floor = str(data.get('floor') or '').strip()
    door = str(data.get('door') or '').strip()
    if building not in BUILDINGS:
        raise ValidationFailed("Building must be A or B")
    if not floor or not door:
        raise ValidationFailed("Floor and door number are required")
    return building, floor, door


def check_password_strength(password):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


@user_auth_bp.route("/register", methods=["POST"])
def register():
    """Resident registration. New accounts are always USER."""
    data = _json()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    name = (data.get('name') or '').strip()

    if not email or not password or not name:
        raise ValidationFailed("All fields are required")
    if not is_valid_email(email):
        raise ValidationFailed("Please enter a valid email address")
    check_password_strength(password)
    building, floor, door = residence_from_form(data)

    user = User(id=new_user_id(), email=email, name=name, building=building,
                floor=floor, door=door, role=Role.USER)
    created = current_app.user_store.create(user, password)
    logger.info(f"Registered resident {created.email}")
    return jsonify({"message": "Account created successfully", "user": created.to_dict()}), 201


@user_auth_bp.route("/login", methods=["POST"])
def login():
    data = _json()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationFailed("Email and password are required")

    store = current_app.user_store
    user = store.check_credentials(email, password)
    if user is None:
        raise Unauthenticated("Invalid email or password")
    if user.is_suspended:
        logger.info(f"Suspended account {user.email} tried to log in")
        raise Forbidden("This account has been suspended")

    user = store.record_login(user.id)
    session.clear()
    session['user_id'] = user.id
    session['role'] = user.role.value
    session['authenticated'] = True

    return jsonify({"message": "Login successful", "user": user.to_dict()}), 200


@user_auth_bp.route("/logout", methods=["POST"])
def logout():
    """User logout"""
    session.clear()
    return jsonify({"message": "Logged out successfully"}), 200


@user_auth_bp.route("/me")
def me():
    """Check if user is authenticated"""
    user = current_user()
    if user is None:
        return jsonify({"authenticated": False}), 200
    return jsonify({"authenticated": True, "user": user.to_dict()}), 200


@user_auth_bp.route("/verify-identity", methods=["POST"])
def verify_identity():
    """Forgotten password, step one: prove residence to get a reset token."""
    data = _json()
    email = (data.get('email') or '').strip()
    if not email:
        raise ValidationFailed("Email is required")
    building, floor, door = residence_from_form(data)

    user = current_app.user_store.get_by_email(email)
    if user is None or (user.building, user.floor, user.door) != (building, floor, door):
        # Same answer for unknown emails and wrong residences
        raise Unauthenticated("The details do not match our records")

    token = secrets.token_urlsafe(16)
    session['reset_user_id'] = user.id
    session['reset_token'] = token
    return jsonify({"verified": True, "reset_token": token}), 200


@user_auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    """Forgotten password, step two: set a new password with the reset token."""
    data = _json()
    token = data.get('reset_token') or ''
    password = data.get('password') or ''

    expected = session.get('reset_token')
    user_id = session.get('reset_user_id')
    if not expected or not user_id or not secrets.compare_digest(token, expected):
        raise Unauthenticated("Identity verification required")
    check_password_strength(password)

    current_app.user_store.set_password(user_id, password)
    session.pop('reset_token', None)
    session.pop('reset_user_id', None)
    logger.info(f"Password reset for user {user_id}")
    return jsonify({"message": "Password updated"}), 200
