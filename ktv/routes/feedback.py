"""
Feedback routes for KTV Request Hub.
"""

from flask import Blueprint, current_app, jsonify, request

from ktv.auth.user_auth import current_user
from ktv.core.feedback import feedback_from_form

feedback_bp = Blueprint('feedback', __name__)


@feedback_bp.route("", methods=["POST"])
def submit():
    """Anyone may leave feedback; the account is attached when logged in"""
    user = current_user()
    feedback = feedback_from_form(request.get_json(silent=True) or {}, user_id=user.id if user else None)
    saved = current_app.feedback_store.add(feedback)
    return jsonify({"message": "Thank you for your feedback", "feedback": saved.to_dict()}), 201
