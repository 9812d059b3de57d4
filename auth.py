# auth.py
from functools import wraps

import structlog
from flask import Blueprint, g, jsonify, session

from errors import UnauthorizedError
from schemas import LoginRequest, parse_json
from storage import get_storage

logger = structlog.get_logger(__name__)

auth_bp = Blueprint("auth", __name__)


def current_user():
    user_id = session.get("user_id")
    if not user_id:
        return None
    return get_storage().get_user(user_id)


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        user = current_user()
        if user is None:
            session.pop("user_id", None)
            raise UnauthorizedError("Unauthorized")
        g.user = user
        return view(*args, **kwargs)
    return wrapped


@auth_bp.route("/login", methods=["POST"])
def login():
    """Accept identity-provider claims, upsert the user and open a session."""
    claims = parse_json(LoginRequest)
    storage = get_storage()
    is_new = storage.get_user(claims.id) is None
    user = storage.upsert_user(
        claims.id,
        email=claims.email,
        first_name=claims.first_name,
        last_name=claims.last_name,
        profile_image_url=claims.profile_image_url,
    )
    storage.ensure_company_for(user)
    storage.commit()
    session["user_id"] = user.id
    if is_new:
        logger.info("User created", user_id=user.id)
    return jsonify(user.to_dict())


@auth_bp.route("/logout", methods=["POST"])
def logout():
    session.pop("user_id", None)
    return jsonify({"message": "Logged out"})


@auth_bp.route("/user")
@login_required
def user():
    return jsonify(g.user.to_dict())
