# admin.py
from functools import wraps
import hmac

import structlog
from flask import Blueprint, current_app, jsonify, session

from errors import UnauthorizedError
from schemas import AdminLoginRequest, VerifyProductRequest, VerifySellerRequest, parse_json
from storage import get_storage

logger = structlog.get_logger(__name__)

admin_bp = Blueprint("admin", __name__)


def require_admin(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not session.get("is_admin"):
            raise UnauthorizedError("Admin login required")
        return view(*args, **kwargs)
    return wrapped


@admin_bp.route("/login", methods=["POST"])
def admin_login():
    data = parse_json(AdminLoginRequest)
    expected = current_app.config["ADMIN_PASSWORD"]
    if not hmac.compare_digest(data.password.encode(), expected.encode()):
        raise UnauthorizedError("Incorrect password")
    session["is_admin"] = True
    return jsonify({"message": "Logged in"})


@admin_bp.route("/logout", methods=["POST"])
def admin_logout():
    session.pop("is_admin", None)
    return jsonify({"message": "Logged out"})


@admin_bp.route("/products/pending")
@require_admin
def pending_products():
    return jsonify([p.to_dict() for p in get_storage().get_unverified_products()])


@admin_bp.route("/products/<int:product_id>/verify", methods=["POST"])
@require_admin
def verify_product(product_id):
    data = parse_json(VerifyProductRequest)
    storage = get_storage()
    product = storage.verify_product(product_id, data.approved, data.notes)
    storage.commit()
    logger.info("Product verified", product_id=product_id, approved=data.approved)
    return jsonify(product.to_dict())


@admin_bp.route("/sellers/<int:seller_id>/verify", methods=["POST"])
@require_admin
def verify_seller(seller_id):
    data = parse_json(VerifySellerRequest)
    storage = get_storage()
    seller = storage.update_seller_verification(seller_id, data.is_verified)
    storage.commit()
    logger.info("Seller verification changed", seller_id=seller_id, is_verified=data.is_verified)
    return jsonify(seller.to_dict())
