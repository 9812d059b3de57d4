# company.py
import structlog
from flask import Blueprint, g, jsonify

from auth import login_required
from errors import NotFoundError
from rewards import redeem_company_points
from schemas import AddEmployeeRequest, RedeemPointsRequest, parse_json
from storage import get_storage

logger = structlog.get_logger(__name__)

company_bp = Blueprint("company", __name__)


def require_company(storage):
    company = storage.get_company_by_user_id(g.user.id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


@company_bp.route("/profile")
@login_required
def profile():
    return jsonify(require_company(get_storage()).to_dict())


@company_bp.route("/employees", methods=["GET"])
@login_required
def employees():
    storage = get_storage()
    company = require_company(storage)
    rows = storage.get_company_employees(company.id)
    return jsonify([dict(user.to_dict(), orderCount=count) for user, count in rows])


@company_bp.route("/employees", methods=["POST"])
@login_required
def add_employee():
    data = parse_json(AddEmployeeRequest)
    storage = get_storage()
    company = require_company(storage)
    user = storage.get_user_by_email(data.email)
    if user is None:
        raise NotFoundError("User not found")
    storage.add_employee_to_company(user.id, company.id)
    storage.commit()
    logger.info("Employee added", company_id=company.id, user_id=user.id)
    return jsonify(user.to_dict())


@company_bp.route("/stats")
@login_required
def stats():
    storage = get_storage()
    company = require_company(storage)
    return jsonify(storage.get_company_stats(company.id))


@company_bp.route("/points-history")
@login_required
def points_history():
    storage = get_storage()
    company = require_company(storage)
    return jsonify([h.to_dict() for h in storage.get_company_points_history(company.id)])


@company_bp.route("/redeem-points", methods=["POST"])
@login_required
def redeem_points():
    data = parse_json(RedeemPointsRequest)
    return jsonify(redeem_company_points(get_storage(), g.user.id, data.points, data.action))
