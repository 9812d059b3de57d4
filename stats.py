# stats.py
from flask import Blueprint, g, jsonify

from auth import login_required
from core import TREE_POINTS_PERSONAL, money
from storage import get_storage

stats_bp = Blueprint("stats", __name__)


@stats_bp.route("/user")
@login_required
def user_stats():
    return jsonify(get_storage().get_user_co2_stats(g.user.id))


@stats_bp.route("/global")
def global_stats():
    return jsonify(get_storage().get_global_co2_stats(TREE_POINTS_PERSONAL))


@stats_bp.route("/company")
@login_required
def company_stats():
    storage = get_storage()
    company = storage.get_company_by_user_id(g.user.id)
    if company is None:
        return jsonify({"totalCo2Saved": money(0)})
    return jsonify(storage.get_company_co2_stats(company.domain))
