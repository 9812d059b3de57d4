# rewards.py
"""Spending eco points on tree planting.

The two flows keep their own conversion rate: a personal donation plants one
tree per ``TREE_POINTS_PERSONAL`` points, a company redemption one tree per
``TREE_POINTS_COMPANY`` points.
"""
import structlog

from core import TREE_POINTS_COMPANY, TREE_POINTS_PERSONAL
from errors import InsufficientPointsError, NotFoundError

logger = structlog.get_logger(__name__)


def donate_points(storage, user_id, points):
    user = storage.get_user(user_id)
    if user is None or (user.total_points or 0) < points:
        raise InsufficientPointsError()
    storage.update_user_points(user_id, -points, 0)
    storage.commit()

    trees = points // TREE_POINTS_PERSONAL
    logger.info("Points donated", user_id=user_id, points=points, trees_planted=trees)
    return {
        "message": f"Successfully donated {points} points to plant {trees} trees!",
        "treesPlanted": trees,
    }


def redeem_company_points(storage, user_id, points, action="plant_trees"):
    company = storage.get_company_by_user_id(user_id)
    if company is None:
        raise NotFoundError("Company not found")

    trees = points // TREE_POINTS_COMPANY
    description = f"Redeemed {points} points to plant {trees} trees"
    try:
        entry = storage.redeem_company_points(company.id, points, description)
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info("Company points redeemed", company_id=company.id, points=points, action=action, trees_planted=trees)
    return {
        "message": "Points redeemed successfully",
        "treesPlanted": trees,
        "history": entry.to_dict(),
    }
