# seller.py
import structlog
from flask import Blueprint, g, jsonify

from auth import login_required
from errors import ForbiddenError, NotFoundError
from schemas import (
    OrderStatusRequest, ProductCreateRequest, ProductUpdateRequest, SellerRegisterRequest, parse_json,
)
from storage import get_storage

logger = structlog.get_logger(__name__)

seller_bp = Blueprint("seller", __name__)


def require_seller(storage):
    seller = storage.get_seller_by_user_id(g.user.id)
    if seller is None:
        raise ForbiddenError("Not registered as seller")
    return seller


def _own_product(storage, seller, product_id):
    product = storage.get_product(product_id)
    if product.seller_id != seller.id:
        raise NotFoundError("Product not found")
    return product


@seller_bp.route("/sellers/register", methods=["POST"])
@login_required
def register():
    data = parse_json(SellerRegisterRequest)
    storage = get_storage()
    seller = storage.create_seller(
        g.user.id,
        business_name=data.business_name,
        certification_type=data.certification_type,
        certificate_url=data.certificate_url,
    )
    storage.commit()
    logger.info("Seller registered", seller_id=seller.id, user_id=g.user.id)
    return jsonify(seller.to_dict()), 201


@seller_bp.route("/sellers/profile")
@login_required
def profile():
    seller = get_storage().get_seller_by_user_id(g.user.id)
    if seller is None:
        raise NotFoundError("Seller not found")
    return jsonify(seller.to_dict())


@seller_bp.route("/sellers/products", methods=["POST"])
@seller_bp.route("/products", methods=["POST"])
@login_required
def create_product():
    storage = get_storage()
    seller = require_seller(storage)
    data = parse_json(ProductCreateRequest)
    product = storage.create_product(seller.id, **data.model_dump())
    storage.commit()
    logger.info("Product created", product_id=product.id, seller_id=seller.id)
    return jsonify(product.to_dict()), 201


@seller_bp.route("/seller/products")
@login_required
def seller_products():
    storage = get_storage()
    seller = require_seller(storage)
    return jsonify([p.to_dict() for p in storage.get_products_by_seller(seller.id)])


@seller_bp.route("/seller/products/<int:product_id>", methods=["PUT"])
@login_required
def update_product(product_id):
    storage = get_storage()
    seller = require_seller(storage)
    _own_product(storage, seller, product_id)
    data = parse_json(ProductUpdateRequest)
    product = storage.update_product(product_id, **data.model_dump(exclude_none=True))
    storage.commit()
    return jsonify(product.to_dict())


@seller_bp.route("/seller/products/<int:product_id>", methods=["DELETE"])
@login_required
def delete_product(product_id):
    storage = get_storage()
    seller = require_seller(storage)
    _own_product(storage, seller, product_id)
    storage.delete_product(product_id)
    storage.commit()
    return jsonify({"message": "Product deleted"})


@seller_bp.route("/seller/orders")
@login_required
def seller_orders():
    storage = get_storage()
    seller = require_seller(storage)
    return jsonify([order.to_dict(items) for order, items in storage.get_orders_by_seller(seller.id)])


@seller_bp.route("/orders/<int:order_id>/status", methods=["PUT"])
@login_required
def update_order_status(order_id):
    storage = get_storage()
    seller = require_seller(storage)
    data = parse_json(OrderStatusRequest)
    storage.get_order(order_id)
    if not storage.seller_owns_order(seller.id, order_id):
        raise ForbiddenError("Order does not contain your products")
    order = storage.update_order_status(order_id, data.status)
    storage.commit()
    logger.info("Order status changed", order_id=order_id, status=data.status, seller_id=seller.id)
    return jsonify({"message": "Order status updated", "status": order.status})
