# shop.py
from flask import Blueprint, current_app, g, jsonify, request

from auth import login_required
from checkout import checkout as run_checkout
from rewards import donate_points
from schemas import (
    AddToCartRequest, CheckoutRequest, DonatePointsRequest, ProductFilters, UpdateCartRequest, parse_json,
)
from storage import get_storage

shop_bp = Blueprint("shop", __name__)


# --- Catalog ---
@shop_bp.route("/categories")
def categories():
    return jsonify([c.to_dict() for c in get_storage().get_categories()])


@shop_bp.route("/products")
def products():
    filters = ProductFilters.model_validate(request.args.to_dict())
    price_range = None
    if filters.price_min is not None and filters.price_max is not None:
        price_range = (filters.price_min, filters.price_max)
    found = get_storage().get_products(
        category_id=filters.category, seller_id=filters.seller, price_range=price_range
    )
    return jsonify([p.to_dict() for p in found])


@shop_bp.route("/products/<int:product_id>")
def product_detail(product_id):
    return jsonify(get_storage().get_visible_product(product_id).to_dict())


# --- Cart ---
@shop_bp.route("/cart", methods=["GET"])
@login_required
def cart_view():
    lines = get_storage().get_cart_items(g.user.id)
    return jsonify([line.to_dict() for line in lines])


@shop_bp.route("/cart", methods=["POST"])
@login_required
def add_to_cart():
    data = parse_json(AddToCartRequest)
    storage = get_storage()
    storage.get_visible_product(data.product_id)
    line = storage.add_to_cart(g.user.id, data.product_id, data.quantity)
    storage.commit()
    return jsonify(line.to_dict())


@shop_bp.route("/cart/<int:product_id>", methods=["PUT"])
@login_required
def update_cart(product_id):
    data = parse_json(UpdateCartRequest)
    storage = get_storage()
    storage.update_cart_item(g.user.id, product_id, data.quantity)
    storage.commit()
    return jsonify({"message": "Cart updated successfully"})


@shop_bp.route("/cart/<int:product_id>", methods=["DELETE"])
@login_required
def remove(product_id):
    storage = get_storage()
    storage.remove_from_cart(g.user.id, product_id)
    storage.commit()
    return jsonify({"message": "Item removed from cart"})


@shop_bp.route("/cart", methods=["DELETE"])
@login_required
def clear_cart():
    storage = get_storage()
    storage.clear_cart(g.user.id)
    storage.commit()
    return jsonify({"message": "Cart cleared"})


# --- Checkout / orders ---
@shop_bp.route("/checkout", methods=["POST"])
@login_required
def checkout():
    data = parse_json(CheckoutRequest)
    result = run_checkout(
        get_storage(),
        g.user.id,
        data.shipping_address,
        data.payment_method,
        enforce_stock=current_app.config["ECOKART_ENFORCE_STOCK"],
    )
    return jsonify(result.to_dict())


@shop_bp.route("/orders")
@login_required
def orders():
    return jsonify([o.to_dict() for o in get_storage().get_orders(g.user.id)])


@shop_bp.route("/donate-points", methods=["POST"])
@login_required
def donate():
    data = parse_json(DonatePointsRequest)
    return jsonify(donate_points(get_storage(), g.user.id, data.points))
