# core.py
from datetime import datetime
from decimal import Decimal

import structlog
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

from config import load_config
from logs import configure_logging

logger = structlog.get_logger(__name__)

# --- DB handle (imported by blueprints) ---
db = SQLAlchemy()

# --- Constants shared across blueprints ---
CENTS = Decimal("0.01")
ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
ORDER_STATUS_TRANSITIONS = {
    "pending": ("processing", "cancelled"),
    "processing": ("shipped", "cancelled"),
    "shipped": ("delivered",),
    "delivered": (),
    "cancelled": (),
}
PAYMENT_METHODS = ("razorpay", "cashfree", "card")
TREE_POINTS_PERSONAL = 50      # personal donation: 50 points plant one tree
TREE_POINTS_COMPANY = 20       # company redemption: 20 points plant one tree
MIN_COMPANY_REDEMPTION = 100
PUBLIC_MAIL_DOMAINS = {"gmail.com", "yahoo.com", "outlook.com", "hotmail.com", "icloud.com"}
CATEGORY_SEED = [
    ("Eco-Friendly Home", "home"),
    ("Sustainable Fashion", "shirt"),
    ("Natural Beauty", "leaf"),
    ("Organic Food", "salad"),
    ("Green Electronics", "phone"),
    ("Zero Waste", "recycle"),
]


def money(value):
    """Quantize a price, CO2 figure or SQL aggregate to two places."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS)


def _iso(value):
    return value.isoformat() if value else None


# --- Models ---
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(64), primary_key=True)  # identity provider subject
    email = db.Column(db.String(200), unique=True, nullable=True)
    first_name = db.Column(db.String(120), nullable=True)
    last_name = db.Column(db.String(120), nullable=True)
    profile_image_url = db.Column(db.String(300), nullable=True)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    total_co2_saved = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "profileImageUrl": self.profile_image_url,
            "totalPoints": self.total_points,
            "totalCo2Saved": money(self.total_co2_saved),
            "companyId": self.company_id,
            "createdAt": _iso(self.created_at),
        }


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    domain = db.Column(db.String(200), unique=True, nullable=False)
    industry = db.Column(db.String(120), nullable=True)
    logo_url = db.Column(db.String(300), nullable=True)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    total_co2_saved = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "domain": self.domain,
            "industry": self.industry,
            "logoUrl": self.logo_url,
            "totalPoints": self.total_points,
            "totalCo2Saved": money(self.total_co2_saved),
        }


class CompanyPointsHistory(db.Model):
    __tablename__ = "company_points_history"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)
    action = db.Column(db.String(20), nullable=False)  # earned, redeemed
    points = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(300), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "companyId": self.company_id,
            "action": self.action,
            "points": self.points,
            "description": self.description,
            "createdAt": _iso(self.created_at),
        }


class Seller(db.Model):
    __tablename__ = "sellers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), unique=True, nullable=False)
    business_name = db.Column(db.String(200), nullable=False)
    certification_type = db.Column(db.String(80), nullable=False)
    certificate_url = db.Column(db.String(300), nullable=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessName": self.business_name,
            "certificationType": self.certification_type,
            "certificateUrl": self.certificate_url,
            "isVerified": self.is_verified,
            "createdAt": _iso(self.created_at),
        }


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    icon = db.Column(db.String(40), nullable=True)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "icon": self.icon}


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("sellers.id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    image_url = db.Column(db.String(300), nullable=True)
    co2_saved_per_unit = db.Column(db.Numeric(10, 2), nullable=False)
    eco_rating = db.Column(db.String(10), nullable=False, default="0")
    stock = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    verification_notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def is_visible(self):
        return bool(self.is_active and self.is_verified)

    def to_dict(self):
        return {
            "id": self.id,
            "sellerId": self.seller_id,
            "categoryId": self.category_id,
            "name": self.name,
            "description": self.description,
            "price": money(self.price),
            "imageUrl": self.image_url,
            "co2SavedPerUnit": money(self.co2_saved_per_unit),
            "ecoRating": self.eco_rating,
            "stock": self.stock,
            "isActive": self.is_active,
            "isVerified": self.is_verified,
            "verificationNotes": self.verification_notes,
            "createdAt": _iso(self.created_at),
        }


class CartLine(db.Model):
    __tablename__ = "carts"
    __table_args__ = (db.UniqueConstraint("user_id", "product_id", name="uq_cart_user_product"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    product = db.relationship("Product", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "product": self.product.to_dict(),
        }


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    total_co2_saved = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    shipping_address = db.Column(db.Text, nullable=True)
    payment_method = db.Column(db.String(40), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    items = db.relationship("OrderItem", backref="order", lazy="selectin", order_by="OrderItem.id")

    def to_dict(self, items=None):
        items = self.items if items is None else items
        return {
            "id": self.id,
            "userId": self.user_id,
            "totalAmount": money(self.total_amount),
            "totalCo2Saved": money(self.total_co2_saved),
            "status": self.status,
            "shippingAddress": self.shipping_address,
            "paymentMethod": self.payment_method,
            "createdAt": _iso(self.created_at),
            "items": [it.to_dict() for it in items],
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)      # unit price at purchase time
    co2_saved = db.Column(db.Numeric(10, 2), nullable=False)  # line CO2 at purchase time

    product = db.relationship("Product", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "orderId": self.order_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": money(self.price),
            "co2Saved": money(self.co2_saved),
            "product": self.product.to_dict(),
        }


class Co2Contribution(db.Model):
    __tablename__ = "co2_contributions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), unique=True, nullable=True)
    co2_amount = db.Column(db.Numeric(10, 2), nullable=False)
    points_earned = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


def seed_if_empty():
    """Seed categories, a verified sample seller and its products on first run."""
    if Category.query.count() > 0:
        return
    categories = [Category(name=name, icon=icon) for name, icon in CATEGORY_SEED]
    db.session.add_all(categories)

    user = User(id="sample-seller-user", email="seller@ecofarm.com", first_name="John", last_name="Green")
    seller = Seller(user_id=user.id, business_name="EcoFarm Co.", certification_type="organic", is_verified=True)
    db.session.add_all([user, seller])
    db.session.flush()

    products = [
        # (category index, name, price, co2 per unit, stock)
        (0, "Bamboo Toothbrush Set", "12.99", "2.5", 50),
        (0, "Reusable Glass Straws", "15.99", "3.2", 35),
        (1, "Organic Cotton T-Shirt", "24.99", "4.8", 25),
        (2, "Natural Lip Balm Set", "18.99", "1.8", 40),
        (3, "Organic Quinoa (2lb)", "16.99", "6.2", 30),
        (4, "Solar Power Bank", "45.99", "8.7", 15),
        (5, "Beeswax Food Wraps", "22.99", "5.4", 45),
        (0, "Coconut Fiber Dish Scrubber", "8.99", "1.2", 60),
        (1, "Hemp Canvas Backpack", "79.99", "12.3", 20),
        (2, "Shampoo Bar - Lavender", "12.99", "3.7", 55),
    ]
    for idx, name, price, co2, stock in products:
        db.session.add(Product(
            seller_id=seller.id,
            category_id=categories[idx].id,
            name=name,
            price=Decimal(price),
            co2_saved_per_unit=Decimal(co2),
            stock=stock,
            is_active=True,
            is_verified=True,
        ))
    db.session.commit()
    logger.info("Database seeded", categories=len(categories), products=len(products))


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.update(load_config(overrides))

    configure_logging(app.config["LOG_LEVEL"], app.config["LOG_JSON"])
    db.init_app(app)

    # Repository handed to blueprints through app.extensions
    from storage import Storage
    app.extensions["storage"] = Storage(db.session)

    from errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints (import inside to avoid circular imports)
    from auth import auth_bp
    from shop import shop_bp
    from seller import seller_bp
    from company import company_bp
    from stats import stats_bp
    from admin import admin_bp
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(shop_bp, url_prefix="/api")
    app.register_blueprint(seller_bp, url_prefix="/api")
    app.register_blueprint(company_bp, url_prefix="/api/company")
    app.register_blueprint(stats_bp, url_prefix="/api/stats")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    # Ensure tables exist at startup
    with app.app_context():
        db.create_all()
        if app.config["ECOKART_SEED"]:
            seed_if_empty()

    return app
