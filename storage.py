# storage.py
"""Repository over the relational store.

``Storage`` is created once per app in ``create_app`` and reached from
request handlers through ``get_storage()``. Its methods stage changes on the
session and flush; committing is left to the caller so that several
operations can share one transaction.
"""
import structlog
from flask import current_app
from sqlalchemy import and_, func, update

from core import (
    CartLine, Category, Co2Contribution, Company, CompanyPointsHistory,
    Order, OrderItem, Product, Seller, User, money, ORDER_STATUS_TRANSITIONS, PUBLIC_MAIL_DOMAINS,
)
from errors import InsufficientPointsError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def get_storage():
    return current_app.extensions["storage"]


class Storage:
    def __init__(self, session):
        self.session = session

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    # --- Users ---
    def get_user(self, user_id):
        return self.session.get(User, user_id)

    def get_user_by_email(self, email):
        return User.query.filter(func.lower(User.email) == email.lower()).first()

    def upsert_user(self, user_id, email=None, first_name=None, last_name=None, profile_image_url=None):
        user = self.get_user(user_id)
        if user is None:
            user = User(id=user_id, total_points=0, total_co2_saved=0)
            self.session.add(user)
        user.email = email
        user.first_name = first_name
        user.last_name = last_name
        user.profile_image_url = profile_image_url
        self.session.flush()
        return user

    def update_user_points(self, user_id, points, co2_saved):
        """Add to a user's balances in SQL; negative points are a spend."""
        self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                total_points=User.total_points + points,
                total_co2_saved=User.total_co2_saved + money(co2_saved),
            )
            .execution_options(synchronize_session="fetch")
        )

    # --- Sellers ---
    def create_seller(self, user_id, business_name, certification_type, certificate_url=None):
        if self.get_seller_by_user_id(user_id) is not None:
            raise ValidationError("Already registered as seller")
        seller = Seller(
            user_id=user_id,
            business_name=business_name,
            certification_type=certification_type,
            certificate_url=certificate_url,
            is_verified=False,
        )
        self.session.add(seller)
        self.session.flush()
        return seller

    def get_seller(self, seller_id):
        seller = self.session.get(Seller, seller_id)
        if seller is None:
            raise NotFoundError("Seller not found")
        return seller

    def get_seller_by_user_id(self, user_id):
        return Seller.query.filter_by(user_id=user_id).first()

    def update_seller_verification(self, seller_id, is_verified):
        seller = self.get_seller(seller_id)
        seller.is_verified = is_verified
        self.session.flush()
        return seller

    # --- Categories ---
    def get_categories(self):
        return Category.query.order_by(Category.id).all()

    def get_category(self, category_id):
        category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    # --- Products ---
    def create_product(self, seller_id, **fields):
        self.get_category(fields["category_id"])
        product = Product(seller_id=seller_id, is_active=True, is_verified=False, **fields)
        self.session.add(product)
        self.session.flush()
        return product

    def get_products(self, category_id=None, seller_id=None, price_range=None):
        """Buyer-visible products, highest CO2 saving first."""
        query = Product.query.filter(Product.is_active.is_(True), Product.is_verified.is_(True))
        if category_id:
            query = query.filter(Product.category_id == category_id)
        if seller_id:
            query = query.filter(Product.seller_id == seller_id)
        if price_range:
            low, high = price_range
            query = query.filter(and_(Product.price >= low, Product.price <= high))
        return query.order_by(Product.co2_saved_per_unit.desc(), Product.id).all()

    def get_product(self, product_id):
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def get_visible_product(self, product_id):
        product = self.session.get(Product, product_id)
        if product is None or not product.is_visible:
            raise NotFoundError("Product not found")
        return product

    def get_products_by_seller(self, seller_id):
        return Product.query.filter_by(seller_id=seller_id).order_by(Product.id).all()

    def get_unverified_products(self):
        """Active products waiting for a verification decision."""
        return (
            Product.query.filter(Product.is_active.is_(True), Product.is_verified.is_(False))
            .filter(Product.verification_notes.is_(None))
            .order_by(Product.id)
            .all()
        )

    def update_product(self, product_id, **updates):
        product = self.get_product(product_id)
        if updates.get("category_id") is not None:
            self.get_category(updates["category_id"])
        # A new price or CO2 figure goes back through verification
        if any(
            key in updates and updates[key] != getattr(product, key)
            for key in ("price", "co2_saved_per_unit")
        ):
            product.is_verified = False
            product.verification_notes = None
        for key, value in updates.items():
            setattr(product, key, value)
        self.session.flush()
        return product

    def delete_product(self, product_id):
        product = self.get_product(product_id)
        product.is_active = False
        self.session.flush()

    def verify_product(self, product_id, approved, notes):
        product = self.get_product(product_id)
        product.is_verified = approved
        product.verification_notes = notes
        self.session.flush()
        return product

    # --- Cart ---
    def _cart_line(self, user_id, product_id):
        return CartLine.query.filter_by(user_id=user_id, product_id=product_id).first()

    def add_to_cart(self, user_id, product_id, quantity=1):
        line = self._cart_line(user_id, product_id)
        if line:
            line.quantity = (line.quantity or 0) + quantity
        else:
            line = CartLine(user_id=user_id, product_id=product_id, quantity=quantity)
            self.session.add(line)
        self.session.flush()
        return line

    def get_cart_items(self, user_id):
        return (
            CartLine.query.join(Product, CartLine.product_id == Product.id)
            .filter(CartLine.user_id == user_id)
            .order_by(CartLine.id)
            .all()
        )

    def update_cart_item(self, user_id, product_id, quantity):
        if quantity <= 0:
            self.remove_from_cart(user_id, product_id)
            return
        line = self._cart_line(user_id, product_id)
        if line:
            line.quantity = quantity
            self.session.flush()

    def remove_from_cart(self, user_id, product_id):
        CartLine.query.filter_by(user_id=user_id, product_id=product_id).delete()

    def clear_cart(self, user_id):
        CartLine.query.filter_by(user_id=user_id).delete()

    # --- Orders ---
    def create_order(self, order, items):
        self.session.add(order)
        self.session.flush()
        for item in items:
            item.order_id = order.id
            self.session.add(item)
        self.session.flush()
        return order

    def get_order(self, order_id):
        order = self.session.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def get_orders(self, user_id):
        return Order.query.filter_by(user_id=user_id).order_by(Order.created_at.desc(), Order.id.desc()).all()

    def get_orders_by_seller(self, seller_id):
        """Orders holding at least one of the seller's products, with only those items."""
        orders = (
            Order.query.join(OrderItem, OrderItem.order_id == Order.id)
            .join(Product, OrderItem.product_id == Product.id)
            .filter(Product.seller_id == seller_id)
            .distinct()
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
        return [(order, [it for it in order.items if it.product.seller_id == seller_id]) for order in orders]

    def seller_owns_order(self, seller_id, order_id):
        return (
            OrderItem.query.join(Product, OrderItem.product_id == Product.id)
            .filter(OrderItem.order_id == order_id, Product.seller_id == seller_id)
            .first()
            is not None
        )

    def update_order_status(self, order_id, status):
        order = self.get_order(order_id)
        if status not in ORDER_STATUS_TRANSITIONS.get(order.status, ()):
            raise ValidationError(f"Cannot move order from {order.status} to {status}")
        order.status = status
        self.session.flush()
        return order

    # --- CO2 tracking ---
    def create_co2_contribution(self, user_id, order_id, co2_amount, points_earned):
        contribution = Co2Contribution(
            user_id=user_id, order_id=order_id, co2_amount=money(co2_amount), points_earned=points_earned
        )
        self.session.add(contribution)
        self.session.flush()
        return contribution

    def get_user_co2_stats(self, user_id):
        user = self.get_user(user_id)
        return {
            "totalCo2Saved": money(user.total_co2_saved if user else 0),
            "totalPoints": user.total_points if user else 0,
        }

    def get_global_co2_stats(self, tree_points):
        total_co2 = self.session.query(func.coalesce(func.sum(Co2Contribution.co2_amount), 0)).scalar()
        active_users = self.session.query(func.count(func.distinct(User.id))).filter(User.total_points > 0).scalar()
        total_points = self.session.query(func.coalesce(func.sum(User.total_points), 0)).scalar()
        return {
            "totalCo2Saved": money(total_co2),
            "treesPlanted": int(total_points) // tree_points,
            "activeUsers": active_users or 0,
        }

    def get_company_co2_stats(self, domain):
        """CO2 saved by members of the company owning ``domain``."""
        company = self.get_company_by_domain(domain)
        if company is None:
            return {"totalCo2Saved": money(0)}
        total = (
            self.session.query(func.coalesce(func.sum(User.total_co2_saved), 0))
            .filter(User.company_id == company.id)
            .scalar()
        )
        return {"totalCo2Saved": money(total)}

    # --- Companies ---
    def create_company(self, name, domain, industry=None, logo_url=None):
        company = Company(name=name, domain=domain.lower(), industry=industry, logo_url=logo_url,
                          total_points=0, total_co2_saved=0)
        self.session.add(company)
        self.session.flush()
        return company

    def get_company(self, company_id):
        company = self.session.get(Company, company_id)
        if company is None:
            raise NotFoundError("Company not found")
        return company

    def get_company_by_domain(self, domain):
        return Company.query.filter_by(domain=domain.lower()).first()

    def get_company_by_user_id(self, user_id):
        return Company.query.join(User, User.company_id == Company.id).filter(User.id == user_id).first()

    def ensure_company_for(self, user):
        """Attach a user to the company owning their email domain, creating it lazily."""
        if user.company_id or not user.email or "@" not in user.email:
            return None
        domain = user.email.rsplit("@", 1)[1].lower()
        if domain in PUBLIC_MAIL_DOMAINS:
            return None
        company = self.get_company_by_domain(domain)
        if company is None:
            company = self.create_company(name=domain.split(".")[0].title(), domain=domain)
            logger.info("Company created", company_id=company.id, domain=domain)
        user.company_id = company.id
        self.session.flush()
        return company

    def update_company_stats(self, company_id, points, co2_saved):
        self.session.execute(
            update(Company)
            .where(Company.id == company_id)
            .values(
                total_points=Company.total_points + points,
                total_co2_saved=Company.total_co2_saved + money(co2_saved),
            )
            .execution_options(synchronize_session="fetch")
        )

    def get_company_employees(self, company_id):
        rows = (
            self.session.query(User, func.count(Order.id))
            .outerjoin(Order, Order.user_id == User.id)
            .filter(User.company_id == company_id)
            .group_by(User.id)
            .order_by(User.id)
            .all()
        )
        return [(user, order_count) for user, order_count in rows]

    def get_company_stats(self, company_id):
        employees, orders = (
            self.session.query(func.count(func.distinct(User.id)), func.count(Order.id))
            .select_from(User)
            .outerjoin(Order, Order.user_id == User.id)
            .filter(User.company_id == company_id)
            .one()
        )
        # Summed without the order join, which would repeat each user per order
        co2, points = (
            self.session.query(
                func.coalesce(func.sum(User.total_co2_saved), 0),
                func.coalesce(func.sum(User.total_points), 0),
            )
            .filter(User.company_id == company_id)
            .one()
        )
        redeemed = (
            self.session.query(func.coalesce(func.sum(CompanyPointsHistory.points), 0))
            .filter(CompanyPointsHistory.company_id == company_id, CompanyPointsHistory.action == "redeemed")
            .scalar()
        )
        return {
            "totalEmployees": employees or 0,
            "totalOrders": orders or 0,
            "totalCo2Saved": money(co2),
            "totalPoints": int(points or 0),
            "pointsRedeemed": int(redeemed or 0),
        }

    def add_employee_to_company(self, user_id, company_id):
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        user.company_id = company_id
        self.session.flush()
        return user

    def create_company_points_history(self, company_id, action, points, description):
        entry = CompanyPointsHistory(company_id=company_id, action=action, points=points, description=description)
        self.session.add(entry)
        self.session.flush()
        return entry

    def get_company_points_history(self, company_id):
        return (
            CompanyPointsHistory.query.filter_by(company_id=company_id)
            .order_by(CompanyPointsHistory.created_at.desc(), CompanyPointsHistory.id.desc())
            .all()
        )

    def redeem_company_points(self, company_id, points, description):
        """Stage the balance decrement and its history row; the caller commits both."""
        company = self.get_company(company_id)
        if (company.total_points or 0) < points:
            raise InsufficientPointsError()
        self.update_company_stats(company_id, -points, 0)
        return self.create_company_points_history(company_id, "redeemed", points, description)
