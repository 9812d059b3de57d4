from contextlib import nullcontext
from decimal import Decimal

import pytest
from flask import has_app_context

from core import Category, Company, Product, Seller, User, create_app, db


def _context(app):
    # Reuse the store-level test's context so both share one session
    return nullcontext() if has_app_context() else app.app_context()


@pytest.fixture()
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "ADMIN_PASSWORD": "letmein",
        "ECOKART_SEED": False,
        "ECOKART_ENFORCE_STOCK": True,
        "LOG_LEVEL": "WARNING",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def storage(app):
    """Repository bound to one app context for store-level tests."""
    with app.app_context():
        yield app.extensions["storage"]


@pytest.fixture()
def catalog(app):
    """A category and a verified seller to hang products on."""
    with _context(app):
        category = Category(name="Zero Waste", icon="recycle")
        owner = User(id="seller-user", email="owner@ecofarm.com", total_points=0, total_co2_saved=0)
        db.session.add_all([category, owner])
        db.session.flush()
        seller = Seller(user_id=owner.id, business_name="EcoFarm Co.", certification_type="organic", is_verified=True)
        db.session.add(seller)
        db.session.commit()
        return {"category_id": category.id, "seller_id": seller.id, "seller_user_id": owner.id}


@pytest.fixture()
def make_product(app, catalog):
    def _make(price="10.00", co2="2.00", stock=100, verified=True, active=True, name="Bamboo Brush"):
        with _context(app):
            product = Product(
                seller_id=catalog["seller_id"],
                category_id=catalog["category_id"],
                name=name,
                price=Decimal(price),
                co2_saved_per_unit=Decimal(co2),
                stock=stock,
                is_active=active,
                is_verified=verified,
            )
            db.session.add(product)
            db.session.commit()
            return product.id
    return _make


@pytest.fixture()
def make_user(app):
    def _make(user_id="buyer-1", email="buyer@gmail.com", points=0, company_id=None):
        with _context(app):
            user = User(id=user_id, email=email, total_points=points, total_co2_saved=0, company_id=company_id)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture()
def make_company(app):
    def _make(domain="acme.com", points=0):
        with _context(app):
            company = Company(name="Acme", domain=domain, total_points=points, total_co2_saved=0)
            db.session.add(company)
            db.session.commit()
            return company.id
    return _make


@pytest.fixture()
def login(client):
    def _login(user_id="buyer-1", email="buyer@gmail.com", **claims):
        response = client.post("/api/auth/login", json=dict(id=user_id, email=email, **claims))
        assert response.status_code == 200
        return response.get_json()
    return _login


@pytest.fixture()
def admin_login(client):
    def _login():
        response = client.post("/api/admin/login", json={"password": "letmein"})
        assert response.status_code == 200
    return _login
