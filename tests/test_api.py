"""HTTP tests for the buyer, seller, admin, company and stats endpoints."""

from core import Company, Order, User, db


def _checkout(client, **overrides):
    body = {"shippingAddress": "1 Leaf Lane", "paymentMethod": "card"}
    body.update(overrides)
    return client.post("/api/checkout", json=body)


class TestAuth:
    def test_login_creates_user_and_session(self, client, login):
        user = login("buyer-1", "buyer@gmail.com", firstName="Ana")
        assert user["id"] == "buyer-1"
        assert user["firstName"] == "Ana"
        assert user["totalPoints"] == 0

        response = client.get("/api/auth/user")
        assert response.status_code == 200
        assert response.get_json()["email"] == "buyer@gmail.com"

    def test_login_links_company_by_email_domain(self, app, login):
        user = login("emp-1", "emp@greenleaf.io")
        assert user["companyId"] is not None
        with app.app_context():
            assert db.session.get(Company, user["companyId"]).domain == "greenleaf.io"

    def test_logout_ends_session(self, client, login):
        login()
        client.post("/api/auth/logout")
        assert client.get("/api/auth/user").status_code == 401

    def test_login_requires_id(self, client):
        response = client.post("/api/auth/login", json={"email": "x@gmail.com"})
        assert response.status_code == 400
        assert "id" in response.get_json()["message"]

    def test_protected_routes_need_login(self, client):
        response = client.post("/api/cart", json={"productId": 1})
        assert response.status_code == 401
        assert response.get_json() == {"message": "Unauthorized"}


class TestCatalogEndpoints:
    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert "message" in response.get_json()

    def test_categories(self, client, catalog):
        names = [c["name"] for c in client.get("/api/categories").get_json()]
        assert names == ["Zero Waste"]

    def test_list_hides_inactive_and_unverified(self, client, catalog, make_product):
        visible = make_product(name="Visible", price="20.00")
        make_product(name="Unverified", verified=False, price="20.00")
        make_product(name="Inactive", active=False, price="20.00")

        queries = [
            "",
            f"?category={catalog['category_id']}",
            f"?seller={catalog['seller_id']}",
            "?priceMin=0&priceMax=100",
        ]
        for query in queries:
            found = client.get(f"/api/products{query}").get_json()
            assert [p["id"] for p in found] == [visible]

    def test_price_filter_needs_both_bounds(self, client, make_product):
        make_product(name="Cheap", price="5.00")
        make_product(name="Dear", price="50.00")
        assert len(client.get("/api/products?priceMin=10").get_json()) == 2
        assert len(client.get("/api/products?priceMin=10&priceMax=60").get_json()) == 1

    def test_product_json_shape(self, client, make_product):
        pid = make_product(price="12.99", co2="2.50")
        product = client.get(f"/api/products/{pid}").get_json()
        assert product["price"] == "12.99"
        assert product["co2SavedPerUnit"] == "2.50"
        assert product["isVerified"] is True

    def test_hidden_product_detail_is_404(self, client, make_product):
        pid = make_product(verified=False)
        response = client.get(f"/api/products/{pid}")
        assert response.status_code == 404
        assert response.get_json() == {"message": "Product not found"}


class TestCartEndpoints:
    def test_cart_flow(self, client, login, make_product):
        login()
        pid = make_product()

        client.post("/api/cart", json={"productId": pid, "quantity": 2})
        client.post("/api/cart", json={"productId": pid, "quantity": 3})
        cart = client.get("/api/cart").get_json()
        assert len(cart) == 1
        assert cart[0]["quantity"] == 5
        assert cart[0]["product"]["id"] == pid

        assert client.put(f"/api/cart/{pid}", json={"quantity": 1}).status_code == 200
        assert client.get("/api/cart").get_json()[0]["quantity"] == 1

        assert client.put(f"/api/cart/{pid}", json={"quantity": 0}).status_code == 200
        assert client.get("/api/cart").get_json() == []

    def test_delete_line(self, client, login, make_product):
        login()
        pid = make_product()
        client.post("/api/cart", json={"productId": pid})
        response = client.delete(f"/api/cart/{pid}")
        assert response.get_json() == {"message": "Item removed from cart"}
        assert client.get("/api/cart").get_json() == []

    def test_add_unknown_product(self, client, login):
        login()
        assert client.post("/api/cart", json={"productId": 404}).status_code == 404

    def test_add_rejects_bad_quantity(self, client, login, make_product):
        login()
        pid = make_product()
        response = client.post("/api/cart", json={"productId": pid, "quantity": 0})
        assert response.status_code == 400
        assert response.get_json()["errors"][0]["field"] == "quantity"


class TestCheckoutEndpoints:
    def test_checkout_example(self, app, client, login, make_product):
        login()
        first = make_product(price="10.00", co2="2.00")
        second = make_product(price="5.00", co2="1.00")
        client.post("/api/cart", json={"productId": first, "quantity": 2})
        client.post("/api/cart", json={"productId": second, "quantity": 1})

        response = _checkout(client)
        assert response.status_code == 200
        body = response.get_json()
        assert body["pointsEarned"] == 5
        assert body["co2Saved"] == "5.00"
        assert body["totalAmount"] == "25.00"
        assert client.get("/api/cart").get_json() == []

        stats = client.get("/api/stats/user").get_json()
        assert stats == {"totalCo2Saved": "5.00", "totalPoints": 5}

        orders = client.get("/api/orders").get_json()
        assert len(orders) == 1
        assert orders[0]["id"] == body["orderId"]
        assert orders[0]["status"] == "pending"
        assert sorted(it["quantity"] for it in orders[0]["items"]) == [1, 2]

    def test_empty_cart(self, client, login):
        login()
        response = _checkout(client)
        assert response.status_code == 400
        assert response.get_json() == {"message": "Cart is empty"}

    def test_second_checkout_fails(self, app, client, login, make_product):
        login()
        pid = make_product()
        client.post("/api/cart", json={"productId": pid})
        assert _checkout(client).status_code == 200
        assert _checkout(client).status_code == 400
        with app.app_context():
            assert Order.query.count() == 1

    def test_unknown_payment_method(self, client, login, make_product):
        login()
        pid = make_product()
        client.post("/api/cart", json={"productId": pid})
        response = _checkout(client, paymentMethod="bitcoin")
        assert response.status_code == 400
        assert response.get_json()["message"].startswith("paymentMethod")

    def test_blank_shipping_address(self, client, login, make_product):
        login()
        pid = make_product()
        client.post("/api/cart", json={"productId": pid})
        assert _checkout(client, shippingAddress="   ").status_code == 400

    def test_out_of_stock(self, client, login, make_product):
        login()
        pid = make_product(stock=1, name="Solar Bank")
        client.post("/api/cart", json={"productId": pid, "quantity": 2})
        response = _checkout(client)
        assert response.status_code == 400
        assert response.get_json() == {"message": "Insufficient stock for Solar Bank"}
        assert len(client.get("/api/cart").get_json()) == 1

    def test_withdrawn_product_blocks_checkout(self, app, client, login, make_product):
        login()
        pid = make_product(name="Compost Bin")
        client.post("/api/cart", json={"productId": pid})
        with app.app_context():
            app.extensions["storage"].delete_product(pid)
            db.session.commit()

        response = _checkout(client)
        assert response.status_code == 400
        assert response.get_json() == {"message": "Compost Bin is no longer available"}
        with app.app_context():
            assert Order.query.count() == 0


class TestDonatePoints:
    def test_insufficient_points(self, client, login):
        login()
        response = client.post("/api/donate-points", json={"points": 50})
        assert response.status_code == 400
        assert response.get_json() == {"message": "Insufficient points"}

    def test_donation_plants_trees(self, app, client, login):
        login()
        with app.app_context():
            db.session.get(User, "buyer-1").total_points = 120
            db.session.commit()

        response = client.post("/api/donate-points", json={"points": 100})
        assert response.status_code == 200
        assert response.get_json()["treesPlanted"] == 2
        assert client.get("/api/stats/user").get_json()["totalPoints"] == 20


class TestSellerEndpoints:
    def _register(self, client, login):
        login("maker-1", "maker@greenco.com")
        response = client.post(
            "/api/sellers/register",
            json={"businessName": "Green Co", "certificationType": "fair-trade"},
        )
        assert response.status_code == 201
        return response.get_json()

    def _product_body(self, catalog, **overrides):
        body = {
            "categoryId": catalog["category_id"],
            "name": "Hemp Backpack",
            "price": "79.99",
            "co2SavedPerUnit": "12.3",
            "stock": 5,
        }
        body.update(overrides)
        return body

    def test_register_and_profile(self, client, login):
        seller = self._register(client, login)
        assert seller["isVerified"] is False
        assert client.get("/api/sellers/profile").get_json()["businessName"] == "Green Co"

    def test_register_twice(self, client, login):
        self._register(client, login)
        response = client.post(
            "/api/sellers/register",
            json={"businessName": "Again", "certificationType": "fair-trade"},
        )
        assert response.status_code == 400

    def test_non_seller_cannot_create_products(self, client, login, catalog):
        login()
        response = client.post("/api/sellers/products", json=self._product_body(catalog))
        assert response.status_code == 403
        assert response.get_json() == {"message": "Not registered as seller"}

    def test_product_lifecycle(self, client, login, admin_login, catalog):
        self._register(client, login)
        response = client.post("/api/sellers/products", json=self._product_body(catalog))
        assert response.status_code == 201
        product = response.get_json()
        assert product["isActive"] is True
        assert product["isVerified"] is False
        assert product["co2SavedPerUnit"] == "12.30"
        assert client.get("/api/products").get_json() == []

        assert client.post(f"/api/admin/products/{product['id']}/verify", json={"approved": True}).status_code == 401
        admin_login()
        assert [p["id"] for p in client.get("/api/admin/products/pending").get_json()] == [product["id"]]
        verified = client.post(
            f"/api/admin/products/{product['id']}/verify", json={"approved": True, "notes": "FSC ok"}
        ).get_json()
        assert verified["isVerified"] is True
        assert [p["id"] for p in client.get("/api/products").get_json()] == [product["id"]]

        updated = client.put(f"/api/seller/products/{product['id']}", json={"price": "69.99"}).get_json()
        assert updated["price"] == "69.99"
        assert updated["isVerified"] is False
        assert client.get("/api/products").get_json() == []

        assert client.delete(f"/api/seller/products/{product['id']}").status_code == 200
        assert client.get("/api/products").get_json() == []
        mine = client.get("/api/seller/products").get_json()
        assert mine[0]["isActive"] is False

    def test_rejected_product_stays_hidden(self, client, login, admin_login, catalog):
        self._register(client, login)
        product = client.post("/api/products", json=self._product_body(catalog)).get_json()
        admin_login()
        rejected = client.post(
            f"/api/admin/products/{product['id']}/verify", json={"approved": False, "notes": "No certificate"}
        ).get_json()
        assert rejected["verificationNotes"] == "No certificate"
        assert client.get("/api/products").get_json() == []

    def test_cannot_edit_other_sellers_product(self, client, login, catalog, make_product):
        pid = make_product()
        self._register(client, login)
        assert client.put(f"/api/seller/products/{pid}", json={"price": "1.00"}).status_code == 404

    def test_seller_orders_and_status(self, client, login, catalog, make_product):
        pid = make_product(name="Seed Kit")
        login("buyer-1", "buyer@gmail.com")
        client.post("/api/cart", json={"productId": pid, "quantity": 2})
        order_id = _checkout(client).get_json()["orderId"]

        # The catalog fixture's seller signs in with its own identity
        login(catalog["seller_user_id"], "owner@ecofarm.com")
        orders = client.get("/api/seller/orders").get_json()
        assert [o["id"] for o in orders] == [order_id]
        assert orders[0]["items"][0]["productId"] == pid

        bad = client.put(f"/api/orders/{order_id}/status", json={"status": "teleported"})
        assert bad.status_code == 400
        for status in ("processing", "shipped"):
            ok = client.put(f"/api/orders/{order_id}/status", json={"status": status})
            assert ok.get_json()["status"] == status

    def test_status_cannot_move_backwards(self, client, login, catalog, make_product):
        pid = make_product()
        login("buyer-1", "buyer@gmail.com")
        client.post("/api/cart", json={"productId": pid})
        order_id = _checkout(client).get_json()["orderId"]

        login(catalog["seller_user_id"], "owner@ecofarm.com")
        for status in ("processing", "shipped", "delivered"):
            assert client.put(f"/api/orders/{order_id}/status", json={"status": status}).status_code == 200
        back = client.put(f"/api/orders/{order_id}/status", json={"status": "pending"})
        assert back.status_code == 400
        assert back.get_json() == {"message": "Cannot move order from delivered to pending"}

    def test_unrelated_seller_cannot_change_status(self, client, login, make_product):
        pid = make_product()
        login("buyer-1", "buyer@gmail.com")
        client.post("/api/cart", json={"productId": pid})
        order_id = _checkout(client).get_json()["orderId"]

        self._register(client, login)
        response = client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"})
        assert response.status_code == 403


class TestAdminEndpoints:
    def test_wrong_password(self, client):
        response = client.post("/api/admin/login", json={"password": "nope"})
        assert response.status_code == 401

    def test_verify_seller(self, client, admin_login, catalog):
        admin_login()
        response = client.post(f"/api/admin/sellers/{catalog['seller_id']}/verify", json={"isVerified": False})
        assert response.get_json()["isVerified"] is False

    def test_verify_missing_product(self, client, admin_login):
        admin_login()
        response = client.post("/api/admin/products/999/verify", json={"approved": True})
        assert response.status_code == 404


class TestCompanyEndpoints:
    def _with_points(self, app, domain, points):
        with app.app_context():
            company = Company.query.filter_by(domain=domain).one()
            company.total_points = points
            db.session.commit()

    def test_profile_requires_company(self, client, login):
        login("solo", "solo@gmail.com")
        assert client.get("/api/company/profile").status_code == 404

    def test_redeem_points(self, app, client, login):
        login("emp-1", "emp@acme.com")
        self._with_points(app, "acme.com", 250)

        response = client.post("/api/company/redeem-points", json={"points": 100, "action": "plant_trees"})
        assert response.status_code == 200
        assert response.get_json()["treesPlanted"] == 5
        assert client.get("/api/company/profile").get_json()["totalPoints"] == 150

        history = client.get("/api/company/points-history").get_json()
        assert [(h["action"], h["points"]) for h in history] == [("redeemed", 100)]
        assert client.get("/api/company/stats").get_json()["pointsRedeemed"] == 100

    def test_redeem_below_minimum(self, app, client, login):
        login("emp-1", "emp@acme.com")
        self._with_points(app, "acme.com", 250)
        response = client.post("/api/company/redeem-points", json={"points": 99})
        assert response.status_code == 400

    def test_redeem_more_than_balance(self, app, client, login):
        login("emp-1", "emp@acme.com")
        self._with_points(app, "acme.com", 120)
        response = client.post("/api/company/redeem-points", json={"points": 200})
        assert response.status_code == 400
        assert response.get_json() == {"message": "Insufficient points"}
        assert client.get("/api/company/points-history").get_json() == []

    def test_employees(self, client, login):
        login("emp-2", "bo@acme.com")
        login("outsider", "outsider@gmail.com")
        login("emp-1", "ana@acme.com")

        employees = client.get("/api/company/employees").get_json()
        assert sorted(e["id"] for e in employees) == ["emp-1", "emp-2"]
        assert all(e["orderCount"] == 0 for e in employees)

        added = client.post("/api/company/employees", json={"email": "outsider@gmail.com"})
        assert added.status_code == 200
        assert len(client.get("/api/company/employees").get_json()) == 3
        assert client.post("/api/company/employees", json={"email": "ghost@gmail.com"}).status_code == 404

    def test_company_co2_stats(self, client, login, make_product):
        pid = make_product(co2="4.00")
        login("emp-1", "ana@acme.com")
        client.post("/api/cart", json={"productId": pid})
        _checkout(client)

        assert client.get("/api/stats/company").get_json() == {"totalCo2Saved": "4.00"}
        stats = client.get("/api/company/stats").get_json()
        assert stats["totalOrders"] == 1
        assert stats["totalCo2Saved"] == "4.00"

    def test_company_co2_stats_follow_membership(self, client, login, make_product):
        pid = make_product(co2="4.00")
        login("emp-1", "ana@acme.com")
        login("outsider", "outsider@gmail.com")
        client.post("/api/cart", json={"productId": pid})
        _checkout(client)
        assert client.get("/api/stats/company").get_json() == {"totalCo2Saved": "0.00"}

        login("emp-1", "ana@acme.com")
        assert client.post("/api/company/employees", json={"email": "outsider@gmail.com"}).status_code == 200

        login("outsider", "outsider@gmail.com")
        assert client.get("/api/stats/company").get_json() == {"totalCo2Saved": "4.00"}


class TestGlobalStats:
    def test_global_stats_public(self, client, login, make_product):
        pid = make_product(co2="3.00")
        login()
        client.post("/api/cart", json={"productId": pid, "quantity": 2})
        _checkout(client)
        client.post("/api/auth/logout")

        stats = client.get("/api/stats/global").get_json()
        assert stats == {"totalCo2Saved": "6.00", "treesPlanted": 0, "activeUsers": 1}
