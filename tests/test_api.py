import pytest

from conftest import make_address, make_customer, make_line, make_request


def order_payload(**overrides) -> dict:
    return make_request(**overrides).model_dump(mode="json", exclude_none=True)


@pytest.fixture
def placed(client):
    resp = client.post("/api/orders", json=order_payload())
    assert resp.status_code == 201
    return resp.json()["order_code"]


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "Fun Prints Backend Running"}

    def test_database_probe(self, client):
        body = client.get("/test").json()
        assert body["database"] == "✅ Available"


class TestOrders:
    def test_cod_order_created(self, client, notifier):
        resp = client.post("/api/orders", json=order_payload())
        assert resp.status_code == 201
        body = resp.json()
        assert body["order_code"].startswith("FP")
        assert body["payment_status"] == "verified"
        assert body["order_status"] == "pending"
        assert len(notifier.sent) == 2

    def test_tampered_total_is_recomputed(self, client):
        payload = order_payload(items=[make_line(quantity=3, unit_price=399.0)], total=1.0)
        body = client.post("/api/orders", json=payload).json()
        assert body["total_amount"] == 1197.0
        assert body["shipping_fee"] == 0
        assert body["amount_due"] == 1197.0

    def test_fetch_order(self, client, placed):
        resp = client.get(f"/api/orders/{placed}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["customer"]["email"] == "priya@example.com"
        assert body["items"][0]["line_total"] == 399.0

    def test_missing_order_is_404(self, client):
        resp = client.get("/api/orders/FP0000000")
        assert resp.status_code == 404
        assert "detail" in resp.json()

    def test_insufficient_stock_is_409(self, client):
        payload = order_payload(items=[make_line(product_id="hoodie", color="grey", size="XL", quantity=2)])
        assert client.post("/api/orders", json=payload).status_code == 409

    def test_empty_order_is_422(self, client):
        payload = order_payload()
        payload["items"] = []
        assert client.post("/api/orders", json=payload).status_code == 422

    @pytest.mark.parametrize("field,value", [
        ("customer", {"name": "Priya", "email": "not-an-email", "mobile": "9876543210"}),
        ("customer", {"name": "Priya", "email": "a@b.co", "mobile": "98765"}),
        ("address", {**make_address().model_dump(), "pincode": "12345"}),
    ])
    def test_bad_contact_or_address_is_422(self, client, field, value):
        payload = order_payload()
        payload[field] = value
        assert client.post("/api/orders", json=payload).status_code == 422

    def test_other_state_pays_default_shipping(self, client):
        payload = order_payload(address=make_address(state="Karnataka", district="Bengaluru", pincode="560001"))
        body = client.post("/api/orders", json=payload).json()
        assert body["shipping_fee"] == 100

    def test_payment_proof(self, client):
        code = client.post("/api/orders", json=order_payload(method="UPI")).json()["order_code"]
        resp = client.post(f"/api/orders/{code}/payment-proof", json={"screenshot_url": "https://cdn.test/s.jpg"})
        assert resp.status_code == 200
        assert resp.json()["proofs"] == 1

    def test_payment_proof_unknown_order(self, client):
        resp = client.post("/api/orders/FP404404/payment-proof", json={"screenshot_url": "https://cdn.test/s.jpg"})
        assert resp.status_code == 404


class TestAdminOrders:
    def test_requires_token(self, client):
        assert client.get("/api/admin/orders").status_code == 401
        assert client.get("/api/admin/orders", headers={"Authorization": "Bearer wrong"}).status_code == 401

    def test_unconfigured_token_is_503(self, client, settings):
        settings.ADMIN_TOKEN = None
        assert client.get("/api/admin/orders", headers={"Authorization": "Bearer x"}).status_code == 503

    def test_lists_orders(self, client, admin_headers, placed):
        resp = client.get("/api/admin/orders", headers=admin_headers)
        assert resp.status_code == 200
        assert [o["order_code"] for o in resp.json()] == [placed]

    def test_status_update(self, client, admin_headers, placed):
        resp = client.patch(f"/api/admin/orders/{placed}", json={"order_status": "processing"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["order_status"] == "processing"

    def test_update_unknown_order_is_404(self, client, admin_headers, db):
        resp = client.patch("/api/admin/orders/FPxxxxxx", json={"order_status": "completed"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_illegal_transition_is_409(self, client, admin_headers, placed):
        resp = client.patch(f"/api/admin/orders/{placed}", json={"order_status": "completed"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_forced_correction(self, client, admin_headers, placed):
        client.patch(f"/api/admin/orders/{placed}", json={"order_status": "cancelled"}, headers=admin_headers)
        resp = client.patch(
            f"/api/admin/orders/{placed}", json={"order_status": "pending", "force": True}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.json()["order_status"] == "pending"

    def test_empty_update_is_422(self, client, admin_headers, placed):
        assert client.patch(f"/api/admin/orders/{placed}", json={}, headers=admin_headers).status_code == 422


class TestCatalogue:
    def test_seed_then_list(self, client):
        assert client.post("/seed").json()["seeded"] is True
        assert client.post("/seed").json()["seeded"] is False

        products = client.get("/api/products").json()
        assert len(products) == 4
        assert all(p["variants"] for p in products)

        hoodies = client.get("/api/products", params={"category": "hoodie"}).json()
        assert [p["name"] for p in hoodies] == ["Pullover Hoodie"]

    def test_unknown_product_is_404(self, client):
        assert client.get("/api/products/not-an-id").status_code == 404

    def test_disabled_product_hidden(self, client, admin_headers):
        client.post("/seed")
        product = client.get("/api/products", params={"q": "polo"}).json()[0]
        resp = client.post(f"/api/admin/products/{product['id']}/toggle", headers=admin_headers)
        assert resp.json()["enabled"] is False
        assert client.get(f"/api/products/{product['id']}").status_code == 404
        admin_view = client.get("/api/admin/products", headers=admin_headers).json()
        assert product["id"] in [p["id"] for p in admin_view]

    def test_variant_stock_update(self, client, admin_headers):
        client.post("/seed")
        product = client.get("/api/products", params={"q": "hoodie"}).json()[0]
        variant = product["variants"][0]
        url = f"/api/admin/products/{product['id']}/variants/{variant['id']}/stock"

        resp = client.patch(url, json={"stock": 0}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["is_available"] is False

        remaining = client.get(f"/api/products/{product['id']}").json()["variants"]
        assert variant["id"] not in [v["id"] for v in remaining]

    def test_product_edit(self, client, admin_headers):
        client.post("/seed")
        product = client.get("/api/products", params={"q": "polo"}).json()[0]
        resp = client.patch(f"/api/admin/products/{product['id']}", json={"base_price": 699}, headers=admin_headers)
        assert resp.json()["base_price"] == 699


class TestEnquiries:
    def test_contact(self, client, notifier):
        resp = client.post("/api/contact", json={
            "name": "Arun", "email": "arun@example.com", "mobile": "9000000000", "message": "Do you print on caps?",
        })
        assert resp.status_code == 200
        assert notifier.sent == [("contact", "arun@example.com")]

    def test_bulk_enquiry_saved_and_listed(self, client, notifier, admin_headers):
        resp = client.post("/api/bulk-enquiries", json={
            "name": "Arun", "email": "arun@example.com", "mobile": "9000000000", "company": "Acme", "quantity": 200,
        })
        assert resp.status_code == 201
        assert notifier.sent == [("bulk", "arun@example.com")]

        listed = client.get("/api/admin/bulk-enquiries", headers=admin_headers).json()
        assert [e["company"] for e in listed] == ["Acme"]

    def test_bulk_enquiry_kept_when_alert_fails(self, client, notifier, admin_headers):
        notifier.fail = True
        resp = client.post("/api/bulk-enquiries", json={
            "name": "Arun", "email": "arun@example.com", "mobile": "9000000000", "quantity": 50,
        })
        assert resp.status_code == 201
        assert len(client.get("/api/admin/bulk-enquiries", headers=admin_headers).json()) == 1
