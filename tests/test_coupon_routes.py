from datetime import timedelta

from conftest import line
from storefront.extensions import db
from storefront.model import Coupon, Order
from storefront.utils.dates import utcnow

COUPON_BODY = {
    "code": "SPRING",
    "name": "Spring sale",
    "discountType": "percentage",
    "discountValue": 15,
    "validFrom": "2026-01-01T00:00:00Z",
    "validUntil": "2099-01-01T00:00:00Z",
}


def test_validate_valid_coupon(client, make_product, make_coupon):
    p = make_product("Desk", "100.00")
    c = make_coupon("SAVE10", max_discount_amount=5, min_purchase_amount=20)
    r = client.post("/coupons/validate", json={"code": "SAVE10", "items": [line(p)], "subtotal": 100})
    assert r.status_code == 200
    body = r.get_json()
    assert body["status"] is True
    assert body["data"]["valid"] is True
    assert body["data"]["discountAmount"] == 5.0
    assert body["data"]["coupon"] == {
        "id": c.id, "code": "SAVE10", "name": "SAVE10 promo",
        "discountType": "percentage", "discountValue": 10.0,
    }


def test_validate_invalid_coupon(client, make_product, make_coupon):
    p = make_product("Pen", "15.00")
    make_coupon("SAVE10", min_purchase_amount=20)
    r = client.post("/coupons/validate", json={"code": "SAVE10", "items": [line(p)], "subtotal": 15})
    assert r.status_code == 400
    body = r.get_json()
    assert body["message"] == "Minimum purchase amount of $20.00 required"
    assert body["data"]["valid"] is False
    assert body["data"]["error"] == "Minimum purchase amount of $20.00 required"


def test_validate_requires_fields(client):
    r = client.post("/coupons/validate", json={"code": "SAVE10"})
    assert r.status_code == 400
    assert r.get_json()["data"]["valid"] is False


def test_validate_rejects_negative_subtotal(client, make_product, make_coupon):
    p = make_product()
    make_coupon("SAVE10")
    r = client.post("/coupons/validate", json={"code": "SAVE10", "items": [line(p)], "subtotal": -5})
    assert r.status_code == 400
    assert r.get_json()["data"] == {
        "valid": False,
        "error": "subtotal must be a non-negative number",
        "API_TIME": r.get_json()["data"]["API_TIME"],
    }


def test_validate_uses_caller_identity(client, make_product, make_coupon, make_user, auth_headers):
    user = make_user()
    p = make_product()
    c = make_coupon("PERUSER", user_usage_limit=1)
    db.session.add(Order(user_id=user.id, email="x@y.z", total_amount=1, coupon_id=c.id, coupon_code="PERUSER"))
    db.session.commit()
    body = {"code": "PERUSER", "items": [line(p)], "subtotal": 10}

    assert client.post("/coupons/validate", json=body).status_code == 200
    r = client.post("/coupons/validate", json=body, headers=auth_headers(user))
    assert r.status_code == 400
    assert r.get_json()["data"]["error"] == "You have already used this coupon"


def test_available_coupons_hide_usage_details(client, make_coupon):
    now = utcnow()
    make_coupon("LIVE", usage_limit=10)
    make_coupon("OLD", valid_from=now - timedelta(days=9), valid_until=now - timedelta(days=1))
    r = client.get("/coupons/available")
    coupons = r.get_json()["data"]["coupons"]
    assert [c["code"] for c in coupons] == ["LIVE"]
    assert "usageLimit" not in coupons[0]
    assert "usageCount" not in coupons[0]


def test_admin_endpoints_require_login(client):
    assert client.get("/coupons").status_code == 401
    assert client.post("/coupons", json=COUPON_BODY).status_code == 401


def test_admin_endpoints_check_permissions(client, make_user, auth_headers):
    shopper = auth_headers(make_user("shopper@example.com"))
    manager = auth_headers(make_user("manager@example.com", roles=["manager"]))

    assert client.get("/coupons", headers=shopper).status_code == 403
    assert client.get("/coupons", headers=manager).status_code == 200
    assert client.post("/coupons", json=COUPON_BODY, headers=manager).status_code == 403


def test_create_coupon(client, make_user, make_product, auth_headers):
    admin = auth_headers(make_user("admin@example.com", role="admin"))
    p = make_product()
    r = client.post("/coupons", json={**COUPON_BODY, "productIds": [p.id]}, headers=admin)
    assert r.status_code == 201
    data = r.get_json()["data"]
    coupon = db.session.get(Coupon, data["id"])
    assert coupon.code == "SPRING"
    assert coupon.usage_count == 0
    assert coupon.is_active is True
    assert data["coupon"]["productIds"] == [p.id]
    assert data["coupon"]["validUntil"] == "2099-01-01T00:00:00"

    dup = client.post("/coupons", json=COUPON_BODY, headers=admin)
    assert dup.status_code == 409
    assert dup.get_json()["message"] == "Coupon code already exists"


def test_create_coupon_validation(client, make_user, auth_headers):
    admin = auth_headers(make_user("admin@example.com", role="admin"))
    r = client.post("/coupons", json={"code": "X"}, headers=admin)
    assert r.status_code == 400
    assert "discount_value" in r.get_json()["data"]["missing"]

    r = client.post("/coupons", json={**COUPON_BODY, "discountValue": 150}, headers=admin)
    assert r.status_code == 400
    assert r.get_json()["message"] == "percentage discount must be <= 100"

    r = client.post("/coupons", json={**COUPON_BODY, "validUntil": "2025-01-01T00:00:00Z"}, headers=admin)
    assert r.get_json()["message"] == "validUntil must be after validFrom"


def test_patch_coupon_only_touches_sent_fields(client, make_user, make_coupon, auth_headers):
    admin = auth_headers(make_user("admin@example.com", role="admin"))
    c = make_coupon("SAVE10", min_purchase_amount=20, max_discount_amount=5)

    r = client.patch(f"/coupons/{c.id}", json={"name": "Renamed", "minPurchaseAmount": None}, headers=admin)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert sorted(data["changed"]) == ["min_purchase_amount", "name"]
    assert data["coupon"]["minPurchaseAmount"] is None
    assert data["coupon"]["maxDiscountAmount"] == 5.0
    assert data["coupon"]["code"] == "SAVE10"


def test_patch_rejects_inconsistent_update(client, make_user, make_coupon, auth_headers):
    admin = auth_headers(make_user("admin@example.com", role="admin"))
    c = make_coupon("SAVE10")
    r = client.patch(f"/coupons/{c.id}", json={"discountValue": 120}, headers=admin)
    assert r.status_code == 400
    assert db.session.get(Coupon, c.id).discount_value == 10


def test_get_and_delete_coupon(client, make_user, make_coupon, auth_headers):
    admin = auth_headers(make_user("admin@example.com", role="admin"))
    c = make_coupon("BYE")
    assert client.get(f"/coupons/{c.id}", headers=admin).get_json()["data"]["coupon"]["code"] == "BYE"
    assert client.delete(f"/coupons/{c.id}", headers=admin).status_code == 200
    assert client.get(f"/coupons/{c.id}", headers=admin).status_code == 404


def test_list_filters_active(client, make_user, make_coupon, auth_headers):
    admin = auth_headers(make_user("admin@example.com", role="admin"))
    make_coupon("ON")
    make_coupon("OFF", is_active=False)
    r = client.get("/coupons?active=false", headers=admin)
    assert [c["code"] for c in r.get_json()["data"]["coupons"]] == ["OFF"]
