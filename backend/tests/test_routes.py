"""HTTP API tests through the Flask test client."""

from app.models import Product, StockMovement, StockReference
from app.services import stock_service


def _sale_payload(cashier, product, quantity=2, **overrides):
    payload = {
        "cashier_id": cashier.id,
        "payment_method": "cash",
        "amount_paid_cents": product.selling_price_cents * quantity,
        "items": [{
            "product_id": product.id,
            "barcode": product.barcode,
            "product_name": product.name,
            "quantity": quantity,
            "unit_price_cents": product.selling_price_cents,
        }],
    }
    payload.update(overrides)
    return payload


def test_health(client, db_session):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json["status"] == "ok"
    assert response.json["checks"]["database"]["status"] == "healthy"


def test_create_and_fetch_sale(client, db_session, cashier, product_a):
    response = client.post('/api/sales', json=_sale_payload(cashier, product_a))

    assert response.status_code == 201
    sale = response.json["sale"]
    assert sale["status"] == "completed"
    assert sale["total_amount_cents"] == 2000
    assert response.json["items"][0]["quantity"] == 2

    fetched = client.get(f'/api/sales/{sale["id"]}')
    assert fetched.status_code == 200
    assert fetched.json["sale"]["transaction_number"] == sale["transaction_number"]

    listed = client.get(f'/api/sales?cashier_id={cashier.id}')
    assert [s["id"] for s in listed.json["sales"]] == [sale["id"]]


def test_sale_errors_map_to_status_codes(client, db_session, cashier, product_a):
    missing_cashier = client.post('/api/sales', json=_sale_payload(cashier, product_a, cashier_id=9999))
    assert missing_cashier.status_code == 404
    assert missing_cashier.json["kind"] == "NOT_FOUND"
    assert missing_cashier.json["details"] == {"cashier_id": 9999}

    underpaid = client.post('/api/sales', json=_sale_payload(cashier, product_a, amount_paid_cents=1))
    assert underpaid.status_code == 409
    assert underpaid.json["kind"] == "VALIDATION_FAILURE"

    too_many = client.post('/api/sales', json=_sale_payload(cashier, product_a, quantity=11))
    assert too_many.status_code == 409
    assert too_many.json["details"]["on_hand"] == 10

    bad_quantity = client.post('/api/sales', json=_sale_payload(cashier, product_a, quantity=0))
    assert bad_quantity.status_code == 400

    no_items = client.post('/api/sales', json=_sale_payload(cashier, product_a, items=[]))
    assert no_items.status_code == 400

    not_json = client.post('/api/sales', data="[]", content_type="application/json")
    assert not_json.status_code == 400

    assert client.get('/api/sales/9999').status_code == 404


def test_cancel_sale_route(client, db_session, cashier, admin, product_a):
    sale = client.post('/api/sales', json=_sale_payload(cashier, product_a)).json["sale"]

    no_reason = client.post(f'/api/sales/{sale["id"]}/cancel', json={"cancelled_by": admin.id})
    assert no_reason.status_code == 400

    cancelled = client.post(
        f'/api/sales/{sale["id"]}/cancel',
        json={"cancelled_by": admin.id, "cancellation_reason": "Wrong item"},
    )
    assert cancelled.status_code == 200
    assert cancelled.json["sale"]["status"] == "cancelled"

    again = client.post(
        f'/api/sales/{sale["id"]}/cancel',
        json={"cancelled_by": admin.id, "cancellation_reason": "Wrong item"},
    )
    assert again.status_code == 409
    assert again.json["kind"] == "INVALID_STATE"

    db_session.expire_all()
    assert db_session.get(Product, product_a.id).stock_quantity == 10


def test_daily_sales_route(client, db_session, cashier, product_a):
    client.post('/api/sales', json=_sale_payload(cashier, product_a))

    today = client.get('/api/sales/daily')
    assert today.status_code == 200
    assert today.json["transaction_count"] == 1
    assert today.json["total_sales_cents"] == 2000

    assert client.get('/api/sales/daily?date=not-a-date').status_code == 400


def test_stock_movement_routes(client, db_session, admin, product_a):
    recorded = client.post('/api/stock/movements', json={
        "product_id": product_a.id,
        "movement_type": "out",
        "quantity": 25,
        "created_by": admin.id,
        "notes": "Damaged pallet",
    })
    assert recorded.status_code == 201
    assert recorded.json["stock_quantity"] == 0
    assert recorded.json["movement"]["quantity"] == 25

    adjusted = client.post('/api/stock/adjust', json={
        "product_id": product_a.id,
        "target_quantity": 7,
        "actor_id": admin.id,
    })
    assert adjusted.status_code == 201
    assert adjusted.json["movement"]["quantity"] == 7
    assert adjusted.json["movement"]["reference_type"] == "adjustment"
    assert adjusted.json["stock_quantity"] == 7

    history = client.get(f'/api/stock/movements?product_id={product_a.id}')
    assert [m["movement_type"] for m in history.json["movements"]] == ["adjustment", "out", "in"]


def test_stock_movement_route_validation(client, db_session, admin, product_a):
    bad_reference = client.post('/api/stock/movements', json={
        "product_id": product_a.id,
        "movement_type": "in",
        "quantity": 1,
        "created_by": admin.id,
        "reference_type": "sale",
    })
    assert bad_reference.status_code == 400

    negative_out = client.post('/api/stock/movements', json={
        "product_id": product_a.id,
        "movement_type": "out",
        "quantity": -1,
        "created_by": admin.id,
    })
    assert negative_out.status_code == 409
    assert negative_out.json["kind"] == "VALIDATION_FAILURE"

    missing_product = client.post('/api/stock/movements', json={
        "product_id": 9999,
        "movement_type": "in",
        "quantity": 1,
        "created_by": admin.id,
    })
    assert missing_product.status_code == 404

    assert db_session.query(StockMovement).filter_by(product_id=product_a.id).count() == 1


def test_manual_movements_cannot_claim_document_references(client, db_session, cashier, admin, product_a):
    sale = client.post('/api/sales', json=_sale_payload(cashier, product_a)).json["sale"]

    as_sale = client.post('/api/stock/movements', json={
        "product_id": product_a.id,
        "movement_type": "in",
        "quantity": 2,
        "created_by": admin.id,
        "reference_type": "sale",
        "reference_id": sale["id"],
    })
    assert as_sale.status_code == 400

    as_purchase = client.post('/api/stock/movements', json={
        "product_id": product_a.id,
        "movement_type": "in",
        "quantity": 2,
        "created_by": admin.id,
        "reference_type": "purchase",
        "reference_id": 424242,
    })
    assert as_purchase.status_code == 400

    unknown_actor = client.post('/api/stock/movements', json={
        "product_id": product_a.id,
        "movement_type": "in",
        "quantity": 2,
        "created_by": 987654,
    })
    assert unknown_actor.status_code == 404
    assert unknown_actor.json["details"] == {"user_id": 987654}

    unknown_adjuster = client.post('/api/stock/adjust', json={
        "product_id": product_a.id,
        "target_quantity": 50,
        "actor_id": 987654,
    })
    assert unknown_adjuster.status_code == 404

    assert len(stock_service.list_movements_for_reference(StockReference.sale(sale["id"]))) == 1
    db_session.expire_all()
    assert db_session.get(Product, product_a.id).stock_quantity == 8


def test_purchase_routes(client, db_session, admin, supplier, product_a):
    created = client.post('/api/purchases', json={
        "supplier_id": supplier.id,
        "created_by": admin.id,
        "items": [{"product_id": product_a.id, "quantity": 12, "unit_cost_cents": 300}],
    })
    assert created.status_code == 201
    purchase = created.json["purchase"]
    assert purchase["total_amount_cents"] == 3600
    assert purchase["status"] == "completed"

    assert client.get(f'/api/purchases/{purchase["id"]}').json["items"][0]["quantity"] == 12
    assert len(client.get('/api/purchases').json["purchases"]) == 1
    assert client.get('/api/purchases/9999').status_code == 404

    missing = client.post('/api/purchases', json={
        "supplier_id": supplier.id,
        "created_by": admin.id,
        "items": [{"product_id": 9999, "quantity": 1, "unit_cost_cents": 1}],
    })
    assert missing.status_code == 404

    unknown_receiver = client.post('/api/purchases', json={
        "supplier_id": supplier.id,
        "created_by": 987654,
        "items": [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 1}],
    })
    assert unknown_receiver.status_code == 404
    assert len(client.get('/api/purchases').json["purchases"]) == 1


def test_catalog_routes(client, db_session, admin):
    category = client.post('/api/categories', json={"name": "Snacks"})
    assert category.status_code == 201

    supplier = client.post('/api/suppliers', json={"name": "Crunch Co", "email": "hi@crunch.test"})
    assert supplier.status_code == 201

    created = client.post('/api/products', json={
        "barcode": "SN-1",
        "name": "Pretzels",
        "category_id": category.json["category"]["id"],
        "supplier_id": supplier.json["supplier"]["id"],
        "purchase_price_cents": 120,
        "selling_price_cents": 250,
        "stock_quantity": 3,
        "minimum_stock": 5,
        "created_by": admin.id,
    })
    assert created.status_code == 201
    product = created.json["product"]
    assert product["stock_quantity"] == 3
    assert product["is_low_stock"] is True

    assert client.get(f'/api/products/{product["id"]}').status_code == 200
    assert client.get('/api/products/barcode/SN-1').json["product"]["id"] == product["id"]
    assert client.get('/api/products/barcode/NOPE').status_code == 404
    assert client.get('/api/products/9999').status_code == 404

    low = client.get('/api/products/low-stock')
    assert [p["barcode"] for p in low.json["products"]] == ["SN-1"]

    duplicate = client.post('/api/products', json={
        "barcode": "SN-1",
        "name": "Pretzels again",
        "category_id": category.json["category"]["id"],
        "purchase_price_cents": 120,
        "selling_price_cents": 250,
    })
    assert duplicate.status_code == 409

    unknown_field = client.post('/api/products', json={
        "barcode": "SN-2",
        "name": "Chips",
        "category_id": category.json["category"]["id"],
        "purchase_price_cents": 1,
        "selling_price_cents": 1,
        "sku": "legacy",
    })
    assert unknown_field.status_code == 400


def test_user_routes(client, db_session):
    created = client.post('/api/users', json={
        "username": "carol",
        "email": "carol@pos.test",
        "password": "secret1",
        "role": "cashier",
    })
    assert created.status_code == 201
    assert "password_hash" not in created.json["user"]

    duplicate = client.post('/api/users', json={
        "username": "carol",
        "email": "carol2@pos.test",
        "password": "secret1",
    })
    assert duplicate.status_code == 409

    login = client.post('/api/auth/login', json={"username": "carol", "password": "secret1"})
    assert login.status_code == 200
    assert login.json["user"]["username"] == "carol"

    bad_login = client.post('/api/auth/login', json={"username": "carol", "password": "nope123"})
    assert bad_login.status_code == 401


def test_product_update_and_deactivate_routes(client, db_session, cashier, admin, supplier, product_a):
    renamed = client.put(f'/api/products/{product_a.id}', json={
        "name": "Cold Brew",
        "selling_price_cents": 1200,
        "supplier_id": supplier.id,
    })
    assert renamed.status_code == 200
    assert renamed.json["product"]["name"] == "Cold Brew"
    assert renamed.json["product"]["selling_price_cents"] == 1200
    assert renamed.json["product"]["stock_quantity"] == 10

    stock_write = client.put(f'/api/products/{product_a.id}', json={"stock_quantity": 99})
    assert stock_write.status_code == 400

    bad_category = client.put(f'/api/products/{product_a.id}', json={"category_id": 9999})
    assert bad_category.status_code == 404
    assert client.put('/api/products/9999', json={"name": "Ghost"}).status_code == 404

    deactivated = client.delete(f'/api/products/{product_a.id}')
    assert deactivated.status_code == 200
    assert deactivated.json["product"]["is_active"] is False

    refused = client.post('/api/sales', json=_sale_payload(cashier, product_a, quantity=1))
    assert refused.status_code == 409
    assert refused.json["details"] == {"product_id": product_a.id}

    assert stock_service.reconcile_stock() == []


def test_category_and_supplier_management_routes(client, db_session, admin, category, supplier, product_a):
    listed = client.get('/api/categories')
    assert [c["name"] for c in listed.json["categories"]] == ["Beverages"]

    updated = client.put(f'/api/categories/{category.id}', json={"description": "Hot and cold drinks"})
    assert updated.status_code == 200
    assert updated.json["category"]["description"] == "Hot and cold drinks"
    assert client.put(f'/api/categories/{category.id}', json={"name": ""}).status_code == 400

    in_use = client.delete(f'/api/categories/{category.id}')
    assert in_use.status_code == 409
    assert in_use.json["details"]["product_count"] == 1

    empty = client.post('/api/categories', json={"name": "Seasonal"}).json["category"]
    assert client.delete(f'/api/categories/{empty["id"]}').status_code == 200
    assert client.delete(f'/api/categories/{empty["id"]}').status_code == 404

    assert client.get(f'/api/suppliers/{supplier.id}').json["supplier"]["name"] == "Acme Wholesale"
    assert client.get('/api/suppliers/9999').status_code == 404
    assert len(client.get('/api/suppliers').json["suppliers"]) == 1

    phone = client.put(f'/api/suppliers/{supplier.id}', json={"phone": "555-0199"})
    assert phone.json["supplier"]["phone"] == "555-0199"
    assert client.put(f'/api/suppliers/{supplier.id}', json={"email": "nope"}).status_code == 400

    client.post('/api/purchases', json={
        "supplier_id": supplier.id,
        "created_by": admin.id,
        "items": [{"product_id": product_a.id, "quantity": 1, "unit_cost_cents": 100}],
    })
    blocked = client.delete(f'/api/suppliers/{supplier.id}')
    assert blocked.status_code == 409
    assert blocked.json["details"]["purchase_count"] == 1

    spare = client.post('/api/suppliers', json={"name": "Unused Ltd"}).json["supplier"]
    assert client.delete(f'/api/suppliers/{spare["id"]}').status_code == 200


def test_report_routes(client, db_session, cashier, product_a, product_b):
    client.post('/api/sales', json=_sale_payload(cashier, product_a, quantity=2))
    client.post('/api/sales', json=_sale_payload(cashier, product_b, quantity=1))

    today = client.get('/api/sales/daily').json["date"]
    sales = client.get(f'/api/reports/sales?start_date={today}&end_date={today}')
    assert sales.status_code == 200
    assert sales.json["total_sales_cents"] == 2250
    assert sales.json["total_transactions"] == 2
    assert [p["product_id"] for p in sales.json["top_products"]] == [product_a.id, product_b.id]

    assert client.get('/api/reports/sales').status_code == 400
    assert client.get(f'/api/reports/sales?start_date={today}&end_date=2000-01-01').status_code == 400

    stock = client.get('/api/reports/stock?low_stock_only=false')
    assert stock.status_code == 200
    assert stock.json["total_products"] == 2
    assert stock.json["total_stock_value_cents"] == 8 * 1000 + 4 * 250
    assert client.get('/api/reports/stock?low_stock_only=maybe').status_code == 400
