import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from core.context import TenantContext, current_context
from db.database import Permission, Role, get_async_session
from main import app


@pytest.fixture()
def as_user(ctx):
    """Swap the caller's TenantContext for the duration of a test."""
    holder = {"ctx": ctx}
    app.dependency_overrides[current_context] = lambda: holder["ctx"]
    return holder


@pytest.fixture()
async def client(session_maker, as_user):
    async def _session():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_async_session] = _session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def test_stock_in_then_store_inventory(client, seed):
    resp = await client.post(
        "/inventory/stock-in",
        json={"product_id": str(seed.product), "store_id": str(seed.store_a), "quantity": 4, "notes": "first delivery"},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["inventory"]["quantity"] == 4
    assert body["transaction"]["type"] == "stock_in"

    resp = await client.get(f"/inventory/stores/{seed.store_a}")
    assert resp.status_code == 200
    rows = resp.json()
    assert [(r["product_name"], r["quantity"]) for r in rows] == [("Soap", 4)]

    resp = await client.get("/inventory/low-stock")
    assert [r["product_id"] for r in resp.json()] == [str(seed.product)]


async def test_stock_out_beyond_available_is_conflict(client, seed, put_stock):
    await put_stock(seed.product, seed.store_a, 2)

    resp = await client.post(
        "/inventory/stock-out",
        json={"product_id": str(seed.product), "store_id": str(seed.store_a), "quantity": 3},
    )
    assert resp.status_code == 409


async def test_write_without_permission_is_forbidden(client, seed, as_user):
    as_user["ctx"] = TenantContext(user_id=uuid.uuid4(), company_id=seed.company_id, role="viewer")

    resp = await client.post(
        "/inventory/stock-in",
        json={"product_id": str(seed.product), "store_id": str(seed.store_a), "quantity": 1},
    )
    assert resp.status_code == 403


async def test_transfer_lifecycle(client, seed, put_stock, qty):
    await put_stock(seed.product, seed.store_a, 30)

    resp = await client.post(
        "/transfers/",
        json={
            "source_store_id": str(seed.store_a),
            "destination_store_id": str(seed.store_b),
            "items": [{"product_id": str(seed.product), "quantity": 10}],
        },
    )
    assert resp.status_code == 201, resp.text
    transfer = resp.json()
    assert transfer["status"] == "pending"
    assert len(transfer["items"]) == 1

    resp = await client.post(f"/transfers/{transfer['id']}/complete")
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "completed"
    assert await qty(seed.product, seed.store_a) == 20
    assert await qty(seed.product, seed.store_b) == 10

    resp = await client.post(f"/transfers/{transfer['id']}/complete")
    assert resp.status_code == 409

    resp = await client.get(f"/transfers/{transfer['id']}")
    assert resp.status_code == 200
    detail = resp.json()
    assert detail["source_store_name"] == "Main Street"
    assert detail["destination_store_name"] == "Mall"
    assert detail["items"][0]["product_name"] == "Soap"

    resp = await client.get("/transfers/", params={"status": "completed"})
    assert [t["id"] for t in resp.json()] == [transfer["id"]]


async def test_transfer_same_store_is_rejected(client, seed):
    resp = await client.post(
        "/transfers/",
        json={
            "source_store_id": str(seed.store_a),
            "destination_store_id": str(seed.store_a),
            "items": [{"product_id": str(seed.product), "quantity": 1}],
        },
    )
    assert resp.status_code == 422


async def test_unknown_transfer_is_404(client, seed):
    resp = await client.get(f"/transfers/{uuid.uuid4()}")
    assert resp.status_code == 404


async def test_sale_create_and_fetch(client, seed, put_stock, qty):
    await put_stock(seed.product, seed.store_a, 10)

    resp = await client.post(
        "/sales/",
        json={
            "store_id": str(seed.store_a),
            "items": [{"product_id": str(seed.product), "quantity": 2, "unit_price": 2.5}],
            "payment_method": "card",
        },
    )
    assert resp.status_code == 201, resp.text
    sale = resp.json()
    assert sale["total_amount"] == 5.0
    assert await qty(seed.product, seed.store_a) == 8

    resp = await client.get(f"/sales/{sale['id']}")
    assert resp.status_code == 200
    assert resp.json()["items"][0]["sku"] == "SOAP-1"

    resp = await client.patch(f"/sales/{sale['id']}/status", json={"status": "void"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "void"
    # status changes never touch stock
    assert await qty(seed.product, seed.store_a) == 8


async def test_role_permissions_replace(client, session, seed):
    role = Role(company_id=seed.company_id, name="cashier")
    p1, p2 = Permission(name="sales.create"), Permission(name="inventory.manage")
    session.add_all([role, p1, p2])
    await session.commit()

    resp = await client.put(f"/roles/{role.id}/permissions", json={"permission_ids": [str(p1.id), str(p2.id)]})
    assert resp.status_code == 200, resp.text
    assert [p["name"] for p in resp.json()["permissions"]] == ["inventory.manage", "sales.create"]

    resp = await client.put(f"/roles/{role.id}/permissions", json={"permission_ids": [str(p1.id)]})
    assert [p["name"] for p in resp.json()["permissions"]] == ["sales.create"]

    resp = await client.get("/permissions/")
    assert [p["name"] for p in resp.json()] == ["inventory.manage", "sales.create"]

    resp = await client.get(f"/roles/{uuid.uuid4()}/permissions")
    assert resp.status_code == 404


async def test_foreign_product_is_not_found(client, seed, qty):
    resp = await client.post(
        "/sales/",
        json={
            "store_id": str(seed.store_a),
            "items": [{"product_id": str(seed.foreign_product), "quantity": 1, "unit_price": 9}],
        },
    )
    assert resp.status_code == 404

    resp = await client.post(
        "/transfers/",
        json={
            "source_store_id": str(seed.store_a),
            "destination_store_id": str(seed.store_b),
            "items": [{"product_id": str(seed.foreign_product), "quantity": 3}],
        },
    )
    assert resp.status_code == 404

    resp = await client.post(
        "/inventory/transfer",
        json={
            "product_id": str(seed.foreign_product),
            "source_store_id": str(seed.store_a),
            "destination_store_id": str(seed.store_b),
            "quantity": 1,
        },
    )
    assert resp.status_code == 404
    assert await qty(seed.foreign_product, seed.store_b) is None


async def test_sale_item_total_must_match(client, seed):
    resp = await client.post(
        "/sales/",
        json={
            "store_id": str(seed.store_a),
            "items": [{"product_id": str(seed.product), "quantity": 2, "unit_price": 10, "total_amount": 15}],
        },
    )
    assert resp.status_code == 422


async def test_adding_permission_twice_is_conflict(client, session, seed):
    role = Role(company_id=seed.company_id, name="stocker")
    perm = Permission(name="inventory.manage")
    session.add_all([role, perm])
    await session.commit()

    first = await client.post(f"/roles/{role.id}/permissions/{perm.id}")
    second = await client.post(f"/roles/{role.id}/permissions/{perm.id}")

    assert first.status_code == 201
    assert second.status_code == 409
    assert "already has permission" in second.json()["detail"]
