import httpx
import pytest_asyncio

from api.dependencies import build_container
from core.config import settings
from infrastructure.adapters.authorization import StaticAllowListAdminPolicy
from main import create_app

ADMIN_IDENTITY = "admin-openid"

ADMIN = {"X-Client-Identity": ADMIN_IDENTITY}
PHONE = "13900000000"


@pytest_asyncio.fixture
async def client(session_factory, actuator, clock):
    container = build_container(
        settings,
        session_factory=session_factory,
        door_actuator=actuator,
        admin_policy=StaticAllowListAdminPolicy([ADMIN_IDENTITY]),
        clock=clock,
    )
    app = create_app(container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _provision(client):
    resp = await client.post("/api/v1/admin/devices/bulk", json={"count": 1}, headers=ADMIN)
    assert resp.status_code == 200
    resp = await client.post(
        "/api/v1/admin/lockers/bulk",
        json={"device_id": "L0001", "cabinet_count": 1, "doors_per_cabinet": 2},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["created"] == 2


async def _paid_order(client):
    free = (await client.get("/api/v1/lockers/free", params={"device_id": "L0001"})).json()["data"]
    order = (await client.post("/api/v1/orders", json={"locker_id": free[0]["id"], "phone": PHONE})).json()["data"]
    resp = await client.post(f"/api/v1/orders/{order['id']}/mock-pay")
    assert resp.status_code == 200
    return free[0], resp.json()["data"]


async def test_health_and_root(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert (await client.get("/")).json()["data"]["name"] == settings.PROJECT_NAME


async def test_admin_endpoints_require_allow_listed_identity(client):
    resp = await client.post("/api/v1/admin/devices/bulk", json={"count": 1})
    assert resp.status_code == 403
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["type"] == "Forbidden"

    resp = await client.get("/api/v1/admin/me", headers={"X-Client-Identity": "someone"})
    assert resp.status_code == 200
    assert resp.json()["data"]["is_admin"] is False
    assert (await client.get("/api/v1/admin/me", headers=ADMIN)).json()["data"]["is_admin"] is True


async def test_rental_flow_over_http(client, actuator):
    await _provision(client)
    locker, order = await _paid_order(client)
    assert order["status"] == "IN_PROGRESS"

    door = {"device_id": "L0001", "cabinet_no": locker["cabinet_no"], "door_no": locker["door_no"]}
    resp = await client.post("/api/v1/lockers/open-door", json={**door, "order_id": order["id"], "mode": "store"})
    assert resp.status_code == 200
    assert resp.json()["data"]["order"]["stored_at"].endswith("Z")

    resp = await client.post(
        "/api/v1/orders/query",
        json={"phone": PHONE, "code": order["retrieval_code"], "device_id": "L0001"},
    )
    assert resp.json()["data"]["id"] == order["id"]

    resp = await client.post("/api/v1/lockers/open-door", json={**door, "order_id": order["id"], "mode": "take"})
    assert resp.json()["data"]["locker"]["status"] == "free"

    resp = await client.post(f"/api/v1/orders/{order['id']}/finish")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "COMPLETED"

    resp = await client.get(f"/api/v1/orders/{order['id']}")
    assert resp.json()["data"]["end_time"] is not None
    assert len(actuator.calls) == 2


async def test_error_mapping(client, actuator):
    await _provision(client)

    resp = await client.post("/api/v1/orders", json={"locker_id": 1, "phone": "123"})
    assert resp.status_code == 422
    assert resp.json()["error"]["type"] == "ValidationError"

    resp = await client.post("/api/v1/orders", json={"phone": PHONE})
    assert resp.status_code == 422

    assert (await client.get("/api/v1/orders/999")).status_code == 404

    locker, order = await _paid_order(client)
    resp = await client.post("/api/v1/orders", json={"locker_id": locker["id"], "phone": PHONE})
    assert resp.status_code == 409
    assert resp.json()["error"]["type"] == "Conflict"

    door = {"device_id": "L0001", "cabinet_no": locker["cabinet_no"], "door_no": locker["door_no"]}
    resp = await client.post("/api/v1/lockers/open-door", json={**door, "order_id": order["id"] + 1, "mode": "take"})
    assert resp.status_code == 409
    assert resp.json()["error"]["type"] == "InvalidState"

    actuator.fail = True
    resp = await client.post("/api/v1/lockers/open-door", json={**door, "order_id": order["id"], "mode": "store"})
    assert resp.status_code == 502
    assert resp.json()["error"]["type"] == "HardwareFailure"
    assert (await client.get(f"/api/v1/orders/{order['id']}")).json()["data"]["status"] == "CANCELLED"


async def test_admin_order_operations(client):
    await _provision(client)
    locker, order = await _paid_order(client)

    resp = await client.post(f"/api/v1/admin/orders/{order['id']}/force-finish")
    assert resp.status_code == 403

    resp = await client.post(f"/api/v1/admin/orders/{order['id']}/force-finish", headers=ADMIN)
    assert resp.json()["data"]["status"] == "FORCE_FINISHED"

    resp = await client.post(f"/api/v1/admin/orders/{order['id']}/refund", headers=ADMIN)
    assert resp.status_code == 409

    _, second = await _paid_order(client)
    resp = await client.post(f"/api/v1/admin/orders/{second['id']}/refund", headers=ADMIN)
    assert resp.json()["data"]["status"] == "REFUNDED"

    _, third = await _paid_order(client)
    resp = await client.post(f"/api/v1/admin/orders/{third['id']}/recover", json={}, headers=ADMIN)
    assert resp.json()["data"]["status"] == "CANCELLED"

    _, fourth = await _paid_order(client)
    resp = await client.post(
        "/api/v1/admin/lockers/release",
        json={"device_id": fourth["device_id"], "cabinet_no": fourth["cabinet_no"], "door_no": fourth["door_no"]},
        headers=ADMIN,
    )
    assert resp.json()["data"]["status"] == "free"
    assert (await client.get(f"/api/v1/orders/{fourth['id']}")).json()["data"]["status"] == "CANCELLED"


async def test_tariff_update_applies_to_new_orders(client):
    await _provision(client)
    new_rule = {
        "free_minutes": 10,
        "first_period_minutes": 60,
        "first_period_price": 200,
        "unit_minutes": 30,
        "unit_price": 100,
        "cap_price": 1000,
        "deposit_price": 900,
    }
    resp = await client.put("/api/v1/admin/tariff", json=new_rule, headers=ADMIN)
    assert resp.status_code == 200
    assert (await client.get("/api/v1/admin/tariff", headers=ADMIN)).json()["data"] == new_rule

    _, order = await _paid_order(client)
    assert order["deposit"] == 900
    assert order["pay_amount"] == 900

    resp = await client.put("/api/v1/admin/tariff", json={**new_rule, "unit_minutes": 0}, headers=ADMIN)
    assert resp.status_code == 422


async def test_device_bridge_over_http(client):
    await _provision(client)
    assert (await client.post("/api/v1/devices/L0009/login")).status_code == 404

    resp = await client.post("/api/v1/devices/L0001/login")
    assert resp.json()["data"]["is_online"] is True
    assert (await client.post("/api/v1/devices/L0001/heartbeat")).status_code == 200

    locker, order = await _paid_order(client)
    door = {"device_id": "L0001", "cabinet_no": locker["cabinet_no"], "door_no": locker["door_no"]}
    await client.post("/api/v1/lockers/open-door", json={**door, "order_id": order["id"], "mode": "store"})

    resp = await client.post(
        "/api/v1/devices/L0001/open-by-phone",
        json={"phone": PHONE, "code": order["retrieval_code"]},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["door_sort"] == "0101"
    assert resp.json()["data"]["status"] == "COMPLETED"

    resp = await client.post("/api/v1/devices/L0001/open-by-phone", json={"phone": PHONE, "code": "000000"})
    assert resp.status_code == 404
