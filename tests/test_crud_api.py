from __future__ import annotations

from sqlalchemy import select

from estatehub.config import settings
from estatehub.models import RefreshToken

from conftest import PASSWORD


# -------------------- companies --------------------

def test_companies_are_super_admin_only(client, world, auth_headers):
    r = client.post("/api/companies", json={"name": "Company C"}, headers=auth_headers("root"))
    assert r.status_code == 201
    assert r.json()["name"] == "Company C"

    assert client.post("/api/companies", json={"name": "Nope Co"}, headers=auth_headers("admin_a")).status_code == 403
    assert client.get("/api/companies", headers=auth_headers("admin_a")).status_code == 403
    assert client.get("/api/companies", headers=auth_headers("agent_a")).status_code == 403

    listed = client.get("/api/companies", headers=auth_headers("root")).json()
    assert listed["meta"]["total"] == 3


def test_company_admin_can_read_only_own_company(client, world, auth_headers):
    own = client.get(f"/api/companies/{world.company_a}", headers=auth_headers("admin_a"))
    assert own.status_code == 200
    body = own.json()
    assert {u["username"] for u in body["users"]} == {"admin_a", "agent_a"}
    assert [p["id"] for p in body["projects"]] == [world.project_a]

    other = client.get(f"/api/companies/{world.company_b}", headers=auth_headers("admin_a"))
    assert other.status_code == 403


# -------------------- projects --------------------

def test_company_admin_creates_project_in_own_company(client, world, auth_headers):
    r = client.post(
        "/api/projects",
        json={"name": "Sunrise", "location": "East", "companyId": world.company_b},
        headers=auth_headers("admin_a"),
    )
    assert r.status_code == 201
    assert r.json()["companyId"] == world.company_a


def test_super_admin_must_name_the_company(client, world, auth_headers):
    r = client.post("/api/projects", json={"name": "Sunrise", "location": "East"}, headers=auth_headers("root"))
    assert r.status_code == 400

    r2 = client.post(
        "/api/projects",
        json={"name": "Sunrise", "location": "East", "companyId": world.company_b},
        headers=auth_headers("root"),
    )
    assert r2.status_code == 201
    assert r2.json()["companyId"] == world.company_b


def test_projects_are_scoped_and_admin_only(client, world, auth_headers):
    assert client.get("/api/projects", headers=auth_headers("agent_a")).status_code == 403
    assert client.get(f"/api/projects/{world.project_b}", headers=auth_headers("admin_a")).status_code == 404

    listed = client.get("/api/projects", headers=auth_headers("admin_a")).json()
    assert [p["id"] for p in listed["data"]] == [world.project_a]


# -------------------- plots --------------------

def test_plot_create_requires_project_in_scope(client, world, auth_headers):
    payload = {"projectId": world.project_b, "plotNumber": "X-1", "area": 100, "price": 1000}
    assert client.post("/api/plots", json=payload, headers=auth_headers("admin_a")).status_code == 404
    assert client.post("/api/plots", json=payload, headers=auth_headers("agent_b")).status_code == 403

    payload["projectId"] = world.project_a
    r = client.post("/api/plots", json=payload, headers=auth_headers("admin_a"))
    assert r.status_code == 201
    assert r.json()["status"] == "AVAILABLE"


def test_plot_update_cannot_touch_status(client, world, auth_headers):
    bad = client.put(f"/api/plots/{world.plot_a}", json={"status": "SOLD"}, headers=auth_headers("admin_a"))
    assert bad.status_code == 400

    ok = client.put(f"/api/plots/{world.plot_a}", json={"price": 75000}, headers=auth_headers("admin_a"))
    assert ok.status_code == 200
    assert ok.json()["price"] == 75000
    assert ok.json()["status"] == "AVAILABLE"


def test_sold_plot_cannot_be_deleted(client, world, auth_headers):
    agent = auth_headers("agent_a")
    client.post("/api/bookings", json={"plotId": world.plot_a, "clientName": "Jane Client", "amount": 10}, headers=agent)
    client.post("/api/sales", json={"plotId": world.plot_a, "amount": 50000}, headers=agent)

    r = client.delete(f"/api/plots/{world.plot_a}", headers=auth_headers("admin_a"))
    assert r.status_code == 409

    r2 = client.delete(f"/api/plots/{world.plot_a2}", headers=auth_headers("admin_a"))
    assert r2.status_code == 200
    assert client.get(f"/api/plots/{world.plot_a2}", headers=agent).status_code == 404


def test_booked_plot_cannot_be_deleted(client, world, auth_headers):
    agent = auth_headers("agent_a")
    booking = client.post(
        "/api/bookings", json={"plotId": world.plot_a, "clientName": "Jane Client", "amount": 10}, headers=agent
    ).json()

    r = client.delete(f"/api/plots/{world.plot_a}", headers=auth_headers("admin_a"))
    assert r.status_code == 409
    assert r.json()["kind"] == "invalid_state"
    assert client.get(f"/api/plots/{world.plot_a}", headers=agent).json()["status"] == "BOOKED"

    assert client.patch(f"/api/bookings/{booking['id']}/cancel", headers=agent).status_code == 200
    assert client.delete(f"/api/plots/{world.plot_a}", headers=auth_headers("admin_a")).status_code == 200


def test_page_limit_is_clamped(client, world, auth_headers):
    admin = auth_headers("admin_a")

    zero = client.get("/api/plots", params={"limit": 0}, headers=admin).json()
    assert zero["meta"]["limit"] == 1
    assert len(zero["data"]) == 1
    assert zero["meta"]["totalPages"] == 2

    huge = client.get("/api/plots", params={"limit": 10_000, "page": 0}, headers=admin).json()
    assert huge["meta"]["limit"] == settings.page_size_max
    assert huge["meta"]["page"] == 1


# -------------------- sales --------------------

def test_sales_list_update_delete(client, world, auth_headers):
    agent = auth_headers("agent_a")
    admin = auth_headers("admin_a")
    client.post("/api/bookings", json={"plotId": world.plot_a, "clientName": "Jane Client", "amount": 10}, headers=agent)
    sale = client.post("/api/sales", json={"plotId": world.plot_a, "amount": 50000}, headers=agent).json()

    assert client.get("/api/sales", headers=agent).status_code == 403
    assert client.get("/api/sales", headers=admin).json()["meta"]["total"] == 1
    assert client.get("/api/sales", headers=auth_headers("admin_a"), params={"from": "2999-01-01T00:00:00"}).json()["meta"]["total"] == 0

    upd = client.put(f"/api/sales/{sale['id']}", json={"amount": 52000}, headers=admin)
    assert upd.status_code == 200
    assert upd.json()["amount"] == 52000

    assert client.delete(f"/api/sales/{sale['id']}", headers=admin).status_code == 200
    assert client.get(f"/api/sales/{sale['id']}", headers=admin).status_code == 404
    assert client.get(f"/api/plots/{world.plot_a}", headers=agent).json()["status"] == "SOLD"


# -------------------- users --------------------

def test_company_admin_may_only_create_agents(client, world, auth_headers):
    admin = auth_headers("admin_a")

    bad = client.post(
        "/api/users",
        json={"username": "boss2", "password": PASSWORD, "role": "COMPANY_ADMIN"},
        headers=admin,
    )
    assert bad.status_code == 403

    ok = client.post(
        "/api/users",
        json={"username": "agent_a2", "password": PASSWORD, "role": "AGENT", "companyId": world.company_b},
        headers=admin,
    )
    assert ok.status_code == 201
    assert ok.json()["companyId"] == world.company_a

    dup = client.post("/api/users", json={"username": "agent_a2", "password": PASSWORD, "role": "AGENT"}, headers=admin)
    assert dup.status_code == 409
    assert dup.json()["kind"] == "conflict"


def test_super_admin_creates_company_users(client, world, auth_headers):
    root = auth_headers("root")

    missing = client.post("/api/users", json={"username": "cadmin", "password": PASSWORD, "role": "COMPANY_ADMIN"}, headers=root)
    assert missing.status_code == 400

    ok = client.post(
        "/api/users",
        json={"username": "cadmin", "password": PASSWORD, "role": "COMPANY_ADMIN", "companyId": world.company_b},
        headers=root,
    )
    assert ok.status_code == 201

    login = client.post("/api/auth/login", json={"username": "cadmin", "password": PASSWORD})
    assert login.status_code == 200
    assert login.json()["user"]["companyId"] == world.company_b


def test_company_admin_cannot_promote(client, world, auth_headers):
    r = client.put(f"/api/users/{world.agent_a}", json={"role": "COMPANY_ADMIN"}, headers=auth_headers("admin_a"))
    assert r.status_code == 403


def test_password_update_is_rehashed(client, world, auth_headers):
    r = client.put(f"/api/users/{world.agent_a}", json={"password": "brand-new-pass"}, headers=auth_headers("admin_a"))
    assert r.status_code == 200
    assert "passwordHash" not in r.json()

    assert client.post("/api/auth/login", json={"username": "agent_a", "password": PASSWORD}).status_code == 401
    assert client.post("/api/auth/login", json={"username": "agent_a", "password": "brand-new-pass"}).status_code == 200


def test_users_are_scoped(client, world, auth_headers):
    listed = client.get("/api/users", headers=auth_headers("admin_a")).json()
    assert {u["username"] for u in listed["data"]} == {"admin_a", "agent_a"}
    assert client.get(f"/api/users/{world.agent_b}", headers=auth_headers("admin_a")).status_code == 404


def test_deleting_a_user_revokes_its_sessions(client, world, auth_headers, session_factory):
    auth_headers("agent_a")

    assert client.delete(f"/api/users/{world.admin_a}", headers=auth_headers("admin_a")).status_code == 400

    r = client.delete(f"/api/users/{world.agent_a}", headers=auth_headers("admin_a"))
    assert r.status_code == 200

    s = session_factory()
    try:
        rows = s.scalars(select(RefreshToken).where(RefreshToken.user_id == world.agent_a)).all()
    finally:
        s.close()
    assert rows
    assert all(not t.is_active and t.revoked_reason == "user_disabled" for t in rows)

    assert client.post("/api/auth/login", json={"username": "agent_a", "password": PASSWORD}).status_code == 401


# -------------------- dashboard --------------------

def test_dashboard_summary_is_scoped(client, world, auth_headers):
    agent = auth_headers("agent_a")
    client.post("/api/bookings", json={"plotId": world.plot_a, "clientName": "Jane Client", "amount": 10}, headers=agent)
    client.post("/api/sales", json={"plotId": world.plot_a, "amount": 50000}, headers=agent)

    mine = client.get("/api/dashboard/summary", headers=auth_headers("admin_a")).json()
    assert mine == {
        "totalCompanies": 0,
        "totalProjects": 1,
        "totalPlots": 2,
        "availablePlots": 1,
        "bookedPlots": 0,
        "soldPlots": 1,
        "totalSalesCount": 1,
        "totalRevenue": 50000.0,
    }

    everything = client.get("/api/dashboard/summary", headers=auth_headers("root")).json()
    assert everything["totalCompanies"] == 2
    assert everything["totalPlots"] == 3

    assert client.get("/api/dashboard/summary", headers=agent).status_code == 403
