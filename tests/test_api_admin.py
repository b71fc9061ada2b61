from conftest import TASK, auth_headers


def test_admin_routes_require_admin(client):
    for path in ("/api/admin/stats", "/api/admin/users", "/api/admin/shops", "/api/admin/orders"):
        assert client.get(path).status_code == 401
        r = client.get(path, headers=auth_headers("plain"))
        assert r.status_code == 403
        assert r.json()["code"] == "forbidden"


def test_stats(client, shop, make_admin):
    admin = make_admin()
    client.post("/api/tasks", json=TASK, headers=auth_headers("owner"))
    client.post("/api/orders", json={"shopId": shop["id"], "productId": shop["product"]["id"]}, headers=auth_headers("cust"))
    client.patch(f"/api/admin/shops/{shop['id']}/status", json={"status": "suspended"}, headers=admin)

    r = client.get("/api/admin/stats", headers=admin)
    assert r.status_code == 200
    assert r.json() == {
        "totalUsers": 3,
        "totalShops": 1,
        "activeShops": 0,
        "totalOrders": 1,
        "totalTasks": 1,
    }


def test_listings(client, shop, make_admin):
    admin = make_admin()
    client.post("/api/orders", json={"shopId": shop["id"], "productId": shop["product"]["id"]}, headers=auth_headers("cust"))
    users = client.get("/api/admin/users", headers=admin).json()
    assert {u["id"] for u in users} == {"owner", "admin-1", "cust"}
    assert len(client.get("/api/admin/shops", headers=admin).json()) == 1
    assert len(client.get("/api/admin/orders", headers=admin).json()) == 1


def test_role_change_requires_admin(client, make_admin):
    client.get("/api/auth/user", headers=auth_headers("regular"))

    r = client.patch("/api/admin/users/regular/role", json={"role": "shop_owner"}, headers=auth_headers("regular"))
    assert r.status_code == 403

    admin = make_admin()
    r = client.patch("/api/admin/users/regular/role", json={"role": "shop_owner"}, headers=admin)
    assert r.status_code == 200
    assert r.json()["role"] == "shop_owner"

    assert client.patch("/api/admin/users/ghost/role", json={"role": "admin"}, headers=admin).status_code == 404
    assert client.patch("/api/admin/users/regular/role", json={"role": "superuser"}, headers=admin).status_code == 400


def test_promoted_admin_gains_access(client, make_admin):
    client.get("/api/auth/user", headers=auth_headers("regular"))
    client.patch("/api/admin/users/regular/role", json={"role": "admin"}, headers=make_admin())
    assert client.get("/api/admin/stats", headers=auth_headers("regular")).status_code == 200


def test_missing_shop_status(client, make_admin):
    r = client.patch("/api/admin/shops/42/status", json={"status": "suspended"}, headers=make_admin())
    assert r.status_code == 404


def test_owner_dashboard(client, shop):
    owner = auth_headers("owner")
    for _ in range(6):
        client.post("/api/orders", json={"shopId": shop["id"], "productId": shop["product"]["id"]}, headers=auth_headers("cust"))

    r = client.get("/api/shop-owner/dashboard", headers=owner)
    assert r.status_code == 200
    [summary] = r.json()
    assert summary["shop"]["id"] == shop["id"]
    assert summary["productsCount"] == 1
    assert summary["ordersCount"] == 6
    recent = [o["id"] for o in summary["recentOrders"]]
    assert len(recent) == 5
    assert recent == sorted(recent, reverse=True)

    assert client.get("/api/shop-owner/dashboard", headers=auth_headers("cust")).json() == []
