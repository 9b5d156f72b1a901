"""
Tests for user profile routes and role checks.
"""


async def test_admin_lists_users(client, admin, member):
    response = await client.get("/api/users", headers=admin["headers"])
    assert response.status_code == 200
    emails = {u["email"] for u in response.json()}
    assert emails == {"admin@example.com", "member@example.com"}


async def test_member_cannot_list_users(client, member):
    response = await client.get("/api/users", headers=member["headers"])
    assert response.status_code == 403
    assert response.json() == {"error": "Admin access required"}


async def test_get_self_or_as_admin(client, admin, member):
    member_id = member["user"]["id"]

    own = await client.get(f"/api/users/{member_id}", headers=member["headers"])
    assert own.status_code == 200
    assert own.json()["email"] == "member@example.com"

    as_admin = await client.get(f"/api/users/{member_id}", headers=admin["headers"])
    assert as_admin.status_code == 200

    other = await client.get(f"/api/users/{admin['user']['id']}", headers=member["headers"])
    assert other.status_code == 403
    assert other.json() == {"error": "Access denied"}

    missing = await client.get("/api/users/nobody", headers=admin["headers"])
    assert missing.status_code == 404
    assert missing.json() == {"error": "User not found"}


async def test_admin_creates_user(client, admin):
    response = await client.post(
        "/api/users",
        headers=admin["headers"],
        json={"email": "ops@example.com", "password": "password123", "name": "Ops", "role": "admin"},
    )
    assert response.status_code == 201
    assert response.json()["role"] == "admin"

    login = await client.post(
        "/api/auth/login", json={"email": "ops@example.com", "password": "password123"}
    )
    assert login.status_code == 200

    duplicate = await client.post(
        "/api/users",
        headers=admin["headers"],
        json={"email": "ops@example.com", "password": "password123"},
    )
    assert duplicate.status_code == 400

    bad_role = await client.post(
        "/api/users",
        headers=admin["headers"],
        json={"email": "x@example.com", "password": "password123", "role": "root"},
    )
    assert bad_role.status_code == 400


async def test_member_cannot_create_users(client, member):
    response = await client.post(
        "/api/users",
        headers=member["headers"],
        json={"email": "sneaky@example.com", "password": "password123"},
    )
    assert response.status_code == 403


async def test_member_updates_profile_but_not_role(client, member):
    member_id = member["user"]["id"]
    response = await client.put(
        f"/api/users/{member_id}",
        headers=member["headers"],
        json={"name": "Renamed", "avatar_url": "https://img/x.png", "role": "admin"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Renamed"
    assert body["avatar_url"] == "https://img/x.png"
    assert body["role"] == "user"


async def test_partial_update_keeps_other_fields(client, member):
    member_id = member["user"]["id"]
    await client.put(f"/api/users/{member_id}", headers=member["headers"],
                     json={"avatar_url": "https://img/a.png"})
    response = await client.put(f"/api/users/{member_id}", headers=member["headers"],
                                json={"name": "Only name"})
    assert response.json()["avatar_url"] == "https://img/a.png"
    assert response.json()["name"] == "Only name"


async def test_admin_promotes_member(client, admin, member):
    response = await client.put(
        f"/api/users/{member['user']['id']}", headers=admin["headers"], json={"role": "admin"}
    )
    assert response.status_code == 200
    assert response.json()["role"] == "admin"


async def test_delete_user(client, admin, member):
    member_id = member["user"]["id"]

    forbidden = await client.delete(f"/api/users/{admin['user']['id']}", headers=member["headers"])
    assert forbidden.status_code == 403

    response = await client.delete(f"/api/users/{member_id}", headers=admin["headers"])
    assert response.status_code == 204

    missing = await client.delete(f"/api/users/{member_id}", headers=admin["headers"])
    assert missing.status_code == 404


async def test_users_listed_newest_first(client, admin, member):
    await client.post(
        "/api/users",
        headers=admin["headers"],
        json={"email": "third@example.com", "password": "password123"},
    )
    response = await client.get("/api/users", headers=admin["headers"])
    assert [u["email"] for u in response.json()] == [
        "third@example.com",
        "member@example.com",
        "admin@example.com",
    ]


async def test_profile_update_bumps_updated_at(client, member):
    member_id = member["user"]["id"]
    before = (await client.get(f"/api/users/{member_id}", headers=member["headers"])).json()
    after = (await client.put(f"/api/users/{member_id}", headers=member["headers"],
                              json={"name": "Changed"})).json()
    assert after["updated_at"] > before["updated_at"]
