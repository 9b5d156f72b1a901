"""
Tests for the navigation menu and health routes.
"""


async def test_menu_counts_workflows(client):
    for name in ("One", "Two"):
        await client.post("/api/workflows", json={"name": name, "nodes": []})

    response = await client.get("/api/menu")
    assert response.status_code == 200
    assert response.json() == {
        "items": [
            {"label": "Home", "href": "/"},
            {
                "label": "Workflows (2)",
                "href": "/workflows",
                "children": [{"label": "Active", "href": "/active"}],
            },
            {"label": "Settings", "href": "/settings"},
        ]
    }


async def test_menu_with_no_workflows(client):
    response = await client.get("/api/menu")
    assert response.json()["items"][1]["label"] == "Workflows (0)"


async def test_health_and_security_headers(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["queue_backend"] == "memory"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "SAMEORIGIN"


async def test_unknown_route_uses_error_body(client):
    response = await client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}
