import pytest
from fastapi.testclient import TestClient

from config import settings
from web import api


@pytest.fixture()
def client(local_store, fake_supabase):
    api.app.dependency_overrides[api.get_local_store] = lambda: local_store
    api.app.dependency_overrides[api.get_supabase] = lambda: fake_supabase
    with TestClient(api.app) as test_client:
        yield test_client
    api.app.dependency_overrides.clear()


AUTH = {"Authorization": "Bearer valid-token"}


def create_table(client, rows=3, columns=2, name="Expenses", headers=None):
    response = client.post(
        "/api/budget/tables",
        json={"rows": rows, "columns": columns, "name": name},
        headers=headers or {},
    )
    assert response.status_code == 200
    return response.json()


def test_guest_gets_cookie_and_stable_identity(client):
    first = client.get("/api/auth/me")
    assert first.status_code == 200
    assert first.json()["guest"] is True
    assert settings.GUEST_COOKIE_NAME in first.cookies

    second = client.get("/api/auth/me")
    assert second.json()["id"] == first.json()["id"]


def test_authenticated_identity(client):
    response = client.get("/api/auth/me", headers=AUTH)
    assert response.json() == {"id": "user-1", "email": "ana@example.com", "guest": False}


def test_guest_tasks_round_trip(client):
    response = client.post("/api/tasks", json={"items": [{"title": "Buy milk"}]})
    assert response.json() == {"success": True}
    tasks = client.get("/api/tasks").json()["tasks"]
    assert [task["title"] for task in tasks] == ["Buy milk"]


def test_invalid_task_payload_is_rejected(client):
    response = client.post("/api/cards", json={"items": [{"description": "untitled"}]})
    assert response.status_code == 400


def test_update_and_delete_require_authentication(client):
    assert client.put("/api/tasks", json={"id": "1", "title": "x"}).status_code == 401
    assert client.delete("/api/cards?id=1").status_code == 401


def test_authenticated_card_update_and_delete(client, fake_supabase):
    client.post("/api/cards", json={"items": [{"id": "c1", "title": "Design"}]}, headers=AUTH)
    assert fake_supabase.tables["cards"][0]["title"] == "Design"

    response = client.put("/api/cards", json={"id": "c1", "title": "Ship", "dueDate": "2026-11-01"}, headers=AUTH)
    assert response.status_code == 200
    assert response.json()["item"]["title"] == "Ship"
    assert response.json()["item"]["due_date"] == "2026-11-01"

    assert client.delete("/api/cards", headers=AUTH).status_code == 400
    assert client.delete("/api/cards?id=c1", headers=AUTH).json() == {"success": True}
    assert client.get("/api/cards", headers=AUTH).json() == {"cards": []}


def test_budget_sum_scenario(client):
    table = create_table(client, rows=3, columns=3)
    rows = [row["id"] for row in table["rows"]]
    url = f"/api/budget/tables/{table['id']}/cells"

    client.put(url, json={"row_id": rows[0], "column": 0, "value": "10"})
    client.put(url, json={"row_id": rows[1], "column": 0, "value": "20"})
    response = client.put(url, json={"row_id": rows[2], "column": 0, "value": "=SUM(A1:A2)"})
    assert response.json()["table"]["rows"][2]["cells"]["Column 1"]["value"] == "30"
    assert response.json()["recalc"]["converged"] is True

    client.put(url, json={"row_id": rows[0], "column": 0, "value": "15"})
    budget = client.get("/api/budget").json()
    assert budget["tables"][0]["rows"][2]["cells"]["Column 1"]["value"] == "35"
    assert budget["activeTableId"] == table["id"]


def test_unknown_table_and_cell(client):
    assert client.put("/api/budget/tables/nope/cells", json={"row_id": "r", "column": 0}).status_code == 404
    table = create_table(client)
    response = client.put(f"/api/budget/tables/{table['id']}/cells", json={"row_id": "r", "column": 0})
    assert response.status_code == 404


def test_invalid_table_size(client):
    response = client.post("/api/budget/tables", json={"rows": 0, "columns": 2})
    assert response.status_code == 400


def test_row_and_column_routes(client):
    table = create_table(client, rows=1, columns=2)
    base = f"/api/budget/tables/{table['id']}"

    row = client.post(f"{base}/rows").json()
    assert len(client.get("/api/budget").json()["tables"][0]["rows"]) == 2
    assert client.delete(f"{base}/rows/{row['id']}").status_code == 200
    assert client.delete(f"{base}/rows/{row['id']}").status_code == 404

    assert client.post(f"{base}/columns", json={"name": "Amount"}).json()["headers"] == [
        "Column 1", "Column 2", "Amount",
    ]
    assert client.post(f"{base}/columns", json={"name": "Amount"}).status_code == 400
    assert client.put(f"{base}/columns/0", json={"name": "Item"}).json()["headers"][0] == "Item"
    assert client.delete(f"{base}/columns/1").json()["headers"] == ["Item", "Amount"]
    assert client.delete(f"{base}/columns/9").status_code == 404


def test_table_rename_activate_delete(client):
    first = create_table(client, name="First")
    create_table(client, name="Second")
    assert client.put(f"/api/budget/tables/{first['id']}", json={"name": "Renamed"}).json()["name"] == "Renamed"
    assert client.put(f"/api/budget/tables/{first['id']}/active").json()["activeTableId"] == first["id"]
    remaining = client.delete(f"/api/budget/tables/{first['id']}").json()
    assert [table["name"] for table in remaining["tables"]] == ["Second"]


def test_category_routes(client):
    table = create_table(client)
    base = f"/api/budget/tables/{table['id']}/categories"

    category = client.post(base, json={"name": "Food", "limit": 500, "threshold": 80}).json()
    assert client.post(base, json={"name": "", "limit": 10}).status_code == 400

    client.put(f"{base}/{category['id']}", json={"spent": 450})
    status = client.get(base).json()["statuses"][0]
    assert status["percentage"] == pytest.approx(90)
    assert status["is_near_limit"] is True

    client.put(f"{base}/{category['id']}", json={"spent": 600})
    assert client.get(base).json()["statuses"][0]["is_over_budget"] is True

    assert client.delete(f"{base}/{category['id']}").json() == {"success": True}
    assert client.delete(f"{base}/{category['id']}").status_code == 404


def test_preview_does_not_store(client):
    table = create_table(client, rows=1, columns=1)
    client.put(
        f"/api/budget/tables/{table['id']}/cells",
        json={"row_id": table["rows"][0]["id"], "column": 0, "value": "6"},
    )
    response = client.post("/api/budget/preview", json={"table_id": table["id"], "formula": "=A1*7"})
    assert response.json() == {"value": "42"}
    assert client.get("/api/budget").json()["tables"][0]["rows"][0]["cells"]["Column 1"]["value"] == "6"


def test_migrate_route(client, fake_supabase):
    create_table(client, name="Guest table")
    assert client.post("/api/migrate").status_code == 401

    response = client.post("/api/migrate", headers=AUTH)
    assert response.status_code == 200
    assert response.json()["performed"] is True
    assert response.json()["migrated"] == ["budget-data"]
    assert len(fake_supabase.tables["budget_tables"]) == 1
    assert client.get("/api/budget").json()["tables"] == []

    again = client.post("/api/migrate", headers=AUTH).json()
    assert again["performed"] is False


def test_save_failure_returns_500(client, fake_supabase):
    fake_supabase.failing_tables.add("budget_tables")
    response = client.post("/api/budget/tables", json={"rows": 1, "columns": 1}, headers=AUTH)
    assert response.status_code == 500


def test_first_authenticated_request_migrates_guest_data(client, fake_supabase):
    create_table(client, name="Guest table")

    create_table(client, rows=1, columns=1, name="New", headers=AUTH)
    names = [table["name"] for table in client.get("/api/budget", headers=AUTH).json()["tables"]]
    assert names == ["Guest table", "New"]
    assert client.get("/api/budget").json()["tables"] == []

    assert client.post("/api/migrate", headers=AUTH).json()["performed"] is False
