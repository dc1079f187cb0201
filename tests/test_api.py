import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from servicebell import crud
from servicebell.main import create_app


@pytest.fixture
def client():
    with TestClient(create_app()) as test_client:
        yield test_client


def register(client, username="owner", restaurant_name="Bistrô"):
    response = client.post(
        "/api/register",
        json={"username": username, "password": "secret123", "restaurantName": restaurant_name},
    )
    assert response.status_code == 201, response.text
    return response.json()


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner(client):
    return register(client)


@pytest.fixture
def restaurant(client, owner):
    response = client.get("/api/restaurants", headers=auth(owner["accessToken"]))
    assert response.status_code == 200
    return response.json()[0]


@pytest.fixture
def table(client, owner, restaurant):
    response = client.post(
        f"/api/restaurants/{restaurant['id']}/tables",
        json={"name": "Mesa 1", "position": {"x": 10, "y": 20, "shape": "round"}},
        headers=auth(owner["accessToken"]),
    )
    assert response.status_code == 201, response.text
    return response.json()


def table_path(table):
    return f"/api/restaurants/{table['restaurantId']}/tables/{table['id']}"


def open_session(client, table):
    response = client.post(f"{table_path(table)}/sessions")
    assert response.status_code == 200, response.text
    return response.json()["sessionId"]


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "operacional"
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["connections"] == 0


def test_register_login_logout(client):
    created = register(client)
    assert created["role"] == "owner"
    assert created["accessToken"]
    assert "hashedPassword" not in created

    duplicate = client.post("/api/register", json={"username": "owner", "password": "secret123"})
    assert duplicate.status_code == 400
    assert duplicate.json()["code"] == "conflict"

    bad = client.post("/api/login", json={"username": "owner", "password": "wrong-pass"})
    assert bad.status_code == 401

    login = client.post("/api/login", json={"username": "owner", "password": "secret123"})
    assert login.status_code == 200
    token = login.json()["accessToken"]

    assert client.get("/api/user", headers=auth(token)).json()["username"] == "owner"
    assert client.get("/api/user").json() is None
    assert client.post("/api/logout").status_code == 401
    assert client.post("/api/logout", headers=auth(token)).status_code == 200
    assert client.get("/api/user", headers=auth("garbage")).status_code == 401


def test_restaurants_are_scoped_to_owner(client, owner, restaurant):
    assert restaurant["name"] == "Bistrô"
    intruder = register(client, username="intruder", restaurant_name="Outro")

    response = client.get(f"/api/restaurants/{restaurant['id']}", headers=auth(intruder["accessToken"]))
    assert response.status_code == 404
    response = client.get(f"/api/restaurants/{restaurant['id']}/tables", headers=auth(intruder["accessToken"]))
    assert response.status_code == 404
    assert client.get("/api/restaurants").status_code == 401

    response = client.patch(
        f"/api/restaurants/{restaurant['id']}",
        json={"phone": "+55 11 5555-0000"},
        headers=auth(owner["accessToken"]),
    )
    assert response.status_code == 200
    assert response.json()["phone"] == "+55 11 5555-0000"

    created = client.post("/api/restaurants", json={"name": "Filial"}, headers=auth(owner["accessToken"]))
    assert created.status_code == 201
    assert len(client.get("/api/restaurants", headers=auth(owner["accessToken"])).json()) == 2


def test_staff_accounts(client, owner, restaurant):
    response = client.post(
        "/api/users", json={"username": "garcom", "password": "secret123"}, headers=auth(owner["accessToken"])
    )
    assert response.status_code == 201
    staff = response.json()
    assert staff["role"] == "staff"
    assert staff["restaurantId"] == restaurant["id"]

    login = client.post("/api/login", json={"username": "garcom", "password": "secret123"}).json()
    restaurants = client.get("/api/restaurants", headers=auth(login["accessToken"])).json()
    assert [item["id"] for item in restaurants] == [restaurant["id"]]
    # Equipe não gerencia usuários
    assert client.get("/api/users", headers=auth(login["accessToken"])).status_code == 403

    listed = client.get("/api/users", headers=auth(owner["accessToken"])).json()
    assert [item["username"] for item in listed] == ["garcom"]
    assert client.delete(f"/api/users/{staff['id']}", headers=auth(owner["accessToken"])).status_code == 200
    assert client.get("/api/users", headers=auth(owner["accessToken"])).json() == []


def test_table_crud_and_qrcode(client, owner, table):
    assert table["name"] == "Mesa 1"
    assert table["position"]["shape"] == "round"
    assert table["qrCode"].lstrip().startswith("<")

    headers = auth(owner["accessToken"])
    qrcode = client.get(f"{table_path(table)}/qrcode", headers=headers)
    assert qrcode.status_code == 200
    assert qrcode.headers["content-type"].startswith("image/svg+xml")

    updated = client.patch(
        table_path(table),
        json={"position": {"x": 50, "y": 60, "width": 120, "height": 80, "shape": "square"}},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["position"]["x"] == 50
    assert updated.json()["name"] == "Mesa 1"

    tables = client.get(f"/api/restaurants/{table['restaurantId']}/tables", headers=headers).json()
    assert [item["id"] for item in tables] == [table["id"]]

    assert client.delete(table_path(table), headers=headers).status_code == 200
    assert client.get(f"{table_path(table)}/verify").status_code == 404


def test_verify_and_sessions(client, table):
    verification = client.get(f"{table_path(table)}/verify").json()
    assert verification["valid"] is True
    assert verification["requiresNewSession"] is True
    assert "activeSession" not in verification

    session_id = open_session(client, table)
    verification = client.get(f"{table_path(table)}/verify").json()
    assert verification["activeSession"]["id"] == session_id
    assert 3590 < verification["activeSession"]["expiresIn"] <= 3600
    assert "requiresNewSession" not in verification

    reused = client.post(f"{table_path(table)}/sessions", json={"reuseActive": True}).json()
    assert reused["sessionId"] == session_id

    replaced = open_session(client, table)
    assert replaced != session_id
    response = client.post("/api/requests", json={"tableId": table["id"], "sessionId": session_id, "type": "waiter"})
    assert response.status_code == 403
    assert response.json()["shouldClearSession"] is True


def test_customer_request_flow(client, owner, table):
    session_id = open_session(client, table)
    created = client.post(
        "/api/requests",
        json={"tableId": table["id"], "sessionId": session_id, "type": "water", "notes": "2 waters"},
    )
    assert created.status_code == 200, created.text
    request = created.json()
    assert request["status"] == "pending"

    duplicate = client.post("/api/requests", json={"tableId": table["id"], "sessionId": session_id, "type": "water"})
    assert duplicate.status_code == 400
    assert duplicate.json()["code"] == "conflict"

    mine = client.get("/api/requests", params={"tableId": table["id"], "sessionId": session_id}).json()
    assert [item["id"] for item in mine] == [request["id"]]
    assert client.get("/api/requests", params={"restaurantId": table["restaurantId"]}).status_code == 401

    headers = auth(owner["accessToken"])
    assert client.patch(f"/api/requests/{request['id']}", json={"status": "in_progress"}, headers=headers).status_code == 200
    completed = client.patch(f"/api/requests/{request['id']}", json={"status": "completed"}, headers=headers)
    assert completed.json()["completedAt"] is not None
    backwards = client.patch(f"/api/requests/{request['id']}", json={"status": "pending"}, headers=headers)
    assert backwards.status_code == 409

    board = client.get(
        "/api/requests", params={"restaurantId": table["restaurantId"], "status": "completed"}, headers=headers
    ).json()
    assert [item["id"] for item in board] == [request["id"]]

    feedback = client.post("/api/feedback", json={"requestId": request["id"], "rating": 5, "comment": "great"})
    assert feedback.status_code == 200
    again = client.post("/api/feedback", json={"requestId": request["id"], "rating": 3})
    assert again.status_code == 400
    assert again.json()["code"] == "conflict"
    assert client.post("/api/feedback", json={"requestId": request["id"], "rating": 9}).status_code == 422

    listed = client.get("/api/feedback", params={"restaurantId": table["restaurantId"]}, headers=headers).json()
    assert [item["rating"] for item in listed] == [5]


def test_customer_cancel(client, owner, table):
    session_id = open_session(client, table)
    request = client.post(
        "/api/requests", json={"tableId": table["id"], "sessionId": session_id, "type": "check"}
    ).json()

    assert client.patch(f"/api/requests/{request['id']}", json={"status": "completed"}).status_code == 401
    not_allowed = client.patch(
        f"/api/requests/{request['id']}", json={"status": "completed", "sessionId": session_id}
    )
    assert not_allowed.status_code == 400

    cancelled = client.patch(f"/api/requests/{request['id']}", json={"status": "cleared", "sessionId": session_id})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cleared"

    advance = client.patch(
        f"/api/requests/{request['id']}", json={"status": "in_progress"}, headers=auth(owner["accessToken"])
    )
    assert advance.status_code == 409
    feedback = client.post("/api/feedback", json={"requestId": request["id"], "rating": 4})
    assert feedback.status_code == 400


def test_end_session_broadcasts_to_socket(client, owner, table):
    session_id = open_session(client, table)
    request = client.post(
        "/api/requests", json={"tableId": table["id"], "sessionId": session_id, "type": "waiter"}
    ).json()

    with client.websocket_connect(f"/ws?clientType=admin&restaurantId={table['restaurantId']}") as websocket:
        assert websocket.receive_json() == {"type": "connection_status", "status": "connected"}

        response = client.post(f"{table_path(table)}/sessions/end", json={"sessionId": session_id})
        assert response.status_code == 200
        assert response.json() == {"updatedRequestsCount": 1}

        ended = websocket.receive_json()
        assert ended["type"] == "end_session"
        assert ended["sessionId"] == session_id
        updated = websocket.receive_json()
        assert updated["type"] == "update_request"
        assert updated["request"]["id"] == request["id"]
        assert updated["request"]["status"] == "cleared"

    again = client.post(f"{table_path(table)}/sessions/end", json={"sessionId": session_id})
    assert again.json() == {"updatedRequestsCount": 0}


def test_staff_can_end_session_without_token(client, owner, table):
    open_session(client, table)
    assert client.post(f"{table_path(table)}/sessions/end").status_code == 401
    response = client.post(f"{table_path(table)}/sessions/end", headers=auth(owner["accessToken"]))
    assert response.status_code == 200
    assert client.get(f"{table_path(table)}/verify").json()["requiresNewSession"] is True


def test_socket_sync_and_bad_client_type(client):
    with client.websocket_connect("/ws?clientType=customer&sessionId=ABC") as websocket:
        websocket.receive_json()
        websocket.send_text("not json")
        websocket.send_json({"type": "ping"})
        websocket.send_json({"type": "sync"})
        assert websocket.receive_json() == {"type": "connection_status", "status": "sync"}
        assert client.get("/health").json()["connections"] == 1

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?clientType=robot") as websocket:
            websocket.receive_json()


def test_session_history_for_staff(client, owner, table):
    first = open_session(client, table)
    second = open_session(client, table)
    assert client.get(f"{table_path(table)}/sessions").status_code == 401

    history = client.get(f"{table_path(table)}/sessions", headers=auth(owner["accessToken"])).json()
    assert [item["sessionId"] for item in history] == [first, second]
    assert history[0]["endReason"] == "replaced"
    assert history[1]["endedAt"] is None


def test_simultaneous_registration_is_a_conflict(client, owner, monkeypatch):
    async def not_found(*args, **kwargs):
        return None

    # O outro cadastro gravou entre a checagem e o insert
    monkeypatch.setattr(crud.user, "get_by_username", not_found)
    response = client.post("/api/register", json={"username": "owner", "password": "secret123"})
    assert response.status_code == 400
    assert response.json()["code"] == "conflict"

    staff = client.post(
        "/api/users", json={"username": "owner", "password": "secret123"}, headers=auth(owner["accessToken"])
    )
    assert staff.status_code == 400
    assert staff.json()["code"] == "conflict"
