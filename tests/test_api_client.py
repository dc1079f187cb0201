import httpx
import pytest

from servicebell.client.api_client import ApiError, ApiUnavailableError, ServiceBellClient, SessionInvalidError
from servicebell.main import create_app


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=create_app())
    async with ServiceBellClient("http://bell.test", transport=transport) as api:
        yield api


@pytest.fixture
async def staff_table(client):
    await client._request(
        "POST", "/register", json={"username": "owner", "password": "secret123", "restaurantName": "Bistrô"}
    )
    await client.login("owner", "secret123")
    restaurant = (await client._request("GET", "/restaurants"))[0]
    table = await client._request("POST", f"/restaurants/{restaurant['id']}/tables", json={"name": "Mesa 1"})
    return table


async def test_customer_round_trip(client, staff_table):
    restaurant_id, table_id = staff_table["restaurantId"], staff_table["id"]

    session_id = await client.ensure_session(restaurant_id, table_id)
    assert await client.ensure_session(restaurant_id, table_id) == session_id

    request = await client.create_request(table_id, session_id, "water", "2 waters")
    assert request["status"] == "pending"

    listed = await client.list_requests(table_id=table_id, session_id=session_id)
    assert [item["id"] for item in listed] == [request["id"]]

    await client.update_request_status(request["id"], "completed")
    feedback = await client.submit_feedback(request["id"], 5, "great")
    assert feedback["rating"] == 5
    assert [item["rating"] for item in await client.list_feedback(restaurant_id)] == [5]

    other = await client.create_request(table_id, session_id, "check")
    cancelled = await client.cancel_request(other["id"], session_id)
    assert cancelled["status"] == "cleared"

    assert await client.end_session(restaurant_id, table_id, session_id) == 0
    verification = await client.verify_table(restaurant_id, table_id)
    assert verification["requiresNewSession"] is True


async def test_errors_are_typed(client, staff_table):
    restaurant_id, table_id = staff_table["restaurantId"], staff_table["id"]

    with pytest.raises(SessionInvalidError) as excinfo:
        await client.create_request(table_id, "UNKNOWN", "waiter")
    assert excinfo.value.status_code == 403

    with pytest.raises(ApiError) as excinfo:
        await client.verify_table(restaurant_id, table_id + 100)
    assert excinfo.value.status_code == 404
    assert not isinstance(excinfo.value, SessionInvalidError)

    session_id = await client.ensure_session(restaurant_id, table_id)
    await client.create_request(table_id, session_id, "waiter")
    with pytest.raises(ApiError) as excinfo:
        await client.create_request(table_id, session_id, "waiter")
    assert excinfo.value.status_code == 400
    assert excinfo.value.body["code"] == "conflict"


async def test_staff_helpers(client, staff_table):
    restaurant_id = staff_table["restaurantId"]
    tables = await client.list_tables(restaurant_id)
    assert [table["name"] for table in tables] == ["Mesa 1"]

    session_id = await client.ensure_session(restaurant_id, staff_table["id"])
    await client.create_request(staff_table["id"], session_id, "check")
    board = await client.list_requests(restaurant_id=restaurant_id, status=["pending"])
    assert len(board) == 1
    assert await client.end_session(restaurant_id, staff_table["id"]) == 1

    await client.logout()
    assert client.token is None
    with pytest.raises(ApiError) as excinfo:
        await client.list_tables(restaurant_id)
    assert excinfo.value.status_code == 401


async def test_transport_failures_become_api_errors():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with ServiceBellClient("http://bell.test", transport=httpx.MockTransport(refuse)) as api:
        with pytest.raises(ApiUnavailableError) as excinfo:
            await api.verify_table(1, 1)
    assert excinfo.value.status_code == 0
    assert isinstance(excinfo.value, ApiError)
