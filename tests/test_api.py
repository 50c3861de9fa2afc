BOOKING = {"date": "2025-06-01", "time": "18:00", "tableNumber": 3, "phone_number": "555-0100"}


async def create(client, **overrides):
    payload = {**BOOKING, **overrides}
    return await client.post("/api/booking", json=payload)


async def test_api_create_without_session_uses_api_owner(client):
    response = await create(client)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Booking created"
    assert body["booking"]["tableNumber"] == 3
    assert body["booking"]["time"] == "18:00"
    assert body["booking"]["date"] == "2025-06-01"
    assert body["booking"]["userid"] == "API_USER"


async def test_api_double_booking_returns_conflict(client):
    await create(client)

    response = await create(client, phone_number="555-0199")

    assert response.status_code == 409
    assert response.json() == {"error": "Table 3 is already booked at 18:00 on 2025-06-01."}


async def test_api_availability(client):
    await create(client)

    response = await client.get("/availability", params={"date": "2025-06-01", "time": "18:00"})

    assert response.status_code == 200
    assert response.json()["available_tables"] == [1, 2, 4, 5, 6, 7, 8, 9, 10]


async def test_availability_rejects_unknown_time(client):
    response = await client.get("/availability", params={"date": "2025-06-01", "time": "03:00"})

    assert response.status_code == 400
    assert "time must be one of" in response.json()["error"]


async def test_api_read_booking(client):
    booking_id = (await create(client)).json()["booking"]["id"]

    response = await client.get(f"/api/booking/{booking_id}")

    assert response.status_code == 200
    assert response.json()["id"] == booking_id
    assert response.json()["phone_number"] == "555-0100"


async def test_api_read_missing_booking(client):
    response = await client.get("/api/booking/999")

    assert response.status_code == 404
    assert response.json() == {"error": "Booking 999 not found"}


async def test_api_update_same_slot_new_phone(client):
    booking_id = (await create(client)).json()["booking"]["id"]

    response = await client.put(f"/api/booking/{booking_id}", json={**BOOKING, "phone_number": "555-0222"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["booking"]["phone_number"] == "555-0222"


async def test_api_update_onto_other_booking_conflicts(client):
    first = (await create(client)).json()["booking"]["id"]
    await create(client, tableNumber=4)

    response = await client.put(f"/api/booking/{first}", json={**BOOKING, "tableNumber": 4})

    assert response.status_code == 409
    assert (await client.get(f"/api/booking/{first}")).json()["tableNumber"] == 3


async def test_api_update_missing_booking(client):
    response = await client.put("/api/booking/999", json=BOOKING)

    assert response.status_code == 404


async def test_api_delete(client):
    booking_id = (await create(client)).json()["booking"]["id"]

    response = await client.delete(f"/api/booking/{booking_id}")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": f"Booking with ID {booking_id} deleted successfully"}
    assert (await client.delete(f"/api/booking/{booking_id}")).status_code == 404


async def test_api_missing_fields(client):
    response = await client.post("/api/booking", json={"date": "2025-06-01", "time": "18:00"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert "tableNumber" in error
    assert "phone_number" in error


async def test_api_table_out_of_range(client):
    response = await create(client, tableNumber=11)

    assert response.status_code == 400


async def test_api_bad_date(client):
    response = await create(client, date="June first")

    assert response.status_code == 400
    assert "date" in response.json()["error"]


async def test_time_slots(client):
    response = await client.get("/time-slots")

    assert response.status_code == 200
    assert "18:00" in response.json()["time_slots"]
    assert response.json()["tables"] == list(range(1, 11))


async def test_unknown_path(client):
    response = await client.get("/nowhere")

    assert response.status_code == 404
    assert response.json() == {"error": "/nowhere - Unknown request!"}


def test_default_port(monkeypatch):
    import importlib
    import config

    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.setattr("dotenv.load_dotenv", lambda *args, **kwargs: False)
    try:
        assert importlib.reload(config).PORT == 8099
        monkeypatch.setenv("PORT", "9100")
        assert importlib.reload(config).PORT == 9100
    finally:
        monkeypatch.delenv("PORT", raising=False)
        importlib.reload(config)
