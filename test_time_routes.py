from conftest import PHU_MY_HUNG, THAO_DIEN


def _body(employee_id="EMP-1", point=THAO_DIEN, **extra):
    return {
        "employee_id": employee_id,
        "latitude": point[0],
        "longitude": point[1],
        **extra,
    }


def test_clock_in_then_out(client, facilities, login):
    login("teacher", "EMP-1")

    response = client.post("/time/clock", json=_body(type="clock_in"))
    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    assert payload["data"]["status"] == "active"
    assert payload["data"]["total_hours"] is None
    assert payload["data"]["clock_in_time"].endswith("Z")

    response = client.post("/time/clock", json=_body(type="clock_out"))
    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["status"] == "completed"
    assert payload["data"]["total_hours"] == 0.0


def test_duplicate_clock_in_is_conflict(client, facilities, login):
    login("teacher", "EMP-1")
    assert client.post("/time/clock-in", json=_body()).status_code == 201

    response = client.post("/time/clock-in", json=_body())
    assert response.status_code == 409
    assert response.json()["success"] is False


def test_clock_out_without_open_record(client, facilities, login):
    login("teacher", "EMP-1")
    response = client.post("/time/clock-out", json=_body())
    assert response.status_code == 404


def test_missing_location(client, facilities, login):
    login("teacher", "EMP-1")
    response = client.post("/time/clock", json={"employee_id": "EMP-1", "type": "clock_in"})

    assert response.status_code == 400
    assert "GPS location" in response.json()["message"]


def test_out_of_range_details(client, facilities, login):
    login("teacher", "EMP-1")
    point = (PHU_MY_HUNG[0] + 0.00036, PHU_MY_HUNG[1])

    response = client.post("/time/clock-in", json=_body(point=point))

    assert response.status_code == 400
    data = response.json()["data"]
    assert data == {
        "distance": 40,
        "required_distance": 20.0,
        "facility_name": "Meraki Phu My Hung",
    }


def test_coordinates_out_of_range_are_invalid(client, facilities):
    response = client.post("/time/clock-in", json=_body(point=(95.0, 10.0)))
    assert response.status_code == 422


def test_cannot_clock_for_someone_else(client, facilities, login):
    login("teacher", "EMP-1")
    response = client.post("/time/clock-in", json=_body(employee_id="EMP-2"))
    assert response.status_code == 403


def test_admin_can_clock_for_employee(client, facilities, login):
    login("admin", "EMP-ADMIN")
    response = client.post("/time/clock-in", json=_body(employee_id="EMP-2"))
    assert response.status_code == 201
    assert response.json()["data"]["employee_id"] == "EMP-2"


def test_records_listing(client, facilities, login):
    login("admin", "EMP-ADMIN")
    client.post("/time/clock-in", json=_body(employee_id="EMP-1"))
    client.post("/time/clock-in", json=_body(employee_id="EMP-2", point=PHU_MY_HUNG))
    client.post("/time/clock-out", json=_body(employee_id="EMP-2", point=PHU_MY_HUNG))

    response = client.get("/time/records")
    assert response.status_code == 200
    assert len(response.json()["data"]) == 2

    active = client.get("/time/records", params={"status": "active"}).json()["data"]
    assert [r["employee_id"] for r in active] == ["EMP-1"]

    completed = client.get("/time/records", params={"status": "completed"}).json()["data"]
    assert [r["facility_name"] for r in completed] == ["Meraki Phu My Hung"]

    # Employees only see their own records whatever they ask for
    login("teacher", "EMP-1")
    mine = client.get("/time/records", params={"employee_id": "EMP-2"}).json()["data"]
    assert [r["employee_id"] for r in mine] == ["EMP-1"]


def test_invalid_status_filter(client):
    assert client.get("/time/records", params={"status": "paused"}).status_code == 422
