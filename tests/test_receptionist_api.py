import base64

import pytest

from conftest import auth_headers, doctor_principal, receptionist_principal

PDF = base64.b64encode(b"%PDF-1.4 resume").decode()


def new_receptionist(**overrides):
    body = {
        "name": "Mary Major",
        "mobile_number": "9111111111",
        "address": "8 Bay Road",
        "email": "mary@example.com",
        "age": 27,
        "date_of_joining": "2024-01-15",
        "gender": "female",
        "qualification": "BA",
        "password": "front-desk-pass",
        "documents": [{"content_type": "application/pdf", "data": PDF}],
    }
    body.update(overrides)
    return body


async def test_add_receptionist_with_documents(client, factory):
    doctor = await factory.doctor()

    resp = await client.post("/api/receptionists", json=new_receptionist(),
                             headers=auth_headers(doctor_principal(doctor)))

    assert resp.status_code == 201
    body = resp.json()
    assert body["receptionist_id"].startswith("MM")
    assert body["doctor_id"] == doctor.id
    assert len(body["documents"]) == 1
    assert base64.urlsafe_b64decode(body["documents"][0]["document"]) == b"%PDF-1.4 resume"


async def test_added_receptionist_can_log_in(client, factory):
    doctor = await factory.doctor()
    created = await client.post("/api/receptionists", json=new_receptionist(),
                                headers=auth_headers(doctor_principal(doctor)))
    assert created.status_code == 201
    assert "password" not in created.json() and "password_hash" not in created.json()

    resp = await client.post("/api/doctors/login", json={"email": "mary@example.com", "password": "front-desk-pass"})
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == doctor.id


@pytest.mark.parametrize("password", [None, "short"])
async def test_receptionist_needs_a_usable_password(client, factory, password):
    doctor = await factory.doctor()
    body = new_receptionist()
    if password is None:
        del body["password"]
    else:
        body["password"] = password

    resp = await client.post("/api/receptionists", json=body, headers=auth_headers(doctor_principal(doctor)))
    assert resp.status_code == 422


async def test_email_must_be_unique_across_staff(client, factory):
    doctor = await factory.doctor(email="taken@example.com")

    resp = await client.post("/api/receptionists", json=new_receptionist(email="taken@example.com"),
                             headers=auth_headers(doctor_principal(doctor)))
    assert resp.status_code == 409


async def test_documents_are_required(client, factory):
    doctor = await factory.doctor()

    resp = await client.post("/api/receptionists", json=new_receptionist(documents=[]),
                             headers=auth_headers(doctor_principal(doctor)))
    assert resp.status_code == 422


async def test_bad_document_encoding_creates_nothing(client, factory):
    doctor = await factory.doctor()
    headers = auth_headers(doctor_principal(doctor))

    resp = await client.post(
        "/api/receptionists",
        json=new_receptionist(documents=[{"content_type": "application/pdf", "data": "***"}]),
        headers=headers,
    )
    assert resp.status_code == 400

    listing = await client.get("/api/receptionists", headers=headers)
    assert listing.json() == []


async def test_edit_is_partial(client, factory):
    doctor = await factory.doctor()
    receptionist = await factory.receptionist(doctor, name="Old Name", age=40)
    headers = auth_headers(doctor_principal(doctor))

    resp = await client.put(f"/api/receptionists/{receptionist.id}", json={"name": "New Name"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "New Name"
    assert resp.json()["age"] == 40

    cleared = await client.put(f"/api/receptionists/{receptionist.id}", json={"age": None}, headers=headers)
    assert cleared.json()["age"] is None
    assert cleared.json()["name"] == "New Name"

    refused = await client.put(f"/api/receptionists/{receptionist.id}", json={"name": None}, headers=headers)
    assert refused.status_code == 400


async def test_edit_replaces_documents(client, factory):
    doctor = await factory.doctor()
    headers = auth_headers(doctor_principal(doctor))
    created = (await client.post("/api/receptionists", json=new_receptionist(), headers=headers)).json()

    replacement = base64.b64encode(b"new id card").decode()
    resp = await client.put(
        f"/api/receptionists/{created['id']}",
        json={"documents": [{"content_type": "image/png", "data": replacement},
                            {"content_type": "image/png", "data": replacement}]},
        headers=headers,
    )

    documents = resp.json()["documents"]
    assert [d["content_type"] for d in documents] == ["image/png", "image/png"]


async def test_listing_shows_availability(client, factory):
    doctor = await factory.doctor()
    present = await factory.receptionist(doctor, name="Anna")
    await factory.receptionist(doctor, name="Ben")
    await factory.receptionist(await factory.doctor(), name="Elsewhere")

    await client.post("/api/receptionists/check-in", headers=auth_headers(receptionist_principal(present)))
    resp = await client.get("/api/receptionists", headers=auth_headers(doctor_principal(doctor)))

    assert [(r["name"], r["availability_status"]) for r in resp.json()] == [
        ("Anna", "Available"), ("Ben", "Not Available"),
    ]


async def test_remove_receptionist(client, factory):
    doctor = await factory.doctor()
    receptionist = await factory.receptionist(doctor)
    headers = auth_headers(doctor_principal(doctor))
    await client.post("/api/receptionists/check-in", headers=auth_headers(receptionist_principal(receptionist)))

    resp = await client.delete(f"/api/receptionists/{receptionist.id}", headers=headers)
    assert resp.status_code == 200

    missing = await client.get(f"/api/receptionists/{receptionist.id}", headers=headers)
    assert missing.status_code == 404


async def test_other_clinic_cannot_touch_receptionist(client, factory):
    receptionist = await factory.receptionist(await factory.doctor())
    stranger = await factory.doctor()

    resp = await client.delete(f"/api/receptionists/{receptionist.id}",
                               headers=auth_headers(doctor_principal(stranger)))
    assert resp.status_code == 404


async def test_check_in_and_out_over_http(client, factory):
    receptionist = await factory.receptionist(await factory.doctor())
    headers = auth_headers(receptionist_principal(receptionist))

    assert (await client.post("/api/receptionists/check-out", headers=headers)).status_code == 404
    assert (await client.post("/api/receptionists/check-in", headers=headers)).status_code == 200
    again = await client.post("/api/receptionists/check-in", headers=headers)
    assert again.status_code == 409
    assert again.json()["error"] == "Already checked in today"

    out = await client.post("/api/receptionists/check-out", headers=headers)
    assert out.status_code == 200
    assert out.json()["check_out_time"] is not None
    assert (await client.post("/api/receptionists/check-out", headers=headers)).status_code == 409


@pytest.mark.parametrize("role", ["doctor", "receptionist"])
async def test_me(client, factory, role):
    doctor = await factory.doctor(clinic_name="Sunrise Clinic")
    receptionist = await factory.receptionist(doctor)
    principal = doctor_principal(doctor) if role == "doctor" else receptionist_principal(receptionist)

    resp = await client.get("/api/receptionists/me", headers=auth_headers(principal))

    assert resp.status_code == 200
    body = resp.json()
    assert body["role"] == role
    if role == "doctor":
        assert body["doctor"]["clinic_name"] == "Sunrise Clinic"
    else:
        assert body["receptionist"]["id"] == receptionist.id
        assert body["clinic_name"] == "Sunrise Clinic"
        assert body["attendance"] is None


async def test_attendance_history_endpoint(client, factory):
    doctor = await factory.doctor()
    receptionist = await factory.receptionist(doctor)

    resp = await client.get(f"/api/receptionists/{receptionist.id}/attendance-history",
                            params={"month": 2, "year": 2024, "status": "leave"},
                            headers=auth_headers(doctor_principal(doctor)))

    assert resp.status_code == 200
    history = resp.json()["attendance_history"]
    assert len(history) == 29
    assert history[0]["date"] == "2024-02-29"


async def test_attendance_stats_endpoint(client, factory):
    doctor = await factory.doctor()
    receptionist = await factory.receptionist(doctor)

    resp = await client.get(f"/api/receptionists/{receptionist.id}/attendance-stats",
                            headers=auth_headers(doctor_principal(doctor)))

    assert resp.json()["total_attendance"] == 0
    assert resp.json()["avg_check_in_time"] is None
    assert resp.json()["receptionist"]["id"] == receptionist.id
