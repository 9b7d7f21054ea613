from datetime import timedelta

from clinicdesk.clock import local_now
from conftest import auth_headers, doctor_principal, receptionist_principal


async def test_visit_flow_over_http(client, factory, notifier):
    doctor = await factory.doctor()
    receptionist = await factory.receptionist(doctor)
    patient = await factory.patient(doctor)
    appt = await factory.appointment(patient, fees=100)
    as_doctor = auth_headers(doctor_principal(doctor))
    as_receptionist = auth_headers(receptionist_principal(receptionist))

    resp = await client.put(f"/api/appointments/set-current-appointment/{appt.id}",
                            json={"status": "in"}, headers=as_receptionist)
    assert resp.status_code == 200
    assert resp.json()["appointment"]["status"] == "in"

    current = await client.get("/api/appointments/current-appointment", headers=as_doctor)
    assert current.json()["id"] == appt.id
    assert current.json()["patient"]["id"] == patient.id

    resp = await client.put(f"/api/appointments/parameters/{appt.id}",
                            json={"parameters": {"weight": 70}}, headers=as_receptionist)
    assert resp.json()["appointment"]["parameters"] == {"weight": 70}

    resp = await client.post(f"/api/appointments/submit-prescription/{appt.id}",
                             json={"prescription": [{"medicine": "Cetirizine"}]}, headers=as_doctor)
    assert resp.status_code == 200

    resp = await client.put(f"/api/appointments/submit-appointment/{appt.id}",
                            json={"fees": "50", "note": "Fine"}, headers=as_doctor)
    assert resp.status_code == 200
    assert resp.json()["appointment"]["fees"] == 150
    assert resp.json()["appointment"]["status"] == "out"

    resp = await client.post(f"/api/appointments/payment-mode/{appt.id}",
                             json={"payment_mode": "Cash"}, headers=as_receptionist)
    assert resp.json()["appointment"]["payment_mode"] == "Cash"

    assert notifier.names() == ["appointmentUpdated", "parametersUpdated", "updatedAppointment"]


async def test_out_without_in_is_rejected(client, factory):
    doctor = await factory.doctor()
    appt = await factory.appointment(await factory.patient(doctor))

    resp = await client.put(f"/api/appointments/set-current-appointment/{appt.id}",
                            json={"status": "out"}, headers=auth_headers(doctor_principal(doctor)))

    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_transition"


async def test_future_visit_is_rejected(client, factory):
    doctor = await factory.doctor()
    appt = await factory.appointment(await factory.patient(doctor), date=local_now() + timedelta(days=2))

    resp = await client.post(f"/api/appointments/extra-charges/{appt.id}",
                             json={"charges": 50}, headers=auth_headers(doctor_principal(doctor)))

    assert resp.status_code == 400
    assert resp.json()["kind"] == "future_appointment"


async def test_only_doctors_submit_prescriptions(client, factory):
    doctor = await factory.doctor()
    receptionist = await factory.receptionist(doctor)
    appt = await factory.appointment(await factory.patient(doctor))

    resp = await client.post(f"/api/appointments/submit-prescription/{appt.id}",
                             json={"prescription": []}, headers=auth_headers(receptionist_principal(receptionist)))
    assert resp.status_code == 401


async def test_no_current_appointment(client, factory):
    doctor = await factory.doctor()

    resp = await client.get("/api/appointments/current-appointment", headers=auth_headers(doctor_principal(doctor)))

    assert resp.status_code == 404
    assert resp.json() == {"status": "error", "kind": "not_found", "error": "No appointment to attend"}


async def test_todays_appointments(client, factory):
    doctor = await factory.doctor()
    patient = await factory.patient(doctor, name="Carol")
    appt = await factory.appointment(patient)
    await factory.appointment(patient, date=local_now() - timedelta(days=2))

    resp = await client.get("/api/appointments/todays-appointments", headers=auth_headers(doctor_principal(doctor)))

    assert [a["id"] for a in resp.json()] == [appt.id]
    assert resp.json()[0]["patient"]["name"] == "Carol"


async def test_document_upload(client, factory):
    doctor = await factory.doctor()
    appt = await factory.appointment(await factory.patient(doctor))
    headers = auth_headers(doctor_principal(doctor))

    ok = await client.post(f"/api/appointments/prescription/{appt.id}",
                           json={"base64_image": "data:image/jpeg;base64,aGVsbG8="}, headers=headers)
    assert ok.status_code == 200
    assert ok.json()["appointment"]["document_type"] == "image/jpeg"

    bad = await client.post(f"/api/appointments/prescription/{appt.id}",
                            json={"base64_image": "not-a-data-url"}, headers=headers)
    assert bad.status_code == 400


async def test_oversized_amounts_are_rejected_not_crashing(client, factory):
    doctor = await factory.doctor()
    appt = await factory.appointment(await factory.patient(doctor), fees=100)
    headers = auth_headers(doctor_principal(doctor))

    resp = await client.post(f"/api/appointments/extra-charges/{appt.id}", json={"charges": 10 ** 20}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["kind"] == "validation_error"

    resp = await client.put(f"/api/appointments/submit-appointment/{appt.id}", json={"fees": "1e30"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["kind"] == "validation_error"
