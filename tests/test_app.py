from clinicdesk.main import create_app


def test_routes_are_registered():
    paths = {route.path for route in create_app().routes}

    assert {
        "/api/patients",
        "/api/appointments/submit-appointment/{appt_id}",
        "/api/receptionists/{receptionist_id}/attendance-history",
        "/api/doctors/fees",
        "/api/doctors/register",
        "/api/doctors/login",
        "/api/medicines/{medicine_id}",
        "/api/dashboard/revenue/yearly",
        "/ws",
    } <= paths


async def test_root(client):
    resp = await client.get("/")
    assert resp.json() == {"message": "ClinicDesk backend is running"}
