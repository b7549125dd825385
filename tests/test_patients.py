"""Tests for patient endpoints."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_requires_session(client: AsyncClient) -> None:
    """Requests without a session are sent to the sign-in page."""
    response = await client.get("/api/v1/patients/")
    assert response.status_code == 401
    data = response.json()
    assert data["error"] == "AuthMissing"
    assert data["redirect"] == "/auth"


@pytest.mark.asyncio
async def test_rejects_invalid_token(client: AsyncClient) -> None:
    """Garbage tokens are not a session."""
    response = await client.get(
        "/api/v1/patients/",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_patient(
    client: AsyncClient,
    auth_headers: dict,
    sample_patient_data: dict,
) -> None:
    """Test creating a patient."""
    response = await client.post(
        "/api/v1/patients/",
        json=sample_patient_data,
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["medical_record_number"] == "MRN-001"
    assert data["status"] == "Pending"
    assert data["date_of_birth"] == "1985-12-10"
    assert "id" in data


@pytest.mark.asyncio
async def test_create_patient_validation(client: AsyncClient, auth_headers: dict) -> None:
    """Invalid emails and future birth dates are rejected."""
    response = await client.post(
        "/api/v1/patients/",
        json={"email_address": "nope"},
        headers=auth_headers,
    )
    assert response.status_code == 422

    response = await client.post(
        "/api/v1/patients/",
        json={"date_of_birth": "2999-01-01"},
        headers=auth_headers,
    )
    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "ValidationError"
    assert data["details"][0]["loc"] == ["body", "date_of_birth"]
    assert "future" in data["details"][0]["msg"]

    response = await client.post(
        "/api/v1/patients/",
        json={"phone_number": "call me"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_patients_ordered_by_mrn(client: AsyncClient, auth_headers: dict) -> None:
    """Patients are listed by medical record number."""
    for mrn, name in (("MRN-002", "Zoe"), ("MRN-001", "Ada")):
        await client.post(
            "/api/v1/patients/",
            json={"first_name": name, "medical_record_number": mrn},
            headers=auth_headers,
        )

    response = await client.get("/api/v1/patients/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [item["first_name"] for item in data["items"]] == ["Ada", "Zoe"]


@pytest.mark.asyncio
async def test_search_patients(
    client: AsyncClient,
    auth_headers: dict,
    sample_patient_data: dict,
) -> None:
    """Search matches names, email and MRN case-insensitively."""
    await client.post("/api/v1/patients/", json=sample_patient_data, headers=auth_headers)

    for query in ("love", "ADA@", "mrn-0"):
        response = await client.get(
            "/api/v1/patients/", params={"search": query}, headers=auth_headers
        )
        assert response.json()["total"] == 1

    response = await client.get(
        "/api/v1/patients/", params={"search": "turing"}, headers=auth_headers
    )
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_get_patient(client: AsyncClient, auth_headers: dict, test_patient: dict) -> None:
    """Test getting a specific patient."""
    response = await client.get(f"/api/v1/patients/{test_patient['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["first_name"] == "Grace"

    response = await client.get("/api/v1/patients/9999", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_patient(client: AsyncClient, auth_headers: dict, test_patient: dict) -> None:
    """Only the sent fields change."""
    response = await client.put(
        f"/api/v1/patients/{test_patient['id']}",
        json={"phone_number": "555-0100"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["phone_number"] == "555-0100"
    assert data["first_name"] == "Grace"


@pytest.mark.asyncio
async def test_update_patient_status(
    client: AsyncClient,
    auth_headers: dict,
    test_patient: dict,
) -> None:
    """Any status can be set directly."""
    for new_status in ("Cancelled", "Confirmed", "Pending"):
        response = await client.patch(
            f"/api/v1/patients/{test_patient['id']}/status",
            json={"status": new_status},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == new_status

    response = await client.patch(
        f"/api/v1/patients/{test_patient['id']}/status",
        json={"status": "Archived"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_patient(client: AsyncClient, auth_headers: dict, test_patient: dict) -> None:
    """Deleted patients are gone."""
    response = await client.delete(f"/api/v1/patients/{test_patient['id']}", headers=auth_headers)
    assert response.status_code == 204

    response = await client.delete(f"/api/v1/patients/{test_patient['id']}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient) -> None:
    """Responses echo the caller's request ID or generate one."""
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
    assert float(response.headers["X-Process-Time"]) >= 0

    response = await client.get("/api/v1/health")
    assert len(response.headers["X-Request-ID"]) == 32
