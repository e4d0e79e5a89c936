import uuid

import pytest

from apps.invest.services.processing_service import ProcessingService

DOCUMENTS_URL = "/api/v1/invest/documents"


@pytest.fixture
def extracted_url(uploaded_document):
    return f"{DOCUMENTS_URL}/{uploaded_document['id']}/extracted-data"


@pytest.fixture
async def processed_document(db_session, storage, uploaded_document):
    await ProcessingService(db_session, storage).run_job(uuid.UUID(uploaded_document["id"]))
    return uploaded_document


async def test_no_extracted_data_yet(client, auth_headers, extracted_url):
    response = await client.get(extracted_url, headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {
        "extracted_data": None,
        "message": "No extracted data found for this document",
    }


async def test_get_processed_fields(client, auth_headers, extracted_url, processed_document):
    response = await client.get(extracted_url, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["extracted_data"]
    assert data["status"] == "completed"
    assert data["document_id"] == processed_document["id"]

    values = {field["name"]: field["value"] for field in data["fields"]}
    assert values["Invoice Number"] == "INV-001"
    assert all(0 <= field["confidence"] <= 1 for field in data["fields"])


async def test_update_creates_fields_and_completes_document(client, auth_headers, extracted_url, uploaded_document):
    payload = {
        "fields": [
            {"name": "Vendor", "value": "Acme Corp", "confidence": 1.0},
            {"name": "Total", "value": "10.00", "confidence": 0.9, "is_valid": False},
        ],
        "status": "completed",
        "confidence": 0.95,
    }
    response = await client.put(extracted_url, headers=auth_headers, json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["extracted_data"]["status"] == "completed"
    assert body["extracted_data"]["confidence"] == 0.95

    fields = {field["name"]: field for field in body["extracted_data"]["fields"]}
    assert set(fields) == {"Vendor", "Total"}
    assert fields["Total"]["is_valid"] is False
    assert fields["Vendor"]["is_valid"] is True

    document = (await client.get(f"{DOCUMENTS_URL}/{uploaded_document['id']}", headers=auth_headers)).json()["document"]
    assert document["status"] == "completed"
    assert document["extracted_data"]["status"] == "completed"


async def test_update_matches_by_id_and_name_and_drops_missing(client, auth_headers, extracted_url, processed_document):
    fields = (await client.get(extracted_url, headers=auth_headers)).json()["extracted_data"]["fields"]
    by_name = {field["name"]: field for field in fields}
    invoice = by_name["Invoice Number"]

    payload = {
        "fields": [
            # Renamed, matched by id
            {"id": invoice["id"], "name": "Invoice No", "value": "INV-001A", "confidence": 1.0},
            # Matched by name
            {"name": "Date", "value": "2024-01-16", "confidence": 1.0},
        ]
    }
    response = await client.put(extracted_url, headers=auth_headers, json=payload)
    assert response.status_code == 200
    updated = {field["name"]: field for field in response.json()["extracted_data"]["fields"]}

    assert set(updated) == {"Invoice No", "Date"}
    assert updated["Invoice No"]["id"] == invoice["id"]
    assert updated["Invoice No"]["value"] == "INV-001A"
    assert updated["Date"]["id"] == by_name["Date"]["id"]
    assert updated["Date"]["value"] == "2024-01-16"


async def test_update_records_activity(client, auth_headers, extracted_url, uploaded_document):
    payload = {"fields": [{"name": "Vendor", "value": "Acme", "confidence": 0.5}]}
    await client.put(extracted_url, headers=auth_headers, json=payload)

    response = await client.get(f"{DOCUMENTS_URL}/{uploaded_document['id']}/activity", headers=auth_headers)
    actions = [entry["action"] for entry in response.json()["activities"]]
    assert "extraction_updated" in actions


async def test_update_validation(client, auth_headers, extracted_url):
    payload = {"fields": [{"name": "Vendor", "value": "Acme", "confidence": 1.5}]}
    response = await client.put(extracted_url, headers=auth_headers, json=payload)
    assert response.status_code == 400
    assert "confidence" in response.json()["error"]


async def test_extracted_data_access_control(client, other_headers, extracted_url):
    response = await client.get(extracted_url, headers=other_headers)
    assert response.status_code == 403

    response = await client.put(extracted_url, headers=other_headers, json={"fields": []})
    assert response.status_code == 403

    response = await client.get(f"{DOCUMENTS_URL}/{uuid.uuid4()}/extracted-data", headers=other_headers)
    assert response.status_code == 404
